"""
Probe Report Generator

Writes JSON and Markdown reports of a header probing run.
"""

import json
from typing import List, Dict, Any, Optional
from dataclasses import dataclass
from datetime import datetime

from scanner.results import ProbeResult, strip_cache_buster


@dataclass
class ReportMetadata:
    """Metadata for the report"""
    target: str
    scan_date: str
    scan_duration: float
    headers_file: str
    mode: str
    tool_version: str = "1.0.0"


class ReportGenerator:
    """
    Generates probe reports in various formats.

    Supports:
    - Markdown reports
    - JSON reports (machine-readable)

    Example:
        gen = ReportGenerator()
        gen.set_metadata(target, duration, "headers.txt", "parallel")
        gen.add_results(summary.results)
        gen.generate_json("report.json")
    """

    def __init__(self):
        self.metadata: Optional[ReportMetadata] = None
        self.results: List[ProbeResult] = []

    def set_metadata(
        self,
        target: str,
        scan_duration: float,
        headers_file: str,
        mode: str
    ):
        """Set report metadata"""
        self.metadata = ReportMetadata(
            target=strip_cache_buster(target),
            scan_date=datetime.now().isoformat(),
            scan_duration=scan_duration,
            headers_file=headers_file,
            mode=mode
        )

    def add_results(self, results: List[ProbeResult]):
        """Add probe results to report"""
        self.results.extend(results)

    def add_result(self, result: ProbeResult):
        """Add single probe result"""
        self.results.append(result)

    def _summary(self) -> Dict[str, int]:
        succeeded = sum(1 for r in self.results if r.ok)
        return {
            "total_variants": len(self.results),
            "succeeded": succeeded,
            "failed": len(self.results) - succeeded,
            "found": sum(1 for r in self.results if r.found),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metadata": {
                "target": self.metadata.target if self.metadata else None,
                "scan_date": self.metadata.scan_date if self.metadata else None,
                "scan_duration": self.metadata.scan_duration if self.metadata else None,
                "headers_file": self.metadata.headers_file if self.metadata else None,
                "mode": self.metadata.mode if self.metadata else None,
                "tool_version": self.metadata.tool_version if self.metadata else None,
            },
            "results": [r.to_dict() for r in self.results],
            "summary": self._summary(),
        }

    def generate_json(self, output_path: str) -> str:
        """
        Generate JSON report.

        Args:
            output_path: Path to save JSON file

        Returns:
            Path to generated report
        """
        with open(output_path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

        return output_path

    def generate_markdown(self, output_path: str) -> str:
        """
        Generate Markdown report.

        Args:
            output_path: Path to save Markdown file

        Returns:
            Path to generated report
        """
        with open(output_path, 'w') as f:
            f.write(self._build_markdown())

        return output_path

    @staticmethod
    def _cell(value: Any) -> str:
        return str(value).replace("|", "\\|")

    def _build_markdown(self) -> str:
        """Build Markdown report content"""
        summary = self._summary()

        md = f'''# Header Probe Report

**Target:** {self.metadata.target if self.metadata else 'N/A'}
**Date:** {self.metadata.scan_date if self.metadata else 'N/A'}
**Duration:** {f"{self.metadata.scan_duration:.2f}s" if self.metadata else 'N/A'}
**Mode:** {self.metadata.mode if self.metadata else 'N/A'}

## Summary

| Metric | Value |
|--------|-------|
| Variants Tested | {summary['total_variants']} |
| Responses | {summary['succeeded']} |
| Failed | {summary['failed']} |
| Status 200 | {summary['found']} |

---

## Results

| Status | Content-Length | Header | URL |
|--------|----------------|--------|-----|
'''

        for result in self.results:
            if not result.ok:
                continue
            md += (
                f"| {result.status_code} | {result.content_length} "
                f"| `{self._cell(result.header)}` | {self._cell(result.display_url)} |\n"
            )

        failures = [r for r in self.results if not r.ok]
        if failures:
            md += '\n## Failed Attempts\n\n| Stage | Header | Error |\n|-------|--------|-------|\n'
            for result in failures:
                md += f"| {result.stage.value} | `{self._cell(result.header)}` | {self._cell(result.error)} |\n"

        return md
