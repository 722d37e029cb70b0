"""
Console result printer

Consumes the probe stream and prints one line per qualifying result:

    [status] [CL: length] [header] [url]
"""

from typing import Iterable, List
from dataclasses import dataclass, field

from rich.console import Console
from rich.text import Text

from scanner.results import ProbeResult


@dataclass
class ScanSummary:
    """Counts collected while consuming a probe stream"""
    results: List[ProbeResult] = field(default_factory=list)
    printed: int = 0

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.ok)

    @property
    def failed(self) -> int:
        return self.total - self.succeeded

    @property
    def found(self) -> int:
        return sum(1 for r in self.results if r.found)


class ResultPrinter:
    """
    Prints probe results as they arrive.

    Example:
        printer = ResultPrinter(Console(), found_only=True)
        summary = printer.consume(dispatcher.run(url, variants))
    """

    def __init__(self, console: Console, found_only: bool = False, show_errors: bool = False):
        """
        Initialize printer.

        Args:
            console: Rich console to print to
            found_only: Only print successful results with status 200
            show_errors: Also print failed attempts
        """
        self.console = console
        self.found_only = found_only
        self.show_errors = show_errors

    def should_print(self, result: ProbeResult) -> bool:
        if not result.ok:
            return self.show_errors
        if self.found_only:
            return result.status_code == 200
        return True

    def format(self, result: ProbeResult) -> Text:
        """Build the output line for a result"""
        if not result.ok:
            return Text.assemble(
                (f"[{result.stage.value.upper()} ERROR]", "dim red"),
                " ",
                (f"[{result.header}]", "cyan"),
                " ",
                (f"[{result.error}]", "dim"),
            )

        status_style = "green" if result.status_code == 200 else "red"
        return Text.assemble(
            (f"[{result.status_code}]", status_style),
            " ",
            (f"[CL: {result.content_length}]", "magenta"),
            " ",
            (f"[{result.header}]", "cyan"),
            " ",
            (f"[{result.display_url}]", "yellow"),
        )

    def consume(self, results: Iterable[ProbeResult]) -> ScanSummary:
        """Print results until the stream ends"""
        summary = ScanSummary()
        for result in results:
            summary.results.append(result)
            if self.should_print(result):
                self.console.print(self.format(result), soft_wrap=True, highlight=False)
                summary.printed += 1
        return summary
