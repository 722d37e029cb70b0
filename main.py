#!/usr/bin/env python3
"""
headerpwn - HTTP Header Variant Prober

Sends one cache-busted request per header variant to a target URL and
reports the status code and content length each variant produced.

Usage:
    python main.py --url https://example.com --headers headers.txt
    python main.py -u https://example.com -H headers.txt --found --no-concurrent
    python main.py -u https://example.com -H headers.txt -p 127.0.0.1:8080 -d 1
"""

import logging
import time
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel

from config import ConfigError, ProbeConfig, TransportConfig, Verbosity
from core.cachebuster import CacheBuster
from core.connection import Transport
from payloads.variants import load_variants
from reports.console import ResultPrinter, ScanSummary
from reports.generator import ReportGenerator
from scanner.builder import RequestBuilder
from scanner.dispatcher import Dispatcher

console = Console()
logger = logging.getLogger("headerpwn")

BANNER = r"""
       __               __
      / /  ___ ___  ___/ /__ _______ _    _____
     / _ \/ -_) _ \/ _  / -_) __/ _ \ |/|/ / _ \
    /_//_/\__/\_,_/\_,_/\__/_/ .__/__,__/_//_/
                            /_/
"""


def setup_logging(verbosity: Verbosity):
    """Route log records through rich on stderr"""
    level = logging.DEBUG if verbosity == Verbosity.VERBOSE else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def write_report(config: ProbeConfig, summary: ScanSummary, duration: float):
    """Export results in the format chosen by the report extension"""
    report_gen = ReportGenerator()
    report_gen.set_metadata(
        target=config.target,
        scan_duration=duration,
        headers_file=config.headers_file,
        mode="sequential" if config.sequential else "parallel"
    )
    report_gen.add_results(summary.results)

    if Path(config.report_path).suffix == '.md':
        report_gen.generate_markdown(config.report_path)
    else:
        report_gen.generate_json(config.report_path)

    console.print(f"[green]Report saved to: {escape(config.report_path)}[/green]")


def run(config: ProbeConfig) -> Optional[ScanSummary]:
    """
    Execute a probing run.

    Returns:
        The summary, or None when setup failed
    """
    if not config.quiet:
        console.print(BANNER, style="bold cyan", highlight=False)

    try:
        config.validate()
        variants = load_variants(config.headers_file)
    except ConfigError as e:
        console.print(str(e), style="red", markup=False, highlight=False)
        return None

    logger.debug("Loaded %d header variants from %s", len(variants), config.headers_file)

    dispatcher = Dispatcher(
        builder=RequestBuilder(CacheBuster(), delimiter=config.multi_header_delimiter),
        transport=Transport(config.transport),
        proxy=config.proxy,
        delay=config.delay,
        sequential=config.sequential,
        concurrency=config.concurrency
    )
    printer = ResultPrinter(
        console,
        found_only=config.found_only,
        show_errors=config.verbosity == Verbosity.VERBOSE
    )

    start_time = time.time()
    summary = printer.consume(dispatcher.run(config.target, variants))
    duration = time.time() - start_time

    if config.verbosity != Verbosity.QUIET:
        console.print()
        console.print(Panel(
            f"Variants: {summary.total}  Responses: {summary.succeeded}  "
            f"Failed: {summary.failed}  Status 200: {summary.found}\n"
            f"Completed in {duration:.2f}s",
            title="Summary",
            border_style="green" if summary.failed == 0 else "yellow"
        ))

    if config.report_path:
        write_report(config, summary, duration)

    return summary


@click.command()
@click.option('--url', '-u', default='', help='URL to make requests to')
@click.option('--headers', '-H', 'headers_file', default='', help='File containing headers for requests')
@click.option('--proxy', '-p', default='', help='Proxy server IP:PORT (e.g., 127.0.0.1:8080)')
@click.option('--delay', '-d', default=0, type=int, help='Delay in seconds before each request')
@click.option('--found', is_flag=True, help='Print only headers with status code 200')
@click.option('--no-concurrent', is_flag=True, help='Disable concurrent requests, send one request at a time')
@click.option('--quiet', '-q', is_flag=True, help='Suppress banner')
@click.option('--concurrency', '-c', default=None, type=int, help='Maximum parallel requests (default: one per header)')
@click.option('--timeout', default=10.0, help='Socket timeout in seconds')
@click.option('--retries', default=0, type=int, help='Retries with backoff on failures and 429/503 responses')
@click.option('--delimiter', default=None, help='Separator for several headers on one line (e.g. "||")')
@click.option('--max-body', default=None, type=int, help='Maximum body bytes read when Content-Length is missing')
@click.option('--no-ssl-verify', is_flag=True, help='Disable SSL certificate verification')
@click.option('--report', '-r', default=None, help='Output report path (.json or .md)')
@click.option('--verbose', '-v', is_flag=True, help='Verbose output, including failed requests')
def cli(url: str, headers_file: str, proxy: str, delay: int, found: bool, no_concurrent: bool,
        quiet: bool, concurrency: Optional[int], timeout: float, retries: int,
        delimiter: Optional[str], max_body: Optional[int], no_ssl_verify: bool,
        report: Optional[str], verbose: bool):
    """Probe a URL with header variants and report status codes and content lengths"""
    if verbose:
        verbosity = Verbosity.VERBOSE
    elif quiet:
        verbosity = Verbosity.QUIET
    else:
        verbosity = Verbosity.NORMAL
    setup_logging(verbosity)

    config = ProbeConfig(
        target=url,
        headers_file=headers_file,
        proxy=proxy,
        delay=delay,
        found_only=found,
        sequential=no_concurrent,
        quiet=quiet,
        concurrency=concurrency,
        multi_header_delimiter=delimiter,
        verbosity=verbosity,
        report_path=report,
        transport=TransportConfig(
            timeout=timeout,
            verify_ssl=not no_ssl_verify,
            max_body_size=max_body,
            retries=retries
        )
    )
    run(config)


if __name__ == "__main__":
    cli()
