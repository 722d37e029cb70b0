"""
Probe Dispatcher

Runs one probe per header variant and streams the outcomes:
- Parallel mode: every variant submitted at once, results in completion order
- Sequential mode: one variant at a time, results in input order

Every variant produces exactly one ProbeResult, and the stream always
ends once the last task is done.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Iterator, List, Optional

from core.connection import Transport, TransportError, ProxyParseError
from scanner.builder import RequestBuilder, BuildError
from scanner.results import ProbeResult, ProbeStage

logger = logging.getLogger(__name__)


class Dispatcher:
    """
    Header variant dispatch engine.

    Example:
        dispatcher = Dispatcher(RequestBuilder(), Transport(), sequential=True)
        for result in dispatcher.run("https://example.com", ["X-Test: 1"]):
            print(result.status_code, result.content_length)
    """

    def __init__(
        self,
        builder: RequestBuilder,
        transport: Transport,
        proxy: str = "",
        delay: int = 0,
        sequential: bool = False,
        concurrency: Optional[int] = None
    ):
        """
        Initialize dispatcher.

        Args:
            builder: Request builder (owns the cache buster)
            transport: Transport shared by all tasks
            proxy: HTTP proxy ``host:port``, empty for direct connections
            delay: Seconds each task waits before sending
            sequential: Send one request at a time
            concurrency: Worker cap in parallel mode (None = one per variant)
        """
        self.builder = builder
        self.transport = transport
        self.proxy = proxy
        self.delay = delay
        self.sequential = sequential
        self.concurrency = concurrency

    def probe(self, base_url: str, variant: str) -> ProbeResult:
        """
        Build and send the request for one variant.

        Build, proxy and transport failures are returned as tagged
        records instead of being raised.
        """
        try:
            request = self.builder.build(base_url, variant)
        except BuildError as e:
            logger.debug("Build failed for %r: %s", variant, e)
            return ProbeResult(url="", header=variant, stage=ProbeStage.BUILD, error=str(e))

        try:
            sent = self.transport.send(request, self.proxy, self.delay)
        except ProxyParseError as e:
            logger.debug("Proxy rejected for %r: %s", variant, e)
            return ProbeResult(url=request.url, header=variant, stage=ProbeStage.PROXY, error=str(e))
        except TransportError as e:
            logger.debug("Request failed for %r: %s", variant, e)
            return ProbeResult(url=request.url, header=variant, stage=ProbeStage.TRANSPORT, error=str(e))

        return ProbeResult(
            url=request.url,
            header=variant,
            status_code=sent.response.status_code,
            content_length=sent.response.content_length,
            elapsed=sent.stats.total_time,
            attempts=sent.attempts,
            truncated=sent.response.truncated,
        )

    def run(self, base_url: str, variants: List[str]) -> Iterator[ProbeResult]:
        """
        Probe every variant.

        Args:
            base_url: Target URL
            variants: Header variants, one probe each

        Yields:
            One ProbeResult per variant
        """
        if not variants:
            return

        if self.sequential:
            yield from self._run_sequential(base_url, variants)
        else:
            yield from self._run_parallel(base_url, variants)

    def _run_sequential(self, base_url: str, variants: List[str]) -> Iterator[ProbeResult]:
        for variant in variants:
            yield self.probe(base_url, variant)

    def _run_parallel(self, base_url: str, variants: List[str]) -> Iterator[ProbeResult]:
        workers = self.concurrency or len(variants)
        logger.debug("Dispatching %d variants on %d workers", len(variants), workers)

        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [executor.submit(self.probe, base_url, variant) for variant in variants]
            for future in as_completed(futures):
                yield future.result()
