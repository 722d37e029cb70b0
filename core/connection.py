"""
Raw Socket HTTP Transport

This module sends probe requests over raw sockets, giving full control
over the header block (variants are written exactly as loaded, no
normalisation by an HTTP library).

Key Features:
- Direct or HTTP-proxied connections (absolute-form or CONNECT tunnel)
- TLS/SSL support
- Content length resolution without buffering bodies
- Optional bounded retries driven by the backoff policy
"""

import logging
import socket
import ssl
import time
from typing import Callable, List, Optional, Tuple, TYPE_CHECKING
from dataclasses import dataclass
from urllib.parse import urlparse

from config import (
    HeaderpwnError, TransportConfig, RETRY_STATUS_CODES,
    DEFAULT_HTTP_PORT, DEFAULT_HTTPS_PORT,
)
from core.backoff import Backoff
from core.parser import HTTPResponseParser, HTTPResponse, ParseError

if TYPE_CHECKING:
    from scanner.builder import ProbeRequest

logger = logging.getLogger(__name__)

# Largest header block accepted from a server or proxy
MAX_HEAD_SIZE = 65536


class TransportError(HeaderpwnError):
    """Network, TLS or protocol failure while sending a probe"""
    pass


class ProxyParseError(HeaderpwnError):
    """Malformed proxy address"""
    pass


@dataclass
class ProxyAddress:
    """HTTP proxy endpoint"""
    host: str
    port: int

    def __str__(self):
        return f"{self.host}:{self.port}"


def parse_proxy(address: str) -> ProxyAddress:
    """
    Parse a ``host:port`` proxy address.

    An ``http://`` prefix is accepted; any other scheme is rejected.

    Raises:
        ProxyParseError: If host or port is missing or invalid
    """
    candidate = address.strip()
    if "://" not in candidate:
        candidate = "http://" + candidate

    try:
        parsed = urlparse(candidate)
        port = parsed.port
    except ValueError as e:
        raise ProxyParseError(f"Error parsing proxy URL {address!r}: {e}")

    if parsed.scheme != "http":
        raise ProxyParseError(f"Unsupported proxy scheme {parsed.scheme!r} in {address!r}")
    if not parsed.hostname:
        raise ProxyParseError(f"Missing proxy host in {address!r}")
    if port is None:
        raise ProxyParseError(f"Missing proxy port in {address!r}")
    if parsed.path not in ("", "/") or parsed.query:
        raise ProxyParseError(f"Unexpected path in proxy address {address!r}")

    return ProxyAddress(host=parsed.hostname, port=port)


@dataclass
class ConnectionStats:
    """Statistics about a connection"""
    connect_time: float = 0.0
    total_time: float = 0.0
    bytes_sent: int = 0


@dataclass
class TransportResult:
    """Response of a probe plus the cost of getting it"""
    response: HTTPResponse
    stats: ConnectionStats
    attempts: int = 1


class RawHTTPClient:
    """
    Raw socket-based HTTP client for one request/response exchange.

    Example:
        with RawHTTPClient("example.com", 443, use_ssl=True) as client:
            client.send_request("GET", "/", [("Host", "example.com")])
            response = client.read_response(HTTPResponseParser())
    """

    def __init__(
        self,
        host: str,
        port: int = None,
        use_ssl: bool = False,
        timeout: float = 10.0,
        verify_ssl: bool = True,
        proxy: Optional[ProxyAddress] = None
    ):
        """
        Initialize the HTTP client.

        Args:
            host: Target hostname or IP
            port: Target port (default: 80 for HTTP, 443 for HTTPS)
            use_ssl: Whether to use TLS/SSL
            timeout: Socket timeout in seconds
            verify_ssl: Whether to verify SSL certificates
            proxy: Optional HTTP proxy to go through
        """
        self.host = host
        self.port = port if port is not None else (DEFAULT_HTTPS_PORT if use_ssl else DEFAULT_HTTP_PORT)
        self.use_ssl = use_ssl
        self.timeout = timeout
        self.verify_ssl = verify_ssl
        self.proxy = proxy

        self.socket: Optional[socket.socket] = None
        self.connected = False
        self.stats = ConnectionStats()

    @property
    def absolute_form(self) -> bool:
        """Plain HTTP through a proxy uses absolute-form request targets"""
        return self.proxy is not None and not self.use_ssl

    def connect(self) -> float:
        """
        Establish connection to the target (or proxy).

        Returns:
            Connection time in seconds

        Raises:
            TransportError: If connection fails
        """
        start_time = time.time()
        endpoint = (self.proxy.host, self.proxy.port) if self.proxy else (self.host, self.port)

        try:
            self.socket = socket.create_connection(endpoint, timeout=self.timeout)

            if self.proxy and self.use_ssl:
                self._open_tunnel()

            if self.use_ssl:
                context = ssl.create_default_context()
                if not self.verify_ssl:
                    context.check_hostname = False
                    context.verify_mode = ssl.CERT_NONE

                self.socket = context.wrap_socket(
                    self.socket,
                    server_hostname=self.host
                )

        except TransportError:
            self.close()
            raise
        except socket.timeout:
            self.close()
            raise TransportError(f"Connection timed out to {endpoint[0]}:{endpoint[1]}")
        except ssl.SSLError as e:
            self.close()
            raise TransportError(f"SSL error: {e}")
        except OSError as e:
            self.close()
            raise TransportError(f"Socket error: {e}")
        except UnicodeError as e:
            # IDNA encoding rejects empty or over-long labels
            self.close()
            raise TransportError(f"Invalid host {endpoint[0]!r}: {e}")

        self.connected = True
        self.stats.connect_time = time.time() - start_time
        return self.stats.connect_time

    def _open_tunnel(self):
        """Ask the proxy for a CONNECT tunnel to the target"""
        authority = f"[{self.host}]:{self.port}" if ":" in self.host else f"{self.host}:{self.port}"
        request = (
            f"CONNECT {authority} HTTP/1.1\r\n"
            f"Host: {authority}\r\n"
            f"\r\n"
        )
        self.socket.sendall(request.encode("utf-8"))

        head = b""
        while b"\r\n\r\n" not in head:
            chunk = self.socket.recv(4096)
            if not chunk:
                raise TransportError(f"Proxy {self.proxy} closed the tunnel request")
            head += chunk
            if len(head) > MAX_HEAD_SIZE:
                raise TransportError(f"Proxy {self.proxy} sent an oversized CONNECT reply")

        status_line = head.split(b"\r\n", 1)[0]
        parts = status_line.split(b" ", 2)
        if len(parts) < 2 or parts[1] != b"200":
            raise TransportError(
                f"Proxy {self.proxy} refused tunnel: {status_line.decode('utf-8', errors='ignore')}"
            )

    def send_request(
        self,
        method: str,
        target: str,
        headers: List[Tuple[str, str]]
    ) -> int:
        """
        Write a request with the headers exactly as given.

        Args:
            method: HTTP method
            target: Request target (origin-form or absolute-form)
            headers: Ordered (name, value) pairs, duplicates allowed

        Returns:
            Number of bytes sent
        """
        if not self.connected:
            raise TransportError("Not connected. Call connect() first.")

        request = f"{method} {target} HTTP/1.1\r\n"
        for name, value in headers:
            request += f"{name}: {value}\r\n"
        request += "\r\n"

        data = request.encode("utf-8")
        try:
            self.socket.sendall(data)
        except OSError as e:
            raise TransportError(f"Send failed: {e}")

        self.stats.bytes_sent = len(data)
        return len(data)

    def read_response(
        self,
        parser: HTTPResponseParser,
        max_body_size: Optional[int] = None
    ) -> HTTPResponse:
        """
        Read one response and resolve its content length.

        Interim 1xx responses are skipped.

        Raises:
            TransportError: On socket failures or an unparseable response
        """
        stream = self.socket.makefile("rb")
        try:
            while True:
                response = parser.parse_head(self._read_head(stream))
                if response.status_code == 100 or 102 <= response.status_code < 200:
                    continue
                parser.resolve_length(response, stream, max_body_size)
                return response
        except ParseError as e:
            raise TransportError(f"Bad response: {e}")
        except socket.timeout:
            raise TransportError(f"Read timed out from {self.host}:{self.port}")
        except OSError as e:
            raise TransportError(f"Read failed: {e}")
        finally:
            stream.close()

    @staticmethod
    def _read_head(stream) -> bytes:
        head = b""
        while True:
            line = stream.readline(MAX_HEAD_SIZE)
            if not line:
                if not head:
                    raise ParseError("Connection closed before a response was received")
                return head
            if line in (b"\r\n", b"\n"):
                return head
            head += line
            if len(head) > MAX_HEAD_SIZE:
                raise ParseError("Response header block too large")

    def close(self):
        """Close the connection"""
        if self.socket:
            try:
                self.socket.close()
            except OSError:
                pass
        self.socket = None
        self.connected = False

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class Transport:
    """
    Sends probe requests, shared by every dispatched task.

    Each request gets its own ``Connection: close`` socket; the transport
    itself only carries settings, the parser and the backoff policy.

    Example:
        transport = Transport(TransportConfig(timeout=5))
        result = transport.send(request, proxy="127.0.0.1:8080", delay=1)
        print(result.response.status_code, result.response.content_length)
    """

    def __init__(
        self,
        config: Optional[TransportConfig] = None,
        backoff: Optional[Backoff] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.config = config or TransportConfig()
        self.parser = HTTPResponseParser()
        self.backoff = backoff or Backoff(jitter=self.config.backoff_jitter, sleep=sleep)
        self.sleep = sleep

    def _request_headers(self, request: "ProbeRequest") -> List[Tuple[str, str]]:
        """Variant headers plus the defaults the variant does not override"""
        present = {name.lower() for name, _ in request.headers}
        headers = []
        if "host" not in present:
            headers.append(("Host", request.netloc))
        headers.extend(request.headers)
        if "user-agent" not in present and self.config.user_agent:
            headers.append(("User-Agent", self.config.user_agent))
        if "connection" not in present:
            headers.append(("Connection", "close"))
        return headers

    def _exchange(self, request: "ProbeRequest", proxy: Optional[ProxyAddress]) -> Tuple[HTTPResponse, ConnectionStats]:
        client = RawHTTPClient(
            host=request.host,
            port=request.port,
            use_ssl=request.scheme == "https",
            timeout=self.config.timeout,
            verify_ssl=self.config.verify_ssl,
            proxy=proxy
        )

        start_time = time.time()
        try:
            client.connect()
            target = request.url.split("#", 1)[0] if client.absolute_form else request.target
            client.send_request("GET", target, self._request_headers(request))
            response = client.read_response(self.parser, self.config.max_body_size)
        finally:
            client.close()

        client.stats.total_time = time.time() - start_time
        return response, client.stats

    def send(self, request: "ProbeRequest", proxy: str = "", delay: int = 0) -> TransportResult:
        """
        Send a probe request.

        Args:
            request: Built probe request
            proxy: ``host:port`` of an HTTP proxy, empty for a direct connection
            delay: Seconds to wait before sending

        Returns:
            TransportResult for the last attempt

        Raises:
            ProxyParseError: If the proxy address is malformed
            TransportError: If the last attempt failed
        """
        if delay > 0:
            self.sleep(delay)

        proxy_address = parse_proxy(proxy) if proxy else None

        backoff = self.config.initial_backoff
        attempt = 0
        while True:
            attempt += 1
            try:
                response, stats = self._exchange(request, proxy_address)
            except TransportError as e:
                if attempt > self.config.retries:
                    raise
                logger.info("Attempt %d for %s failed (%s), retrying", attempt, request.url, e)
                backoff = self.backoff.next_delay(None, backoff)
                continue

            if response.status_code in RETRY_STATUS_CODES and attempt <= self.config.retries:
                logger.info("Got %d for %s, retrying", response.status_code, request.url)
                backoff = self.backoff.next_delay(response, backoff)
                continue

            return TransportResult(response=response, stats=stats, attempts=attempt)
