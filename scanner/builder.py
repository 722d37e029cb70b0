"""
Probe Request Builder

Turns a base URL and one header variant into a cache-busted request.
"""

from typing import List, Optional, Tuple
from dataclasses import dataclass, field
from urllib.parse import urlsplit

from config import (
    HeaderpwnError, CACHE_BUSTER_PARAM, HEADER_SEPARATOR,
    DEFAULT_HTTP_PORT, DEFAULT_HTTPS_PORT,
)
from core.cachebuster import CacheBuster


class BuildError(HeaderpwnError):
    """The probe URL cannot be turned into a request"""
    pass


@dataclass
class ProbeRequest:
    """A fully formed outbound probe"""
    url: str
    variant: str
    scheme: str
    host: str
    port: int
    netloc: str
    target: str
    headers: List[Tuple[str, str]] = field(default_factory=list)


def add_cache_buster(base_url: str, token: str) -> str:
    """Append the cache buster query parameter to a URL"""
    fragment = ""
    if "#" in base_url:
        base_url, fragment = base_url.split("#", 1)
        fragment = "#" + fragment
    separator = "&" if "?" in base_url else "?"
    return f"{base_url}{separator}{CACHE_BUSTER_PARAM}={token}{fragment}"


def parse_variant(variant: str, delimiter: Optional[str] = None) -> List[Tuple[str, str]]:
    """
    Split a header variant into (name, value) pairs.

    The variant is split on newlines and, when given, on ``delimiter``.
    Each piece is split on the first ": "; pieces without it are skipped.
    """
    lines = variant.replace("\r\n", "\n").split("\n")
    if delimiter:
        lines = [piece for line in lines for piece in line.split(delimiter)]

    headers = []
    for line in lines:
        name, sep, value = line.partition(HEADER_SEPARATOR)
        if sep:
            headers.append((name, value))
    return headers


class RequestBuilder:
    """
    Builds one probe request per header variant.

    Example:
        builder = RequestBuilder(CacheBuster())
        request = builder.build("https://example.com/", "X-Forwarded-Host: evil.com")
        # request.url == "https://example.com/?cachebuster=Ab3..."
    """

    def __init__(self, cache_buster: Optional[CacheBuster] = None, delimiter: Optional[str] = None):
        """
        Initialize builder.

        Args:
            cache_buster: Token generator shared by every request
            delimiter: Extra separator for several headers inside one variant
        """
        self.cache_buster = cache_buster or CacheBuster()
        self.delimiter = delimiter

    def build(self, base_url: str, variant: str) -> ProbeRequest:
        """
        Build the request for one variant.

        Raises:
            BuildError: If the cache-busted URL is not a usable http(s) URL
        """
        url = add_cache_buster(base_url, self.cache_buster.generate())

        try:
            parsed = urlsplit(url)
            port = parsed.port
        except ValueError as e:
            raise BuildError(f"Invalid URL {url!r}: {e}")

        if parsed.scheme not in ("http", "https"):
            raise BuildError(f"Unsupported scheme in {url!r}")
        if not parsed.hostname:
            raise BuildError(f"Missing host in {url!r}")

        default_port = DEFAULT_HTTPS_PORT if parsed.scheme == "https" else DEFAULT_HTTP_PORT
        netloc = parsed.netloc.rsplit("@", 1)[-1]

        return ProbeRequest(
            url=url,
            variant=variant,
            scheme=parsed.scheme,
            host=parsed.hostname,
            port=port if port is not None else default_port,
            netloc=netloc,
            target=f"{parsed.path or '/'}?{parsed.query}",
            headers=parse_variant(variant, self.delimiter),
        )
