"""
Core utilities for headerpwn
"""

from .cachebuster import CacheBuster
from .parser import HTTPResponseParser, HTTPResponse, ParseError
from .backoff import Backoff
from .connection import (
    RawHTTPClient,
    Transport,
    TransportResult,
    TransportError,
    ProxyParseError,
    parse_proxy,
)

__all__ = [
    "CacheBuster",
    "HTTPResponseParser",
    "HTTPResponse",
    "ParseError",
    "Backoff",
    "RawHTTPClient",
    "Transport",
    "TransportResult",
    "TransportError",
    "ProxyParseError",
    "parse_proxy",
]
