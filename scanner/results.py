"""
Probe result records
"""

from typing import Any, Dict
from dataclasses import dataclass
from enum import Enum
from urllib.parse import urlsplit, urlunsplit, parse_qsl, urlencode

from config import CACHE_BUSTER_PARAM


class ProbeStage(Enum):
    """Where a probe ended"""
    OK = "ok"
    BUILD = "build"
    PROXY = "proxy"
    TRANSPORT = "transport"


@dataclass
class ProbeResult:
    """Outcome of probing one header variant"""
    url: str
    header: str
    status_code: int = 0
    content_length: int = 0
    stage: ProbeStage = ProbeStage.OK
    error: str = ""
    elapsed: float = 0.0
    attempts: int = 0
    truncated: bool = False

    @property
    def ok(self) -> bool:
        return self.stage is ProbeStage.OK

    @property
    def found(self) -> bool:
        return self.ok and self.status_code == 200

    @property
    def display_url(self) -> str:
        return strip_cache_buster(self.url)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for reporting"""
        return {
            "url": self.display_url,
            "header": self.header,
            "status_code": self.status_code,
            "content_length": self.content_length,
            "stage": self.stage.value,
            "error": self.error,
            "elapsed": round(self.elapsed, 3),
            "attempts": self.attempts,
            "truncated": self.truncated,
        }


def strip_cache_buster(url: str) -> str:
    """Remove the cache buster parameter, keeping other query parameters in order"""
    if not url:
        return url
    parts = urlsplit(url)
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != CACHE_BUSTER_PARAM]
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))
