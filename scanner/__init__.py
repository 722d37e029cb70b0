"""
Scanner modules for headerpwn
"""

from .builder import RequestBuilder, ProbeRequest, BuildError
from .results import ProbeResult, ProbeStage, strip_cache_buster
from .dispatcher import Dispatcher

__all__ = [
    "RequestBuilder",
    "ProbeRequest",
    "BuildError",
    "ProbeResult",
    "ProbeStage",
    "strip_cache_buster",
    "Dispatcher",
]
