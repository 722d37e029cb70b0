"""
Configuration settings for headerpwn
"""

import string
from dataclasses import dataclass, field
from typing import Optional
from enum import Enum


class HeaderpwnError(Exception):
    """Base class for all tool errors"""
    pass


class ConfigError(HeaderpwnError):
    """Missing or unusable run configuration"""
    pass


class Verbosity(Enum):
    """Output verbosity levels"""
    QUIET = 0
    NORMAL = 1
    VERBOSE = 2


@dataclass
class TransportConfig:
    """Transport-related configuration"""
    # Socket timeout for connect and every read (seconds)
    timeout: float = 10.0

    # Verify TLS certificates
    verify_ssl: bool = True

    # Maximum bytes drained from a body without Content-Length (None = no cap)
    max_body_size: Optional[int] = None

    # Extra attempts after a failed or throttled request
    retries: int = 0

    # First backoff delay in seconds, doubled on each retry
    initial_backoff: int = 1

    # Upper bound of the random jitter added to each backoff sleep (seconds)
    backoff_jitter: float = 0.5

    # User-Agent string, used unless a variant sets its own
    user_agent: str = "headerpwn/1.0"


@dataclass
class ProbeConfig:
    """Main probing configuration"""
    # Target URL
    target: str = ""

    # File holding one header variant per line
    headers_file: str = ""

    # HTTP proxy as host:port
    proxy: str = ""

    # Delay before each request (seconds)
    delay: int = 0

    # Only print results with status 200
    found_only: bool = False

    # Send one request at a time
    sequential: bool = False

    # Suppress banner
    quiet: bool = False

    # Worker pool size (None = one worker per variant)
    concurrency: Optional[int] = None

    # Extra separator for several headers inside one variant line
    multi_header_delimiter: Optional[str] = None

    # Output verbosity
    verbosity: Verbosity = Verbosity.NORMAL

    # Report output path
    report_path: Optional[str] = None

    # Transport configuration
    transport: TransportConfig = field(default_factory=TransportConfig)

    def validate(self):
        """Raise ConfigError when a required setting is missing"""
        if not self.target:
            raise ConfigError("Please provide a valid URL using the --url flag")
        if not self.headers_file:
            raise ConfigError("Please provide a valid headers file using the --headers flag")
        if self.delay < 0:
            raise ConfigError("Delay must not be negative")
        if self.concurrency is not None and self.concurrency < 1:
            raise ConfigError("Concurrency must be at least 1")
        if self.transport.retries < 0:
            raise ConfigError("Retries must not be negative")


# Cache buster query parameter
CACHE_BUSTER_PARAM = "cachebuster"
CACHE_BUSTER_LENGTH = 10
CACHE_BUSTER_CHARSET = string.ascii_lowercase + string.ascii_uppercase + string.digits


# Separator between header name and value inside a variant line
HEADER_SEPARATOR = ": "


# Responses that are worth retrying when retries are enabled
RETRY_STATUS_CODES = [429, 503]


# Responses that never carry a body
NO_BODY_STATUS_CODES = [204, 304]


# Default ports
DEFAULT_HTTP_PORT = 80
DEFAULT_HTTPS_PORT = 443
