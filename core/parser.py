"""
HTTP Response Parser

Parses the status line and headers of raw HTTP responses and resolves
the body length, either from the declared Content-Length or by draining
the body off the wire.
"""

import re
from typing import BinaryIO, Dict, List, Optional, Tuple
from dataclasses import dataclass, field

from config import HeaderpwnError, NO_BODY_STATUS_CODES


# Size of each read while draining a body
READ_BLOCK_SIZE = 65536


class ParseError(HeaderpwnError):
    """Malformed HTTP response"""
    pass


@dataclass
class HTTPResponse:
    """Structured HTTP response"""
    # Status line components
    http_version: str = "HTTP/1.1"
    status_code: int = 0
    status_message: str = ""

    # Headers (preserving order and duplicates)
    headers: Dict[str, str] = field(default_factory=dict)
    raw_headers: List[Tuple[str, str]] = field(default_factory=list)

    # Length as declared by the Content-Length header (None if absent or invalid)
    declared_length: Optional[int] = None
    is_chunked: bool = False

    # Length actually reported for the body
    content_length: int = 0

    # Body drain stopped at the configured cap
    truncated: bool = False

    def get_header(self, name: str, default: str = "") -> str:
        """Get header value (case-insensitive)"""
        name_lower = name.lower()
        for key, value in self.headers.items():
            if key.lower() == name_lower:
                return value
        return default

    def get_all_headers(self, name: str) -> List[str]:
        """Get all values for a header (handles duplicates)"""
        name_lower = name.lower()
        return [v for k, v in self.raw_headers if k.lower() == name_lower]

    @property
    def has_body(self) -> bool:
        """Whether the status code allows a body at all"""
        return not (100 <= self.status_code < 200 or self.status_code in NO_BODY_STATUS_CODES)


class HTTPResponseParser:
    """
    Parser for raw HTTP responses.

    ``parse_head`` handles the bytes up to the blank line ending the
    header block; ``resolve_length`` then works on the remaining stream.

    Example:
        parser = HTTPResponseParser()
        response = parser.parse_head(head_bytes)
        parser.resolve_length(response, sock_file, max_body_size=None)
        print(response.status_code, response.content_length)
    """

    # Regex patterns
    STATUS_LINE_PATTERN = re.compile(
        rb'^(HTTP/[\d.]+)\s+(\d+)\s*(.*?)\r?\n',
        re.IGNORECASE
    )

    HEADER_PATTERN = re.compile(
        rb'^([^\s:]+)\s*:\s*(.*)$'
    )

    def __init__(self, strict: bool = False):
        """
        Initialize parser.

        Args:
            strict: If True, raise ParseError on truncated bodies instead
                    of reporting the bytes received so far
        """
        self.strict = strict

    def parse_head(self, head: bytes) -> HTTPResponse:
        """
        Parse the status line and headers.

        Args:
            head: Raw bytes of the header block (blank line optional)

        Returns:
            Parsed HTTPResponse without body information

        Raises:
            ParseError: If there is no valid status line
        """
        response = HTTPResponse()

        lines = head.replace(b"\r\n", b"\n").split(b"\n")
        if not lines or not self._parse_status_line(lines[0], response):
            raise ParseError(f"Invalid status line: {lines[0][:80]!r}" if lines else "Empty response")

        content_length_values = []

        for line in lines[1:]:
            if not line:
                continue

            header_match = self.HEADER_PATTERN.match(line)
            if not header_match:
                continue

            name = header_match.group(1).decode("utf-8", errors="ignore")
            value = header_match.group(2).decode("utf-8", errors="ignore").strip()

            response.headers[name] = value
            response.raw_headers.append((name, value))

            name_lower = name.lower()
            if name_lower == "content-length":
                content_length_values.append(value)
            elif name_lower == "transfer-encoding" and "chunked" in value.lower():
                response.is_chunked = True

        # Chunked framing wins over Content-Length; conflicting values mean unknown
        if content_length_values and not response.is_chunked and len(set(content_length_values)) == 1:
            try:
                declared = int(content_length_values[0])
            except ValueError:
                declared = None
            if declared is not None and declared >= 0:
                response.declared_length = declared

        return response

    def _parse_status_line(self, line: bytes, response: HTTPResponse) -> bool:
        """Parse the HTTP status line"""
        match = self.STATUS_LINE_PATTERN.match(line + b"\n")
        if not match:
            return False
        response.http_version = match.group(1).decode("utf-8", errors="ignore")
        response.status_code = int(match.group(2))
        response.status_message = match.group(3).decode("utf-8", errors="ignore").strip()
        return True

    def resolve_length(
        self,
        response: HTTPResponse,
        stream: BinaryIO,
        max_body_size: Optional[int] = None
    ) -> int:
        """
        Fill in ``response.content_length``.

        A declared non-negative Content-Length is used verbatim and the
        body is left unread. Otherwise the body is drained (chunked or
        until EOF) and its bytes are counted without being kept.

        Args:
            response: Response returned by parse_head
            stream: Buffered binary stream positioned at the body
            max_body_size: Stop draining after this many bytes

        Returns:
            The resolved content length
        """
        if not response.has_body:
            response.content_length = 0
        elif response.declared_length is not None:
            response.content_length = response.declared_length
        elif response.is_chunked:
            response.content_length = self._drain_chunked(response, stream, max_body_size)
        else:
            response.content_length = self._drain_until_eof(response, stream, max_body_size)
        return response.content_length

    def _drain(self, response: HTTPResponse, stream: BinaryIO, size: int, total: int,
               max_body_size: Optional[int]) -> Tuple[int, bool]:
        """Read ``size`` bytes in blocks; returns (new total, finished)"""
        while size > 0:
            want = min(size, READ_BLOCK_SIZE)
            if max_body_size is not None:
                want = min(want, max_body_size - total)
                if want <= 0:
                    response.truncated = True
                    return total, False
            block = stream.read(want)
            if not block:
                if self.strict:
                    raise ParseError(f"Body ended early after {total} bytes")
                return total, False
            total += len(block)
            size -= len(block)
        return total, True

    def _drain_chunked(self, response: HTTPResponse, stream: BinaryIO,
                       max_body_size: Optional[int]) -> int:
        """Count the payload bytes of a chunked body"""
        total = 0

        while True:
            size_line = stream.readline()
            if not size_line:
                if self.strict:
                    raise ParseError("Chunked body ended without terminator")
                return total

            # Chunk size may have extensions after semicolon
            size_str = size_line.split(b";")[0].strip()
            try:
                chunk_size = int(size_str, 16)
            except ValueError:
                if self.strict:
                    raise ParseError(f"Invalid chunk size: {size_str[:20]!r}")
                return total

            if chunk_size == 0:
                self._skip_trailers(stream)
                return total

            total, finished = self._drain(response, stream, chunk_size, total, max_body_size)
            if not finished:
                return total

            # Skip trailing CRLF
            stream.readline()

    def _drain_until_eof(self, response: HTTPResponse, stream: BinaryIO,
                         max_body_size: Optional[int]) -> int:
        """Count body bytes until the server closes the connection"""
        total = 0
        while True:
            want = READ_BLOCK_SIZE
            if max_body_size is not None:
                want = min(want, max_body_size - total)
                if want <= 0:
                    # Peek for one more byte to know whether the cap cut the body
                    if stream.read(1):
                        response.truncated = True
                    return total
            block = stream.read(want)
            if not block:
                return total
            total += len(block)

    @staticmethod
    def _skip_trailers(stream: BinaryIO):
        while True:
            line = stream.readline()
            if not line or line in (b"\r\n", b"\n"):
                return
