"""
Local HTTP servers used as probe targets and proxies
"""

import socket
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from urllib.parse import urlsplit, parse_qs

import pytest


class TargetHandler(BaseHTTPRequestHandler):
    """Routes by path so one server covers every response shape"""

    def log_message(self, format, *args):
        pass

    def _record(self):
        self.server.requests.append({
            "path": self.path,
            "headers": list(self.headers.items()),
        })

    def _send(self, status, body=b"", headers=None):
        self.send_response(status)
        for name, value in (headers or {}).items():
            self.send_header(name, value)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def do_GET(self):
        self._record()
        parts = urlsplit(self.path)
        query = parse_qs(parts.query)

        if parts.path.startswith("/status/"):
            self._send(int(parts.path.rsplit("/", 1)[1]), b"status")

        elif parts.path == "/by-header":
            # 200 for X-Test: 1, 404 for anything else
            if self.headers.get("X-Test") == "1":
                self._send(200, b"found")
            else:
                self._send(404, b"not found")

        elif parts.path == "/nolength":
            size = int(query.get("size", ["42"])[0])
            self.send_response(200)
            self.send_header("Content-Type", "text/plain")
            self.end_headers()
            self.wfile.write(b"x" * size)

        elif parts.path == "/chunked":
            self.send_response(200)
            self.send_header("Transfer-Encoding", "chunked")
            self.end_headers()
            self.wfile.write(b"a\r\n0123456789\r\n5\r\nabcde\r\n0\r\n\r\n")

        elif parts.path == "/declared":
            # Declared length larger than what is actually sent
            self.send_response(200)
            self.send_header("Content-Length", "1000")
            self.end_headers()
            self.wfile.write(b"short")

        elif parts.path == "/throttled":
            with self.server.lock:
                self.server.hits += 1
                hits = self.server.hits
            if hits <= 2:
                self._send(503, b"busy", {"Retry-After": "0"})
            else:
                self._send(200, b"ok")

        else:
            self._send(200, b"hello world")


class ProxyHandler(BaseHTTPRequestHandler):
    """Answers absolute-form requests itself instead of forwarding them"""

    def log_message(self, format, *args):
        pass

    def do_GET(self):
        self.server.requests.append({
            "path": self.path,
            "headers": list(self.headers.items()),
        })
        body = b"via proxy"
        self.send_response(200)
        self.send_header("X-Proxied", "1")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)


def _start(handler):
    server = ThreadingHTTPServer(("127.0.0.1", 0), handler)
    server.daemon_threads = True
    server.requests = []
    server.hits = 0
    server.lock = threading.Lock()
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    return server


@pytest.fixture
def http_server():
    server = _start(TargetHandler)
    server.base_url = f"http://127.0.0.1:{server.server_address[1]}"
    yield server
    server.shutdown()
    server.server_close()


@pytest.fixture
def proxy_server():
    server = _start(ProxyHandler)
    server.address = f"127.0.0.1:{server.server_address[1]}"
    yield server
    server.shutdown()
    server.server_close()


@pytest.fixture
def closed_port():
    """A local port with nothing listening on it"""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return port
