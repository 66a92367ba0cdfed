"""Shared fixtures: a local HTTP server mimicking the endpoints under test."""

import ssl
import threading
import time
from collections import Counter
from contextlib import contextmanager
from email.parser import BytesParser
from email.policy import HTTP
from http.cookies import SimpleCookie
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Dict, List, Optional, Tuple
from urllib.parse import parse_qs, urlparse

import pytest

from httpxfer.http_client import new_http_client

TESTDATA = Path(__file__).parent / "testdata"
KEY = "key"
FILE_FIELD = "up_file"
FILE_NAME = "hello.txt"
DOWNLOAD_CONTENT = b"hello world"


def parse_multipart(content_type: str, body: bytes) -> Tuple[Dict[str, str], Dict[str, Tuple[str, bytes]]]:
    """Split a multipart/form-data body into form fields and files."""
    message = BytesParser(policy=HTTP).parsebytes(
        f"Content-Type: {content_type}\r\n\r\n".encode("utf-8") + body
    )
    fields: Dict[str, str] = {}
    files: Dict[str, Tuple[str, bytes]] = {}
    for part in message.iter_parts():
        name = part.get_param("name", header="content-disposition")
        filename = part.get_filename()
        payload = part.get_payload(decode=True) or b""
        if filename is not None:
            files[name] = (filename, payload)
        else:
            fields[name] = payload.decode("utf-8")
    return fields, files


class _Handler(BaseHTTPRequestHandler):
    server_version = "httpxfer-test/1.0"

    def log_message(self, format, *args):  # noqa: A002
        pass

    # Request helpers

    def _body(self) -> bytes:
        length = int(self.headers.get("Content-Length") or 0)
        return self.rfile.read(length) if length else b""

    def _cookie(self, name: str) -> Optional[str]:
        cookie = SimpleCookie()
        for header in self.headers.get_all("Cookie") or []:
            cookie.load(header)
        morsel = cookie.get(name)
        return morsel.value if morsel else None

    def _form(self, body: bytes) -> Tuple[Dict[str, str], Dict[str, Tuple[str, bytes]]]:
        content_type = self.headers.get("Content-Type", "")
        query = {k: v[0] for k, v in parse_qs(urlparse(self.path).query).items()}
        if content_type.startswith("application/x-www-form-urlencoded"):
            form = {k: v[0] for k, v in parse_qs(body.decode("utf-8")).items()}
            return {**query, **form}, {}
        if content_type.startswith("multipart/form-data"):
            fields, files = parse_multipart(content_type, body)
            return {**query, **fields}, files
        return query, {}

    def _reply(self, status: int, body: bytes = b"", headers: Optional[Dict[str, str]] = None) -> None:
        self.send_response(status)
        for name, value in (headers or {}).items():
            self.send_header(name, value)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        if self.command != "HEAD":
            self.wfile.write(body)

    # Routing

    def _dispatch(self) -> None:
        path = urlparse(self.path).path
        state: ServerState = self.server.state
        state.record(self.command, path)
        body = self._body()

        if path == "/get_hello":
            return self._reply(200, b"hello")
        if path == "/get_world":
            return self._reply(200, b"world")
        if path == "/get_with_cookie":
            value = self.headers.get(KEY) or self._cookie(KEY) or ""
            return self._reply(200, value.encode("utf-8"))
        if path == "/post_data":
            form, _ = self._form(body)
            return self._reply(200, form.get(KEY, "").encode("utf-8"))
        if path == "/post_data_with_cookie":
            form, _ = self._form(body)
            value = self._cookie(KEY) or form.get(KEY, "")
            return self._reply(200, value.encode("utf-8"))
        if path == "/post_file_chunk_with_cookie":
            form, files = self._form(body)
            value = self._cookie(KEY) or form.get(KEY, "")
            upload = files.get(FILE_FIELD)
            if upload and upload[0] == FILE_NAME and upload[1]:
                value = upload[1].decode("utf-8")
            return self._reply(200, value.encode("utf-8"))
        if path == "/echo":
            headers = {"X-Method": self.command}
            if self.headers.get("Content-Type"):
                headers["X-Content-Type"] = self.headers["Content-Type"]
            return self._reply(200, body, headers)
        if path == "/headers":
            lines = [f"{name}: {value}" for name, value in self.headers.items()]
            return self._reply(200, "\n".join(lines).encode("utf-8"))
        if path == "/post_data_redirect_301":
            return self._reply(301, headers={"Location": "/post_data"})
        if path == "/post_data_redirect_302":
            return self._reply(302, headers={"Location": "/post_data"})
        if path == "/redirect_get":
            return self._reply(302, headers={"Location": "/get_hello"})
        if path == "/redirect_loop":
            return self._reply(302, headers={"Location": "/redirect_loop"})
        if path == "/slow":
            time.sleep(1.0)
            return self._reply(200, b"slow")
        if path.startswith("/status/"):
            return self._reply(int(path.rsplit("/", 1)[1]), b"status")
        if path in state.files:
            return self._reply(200, state.files[path])
        return self._reply(404, b"not found")

    do_GET = _dispatch
    do_POST = _dispatch
    do_PUT = _dispatch
    do_DELETE = _dispatch


class ServerState:
    """Records requests seen by the test server and serves registered files."""

    def __init__(self):
        self.hits: Counter = Counter()
        self.requests: List[Tuple[str, str]] = []
        self.files: Dict[str, bytes] = {}
        self._lock = threading.Lock()

    def record(self, method: str, path: str) -> None:
        with self._lock:
            self.hits[path] += 1
            self.requests.append((method, path))


class _Server(ThreadingHTTPServer):
    daemon_threads = True


class _TLSServer(_Server):
    """Serves over TLS; the handshake runs on the handler thread."""

    def __init__(self, address, handler, context: ssl.SSLContext):
        super().__init__(address, handler)
        self.context = context

    def get_request(self):
        sock, address = super().get_request()
        return self.context.wrap_socket(sock, server_side=True, do_handshake_on_connect=False), address

    def handle_error(self, request, client_address):
        # Rejected handshakes are expected in the trust tests
        pass


@contextmanager
def _serving(server: _Server, scheme: str):
    server.state = ServerState()
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    host, port = server.server_address[:2]
    try:
        yield f"{scheme}://{host}:{port}", server.state
    finally:
        server.shutdown()
        server.server_close()
        thread.join(timeout=5)


@pytest.fixture
def http_server():
    """Yield ``(base_url, state)`` for a server bound to 127.0.0.1."""
    with _serving(_Server(("127.0.0.1", 0), _Handler), "http") as served:
        yield served


@pytest.fixture
def https_server():
    """Like ``http_server``, over TLS with the ``cert.pem`` certificate."""
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.load_cert_chain(TESTDATA / "cert.pem", TESTDATA / "key.pem")
    with _serving(_TLSServer(("127.0.0.1", 0), _Handler, context), "https") as served:
        yield served


@pytest.fixture
def client():
    """Default client: verification off, standard transport."""
    http_client = new_http_client(True, "", False)
    try:
        yield http_client
    finally:
        http_client.close()


@pytest.fixture
def cert_file() -> str:
    return str(TESTDATA / "cert.pem")


@pytest.fixture
def key_file() -> str:
    return str(TESTDATA / "key.pem")


@pytest.fixture
def other_ca_file() -> str:
    """A CA that did not sign ``cert.pem``."""
    return str(TESTDATA / "other_ca.pem")
