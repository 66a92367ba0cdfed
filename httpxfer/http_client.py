"""HTTP client: verb operations over a shared :class:`ClientConfig`."""

import logging
import re
from pathlib import Path
from typing import Iterator, List, Optional, Tuple, Union

import httpx

from .body import (
    Cookies, FormValues, Headers, RawBody, RequestSpec,
    form_body, multipart_body, to_pairs
)
from .config import Config
from .downloader import Downloader, ProgressCallback
from .errors import InvalidURLError, TransportFailure
from .tls import build_trust
from .transport import ClientConfig, build_client
from .utils import validate_url

logger = logging.getLogger(__name__)


class ResponseHandle:
    """Status, headers and a streaming body of one response.

    The body holds a pooled connection until it is read to the end or the
    handle is closed; use it as a context manager.
    """
    
    def __init__(self, response: httpx.Response):
        self._response = response
    
    @property
    def status_code(self) -> int:
        return self._response.status_code
    
    @property
    def headers(self) -> httpx.Headers:
        return self._response.headers
    
    @property
    def url(self) -> str:
        return str(self._response.url)
    
    @property
    def is_success(self) -> bool:
        return self._response.is_success
    
    @property
    def http_version(self) -> str:
        return self._response.http_version
    
    def read(self) -> bytes:
        """Read the whole body and release the connection."""
        try:
            return self._response.read()
        except httpx.RequestError as e:
            raise TransportFailure(f"reading body of {self.url} failed: {e}", url=self.url) from e
    
    def text(self) -> str:
        self.read()
        return self._response.text
    
    def iter_bytes(self, chunk_size: Optional[int] = None) -> Iterator[bytes]:
        try:
            yield from self._response.iter_bytes(chunk_size)
        except httpx.RequestError as e:
            raise TransportFailure(f"reading body of {self.url} failed: {e}", url=self.url) from e
    
    def close(self) -> None:
        self._response.close()
    
    def __enter__(self):
        return self
    
    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
    
    def __repr__(self) -> str:
        return f"<ResponseHandle [{self.status_code}] {self.url}>"


_TOKEN_RE = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")


def _valid_cookie_char(char: str) -> bool:
    return 0x20 <= ord(char) < 0x7F and char not in '";\\'


def _sanitize_cookie_value(name: str, value: str) -> str:
    """Drop characters a cookie value cannot carry; quote on space or comma."""
    clean = "".join(char for char in value if _valid_cookie_char(char))
    if clean != value:
        logger.warning("Invalid characters in value of cookie %r dropped", name)
    if " " in clean or "," in clean:
        return f'"{clean}"'
    return clean


def _cookie_header(cookies: Optional[Cookies]) -> Optional[str]:
    pairs = []
    for name, value in to_pairs(cookies):
        if not _TOKEN_RE.match(name or ""):
            logger.warning("Invalid cookie name %r dropped", name)
            continue
        pairs.append(f"{name}={_sanitize_cookie_value(name, value)}")
    if not pairs:
        return None
    return "; ".join(pairs)


def _header_pairs(
    headers: Optional[Headers] = None, cookies: Optional[Cookies] = None
) -> Tuple[Tuple[str, str], ...]:
    pairs = to_pairs(headers)
    cookie = _cookie_header(cookies)
    if cookie:
        pairs.append(("Cookie", cookie))
    return tuple(pairs)


class HttpClient:
    """HTTP client supporting form, raw and chunked multipart uploads.

    Every verb operation validates the URL first, then sends one request
    and returns a :class:`ResponseHandle` whatever the status code. Network,
    TLS and timeout errors raise :class:`TransportFailure`; nothing is
    retried.
    """
    
    def __init__(self, client_config: ClientConfig, config: Optional[Config] = None):
        self.client_config = client_config
        self.config = config or Config()
        self.downloader = Downloader(self, chunk_size=self.config.downloader.chunk_size)
    
    def send(self, spec: RequestSpec, follow_redirects: bool = True) -> ResponseHandle:
        """Send ``spec`` on the following or the non-following dispatch handle."""
        validate_url(spec.url)
        
        content_type, content = spec.body.encode()
        headers: List[Tuple[str, str]] = list(spec.headers)
        if content_type and not any(name.lower() == 'content-type' for name, _ in headers):
            headers.append(("Content-Type", content_type))
        
        dispatcher = self.client_config.follow if follow_redirects else self.client_config.no_follow
        try:
            request = dispatcher.build_request(spec.method, spec.url, headers=headers, content=content)
            response = dispatcher.send(request, stream=True)
        except httpx.InvalidURL as e:
            raise InvalidURLError(spec.url, str(e)) from e
        except httpx.RequestError as e:
            logger.debug("%s %s failed: %s", spec.method, spec.url, e)
            raise TransportFailure(f"{spec.method} {spec.url} failed: {e}", url=spec.url) from e
        
        logger.debug("%s %s -> %d", spec.method, spec.url, response.status_code)
        return ResponseHandle(response)
    
    def get(
        self, url: str, headers: Optional[Headers] = None, cookies: Optional[Cookies] = None
    ) -> ResponseHandle:
        """GET ``url``; headers and cookies are both transmitted."""
        return self.send(RequestSpec("GET", url, _header_pairs(headers, cookies)))
    
    def post(
        self, url: str, data: Optional[FormValues] = None, cookies: Optional[Cookies] = None
    ) -> ResponseHandle:
        """POST ``data`` as an urlencoded form."""
        return self.send(RequestSpec("POST", url, _header_pairs(cookies=cookies), form_body(data)))
    
    def post_file_chunk(
        self,
        url: str,
        field_name: str,
        file_name: str,
        data: Optional[FormValues] = None,
        chunk: Optional[bytes] = None,
        cookies: Optional[Cookies] = None,
    ) -> ResponseHandle:
        """POST a multipart form plus ``chunk`` as file ``file_name`` under ``field_name``.
        
        An empty ``chunk`` sends the form fields alone, still as multipart.
        """
        body = multipart_body(data, field_name, file_name, chunk)
        return self.send(RequestSpec("POST", url, _header_pairs(cookies=cookies), body))
    
    def post_without_redirect(self, url: str, data: Optional[FormValues] = None) -> ResponseHandle:
        """POST a form and hand back a redirect response instead of following it."""
        return self.send(RequestSpec("POST", url, (), form_body(data)), follow_redirects=False)
    
    def _send_raw(
        self, method: str, url: str, data: bytes, content_type: Optional[str]
    ) -> ResponseHandle:
        headers = (("Content-Type", content_type),) if content_type else ()
        return self.send(RequestSpec(method, url, headers, RawBody(data or b"")))
    
    def post_data(self, url: str, data: bytes, content_type: Optional[str] = None) -> ResponseHandle:
        """POST ``data`` verbatim."""
        return self._send_raw("POST", url, data, content_type)
    
    def put(self, url: str, data: bytes, content_type: Optional[str] = None) -> ResponseHandle:
        """PUT ``data`` verbatim."""
        return self._send_raw("PUT", url, data, content_type)
    
    def delete(self, url: str, data: bytes = b"", content_type: Optional[str] = None) -> ResponseHandle:
        """DELETE with ``data`` as the body."""
        return self._send_raw("DELETE", url, data, content_type)
    
    def download(
        self,
        path: Union[str, Path],
        url: str,
        force: bool = False,
        progress: Optional[ProgressCallback] = None,
    ) -> bool:
        """Download ``url`` to ``path`` unless it exists; see :class:`Downloader`."""
        return self.downloader.download(path, url, force=force, progress=progress)
    
    def close(self) -> None:
        """Close the HTTP client."""
        self.client_config.close()
    
    def __enter__(self):
        return self
    
    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def new_http_client(
    insecure_skip_verify: bool = False,
    cert_file: str = "",
    enable_http3: bool = False,
    config: Optional[Config] = None,
) -> HttpClient:
    """Build trust, transport and client in one step.
    
    Raises :class:`~httpxfer.errors.CertFileNotFoundError` or
    :class:`~httpxfer.errors.CertificateParseError` when verification is on
    and the bundle is missing or holds no certificate.
    """
    config = config or Config()
    trust = build_trust(insecure_skip_verify, cert_file)
    client_config = build_client(trust, enable_http3, config.http)
    return HttpClient(client_config, config)


def client_from_config(config: Config) -> HttpClient:
    """Build an :class:`HttpClient` from the ``http`` section of ``config``."""
    return new_http_client(
        config.http.insecure_skip_verify,
        config.http.cert_file,
        config.http.enable_http3,
        config,
    )
