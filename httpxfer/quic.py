"""HTTP/3 over QUIC as an httpx transport, backed by niquests."""

import logging
from typing import Dict, Iterator, List, Optional, Tuple, Union

import httpx
import niquests

from .tls import TrustConfig

logger = logging.getLogger(__name__)

# Connection-specific fields have no meaning in HTTP/3 framing
_HOP_BY_HOP = {
    "connection", "host", "keep-alive", "proxy-connection", "transfer-encoding", "upgrade",
}
# The body handed back is already decoded
_DECODED_AWAY = {"content-encoding", "content-length"}

CHUNK_SIZE = 64 * 1024


def _verify_for(trust: TrustConfig) -> Union[bool, str]:
    """``verify`` argument for niquests: off, or the trusted roots as in-memory PEM."""
    if trust.skip_verification:
        return False
    return trust.roots_pem() or True


def _request_headers(request: httpx.Request) -> Dict[str, str]:
    headers: Dict[str, str] = {}
    for name, value in request.headers.multi_items():
        key = name.lower()
        if key in _HOP_BY_HOP:
            continue
        separator = "; " if key == "cookie" else ", "
        headers[name] = f"{headers[name]}{separator}{value}" if name in headers else value
    return headers


def _timeout(request: httpx.Request) -> Tuple[Optional[float], Optional[float]]:
    timeout = request.extensions.get("timeout", {})
    return timeout.get("connect"), timeout.get("read")


class _H3ByteStream(httpx.SyncByteStream):
    def __init__(self, response: niquests.Response, request: httpx.Request):
        self._response = response
        self._request = request

    def __iter__(self) -> Iterator[bytes]:
        try:
            yield from self._response.iter_content(CHUNK_SIZE)
        except niquests.exceptions.Timeout as e:
            raise httpx.ReadTimeout(str(e), request=self._request) from e
        except niquests.exceptions.RequestException as e:
            raise httpx.ReadError(str(e), request=self._request) from e

    def close(self) -> None:
        self._response.close()


class Http3Transport(httpx.BaseTransport):
    """Send requests over HTTP/3 only.

    Failures to reach a host over QUIC, including plain ``http://`` URLs
    which HTTP/3 cannot carry, raise :class:`httpx.ConnectError`, so a
    :class:`~httpxfer.transport.FallbackTransport` can move the host to a
    TCP transport.
    """

    def __init__(self, trust: TrustConfig):
        self._verify = _verify_for(trust)
        self._session = niquests.Session(disable_http1=True, disable_http2=True)

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        if request.url.scheme != "https":
            raise httpx.ConnectError(
                f"HTTP/3 needs TLS, not {request.url.scheme}://", request=request
            )

        try:
            response = self._session.request(
                request.method,
                str(request.url),
                headers=_request_headers(request),
                data=request.read() or None,
                verify=self._verify,
                timeout=_timeout(request),
                allow_redirects=False,
                stream=True,
            )
        except niquests.exceptions.ConnectTimeout as e:
            raise httpx.ConnectError(f"QUIC connect timed out: {e}", request=request) from e
        except niquests.exceptions.ReadTimeout as e:
            raise httpx.ReadTimeout(str(e), request=request) from e
        except (niquests.exceptions.RequestException, OSError, ValueError) as e:
            raise httpx.ConnectError(f"HTTP/3 request failed: {e}", request=request) from e

        headers: List[Tuple[str, str]] = [
            (name, value)
            for name, value in response.raw.headers.items()
            if name.lower() not in _DECODED_AWAY
        ]
        logger.debug("HTTP/3 %s %s -> %d", request.method, request.url, response.status_code)
        return httpx.Response(
            response.status_code,
            headers=headers,
            stream=_H3ByteStream(response, request),
            extensions={"http_version": b"HTTP/3"},
        )

    def close(self) -> None:
        self._session.close()
