"""Transport selection and the two redirect-policy dispatch handles."""

import enum
import logging
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import httpx

from .config import HttpConfig
from .quic import Http3Transport
from .tls import TrustConfig, make_ssl_context

logger = logging.getLogger(__name__)


class ProtocolPreference(enum.Enum):
    """Which wire protocol the transport tries first."""

    AUTO = "auto"  # HTTP/1.1, HTTP/2 through ALPN
    ALTERNATE = "alternate"  # HTTP/3 over QUIC first, standard transport as fallback


class FallbackTransport(httpx.BaseTransport):
    """Try transports in order, remembering per host which one works.

    Until a transport has answered for a host, a connect, I/O or protocol
    failure moves the host to the next transport in the list and the request
    is re-sent there. Once a transport has answered for a host, its errors
    propagate unchanged, as do failures on the last transport.
    """

    FALLBACK_ERRORS = (httpx.ConnectError, httpx.ProtocolError, httpx.ReadError, httpx.WriteError)

    def __init__(self, transports: Sequence[httpx.BaseTransport]):
        if not transports:
            raise ValueError("FallbackTransport needs at least one transport")
        self._transports: List[httpx.BaseTransport] = list(transports)
        self._host_index: Dict[str, int] = {}
        self._confirmed: Dict[str, int] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _host_key(url: httpx.URL) -> str:
        return f"{url.scheme}://{url.host}:{url.port or ''}"

    def transport_index_for(self, url: httpx.URL) -> int:
        """Index of the transport the next request to ``url`` will use first."""
        with self._lock:
            return self._host_index.get(self._host_key(url), 0)

    def _demote(self, key: str, index: int) -> None:
        with self._lock:
            if self._host_index.get(key, 0) < index:
                self._host_index[key] = index

    def _confirm(self, key: str, index: int) -> None:
        with self._lock:
            self._confirmed[key] = index

    def _is_confirmed(self, key: str, index: int) -> bool:
        with self._lock:
            return self._confirmed.get(key) == index

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        key = self._host_key(request.url)
        index = self.transport_index_for(request.url)
        last = len(self._transports) - 1

        while True:
            try:
                response = self._transports[index].handle_request(request)
            except self.FALLBACK_ERRORS as e:
                if index >= last or self._is_confirmed(key, index):
                    raise
                logger.info("Transport %d failed for %s (%s), falling back", index, key, e)
                index += 1
                self._demote(key, index)
                continue
            self._confirm(key, index)
            return response

    def close(self) -> None:
        for transport in self._transports:
            transport.close()


@dataclass(frozen=True)
class ClientConfig:
    """Shared, immutable client state: trust, transport and dispatch handles.

    ``follow`` follows redirects up to ``max_redirects`` hops, ``no_follow``
    hands back the first redirect response as is. Both share one transport,
    so connection pooling is common to them. Safe for concurrent use.
    """

    trust: TrustConfig
    protocol: ProtocolPreference
    transport: httpx.BaseTransport
    follow: httpx.Client
    no_follow: httpx.Client

    def close(self) -> None:
        """Close both dispatch handles; each closes the shared transport."""
        self.follow.close()
        self.no_follow.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def _build_transport(trust: TrustConfig, protocol: ProtocolPreference) -> httpx.BaseTransport:
    context = make_ssl_context(trust)

    standard = httpx.HTTPTransport(verify=context, http1=True, http2=True)
    if protocol is ProtocolPreference.AUTO:
        return standard

    return FallbackTransport([Http3Transport(trust), standard])


def build_client(
    trust: TrustConfig,
    use_alternate_protocol: bool = False,
    http_config: Optional[HttpConfig] = None,
) -> ClientConfig:
    """Build the transport for ``trust`` and its two dispatch handles."""
    http_config = http_config or HttpConfig()
    protocol = ProtocolPreference.ALTERNATE if use_alternate_protocol else ProtocolPreference.AUTO
    transport = _build_transport(trust, protocol)

    timeout = httpx.Timeout(
        connect=http_config.timeout_connect_s,
        read=http_config.timeout_read_s,
        write=http_config.timeout_read_s,  # Use read timeout for write
        pool=http_config.timeout_connect_s  # Use connect timeout for pool
    )
    common = dict(
        transport=transport,
        timeout=timeout,
        headers=http_config.headers,
        max_redirects=http_config.max_redirects,
        trust_env=False,
    )

    logger.debug("Building client: protocol=%s skip_verification=%s",
                 protocol.value, trust.skip_verification)
    return ClientConfig(
        trust=trust,
        protocol=protocol,
        transport=transport,
        follow=httpx.Client(follow_redirects=True, **common),
        no_follow=httpx.Client(follow_redirects=False, **common),
    )
