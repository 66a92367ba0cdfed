"""httpxfer - HTTP transfer client with chunked uploads and idempotent downloads."""

from .__version__ import __version__
from .body import (
    FilePart, FormBody, MultipartBody, NoBody, RawBody, RequestBody, RequestSpec
)
from .config import Config, HttpConfig, load_config, save_config
from .downloader import Downloader
from .errors import (
    CertFileNotFoundError, CertificateParseError, DownloadStatusError, EmptyURLError,
    InvalidURLError, LocalWriteFailure, TransferError, TransportFailure
)
from .http_client import HttpClient, ResponseHandle, client_from_config, new_http_client
from .quic import Http3Transport
from .tls import TrustConfig, build_trust
from .transport import ClientConfig, FallbackTransport, ProtocolPreference, build_client

__all__ = [
    '__version__',
    'CertFileNotFoundError',
    'CertificateParseError',
    'ClientConfig',
    'Config',
    'DownloadStatusError',
    'Downloader',
    'EmptyURLError',
    'FallbackTransport',
    'FilePart',
    'FormBody',
    'HttpClient',
    'HttpConfig',
    'Http3Transport',
    'InvalidURLError',
    'LocalWriteFailure',
    'MultipartBody',
    'NoBody',
    'ProtocolPreference',
    'RawBody',
    'RequestBody',
    'RequestSpec',
    'ResponseHandle',
    'TransferError',
    'TransportFailure',
    'TrustConfig',
    'build_client',
    'build_trust',
    'client_from_config',
    'load_config',
    'new_http_client',
    'save_config',
]
