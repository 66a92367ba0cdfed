"""Exception hierarchy for httpxfer."""

from typing import Optional


class TransferError(Exception):
    """Base class for all httpxfer errors."""


class InvalidURLError(TransferError, ValueError):
    """URL is malformed or contains a control character."""

    def __init__(self, url: str, reason: str = "invalid control character in URL"):
        self.url = url
        self.reason = reason
        super().__init__(f"{reason}: {url!r}")


class CertFileNotFoundError(TransferError, FileNotFoundError):
    """Certificate bundle path is empty, missing or unreadable."""


class CertificateParseError(TransferError):
    """Certificate bundle contains no usable PEM certificate."""


class EmptyURLError(TransferError, ValueError):
    """Download requested with an empty URL."""

    def __init__(self, message: str = "url is empty"):
        super().__init__(message)


class TransportFailure(TransferError):
    """Network, TLS, timeout or protocol failure reported by the transport."""

    def __init__(self, message: str, url: Optional[str] = None):
        self.url = url
        super().__init__(message)


class LocalWriteFailure(TransferError):
    """Writing a downloaded body to disk failed."""

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        super().__init__(message)


class DownloadStatusError(TransferError):
    """Download answered with a non-success HTTP status."""

    def __init__(self, status_code: int, url: str):
        self.status_code = status_code
        self.url = url
        super().__init__(f"HTTP {status_code} while downloading {url}")
