"""TLS trust configuration."""

import logging
import re
import ssl
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from .errors import CertFileNotFoundError, CertificateParseError

logger = logging.getLogger(__name__)

_PEM_CERT_RE = re.compile(
    rb"-----BEGIN CERTIFICATE-----.+?-----END CERTIFICATE-----", re.DOTALL
)


@dataclass(frozen=True)
class TrustConfig:
    """Rules deciding which server certificates a client accepts.

    Immutable once built; ``ssl_context`` is shared by every transport that
    uses this configuration.
    """

    skip_verification: bool
    trusted_roots: Tuple[bytes, ...] = ()
    cert_file: Optional[str] = None
    ssl_context: Optional[ssl.SSLContext] = field(default=None, repr=False, compare=False)

    def roots_pem(self) -> str:
        """The trusted roots as one PEM bundle."""
        return "".join(ssl.DER_cert_to_PEM_cert(der) for der in self.trusted_roots)


def _insecure_context() -> ssl.SSLContext:
    context = ssl.create_default_context()
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    return context


def _read_bundle(cert_file: str) -> bytes:
    if not cert_file:
        raise CertFileNotFoundError("certificate file path is empty")

    path = Path(cert_file)
    try:
        return path.read_bytes()
    except FileNotFoundError as e:
        raise CertFileNotFoundError(f"certificate file not found: {cert_file}") from e
    except OSError as e:
        raise CertFileNotFoundError(f"certificate file unreadable: {cert_file}: {e}") from e


def _load_roots(context: ssl.SSLContext, pem_data: bytes) -> List[bytes]:
    """Add every usable CERTIFICATE block of ``pem_data`` to ``context``.

    Blocks that do not decode or parse are skipped; text outside the blocks
    is ignored.
    """
    roots = []
    for block in _PEM_CERT_RE.findall(pem_data):
        try:
            der = ssl.PEM_cert_to_DER_cert(block.decode("ascii"))
            context.load_verify_locations(cadata=der)
        except (UnicodeDecodeError, ValueError, ssl.SSLError) as e:
            logger.debug("Skipping unusable certificate block: %s", e)
            continue
        roots.append(der)
    return roots


def build_trust(skip_verification: bool, cert_file: str = "") -> TrustConfig:
    """Build a :class:`TrustConfig`.

    With ``skip_verification`` any server certificate is accepted and
    ``cert_file`` is ignored. Otherwise ``cert_file`` must be a readable PEM
    bundle holding at least one usable certificate; only those certificates
    are trusted.
    """
    if skip_verification:
        logger.warning("TLS certificate verification is disabled")
        return TrustConfig(skip_verification=True, ssl_context=_insecure_context())

    pem_data = _read_bundle(cert_file)

    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    roots = _load_roots(context, pem_data)
    if not roots:
        raise CertificateParseError(f"append certs from pem failed: {cert_file}")

    logger.debug("Loaded %d trusted certificate(s) from %s", len(roots), cert_file)
    return TrustConfig(
        skip_verification=False,
        trusted_roots=tuple(roots),
        cert_file=cert_file,
        ssl_context=context,
    )


def make_ssl_context(trust: TrustConfig) -> ssl.SSLContext:
    """Return the TLS context for ``trust``, building it from its roots if absent."""
    if trust.ssl_context is not None:
        return trust.ssl_context

    if trust.skip_verification:
        return _insecure_context()

    if not trust.trusted_roots:
        raise CertificateParseError("trust configuration has no trusted certificates")

    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    try:
        context.load_verify_locations(cadata=b"".join(trust.trusted_roots))
    except ssl.SSLError as e:
        raise CertificateParseError(f"invalid trusted certificate: {e}") from e
    return context
