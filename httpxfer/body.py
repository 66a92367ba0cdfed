"""Request descriptions and the request-body variants."""

import uuid
from dataclasses import dataclass, field
from typing import Iterable, List, Mapping, Optional, Sequence, Tuple, Union
from urllib.parse import urlencode

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"
CRLF = "\r\n"

# A form value set: mapping of key to one value or many, or ordered pairs
FormValues = Union[Mapping[str, Union[str, Sequence[str]]], Iterable[Tuple[str, str]]]
Cookies = Union[Mapping[str, str], Iterable[Tuple[str, str]]]
Headers = Union[Mapping[str, str], Iterable[Tuple[str, str]]]


def _quote(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', "\\\"")


def _text(value: Union[str, bytes]) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return value


def to_pairs(values: Optional[FormValues]) -> List[Tuple[str, str]]:
    """Flatten a mapping or pair sequence into ordered ``(key, value)`` pairs.

    Multi-valued mapping entries expand to one pair per value. ``bytes``
    values are decoded as UTF-8.
    """
    if values is None:
        return []
    if isinstance(values, Mapping):
        pairs = []
        for key, value in values.items():
            if isinstance(value, (str, bytes)):
                pairs.append((key, _text(value)))
            else:
                pairs.extend((key, _text(item)) for item in value)
        return pairs
    return [(key, _text(value)) for key, value in values]


@dataclass(frozen=True)
class NoBody:
    """Request without a body."""

    def encode(self) -> Tuple[Optional[str], Optional[bytes]]:
        return None, None


@dataclass(frozen=True)
class FormBody:
    """``application/x-www-form-urlencoded`` body."""

    values: Tuple[Tuple[str, str], ...] = ()

    def encode(self) -> Tuple[Optional[str], Optional[bytes]]:
        return FORM_CONTENT_TYPE, urlencode(self.values).encode("ascii")


@dataclass(frozen=True)
class RawBody:
    """Bytes sent verbatim; no content type is inferred."""

    data: bytes = b""

    def encode(self) -> Tuple[Optional[str], Optional[bytes]]:
        return None, bytes(self.data)


@dataclass(frozen=True)
class FilePart:
    field_name: str
    file_name: str
    content: bytes


@dataclass(frozen=True)
class MultipartBody:
    """``multipart/form-data`` body: form fields plus at most one file part."""

    fields: Tuple[Tuple[str, str], ...] = ()
    file: Optional[FilePart] = None

    def encode(self, boundary: Optional[str] = None) -> Tuple[Optional[str], Optional[bytes]]:
        """Frame the fields, then the file part, as ``multipart/form-data``."""
        boundary = boundary or uuid.uuid4().hex
        parts: List[bytes] = []

        for name, value in self.fields:
            parts.append(f"--{boundary}{CRLF}".encode("utf-8"))
            parts.append(
                f'Content-Disposition: form-data; name="{_quote(name)}"{CRLF}{CRLF}'.encode("utf-8")
            )
            parts.append(value if isinstance(value, bytes) else str(value).encode("utf-8"))
            parts.append(CRLF.encode("utf-8"))

        if self.file is not None:
            parts.append(f"--{boundary}{CRLF}".encode("utf-8"))
            parts.append(
                f'Content-Disposition: form-data; name="{_quote(self.file.field_name)}"; '
                f'filename="{_quote(self.file.file_name)}"{CRLF}'.encode("utf-8")
            )
            parts.append(f"Content-Type: application/octet-stream{CRLF}{CRLF}".encode("utf-8"))
            parts.append(self.file.content)
            parts.append(CRLF.encode("utf-8"))

        parts.append(f"--{boundary}--{CRLF}".encode("utf-8"))
        return f"multipart/form-data; boundary={boundary}", b"".join(parts)


RequestBody = Union[NoBody, FormBody, RawBody, MultipartBody]


@dataclass(frozen=True)
class RequestSpec:
    """One request: method, URL, ordered headers (duplicates kept) and a body."""

    method: str
    url: str
    headers: Tuple[Tuple[str, str], ...] = ()
    body: RequestBody = field(default_factory=NoBody)


def form_body(values: Optional[FormValues]) -> FormBody:
    return FormBody(values=tuple(to_pairs(values)))


def multipart_body(
    values: Optional[FormValues],
    field_name: str = "",
    file_name: str = "",
    chunk: Optional[bytes] = None,
) -> MultipartBody:
    """Multipart body with ``values``; an empty ``chunk`` adds no file part."""
    file_part = None
    if chunk:
        file_part = FilePart(field_name=field_name, file_name=file_name, content=bytes(chunk))
    return MultipartBody(fields=tuple(to_pairs(values)), file=file_part)
