"""Idempotent file download over an :class:`~httpxfer.http_client.HttpClient`."""

import logging
from pathlib import Path
from typing import Callable, Iterable, Iterator, Optional, Union

from .errors import DownloadStatusError, EmptyURLError, LocalWriteFailure
from .utils import atomic_write_stream, ensure_directory, format_bytes

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, Optional[int]], None]

DEFAULT_CHUNK_SIZE = 64 * 1024


class Downloader:
    """Fetch a URL into a local file unless the file already exists.

    Existence alone decides the skip: content, size and timestamps are not
    compared. The body is streamed into a temp file that replaces the
    target only once complete, so a failed download never leaves a
    truncated file behind and never clobbers an existing one.

    There is no locking between callers: two concurrent downloads to the
    same path race and the last one to finish wins.
    """
    
    def __init__(self, client, chunk_size: int = DEFAULT_CHUNK_SIZE):
        self.client = client
        self.chunk_size = chunk_size
    
    @staticmethod
    def _track(
        chunks: Iterable[bytes], total: Optional[int], progress: Optional[ProgressCallback]
    ) -> Iterator[bytes]:
        written = 0
        for chunk in chunks:
            written += len(chunk)
            if progress:
                progress(written, total)
            yield chunk
    
    def download(
        self,
        path: Union[str, Path],
        url: str,
        force: bool = False,
        progress: Optional[ProgressCallback] = None,
    ) -> bool:
        """Download ``url`` to ``path``.
        
        Returns ``True`` when the file was fetched and ``False`` when an
        existing file was kept. Raises :class:`EmptyURLError` for an empty
        URL before touching the filesystem.
        """
        if not url:
            raise EmptyURLError()
        
        dest_path = Path(path)
        if not force and dest_path.exists():
            logger.debug("Skipping download of %s: %s already exists", url, dest_path)
            return False
        
        with self.client.get(url) as response:
            if not response.is_success:
                raise DownloadStatusError(response.status_code, url)
            
            total = None
            content_length = response.headers.get('content-length')
            if content_length and content_length.isdigit():
                total = int(content_length)
            
            chunks = self._track(response.iter_bytes(self.chunk_size), total, progress)
            try:
                ensure_directory(dest_path.parent)
                written = atomic_write_stream(dest_path, chunks)
            except OSError as e:
                raise LocalWriteFailure(f"failed to write {dest_path}: {e}", path=str(dest_path)) from e
        
        logger.info("Downloaded %s -> %s (%s)", url, dest_path, format_bytes(written))
        return True
