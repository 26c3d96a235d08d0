"""Content hashing for cache validation."""
import hashlib
import threading
from typing import BinaryIO, Dict, Optional

from ..logging_utils import get_logger

logger = get_logger(__name__)

READ_CHUNK_SIZE = 1 << 16


def format_etag(digest: bytes) -> str:
    """Quoted lower-case hex form of a digest, as sent in an ETag header."""
    return f'"{digest.hex()}"'


class HashingWriter:
    """A write-only stream that hashes everything written to the wrapped file.

    The wrapper has no fileno(); encoders that would write
    straight to a file descriptor fall back to write() and every byte is
    hashed.
    """

    def __init__(self, fp: BinaryIO):
        self._fp = fp
        self._hash = hashlib.sha256()
        self.bytes_written = 0

    def write(self, data) -> int:
        n = self._fp.write(data)
        self._hash.update(data)
        self.bytes_written += len(data)
        return n

    def flush(self) -> None:
        self._fp.flush()

    def digest(self) -> bytes:
        return self._hash.digest()

    def etag(self) -> str:
        return format_etag(self._hash.digest())


def etag_for_file(path: str) -> str:
    """Compute the ETag of a file's current contents.

    Raises:
        OSError: If the file cannot be read
    """
    h = hashlib.sha256()
    with open(path, 'rb') as f:
        for chunk in iter(lambda: f.read(READ_CHUNK_SIZE), b''):
            h.update(chunk)
    return format_etag(h.digest())


class EtagIndex:
    """In-memory map from cache file path to ETag.

    Any thread may read. Entries are written after a successful generation
    or when an existing file is rehashed, and dropped when the file is
    removed.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._etags: Dict[str, str] = {}

    def get(self, path: str) -> Optional[str]:
        with self._lock:
            return self._etags.get(path)

    def set(self, path: str, etag: str) -> None:
        with self._lock:
            self._etags[path] = etag

    def discard(self, path: str) -> None:
        with self._lock:
            self._etags.pop(path, None)

    def clear(self) -> None:
        with self._lock:
            self._etags.clear()

    def __contains__(self, path):
        with self._lock:
            return path in self._etags

    def __len__(self):
        with self._lock:
            return len(self._etags)
