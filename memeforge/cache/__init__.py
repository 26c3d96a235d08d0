"""On-disk cache of rendered macros, with deduplicated generation and eviction."""

from .etags import EtagIndex, HashingWriter, etag_for_file, format_etag
from .generator import CachedContent, GenerationCache
from .inflight import SingleFlight
from .janitor import CacheJanitor, JanitorState, ScanResult
from .stats import CacheStats
from .store import CacheStore

__all__ = [
    'CacheJanitor',
    'CacheStats',
    'CacheStore',
    'CachedContent',
    'EtagIndex',
    'GenerationCache',
    'HashingWriter',
    'JanitorState',
    'ScanResult',
    'SingleFlight',
    'etag_for_file',
    'format_etag',
]
