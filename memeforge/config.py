"""
Configuration constants for the macro cache and renderers.

This module centralizes the tunable parameters of the generation cache and
its janitor, so deployments can adjust them in one place.
"""

import os
from dataclasses import dataclass, field
from typing import Optional

import psutil

# Encoding
JPEG_QUALITY = 90  # Fixed quality for lossy macro output
SUPPORTED_EXTENSIONS = ('.gif', '.jpg', '.jpeg', '.png')

# Cache layout
MACRO_SUBDIR = "macros"
TEMPLATE_SUBDIR = "templates"
DEFAULT_CACHE_SEED = "0000"  # Key prefix used when no seed is configured

# HTTP caching lifetimes (seconds)
MACRO_MAX_AGE = 24 * 60 * 60
TEMPLATE_MAX_AGE = 365 * 24 * 60 * 60

# Janitor defaults
JANITOR_POLL_INTERVAL = 60.0  # How often the cache directory is scanned
DEFAULT_MAX_ACCESS_AGE = 30 * 60.0  # Entries idle this long may be evicted
DEFAULT_MIN_PRUNE_BYTES = 50 << 20  # Do not evict below this total size

# Palette quantization
PALETTE_SIZE = 256
PALETTE_BUCKET_STEP = 8  # Channel values are bucketed to multiples of this
TRANSPARENT_ALPHA_THRESHOLD = 128  # Alpha below this is written as transparent

# Thread naming
RENDER_THREAD_PREFIX = "FrameRender"
ENCODE_THREAD_PREFIX = "FrameEncode"
JANITOR_THREAD_NAME = "CacheJanitor"


def default_worker_count() -> int:
    """Number of workers for per-frame parallel work (logical CPU count)."""
    return psutil.cpu_count(logical=True) or 1


@dataclass
class CacheConfig:
    """Settings for the macro cache and its janitor.

    Non-positive max_access_age or min_prune_bytes fall back to the
    defaults, matching how an unset option behaves.
    """
    data_dir: str = "data"
    cache_seed: str = ""
    max_access_age: float = DEFAULT_MAX_ACCESS_AGE
    min_prune_bytes: int = DEFAULT_MIN_PRUNE_BYTES
    poll_interval: float = JANITOR_POLL_INTERVAL
    jpeg_quality: int = JPEG_QUALITY
    max_workers: Optional[int] = field(default=None)

    def __post_init__(self):
        """Validate configuration values after initialization."""
        if not self.data_dir:
            raise ValueError("data_dir must be set")
        if self.max_access_age <= 0:
            self.max_access_age = DEFAULT_MAX_ACCESS_AGE
        if self.min_prune_bytes <= 0:
            self.min_prune_bytes = DEFAULT_MIN_PRUNE_BYTES
        if self.poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        if not 1 <= self.jpeg_quality <= 100:
            raise ValueError("jpeg_quality must be between 1 and 100")
        if self.max_workers is not None and self.max_workers < 1:
            raise ValueError("max_workers must be at least 1")

    @property
    def macro_dir(self) -> str:
        """Directory holding cached macro files."""
        return os.path.join(self.data_dir, MACRO_SUBDIR)

    @property
    def workers(self) -> int:
        return self.max_workers or default_worker_count()

    @classmethod
    def from_env(cls, **overrides) -> 'CacheConfig':
        """Build a config from MEMEFORGE_* environment variables.

        Keyword arguments that are not None take precedence over the
        environment.
        """
        values = {}
        if os.environ.get('MEMEFORGE_DATA_DIR'):
            values['data_dir'] = os.environ['MEMEFORGE_DATA_DIR']
        if os.environ.get('MEMEFORGE_CACHE_SEED'):
            values['cache_seed'] = os.environ['MEMEFORGE_CACHE_SEED']
        if os.environ.get('MEMEFORGE_MAX_ACCESS_AGE'):
            values['max_access_age'] = float(os.environ['MEMEFORGE_MAX_ACCESS_AGE'])
        if os.environ.get('MEMEFORGE_MIN_PRUNE_MIB'):
            values['min_prune_bytes'] = int(os.environ['MEMEFORGE_MIN_PRUNE_MIB']) << 20
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
