"""Layout and shared locking of the macro cache directory."""
import os
import threading

from ..config import CacheConfig, DEFAULT_CACHE_SEED
from ..logging_utils import get_logger
from ..models import Macro, Template

logger = get_logger(__name__)


class CacheStore:
    """Owns the macro cache directory and the lock guarding it.

    Cache file names are derived from the cache seed, the macro ID and the
    template's extension, so changing the seed invalidates every entry.

    lock serializes metadata changes (seed changes, explicit removal) with
    janitor evictions.
    """

    def __init__(self, config: CacheConfig):
        self.config = config
        self.dir = config.macro_dir
        self.lock = threading.Lock()
        self._seed = config.cache_seed or DEFAULT_CACHE_SEED
        logger.debug(f"Cache store at {self.dir} with seed {self._seed!r}")

    @property
    def seed(self) -> str:
        return self._seed

    def set_cache_seed(self, seed: str) -> bool:
        """Change the cache key prefix.

        Args:
            seed: New seed; empty means the default

        Returns:
            bool: True if the seed changed
        """
        seed = seed or DEFAULT_CACHE_SEED
        with self.lock:
            if seed == self._seed:
                return False
            old, self._seed = self._seed, seed
        logger.info(f"Cache seed changed from {old!r} to {seed!r}; existing entries are stale")
        return True

    def cache_path(self, macro: Macro, template: Template) -> str:
        """Path of the cache file for macro, whether or not it exists."""
        name = f"{self._seed}-{macro.id}{template.extension}"
        return os.path.join(self.dir, name)

    def template_path(self, template: Template) -> str:
        """Filesystem path of a template image; relative paths are under data_dir."""
        if os.path.isabs(template.path):
            return template.path
        return os.path.join(self.config.data_dir, template.path)

    def remove_cached(self, macro: Macro, template: Template) -> str:
        """Delete the cache file for macro if there is one.

        Returns:
            str: The path that was removed, or checked

        Raises:
            OSError: If the file exists but cannot be removed
        """
        path = self.cache_path(macro, template)
        with self.lock:
            try:
                os.remove(path)
                logger.debug(f"Removed cached macro {macro.id} at {path}")
            except FileNotFoundError:
                pass
        return path
