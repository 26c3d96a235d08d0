"""Background eviction of rarely used macro cache files."""
import enum
import os
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, List

import psutil

from ..config import CacheConfig, JANITOR_THREAD_NAME
from ..logging_utils import get_logger
from . import stats as counters
from .etags import EtagIndex
from .stats import CacheStats
from .store import CacheStore

logger = get_logger(__name__)


class JanitorState(enum.Enum):
    IDLE = 'idle'
    SCANNING = 'scanning'
    EVICTING = 'evicting'


@dataclass
class ScanResult:
    """What one janitor pass found and removed."""
    files: int = 0
    total_bytes: int = 0
    candidates: List[str] = field(default_factory=list)
    evicted: List[str] = field(default_factory=list)


class CacheJanitor:
    """Periodically deletes cache files that have not been read recently.

    Files are only removed once the cache as a whole is larger than
    min_prune_bytes; the access age only decides which files may go.
    Deletion happens under the store's lock. Errors are logged and the
    next pass tries again.
    """

    def __init__(self, store: CacheStore, config: CacheConfig = None, etags: EtagIndex = None,
                 stats: CacheStats = None, clock: Callable[[], float] = time.time):
        """Initialize the janitor.

        Args:
            store: The cache store whose directory is cleaned
            config: Thresholds and poll interval, or None for the store's
            etags: ETag index to drop evicted paths from, if any
            stats: Counters to record evictions in, if any
            clock: Returns the current time in seconds since the epoch
        """
        self.store = store
        self.config = config if config is not None else store.config
        self.etags = etags
        self.stats = stats
        self.clock = clock
        self._state = JanitorState.IDLE
        self._state_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread = None

    @property
    def state(self) -> JanitorState:
        with self._state_lock:
            return self._state

    def _set_state(self, state: JanitorState) -> None:
        with self._state_lock:
            self._state = state
        logger.trace(f"[JANITOR] {state.value}")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def scan_once(self) -> ScanResult:
        """Run one scan and, if warranted, one eviction pass.

        Returns:
            ScanResult: Sizes seen and paths removed
        """
        result = ScanResult()
        self._set_state(JanitorState.SCANNING)
        try:
            try:
                with os.scandir(self.store.dir) as it:
                    entries = list(it)
            except OSError as e:
                logger.warning(f"[JANITOR] Reading cache directory: {e} (continuing)")
                return result

            now = self.clock()
            for entry in entries:
                if not entry.is_file(follow_symlinks=False):
                    continue
                try:
                    st = entry.stat(follow_symlinks=False)
                except OSError:
                    continue
                result.files += 1
                result.total_bytes += st.st_size
                if now - st.st_atime > self.config.max_access_age:
                    result.candidates.append(entry.path)

            if result.total_bytes <= self.config.min_prune_bytes or not result.candidates:
                logger.debug(f"[JANITOR] {result.files} file(s), {result.total_bytes} bytes, "
                             f"{len(result.candidates)} candidate(s); nothing to evict")
                return result

            self._set_state(JanitorState.EVICTING)
            self._evict(result)
            return result
        finally:
            self._set_state(JanitorState.IDLE)

    def _evict(self, result: ScanResult) -> None:
        with self.store.lock:
            for path in result.candidates:
                try:
                    os.remove(path)
                except OSError as e:
                    logger.warning(f"[JANITOR] Removing {path}: {e} (continuing)")
                    continue
                result.evicted.append(path)
                if self.etags is not None:
                    self.etags.discard(path)

        if self.stats is not None:
            self.stats.add(counters.EVICTED, len(result.evicted))
        try:
            disk = f"{psutil.disk_usage(self.store.dir).percent}% used"
        except OSError:
            disk = "unknown"
        logger.info(f"[JANITOR] Evicted {len(result.evicted)} of {len(result.candidates)} candidate(s) "
                    f"from {result.files} file(s), {result.total_bytes} bytes | Disk: {disk}")

    def start(self) -> bool:
        """Start the background thread.

        Returns:
            bool: True if started, False if it was already running
        """
        if self.is_running:
            logger.debug("Cache janitor already running, ignoring start request")
            return False

        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name=JANITOR_THREAD_NAME, daemon=True)
        self._thread.start()
        return True

    def stop(self, timeout: float = 5.0) -> bool:
        """Stop the background thread, waiting for a running pass to finish.

        Returns:
            bool: True if stopped cleanly, False if the thread is still alive
        """
        self._stop_event.set()
        if self._thread is None:
            return True
        self._thread.join(timeout=timeout)
        if self._thread.is_alive():
            logger.warning("Cache janitor did not stop gracefully")
            return False
        self._thread = None
        return True

    def run_forever(self) -> None:
        """Run passes in the calling thread until stop() is called."""
        self._run()

    def _run(self) -> None:
        logger.info(f"Starting macro cache janitor (poll={self.config.poll_interval}s, "
                    f"max-age={self.config.max_access_age}s, min-prune={self.config.min_prune_bytes} bytes)")
        while not self._stop_event.wait(self.config.poll_interval):
            try:
                self.scan_once()
            except Exception as e:
                logger.error(f"[JANITOR] Scan failed: {e}", exc_info=True)
        logger.info("Macro cache janitor exiting")

    def __enter__(self):
        """Context manager entry."""
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.stop()
