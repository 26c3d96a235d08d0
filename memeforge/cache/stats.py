"""
Counters and periodic summaries for the macro cache.

Counters are plain named integers incremented from any thread. A summary
with process memory usage can be logged as a single JSON line for
structured monitoring.
"""

import json
import threading
import time
from collections import Counter
from typing import Dict

import psutil

from ..logging_utils import get_logger

logger = get_logger(__name__)

CACHE_HIT = 'cache-hit'
CACHE_MISS = 'cache-miss'
CACHE_REUSED = 'cache-reused'
GENERATE = 'generate'
GENERATE_GIF = 'generate-gif'
GENERATE_JPG = 'generate-jpg'
GENERATE_PNG = 'generate-png'
EVICTED = 'evicted'


class CacheStats:
    """Thread-safe named counters for cache activity."""

    def __init__(self):
        self._lock = threading.Lock()
        self._counts = Counter()
        self._started = time.time()
        self.process = psutil.Process()

    def add(self, name: str, n: int = 1) -> None:
        with self._lock:
            self._counts[name] += n

    def get(self, name: str) -> int:
        with self._lock:
            return self._counts[name]

    def snapshot(self) -> Dict[str, int]:
        """Copy of all counters that have been incremented."""
        with self._lock:
            return dict(self._counts)

    def log_summary(self) -> Dict[str, object]:
        """Log counters, uptime and memory usage as one JSON line.

        Returns:
            dict: The logged data
        """
        mem_mb = self.process.memory_info().rss / (1024 * 1024)
        summary = {
            "timestamp": time.time(),
            "uptime_s": round(time.time() - self._started, 1),
            "memory_mb": round(mem_mb, 1),
            "counters": self.snapshot(),
        }
        logger.info(f"CACHE STATS: {json.dumps(summary, sort_keys=True)}")
        return summary
