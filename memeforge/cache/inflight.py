"""Deduplication of concurrent work for the same key."""
import threading
from typing import Any, Callable, Dict, Hashable, Tuple

from ..logging_utils import get_logger

logger = get_logger(__name__)


class _Slot:
    """The shared result of one in-progress call."""

    def __init__(self):
        self.done = threading.Event()
        self.result = None
        self.error = None
        self.waiters = 0


class SingleFlight:
    """Runs at most one call per key at a time.

    The first caller for a key runs the function. Callers arriving while it
    runs block and receive the same result, or the same exception. Once the
    call settles its slot is removed, so the next caller starts afresh.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._slots: Dict[Hashable, _Slot] = {}

    def do(self, key: Hashable, fn: Callable[[], Any]) -> Tuple[Any, bool]:
        """Run fn for key, or wait for the call already running.

        Args:
            key: Identifies the work
            fn: Performs the work

        Returns:
            tuple: (result, shared) where shared is True if the result came
                from another caller's call

        Raises:
            Exception: Whatever fn raised, in every caller
        """
        with self._lock:
            slot = self._slots.get(key)
            if slot is not None:
                slot.waiters += 1
                leader = False
            else:
                slot = self._slots[key] = _Slot()
                leader = True

        if not leader:
            logger.trace(f"[INFLIGHT] Waiting for running call for {key}")
            slot.done.wait()
            if slot.error is not None:
                raise slot.error
            return slot.result, True

        try:
            slot.result = fn()
        except BaseException as e:
            slot.error = e
            raise
        finally:
            with self._lock:
                del self._slots[key]
            slot.done.set()
            if slot.waiters:
                logger.debug(f"[INFLIGHT] Call for {key} shared with {slot.waiters} waiter(s)")
        return slot.result, False

    def in_flight(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._slots
