"""Per-session countdown timers.

Each session owns one ``SessionTimers`` table holding at most one live
timer per key (``turn``, ``guess``, ``discussion``, ``disconnect:<id>``).
Arming a key replaces whatever was armed under it. Workers run as
Socket.IO background tasks that sleep and then fire; a fire whose token
no longer matches the table (cancelled or replaced meanwhile) is dropped.
"""

import itertools
import logging
import threading
import time
from typing import Any, Callable, Dict, Hashable, Optional, Tuple


TURN = 'turn'
GUESS = 'guess'
DISCUSSION = 'discussion'


def disconnect_key(participant_id: str) -> str:
    return f'disconnect:{participant_id}'


class DeferredScheduler:
    """Collects timer workers instead of running them.

    Stands in for the Socket.IO scheduler when timers are disabled
    (tests); ``run_pending`` fires whatever is queued.
    """

    def __init__(self):
        self.tasks = []

    def start_background_task(self, target, *args, **kwargs):
        self.tasks.append((target, args, kwargs))

    def sleep(self, seconds):
        pass

    def pending_keys(self):
        return [args[0] for _, args, _ in self.tasks if args]

    def run_pending(self, key: Optional[str] = None) -> int:
        ran = 0
        queued, self.tasks = self.tasks, []
        for target, args, kwargs in queued:
            if key is not None and (not args or args[0] != key):
                self.tasks.append((target, args, kwargs))
                continue
            target(*args, **kwargs)
            ran += 1
        return ran


class SessionTimers:
    def __init__(self, code: str, backend, lock=None, clock: Callable[[], float] = time.time,
                 logger: Optional[logging.Logger] = None):
        self.code = code
        self._backend = backend
        self._lock = lock or threading.RLock()
        self._clock = clock
        self._logger = logger or logging.getLogger(__name__)
        self._seq = itertools.count(1)
        # key -> (token, tag, deadline)
        self._armed: Dict[str, Tuple[int, Any, float]] = {}

    def arm(self, key: str, delay: float, callback: Callable[[], None], tag: Hashable = None) -> float:
        """Cancel any timer under ``key`` and schedule ``callback`` after ``delay`` seconds.

        Returns the absolute deadline so callers can publish it for countdowns.
        """
        with self._lock:
            self._armed.pop(key, None)
            token = next(self._seq)
            deadline = self._clock() + delay
            self._armed[key] = (token, tag, deadline)
        self._logger.info(f"[timer-set] session={self.code} key={key} delay={delay}s deadline={deadline}")
        self._backend.start_background_task(self._worker, key, token, delay, callback)
        return deadline

    def cancel(self, key: str) -> bool:
        with self._lock:
            entry = self._armed.pop(key, None)
        if entry is not None:
            self._logger.info(f"[timer-cancel] session={self.code} key={key}")
        return entry is not None

    def cancel_all(self) -> None:
        with self._lock:
            keys = list(self._armed)
            self._armed.clear()
        if keys:
            self._logger.info(f"[timer-cancel] session={self.code} keys={','.join(keys)}")

    def is_armed(self, key: str) -> bool:
        return key in self._armed

    def tag(self, key: str) -> Any:
        entry = self._armed.get(key)
        return entry[1] if entry else None

    def keys(self):
        return list(self._armed)

    def _worker(self, key: str, token: int, delay: float, callback: Callable[[], None]) -> None:
        self._backend.sleep(delay)
        self.fire(key, token, callback)

    def fire(self, key: str, token: int, callback: Callable[[], None]) -> bool:
        with self._lock:
            entry = self._armed.get(key)
            if entry is None or entry[0] != token:
                self._logger.info(f"[timer-abort] session={self.code} key={key} stale")
                return False
            del self._armed[key]
            self._logger.info(f"[timer-fire] session={self.code} key={key}")
            callback()
            return True
