# ABOUTME: Deferred writes for the client: a keyed Debouncer on threading.Timer and the save-status indicator.
# ABOUTME: Rescheduling a key replaces its pending write (last write wins); background failures are logged.

import logging
import threading
import time
from typing import Any, Callable, Optional

from core.config import ERROR_STATUS_CLEAR_SECONDS, SAVED_STATUS_CLEAR_SECONDS

IDLE = "idle"
SAVING = "saving"
SAVED = "saved"
ERROR = "error"


class Debouncer:
    """At most one pending call per key. timer_factory defaults to threading.Timer; tests pass a fake."""

    def __init__(self, delay: float, timer_factory: Callable[..., Any] = threading.Timer):
        self.delay = delay
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._pending: dict[str, tuple[Any, Callable[..., Any], tuple, int]] = {}
        self._generation = 0

    def schedule(self, key: str, fn: Callable[..., Any], *args: Any, delay: Optional[float] = None) -> None:
        with self._lock:
            existing = self._pending.pop(key, None)
            if existing is not None:
                existing[0].cancel()
            self._generation += 1
            generation = self._generation
            timer = self._timer_factory(self.delay if delay is None else delay, self._fire, args=(key, generation))
            timer.daemon = True
            self._pending[key] = (timer, fn, args, generation)
        timer.start()

    def _fire(self, key: str, generation: int) -> None:
        with self._lock:
            entry = self._pending.get(key)
            # A replaced timer may still fire if cancel() raced with it.
            if entry is None or entry[3] != generation:
                return
            del self._pending[key]
        _, fn, args, _ = entry
        try:
            fn(*args)
        except Exception:
            logging.exception("Deferred write %s failed", key)

    def flush(self, key: Optional[str] = None) -> None:
        """Run pending calls now instead of waiting (all keys when key is None)."""
        with self._lock:
            keys = [key] if key is not None else list(self._pending)
            entries = [(k, self._pending.pop(k)) for k in keys if k in self._pending]
        for k, (timer, fn, args, _) in entries:
            timer.cancel()
            try:
                fn(*args)
            except Exception:
                logging.exception("Deferred write %s failed", k)

    def cancel(self, key: Optional[str] = None) -> None:
        with self._lock:
            keys = [key] if key is not None else list(self._pending)
            for k in keys:
                entry = self._pending.pop(k, None)
                if entry is not None:
                    entry[0].cancel()

    def pending(self, key: Optional[str] = None) -> bool:
        with self._lock:
            if key is None:
                return bool(self._pending)
            return key in self._pending


class SaveStatusTracker:
    """Aggregate state of outstanding writes: idle -> saving -> saved (3 s) or error with a label (5 s).

    An error holds through completions of writes already in flight and is cleared by the next save.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        saved_clear_seconds: float = SAVED_STATUS_CLEAR_SECONDS,
        error_clear_seconds: float = ERROR_STATUS_CLEAR_SECONDS,
    ):
        self._clock = clock
        self._saved_clear = saved_clear_seconds
        self._error_clear = error_clear_seconds
        self._lock = threading.Lock()
        self._state = IDLE
        self._since = 0.0
        self.outstanding = 0
        self.label: Optional[str] = None

    def _expire(self) -> None:
        elapsed = self._clock() - self._since
        if self._state == SAVED and elapsed >= self._saved_clear:
            self._state = IDLE
        elif self._state == ERROR and elapsed >= self._error_clear:
            self._state = IDLE
            self.label = None

    @property
    def status(self) -> str:
        with self._lock:
            self._expire()
            return self._state

    def begin(self) -> None:
        with self._lock:
            self._expire()
            self.outstanding += 1
            # A new save replaces any earlier error.
            self._state = SAVING
            self.label = None

    def succeed(self) -> None:
        with self._lock:
            self.outstanding = max(self.outstanding - 1, 0)
            if self.outstanding == 0 and self._state != ERROR:
                self._state = SAVED
                self._since = self._clock()

    def fail(self, label: str) -> None:
        with self._lock:
            self.outstanding = max(self.outstanding - 1, 0)
            self._state = ERROR
            self.label = label
            self._since = self._clock()

    def track(self, label: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Run one write under the indicator. Failures are logged and flip it to error; returns None then."""
        self.begin()
        try:
            result = fn(*args, **kwargs)
        except Exception:
            logging.exception("%s save failed", label)
            self.fail(label)
            return None
        self.succeed()
        return result

    def message(self) -> Optional[str]:
        status = self.status
        if status == SAVING:
            return "Saving..."
        if status == SAVED:
            return "All changes saved"
        if status == ERROR:
            return f"Could not save {self.label or 'changes'}"
        return None
