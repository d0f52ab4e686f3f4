from __future__ import annotations

import logging
from threading import Lock, Timer
from typing import Any, Callable, Generic, Protocol, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TimerHandle(Protocol):
    def start(self) -> None: ...

    def cancel(self) -> None: ...


TimerFactory = Callable[[float, Callable[[], None]], TimerHandle]


def thread_timer(delay_seconds: float, callback: Callable[[], None]) -> Timer:
    timer = Timer(delay_seconds, callback)
    timer.daemon = True
    return timer


class DebouncedWriter(Generic[T]):
    """Collapses bursts of ``schedule()`` calls into one delayed write.

    At most one timer is outstanding. The payload is read from ``source`` when
    the timer fires, so the sink always receives the latest state. Timers that
    were superseded while already running are discarded by generation number.
    """

    def __init__(
        self,
        *,
        source: Callable[[], T],
        sink: Callable[[T], Any],
        delay_seconds: float,
        timer_factory: TimerFactory = thread_timer,
        on_result: Callable[[bool], None] | None = None,
    ) -> None:
        self.source = source
        self.sink = sink
        self.delay_seconds = max(0.0, delay_seconds)
        self.timer_factory = timer_factory
        self.on_result = on_result
        self.writes = 0
        self._lock = Lock()
        self._write_lock = Lock()
        self._timer: TimerHandle | None = None
        self._generation = 0

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def schedule(self) -> None:
        with self._lock:
            self._cancel_locked()
            generation = self._generation
            timer = self.timer_factory(self.delay_seconds, lambda: self._fire(generation))
            self._timer = timer
            timer.start()

    def cancel(self) -> bool:
        with self._lock:
            had_pending = self._timer is not None
            self._cancel_locked()
            return had_pending

    def flush(self) -> bool:
        if not self.cancel():
            return False
        self._write()
        return True

    def wait(self, timeout: float | None = None) -> bool:
        with self._lock:
            timer = self._timer
        join = getattr(timer, "join", None)
        if callable(join):
            join(timeout)
        # The write lock is held for the whole write; taking it means it finished.
        with self._write_lock:
            pass
        return not self.pending

    def _cancel_locked(self) -> None:
        self._generation += 1
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fire(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or self._timer is None:
                return
            self._timer = None
        self._write()

    def _write(self) -> None:
        with self._write_lock:
            try:
                result = self.sink(self.source())
                success = result is not False
            except Exception as exc:
                logger.warning("Debounced write failed", exc_info=exc)
                success = False
            self.writes += 1
            if self.on_result is not None:
                try:
                    self.on_result(success)
                except Exception as exc:
                    logger.warning("Debounced write result hook failed", exc_info=exc)
