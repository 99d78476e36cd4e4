"""Trailing-edge debouncing with generation-based cancellation."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

logger = logging.getLogger(__name__)


class Debouncer:
    """Delay ``fn`` until calls stop arriving for ``delay_seconds``.

    Every call supersedes the previous pending one. A generation counter is
    bumped on each schedule/cancel; a timer that fires with an outdated
    generation returns without calling ``fn``, so a cancelled or superseded
    refresh can never run late.
    """

    def __init__(self, fn: Callable[..., object], delay_seconds: float, *, name: str = "treedeck-debounce") -> None:
        if delay_seconds < 0:
            raise ValueError("delay_seconds must be >= 0")
        self._fn = fn
        self.delay_seconds = delay_seconds
        self._name = name
        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self._generation = 0
        self._pending_args: tuple[tuple[object, ...], dict[str, object]] | None = None

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._pending_args is not None

    def __call__(self, *args: object, **kwargs: object) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._generation += 1
            generation = self._generation
            self._pending_args = (args, kwargs)
            timer = threading.Timer(self.delay_seconds, self._fire, args=(generation,))
            timer.name = self._name
            timer.daemon = True
            self._timer = timer
        timer.start()

    def _fire(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or self._pending_args is None:
                return
            args, kwargs = self._pending_args
            self._pending_args = None
            self._timer = None
        self._invoke(args, kwargs)

    def _invoke(self, args: tuple[object, ...], kwargs: dict[str, object]) -> None:
        try:
            self._fn(*args, **kwargs)
        except Exception:
            logger.exception("debounced call %s failed", self._name)

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = None
            self._pending_args = None
            self._generation += 1

    def flush(self) -> None:
        """Run the pending call now, if any."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = None
            pending = self._pending_args
            self._pending_args = None
            self._generation += 1
        if pending is not None:
            self._invoke(*pending)


__all__ = ["Debouncer"]
