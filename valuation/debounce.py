"""
Debouncer - collapses bursts of triggers into a single call.

Each trigger() restarts the quiet period and replaces the pending arguments,
so only the latest input set is acted on.
"""

import logging
import threading
from typing import Any, Callable, Optional, Tuple

log = logging.getLogger(__name__)


class Debouncer:
    """
    Usage:
        debouncer = Debouncer(service.compute_unit_valuation, delay=0.5)
        debouncer.trigger(request)     # restarts the 0.5s timer
        debouncer.flush()              # run now, synchronously
    """

    def __init__(self, action: Callable[..., Any], delay: float = 0.5,
                 on_result: Optional[Callable[[Any], None]] = None,
                 on_error: Optional[Callable[[Exception], None]] = None):
        self.action = action
        self.delay = delay
        self.on_result = on_result
        self.on_error = on_error
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._pending: Optional[Tuple[tuple, dict]] = None
        self._generation = 0
        self.runs = 0

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._pending is not None

    def trigger(self, *args, **kwargs):
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._pending = (args, kwargs)
            self._generation += 1
            self._timer = threading.Timer(self.delay, self._fire, args=(self._generation,))
            self._timer.daemon = True
            self._timer.start()

    def cancel(self):
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = None
            self._pending = None
            self._generation += 1

    def flush(self) -> Any:
        """Run the pending call immediately. Returns its result, or None if nothing was pending."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = None
            pending, self._pending = self._pending, None
        if pending is None:
            return None
        return self._run(pending)

    def _fire(self, generation: int):
        with self._lock:
            # superseded by a later trigger after this timer had already fired
            if generation != self._generation:
                return
            pending, self._pending = self._pending, None
            self._timer = None
        if pending is not None:
            self._run(pending)

    def _run(self, pending: Tuple[tuple, dict]) -> Any:
        args, kwargs = pending
        self.runs += 1
        try:
            result = self.action(*args, **kwargs)
        except Exception as e:
            log.error(f"Debounced call failed: {e}")
            if self.on_error is None:
                raise
            self.on_error(e)
            return None
        if self.on_result is not None:
            self.on_result(result)
        return result
