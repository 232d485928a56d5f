"""
Cancellable delayed tasks.

Used for the search debounce (only the last keystroke within the window
triggers a filter pass) and for the smart refresh countdown.
"""
import logging
import threading
from typing import Any, Callable, Dict, Optional

from bmo import constants
from bmo.storage import Scope, Storage

logger = logging.getLogger(__name__)

TimerFactory = Callable[[float, Callable[[], None]], Any]


class DelayedTask:
    """
    Run a callback once after a delay, unless cancelled or rescheduled first.

    Args:
        delay: Delay in seconds
        callback: Function to run
        timer_factory: ``threading.Timer``-compatible factory (injectable for tests)
    """

    def __init__(self, delay: float, callback: Callable[..., None],
                 timer_factory: TimerFactory = threading.Timer):
        self.delay = delay
        self.callback = callback
        self.timer_factory = timer_factory
        self._timer = None
        self._lock = threading.RLock()

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def schedule(self, *args, **kwargs) -> None:
        """Cancel any pending run and arm a new one."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            timer = self.timer_factory(self.delay, lambda: self._fire(timer, args, kwargs))
            self._timer = timer
            if hasattr(timer, "daemon"):
                timer.daemon = True
            timer.start()

    def cancel(self) -> bool:
        """Cancel the pending run. Returns True if one was pending."""
        with self._lock:
            if self._timer is None:
                return False
            self._timer.cancel()
            self._timer = None
            return True

    def _fire(self, timer, args, kwargs) -> None:
        with self._lock:
            # A rescheduled or cancelled timer must not run
            if self._timer is not timer:
                return
            self._timer = None
        self.callback(*args, **kwargs)


class Debouncer:
    """
    Collapse bursts of calls into one.

    Each call resets the pending task, so only the last call made within
    ``delay`` seconds of silence reaches the callback.
    """

    def __init__(self, callback: Callable[..., None],
                 delay: float = constants.DEFAULT_SEARCH_DEBOUNCE_MS / 1000,
                 timer_factory: TimerFactory = threading.Timer):
        self._task = DelayedTask(delay, callback, timer_factory)

    def __call__(self, *args, **kwargs) -> None:
        self._task.schedule(*args, **kwargs)

    @property
    def pending(self) -> bool:
        return self._task.pending

    def cancel(self) -> bool:
        return self._task.cancel()


class SmartRefresh:
    """
    A refresh that fires after a visible countdown and can be cancelled.

    Scheduling saves a UI snapshot to session storage, arms the refresh timer
    and a one-second countdown ticker. Cancelling clears both timers and
    removes the snapshot.

    Args:
        storage: Storage holding the session snapshot
        snapshot: Returns the snapshot to save
        on_refresh: Called when the countdown completes
        delay: Countdown length in seconds
        on_tick: Called with the remaining seconds on every tick
        timer_factory: ``threading.Timer``-compatible factory
    """

    def __init__(self, storage: Storage, snapshot: Callable[[], Dict[str, Any]],
                 on_refresh: Callable[[], None],
                 delay: int = constants.DEFAULT_REFRESH_DELAY_SECONDS,
                 on_tick: Optional[Callable[[int], None]] = None,
                 timer_factory: TimerFactory = threading.Timer):
        self.storage = storage
        self.snapshot = snapshot
        self.on_refresh = on_refresh
        self.delay = delay
        self.on_tick = on_tick
        self.remaining = 0
        self._refresh = DelayedTask(delay, self._perform, timer_factory)
        self._ticker = DelayedTask(1, self._tick, timer_factory)

    @property
    def pending(self) -> bool:
        return self._refresh.pending

    def schedule(self) -> None:
        self._refresh.cancel()
        self._ticker.cancel()

        self.storage.set_json(constants.KEY_UI_STATE, self.snapshot(), Scope.SESSION)

        self.remaining = self.delay
        self._refresh.schedule()
        self._ticker.schedule()
        logger.info(f"Refreshing in {self.delay} seconds")

    def cancel(self) -> None:
        self._refresh.cancel()
        self._ticker.cancel()
        self.remaining = 0
        self.storage.remove_item(constants.KEY_UI_STATE, Scope.SESSION)
        logger.info("Refresh cancelled")

    def _tick(self) -> None:
        self.remaining = max(0, self.remaining - 1)
        if self.on_tick is not None:
            self.on_tick(self.remaining)
        if self.remaining > 0 and self._refresh.pending:
            self._ticker.schedule()

    def _perform(self) -> None:
        self._ticker.cancel()
        self.remaining = 0
        self.on_refresh()
