"""Periodic battery query timer running beside the read loop."""

import logging
import threading
import time
from typing import Callable, Optional

from hyperx_cloud_flight.errors import InvalidStateError

log = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 5 * 60
SHUTDOWN_TIMEOUT_SECONDS = 5.0


class BatteryPollScheduler:
    """Runs a task at a fixed rate on a daemon thread.

    The first run happens after ``initial_delay`` seconds, then every
    ``interval`` seconds measured from the previous scheduled start.

    If the task raises and ``stop_on_error`` is set, the scheduler stops
    and keeps the exception in ``error`` for the owner to re-raise.
    Otherwise the failure is logged and the task runs again on the next
    tick.
    """

    def __init__(
        self,
        task: Callable[[], None],
        interval: float = POLL_INTERVAL_SECONDS,
        stop_on_error: bool = True,
        name: str = "battery-poll",
    ):
        self._task = task
        self._interval = interval
        self._stop_on_error = stop_on_error
        self._name = name
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.error: Optional[BaseException] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self, initial_delay: float = 0.0) -> None:
        if self.is_running:
            raise InvalidStateError("battery poll scheduler already running")
        self._stop_event.clear()
        self.error = None
        self._thread = threading.Thread(
            target=self._run, args=(initial_delay,), name=self._name, daemon=True
        )
        self._thread.start()

    def stop(self, timeout: float = SHUTDOWN_TIMEOUT_SECONDS) -> bool:
        """Cancel the timer and wait for the thread.

        Returns:
            True if the thread has finished, False if it is still running
            after ``timeout`` seconds.
        """
        self._stop_event.set()
        thread = self._thread
        if thread is None:
            return True
        if thread is not threading.current_thread():
            thread.join(timeout)
        if thread.is_alive():
            return False
        self._thread = None
        return True

    def _run(self, initial_delay: float) -> None:
        next_run = time.monotonic() + initial_delay
        while not self._stop_event.wait(max(0.0, next_run - time.monotonic())):
            try:
                self._task()
            except Exception as exc:
                if self._stop_on_error:
                    log.error("Battery poll failed, stopping scheduler: %s", exc)
                    self.error = exc
                    return
                log.warning("Battery poll failed, retrying next tick: %s", exc)
            next_run += self._interval
