import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)

STOP_JOIN_TIMEOUT_SECONDS = 5.0


class IntervalScheduler:
    """Runs ``job`` on one daemon thread: once after ``warmup_seconds``, then
    every ``interval_seconds``. Ticks never overlap since a single thread
    drives them, and a failing tick is logged without stopping the loop.
    """

    def __init__(
        self,
        name: str,
        job: Callable[[], object],
        interval_seconds: float,
        warmup_seconds: float = 0.0,
    ) -> None:
        self.name = name
        self.job = job
        self.interval_seconds = interval_seconds
        self.warmup_seconds = warmup_seconds
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        with self._lock:
            if self.is_running:
                logger.warning("scheduler_already_running name=%s", self.name)
                return
            self._stop_event = threading.Event()
            self._thread = threading.Thread(target=self._run, name=f"scheduler-{self.name}", daemon=True)
            self._thread.start()
        logger.info(
            "scheduler_started name=%s interval_seconds=%s warmup_seconds=%s",
            self.name,
            self.interval_seconds,
            self.warmup_seconds,
        )

    def stop(self, timeout: float = STOP_JOIN_TIMEOUT_SECONDS) -> None:
        with self._lock:
            thread = self._thread
            if thread is None:
                return
            self._stop_event.set()
        thread.join(timeout=timeout)
        if thread.is_alive():
            # Handle kept so start() refuses until the running tick exits.
            logger.warning("scheduler_stop_timeout name=%s timeout=%s", self.name, timeout)
            return
        with self._lock:
            if self._thread is thread:
                self._thread = None
        logger.info("scheduler_stopped name=%s", self.name)

    def run_once(self) -> None:
        try:
            self.job()
        except Exception:
            logger.exception("scheduler_tick_failed name=%s", self.name)

    def _run(self) -> None:
        if self._stop_event.wait(self.warmup_seconds):
            return
        while True:
            self.run_once()
            if self._stop_event.wait(self.interval_seconds):
                return
