"""
Fixed-rate scheduler that runs country-store refreshes one at a time.

Several periodic jobs hit the same rate-limited upstream, so they share a
single background thread: at each wake-up every due job runs to
completion in the order it was added before the next one starts.
"""
import threading
import time
import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Protocol, Tuple

logger = logging.getLogger("scheduler.coordinator")


class Refreshable(Protocol):
    """Anything the coordinator can refresh, e.g. a CountryDataStore."""

    name: str

    def refresh_all_once(self, cancel: Optional[threading.Event] = None) -> Any:
        """Run one complete, blocking refresh cycle."""
        ...


@dataclass
class ScheduledJob:
    """A refreshable with its interval and next scheduled run."""
    refreshable: Refreshable
    interval: float
    next_due_at: Optional[float] = None  # None: never due
    runs: int = 0

    @property
    def name(self) -> str:
        return getattr(self.refreshable, "name", type(self.refreshable).__name__)

    @property
    def enabled(self) -> bool:
        return self.interval > 0

    def is_due(self, now: float) -> bool:
        return self.next_due_at is not None and now >= self.next_due_at


class RefreshCoordinator:
    """
    Runs registered refreshables at fixed rates on one daemon thread.

    - Priority is the order of add() calls.
    - next_due_at advances by exactly one interval per run (fixed-rate),
      so slow cycles do not push the schedule back. A job that falls
      behind runs back-to-back until it catches up.
    - Jobs with an interval <= 0 are never scheduled.
    - Exceptions from a refreshable are logged and never stop the loop.
    - stop() wakes the loop; the stop event is also handed to the running
      refresh so it can abandon its cycle between upstream calls.

    Usage:
        coordinator = RefreshCoordinator()
        coordinator.add(neighbours, interval=7 * 24 * 3600)
        coordinator.add(languages, interval=7 * 24 * 3600)
        coordinator.start()
        ...
        coordinator.stop()
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._jobs: List[ScheduledJob] = []
        self._clock = clock
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def jobs(self) -> Tuple[ScheduledJob, ...]:
        return tuple(self._jobs)

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def add(self, refreshable: Refreshable, interval: float) -> ScheduledJob:
        """
        Register a refreshable after all previously added ones.

        Args:
            refreshable: Object with a blocking refresh_all_once()
            interval: Seconds between scheduled runs; <= 0 disables the job
        """
        if self.running:
            raise RuntimeError("Cannot add jobs while the coordinator is running")

        job = ScheduledJob(refreshable=refreshable, interval=interval)
        self._jobs.append(job)
        if not job.enabled:
            logger.info(f"Refresh of {job.name} disabled (interval={interval})")
        return job

    def _enabled_jobs(self) -> List[ScheduledJob]:
        return [job for job in self._jobs if job.enabled]

    def reset_schedule(self, start: Optional[float] = None) -> None:
        """Make every enabled job due at start (default: now)."""
        start = self._clock() if start is None else start
        for job in self._jobs:
            job.next_due_at = start if job.enabled else None

    def next_wake(self) -> Optional[float]:
        """Earliest next_due_at over all scheduled jobs, or None."""
        due_times = [job.next_due_at for job in self._jobs if job.next_due_at is not None]
        if not due_times:
            return None
        return min(due_times)

    def run_due(self, stop_event: Optional[threading.Event] = None) -> List[str]:
        """
        Run every job that is due, in priority order, one after another.

        Returns:
            Names of the jobs that ran
        """
        stop_event = stop_event or self._stop_event
        now = self._clock()
        ran = []

        for job in self._jobs:
            if not job.is_due(now):
                continue
            if stop_event.is_set():
                break

            logger.debug(f"Running scheduled refresh: {job.name}")
            try:
                job.refreshable.refresh_all_once(stop_event)
            except Exception as e:
                logger.error(f"Scheduled refresh of {job.name} failed: {e}")

            job.next_due_at += job.interval
            job.runs += 1
            ran.append(job.name)

        return ran

    def run(self, stop_event: Optional[threading.Event] = None) -> None:
        """Scheduling loop. Blocks until stop_event is set."""
        stop_event = stop_event or self._stop_event
        if self.next_wake() is None:
            self.reset_schedule()
        names = " -> ".join(job.name for job in self._enabled_jobs())
        logger.info(f"Starting refresh coordinator ({names})")

        while True:
            next_wake = self.next_wake()
            if next_wake is None:
                logger.info("No scheduled refreshes left, coordinator exiting")
                return

            sleep = max(0.0, next_wake - self._clock())
            if stop_event.wait(sleep):
                logger.info("Refresh coordinator shutting down")
                return

            self.run_due(stop_event)

    def start(self, stop_event: Optional[threading.Event] = None) -> Optional[threading.Thread]:
        """
        Start the scheduling loop on a daemon thread.

        Every enabled job becomes due immediately. If no job is enabled
        nothing is started and None is returned.
        A coordinator stopped with stop() can be started again.

        Raises:
            RuntimeError: already running, or stop_event is already set
        """
        if self.running:
            raise RuntimeError("Refresh coordinator already started")

        if not self._enabled_jobs():
            logger.info("No stores configured, coordinator will not run")
            return None

        if stop_event is not None:
            if stop_event.is_set():
                raise RuntimeError("Stop event is already set")
            self._stop_event = stop_event
        elif self._stop_event.is_set():
            # Restart after stop(): the previous event stays set
            self._stop_event = threading.Event()
        self.reset_schedule()

        self._thread = threading.Thread(
            target=self.run,
            args=(self._stop_event,),
            name="refresh-coordinator",
            daemon=True,
        )
        self._thread.start()
        return self._thread

    def stop(self, timeout: Optional[float] = None) -> None:
        """Signal the loop to stop and wait for the thread to finish."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            if self._thread.is_alive():
                logger.warning("Refresh coordinator did not stop within timeout")
            else:
                self._thread = None

    def get_stats(self) -> dict:
        """Get coordinator statistics."""
        now = self._clock()
        return {
            "running": self.running,
            "jobs": [
                {
                    "name": job.name,
                    "interval": job.interval,
                    "runs": job.runs,
                    "due_in": None if job.next_due_at is None else round(job.next_due_at - now, 1),
                }
                for job in self._jobs
            ],
        }
