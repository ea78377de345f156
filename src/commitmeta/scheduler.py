"""Scheduler Thread Module

This module provides the timer plumbing for the fetch schedulers. Every
manager owns a `schedule.Scheduler`; its polling timer is a job on that
scheduler, and a SchedulerThread runs the pending jobs of one or more
schedulers in the background.

- schedule_every(): Add a repeating job to a scheduler, wrapped with logging
- cancel_job(): Remove a job from a scheduler
- SchedulerThread: Daemon thread running the pending jobs
"""

import threading
import logging
from typing import Callable, Iterable, List, Optional

import schedule

logger = logging.getLogger(__name__)

VALID_UNITS = ['seconds', 'minutes', 'hours', 'days', 'weeks']


def schedule_every(scheduler: schedule.Scheduler, interval: int, job: Callable,
                   job_name: str = "", unit: str = 'seconds') -> schedule.Job:
    """
    Schedule a job to run at regular intervals

    Args:
        scheduler: The scheduler to add the job to
        interval: The interval value (e.g., 10 for "every 10 seconds")
        job: The callable function to execute
        job_name: Optional name for the job (for logging purposes)
        unit: The unit of time ('seconds', 'minutes', 'hours', 'days', 'weeks')

    Returns:
        The scheduled job object
    """
    if unit not in VALID_UNITS:
        raise ValueError(f"Invalid unit '{unit}'. Must be one of: {VALID_UNITS}")

    name = job_name or job.__name__
    logger.debug("Scheduling job '%s' to run every %d %s", name, interval, unit)

    # Wrap the job to catch exceptions and add logging
    def wrapped_job():
        try:
            logger.debug("Running scheduled job: %s", name)
            job()
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.error("Error in scheduled job '%s': %s", name, e, exc_info=True)

    wrapped_job.__name__ = name
    return getattr(scheduler.every(interval), unit).do(wrapped_job)


def cancel_job(scheduler: schedule.Scheduler, job: Optional[schedule.Job]) -> None:
    """Remove a job from the scheduler, ignoring None."""
    if job is None:
        return
    logger.debug("Cancelling scheduled job: %s", getattr(job.job_func, '__name__', job))
    scheduler.cancel_job(job)


class SchedulerThread:
    """Thread-based runner for the jobs of one or more schedulers.

    The thread sleeps until the next job is due, 10 seconds when no job is
    scheduled, and never longer than 300 seconds. wake() ends the sleep early.
    """

    def __init__(self, schedulers: Optional[Iterable[schedule.Scheduler]] = None):
        self._schedulers: List[schedule.Scheduler] = list(schedulers or [])
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._wake_event = threading.Event()
        self._running = False
        self._lock = threading.Lock()
        logger.debug("Scheduler thread initialized")

    def add_scheduler(self, scheduler: schedule.Scheduler):
        """Run the jobs of another scheduler on this thread."""
        with self._lock:
            self._schedulers.append(scheduler)

    def start(self):
        """Start the scheduler thread"""
        with self._lock:
            if self._running:
                logger.warning("Scheduler thread is already running")
                return

            self._stop_event.clear()
            self._running = True
            self._thread = threading.Thread(target=self._run, daemon=True, name="SchedulerThread")
            self._thread.start()
            logger.info("Scheduler thread started")

    def stop(self):
        """Stop the scheduler thread"""
        with self._lock:
            if not self._running:
                logger.warning("Scheduler thread is not running")
                return

            logger.info("Stopping scheduler thread...")
            self._stop_event.set()
            self._wake_event.set()
            self._running = False

        # Wait for thread to finish (with timeout)
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)
            if self._thread.is_alive():
                logger.warning("Scheduler thread did not stop gracefully")
            else:
                logger.info("Scheduler thread stopped")

    def wake(self):
        """Re-check the schedulers now, e.g. after a job was added that is due at once."""
        self._wake_event.set()

    def run_pending(self):
        """Run all jobs that are due on every scheduler."""
        with self._lock:
            schedulers = list(self._schedulers)
        for scheduler in schedulers:
            scheduler.run_pending()

    def idle_seconds(self) -> float:
        """Seconds until the next job on any scheduler is due."""
        with self._lock:
            schedulers = list(self._schedulers)
        idle = [s.idle_seconds for s in schedulers if s.idle_seconds is not None]
        if not idle:
            return 10  # Default sleep time if no jobs are scheduled
        return min(max(min(idle), 0), 300)  # Cap sleep time to 300 seconds

    def _run(self):
        """Main loop for the scheduler thread"""
        logger.debug("Scheduler thread loop started")
        while not self._stop_event.is_set():
            try:
                self._wake_event.clear()
                self.run_pending()
                n = self.idle_seconds()
                if n > 0:
                    logger.debug("Scheduler thread sleeping for %.1f seconds.", n)
                    self._wake_event.wait(n)
            except Exception as e:  # pylint: disable=broad-exception-caught
                logger.error("Error in scheduler thread: %s", e, exc_info=True)

        logger.debug("Scheduler thread loop ended")

    def is_running(self) -> bool:
        """Check if the scheduler thread is running"""
        return self._running
