#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import logging
import time
import threading
from datetime import datetime
from croniter import croniter

from .config import config

logger = logging.getLogger(__name__)

DEFAULT_CRON_SCHEDULE = "*/30 * * * *"
# Seconds between checks for shutdown and schedule changes while waiting
SLEEP_INTERVAL = 10


class DeckhandScheduler:
    """
    A scheduler that runs update passes at times given by a cron expression.

    Passes run in-process in a background thread. A lock guarantees that two
    passes never overlap, even if run_now() is called while a scheduled pass is
    still in progress. The cron expression is re-read from the configuration
    between runs, so schedule changes take effect without a restart.
    """

    def __init__(self, run_callback):
        """
        Initialize the scheduler.

        Parameters:
            run_callback (callable): Function executing one update pass
        """
        self.run_callback = run_callback
        self.running = False
        self.thread = None
        self.current_schedule = None
        self._lock = threading.Lock()
        self._run_lock = threading.Lock()

    def start(self):
        """
        Start the scheduler in a background thread.

        If general.runOnStartup is enabled, a pass is executed right away before
        waiting for the first scheduled time.
        """
        if self.running:
            logger.warning("Scheduler is already running")
            return

        self.running = True
        self.thread = threading.Thread(target=self.run_scheduler, daemon=True)
        self.thread.start()
        logger.info("deckhand scheduler started")

    def stop(self):
        """
        Stop the scheduler and wait for the scheduler thread to finish.

        An update pass in progress cannot be interrupted safely, so this blocks
        until it has completed.
        """
        with self._lock:
            self.running = False
        if self.thread and self.thread is not threading.current_thread():
            if self._run_lock.locked():
                logger.info("Waiting for the running update pass to finish")
            with self._run_lock:
                pass
            self.thread.join(timeout=5)
        logger.info("deckhand scheduler stopped")

    def run_scheduler(self):
        """
        Main scheduler loop.

        Calculates the next run time from the cron expression, sleeps in short
        intervals until then and executes a pass. An invalid cron expression is
        logged and retried after five minutes.
        """
        if config.general.runOnStartup:
            logger.info("Executing update pass on startup")
            self.run_now()

        while self.running:
            try:
                config.reload()
                cron_expression = self.get_cron_expression()

                if cron_expression != self.current_schedule:
                    logger.info(f"Scheduler schedule set to: {cron_expression}")
                    self.current_schedule = cron_expression

                try:
                    next_run = self.get_next_run()
                except (ValueError, KeyError) as e:
                    logger.error(f"Invalid cron expression '{cron_expression}': {e}")
                    self._sleep(300)
                    continue

                logger.info(f"Next update pass scheduled for: {next_run.strftime('%Y-%m-%d %H:%M:%S')}")
                if self._wait_until(next_run) and self.running:
                    logger.info("Executing scheduled update pass")
                    self.run_now()

            except Exception as e:
                logger.error(f"Error in scheduler loop: {e}")
                self._sleep(60)

    def run_now(self):
        """
        Execute one update pass unless another one is still running.

        Returns:
            bool: True if the pass was executed, False if it was skipped
        """
        if not self._run_lock.acquire(blocking=False):
            logger.warning("Previous update pass is still running - skipping this run")
            return False

        try:
            self.run_callback()
        except Exception as e:
            logger.error(f"Update pass failed: {e}")
        finally:
            self._run_lock.release()
        return True

    def get_cron_expression(self):
        return getattr(config.general, "cronSchedule", None) or DEFAULT_CRON_SCHEDULE

    def get_next_run(self, now=None):
        """
        Get the next scheduled run time.

        Parameters:
            now (datetime, optional): Reference time, defaults to the current time

        Returns:
            datetime: Next scheduled run time

        Raises:
            ValueError: If the cron expression is invalid
        """
        return croniter(self.get_cron_expression(), now or datetime.now()).get_next(datetime)

    def _wait_until(self, next_run):
        """
        Sleep until next_run in short intervals.

        Returns:
            bool: True if next_run was reached, False if the schedule changed or the
                  scheduler was stopped in the meantime
        """
        while self.running:
            sleep_seconds = (next_run - datetime.now()).total_seconds()
            if sleep_seconds <= 0:
                return True
            time.sleep(min(sleep_seconds, SLEEP_INTERVAL))

            config.reload()
            current_cron = self.get_cron_expression()
            if current_cron != self.current_schedule:
                logger.info(f"Schedule changed during sleep to: {current_cron}")
                return False
        return False

    def _sleep(self, seconds):
        end = time.monotonic() + seconds
        while self.running and time.monotonic() < end:
            time.sleep(min(SLEEP_INTERVAL, end - time.monotonic()))


# Global scheduler instance
_scheduler = None


def get_scheduler(run_callback=None):
    """
    Get the global scheduler instance, creating it on first use.

    Parameters:
        run_callback (callable): Function executing one update pass (required on first call)

    Returns:
        DeckhandScheduler: The global scheduler instance
    """
    global _scheduler
    if _scheduler is None:
        if run_callback is None:
            raise ValueError("A run callback is required to create the scheduler")
        _scheduler = DeckhandScheduler(run_callback)
    return _scheduler


def start_scheduler(run_callback):
    """Start the global scheduler running run_callback on the configured schedule."""
    get_scheduler(run_callback).start()


def stop_scheduler():
    """Stop the global scheduler and drop the instance."""
    global _scheduler
    if _scheduler:
        _scheduler.stop()
        _scheduler = None


def is_scheduler_running():
    """
    Check if the scheduler is running.

    Returns:
        bool: True if the scheduler is currently running, False otherwise
    """
    return _scheduler is not None and _scheduler.running
