"""Reconcile ticker — fires a membership check on a fixed interval.

A daemon thread runs ``schedule.run_pending()`` about once a second. The
interval is a human-readable expression such as ``"every 5 seconds"``.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable

import schedule

logger = logging.getLogger(__name__)

DEFAULT_SCHEDULE = "every 5 seconds"

_UNITS = {
    "second": "seconds",
    "minute": "minutes",
    "hour": "hours",
}


def parse_interval(scheduler: schedule.Scheduler, expr: str) -> schedule.Job | None:
    """Parse an interval expression into an unscheduled job.

    Supported formats:
        "every 5 seconds"
        "every 1 minute"
        "every 2 hours"
    """
    expr = expr.strip().lower()
    if not expr.startswith("every "):
        return None

    parts = expr[6:].split()
    if len(parts) != 2:
        return None
    try:
        interval = int(parts[0])
    except ValueError:
        return None
    if interval <= 0:
        return None

    unit = _UNITS.get(parts[1].rstrip("s"))  # "seconds" -> "second"
    if unit is None:
        return None
    return getattr(scheduler.every(interval), unit)


class ReconcileTicker:
    """Calls ``on_tick`` on a schedule from a background thread.

    Usage::

        ticker = ReconcileTicker(membership.on_tick, cancel_event)
        ticker.start()
        # ...
        ticker.stop()
    """

    def __init__(
        self,
        on_tick: Callable[[], object],
        cancel_event: threading.Event,
        schedule_expr: str = DEFAULT_SCHEDULE,
    ) -> None:
        """Initialize the ticker.

        Raises:
            ValueError: the schedule expression cannot be parsed.
        """
        self._on_tick = on_tick
        self._cancel_event = cancel_event
        self._schedule_expr = schedule_expr
        self._scheduler = schedule.Scheduler()
        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()

        job = parse_interval(self._scheduler, schedule_expr)
        if job is None:
            raise ValueError(f"Invalid schedule expression: {schedule_expr}")
        job.do(self._fire)

    def _fire(self) -> None:
        if self._cancel_event.is_set():
            return
        try:
            self._on_tick()
        except Exception:
            logger.exception("Channel check failed")

    def start(self, check_interval: float = 1.0) -> None:
        """Start the background ticker thread (daemon)."""
        if self._thread and self._thread.is_alive():
            return  # Already running

        self._stop_event.clear()

        def _loop():
            while not (self._stop_event.is_set() or self._cancel_event.is_set()):
                self._scheduler.run_pending()
                self._stop_event.wait(timeout=check_interval)
            logger.info("Stopping channel checker")

        self._thread = threading.Thread(target=_loop, daemon=True, name="reconcile-ticker")
        self._thread.start()
        logger.info("Channel checker started (%s)", self._schedule_expr)

    def stop(self) -> None:
        """Stop the background ticker thread."""
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=5)
            self._thread = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
