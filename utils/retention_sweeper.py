"""Permanent removal of complaints withdrawn longer than the retention window."""
import threading
from datetime import datetime, timedelta
from typing import Optional

from flask import current_app

from extensions import db
from models import WITHDRAWN_STATUS, Complaint
from utils.lifecycle import retention_window


def purge_expired_withdrawals(now: Optional[datetime] = None, retention_days: Optional[int] = None) -> int:
    """Delete every withdrawn complaint past the window; safe to run repeatedly."""
    now = now or datetime.utcnow()
    cutoff = now - retention_window(retention_days)
    expired = Complaint.query.filter(
        Complaint.status == WITHDRAWN_STATUS,
        Complaint.withdrawn_at.isnot(None),
        Complaint.withdrawn_at < cutoff,
    ).all()
    for complaint in expired:
        db.session.delete(complaint)
    db.session.commit()
    return len(expired)


def run_retention_sweep(app) -> None:
    with app.app_context():
        try:
            purged = purge_expired_withdrawals()
            current_app.logger.info("Retention sweep finished", extra={"purged": purged})
        except Exception:  # next scheduled run retries
            db.session.rollback()
            current_app.logger.exception("Retention sweep failed")


class RetentionSweeper:
    """Background thread: one delayed run after start, then a fixed interval."""

    def __init__(self, app, interval: timedelta, initial_delay: float = 15.0) -> None:
        self.app = app
        self.interval = interval
        self.initial_delay = initial_delay
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @classmethod
    def from_config(cls, app) -> "RetentionSweeper":
        return cls(
            app,
            interval=timedelta(hours=float(app.config.get("PURGE_INTERVAL_HOURS", 6))),
            initial_delay=float(app.config.get("PURGE_INITIAL_DELAY_SECONDS", 15)),
        )

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="retention-sweeper", daemon=True)
        self._thread.start()
        self.app.logger.info(
            "Retention sweeper started",
            extra={"interval_seconds": self.interval.total_seconds(), "initial_delay": self.initial_delay},
        )

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def _loop(self) -> None:
        if self._stop.wait(self.initial_delay):
            return
        while True:
            run_retention_sweep(self.app)
            if self._stop.wait(self.interval.total_seconds()):
                return


def start_retention_sweeper(app) -> Optional[RetentionSweeper]:
    """Start the app's sweeper when enabled; returns it, or None when disabled."""
    if not app.config.get("RETENTION_SWEEPER_ENABLED"):
        app.logger.info("Retention sweeper disabled by configuration")
        return None
    sweeper = app.extensions.get("retention_sweeper")
    if sweeper is None:
        sweeper = RetentionSweeper.from_config(app)
        app.extensions["retention_sweeper"] = sweeper
    sweeper.start()
    return sweeper
