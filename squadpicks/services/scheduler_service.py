"""
Squad Picks Scheduler Service

Drives the pick lifecycle in the background using APScheduler: watches the
pick window for open/lock transitions, grades completed games and applies
the penalty rule to finished weeks.
"""

import atexit
import logging
from datetime import datetime, timezone

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from squadpicks import db
from squadpicks.services import grading, locking, penalty
from squadpicks.utils.timezone_utils import get_utc_time
from squadpicks.utils.week_window import get_week_window

logger = logging.getLogger(__name__)


class SchedulerService:
    """Manages background jobs for the pick lifecycle"""

    def __init__(self, app=None):
        self.scheduler = None
        self.app = app
        self.is_running = False
        self.last_window_state = None
        self.job_stats = {
            "last_run": None,
            "total_runs": 0,
            "successful_runs": 0,
            "failed_runs": 0,
            "last_error": None,
            "picks_graded": 0,
            "pick_sets_locked": 0,
            "penalties_created": 0,
        }

        if app:
            self.init_app(app)

    def init_app(self, app):
        """Initialize scheduler with Flask app"""
        self.app = app
        self.scheduler = BackgroundScheduler(
            daemon=True, timezone=app.config.get("TIMEZONE", "UTC")
        )

        atexit.register(self.shutdown)

        if app.config.get("SCHEDULER_ENABLED", True):
            self.start()

    def start(self):
        """Start the background scheduler"""
        if self.is_running:
            return

        try:
            self.scheduler.remove_all_jobs()
            self._add_core_jobs()
            self.scheduler.start()
            self.is_running = True

            logger.info("Scheduler started successfully")

        except Exception as e:
            logger.error(f"Failed to start scheduler: {e}")
            raise

    def stop(self):
        """Stop the background scheduler"""
        if not self.is_running:
            return

        try:
            self.scheduler.shutdown(wait=False)
            self.is_running = False
            logger.info("Scheduler stopped")

        except Exception as e:
            logger.error(f"Error stopping scheduler: {e}")

    def shutdown(self):
        """Graceful shutdown"""
        self.stop()

    def _add_core_jobs(self):
        """Add core scheduled jobs"""

        # Open/lock transitions (every minute)
        self.scheduler.add_job(
            func=self._check_window,
            trigger=IntervalTrigger(minutes=1),
            id="window_check",
            name="Pick Window Check",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=30,
        )

        # Grade completed games
        self.scheduler.add_job(
            func=self._grading_sweep,
            trigger=IntervalTrigger(
                minutes=self.app.config.get("GRADING_SWEEP_MINUTES", 5)
            ),
            id="grading_sweep",
            name="Grading Sweep",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=60,
        )

        # Daily penalty backfill for finished weeks (reference timezone)
        self.scheduler.add_job(
            func=self._penalty_backfill,
            trigger=CronTrigger(hour=self.app.config.get("BACKFILL_HOUR", 6), minute=0),
            id="penalty_backfill",
            name="Penalty Backfill",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=3600,
        )

        logger.info("Core scheduled jobs added")

    def _check_window(self):
        """Notify on window transitions and lock submitted pick sets"""
        with self.app.app_context():
            try:
                from squadpicks.socketio_handlers import (
                    notify_week_locked,
                    notify_week_opened,
                )

                now = get_utc_time()
                state = get_week_window().window_state(now)
                previous = self.last_window_state
                self.last_window_state = state

                # Catch-up is idempotent; 0 when nothing is left to lock
                locked = locking.lock_week(state.week_id, now) if state.is_locked else 0
                self.job_stats["pick_sets_locked"] += locked

                if previous is not None:
                    same_week = previous.week_id == state.week_id
                    if state.is_open and not (same_week and previous.is_open):
                        notify_week_opened(state)
                    if state.is_locked and not (same_week and previous.is_locked):
                        notify_week_locked(state.week_id, locked)

                self._update_stats(True)

            except Exception as e:
                db.session.rollback()
                self._update_stats(False, e)
                logger.error(f"Error in window check: {e}", exc_info=True)

    def _grading_sweep(self):
        """Grade every pick whose game has a final result"""
        with self.app.app_context():
            try:
                counts = grading.sweep()
                self.job_stats["picks_graded"] += counts["graded"]
                self._update_stats(True)

            except Exception as e:
                db.session.rollback()
                self._update_stats(False, e)
                logger.error(f"Error in grading sweep: {e}", exc_info=True)

    def _penalty_backfill(self):
        """Record missed weeks as 0-3 once all their games are final"""
        with self.app.app_context():
            try:
                logger.info("Running penalty backfill...")

                results = penalty.backfill_completed_weeks()
                created = sum(counts["created"] for counts in results.values())
                self.job_stats["penalties_created"] += created

                self._update_stats(True)
                logger.info(
                    f"Penalty backfill completed: {created} pick sets over "
                    f"{len(results)} weeks"
                )

            except Exception as e:
                db.session.rollback()
                self._update_stats(False, e)
                logger.error(f"Error in penalty backfill: {e}", exc_info=True)

    def _update_stats(self, success, error=None):
        """Update job statistics"""
        self.job_stats["last_run"] = datetime.now(timezone.utc)
        self.job_stats["total_runs"] += 1

        if success:
            self.job_stats["successful_runs"] += 1
            self.job_stats["last_error"] = None
        else:
            self.job_stats["failed_runs"] += 1
            self.job_stats["last_error"] = str(error)

    def get_status(self):
        """Get scheduler status information"""
        jobs = []
        if self.scheduler:
            for job in self.scheduler.get_jobs():
                next_run = job.next_run_time
                jobs.append(
                    {
                        "id": job.id,
                        "name": job.name,
                        "next_run": next_run.isoformat() if next_run else None,
                        "trigger": str(job.trigger),
                    }
                )

        stats = dict(self.job_stats)
        if stats["last_run"]:
            stats["last_run"] = stats["last_run"].isoformat()

        return {"is_running": self.is_running, "jobs": jobs, "stats": stats}

    def run_job(self, job_id):
        """Manually trigger a job by id"""
        jobs = {
            "window_check": self._check_window,
            "grading_sweep": self._grading_sweep,
            "penalty_backfill": self._penalty_backfill,
        }
        if job_id not in jobs:
            return False, f"Unknown job: {job_id}"

        jobs[job_id]()
        if self.job_stats["last_error"]:
            return False, f"Job {job_id} failed: {self.job_stats['last_error']}"
        return True, f"Job {job_id} completed"


# Global scheduler instance
scheduler_service = SchedulerService()
