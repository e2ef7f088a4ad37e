"""
Survivor Results Scheduler Service

Runs the elimination writer periodically in the background using APScheduler.
"""

import atexit
import logging
from datetime import datetime, timezone

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from quinielas import db
from quinielas.services.elimination_service import process_survivor_results

logger = logging.getLogger(__name__)

JOB_ID = "process_survivor_results"


class SchedulerService:
    """Manages the background survivor results job"""

    def __init__(self, app=None):
        self.scheduler = None
        self.app = app
        self.is_running = False
        self.interval_minutes = None
        self.run_stats = self._empty_stats()

        if app:
            self.init_app(app)

    @staticmethod
    def _empty_stats():
        return {
            "last_run": None,
            "total_runs": 0,
            "successful_runs": 0,
            "failed_runs": 0,
            "last_error": None,
            "last_result": None,
            "participants_updated": 0,
            "eliminations_processed": 0,
        }

    def init_app(self, app):
        """Initialize scheduler with Flask app"""
        self.app = app
        self.scheduler = BackgroundScheduler(daemon=True, timezone="UTC")
        self.interval_minutes = self._interval_minutes(app.config)

        # Register shutdown
        atexit.register(self.shutdown)

        # Start scheduler if enabled
        if app.config.get("SCHEDULER_ENABLED", True):
            self.start()

    @staticmethod
    def _interval_minutes(config):
        """Job interval, never shorter than the fixtures cache TTL"""
        interval = int(config.get("SURVIVOR_RESULTS_INTERVAL_MINUTES", 30))
        cache_ttl_minutes = -(-int(config.get("FIXTURES_CACHE_TTL", 1800)) // 60)
        if interval < cache_ttl_minutes:
            logger.warning(
                f"Survivor results interval {interval}m is shorter than the fixtures "
                f"cache TTL, using {cache_ttl_minutes}m"
            )
            interval = cache_ttl_minutes
        return max(1, interval)

    def start(self):
        """Start the background scheduler"""
        if self.is_running:
            return

        try:
            # Clear any existing jobs
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
        self.scheduler.add_job(
            func=self._process_survivor_results,
            trigger=IntervalTrigger(minutes=self.interval_minutes),
            id=JOB_ID,
            name="Process Survivor Results",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=300,
        )

        logger.info(
            f"Survivor results job scheduled every {self.interval_minutes} minutes"
        )

    def _process_survivor_results(self):
        """Recompute survivor games and persist status changes"""
        with self.app.app_context():
            try:
                result = process_survivor_results()
                self._update_stats(True, result)

            except Exception as e:
                db.session.rollback()
                self._update_stats(False)
                self.run_stats["last_error"] = str(e)
                logger.error(f"Error processing survivor results: {e}", exc_info=True)

    def _update_stats(self, success, result=None):
        """Update run statistics"""
        self.run_stats["last_run"] = datetime.now(timezone.utc)
        self.run_stats["total_runs"] += 1

        if success:
            self.run_stats["successful_runs"] += 1
            self.run_stats["last_error"] = None
            self.run_stats["last_result"] = result
            if result:
                self.run_stats["participants_updated"] += result.get(
                    "participants_updated", 0
                )
                self.run_stats["eliminations_processed"] += result.get(
                    "eliminations_processed", 0
                )
        else:
            self.run_stats["failed_runs"] += 1

    def get_status(self):
        """Get scheduler status information"""
        jobs = []
        if self.scheduler:
            for job in self.scheduler.get_jobs():
                next_run = getattr(job, "next_run_time", None)
                jobs.append(
                    {
                        "id": job.id,
                        "name": job.name,
                        "next_run": next_run.isoformat() if next_run else None,
                        "trigger": str(job.trigger),
                    }
                )

        stats = dict(self.run_stats)
        if stats["last_run"]:
            stats["last_run"] = stats["last_run"].isoformat()

        return {
            "is_running": self.is_running,
            "interval_minutes": self.interval_minutes,
            "jobs": jobs,
            "stats": stats,
        }

    def force_run(self):
        """Manually trigger the survivor results job"""
        if self.app is None:
            return False, "Scheduler is not initialised"

        self._process_survivor_results()
        if self.run_stats["last_error"]:
            return False, f"Manual run failed: {self.run_stats['last_error']}"
        return True, "Survivor results processed"


# Global scheduler instance
scheduler_service = SchedulerService()
