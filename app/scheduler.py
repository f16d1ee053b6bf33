from apscheduler.schedulers.background import BackgroundScheduler
import atexit
from datetime import datetime
from app.extensions import db
from app.rate_limiter import cleanup_expired_cache
from app.services.tracking import recompute_trending_scores

scheduler = BackgroundScheduler()


def refresh_trending(app):
    """Recompute every active salon's trending score."""
    current_time_str = datetime.now().strftime("%Y-%m-%d %H:%M:%S")

    with app.app_context():
        try:
            count = recompute_trending_scores(db.session)
            print(
                f"[SCHEDULER] {current_time_str} - Trending scores updated for {count} salon(s)"
            )
            return count
        except Exception as e:
            print(f"[SCHEDULER] {current_time_str} - Error updating trending scores: {e}")
            db.session.rollback()
            return 0
        finally:
            db.session.remove()


def init_scheduler(app):
    """Initialize the APScheduler scheduler with Flask app context."""
    hours = app.config.get("TRENDING_REFRESH_HOURS", 24)

    scheduler.add_job(
        refresh_trending,
        "interval",
        hours=hours,
        args=[app],
        id="refresh_trending",
        replace_existing=True,
        next_run_time=datetime.now(),
    )
    scheduler.add_job(
        cleanup_expired_cache,
        "interval",
        minutes=1,
        id="rate_limit_cleanup",
        replace_existing=True,
    )

    if not scheduler.running:
        scheduler.start()
        print("[SCHEDULER] Scheduler started")
    else:
        print("[SCHEDULER] Scheduler already running (skipping duplicate start)")

    # Shut down the scheduler when exiting the app
    atexit.register(lambda: scheduler.shutdown(wait=False) if scheduler.running else None)
