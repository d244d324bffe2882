import logging

from app.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(
    name="app.tasks.leaderboard.snapshot_leaderboards", ignore_result=True
)
def snapshot_leaderboards() -> None:
    """Periodic task persisting the weekly and monthly leaderboards.

    Each period is committed on its own so one failure does not lose the other.
    """
    from app.db import SessionLocal
    from app.models.gamification import LeaderboardPeriod
    from app.services.gamification import gamification

    db = SessionLocal()
    try:
        count = 0
        for period in (LeaderboardPeriod.weekly, LeaderboardPeriod.monthly):
            try:
                gamification.snapshot(db, period)
                db.commit()
                count += 1
            except Exception as e:
                db.rollback()
                logger.warning("Failed to snapshot %s leaderboard: %s", period.value, e)
        logger.info("Stored %d leaderboard snapshots", count)
    except Exception as e:
        logger.exception("Failed to snapshot leaderboards: %s", e)
    finally:
        db.close()
