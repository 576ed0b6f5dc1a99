# checkout/tasks/expire.py
from datetime import datetime, timedelta, timezone

from checkout.celery_worker import celery_app
from checkout.data.database import SessionLocal
from checkout.repos.attempt_repo import AttemptRepo
from checkout.services.lock_service import LockService
from checkout.utils.settings import INTENT_TTL_SECONDS
from checkout.utils.logging import get_logger

logger = get_logger(__name__)


def expire_attempts(db, lock_service: LockService, ttl_seconds: int = INTENT_TTL_SECONDS) -> int:
    """Marks attempts stuck before reconciliation as abandoned and frees their sessions."""
    repo = AttemptRepo(db)
    cutoff = datetime.now(timezone.utc) - timedelta(seconds=ttl_seconds)

    attempts = repo.list_stale(cutoff)
    logger.info(f"Found {len(attempts)} attempts to expire")

    for attempt in attempts:
        repo.mark_abandoned(attempt)
        try:
            lock_service.release_checkout_lock(
                session_id=attempt.session_id,
                attempt_id=attempt.attempt_id,
            )
        except Exception as e:
            logger.warning(
                f"Failed to release checkout lock for session {attempt.session_id}: {e}"
            )

    db.commit()
    return len(attempts)


@celery_app.task(name="checkout.tasks.expire.expire_attempts_task")
def expire_attempts_task():
    logger.info("Expire attempts task started")

    db = SessionLocal()
    try:
        return expire_attempts(db, LockService())
    finally:
        db.close()
