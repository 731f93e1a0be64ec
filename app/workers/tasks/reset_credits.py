"""
Celery periodic task: monthly credit top-up for active subscribers (beat: 1st of month, 00:00 UTC).
"""
import logging

from app.core.celery_app import celery_app
from app.db.session import SessionLocal
from app.services.credits_reset.service import CreditResetService

logger = logging.getLogger(__name__)


@celery_app.task(name="app.workers.tasks.reset_credits.reset_monthly_credits")
def reset_monthly_credits() -> dict:
    """Run the reset; safe to re-run within the same month."""
    db = SessionLocal()
    try:
        summary = CreditResetService(db).run()
        return summary.as_dict()
    except Exception:
        db.rollback()
        logger.exception("reset_monthly_credits_error")
        return {"processed": 0, "failed": 0, "skipped": 0, "total": 0, "error": "exception"}
    finally:
        db.close()
