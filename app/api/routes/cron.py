"""
HTTP trigger for scheduled jobs (external cron). Bearer CRON_SECRET required in production.
"""
import hmac
import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.session import get_db
from app.schemas.account import ResetCreditsOut
from app.services.credits_reset.service import CreditResetService
from app.services.errors import Unauthenticated

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cron", tags=["cron"])


def verify_cron_secret(request: Request) -> None:
    auth = request.headers.get("Authorization", "")
    expected = f"Bearer {settings.cron_secret}"
    if settings.cron_secret and hmac.compare_digest(auth.encode("utf-8"), expected.encode("utf-8")):
        return
    if settings.is_production:
        logger.warning("cron_unauthorized", extra={"path": request.url.path})
        raise Unauthenticated()


@router.get("/reset-credits", response_model=ResetCreditsOut, dependencies=[Depends(verify_cron_secret)])
def reset_credits(db: Session = Depends(get_db)) -> ResetCreditsOut:
    summary = CreditResetService(db).run()
    if summary.total == 0:
        message = "No active subscriptions to reset"
    else:
        message = "Credit reset complete"
    return ResetCreditsOut(
        success=True,
        message=message,
        processed=summary.processed,
        failed=summary.failed,
        skipped=summary.skipped,
        total=summary.total,
    )
