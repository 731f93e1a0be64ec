"""
Monthly credit top-up for active subscribers.

Each account is renewed in its own transaction: renewal marker plus ledger
credit. The marker is unique per (account, period), so a second run in the same
month skips accounts already renewed. Pro accounts get the period's designer
consult in a separate transaction, inserted if absent on every run.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.designer_consult import DesignerConsult
from app.models.subscription import Subscription
from app.models.subscription_renewal import SubscriptionRenewal
from app.models.user_profile import UserProfile
from app.services.credits_reset.config import (
    PRO_PLAN,
    get_consult_iterations,
    get_monthly_credits,
    get_renewable_plans,
    period_key,
)
from app.services.ledger.service import LedgerService
from app.utils.metrics import credit_reset_accounts_total

logger = logging.getLogger(__name__)

RENEWAL_REASON = "subscription_renewal"


@dataclass
class ResetSummary:
    processed: int = 0
    failed: int = 0
    skipped: int = 0
    total: int = 0
    consults_created: int = 0

    def as_dict(self) -> dict:
        return {
            "processed": self.processed,
            "failed": self.failed,
            "skipped": self.skipped,
            "total": self.total,
            "consults_created": self.consults_created,
        }


class CreditResetService:
    def __init__(self, db: Session):
        self.db = db
        self.ledger = LedgerService(db)

    def active_subscriptions(self) -> list[tuple[str, str]]:
        rows = (
            self.db.query(Subscription.user_id, Subscription.plan)
            .filter(
                Subscription.status == "active",
                Subscription.plan.in_(get_renewable_plans()),
            )
            .order_by(Subscription.user_id)
            .all()
        )
        # One renewal per account even if it holds several active rows.
        seen: dict[str, str] = {}
        for user_id, plan in rows:
            seen.setdefault(user_id, plan)
        return list(seen.items())

    def run(self, now: datetime | None = None) -> ResetSummary:
        now = now or datetime.now(timezone.utc)
        month_key = period_key(now)
        subscriptions = self.active_subscriptions()
        summary = ResetSummary(total=len(subscriptions))

        for user_id, plan in subscriptions:
            credits = get_monthly_credits(plan)
            if credits is None:
                summary.skipped += 1
                continue
            try:
                renewed = self._renew(user_id, plan, credits, month_key, now)
            except Exception as e:
                self.db.rollback()
                summary.failed += 1
                credit_reset_accounts_total.labels(result="failed").inc()
                logger.error(
                    "credit_reset_account_failed",
                    extra={"user_id": user_id, "month_key": month_key, "error": str(e)},
                )
            else:
                if renewed:
                    summary.processed += 1
                    credit_reset_accounts_total.labels(result="processed").inc()
                else:
                    summary.skipped += 1
                    credit_reset_accounts_total.labels(result="skipped").inc()

            # Independent of the renewal outcome.
            if plan == PRO_PLAN and self._grant_consult(user_id, month_key):
                summary.consults_created += 1

        logger.info(
            "credit_reset_done",
            extra={
                "month_key": month_key,
                "processed": summary.processed,
                "failed": summary.failed,
                "skipped": summary.skipped,
                "total": summary.total,
            },
        )
        return summary

    def _renew(self, user_id: str, plan: str, credits: int, month_key: str, now: datetime) -> bool:
        """Renew one account and commit. False if it was already renewed this period."""
        if self._already_renewed(user_id, month_key):
            return False

        self.db.add(
            SubscriptionRenewal(user_id=user_id, period_key=month_key, plan=plan, credits_granted=credits)
        )
        try:
            self.db.flush()
        except IntegrityError:
            self.db.rollback()
            if self._already_renewed(user_id, month_key):
                # Concurrent run inserted the marker first.
                return False
            raise

        balance = self.ledger.credit(user_id, credits, RENEWAL_REASON, reference_id=month_key)
        self.db.query(UserProfile).filter(UserProfile.id == user_id).update(
            {UserProfile.credits_reset_at: now}, synchronize_session=False
        )
        self.db.commit()
        logger.info(
            "credit_reset_account",
            extra={"user_id": user_id, "month_key": month_key, "amount": credits, "balance_after": balance},
        )
        return True

    def _already_renewed(self, user_id: str, month_key: str) -> bool:
        row = (
            self.db.query(SubscriptionRenewal.id)
            .filter(SubscriptionRenewal.user_id == user_id, SubscriptionRenewal.period_key == month_key)
            .first()
        )
        return row is not None

    def _grant_consult(self, user_id: str, month_key: str) -> bool:
        """Insert this period's designer consult in its own transaction. True if one was created."""
        try:
            created = self._ensure_consult(user_id, month_key)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(
                "designer_consult_failed",
                extra={"user_id": user_id, "month_key": month_key, "error": str(e)},
            )
            return False
        if created:
            logger.info("designer_consult_created", extra={"user_id": user_id, "month_key": month_key})
        return created

    def _ensure_consult(self, user_id: str, month_key: str) -> bool:
        existing = (
            self.db.query(DesignerConsult.id)
            .filter(DesignerConsult.user_id == user_id, DesignerConsult.month_key == month_key)
            .first()
        )
        if existing:
            return False
        self.db.add(
            DesignerConsult(
                user_id=user_id,
                month_key=month_key,
                used=False,
                iterations_used=0,
                iterations_limit=get_consult_iterations(),
            )
        )
        self.db.flush()
        return True
