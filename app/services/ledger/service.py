"""
Entitlement ledger: the only writer of credits_balance / trial_generations_used.

Every movement is a single conditional UPDATE on the account row plus one
append-only CreditTransaction in the same transaction. The UPDATE holds the
row lock until commit, so concurrent debits on one account serialize in the
database and at most one of them can take the last unit.

Methods flush; the caller owns the commit.
"""
import logging
from dataclasses import dataclass

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from app.models.credit_transaction import KIND_CREDIT, KIND_TRIAL, CreditTransaction
from app.models.user_profile import PLAN_FREE, UserProfile
from app.services.errors import NotFound
from app.utils.metrics import ledger_operations_total

logger = logging.getLogger(__name__)

ERROR_INSUFFICIENT_CREDITS = "insufficient_credits"
ERROR_TRIAL_EXHAUSTED = "trial_exhausted"


@dataclass(frozen=True)
class Entitlement:
    allowed: bool
    kind: str  # trial | credit
    remaining: int


@dataclass(frozen=True)
class DebitResult:
    success: bool
    new_balance: int
    error_message: str | None
    kind: str
    amount: int = 0

    @property
    def is_trial(self) -> bool:
        return self.kind == KIND_TRIAL


def check_entitlement(account: UserProfile) -> Entitlement:
    """Can this account generate right now. Pure read."""
    if account.plan == PLAN_FREE:
        remaining = account.trials_remaining
        return Entitlement(allowed=remaining > 0, kind=KIND_TRIAL, remaining=remaining)
    balance = account.credits_balance or 0
    return Entitlement(allowed=balance > 0, kind=KIND_CREDIT, remaining=balance)


class LedgerService:
    def __init__(self, db: Session):
        self.db = db

    def check_entitlement(self, account: UserProfile) -> Entitlement:
        return check_entitlement(account)

    def debit(
        self,
        account_id: str,
        amount: int,
        reason: str,
        reference_id: str | None = None,
    ) -> DebitResult:
        """
        Consume entitlement: trial generations on the free plan, credits otherwise.
        On insufficient entitlement nothing is written and success=False.
        """
        if amount <= 0:
            raise ValueError("debit amount must be positive")

        plan = self.db.execute(
            select(UserProfile.plan).where(UserProfile.id == account_id)
        ).scalar_one_or_none()
        if plan is None:
            raise NotFound("User profile not found")

        if plan == PLAN_FREE:
            kind = KIND_TRIAL
            stmt = (
                update(UserProfile)
                .where(
                    UserProfile.id == account_id,
                    UserProfile.plan == PLAN_FREE,
                    UserProfile.trial_generations_used + amount <= UserProfile.trial_generations_limit,
                )
                .values(trial_generations_used=UserProfile.trial_generations_used + amount)
            )
        else:
            kind = KIND_CREDIT
            stmt = (
                update(UserProfile)
                .where(
                    UserProfile.id == account_id,
                    UserProfile.plan != PLAN_FREE,
                    UserProfile.credits_balance >= amount,
                )
                .values(credits_balance=UserProfile.credits_balance - amount)
            )

        result = self.db.execute(stmt.execution_options(synchronize_session="fetch"))
        if result.rowcount == 0:
            error = ERROR_TRIAL_EXHAUSTED if kind == KIND_TRIAL else ERROR_INSUFFICIENT_CREDITS
            ledger_operations_total.labels(operation="debit_rejected", kind=kind).inc()
            logger.info(
                "ledger_debit_rejected",
                extra={"user_id": account_id, "kind": kind, "amount": amount, "error": error},
            )
            return DebitResult(
                success=False,
                new_balance=self._balance(account_id, kind),
                error_message=error,
                kind=kind,
            )

        new_balance = self._balance(account_id, kind)
        self._append(account_id, kind, -amount, new_balance, reason, reference_id)
        ledger_operations_total.labels(operation="debit", kind=kind).inc()
        logger.info(
            "ledger_debit",
            extra={
                "user_id": account_id,
                "kind": kind,
                "amount": amount,
                "balance_after": new_balance,
                "reason": reason,
            },
        )
        return DebitResult(success=True, new_balance=new_balance, error_message=None, kind=kind, amount=amount)

    def credit(
        self,
        account_id: str,
        amount: int,
        reason: str,
        reference_id: str | None = None,
    ) -> int:
        """Add paid credits. Not idempotent: callers guard against double invocation."""
        if amount < 0:
            raise ValueError("credit amount must be non-negative")

        result = self.db.execute(
            update(UserProfile)
            .where(UserProfile.id == account_id)
            .values(credits_balance=UserProfile.credits_balance + amount)
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount == 0:
            raise NotFound("User profile not found")

        new_balance = self._balance(account_id, KIND_CREDIT)
        self._append(account_id, KIND_CREDIT, amount, new_balance, reason, reference_id)
        ledger_operations_total.labels(operation="credit", kind=KIND_CREDIT).inc()
        logger.info(
            "ledger_credit",
            extra={"user_id": account_id, "amount": amount, "balance_after": new_balance, "reason": reason},
        )
        return new_balance

    def refund(self, account_id: str, debit: DebitResult, reference_id: str | None = None) -> int:
        """Reverse exactly one successful debit (trial or credit)."""
        if not debit.success or debit.amount <= 0:
            raise ValueError("only a successful debit can be refunded")

        if debit.kind == KIND_CREDIT:
            new_balance = self.credit(account_id, debit.amount, "refund", reference_id)
            ledger_operations_total.labels(operation="refund", kind=KIND_CREDIT).inc()
            return new_balance

        result = self.db.execute(
            update(UserProfile)
            .where(
                UserProfile.id == account_id,
                UserProfile.trial_generations_used >= debit.amount,
            )
            .values(trial_generations_used=UserProfile.trial_generations_used - debit.amount)
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount == 0:
            raise NotFound("User profile not found or trial counter already at zero")

        new_balance = self._balance(account_id, KIND_TRIAL)
        self._append(account_id, KIND_TRIAL, debit.amount, new_balance, "refund", reference_id)
        ledger_operations_total.labels(operation="refund", kind=KIND_TRIAL).inc()
        logger.info(
            "ledger_trial_refund",
            extra={"user_id": account_id, "amount": debit.amount, "balance_after": new_balance},
        )
        return new_balance

    def history(self, account_id: str, limit: int = 50) -> list[CreditTransaction]:
        return (
            self.db.query(CreditTransaction)
            .filter(CreditTransaction.user_id == account_id)
            .order_by(CreditTransaction.created_at.desc())
            .limit(limit)
            .all()
        )

    def _balance(self, account_id: str, kind: str) -> int:
        row = self.db.execute(
            select(
                UserProfile.credits_balance,
                UserProfile.trial_generations_used,
                UserProfile.trial_generations_limit,
            ).where(UserProfile.id == account_id)
        ).one()
        if kind == KIND_TRIAL:
            return max(0, row.trial_generations_limit - row.trial_generations_used)
        return row.credits_balance

    def _append(
        self,
        account_id: str,
        kind: str,
        amount: int,
        balance_after: int,
        reason: str,
        reference_id: str | None,
    ) -> CreditTransaction:
        entry = CreditTransaction(
            user_id=account_id,
            kind=kind,
            amount=amount,
            balance_after=balance_after,
            reason=reason,
            reference_id=reference_id,
        )
        self.db.add(entry)
        self.db.flush()
        return entry
