from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_current_account_id
from app.db.session import get_db
from app.models.user_profile import UserProfile
from app.schemas.account import EntitlementOut
from app.services.errors import NotFound
from app.services.ledger.service import check_entitlement

router = APIRouter(prefix="/api/account", tags=["account"])


@router.get("/entitlement", response_model=EntitlementOut)
def get_entitlement(
    account_id: str = Depends(get_current_account_id),
    db: Session = Depends(get_db),
) -> EntitlementOut:
    account = db.get(UserProfile, account_id)
    if not account:
        raise NotFound("User profile not found")
    entitlement = check_entitlement(account)
    return EntitlementOut(
        plan=account.plan,
        allowed=entitlement.allowed,
        kind=entitlement.kind,
        credits_balance=account.credits_balance or 0,
        trials_remaining=account.trials_remaining,
    )
