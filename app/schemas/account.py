from pydantic import BaseModel


class EntitlementOut(BaseModel):
    plan: str
    allowed: bool
    kind: str  # trial | credit
    credits_balance: int
    trials_remaining: int


class ResetCreditsOut(BaseModel):
    success: bool
    message: str
    processed: int
    failed: int
    skipped: int
    total: int
