"""
Monthly reset config: typed wrappers over app.core.config.settings.
"""
from __future__ import annotations

from datetime import datetime

from app.core.config import settings

PRO_PLAN = "pro"


def get_monthly_credits(plan: str) -> int | None:
    """Monthly allotment for a renewable plan, None for plans without one."""
    return settings.monthly_credits_by_plan.get(plan)


def get_renewable_plans() -> list[str]:
    return sorted(settings.monthly_credits_by_plan)


def get_consult_iterations() -> int:
    return settings.designer_consult_iterations


def period_key(now: datetime) -> str:
    """Billing period of a timestamp, YYYY-MM (UTC)."""
    return now.strftime("%Y-%m")
