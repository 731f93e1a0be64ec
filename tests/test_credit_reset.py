"""
Monthly reset: allotments per plan, designer consults, idempotent re-runs.
"""
from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from app.models.credit_transaction import CreditTransaction
from app.models.designer_consult import DesignerConsult
from app.models.subscription import Subscription
from app.models.subscription_renewal import SubscriptionRenewal
from app.models.user_profile import UserProfile
from app.services.credits_reset.config import get_monthly_credits, period_key
from app.services.credits_reset.service import CreditResetService
from app.services.ledger.service import LedgerService

MARCH = datetime(2026, 3, 1, 0, 0, tzinfo=timezone.utc)
APRIL = datetime(2026, 4, 1, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def subscribe(db):
    def _sub(account_id, plan, status="active"):
        db.add(Subscription(user_id=account_id, plan=plan, status=status))
        db.commit()

    return _sub


def test_plan_allotments():
    assert get_monthly_credits("starter") == 15
    assert get_monthly_credits("pro") == 50
    assert get_monthly_credits("free") is None
    assert period_key(MARCH) == "2026-03"


def test_credits_active_subscribers_only(db, make_account, subscribe):
    starter = make_account(plan="starter", credits=2)
    pro = make_account(plan="pro", credits=0)
    lapsed = make_account(plan="starter", credits=1)
    subscribe(starter.id, "starter")
    subscribe(pro.id, "pro")
    subscribe(lapsed.id, "starter", status="canceled")

    summary = CreditResetService(db).run(now=MARCH)

    assert (summary.processed, summary.failed, summary.total) == (2, 0, 2)
    assert db.get(UserProfile, starter.id).credits_balance == 17
    assert db.get(UserProfile, pro.id).credits_balance == 50
    assert db.get(UserProfile, lapsed.id).credits_balance == 1
    txn = db.query(CreditTransaction).filter_by(user_id=pro.id).one()
    assert txn.reason == "subscription_renewal"
    assert txn.amount == 50


def test_pro_gets_one_designer_consult(db, make_account, subscribe):
    pro = make_account(plan="pro")
    starter = make_account(plan="starter")
    subscribe(pro.id, "pro")
    subscribe(starter.id, "starter")

    summary = CreditResetService(db).run(now=MARCH)

    consult = db.query(DesignerConsult).filter_by(user_id=pro.id).one()
    assert consult.month_key == "2026-03"
    assert consult.iterations_limit == 5
    assert consult.iterations_used == 0
    assert consult.used is False
    assert db.query(DesignerConsult).filter_by(user_id=starter.id).count() == 0
    assert summary.consults_created == 1


def test_second_run_in_same_month_is_noop(db, make_account, subscribe):
    pro = make_account(plan="pro")
    subscribe(pro.id, "pro")
    service = CreditResetService(db)

    service.run(now=MARCH)
    second = service.run(now=MARCH)

    assert second.processed == 0
    assert second.skipped == 1
    assert db.get(UserProfile, pro.id).credits_balance == 50
    assert db.query(DesignerConsult).filter_by(user_id=pro.id).count() == 1
    assert db.query(SubscriptionRenewal).filter_by(user_id=pro.id).count() == 1


def test_existing_consult_left_unchanged(db, make_account, subscribe):
    pro = make_account(plan="pro")
    subscribe(pro.id, "pro")
    db.add(DesignerConsult(user_id=pro.id, month_key="2026-03", iterations_used=3, iterations_limit=5))
    db.commit()

    CreditResetService(db).run(now=MARCH)

    consult = db.query(DesignerConsult).filter_by(user_id=pro.id).one()
    assert consult.iterations_used == 3


def test_upgrade_to_pro_mid_period_gets_consult(db, make_account, subscribe):
    account = make_account(plan="starter")
    subscribe(account.id, "starter")
    service = CreditResetService(db)
    service.run(now=MARCH)

    db.query(Subscription).filter_by(user_id=account.id).update({Subscription.plan: "pro"})
    db.commit()
    summary = service.run(now=MARCH)

    assert summary.skipped == 1
    assert summary.consults_created == 1
    assert db.query(DesignerConsult).filter_by(user_id=account.id, month_key="2026-03").count() == 1
    # Credits were already granted for March.
    assert db.get(UserProfile, account.id).credits_balance == 15


def test_consult_granted_when_credit_fails(db, make_account, subscribe):
    pro = make_account(plan="pro")
    subscribe(pro.id, "pro")
    service = CreditResetService(db)

    with patch.object(LedgerService, "credit", side_effect=RuntimeError("ledger unavailable")):
        first = service.run(now=MARCH)

    assert first.failed == 1
    assert first.consults_created == 1
    assert db.get(UserProfile, pro.id).credits_balance == 0

    second = service.run(now=MARCH)

    assert second.processed == 1
    assert second.consults_created == 0
    assert db.get(UserProfile, pro.id).credits_balance == 50
    assert db.query(DesignerConsult).filter_by(user_id=pro.id).count() == 1


def test_next_month_renews_again(db, make_account, subscribe):
    starter = make_account(plan="starter")
    subscribe(starter.id, "starter")
    service = CreditResetService(db)

    service.run(now=MARCH)
    service.run(now=APRIL)

    assert db.get(UserProfile, starter.id).credits_balance == 30


def test_account_failure_does_not_abort_batch(db, make_account, subscribe):
    good = make_account(plan="starter")
    subscribe(good.id, "starter")
    subscribe("deleted-account", "pro")  # subscription row without a profile

    summary = CreditResetService(db).run(now=MARCH)

    assert summary.processed == 1
    assert summary.failed == 1
    assert summary.total == 2
    assert db.get(UserProfile, good.id).credits_balance == 15
    # failed account left no marker, so a later run retries it
    assert db.query(SubscriptionRenewal).filter_by(user_id="deleted-account").count() == 0


def test_no_subscribers(db):
    summary = CreditResetService(db).run(now=MARCH)
    assert summary.total == 0
    assert summary.processed == 0
