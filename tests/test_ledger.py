"""
Entitlement ledger: conditional debits, ledger rows, refunds.
"""
import threading

import pytest
from sqlalchemy import create_engine, event, func
from sqlalchemy.orm import sessionmaker

from app.core.config import settings
from app.db.base import Base
from app.models.credit_transaction import CreditTransaction
from app.models.user_profile import UserProfile
from app.services.errors import NotFound
from app.services.ledger.service import LedgerService, check_entitlement


def _rows(db, account_id, kind=None):
    q = db.query(CreditTransaction).filter(CreditTransaction.user_id == account_id)
    if kind:
        q = q.filter(CreditTransaction.kind == kind)
    return q.order_by(CreditTransaction.created_at).all()


class TestCheckEntitlement:
    def test_free_plan_with_trials_left(self, make_account):
        account = make_account(plan="free", trials_used=1)
        ent = check_entitlement(account)
        assert ent.allowed is True
        assert ent.kind == "trial"
        assert ent.remaining == 1

    def test_free_plan_exhausted_ignores_credits(self, make_account):
        account = make_account(plan="free", credits=10, trials_used=2)
        ent = check_entitlement(account)
        assert ent.allowed is False
        assert ent.kind == "trial"

    def test_paid_plan_uses_credits(self, make_account):
        account = make_account(plan="pro", credits=3)
        ent = check_entitlement(account)
        assert ent.allowed is True
        assert ent.kind == "credit"
        assert ent.remaining == 3

    def test_trial_limit_follows_settings(self, monkeypatch, make_account):
        monkeypatch.setattr(settings, "trial_generations_limit", 5)
        account = make_account(plan="free", trials_used=2)
        assert account.trial_generations_limit == 5
        ent = check_entitlement(account)
        assert ent.allowed is True
        assert ent.remaining == 3

    def test_paid_plan_zero_credits(self, make_account):
        account = make_account(plan="starter", credits=0)
        assert check_entitlement(account).allowed is False


class TestDebit:
    def test_credit_debit_writes_ledger_row(self, db, make_account):
        account = make_account(plan="starter", credits=5)
        result = LedgerService(db).debit(account.id, 1, "generation", "asset-1")
        db.commit()

        assert result.success is True
        assert result.new_balance == 4
        assert result.kind == "credit"
        rows = _rows(db, account.id)
        assert len(rows) == 1
        assert rows[0].amount == -1
        assert rows[0].balance_after == 4
        assert rows[0].reference_id == "asset-1"
        assert db.get(UserProfile, account.id).credits_balance == 4

    def test_trial_debit_increments_used_counter(self, db, make_account):
        account = make_account(plan="free", trials_used=0)
        result = LedgerService(db).debit(account.id, 1, "generation")
        db.commit()

        assert result.success is True
        assert result.kind == "trial"
        assert result.new_balance == 1
        db.refresh(account)
        assert account.trial_generations_used == 1
        assert _rows(db, account.id, "trial")[0].balance_after == 1

    def test_insufficient_credits_has_no_side_effects(self, db, make_account):
        account = make_account(plan="pro", credits=0)
        result = LedgerService(db).debit(account.id, 1, "generation")
        db.commit()

        assert result.success is False
        assert result.error_message == "insufficient_credits"
        assert result.new_balance == 0
        assert _rows(db, account.id) == []

    def test_trial_exhausted(self, db, make_account):
        account = make_account(plan="free", trials_used=2)
        result = LedgerService(db).debit(account.id, 1, "generation")
        assert result.success is False
        assert result.error_message == "trial_exhausted"
        db.refresh(account)
        assert account.trial_generations_used == 2

    def test_unknown_account(self, db):
        with pytest.raises(NotFound):
            LedgerService(db).debit("missing", 1, "generation")

    def test_non_positive_amount_rejected(self, db, make_account):
        account = make_account(plan="pro", credits=5)
        with pytest.raises(ValueError):
            LedgerService(db).debit(account.id, 0, "generation")

    def test_stale_reads_cannot_overdraw(self, session_factory, make_account):
        """Two handlers both saw balance=1; only one debit may succeed."""
        account = make_account(plan="starter", credits=1)
        first, second = session_factory(), session_factory()
        try:
            assert check_entitlement(first.get(UserProfile, account.id)).allowed
            assert check_entitlement(second.get(UserProfile, account.id)).allowed

            r1 = LedgerService(first).debit(account.id, 1, "generation")
            first.commit()
            r2 = LedgerService(second).debit(account.id, 1, "generation")
            second.commit()

            assert [r1.success, r2.success] == [True, False]
            assert r2.error_message == "insufficient_credits"
        finally:
            first.close()
            second.close()

        check = session_factory()
        try:
            assert check.get(UserProfile, account.id).credits_balance == 0
            assert check.query(CreditTransaction).filter_by(user_id=account.id).count() == 1
        finally:
            check.close()


    def test_concurrent_debits_for_last_credit(self, tmp_path):
        """Several threads race for one credit; exactly one debit lands."""
        eng = create_engine(
            f"sqlite:///{tmp_path / 'race.db'}",
            connect_args={"check_same_thread": False, "timeout": 30},
        )

        # pysqlite defers BEGIN; take the write lock up front so writers queue instead of deadlocking.
        @event.listens_for(eng, "connect")
        def _no_implicit_begin(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(eng, "begin")
        def _begin_immediate(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

        Base.metadata.create_all(eng)
        factory = sessionmaker(bind=eng, autocommit=False, autoflush=False)
        setup = factory()
        setup.add(UserProfile(id="racer", email="racer@example.com", plan="starter", credits_balance=1))
        setup.commit()
        setup.close()

        workers = 4
        barrier = threading.Barrier(workers)
        results = []
        errors = []
        lock = threading.Lock()

        def attempt():
            session = factory()
            try:
                barrier.wait(timeout=10)
                result = LedgerService(session).debit("racer", 1, "generation")
                session.commit()
                with lock:
                    results.append(result.success)
            except Exception as e:
                session.rollback()
                with lock:
                    errors.append(e)
            finally:
                session.close()

        threads = [threading.Thread(target=attempt) for _ in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        check = factory()
        try:
            assert errors == []
            assert sorted(results) == [False, False, False, True]
            assert check.get(UserProfile, "racer").credits_balance == 0
            assert check.query(CreditTransaction).filter_by(user_id="racer").count() == 1
        finally:
            check.close()
            eng.dispose()


class TestCreditAndRefund:
    def test_credit_adds_balance(self, db, make_account):
        account = make_account(plan="pro", credits=2)
        balance = LedgerService(db).credit(account.id, 50, "subscription_renewal")
        db.commit()
        assert balance == 52
        assert _rows(db, account.id)[0].amount == 50

    def test_negative_credit_rejected(self, db, make_account):
        account = make_account(plan="pro", credits=2)
        with pytest.raises(ValueError):
            LedgerService(db).credit(account.id, -1, "manual")

    def test_credit_unknown_account(self, db):
        with pytest.raises(NotFound):
            LedgerService(db).credit("missing", 5, "manual")

    def test_refund_credit_debit(self, db, make_account):
        account = make_account(plan="starter", credits=3)
        ledger = LedgerService(db)
        debit = ledger.debit(account.id, 1, "generation", "a1")
        balance = ledger.refund(account.id, debit, "a1")
        db.commit()
        assert balance == 3
        assert sorted(r.reason for r in _rows(db, account.id)) == ["generation", "refund"]

    def test_refund_trial_debit(self, db, make_account):
        account = make_account(plan="free")
        ledger = LedgerService(db)
        debit = ledger.debit(account.id, 1, "generation")
        remaining = ledger.refund(account.id, debit)
        db.commit()
        assert remaining == 2
        db.refresh(account)
        assert account.trial_generations_used == 0

    def test_refund_requires_successful_debit(self, db, make_account):
        account = make_account(plan="pro", credits=0)
        ledger = LedgerService(db)
        failed = ledger.debit(account.id, 1, "generation")
        with pytest.raises(ValueError):
            ledger.refund(account.id, failed)


def test_ledger_rows_reconcile_with_account(db, make_account):
    account = make_account(plan="pro", credits=0)
    ledger = LedgerService(db)
    ledger.credit(account.id, 10, "purchase")
    for _ in range(4):
        ledger.debit(account.id, 1, "generation")
    ledger.debit(account.id, 100, "generation")  # rejected, no row
    db.commit()

    rows = _rows(db, account.id, "credit")
    total = db.query(func.sum(CreditTransaction.amount)).filter_by(user_id=account.id).scalar()
    db.refresh(account)
    assert account.credits_balance == 6
    assert total == 6
    assert min(r.balance_after for r in rows) == 6
    history = ledger.history(account.id, limit=2)
    assert len(history) == 2
