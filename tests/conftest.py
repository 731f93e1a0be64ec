"""
Shared fixtures: SQLite database per test, account/project factories, stub provider.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("AUTH_TOKEN_SECRET", "test-token-secret-0123456789")
os.environ.setdefault("AI_IMAGE_PROVIDER", "mock")
os.environ.setdefault("RATE_LIMIT_BACKEND", "memory")
os.environ.setdefault("CRON_SECRET", "cron-test-secret")

import time
from types import SimpleNamespace
from uuid import uuid4

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.db.base import Base
from app.models.asset import Asset  # noqa: F401
from app.models.credit_transaction import CreditTransaction  # noqa: F401
from app.models.designer_consult import DesignerConsult  # noqa: F401
from app.models.generation import Generation  # noqa: F401
from app.models.project import Project
from app.models.subscription import Subscription  # noqa: F401
from app.models.subscription_renewal import SubscriptionRenewal  # noqa: F401
from app.models.user_profile import UserProfile
from app.services.image_generation.base import (
    GenerationFailed,
    ImageGenerationProvider,
    ImageGenerationRequest,
    ImageGenerationResponse,
)


@pytest.fixture
def engine(tmp_path):
    # File-backed so that separate sessions get separate connections.
    eng = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_account(db):
    def _make(plan="free", credits=0, trials_used=0, trials_limit=None, account_id=None):
        account = UserProfile(
            id=account_id or str(uuid4()),
            email=f"{uuid4().hex[:10]}@example.com",
            plan=plan,
            credits_balance=credits,
            trial_generations_used=trials_used,
        )
        if trials_limit is not None:
            account.trial_generations_limit = trials_limit
        db.add(account)
        db.commit()
        return account

    return _make


@pytest.fixture
def make_project(db):
    def _make(account, **fields):
        values = {
            "brand_name": "Nakhla",
            "industry": "coffee",
            "keywords": ["palm", "heritage"],
            "style": {"mood": "minimal", "complexity": "simple"},
        }
        values.update(fields)
        project = Project(user_id=account.id, **values)
        db.add(project)
        db.commit()
        return project

    return _make


class StubProvider(ImageGenerationProvider):
    """Scriptable provider: succeed, raise, return nothing, or stall."""

    name = "stub"

    def __init__(self, mode="ok", delay=0.0, message="vendor exploded"):
        super().__init__({})
        self.mode = mode
        self.delay = delay
        self.message = message
        self.requests: list[ImageGenerationRequest] = []
        self.variation_requests: list[ImageGenerationRequest] = []

    def is_available(self) -> bool:
        return True

    def get_supported_models(self) -> list[str]:
        return ["stub-1"]

    def generate(self, request):
        self.requests.append(request)
        return self._respond(request)

    def create_variation(self, request):
        self.variation_requests.append(request)
        return self._respond(request)

    def _respond(self, request):
        if self.delay:
            time.sleep(self.delay)
        if self.mode == "fail":
            raise GenerationFailed(self.message, kind="provider_error")
        if self.mode == "crash":
            raise RuntimeError(self.message)
        url = "" if self.mode == "empty" else f"https://img.example.com/{uuid4().hex}.png"
        return ImageGenerationResponse(
            id=f"stub_{uuid4().hex[:8]}",
            url=url,
            provider=self.name,
            model="stub-1",
            revised_prompt=request.prompt,
        )


@pytest.fixture
def stub_provider():
    return StubProvider()


@pytest.fixture
def service_settings():
    return SimpleNamespace(generation_cost_credits=1, generation_timeout_seconds=5.0)


@pytest.fixture
def stub_cls():
    return StubProvider
