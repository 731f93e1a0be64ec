"""
Generation orchestrator: one request = at most one debit, one asset, one provider call.

    RECEIVED -> RATE_LIMITED | REJECTED | PROCEEDING
    PROCEEDING -> debit (committed) -> asset in_progress (committed)
               -> provider call -> done | failed (committed)

The debit commits before the provider is called and is not returned on a
provider failure: the unit pays for the attempt. It is returned only when the
asset row itself cannot be created.
"""
import logging
import time
from dataclasses import dataclass
from uuid import uuid4

from sqlalchemy import update
from sqlalchemy.orm import Session

from app.models.asset import (
    ASSET_TYPES,
    STATUS_DONE,
    STATUS_FAILED,
    STATUS_IN_PROGRESS,
    TERMINAL_STATUSES,
    Asset,
)
from app.models.generation import Generation
from app.models.project import Project
from app.models.user_profile import UserProfile
from app.services.errors import (
    EntitlementExhausted,
    LedgerInconsistency,
    NotFound,
    ProviderFailure,
    RateLimited,
    ValidationError,
)
from app.services.generation.rate_limit import RateLimiter
from app.services.generation.sizes import get_size_for_asset_type
from app.services.image_generation import (
    GenerationFailed,
    ImageGenerationProvider,
    ImageGenerationRequest,
    ImageGenerationResponse,
    generate_with_timeout,
)
from app.services.ledger.service import DebitResult, LedgerService
from app.services.projects.service import ProjectService
from app.services.prompts.builder import (
    build_prompt_from_project,
    build_variation_prompt,
    enhance_prompt_for_arabic,
)
from app.utils.metrics import entitlement_rejected_total, generations_total, rate_limited_total

logger = logging.getLogger(__name__)

DEFAULT_MOOD = "modern"


@dataclass(frozen=True)
class GenerationOutcome:
    asset_id: str
    image_url: str
    generation_id: str
    debit: DebitResult


@dataclass(frozen=True)
class _Attempt:
    account_id: str
    project_id: str
    asset_id: str
    asset_type: str
    is_free: bool


class GenerationService:
    def __init__(self, db: Session, provider: ImageGenerationProvider, rate_limiter: RateLimiter, settings):
        self.db = db
        self.provider = provider
        self.rate_limiter = rate_limiter
        self.settings = settings
        self.ledger = LedgerService(db)
        self.projects = ProjectService(db)

    def generate(
        self,
        account_id: str,
        project_id: str,
        asset_type: str,
        additional_prompt: str | None = None,
    ) -> GenerationOutcome:
        if asset_type not in ASSET_TYPES:
            raise ValidationError(f"Invalid asset type: {asset_type}")
        if not project_id:
            raise ValidationError("projectId is required")

        account = self._admit(account_id)
        project = self.projects.get_owned(account_id, project_id)

        prompt = build_prompt_from_project(project, asset_type, additional_prompt)
        if project.brand_name_ar:
            prompt = enhance_prompt_for_arabic(prompt, project.brand_name_ar)

        return self._run(
            account=account,
            project=project,
            asset_type=asset_type,
            prompt=prompt,
            request_meta={
                "asset_type": asset_type,
                "additional_prompt": additional_prompt,
            },
        )

    def generate_variation(
        self,
        account_id: str,
        asset_id: str,
        prompt_delta: str | None = None,
    ) -> GenerationOutcome:
        if not asset_id:
            raise ValidationError("assetId is required")

        account = self._admit(account_id)
        parent = (
            self.db.query(Asset)
            .filter(Asset.id == asset_id, Asset.user_id == account_id)
            .one_or_none()
        )
        if not parent:
            raise NotFound("Asset not found")
        if parent.status != STATUS_DONE or not parent.image_url:
            raise ValidationError("Only completed assets can be varied")
        project = self.projects.get_owned(account_id, parent.project_id)

        prompt = build_variation_prompt(parent.prompt or build_prompt_from_project(project, parent.type), prompt_delta)
        return self._run(
            account=account,
            project=project,
            asset_type=parent.type,
            prompt=prompt,
            request_meta={
                "asset_type": parent.type,
                "parent_asset_id": parent.id,
                "prompt_delta": prompt_delta,
            },
            parent=parent,
        )

    def _admit(self, account_id: str) -> UserProfile:
        """Rate limit, then entitlement. Nothing is written on rejection."""
        if not self.rate_limiter.hit(account_id):
            rate_limited_total.inc()
            logger.info("generation_rate_limited", extra={"user_id": account_id})
            raise RateLimited()

        account = self.db.get(UserProfile, account_id)
        if not account:
            raise NotFound("User profile not found")

        entitlement = self.ledger.check_entitlement(account)
        if not entitlement.allowed:
            entitlement_rejected_total.labels(kind=entitlement.kind).inc()
            logger.info(
                "generation_entitlement_rejected",
                extra={"user_id": account_id, "kind": entitlement.kind},
            )
            raise EntitlementExhausted.for_kind(entitlement.kind)
        return account

    def _run(
        self,
        account: UserProfile,
        project: Project,
        asset_type: str,
        prompt: str,
        request_meta: dict,
        parent: Asset | None = None,
    ) -> GenerationOutcome:
        # Everything read from ORM rows is captured before the debit commit expires them.
        attempt = _Attempt(
            account_id=account.id,
            project_id=project.id,
            asset_id=str(uuid4()),
            asset_type=asset_type,
            is_free=account.is_free,
        )
        mood = (project.style or {}).get("mood") or DEFAULT_MOOD
        parent_id = parent.id if parent else None
        version = (parent.version + 1) if parent else 1
        source_image_url = parent.image_url if parent else None

        debit = self.ledger.debit(
            attempt.account_id,
            self.settings.generation_cost_credits,
            reason="generation",
            reference_id=attempt.asset_id,
        )
        if not debit.success:
            # Lost a race with a concurrent request after the entitlement check.
            self.db.rollback()
            entitlement_rejected_total.labels(kind=debit.kind).inc()
            raise EntitlementExhausted.for_kind(debit.kind)
        self.db.commit()

        asset = self._create_asset(attempt, prompt, debit, version, parent_id)

        request = ImageGenerationRequest(
            prompt=prompt,
            size=get_size_for_asset_type(asset_type),
            style=mood,
            source_image_url=source_image_url,
        )
        started = time.monotonic()
        try:
            response = generate_with_timeout(
                self.provider,
                request,
                self.settings.generation_timeout_seconds,
                variation=parent is not None,
            )
        except GenerationFailed as e:
            elapsed_ms = int((time.monotonic() - started) * 1000)
            self._record_failure(attempt, asset, request_meta, prompt, debit, e, elapsed_ms)
            raise ProviderFailure(asset_id=attempt.asset_id, error_kind=e.kind) from e

        elapsed_ms = int((time.monotonic() - started) * 1000)
        generation_id = self._record_success(attempt, asset, request_meta, prompt, debit, response, elapsed_ms)
        return GenerationOutcome(
            asset_id=attempt.asset_id,
            image_url=response.url,
            generation_id=generation_id,
            debit=debit,
        )

    def _create_asset(
        self,
        attempt: _Attempt,
        prompt: str,
        debit: DebitResult,
        version: int,
        parent_id: str | None,
    ) -> Asset:
        try:
            asset = Asset(
                id=attempt.asset_id,
                project_id=attempt.project_id,
                user_id=attempt.account_id,
                type=attempt.asset_type,
                status=STATUS_IN_PROGRESS,
                prompt=prompt,
                is_watermarked=attempt.is_free,
                version=version,
                parent_asset_id=parent_id,
                meta={},
            )
            self.db.add(asset)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(
                "asset_create_failed",
                extra={"user_id": attempt.account_id, "asset_id": attempt.asset_id, "error": str(e)},
            )
            self._compensate(attempt.account_id, debit, attempt.asset_id)
            raise LedgerInconsistency() from e
        return asset

    def _compensate(self, account_id: str, debit: DebitResult, asset_id: str) -> None:
        try:
            self.ledger.refund(account_id, debit, reference_id=asset_id)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.critical(
                "ledger_refund_failed",
                extra={
                    "user_id": account_id,
                    "asset_id": asset_id,
                    "kind": debit.kind,
                    "amount": debit.amount,
                    "error": str(e),
                },
            )
            raise LedgerInconsistency("Failed to create asset and refund the charge") from e
        logger.warning(
            "generation_debit_refunded",
            extra={"user_id": account_id, "asset_id": asset_id, "kind": debit.kind, "amount": debit.amount},
        )

    def _record_success(
        self,
        attempt: _Attempt,
        asset: Asset,
        request_meta: dict,
        prompt: str,
        debit: DebitResult,
        response: ImageGenerationResponse,
        elapsed_ms: int,
    ) -> str:
        generation_id = str(uuid4())
        provider = response.provider or self.provider.name
        asset.status = STATUS_DONE
        asset.image_url = response.url
        asset.model = response.model
        asset.meta = {"provider": response.provider, "revised_prompt": response.revised_prompt}
        self.db.add(asset)
        self.db.add(
            Generation(
                id=generation_id,
                user_id=attempt.account_id,
                project_id=attempt.project_id,
                asset_id=attempt.asset_id,
                request={**request_meta, "prompt": prompt},
                response=response.as_dict(),
                provider=provider,
                model=response.model,
                credits_used=debit.amount,
                is_trial=debit.is_trial,
                processing_time_ms=elapsed_ms,
            )
        )
        self._commit_terminal(attempt)
        generations_total.labels(asset_type=attempt.asset_type, status=STATUS_DONE).inc()
        logger.info(
            "generation_succeeded",
            extra={
                "user_id": attempt.account_id,
                "project_id": attempt.project_id,
                "asset_id": attempt.asset_id,
                "asset_type": attempt.asset_type,
                "provider": provider,
                "latency_ms": elapsed_ms,
            },
        )
        return generation_id

    def _record_failure(
        self,
        attempt: _Attempt,
        asset: Asset,
        request_meta: dict,
        prompt: str,
        debit: DebitResult,
        error: GenerationFailed,
        elapsed_ms: int,
    ) -> None:
        message = str(error)
        asset.status = STATUS_FAILED
        asset.meta = {"error": message, "error_kind": error.kind}
        self.db.add(asset)
        self.db.add(
            Generation(
                user_id=attempt.account_id,
                project_id=attempt.project_id,
                asset_id=attempt.asset_id,
                request={**request_meta, "prompt": prompt},
                response=None,
                provider=self.provider.name,
                credits_used=debit.amount,
                is_trial=debit.is_trial,
                processing_time_ms=elapsed_ms,
                error_message=message,
                error_kind=error.kind,
            )
        )
        self._commit_terminal(attempt)
        generations_total.labels(asset_type=attempt.asset_type, status=STATUS_FAILED).inc()
        logger.warning(
            "generation_failed",
            extra={
                "user_id": attempt.account_id,
                "project_id": attempt.project_id,
                "asset_id": attempt.asset_id,
                "asset_type": attempt.asset_type,
                "provider": self.provider.name,
                "error_kind": error.kind,
                "error": message,
                "latency_ms": elapsed_ms,
            },
        )

    def _commit_terminal(self, attempt: _Attempt) -> None:
        """Commit the terminal asset state, or at least move the asset out of in_progress."""
        try:
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.critical(
                "generation_record_failed",
                extra={"user_id": attempt.account_id, "asset_id": attempt.asset_id, "error": str(e)},
            )
            self._mark_failed(attempt, str(e))
            raise

    def _mark_failed(self, attempt: _Attempt, message: str) -> None:
        try:
            self.db.execute(
                update(Asset)
                .where(Asset.id == attempt.asset_id, Asset.status.notin_(sorted(TERMINAL_STATUSES)))
                .values(status=STATUS_FAILED, meta={"error": message, "error_kind": "persistence_error"})
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.critical(
                "asset_stuck_in_progress",
                extra={"user_id": attempt.account_id, "asset_id": attempt.asset_id, "error": str(e)},
            )
            return
        generations_total.labels(asset_type=attempt.asset_type, status=STATUS_FAILED).inc()
