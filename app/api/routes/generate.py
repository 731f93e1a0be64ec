"""
Generation API: new asset from a project, or a variation of an existing asset.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_current_account_id, get_provider, get_rate_limiter
from app.core.config import settings
from app.db.session import get_db
from app.schemas.generation import GenerateRequest, GenerateResponse, VariationRequest
from app.services.generation.rate_limit import RateLimiter
from app.services.generation.service import GenerationService
from app.services.image_generation import ImageGenerationProvider

router = APIRouter(prefix="/api/generate", tags=["generate"])


def get_generation_service(
    db: Session = Depends(get_db),
    provider: ImageGenerationProvider = Depends(get_provider),
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
) -> GenerationService:
    return GenerationService(db, provider, rate_limiter, settings)


@router.post("", response_model=GenerateResponse)
def generate_asset(
    body: GenerateRequest,
    account_id: str = Depends(get_current_account_id),
    service: GenerationService = Depends(get_generation_service),
) -> GenerateResponse:
    outcome = service.generate(account_id, body.project_id, body.asset_type, body.additional_prompt)
    return GenerateResponse(asset_id=outcome.asset_id, image_url=outcome.image_url)


@router.post("/variation", response_model=GenerateResponse)
def generate_variation(
    body: VariationRequest,
    account_id: str = Depends(get_current_account_id),
    service: GenerationService = Depends(get_generation_service),
) -> GenerateResponse:
    outcome = service.generate_variation(account_id, body.asset_id, body.prompt_delta)
    return GenerateResponse(asset_id=outcome.asset_id, image_url=outcome.image_url)
