"""
Shared FastAPI dependencies: current account, image provider, rate limiter.
"""
from functools import lru_cache

from fastapi import Request

from app.core.config import settings
from app.services.auth.tokens import verify_access_token
from app.services.errors import Unauthenticated
from app.services.generation.rate_limit import RateLimiter, build_rate_limiter
from app.services.image_generation import ImageGenerationProvider, get_image_provider


def get_current_account_id(request: Request) -> str:
    auth = request.headers.get("Authorization", "")
    if not auth.startswith("Bearer "):
        raise Unauthenticated()
    account_id = verify_access_token(auth[7:].strip())
    if not account_id:
        raise Unauthenticated()
    return account_id


def get_provider() -> ImageGenerationProvider:
    return get_image_provider()


@lru_cache
def get_rate_limiter() -> RateLimiter:
    """One limiter per process so in-memory counters are shared by all requests."""
    return build_rate_limiter(settings)
