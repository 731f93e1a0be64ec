"""
Runner: one provider call under a hard deadline, with structured logging.
No automatic retry: a retry is a new user request and a new charge.
"""
import logging
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from typing import Callable

from app.services.image_generation.base import (
    GenerationFailed,
    ImageGenerationProvider,
    ImageGenerationRequest,
    ImageGenerationResponse,
)
from app.services.image_generation.failure_types import FailureType
from app.utils.metrics import provider_request_duration_seconds, provider_requests_total

logger = logging.getLogger(__name__)

# Shared pool; a call that outlives its deadline keeps its worker until the
# vendor's own HTTP timeout fires, so size it above the expected concurrency.
_executor = ThreadPoolExecutor(max_workers=16, thread_name_prefix="image-provider")


def generate_with_timeout(
    provider: ImageGenerationProvider,
    request: ImageGenerationRequest,
    timeout_seconds: float,
    *,
    variation: bool = False,
) -> ImageGenerationResponse:
    """
    Call provider.generate (or create_variation) and wait at most timeout_seconds.
    Every failure, including an empty result, surfaces as GenerationFailed.
    """
    call: Callable[[ImageGenerationRequest], ImageGenerationResponse] = (
        provider.create_variation if variation else provider.generate
    )
    started = time.monotonic()
    future = _executor.submit(call, request)
    try:
        result = future.result(timeout=timeout_seconds)
    except FutureTimeoutError:
        future.cancel()
        _observe(provider, started, "timeout")
        raise GenerationFailed(
            f"Image generation timed out after {timeout_seconds:g}s",
            kind=FailureType.TIMEOUT.value,
        )
    except GenerationFailed as e:
        _observe(provider, started, e.kind)
        raise
    except Exception as e:
        _observe(provider, started, FailureType.PROVIDER_ERROR.value)
        raise GenerationFailed(str(e) or type(e).__name__, kind=FailureType.PROVIDER_ERROR.value) from e

    if result is None or not getattr(result, "url", None):
        _observe(provider, started, FailureType.NO_IMAGE.value)
        raise GenerationFailed("Provider returned no image", kind=FailureType.NO_IMAGE.value)

    _observe(provider, started, "success")
    return result


def _observe(provider: ImageGenerationProvider, started: float, outcome: str) -> None:
    elapsed = time.monotonic() - started
    provider_request_duration_seconds.labels(provider=provider.name).observe(elapsed)
    provider_requests_total.labels(provider=provider.name, outcome=outcome).inc()
    logger.info(
        "image_generation_result",
        extra={
            "provider": provider.name,
            "latency_ms": int(elapsed * 1000),
            "error_kind": None if outcome == "success" else outcome,
        },
    )
