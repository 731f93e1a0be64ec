"""
Failure normalization for image providers.
Every provider error ends up as GenerationFailed with one of these kinds,
which is stored on the failed asset and generation row.
"""
from enum import Enum

import httpx


class FailureType(str, Enum):

    PROVIDER_ERROR = "provider_error"  # vendor rejected or errored (5xx, unknown)
    CLIENT_ERROR = "client_error"  # 4xx except 429: bad key, content policy, bad params
    RATE_LIMITED = "vendor_rate_limited"  # vendor 429
    TRANSPORT = "transport"  # connection reset, DNS, TLS
    TIMEOUT = "timeout"  # vendor or runner deadline exceeded
    NO_IMAGE = "no_image"  # success status but no image in payload


def classify_failure(http_status: int | None, exc: BaseException | None = None) -> FailureType:
    """Classify failure from HTTP status and/or the raised exception."""
    if isinstance(exc, (httpx.TimeoutException, TimeoutError)):
        return FailureType.TIMEOUT
    if http_status is not None:
        if http_status == 429:
            return FailureType.RATE_LIMITED
        if 400 <= http_status < 500:
            return FailureType.CLIENT_ERROR
        return FailureType.PROVIDER_ERROR
    if isinstance(exc, httpx.TransportError):
        return FailureType.TRANSPORT
    return FailureType.PROVIDER_ERROR
