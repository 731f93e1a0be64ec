"""
Image generation service with multi-provider support.
"""
from .base import (
    GenerationFailed,
    ImageGenerationProvider,
    ImageGenerationRequest,
    ImageGenerationResponse,
    ImageSize,
    map_size_to_preset,
)
from .factory import ImageProviderFactory, get_image_provider
from .runner import generate_with_timeout
from .failure_types import FailureType, classify_failure

__all__ = [
    "GenerationFailed",
    "ImageGenerationProvider",
    "ImageGenerationRequest",
    "ImageGenerationResponse",
    "ImageSize",
    "map_size_to_preset",
    "ImageProviderFactory",
    "get_image_provider",
    "generate_with_timeout",
    "FailureType",
    "classify_failure",
]
