"""
Base classes and types for image generation providers.
Used by factory, runner and all providers (mock, openai, stability).
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ImageSize:
    width: int = 1024
    height: int = 1024

    def as_text(self) -> str:
        return f"{self.width}x{self.height}"


@dataclass
class ImageGenerationRequest:
    """Request for image generation."""
    prompt: str
    size: ImageSize = field(default_factory=ImageSize)
    style: str | None = None
    model: str | None = None
    # Variations only: source image of the parent asset
    source_image_url: str | None = None


@dataclass
class ImageGenerationResponse:
    """Response from image generation."""
    id: str
    url: str
    provider: str
    model: str
    revised_prompt: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "url": self.url,
            "provider": self.provider,
            "model": self.model,
            "revised_prompt": self.revised_prompt,
            "metadata": self.metadata,
        }


class GenerationFailed(Exception):
    """Raised when a provider call errors, times out or returns no image.

    kind is a FailureType value; detail holds vendor fields for logging.
    """
    def __init__(self, message: str, kind: str = "provider_error", detail: dict[str, Any] | None = None):
        super().__init__(message)
        self.kind = kind
        self.detail = detail or {}


def map_size_to_preset(
    size: ImageSize,
    landscape: ImageSize,
    portrait: ImageSize,
    square: ImageSize,
) -> ImageSize:
    """Round a requested size to a vendor's fixed aspect-ratio presets."""
    if size.width > size.height:
        return landscape
    if size.height > size.width:
        return portrait
    return square


class ImageGenerationProvider(ABC):
    """Base class for image generation providers."""

    name: str = "base"

    def __init__(self, config: dict) -> None:
        self.config = config

    @abstractmethod
    def is_available(self) -> bool:
        """Check if provider is configured and available."""
        pass

    @abstractmethod
    def get_supported_models(self) -> list[str]:
        """Return list of supported model names."""
        pass

    @abstractmethod
    def generate(self, request: ImageGenerationRequest) -> ImageGenerationResponse:
        """Generate image from request. Raises GenerationFailed on any failure."""
        pass

    def create_variation(self, request: ImageGenerationRequest) -> ImageGenerationResponse:
        """Override if the vendor has a native variation endpoint; default regenerates from the prompt."""
        return self.generate(request)
