"""
Factory for creating image generation providers based on configuration.
"""
from functools import lru_cache
import logging

from app.services.image_generation.base import ImageGenerationProvider
from app.services.image_generation.providers.mock import MockImageProvider
from app.services.image_generation.providers.openai import OpenAIProvider
from app.services.image_generation.providers.stability import StabilityProvider

logger = logging.getLogger(__name__)


class ImageProviderFactory:
    """Factory for creating image generation providers."""

    PROVIDERS = {
        "mock": MockImageProvider,
        "openai": OpenAIProvider,
        "stability": StabilityProvider,
    }

    @classmethod
    def create(cls, provider_name: str, config: dict) -> ImageGenerationProvider:
        """
        Create provider instance by name.

        Args:
            provider_name: Name of provider (mock, openai, stability)
            config: Provider-specific configuration dict

        Returns:
            Initialized provider instance

        Raises:
            ValueError: If provider name is unknown
        """
        provider_class = cls.PROVIDERS.get(provider_name.lower())

        if not provider_class:
            available = ", ".join(cls.get_available_providers())
            raise ValueError(
                f"Unknown provider: {provider_name}. "
                f"Available providers: {available}"
            )

        logger.info("image_provider_created", extra={"provider": provider_name})
        return provider_class(config)

    @classmethod
    def create_from_settings(cls, settings) -> ImageGenerationProvider:
        """
        Create provider from application settings.

        A vendor selected without its credential falls back to the mock
        provider; the fallback is logged as a warning.
        """
        provider_name = (settings.ai_image_provider or "mock").strip().lower()

        if provider_name == "openai":
            if not settings.openai_api_key:
                return cls._fallback_to_mock(settings, provider_name, "OPENAI_API_KEY")
            config = {
                "api_key": settings.openai_api_key,
                "model": settings.openai_image_model,
                "timeout": settings.openai_request_timeout,
            }
        elif provider_name == "stability":
            if not settings.stability_api_key:
                return cls._fallback_to_mock(settings, provider_name, "STABILITY_API_KEY")
            config = {
                "api_key": settings.stability_api_key,
                "api_url": settings.stability_api_url,
                "engine_id": settings.stability_engine_id,
                "timeout": settings.stability_timeout,
            }
        elif provider_name == "mock":
            config = cls._mock_config(settings)
        else:
            available = ", ".join(cls.get_available_providers())
            raise ValueError(f"Provider {provider_name} not supported. Available providers: {available}")

        return cls.create(provider_name, config)

    @classmethod
    def get_available_providers(cls) -> list[str]:
        """Get list of all available provider names."""
        return list(cls.PROVIDERS.keys())

    @classmethod
    def _fallback_to_mock(cls, settings, requested: str, missing_key: str) -> ImageGenerationProvider:
        logger.warning(
            "image_provider_fallback_to_mock",
            extra={"provider": requested, "reason": f"{missing_key} not set"},
        )
        return cls.create("mock", cls._mock_config(settings))

    @staticmethod
    def _mock_config(settings) -> dict:
        return {
            "delay_seconds": settings.mock_provider_delay_seconds,
            "base_url": settings.mock_image_base_url,
        }


@lru_cache(maxsize=1)
def get_image_provider() -> ImageGenerationProvider:
    """Process-wide provider, built once from settings."""
    from app.core.config import settings

    return ImageProviderFactory.create_from_settings(settings)
