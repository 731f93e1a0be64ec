"""
OpenAI DALL-E provider for image generation.
"""
import logging
from datetime import datetime, timezone

import openai
from openai import OpenAI

from app.services.image_generation.base import (
    GenerationFailed,
    ImageGenerationProvider,
    ImageGenerationRequest,
    ImageGenerationResponse,
    ImageSize,
    map_size_to_preset,
)
from app.services.image_generation.failure_types import FailureType, classify_failure

logger = logging.getLogger(__name__)

# DALL-E 3 supports only these three sizes
LANDSCAPE = ImageSize(1792, 1024)
PORTRAIT = ImageSize(1024, 1792)
SQUARE = ImageSize(1024, 1024)


class OpenAIProvider(ImageGenerationProvider):
    """OpenAI DALL-E image generation provider."""

    name = "openai"

    def __init__(self, config: dict):
        super().__init__(config)
        self.api_key = config.get("api_key")
        self.timeout = config.get("timeout", 60.0)
        self.default_model = config.get("model") or "dall-e-3"

        if self.api_key:
            # Retries are the caller's decision (a retry is a new charge)
            self.client = OpenAI(api_key=self.api_key, timeout=self.timeout, max_retries=0)
        else:
            self.client = None

    def is_available(self) -> bool:
        """Check if OpenAI is configured."""
        return bool(self.api_key and self.client)

    def get_supported_models(self) -> list[str]:
        """Get supported OpenAI models."""
        return ["dall-e-2", "dall-e-3"]

    def generate(self, request: ImageGenerationRequest) -> ImageGenerationResponse:
        """
        Generate image using OpenAI API.

        Note:
        - dall-e-3: quality/style parameters, revised_prompt in response
        - dall-e-2: plain generation, square sizes only
        """
        if not self.is_available():
            raise GenerationFailed("OpenAI provider not configured", kind=FailureType.CLIENT_ERROR.value)

        model = request.model or self.default_model
        size = map_size_to_preset(request.size, LANDSCAPE, PORTRAIT, SQUARE)
        params = {
            "model": model,
            "prompt": self._enhance_prompt(request.prompt, request.style),
            "n": 1,
            "size": size.as_text() if model == "dall-e-3" else SQUARE.as_text(),
        }
        if model == "dall-e-3":
            params["quality"] = "hd"
            params["style"] = "natural" if request.style == "natural" else "vivid"

        try:
            response = self.client.images.generate(**params)
        except openai.APITimeoutError as e:
            raise GenerationFailed(str(e) or "OpenAI request timed out", kind=FailureType.TIMEOUT.value) from e
        except openai.APIStatusError as e:
            message = _error_message(e)
            raise GenerationFailed(
                message,
                kind=classify_failure(e.status_code).value,
                detail={"http_status": e.status_code},
            ) from e
        except openai.APIConnectionError as e:
            raise GenerationFailed(str(e), kind=FailureType.TRANSPORT.value) from e
        except openai.OpenAIError as e:
            raise GenerationFailed(str(e), kind=FailureType.PROVIDER_ERROR.value) from e

        image = response.data[0] if response.data else None
        if image is None or not image.url:
            raise GenerationFailed("No image in OpenAI response", kind=FailureType.NO_IMAGE.value)

        return ImageGenerationResponse(
            id=f"openai_{int(datetime.now(timezone.utc).timestamp() * 1000)}",
            url=image.url,
            provider=self.name,
            model=model,
            revised_prompt=getattr(image, "revised_prompt", None),
            metadata={
                "provider": self.name,
                "model": model,
                "size": params["size"],
                "generated_at": datetime.now(timezone.utc).isoformat(),
            },
        )

    def _enhance_prompt(self, prompt: str, style: str | None) -> str:
        style_guide = f", in a {style} style" if style else ""
        return f"Professional brand logo design: {prompt}{style_guide}. Clean, vector-style, suitable for branding."


def _error_message(e: "openai.APIStatusError") -> str:
    body = e.body if isinstance(e.body, dict) else {}
    error = body.get("error") if isinstance(body.get("error"), dict) else body
    return (error or {}).get("message") or e.message or "Failed to generate image"
