"""
Stability AI REST provider for image generation.
Supports SDXL text-to-image; images come back inline as base64.
"""
import logging
from datetime import datetime, timezone

import httpx

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

# SDXL 1.0 accepts only a fixed list of dimensions
LANDSCAPE = ImageSize(1344, 768)
PORTRAIT = ImageSize(768, 1344)
SQUARE = ImageSize(1024, 1024)

NEGATIVE_PROMPT = "blurry, low quality, distorted text, ugly"


class StabilityProvider(ImageGenerationProvider):
    """Stability AI API provider."""

    name = "stability"

    def __init__(self, config: dict):
        super().__init__(config)
        self.api_key = config.get("api_key")
        self.api_url = (config.get("api_url") or "https://api.stability.ai/v1").rstrip("/")
        self.engine_id = config.get("engine_id") or "stable-diffusion-xl-1024-v1-0"
        self.timeout = config.get("timeout", 60.0)
        self.transport = config.get("transport")  # httpx transport override (tests)

    def is_available(self) -> bool:
        """Check if Stability is configured."""
        return bool(self.api_key)

    def get_supported_models(self) -> list[str]:
        return ["stable-diffusion-xl-1024-v1-0"]

    def generate(self, request: ImageGenerationRequest) -> ImageGenerationResponse:
        """Generate image using Stability text-to-image endpoint."""
        if not self.is_available():
            raise GenerationFailed("Stability provider not configured", kind=FailureType.CLIENT_ERROR.value)

        engine = request.model or self.engine_id
        size = map_size_to_preset(request.size, LANDSCAPE, PORTRAIT, SQUARE)
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        payload = {
            "text_prompts": [
                {"text": self._enhance_prompt(request.prompt, request.style), "weight": 1},
                {"text": NEGATIVE_PROMPT, "weight": -1},
            ],
            "cfg_scale": 7,
            "width": size.width,
            "height": size.height,
            "samples": 1,
            "steps": 30,
        }
        url = f"{self.api_url}/generation/{engine}/text-to-image"

        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                resp = client.post(url, headers=headers, json=payload)
                resp.raise_for_status()
                result = resp.json()
        except httpx.HTTPStatusError as e:
            try:
                err_body = e.response.json()
            except ValueError:
                err_body = {}
            msg = err_body.get("message") or f"Stability API returned {e.response.status_code}"
            raise GenerationFailed(
                msg,
                kind=classify_failure(e.response.status_code).value,
                detail={"http_status": e.response.status_code, "name": err_body.get("name")},
            ) from e
        except httpx.HTTPError as e:
            raise GenerationFailed(str(e) or type(e).__name__, kind=classify_failure(None, e).value) from e

        artifacts = result.get("artifacts") or []
        artifact = artifacts[0] if artifacts else {}
        finish_reason = artifact.get("finishReason")
        if finish_reason and finish_reason != "SUCCESS":
            raise GenerationFailed(
                f"Stability generation finished with {finish_reason}",
                kind=FailureType.NO_IMAGE.value,
                detail={"finish_reason": finish_reason},
            )
        image_b64 = artifact.get("base64")
        if not image_b64:
            raise GenerationFailed("No image in Stability response", kind=FailureType.NO_IMAGE.value)

        return ImageGenerationResponse(
            id=f"stability_{int(datetime.now(timezone.utc).timestamp() * 1000)}",
            url=f"data:image/png;base64,{image_b64}",
            provider=self.name,
            model=engine,
            metadata={
                "provider": self.name,
                "model": engine,
                "size": size.as_text(),
                "seed": artifact.get("seed"),
                "generated_at": datetime.now(timezone.utc).isoformat(),
            },
        )

    def _enhance_prompt(self, prompt: str, style: str | None) -> str:
        style_guide = f", {style} style" if style else ""
        return f"Professional minimalist logo design, {prompt}{style_guide}, vector art, clean lines, brand identity, high quality"
