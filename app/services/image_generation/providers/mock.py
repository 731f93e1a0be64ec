"""
Mock provider for local development and tests.
Returns placeholder image URLs; no vendor credentials required.
"""
import hashlib
import time
from datetime import datetime, timezone
from uuid import uuid4

from app.services.image_generation.base import (
    ImageGenerationProvider,
    ImageGenerationRequest,
    ImageGenerationResponse,
)


class MockImageProvider(ImageGenerationProvider):
    """Placeholder images from a seeded picture service."""

    name = "mock"

    def __init__(self, config: dict):
        super().__init__(config)
        self.delay_seconds = float(config.get("delay_seconds", 0.0))
        self.base_url = (config.get("base_url") or "https://picsum.photos/seed").rstrip("/")

    def is_available(self) -> bool:
        return True

    def get_supported_models(self) -> list[str]:
        return ["placeholder"]

    def generate(self, request: ImageGenerationRequest) -> ImageGenerationResponse:
        return self._placeholder(request, id_prefix="mock", is_variation=False)

    def create_variation(self, request: ImageGenerationRequest) -> ImageGenerationResponse:
        return self._placeholder(request, id_prefix="mock_var", is_variation=True)

    def _placeholder(self, request: ImageGenerationRequest, id_prefix: str, is_variation: bool) -> ImageGenerationResponse:
        if self.delay_seconds > 0:
            time.sleep(self.delay_seconds)

        image_id = f"{id_prefix}_{uuid4().hex[:12]}"
        seed = int(hashlib.sha1(image_id.encode("utf-8")).hexdigest()[:8], 16) % 1000
        url = f"{self.base_url}/{seed}/{request.size.width}/{request.size.height}"

        metadata = {
            "provider": self.name,
            "model": "placeholder",
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "size": request.size.as_text(),
            "style": request.style,
        }
        if is_variation:
            metadata["is_variation"] = True
            metadata["original_image"] = request.source_image_url

        return ImageGenerationResponse(
            id=image_id,
            url=url,
            provider=self.name,
            model="placeholder",
            revised_prompt=request.prompt,
            metadata=metadata,
        )
