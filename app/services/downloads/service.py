"""
Asset download: free plan gets a watermarked PNG, paid plans get the original.
"""
import base64
import binascii
import logging
from dataclasses import dataclass

import httpx
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.asset import Asset
from app.models.user_profile import UserProfile
from app.services.errors import NotFound, ServiceError, ValidationError
from app.utils.watermark import apply_watermark

logger = logging.getLogger(__name__)

FORMAT_MEDIA_TYPES = {
    "png": "image/png",
    "svg": "image/svg+xml",
}


class ImageFetchFailed(ServiceError):
    status_code = 500
    kind = "image_fetch_failed"
    default_message = "Failed to fetch image"


@dataclass(frozen=True)
class DownloadResult:
    content: bytes
    media_type: str
    filename: str
    watermarked: bool = False


def decode_data_url(url: str) -> bytes:
    """data:<mime>;base64,<payload> -> bytes."""
    header, sep, payload = url.partition(",")
    if not sep or ";base64" not in header:
        raise ValueError("unsupported data URL")
    return base64.b64decode(payload, validate=True)


class DownloadService:
    def __init__(self, db: Session, http_client: httpx.Client | None = None):
        self.db = db
        self.http_client = http_client

    def download(self, account_id: str, asset_id: str, fmt: str = "png") -> DownloadResult:
        if not asset_id:
            raise ValidationError("Asset ID required")
        fmt = (fmt or "png").lower()
        if fmt not in FORMAT_MEDIA_TYPES:
            raise ValidationError(f"Unsupported format: {fmt}")

        asset = (
            self.db.query(Asset)
            .filter(Asset.id == asset_id, Asset.user_id == account_id)
            .one_or_none()
        )
        if not asset:
            raise NotFound("Asset not found")
        if not asset.image_url:
            raise NotFound("Asset has no image")

        account = self.db.get(UserProfile, account_id)
        if not account:
            raise NotFound("User profile not found")

        original = self._fetch(asset.image_url)
        stem = f"{asset.type}-{asset.id[:8]}"

        if account.is_free:
            try:
                content = apply_watermark(
                    original,
                    tile_text=settings.watermark_tile_text,
                    center_text=settings.watermark_center_text,
                )
            except Exception as e:
                # Serve the original, labelled as such, rather than fail the download.
                logger.warning(
                    "watermark_failed",
                    extra={"user_id": account_id, "asset_id": asset.id, "error": str(e)},
                )
            else:
                return DownloadResult(
                    content=content,
                    media_type="image/png",
                    filename=f"{stem}-watermarked.png",
                    watermarked=True,
                )

        return DownloadResult(
            content=original,
            media_type=FORMAT_MEDIA_TYPES[fmt],
            filename=f"{stem}.{fmt}",
        )

    def _fetch(self, url: str) -> bytes:
        if url.startswith("data:"):
            try:
                return decode_data_url(url)
            except (ValueError, binascii.Error) as e:
                logger.error("image_decode_failed", extra={"error": str(e)})
                raise ImageFetchFailed() from e

        client = self.http_client or httpx.Client(timeout=settings.download_fetch_timeout, follow_redirects=True)
        try:
            response = client.get(url)
            response.raise_for_status()
            return response.content
        except httpx.HTTPError as e:
            logger.error("image_fetch_failed", extra={"error": str(e)})
            raise ImageFetchFailed() from e
        finally:
            if client is not self.http_client:
                client.close()
