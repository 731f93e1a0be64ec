from app.services.image_generation.base import ImageSize

DEFAULT_SIZE = ImageSize(1024, 1024)

ASSET_TYPE_SIZES: dict[str, ImageSize] = {
    "favicon": ImageSize(512, 512),
    "icon": ImageSize(512, 512),
    "social_post": ImageSize(1080, 1080),
    "logo": DEFAULT_SIZE,
    "pattern": DEFAULT_SIZE,
    "stationery": DEFAULT_SIZE,
    "wordmark": DEFAULT_SIZE,
}


def get_size_for_asset_type(asset_type: str) -> ImageSize:
    """Target canvas for an asset type; unknown types get the default square."""
    return ASSET_TYPE_SIZES.get(asset_type, DEFAULT_SIZE)
