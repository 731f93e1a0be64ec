from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

AssetType = Literal["logo", "icon", "pattern", "social_post", "stationery", "favicon", "wordmark"]


class GenerateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    project_id: str = Field(alias="projectId", min_length=1)
    asset_type: AssetType = Field(alias="assetType")
    additional_prompt: str | None = Field(None, alias="additionalPrompt", max_length=1000)


class VariationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    asset_id: str = Field(alias="assetId", min_length=1)
    prompt_delta: str | None = Field(None, alias="promptDelta", max_length=500)


class GenerateResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    asset_id: str = Field(serialization_alias="assetId")
    image_url: str = Field(serialization_alias="imageUrl")
