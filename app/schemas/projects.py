from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class Palette(BaseModel):
    primary: str = Field("#1a365d", pattern=r"^#[0-9A-Fa-f]{6}$")
    secondary: str = Field("#c6a962", pattern=r"^#[0-9A-Fa-f]{6}$")
    accent: str = Field("#e2e8f0", pattern=r"^#[0-9A-Fa-f]{6}$")


class ProjectStyle(BaseModel):
    mood: str = "modern"
    complexity: Literal["simple", "moderate", "detailed"] = "simple"


class ProjectCreate(BaseModel):
    brand_name: str = Field(min_length=1, max_length=100)
    brand_name_ar: str | None = Field(None, max_length=100)
    industry: str | None = None
    keywords: list[str] = Field(default_factory=list)
    palette: Palette = Field(default_factory=Palette)
    style: ProjectStyle = Field(default_factory=ProjectStyle)
    target_audience: str | None = Field(None, max_length=500)
    description: str | None = Field(None, max_length=1000)


class ProjectUpdate(BaseModel):
    brand_name: str | None = Field(None, min_length=1, max_length=100)
    brand_name_ar: str | None = Field(None, max_length=100)
    industry: str | None = None
    keywords: list[str] | None = None
    palette: Palette | None = None
    style: ProjectStyle | None = None
    target_audience: str | None = Field(None, max_length=500)
    description: str | None = Field(None, max_length=1000)
    is_archived: bool | None = None


class ProjectOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    brand_name: str
    brand_name_ar: str | None = None
    industry: str | None = None
    keywords: list[str] = []
    palette: dict = {}
    style: dict = {}
    target_audience: str | None = None
    description: str | None = None
    is_archived: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None


class AssetOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    project_id: str
    type: str
    status: str
    image_url: str | None = None
    prompt: str | None = None
    model: str | None = None
    meta: dict = Field(default_factory=dict, serialization_alias="metadata")
    is_watermarked: bool = False
    is_favorite: bool = False
    version: int = 1
    parent_asset_id: str | None = None
    created_at: datetime | None = None
