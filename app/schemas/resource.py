"""Sales resource library schemas."""
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from app.db.enums import ResourceType

HEX_COLOR_PATTERN = r"^#[0-9A-Fa-f]{6}$"


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = Field(None, max_length=2000)
    icon: str | None = Field("folder", max_length=50)
    color: str = Field("#6366f1", pattern=HEX_COLOR_PATTERN)
    order: int = Field(0, ge=0)


class CategoryUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = Field(None, max_length=2000)
    icon: str | None = Field(None, max_length=50)
    color: str | None = Field(None, pattern=HEX_COLOR_PATTERN)
    order: int | None = Field(None, ge=0)
    is_active: bool | None = None


class CategoryRead(BaseModel):
    id: UUID
    name: str
    description: str | None
    icon: str | None
    color: str | None
    order: int
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class ResourceCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(None, max_length=5000)
    type: ResourceType
    url: str = Field(..., min_length=1, max_length=2000)
    category_id: UUID | None = None
    file_size: int | None = Field(None, ge=0)
    file_name: str | None = Field(None, max_length=255)
    thumbnail_url: str | None = Field(None, max_length=2000)
    content: str | None = None
    tags: list[str] = Field(default_factory=list, max_length=50)

    @model_validator(mode="after")
    def strip_fields(self) -> "ResourceCreate":
        self.title = self.title.strip()
        self.url = self.url.strip()
        if not self.title:
            raise ValueError("Title is required")
        if not self.url:
            raise ValueError("URL is required")
        return self


class ResourceUpdate(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = Field(None, max_length=5000)
    type: ResourceType | None = None
    url: str | None = Field(None, min_length=1, max_length=2000)
    category_id: UUID | None = None
    file_size: int | None = Field(None, ge=0)
    file_name: str | None = Field(None, max_length=255)
    thumbnail_url: str | None = Field(None, max_length=2000)
    content: str | None = None
    tags: list[str] | None = Field(None, max_length=50)
    is_active: bool | None = None


class ResourceRead(BaseModel):
    id: UUID
    category_id: UUID | None
    title: str
    description: str | None
    type: str
    url: str | None
    file_size: int | None
    file_name: str | None
    thumbnail_url: str | None
    content: str | None
    tags: list[str]
    download_count: int
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
