"""
API Models - Pydantic models for request/response validation.

Request bodies are deliberately lenient about prompt content and image
counts: those are checked by the workflows after the caller's balance has
been read, so that every request fails in the same documented order.
"""

from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class AspectRatio(str, Enum):
    """Aspect ratios the provider accepts."""

    SQUARE = "1:1"
    LANDSCAPE = "16:9"
    PORTRAIT = "9:16"
    STANDARD = "4:3"
    STANDARD_PORTRAIT = "3:4"


class ImageStyle(str, Enum):
    """Style labels offered by the generator screen."""

    AUTO = "auto"
    PHOTOREALISTIC = "photorealistic"
    ANIME = "anime"
    DIGITAL_ART = "digital-art"
    OIL_PAINTING = "oil-painting"
    WATERCOLOR = "watercolor"
    CYBERPUNK = "cyberpunk"
    FANTASY = "fantasy"
    MINIMALIST = "minimalist"


class EditType(str, Enum):
    """Edit operation recorded in edit history."""

    BACKGROUND_REMOVAL = "background_removal"


class RemovalMode(str, Enum):
    """Speed/quality selector for background removal."""

    FAST = "fast"
    QUALITY = "quality"


# ============================================================================
# Generation Models
# ============================================================================


class GenerateImageRequest(BaseModel):
    """POST /v1/generate-image request body (single image)."""

    model_config = ConfigDict(populate_by_name=True)

    prompt: str | None = None
    aspect_ratio: str = Field(default=AspectRatio.SQUARE.value, alias="aspectRatio")
    style: str = Field(default=ImageStyle.AUTO.value)


class GenerateImagesRequest(GenerateImageRequest):
    """POST /v1/generate-images request body."""

    num_images: int = Field(default=1, alias="numImages")


class GenerateImageResponse(BaseModel):
    """POST /v1/generate-image response."""

    model_config = ConfigDict(populate_by_name=True)

    image_url: str = Field(..., alias="imageUrl")


class GenerateImagesResponse(BaseModel):
    """POST /v1/generate-images response."""

    model_config = ConfigDict(populate_by_name=True)

    image_urls: list[str] = Field(..., alias="imageUrls")


# ============================================================================
# Edit Models
# ============================================================================


class RemoveBackgroundRequest(BaseModel):
    """POST /v1/edits/remove-background request body."""

    image: str | None = Field(None, description="Image as a data URL or base64 string")
    mode: RemovalMode = RemovalMode.FAST


class RemoveBackgroundResponse(BaseModel):
    """POST /v1/edits/remove-background response."""

    model_config = ConfigDict(populate_by_name=True)

    edited_image_url: str = Field(..., alias="editedImageUrl")


# ============================================================================
# Profile & History Models
# ============================================================================


class ProfileResponse(BaseModel):
    """GET /v1/profile response."""

    id: UUID
    email: str | None = None
    credits: int


class GenerationItem(BaseModel):
    """Single generation history row."""

    id: UUID
    prompt: str
    image_url: str
    aspect_ratio: str
    style: str
    credits_used: int
    created_at: str


class GenerationListResponse(BaseModel):
    """GET /v1/generations response."""

    generations: list[GenerationItem]
    limit: int
    offset: int


class EditItem(BaseModel):
    """Single edit history row."""

    id: UUID
    original_image_url: str
    edited_image_url: str
    edit_type: str
    credits_used: int
    created_at: str


class EditListResponse(BaseModel):
    """GET /v1/edits response."""

    edits: list[EditItem]
    limit: int
    offset: int


class ErrorResponse(BaseModel):
    """Body returned for every failed request."""

    error: str


class HealthResponse(BaseModel):
    """GET /health response."""

    status: str
    database: str
    timestamp: str
