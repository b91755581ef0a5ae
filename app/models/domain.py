"""
Domain Models - Internal business logic models using dataclasses.

All data structures are immutable dataclasses. Intents validate themselves
on construction and raise ValueError on bad input.
"""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from app.models.api import AspectRatio, EditType, ImageStyle, RemovalMode

VALID_ASPECT_RATIOS = frozenset(ratio.value for ratio in AspectRatio)


@dataclass(frozen=True)
class AuthenticatedUser:
    """Identity resolved from a bearer token."""

    id: UUID
    email: str | None = None


@dataclass(frozen=True)
class ProfileData:
    """Immutable profile snapshot."""

    user_id: UUID
    email: str | None
    credits: int
    created_at: datetime

    def __post_init__(self) -> None:
        if self.credits < 0:
            raise ValueError(f"Credits cannot be negative: {self.credits}")


@dataclass(frozen=True)
class GenerationIntent:
    """Validated generation request before any provider call."""

    prompt: str
    aspect_ratio: str = AspectRatio.SQUARE.value
    num_images: int = 1
    style: str = ImageStyle.AUTO.value

    def __post_init__(self) -> None:
        """Validate generation constraints."""
        if not isinstance(self.prompt, str) or not self.prompt.strip():
            raise ValueError("Invalid prompt")
        if isinstance(self.num_images, bool) or not isinstance(self.num_images, int):
            raise ValueError(f"numImages must be an integer, got: {self.num_images!r}")
        if self.num_images < 1:
            raise ValueError(f"numImages must be at least 1, got: {self.num_images}")
        if self.aspect_ratio not in VALID_ASPECT_RATIOS:
            raise ValueError(f"Invalid aspect ratio: {self.aspect_ratio}")

    @property
    def credits_required(self) -> int:
        """One credit per requested image."""
        return self.num_images


@dataclass(frozen=True)
class EditIntent:
    """Validated background removal request."""

    image_data: bytes
    original_image_url: str
    mode: RemovalMode = RemovalMode.FAST
    edit_type: EditType = EditType.BACKGROUND_REMOVAL

    def __post_init__(self) -> None:
        if not self.image_data:
            raise ValueError("Image data cannot be empty")

    @property
    def credits_required(self) -> int:
        return 1


@dataclass(frozen=True)
class GenerationRecordData:
    """Generation history row after persistence."""

    generation_id: UUID
    user_id: UUID
    prompt: str
    image_url: str
    aspect_ratio: str
    style: str
    credits_used: int
    created_at: datetime


@dataclass(frozen=True)
class EditRecordData:
    """Edit history row after persistence."""

    edit_id: UUID
    user_id: UUID
    original_image_url: str
    edited_image_url: str
    edit_type: str
    credits_used: int
    created_at: datetime


@dataclass(frozen=True)
class GenerationResult:
    """Outcome of a fully successful generation request."""

    image_urls: list[str]
    credits_charged: int
    balance_after: int | None  # None when the settling write failed


@dataclass(frozen=True)
class EditResult:
    """Outcome of a successful background removal."""

    edited_image_url: str
    credits_charged: int
    balance_after: int | None
