"""
API Routes - FastAPI endpoints for generation, editing and history.

All requests/responses use Pydantic models. Domain exceptions are mapped
to HTTP errors here; the app renders every HTTP error as {"error": ...}.
"""

from datetime import UTC, datetime
from typing import NoReturn

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import (
    get_account_service,
    get_current_user,
    get_edit_workflow,
    get_generation_workflow,
    get_history_service,
)
from app.config import settings
from app.db.session import get_read_db
from app.exceptions import InsufficientCreditsError, StudioError
from app.models.api import (
    EditItem,
    EditListResponse,
    ErrorResponse,
    GenerateImageRequest,
    GenerateImageResponse,
    GenerateImagesRequest,
    GenerateImagesResponse,
    GenerationItem,
    GenerationListResponse,
    HealthResponse,
    ProfileResponse,
    RemoveBackgroundRequest,
    RemoveBackgroundResponse,
)
from app.models.domain import AuthenticatedUser
from app.services.accounts import AccountService
from app.services.editing import EditWorkflow
from app.services.generation import GenerationWorkflow
from app.services.history import HistoryService

router = APIRouter()

ERROR_RESPONSES: dict[int | str, dict] = {
    401: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}
CHARGED_ERROR_RESPONSES: dict[int | str, dict] = {
    **ERROR_RESPONSES,
    402: {"model": ErrorResponse},
}


def _raise_http_error(exc: StudioError) -> NoReturn:
    """Translate a domain failure into the HTTP error the client sees."""
    if isinstance(exc, InsufficientCreditsError):
        raise HTTPException(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail="Insufficient credits",
        ) from exc

    # Everything else is reported as a server error with its message
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=getattr(exc, "message", None) or str(exc) or "Internal server error",
    ) from exc


# =============================================================================
# Generation
# =============================================================================


@router.post(
    "/v1/generate-images", response_model=GenerateImagesResponse, responses=CHARGED_ERROR_RESPONSES
)
async def generate_images(
    request: GenerateImagesRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    workflow: GenerationWorkflow = Depends(get_generation_workflow),
) -> GenerateImagesResponse:
    """
    Generate one or more images from a prompt.

    Charges one credit per image, after all images have been produced.
    """
    try:
        result = await workflow.generate(
            user,
            prompt=request.prompt,
            aspect_ratio=request.aspect_ratio,
            num_images=request.num_images,
            style=request.style,
        )
    except StudioError as exc:
        _raise_http_error(exc)

    return GenerateImagesResponse(image_urls=result.image_urls)


@router.post(
    "/v1/generate-image", response_model=GenerateImageResponse, responses=CHARGED_ERROR_RESPONSES
)
async def generate_image(
    request: GenerateImageRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    workflow: GenerationWorkflow = Depends(get_generation_workflow),
) -> GenerateImageResponse:
    """Generate exactly one image from a prompt."""
    try:
        result = await workflow.generate(
            user,
            prompt=request.prompt,
            aspect_ratio=request.aspect_ratio,
            num_images=1,
            style=request.style,
        )
    except StudioError as exc:
        _raise_http_error(exc)

    return GenerateImageResponse(image_url=result.image_urls[0])


# =============================================================================
# Editing
# =============================================================================


@router.post(
    "/v1/edits/remove-background",
    response_model=RemoveBackgroundResponse,
    responses=CHARGED_ERROR_RESPONSES,
)
async def remove_background(
    request: RemoveBackgroundRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    workflow: EditWorkflow = Depends(get_edit_workflow),
) -> RemoveBackgroundResponse:
    """Remove the background from an uploaded image for one credit."""
    try:
        result = await workflow.remove_background(user, request.image, request.mode)
    except StudioError as exc:
        _raise_http_error(exc)

    return RemoveBackgroundResponse(edited_image_url=result.edited_image_url)


# =============================================================================
# Profile & History
# =============================================================================


@router.get("/v1/profile", response_model=ProfileResponse, responses=ERROR_RESPONSES)
async def get_profile(
    user: AuthenticatedUser = Depends(get_current_user),
    accounts: AccountService = Depends(get_account_service),
) -> ProfileResponse:
    """
    Get the caller's profile and credit balance.

    The first call for a new user creates the profile with the sign-up
    credit grant.
    """
    try:
        profile = await accounts.get_or_create_profile(user, settings.signup_credits)
    except StudioError as exc:
        _raise_http_error(exc)

    return ProfileResponse(id=profile.user_id, email=profile.email, credits=profile.credits)


@router.get("/v1/generations", response_model=GenerationListResponse, responses=ERROR_RESPONSES)
async def list_generations(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: AuthenticatedUser = Depends(get_current_user),
    history: HistoryService = Depends(get_history_service),
) -> GenerationListResponse:
    """List the caller's generations, newest first."""
    records = await history.list_generations(user.id, limit=limit, offset=offset)

    return GenerationListResponse(
        generations=[
            GenerationItem(
                id=record.generation_id,
                prompt=record.prompt,
                image_url=record.image_url,
                aspect_ratio=record.aspect_ratio,
                style=record.style,
                credits_used=record.credits_used,
                created_at=record.created_at.isoformat(),
            )
            for record in records
        ],
        limit=limit,
        offset=offset,
    )


@router.get("/v1/edits", response_model=EditListResponse, responses=ERROR_RESPONSES)
async def list_edits(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: AuthenticatedUser = Depends(get_current_user),
    history: HistoryService = Depends(get_history_service),
) -> EditListResponse:
    """List the caller's edits, newest first."""
    records = await history.list_edits(user.id, limit=limit, offset=offset)

    return EditListResponse(
        edits=[
            EditItem(
                id=record.edit_id,
                original_image_url=record.original_image_url,
                edited_image_url=record.edited_image_url,
                edit_type=record.edit_type,
                credits_used=record.credits_used,
                created_at=record.created_at.isoformat(),
            )
            for record in records
        ],
        limit=limit,
        offset=offset,
    )


# =============================================================================
# Health
# =============================================================================


@router.get("/health", response_model=HealthResponse)
async def health_check(db: AsyncSession = Depends(get_read_db)) -> HealthResponse:
    """
    Health check for load balancer.

    Verifies database connectivity.
    """
    try:
        await db.execute(text("SELECT 1"))
    except Exception as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database disconnected",
        ) from exc

    return HealthResponse(
        status="healthy",
        database="connected",
        timestamp=datetime.now(UTC).isoformat(),
    )
