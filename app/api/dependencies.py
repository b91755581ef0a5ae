"""
FastAPI Dependencies - Authentication and workflow wiring.

Long-lived HTTP clients and the background remover are process-wide
singletons, closed by the application lifespan.
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from app.config import settings
from app.db.session import get_write_db
from app.exceptions import UnauthorizedError
from app.models.domain import AuthenticatedUser
from app.services.accounts import AccountService
from app.services.auth import AuthClient
from app.services.background_removal import BackgroundRemover
from app.services.editing import EditWorkflow
from app.services.generation import GenerationWorkflow
from app.services.history import HistoryService
from app.services.image_provider import ImageProvider

logger = get_logger(__name__)

# Bearer token scheme; missing credentials are reported by get_current_user
bearer_scheme = HTTPBearer(auto_error=False)

_auth_client: AuthClient | None = None
_image_provider: ImageProvider | None = None
_background_remover: BackgroundRemover | None = None


def get_auth_client() -> AuthClient:
    global _auth_client
    if _auth_client is None:
        _auth_client = AuthClient(
            base_url=settings.auth_url,
            api_key=settings.auth_api_key,
            timeout=settings.auth_timeout_seconds,
        )
    return _auth_client


def get_image_provider() -> ImageProvider:
    global _image_provider
    if _image_provider is None:
        _image_provider = ImageProvider(
            api_key=settings.provider_api_key,
            url=settings.provider_url,
            model=settings.provider_model,
            timeout=settings.provider_timeout_seconds,
        )
    return _image_provider


def get_background_remover() -> BackgroundRemover:
    global _background_remover
    if _background_remover is None:
        _background_remover = BackgroundRemover(
            fast_model=settings.removal_model_fast,
            quality_model=settings.removal_model_quality,
        )
    return _background_remover


async def close_clients() -> None:
    """Close shared HTTP clients (for graceful shutdown)."""
    global _auth_client, _image_provider

    if _auth_client:
        await _auth_client.close()
        _auth_client = None

    if _image_provider:
        await _image_provider.close()
        _image_provider = None


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    auth_client: AuthClient = Depends(get_auth_client),
) -> AuthenticatedUser:
    """
    FastAPI dependency resolving the Authorization header to a user.

    Accepts: Authorization: Bearer {access_token}

    Raises:
        HTTPException 401 if no token or the auth service rejects it
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        user = await auth_client.get_user(credentials.credentials)
    except UnauthorizedError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=exc.message,
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc

    logger.info("user_authenticated", user_id=str(user.id))
    return user


def get_account_service(db: AsyncSession = Depends(get_write_db)) -> AccountService:
    return AccountService(db)


def get_history_service(db: AsyncSession = Depends(get_write_db)) -> HistoryService:
    return HistoryService(db)


def get_generation_workflow(
    accounts: AccountService = Depends(get_account_service),
    history: HistoryService = Depends(get_history_service),
    provider: ImageProvider = Depends(get_image_provider),
) -> GenerationWorkflow:
    return GenerationWorkflow(
        accounts=accounts,
        history=history,
        provider=provider,
        max_images=settings.max_images_per_request,
    )


def get_edit_workflow(
    accounts: AccountService = Depends(get_account_service),
    history: HistoryService = Depends(get_history_service),
    remover: BackgroundRemover = Depends(get_background_remover),
) -> EditWorkflow:
    return EditWorkflow(accounts=accounts, history=history, remover=remover)
