"""
Auth client - resolves bearer tokens to users via the hosted auth service.
"""

from uuid import UUID

import httpx
from structlog import get_logger

from app.exceptions import UnauthorizedError
from app.models.domain import AuthenticatedUser

logger = get_logger(__name__)


class AuthClient:
    """Looks up the user behind an access token."""

    USER_PATH = "/auth/v1/user"

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._http_client = http_client

    @property
    def http_client(self) -> httpx.AsyncClient:
        """Get HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.timeout)
        return self._http_client

    async def get_user(self, access_token: str) -> AuthenticatedUser:
        """
        Resolve an access token.

        Any failure, including the auth service being unreachable, is
        reported as UnauthorizedError.
        """
        if not access_token:
            raise UnauthorizedError()

        headers = {"Authorization": f"Bearer {access_token}"}
        if self.api_key:
            headers["apikey"] = self.api_key

        try:
            response = await self.http_client.get(
                f"{self.base_url}{self.USER_PATH}", headers=headers
            )
            response.raise_for_status()
            user_data = response.json()
        except httpx.HTTPStatusError as e:
            logger.warning("token_rejected", status=e.response.status_code)
            raise UnauthorizedError() from e
        except httpx.HTTPError as e:
            logger.error("auth_service_unreachable", error=str(e))
            raise UnauthorizedError() from e
        except ValueError as e:
            logger.error("auth_response_invalid", error=str(e))
            raise UnauthorizedError() from e

        try:
            user_id = UUID(str(user_data["id"]))
        except (KeyError, TypeError, ValueError) as e:
            logger.error("auth_response_missing_user_id")
            raise UnauthorizedError() from e

        return AuthenticatedUser(id=user_id, email=user_data.get("email"))

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
