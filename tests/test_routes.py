"""
Tests for API Routes.

Drives the FastAPI app with TestClient and overridden dependencies, so no
database, auth service or provider is contacted.
"""

from collections.abc import Iterator
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
import structlog
from fastapi.testclient import TestClient

from app.api.dependencies import (
    get_account_service,
    get_auth_client,
    get_current_user,
    get_edit_workflow,
    get_generation_workflow,
    get_history_service,
)
from app.db.session import get_read_db
from app.exceptions import (
    DatabaseError,
    EditFailedError,
    GenerationFailedError,
    InsufficientCreditsError,
    InvalidInputError,
    ProfileLookupError,
    ProviderQuotaExhaustedError,
    RateLimitedError,
    UnauthorizedError,
)
from app.main import app
from app.models.api import RemovalMode
from app.models.domain import (
    AuthenticatedUser,
    EditRecordData,
    EditResult,
    GenerationRecordData,
    GenerationResult,
    ProfileData,
)
from app.services.auth import AuthClient

AUTH_HEADER = {"Authorization": "Bearer test-token"}


@pytest.fixture
def generation_workflow() -> MagicMock:
    workflow = MagicMock()
    workflow.generate = AsyncMock()
    return workflow


@pytest.fixture
def edit_workflow() -> MagicMock:
    workflow = MagicMock()
    workflow.remove_background = AsyncMock()
    return workflow


@pytest.fixture
def client(
    user: AuthenticatedUser, generation_workflow: MagicMock, edit_workflow: MagicMock
) -> Iterator[TestClient]:
    app.dependency_overrides[get_current_user] = lambda: user
    app.dependency_overrides[get_generation_workflow] = lambda: generation_workflow
    app.dependency_overrides[get_edit_workflow] = lambda: edit_workflow
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def unauthenticated_client() -> Iterator[TestClient]:
    """Client whose auth service rejects every token."""
    auth_client = AsyncMock(spec=AuthClient)
    auth_client.get_user.side_effect = UnauthorizedError()
    app.dependency_overrides[get_auth_client] = lambda: auth_client
    yield TestClient(app)
    app.dependency_overrides.clear()


# ============================================================================
# Authentication
# ============================================================================


class TestAuthentication:
    """Every /v1 route requires a bearer token."""

    @pytest.mark.parametrize(
        "method, path",
        [
            ("post", "/v1/generate-images"),
            ("post", "/v1/generate-image"),
            ("post", "/v1/edits/remove-background"),
            ("get", "/v1/profile"),
            ("get", "/v1/generations"),
            ("get", "/v1/edits"),
        ],
    )
    def test_missing_header(self, unauthenticated_client: TestClient, method: str, path: str):
        if method == "post":
            response = unauthenticated_client.post(path, json={"prompt": "x"})
        else:
            response = unauthenticated_client.get(path)

        assert response.status_code == 401
        assert response.json() == {"error": "No authorization header"}

    def test_rejected_token(self, unauthenticated_client: TestClient):
        response = unauthenticated_client.post(
            "/v1/generate-images", json={"prompt": "x"}, headers=AUTH_HEADER
        )

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}
        assert response.headers["Access-Control-Allow-Origin"] == "*"


# ============================================================================
# Generation
# ============================================================================


class TestGenerateImages:
    """Tests for POST /v1/generate-images."""

    def test_success(
        self, client: TestClient, generation_workflow: MagicMock, user: AuthenticatedUser
    ):
        generation_workflow.generate.return_value = GenerationResult(
            image_urls=["u1", "u2"], credits_charged=2, balance_after=3
        )

        response = client.post(
            "/v1/generate-images",
            json={"prompt": "castle", "aspectRatio": "16:9", "numImages": 2, "style": "anime"},
            headers=AUTH_HEADER,
        )

        assert response.status_code == 200
        assert response.json() == {"imageUrls": ["u1", "u2"]}
        generation_workflow.generate.assert_awaited_once_with(
            user, prompt="castle", aspect_ratio="16:9", num_images=2, style="anime"
        )

    def test_defaults(self, client: TestClient, generation_workflow: MagicMock):
        generation_workflow.generate.return_value = GenerationResult(
            image_urls=["u1"], credits_charged=1, balance_after=0
        )

        client.post("/v1/generate-images", json={"prompt": "castle"}, headers=AUTH_HEADER)

        kwargs = generation_workflow.generate.await_args.kwargs
        assert kwargs["aspect_ratio"] == "1:1"
        assert kwargs["num_images"] == 1
        assert kwargs["style"] == "auto"

    def test_insufficient_credits(self, client: TestClient, generation_workflow: MagicMock):
        generation_workflow.generate.side_effect = InsufficientCreditsError(2, 3)

        response = client.post(
            "/v1/generate-images", json={"prompt": "castle", "numImages": 3}, headers=AUTH_HEADER
        )

        assert response.status_code == 402
        assert response.json() == {"error": "Insufficient credits"}

    @pytest.mark.parametrize(
        "error, message",
        [
            (ProfileLookupError(uuid4()), "Failed to fetch profile"),
            (InvalidInputError("Invalid prompt"), "Invalid prompt"),
            (RateLimitedError(), "Rate limit exceeded. Please try again later."),
            (
                ProviderQuotaExhaustedError(),
                "AI service credits exhausted. Please contact support.",
            ),
            (GenerationFailedError(), "Failed to generate image"),
            (GenerationFailedError("No image generated"), "No image generated"),
            (DatabaseError("insert failed"), "insert failed"),
        ],
    )
    def test_server_errors(
        self, client: TestClient, generation_workflow: MagicMock, error: Exception, message: str
    ):
        generation_workflow.generate.side_effect = error

        response = client.post("/v1/generate-images", json={"prompt": "x"}, headers=AUTH_HEADER)

        assert response.status_code == 500
        assert response.json() == {"error": message}

    def test_malformed_body(self, client: TestClient):
        response = client.post(
            "/v1/generate-images", json={"prompt": "x", "numImages": "many"}, headers=AUTH_HEADER
        )

        assert response.status_code == 422
        assert "error" in response.json()


class TestGenerateImage:
    """Tests for POST /v1/generate-image."""

    def test_always_one_image(self, client: TestClient, generation_workflow: MagicMock):
        generation_workflow.generate.return_value = GenerationResult(
            image_urls=["u1"], credits_charged=1, balance_after=4
        )

        response = client.post(
            "/v1/generate-image",
            json={"prompt": "castle", "numImages": 4},
            headers=AUTH_HEADER,
        )

        assert response.status_code == 200
        assert response.json() == {"imageUrl": "u1"}
        assert generation_workflow.generate.await_args.kwargs["num_images"] == 1


# ============================================================================
# Editing
# ============================================================================


class TestRemoveBackground:
    """Tests for POST /v1/edits/remove-background."""

    def test_success(self, client: TestClient, edit_workflow: MagicMock, user: AuthenticatedUser):
        edit_workflow.remove_background.return_value = EditResult(
            edited_image_url="data:image/png;base64,AAAA", credits_charged=1, balance_after=2
        )

        response = client.post(
            "/v1/edits/remove-background",
            json={"image": "data:image/png;base64,BBBB", "mode": "quality"},
            headers=AUTH_HEADER,
        )

        assert response.status_code == 200
        assert response.json() == {"editedImageUrl": "data:image/png;base64,AAAA"}
        edit_workflow.remove_background.assert_awaited_once_with(
            user, "data:image/png;base64,BBBB", RemovalMode.QUALITY
        )

    def test_insufficient_credits(self, client: TestClient, edit_workflow: MagicMock):
        edit_workflow.remove_background.side_effect = InsufficientCreditsError(0, 1)

        response = client.post(
            "/v1/edits/remove-background", json={"image": "x"}, headers=AUTH_HEADER
        )

        assert response.status_code == 402

    def test_edit_failed(self, client: TestClient, edit_workflow: MagicMock):
        edit_workflow.remove_background.side_effect = EditFailedError()

        response = client.post(
            "/v1/edits/remove-background", json={"image": "x"}, headers=AUTH_HEADER
        )

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to remove background"}


# ============================================================================
# Profile & History
# ============================================================================


class TestProfileAndHistory:
    """Tests for the read endpoints."""

    def test_profile_grants_five_signup_credits(self, client: TestClient, user: AuthenticatedUser):
        accounts = MagicMock()
        accounts.get_or_create_profile = AsyncMock(
            return_value=ProfileData(
                user_id=user.id, email=user.email, credits=5, created_at=datetime.now(UTC)
            )
        )
        app.dependency_overrides[get_account_service] = lambda: accounts

        response = client.get("/v1/profile", headers=AUTH_HEADER)

        assert response.status_code == 200
        assert response.json() == {"id": str(user.id), "email": user.email, "credits": 5}
        assert accounts.get_or_create_profile.await_args.args == (user, 5)

    def test_generations(self, client: TestClient, user: AuthenticatedUser):
        record = GenerationRecordData(
            generation_id=uuid4(),
            user_id=user.id,
            prompt="castle",
            image_url="u1",
            aspect_ratio="1:1",
            style="auto",
            credits_used=1,
            created_at=datetime(2025, 1, 1, tzinfo=UTC),
        )
        history = MagicMock()
        history.list_generations = AsyncMock(return_value=[record])
        app.dependency_overrides[get_history_service] = lambda: history

        response = client.get("/v1/generations?limit=5&offset=10", headers=AUTH_HEADER)

        assert response.status_code == 200
        body = response.json()
        assert body["limit"] == 5
        assert body["offset"] == 10
        assert body["generations"][0]["image_url"] == "u1"
        assert body["generations"][0]["created_at"] == "2025-01-01T00:00:00+00:00"
        history.list_generations.assert_awaited_once_with(user.id, limit=5, offset=10)

    def test_edits(self, client: TestClient, user: AuthenticatedUser):
        record = EditRecordData(
            edit_id=uuid4(),
            user_id=user.id,
            original_image_url="a",
            edited_image_url="b",
            edit_type="background_removal",
            credits_used=1,
            created_at=datetime.now(UTC),
        )
        history = MagicMock()
        history.list_edits = AsyncMock(return_value=[record])
        app.dependency_overrides[get_history_service] = lambda: history

        response = client.get("/v1/edits", headers=AUTH_HEADER)

        assert response.status_code == 200
        assert response.json()["edits"][0]["edit_type"] == "background_removal"
        assert response.json()["limit"] == 20

    @pytest.mark.parametrize("query", ["limit=0", "limit=101", "offset=-1"])
    def test_pagination_bounds(self, client: TestClient, query: str):
        app.dependency_overrides[get_history_service] = lambda: MagicMock()

        response = client.get(f"/v1/generations?{query}", headers=AUTH_HEADER)

        assert response.status_code == 422


# ============================================================================
# CORS, Health, Metrics
# ============================================================================


class TestCors:
    """Tests for the CORS layer."""

    def test_preflight_has_empty_body(self):
        response = TestClient(app).options(
            "/v1/generate-images",
            headers={
                "Origin": "https://studio.example.test",
                "Access-Control-Request-Method": "POST",
            },
        )

        assert response.status_code == 200
        assert response.content == b""
        assert response.headers["Access-Control-Allow-Origin"] == "*"
        assert "authorization" in response.headers["Access-Control-Allow-Headers"]
        assert "apikey" in response.headers["Access-Control-Allow-Headers"]

    def test_bare_options_has_empty_body(self):
        """No Origin or Access-Control-Request-Method headers are needed."""
        response = TestClient(app).options("/v1/profile")

        assert response.status_code == 200
        assert response.content == b""
        assert response.headers["Access-Control-Allow-Methods"] == "GET, POST, OPTIONS"

    def test_success_responses_carry_headers(
        self, client: TestClient, generation_workflow: MagicMock
    ):
        generation_workflow.generate.return_value = GenerationResult(
            image_urls=["u1"], credits_charged=1, balance_after=0
        )

        response = client.post("/v1/generate-image", json={"prompt": "x"}, headers=AUTH_HEADER)

        assert response.headers["Access-Control-Allow-Origin"] == "*"


class TestRequestLogging:
    """Tests for request-scoped log context."""

    def test_request_id_bound_for_whole_request(self, user: AuthenticatedUser):
        seen: dict = {}

        async def current_user() -> AuthenticatedUser:
            seen.update(structlog.contextvars.get_contextvars())
            return user

        accounts = MagicMock()
        accounts.get_or_create_profile = AsyncMock(
            return_value=ProfileData(
                user_id=user.id, email=user.email, credits=5, created_at=datetime.now(UTC)
            )
        )
        app.dependency_overrides[get_current_user] = current_user
        app.dependency_overrides[get_account_service] = lambda: accounts
        try:
            response = TestClient(app).get(
                "/v1/profile", headers={**AUTH_HEADER, "X-Request-ID": "req-42"}
            )
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 200
        assert seen["request_id"] == "req-42"


class TestUnhandledErrors:
    """Unexpected exceptions still produce an {error} body."""

    def test_internal_error(self, user: AuthenticatedUser):
        workflow = MagicMock()
        workflow.generate = AsyncMock(side_effect=RuntimeError("bug"))
        app.dependency_overrides[get_current_user] = lambda: user
        app.dependency_overrides[get_generation_workflow] = lambda: workflow
        try:
            response = TestClient(app, raise_server_exceptions=False).post(
                "/v1/generate-images", json={"prompt": "x"}, headers=AUTH_HEADER
            )
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error"}


class TestHealthAndMetrics:
    """Tests for operational endpoints."""

    def test_health_connected(self):
        session = AsyncMock()
        app.dependency_overrides[get_read_db] = lambda: session
        try:
            response = TestClient(app).get("/health")
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 200
        assert response.json()["database"] == "connected"

    def test_health_disconnected(self):
        session = AsyncMock()
        session.execute.side_effect = ConnectionError("down")
        app.dependency_overrides[get_read_db] = lambda: session
        try:
            response = TestClient(app).get("/health")
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 503
        assert response.json() == {"error": "Database disconnected"}

    def test_metrics(self):
        response = TestClient(app).get("/metrics")

        assert response.status_code == 200
        assert "studio_http_requests_total" in response.text

    def test_root(self):
        response = TestClient(app).get("/")

        assert response.status_code == 200


class TestOpenApi:
    """Error bodies are documented in the schema."""

    @pytest.mark.parametrize(
        "method, path",
        [
            ("post", "/v1/generate-images"),
            ("post", "/v1/generate-image"),
            ("post", "/v1/edits/remove-background"),
        ],
    )
    def test_charged_routes_document_402(self, method: str, path: str):
        responses = app.openapi()["paths"][path][method]["responses"]

        for code in ("401", "402", "500"):
            schema = responses[code]["content"]["application/json"]["schema"]
            assert schema == {"$ref": "#/components/schemas/ErrorResponse"}

    def test_error_response_schema(self):
        schema = app.openapi()["components"]["schemas"]["ErrorResponse"]

        assert schema["required"] == ["error"]
        assert "402" not in app.openapi()["paths"]["/v1/profile"]["get"]["responses"]
