"""
Exception Classes - Strongly typed exception hierarchy.

Every failure a request can hit is one of these. Routes translate them
into HTTP status codes.
"""

from uuid import UUID


class StudioError(Exception):
    """Base exception for all image studio errors."""

    pass


class UnauthorizedError(StudioError):
    """Raised when the bearer credential is missing or does not resolve to a user."""

    def __init__(self, message: str = "Unauthorized") -> None:
        self.message = message
        super().__init__(message)


class ProfileLookupError(StudioError):
    """Raised when the caller's credit balance cannot be read."""

    def __init__(self, user_id: UUID) -> None:
        self.user_id = user_id
        self.message = "Failed to fetch profile"
        super().__init__(self.message)


class InvalidInputError(StudioError):
    """Raised when the request payload fails validation."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class InsufficientCreditsError(StudioError):
    """Raised when account has insufficient balance for the request."""

    def __init__(self, balance: int, required: int) -> None:
        self.balance = balance
        self.required = required
        super().__init__(f"Insufficient credits. Balance: {balance}, Required: {required}")


class ProviderError(StudioError):
    """Base for failures reported by the image generation provider."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class RateLimitedError(ProviderError):
    """Provider rejected the call with a rate limit."""

    def __init__(self, status_code: int | None = 429) -> None:
        super().__init__("Rate limit exceeded. Please try again later.", status_code)


class ProviderQuotaExhaustedError(ProviderError):
    """Provider-side credits are exhausted."""

    def __init__(self, status_code: int | None = 402) -> None:
        super().__init__("AI service credits exhausted. Please contact support.", status_code)


class GenerationFailedError(ProviderError):
    """Any other provider failure, including a response without an image."""

    def __init__(
        self, message: str = "Failed to generate image", status_code: int | None = None
    ) -> None:
        super().__init__(message, status_code)


class EditFailedError(StudioError):
    """Raised when background removal fails."""

    def __init__(self, message: str = "Failed to remove background") -> None:
        self.message = message
        super().__init__(message)


class DatabaseError(StudioError):
    """Raised when database operation fails unexpectedly."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Database error: {message}")


class WriteVerificationError(StudioError):
    """Raised when database write verification fails."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Write verification failed: {message}")
