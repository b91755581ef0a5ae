"""
Generation Workflow - credit-gated image generation.

Order of operations for every request:
1. Load the caller's balance
2. Validate the request
3. Admission check (balance >= images requested)
4. Enrich the prompt with the style suffix
5. Call the provider once per image, sequentially, recording each image
   in history as soon as it arrives
6. Settle the balance for the images delivered (best effort)

Any provider failure aborts the request. Images recorded earlier in the
same request stay in history but are neither returned nor charged.
"""

from structlog import get_logger

from app.exceptions import InsufficientCreditsError, InvalidInputError, ProviderError
from app.models.domain import AuthenticatedUser, GenerationIntent, GenerationResult
from app.observability.metrics import metrics
from app.observability.tracing import trace_operation
from app.services.accounts import AccountService
from app.services.history import HistoryService
from app.services.image_provider import ImageProvider
from app.services.styles import enrich_prompt

logger = get_logger(__name__)


class GenerationWorkflow:
    """Runs one generation request end to end."""

    OPERATION = "generation"

    def __init__(
        self,
        accounts: AccountService,
        history: HistoryService,
        provider: ImageProvider,
        max_images: int,
    ) -> None:
        self.accounts = accounts
        self.history = history
        self.provider = provider
        self.max_images = max_images

    def validate(
        self, prompt: str | None, aspect_ratio: str, num_images: int, style: str
    ) -> GenerationIntent:
        """
        Build a validated intent.

        Raises:
            InvalidInputError: Blank prompt, bad aspect ratio, or image count
                outside 1..max_images
        """
        try:
            intent = GenerationIntent(
                prompt=prompt,  # type: ignore[arg-type]
                aspect_ratio=aspect_ratio,
                num_images=num_images,
                style=style,
            )
        except ValueError as exc:
            raise InvalidInputError(str(exc)) from exc

        if intent.num_images > self.max_images:
            raise InvalidInputError(
                f"numImages cannot exceed {self.max_images}, got: {intent.num_images}"
            )
        return intent

    async def generate(
        self,
        user: AuthenticatedUser,
        prompt: str | None,
        aspect_ratio: str = "1:1",
        num_images: int = 1,
        style: str = "auto",
    ) -> GenerationResult:
        """
        Generate ``num_images`` images for ``user``.

        Raises:
            ProfileLookupError: Balance could not be read
            InvalidInputError: Request failed validation
            InsufficientCreditsError: Balance below images requested
            RateLimitedError, ProviderQuotaExhaustedError, GenerationFailedError:
                A provider call failed
            DatabaseError: A history row could not be written
        """
        balance = await self.accounts.get_balance(user.id)

        try:
            intent = self.validate(prompt, aspect_ratio, num_images, style)
        except InvalidInputError:
            metrics.record_generation("invalid_input")
            raise

        if balance < intent.credits_required:
            logger.info(
                "insufficient_credits",
                user_id=str(user.id),
                balance=balance,
                required=intent.credits_required,
            )
            metrics.record_generation("insufficient_credits")
            raise InsufficientCreditsError(balance, intent.credits_required)

        provider_prompt = enrich_prompt(intent.prompt, intent.style)
        logger.info(
            "generation_started",
            user_id=str(user.id),
            num_images=intent.num_images,
            style=intent.style,
            aspect_ratio=intent.aspect_ratio,
            balance=balance,
        )

        image_urls: list[str] = []
        for index in range(intent.num_images):
            try:
                with trace_operation("provider_call", image_index=index):
                    image_url = await self.provider.generate(provider_prompt, intent.aspect_ratio)
            except ProviderError as exc:
                logger.error(
                    "generation_aborted",
                    user_id=str(user.id),
                    image_index=index,
                    images_recorded=len(image_urls),
                    error=exc.message,
                    error_type=type(exc).__name__,
                )
                metrics.record_generation(type(exc).__name__, images=len(image_urls))
                metrics.record_error(type(exc).__name__, self.OPERATION)
                raise

            await self.history.record_generation(
                user_id=user.id,
                prompt=intent.prompt,
                image_url=image_url,
                aspect_ratio=intent.aspect_ratio,
                style=intent.style,
            )
            image_urls.append(image_url)

        balance_after = await self.accounts.settle(user.id, len(image_urls), self.OPERATION)

        logger.info(
            "generation_completed",
            user_id=str(user.id),
            images=len(image_urls),
            balance_after=balance_after,
        )
        metrics.record_generation("success", images=len(image_urls))

        return GenerationResult(
            image_urls=image_urls,
            credits_charged=len(image_urls) if balance_after is not None else 0,
            balance_after=balance_after,
        )
