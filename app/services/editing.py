"""
Edit Workflow - credit-gated background removal.

Same gate as generation, applied to a single unit of work: load balance,
validate, admit, remove the background, record the edit, settle.
"""

from structlog import get_logger

from app.exceptions import EditFailedError, InsufficientCreditsError, InvalidInputError
from app.models.api import RemovalMode
from app.models.domain import AuthenticatedUser, EditIntent, EditResult
from app.observability.metrics import metrics
from app.services.accounts import AccountService
from app.services.background_removal import (
    BackgroundRemover,
    decode_image_payload,
    image_mime_type,
    to_data_url,
)
from app.services.history import HistoryService

logger = get_logger(__name__)


class EditWorkflow:
    """Runs one background removal request end to end."""

    OPERATION = "background_removal"

    def __init__(
        self,
        accounts: AccountService,
        history: HistoryService,
        remover: BackgroundRemover,
    ) -> None:
        self.accounts = accounts
        self.history = history
        self.remover = remover

    def validate(self, image: str | None, mode: RemovalMode) -> EditIntent:
        try:
            image_data = decode_image_payload(image)
        except ValueError as exc:
            raise InvalidInputError(str(exc)) from exc

        # History keeps the original as a data URL, whatever form it arrived in
        original_url = (image or "").strip()
        if not original_url.startswith("data:"):
            original_url = to_data_url(image_data, image_mime_type(image_data))

        return EditIntent(image_data=image_data, original_image_url=original_url, mode=mode)

    async def remove_background(
        self, user: AuthenticatedUser, image: str | None, mode: RemovalMode = RemovalMode.FAST
    ) -> EditResult:
        """
        Remove the background of ``image`` for ``user``.

        Raises:
            ProfileLookupError: Balance could not be read
            InvalidInputError: Image missing or undecodable
            InsufficientCreditsError: No credit left
            EditFailedError: Background removal failed
            DatabaseError: The edit row could not be written
        """
        balance = await self.accounts.get_balance(user.id)

        try:
            intent = self.validate(image, mode)
        except InvalidInputError:
            metrics.record_edit("invalid_input")
            raise

        if balance < intent.credits_required:
            logger.info(
                "insufficient_credits",
                user_id=str(user.id),
                balance=balance,
                required=intent.credits_required,
            )
            metrics.record_edit("insufficient_credits")
            raise InsufficientCreditsError(balance, intent.credits_required)

        try:
            output = await self.remover.remove_background(intent.image_data, intent.mode)
        except EditFailedError:
            metrics.record_edit("edit_failed")
            metrics.record_error("EditFailedError", self.OPERATION)
            raise

        edited_image_url = to_data_url(output, "image/png")
        await self.history.record_edit(
            user_id=user.id,
            original_image_url=intent.original_image_url,
            edited_image_url=edited_image_url,
            edit_type=intent.edit_type.value,
            credits_used=intent.credits_required,
        )

        balance_after = await self.accounts.settle(
            user.id, intent.credits_required, self.OPERATION
        )

        logger.info(
            "edit_completed",
            user_id=str(user.id),
            mode=intent.mode.value,
            balance_after=balance_after,
        )
        metrics.record_edit("success")

        return EditResult(
            edited_image_url=edited_image_url,
            credits_charged=intent.credits_required if balance_after is not None else 0,
            balance_after=balance_after,
        )
