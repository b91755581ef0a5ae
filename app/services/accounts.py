"""
Account Service - Credit balances held on user profiles.

The balance is read once per request for the admission check and settled
afterwards with an atomic conditional decrement.
"""

from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from app.db.models import Profile
from app.db.session import bind_row_owner
from app.exceptions import (
    DatabaseError,
    ProfileLookupError,
    StudioError,
    WriteVerificationError,
)
from app.models.domain import AuthenticatedUser, ProfileData
from app.observability.metrics import metrics

logger = get_logger(__name__)


def _utc_now() -> datetime:
    return datetime.now(UTC)


class AccountService:
    """Reads and settles per-user credit balances."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_balance(self, user_id: UUID) -> int:
        """
        Read the caller's current credit balance.

        Raises:
            ProfileLookupError: Profile missing or unreadable
        """
        try:
            await bind_row_owner(self.session, user_id)
            result = await self.session.execute(
                select(Profile.credits).where(Profile.id == user_id)
            )
            credits = result.scalar_one_or_none()
            # End the read transaction so no connection is held across provider calls
            await self.session.commit()
        except SQLAlchemyError as exc:
            logger.error("profile_lookup_failed", user_id=str(user_id), error=str(exc))
            raise ProfileLookupError(user_id) from exc

        if credits is None:
            logger.warning("profile_not_found", user_id=str(user_id))
            raise ProfileLookupError(user_id)

        return int(credits)

    async def get_or_create_profile(
        self, user: AuthenticatedUser, signup_credits: int
    ) -> ProfileData:
        """
        Get existing profile or create one with the sign-up grant.

        Only the profile endpoint calls this; the workflows require an
        existing profile.
        """
        try:
            await bind_row_owner(self.session, user.id)
            profile = await self.session.get(Profile, user.id)
            if profile is not None:
                return self._profile_to_domain(profile)

            new_profile = Profile(id=user.id, email=user.email, credits=signup_credits)
            self.session.add(new_profile)

            try:
                await self.session.flush()
            except IntegrityError:
                # Race condition - profile created by another request
                await self.session.rollback()
                await bind_row_owner(self.session, user.id)
                profile = await self.session.get(Profile, user.id)
                if profile is None:
                    raise WriteVerificationError("Profile creation failed due to race condition")
                return self._profile_to_domain(profile)

            verified = await self.session.get(Profile, user.id)
            if verified is None:
                raise WriteVerificationError(f"Profile {user.id} not found after insert")

            await self.session.commit()
        except SQLAlchemyError as exc:
            logger.error("profile_upsert_failed", user_id=str(user.id), error=str(exc))
            raise DatabaseError(str(exc)) from exc

        logger.info("profile_created", user_id=str(user.id), credits=signup_credits)
        return self._profile_to_domain(verified)

    async def debit(self, user_id: UUID, amount: int) -> int | None:
        """
        Atomically subtract ``amount`` credits if the balance covers it.

        Returns the new balance, or None when the balance no longer covers
        the amount (another request spent it first).
        """
        if amount <= 0:
            raise ValueError(f"Debit amount must be positive: {amount}")

        await bind_row_owner(self.session, user_id)
        stmt = (
            update(Profile)
            .where(Profile.id == user_id, Profile.credits >= amount)
            .values(credits=Profile.credits - amount, updated_at=_utc_now())
            .returning(Profile.credits)
        )
        result = await self.session.execute(stmt)
        balance_after = result.scalar_one_or_none()
        await self.session.commit()
        return None if balance_after is None else int(balance_after)

    async def settle(self, user_id: UUID, amount: int, operation: str) -> int | None:
        """
        Charge for work that has already been delivered.

        Best effort: a failed write is logged and reported as None, never
        raised, so delivered results are still returned to the caller.
        """
        try:
            balance_after = await self.debit(user_id, amount)
        except (SQLAlchemyError, StudioError) as exc:
            logger.error(
                "credit_settlement_failed",
                user_id=str(user_id),
                amount=amount,
                operation=operation,
                error=str(exc),
            )
            metrics.record_settlement(operation, amount, success=False)
            await self._safe_rollback()
            return None

        if balance_after is None:
            logger.error(
                "credit_settlement_failed",
                user_id=str(user_id),
                amount=amount,
                operation=operation,
                error="balance no longer covers amount",
            )
            metrics.record_settlement(operation, amount, success=False)
            return None

        logger.info(
            "credits_settled",
            user_id=str(user_id),
            amount=amount,
            operation=operation,
            balance_after=balance_after,
        )
        metrics.record_settlement(operation, amount, success=True)
        return balance_after

    # ========================================================================
    # Private Helper Methods
    # ========================================================================

    async def _safe_rollback(self) -> None:
        try:
            await self.session.rollback()
        except SQLAlchemyError as exc:
            logger.warning("rollback_failed", error=str(exc))

    def _profile_to_domain(self, profile: Profile) -> ProfileData:
        return ProfileData(
            user_id=profile.id,
            email=profile.email,
            credits=profile.credits,
            created_at=profile.created_at,
        )
