"""Payer identity: account resolution, referral codes and investor profiles."""

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.user import AffiliateLink, InvestorProfile, User, UserRole

logger = logging.getLogger(__name__)


class IdentityService:
    """Service for resolving who paid. Flushes only; callers own the transaction."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user_by_email(self, email: str) -> User | None:
        result = await self.db.execute(select(User).where(User.email == email.lower()))
        return result.scalar_one_or_none()

    async def resolve_or_create_user(self, email: str, user_id: str | None = None) -> tuple[User, bool]:
        """
        Find the payer's account, creating one by email if needed.

        A supplied ``user_id`` wins when it exists; an unknown id falls back to
        the email. Two settlements racing to create the same email both end up
        with the one row that won the unique constraint.

        Returns:
            The account and whether it was created by this call
        """
        if user_id:
            user = await self.db.get(User, user_id)
            if user:
                return user, False
            logger.warning(
                "Supplied user id not found - resolving payer by email",
                extra={"user_id": user_id}
            )

        normalized_email = email.lower()
        user = await self.get_user_by_email(normalized_email)
        if user:
            return user, False

        try:
            async with self.db.begin_nested():
                user = User(email=normalized_email, role=UserRole.VISITOR)
                self.db.add(user)
        except IntegrityError:
            logger.info(
                "User already created by a concurrent settlement (race condition)",
                extra={"email": normalized_email}
            )
            existing = await self.get_user_by_email(normalized_email)
            if existing is None:
                raise
            return existing, False

        logger.info(
            "User created for payer",
            extra={"user_id": user.id, "email": normalized_email}
        )
        return user, True

    async def resolve_affiliate_link_id(self, referral_code: str | None) -> int | None:
        """Id of the active referral link for a code; unknown or blank codes resolve to None."""
        if not referral_code or not referral_code.strip():
            return None

        stmt = select(AffiliateLink.id).where(
            AffiliateLink.code == referral_code.strip(),
            AffiliateLink.is_active.is_(True)
        )
        affiliate_link_id = (await self.db.execute(stmt)).scalar_one_or_none()
        if affiliate_link_id is None:
            logger.info(
                "Referral code not recognised - continuing without attribution",
                extra={"referral_code": referral_code}
            )
        return affiliate_link_id

    async def record_investment(self, user: User, amount_minor: int) -> InvestorProfile:
        """
        Add a purchase to the user's investor profile.

        The first purchase creates the profile and promotes a visitor to investor.
        """
        result = await self.db.execute(select(InvestorProfile).where(InvestorProfile.user_id == user.id))
        profile = result.scalar_one_or_none()

        if profile is None:
            profile = InvestorProfile(
                user_id=user.id,
                total_invested_minor=amount_minor,
                total_purchases=1
            )
            self.db.add(profile)
            if user.role == UserRole.VISITOR:
                user.role = UserRole.INVESTOR
        else:
            profile.total_invested_minor += amount_minor
            profile.total_purchases += 1

        await self.db.flush()

        logger.info(
            "Investor profile updated",
            extra={
                "user_id": user.id,
                "total_purchases": profile.total_purchases,
                "total_invested_minor": profile.total_invested_minor
            }
        )

        return profile
