"""
BizzyLink Backend: Reputation and Vouch Service
=================================================

What:  +1/-1 reputation votes and vouches between users.

Reputation totals:
    `users.reputation` is the sum of the receiver's vote values. A new vote
    moves it by the vote value; flipping an existing vote moves it by twice
    the new value (removing the old vote and adding the new one). Repeating
    one's current vote is refused.
"""

import logging
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from bizzylink.database import apply_deltas, utcnow
from bizzylink.exceptions import ValidationError
from bizzylink.models.user import ReputationVote, User, Vouch
from bizzylink.schemas.forum import ReputationResponse, VouchResponse
from bizzylink.services.notification_service import notification_service
from bizzylink.services.user_service import user_service

logger = logging.getLogger(__name__)


class ReputationService:

    async def _vote_counts(self, db: AsyncSession, receiver_id: UUID) -> tuple:
        result = await db.execute(
            select(ReputationVote.value, func.count())
            .where(ReputationVote.receiver_id == receiver_id)
            .group_by(ReputationVote.value)
        )
        counts = {row[0]: row[1] for row in result.all()}
        return counts.get(1, 0), counts.get(-1, 0)

    async def give_reputation(
        self, db: AsyncSession, giver: User, target_id: UUID, value: int
    ) -> ReputationResponse:
        if value not in (1, -1):
            raise ValidationError("Reputation value must be 1 or -1", field="value")
        if target_id == giver.id:
            raise ValidationError("You cannot give reputation to yourself")

        target = await user_service.get_user(db, target_id)

        result = await db.execute(
            select(ReputationVote).where(
                ReputationVote.giver_id == giver.id, ReputationVote.receiver_id == target.id
            )
        )
        vote = result.scalar_one_or_none()

        kind = "positive" if value > 0 else "negative"
        if vote is not None:
            if vote.value == value:
                raise ValidationError(f"You have already given {kind} reputation to this user")
            # Only flips a vote that still holds the opposite value
            flipped = await db.execute(
                update(ReputationVote)
                .where(ReputationVote.id == vote.id, ReputationVote.value != value)
                .values(value=value, created_at=utcnow())
                .execution_options(synchronize_session="fetch")
            )
            if flipped.rowcount == 0:
                raise ValidationError(f"You have already given {kind} reputation to this user")
            delta = 2 * value
        else:
            db.add(ReputationVote(giver_id=giver.id, receiver_id=target.id, value=value))
            await db.flush()
            delta = value
        await apply_deltas(db, target, {"reputation": delta}, floor=None)

        sign = "+1" if value > 0 else "-1"
        await notification_service.notify(
            db,
            target,
            type="reputation",
            message=f"{giver.username} gave you {sign} reputation",
            sender_id=giver.id,
            data={"value": value},
            setting="reputation",
        )
        await db.flush()

        positive, negative = await self._vote_counts(db, target.id)
        logger.info("User %s gave %s reputation to %s", giver.id, sign, target.id)
        return ReputationResponse(
            message=f"Gave {sign} reputation to {target.username}",
            new_reputation=target.reputation,
            positive_count=positive,
            negative_count=negative,
        )

    async def vouch(
        self, db: AsyncSession, giver: User, target_id: UUID, context: str = ""
    ) -> VouchResponse:
        if target_id == giver.id:
            raise ValidationError("You cannot vouch for yourself")

        target = await user_service.get_user(db, target_id)
        context = context.strip()

        result = await db.execute(
            select(Vouch).where(Vouch.giver_id == giver.id, Vouch.receiver_id == target.id)
        )
        existing = result.scalar_one_or_none()

        if existing is not None:
            existing.context = context
            existing.updated_at = utcnow()
            await db.flush()
            return VouchResponse(
                message=f"Updated your vouch for {target.username}",
                vouches=target.vouches,
                updated=True,
            )

        db.add(Vouch(giver_id=giver.id, receiver_id=target.id, context=context))
        await db.flush()
        await apply_deltas(db, target, {"vouches": 1})
        await notification_service.notify(
            db,
            target,
            type="vouch",
            message=f"{giver.username} vouched for you",
            sender_id=giver.id,
            data={"context": context},
            setting="vouches",
        )
        await db.flush()

        logger.info("User %s vouched for %s", giver.id, target.id)
        return VouchResponse(
            message=f"Vouched for {target.username}",
            vouches=target.vouches,
            updated=False,
        )


reputation_service = ReputationService()
