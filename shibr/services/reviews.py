"""Ratings exchanged between the parties of a completed rental."""
from typing import Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from shibr.core.exceptions import BusinessRuleError, NotFoundError, PermissionDeniedError
from shibr.models.rental import RentalRequest, RentalStatus, Review
from shibr.models.user import User

logger = structlog.get_logger()


async def submit_review(
    db: AsyncSession,
    reviewer: User,
    rental_request_id: int,
    rating: int,
    comment: Optional[str] = None,
) -> Review:
    rental = await db.get(RentalRequest, rental_request_id)
    if rental is None:
        raise NotFoundError("Rental request not found")
    if rental.status != RentalStatus.COMPLETED:
        raise BusinessRuleError("Can only review completed rentals")
    if not 1 <= rating <= 5:
        raise BusinessRuleError("Rating must be between 1 and 5")

    if reviewer.id == rental.brand_owner_id:
        reviewed_id = rental.store_owner_id
    elif reviewer.id == rental.store_owner_id:
        reviewed_id = rental.brand_owner_id
    else:
        raise PermissionDeniedError("You are not authorized to review this rental")

    existing = await db.scalar(
        select(Review.id).where(
            Review.rental_request_id == rental.id,
            Review.reviewer_id == reviewer.id,
        )
    )
    if existing is not None:
        raise BusinessRuleError("You have already reviewed this rental")

    review = Review(
        rental_request_id=rental.id,
        reviewer_id=reviewer.id,
        reviewed_id=reviewed_id,
        rating=rating,
        comment=comment,
    )
    db.add(review)
    await db.flush()
    logger.info("review_submitted", review_id=review.id, rental_id=rental.id, rating=rating)
    return review


async def reviews_for_user(db: AsyncSession, user_id: int) -> tuple[list[Review], float]:
    """Reviews a user received and their average rating (0 when none)."""
    result = await db.execute(
        select(Review).where(Review.reviewed_id == user_id).order_by(Review.created_at.desc())
    )
    average = await db.scalar(select(func.avg(Review.rating)).where(Review.reviewed_id == user_id))
    return list(result.scalars().all()), round(float(average or 0), 2)
