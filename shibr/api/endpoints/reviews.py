"""Review endpoints."""
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from shibr.core.database import get_db
from shibr.core.security import get_current_user
from shibr.models.user import User
from shibr.schemas.rental import ReviewCreate, ReviewResponse, UserReviews
from shibr.services import reviews

router = APIRouter()


@router.post("/", response_model=ReviewResponse, status_code=status.HTTP_201_CREATED)
async def submit_review(
    body: ReviewCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Rate the other party of a completed rental."""
    return await reviews.submit_review(db, user, body.rental_request_id, body.rating, body.comment)


@router.get("/users/{user_id}", response_model=UserReviews)
async def list_user_reviews(
    user_id: int,
    db: AsyncSession = Depends(get_db),
):
    """Reviews a user has received."""
    items, average = await reviews.reviews_for_user(db, user_id)
    return UserReviews(
        user_id=user_id,
        average_rating=average,
        reviews=[ReviewResponse.model_validate(r) for r in items],
    )
