from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from healthdiary.auth import get_current_user, ensure_subject
from healthdiary.db import get_db
from healthdiary.engine.advice import HealthAdvisor
from healthdiary.models import User
from healthdiary.services.rate_limiter import RateLimiter
from healthdiary.api.schemas import DateRange

router = APIRouter()


class RecommendationRequest(DateRange):
    user_id: Optional[str] = None


def get_rate_limiter(request: Request) -> RateLimiter:
    """The process-wide AI limiter built in the app lifespan."""
    limiter = getattr(request.app.state, "ai_limiter", None)
    if limiter is None:
        raise HTTPException(status_code=500, detail="AI rate limiter is not initialized")
    return limiter


def get_advisor() -> HealthAdvisor:
    return HealthAdvisor()


@router.post("/recommendations")
async def recommendations(
    data: RecommendationRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    limiter: RateLimiter = Depends(get_rate_limiter),
    advisor: HealthAdvisor = Depends(get_advisor)
):
    """
    General, non-diagnostic suggestions based on the user's logged symptoms and medications.

    Requests are queued behind a shared limiter, never rejected.
    """
    ensure_subject(data.user_id, user)
    if data.start_date > data.end_date:
        raise HTTPException(status_code=400, detail="startDate must not be after endDate")

    text = await limiter.schedule(advisor.recommend, db, user.id, data.start_date, data.end_date)
    return {"recommendations": text}
