from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from healthdiary.db import get_db
from healthdiary.engine.kp_index import KpIndexReconciler
from healthdiary.integrations import KpFeed, NOAAIntegration

router = APIRouter()

MAX_RANGE_DAYS = 366


def get_kp_feed() -> KpFeed:
    return NOAAIntegration()


@router.get("")
async def get_kp_index(
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
    db: Session = Depends(get_db),
    feed: KpFeed = Depends(get_kp_feed)
):
    """Daily Kp values for [start, end], backfilled from NOAA where the cache has gaps."""
    if start is None or end is None:
        raise HTTPException(status_code=400, detail="Both start and end dates are required")
    if start > end:
        raise HTTPException(status_code=400, detail="start must not be after end")
    if (end - start).days >= MAX_RANGE_DAYS:
        raise HTTPException(status_code=400, detail=f"Range is limited to {MAX_RANGE_DAYS} days")

    return await KpIndexReconciler(db, feed).get_range(start, end)


@router.get("/forecast")
async def get_kp_forecast(db: Session = Depends(get_db), feed: KpFeed = Depends(get_kp_feed)):
    """Today plus 25 days; kpIndex is null where no forecast exists yet."""
    return await KpIndexReconciler(db, feed).get_forecast()
