from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional
import logging

from sqlalchemy.orm import Session

from healthdiary.integrations import KpFeed, KpReading
from healthdiary.models import KpIndex

logger = logging.getLogger(__name__)

FORECAST_DAYS_AHEAD = 25
HISTORY_REFRESH_DAYS = 30


def date_span(start: date, end: date) -> List[date]:
    days = []
    current = start
    while current <= end:
        days.append(current)
        current += timedelta(days=1)
    return days


class KpIndexReconciler:
    """
    Date-indexed cache of planetary Kp values backed by a KpFeed.

    Observed values replace provisional forecast values for the same date;
    forecasts never overwrite an observed value.
    """

    def __init__(self, db: Session, feed: KpFeed):
        self.db = db
        self.feed = feed

    def _stored(self, start: date, end: date) -> Dict[date, KpIndex]:
        rows = self.db.query(KpIndex).filter(
            KpIndex.date >= start,
            KpIndex.date <= end
        ).order_by(KpIndex.date.asc()).all()
        return {row.date: row for row in rows}

    def upsert(self, day: date, value: float, is_forecast: bool = False) -> Optional[KpIndex]:
        """Insert or replace the value for `day`. Returns None if the write was refused."""
        existing = self.db.query(KpIndex).filter(KpIndex.date == day).first()

        if existing:
            if is_forecast and not existing.is_forecast:
                return None
            existing.kp_index = value
            existing.is_forecast = is_forecast
            row = existing
        else:
            row = KpIndex(date=day, kp_index=value, is_forecast=is_forecast)
            self.db.add(row)

        self.db.flush()
        return row

    def store(self, readings: Iterable[KpReading]) -> int:
        written = 0
        for reading in readings:
            if self.upsert(reading.date, reading.kp_index, reading.is_forecast) is not None:
                written += 1
        self.db.commit()
        return written

    async def get_range(self, start: date, end: date) -> List[dict]:
        """One entry per stored day in [start, end], filling gaps from the observed feed."""
        days = date_span(start, end)
        stored = self._stored(start, end)

        missing = [d for d in days if d not in stored]
        if missing:
            readings = await self.feed.fetch_daily(min(missing), max(missing))
            if readings:
                self.store(readings)
                stored = self._stored(start, end)
            else:
                logger.warning(f"No Kp data for {start} - {end} from the feed")

        return [stored[d].to_dict() for d in days if d in stored]

    async def get_forecast(self, today: Optional[date] = None) -> List[dict]:
        """Exactly FORECAST_DAYS_AHEAD + 1 entries, kpIndex None where nothing is known yet."""
        today = today or date.today()
        end = today + timedelta(days=FORECAST_DAYS_AHEAD)
        days = date_span(today, end)
        stored = self._stored(today, end)

        if any(d not in stored for d in days):
            readings = await self.feed.fetch_forecast(today, end)
            if readings:
                self.store(readings)
                stored = self._stored(today, end)

        return [
            {"date": d.isoformat(), "kpIndex": stored[d].rounded if d in stored else None}
            for d in days
        ]

    async def refresh(self, today: Optional[date] = None) -> dict:
        """Re-pull the trailing observed window and the forecast window."""
        today = today or date.today()

        observed = await self.feed.fetch_daily(today - timedelta(days=HISTORY_REFRESH_DAYS), today)
        forecast = await self.feed.fetch_forecast(today, today + timedelta(days=FORECAST_DAYS_AHEAD))

        result = {
            "observed": self.store(observed),
            "forecast": self.store(forecast),
        }
        logger.info(f"Kp refresh stored {result['observed']} observed and {result['forecast']} forecast days")
        return result
