"""
NOAA SWPC plaintext feeds.

daily-geomagnetic-indices.txt (observed):

    #  Date        A     K-indices        A     K-indices        A     K-indices
    2024 09 21     5  1 1 2 2 1 1 1 2     3  1 1 1 1 1 0 1 1     6  1 1 2 2 1 2 1 1

Columns are fixed width, so missing values (-1) run together as "-1-1-1".

27-day-outlook.txt (forecast):

    #  Date       10.7 cm      A Index    Kp Index
    2024 Sep 23     200          12          4
"""
from datetime import date
from typing import List, Optional
import logging
import re

import httpx

from healthdiary.config import get_settings
from .base import KpFeed, KpReading

logger = logging.getLogger(__name__)

MONTHS = {
    "Jan": 1, "Feb": 2, "Mar": 3, "Apr": 4, "May": 5, "Jun": 6,
    "Jul": 7, "Aug": 8, "Sep": 9, "Oct": 10, "Nov": 11, "Dec": 12,
}

DAILY_LINE = re.compile(r"^\d{4}\s+\d{2}\s+\d{2}")
FORECAST_LINE = re.compile(r"^\d{4}\s+[A-Za-z]{3}\s+\d{2}")
NUMBER = re.compile(r"-?\d+(?:\.\d+)?")

# Token layout of a daily line: Y M D | Fredericksburg A + 8K | College A + 8K | Planetary A + 8K
PLANETARY_K = slice(22, 30)
DAILY_TOKEN_COUNT = 30
FORECAST_KP_FIELD = 5


def tokenize_daily_line(line: str) -> List[str]:
    """
    Split a daily-indices line into numeric tokens.

    A minus sign always starts a new token, so "-1-1-1-1" gives four "-1"
    placeholders and "5-1" gives "5" and "-1".
    """
    return NUMBER.findall(line)


def parse_daily_line(line: str) -> Optional[KpReading]:
    """Parse one data line, or return None if it is not a complete day."""
    line = line.strip()
    if not DAILY_LINE.match(line):
        return None

    tokens = tokenize_daily_line(line)
    if len(tokens) < DAILY_TOKEN_COUNT:
        return None

    try:
        day = date(int(tokens[0]), int(tokens[1]), int(tokens[2]))
        k_values = [float(v) for v in tokens[PLANETARY_K]]
    except ValueError:
        return None

    # No interpolation: a single missing sub-index drops the whole day
    if len(k_values) != 8 or any(v < 0 for v in k_values):
        return None

    return KpReading(date=day, kp_index=sum(k_values) / len(k_values))


def parse_daily_indices(text: str, start: date, end: date) -> List[KpReading]:
    readings = []
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith(("#", ":")):
            continue
        reading = parse_daily_line(line)
        if reading is None:
            if DAILY_LINE.match(line):
                logger.debug(f"Skipping incomplete Kp day: {line}")
            continue
        if start <= reading.date <= end:
            readings.append(reading)
    return readings


def parse_forecast_line(line: str) -> Optional[KpReading]:
    line = line.strip()
    if not FORECAST_LINE.match(line):
        return None

    parts = line.split()
    if len(parts) <= FORECAST_KP_FIELD:
        logger.warning(f"Invalid forecast line format, skipping: {line}")
        return None

    month = MONTHS.get(parts[1].title())
    if month is None:
        logger.warning(f"Invalid month in forecast line: {parts[1]}")
        return None

    try:
        day = date(int(parts[0]), month, int(parts[2]))
        kp = int(parts[FORECAST_KP_FIELD])
    except ValueError:
        logger.warning(f"Invalid Kp forecast value, skipping: {line}")
        return None

    if kp < 0:
        return None

    return KpReading(date=day, kp_index=float(kp), is_forecast=True)


def parse_forecast(text: str, start: date, end: date) -> List[KpReading]:
    readings = []
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith(("#", ":")):
            continue
        reading = parse_forecast_line(line)
        if reading is not None and start <= reading.date <= end:
            readings.append(reading)
    return readings


class NOAAIntegration(KpFeed):
    """Client for the SWPC daily-indices and 27-day-outlook text products."""

    TIMEOUT = 15.0

    def __init__(self):
        self.settings = get_settings()

    async def _get_text(self, url: str) -> Optional[str]:
        try:
            async with httpx.AsyncClient(timeout=self.TIMEOUT) as client:
                response = await client.get(url)
                response.raise_for_status()
                return response.text
        except httpx.HTTPError as e:
            logger.error(f"NOAA request to {url} failed: {e}")
            return None

    async def fetch_daily(self, start: date, end: date) -> List[KpReading]:
        text = await self._get_text(self.settings.kp_daily_url)
        if text is None:
            return []
        try:
            return parse_daily_indices(text, start, end)
        except Exception as e:
            logger.error(f"Could not parse NOAA daily indices: {e}")
            return []

    async def fetch_forecast(self, start: date, end: date) -> List[KpReading]:
        text = await self._get_text(self.settings.kp_forecast_url)
        if text is None:
            return []
        try:
            return parse_forecast(text, start, end)
        except Exception as e:
            logger.error(f"Could not parse NOAA forecast: {e}")
            return []
