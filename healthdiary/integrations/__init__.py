from .base import KpFeed, KpReading
from .noaa import NOAAIntegration
