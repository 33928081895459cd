from sqlalchemy import Column, Integer, Date, DateTime, Float, Boolean
from datetime import datetime
import math

from healthdiary.db.database import Base


class KpIndex(Base):
    """Daily planetary Kp value, either observed or provisional (forecast)."""
    __tablename__ = "kp_indices"

    id = Column(Integer, primary_key=True, autoincrement=True)
    date = Column(Date, unique=True, nullable=False)
    kp_index = Column(Float, nullable=False)
    is_forecast = Column(Boolean, default=False, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def rounded(self) -> int:
        # half-up, 2.5 -> 3
        return int(math.floor(self.kp_index + 0.5))

    def to_dict(self) -> dict:
        return {
            "date": str(self.date),
            "kpIndex": self.rounded,
        }
