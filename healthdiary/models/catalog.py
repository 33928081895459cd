from sqlalchemy import Column, String, DateTime, Text, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid

from healthdiary.db.database import Base


class CatalogEntryMixin:
    """
    Shared columns for symptom and medication catalogs.

    Rows with is_custom=False are presets visible to every user; custom rows
    belong to the user who created them.
    """
    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    is_custom = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    @property
    def is_template(self) -> bool:
        return not self.is_custom

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "isCustom": bool(self.is_custom),
            "userId": self.user_id,
        }


class Symptom(CatalogEntryMixin, Base):
    __tablename__ = "symptoms"

    user_id = Column(String, ForeignKey("users.id"), nullable=True)

    user = relationship("User", back_populates="symptoms")
    records = relationship("SymptomRecord", back_populates="symptom", passive_deletes="all")


class Medication(CatalogEntryMixin, Base):
    __tablename__ = "medications"

    user_id = Column(String, ForeignKey("users.id"), nullable=True)

    user = relationship("User", back_populates="medications")
    records = relationship("MedicationRecord", back_populates="medication", passive_deletes="all")
