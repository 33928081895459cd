from sqlalchemy import Column, String, DateTime, Integer, Text, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid

from healthdiary.db.database import Base


class HealthRecord(Base):
    """
    A single calendar entry: one symptom occurrence or one medication dose.

    Stored in one table, discriminated by `kind`. Each variant maps only the
    columns that belong to it.
    """
    __tablename__ = "health_records"
    __table_args__ = (
        CheckConstraint(
            "(kind = 'symptom' AND symptom_id IS NOT NULL AND medication_id IS NULL) OR "
            "(kind = 'medication' AND medication_id IS NOT NULL AND symptom_id IS NULL)",
            name="ck_health_records_variant",
        ),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("users.id"), nullable=False)
    kind = Column(String, nullable=False)
    record_date = Column(DateTime, nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="health_records")

    __mapper_args__ = {"polymorphic_on": kind}

    # Fields a partial update may touch; extended per variant
    UPDATABLE_FIELDS = ("record_date", "notes")

    @property
    def category_name(self) -> str:
        raise NotImplementedError

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.kind,
            "userId": self.user_id,
            "recordDate": self.record_date.isoformat() if self.record_date else None,
            "notes": self.notes,
        }


class SymptomRecord(HealthRecord):
    symptom_id = Column(String, ForeignKey("symptoms.id"), nullable=True)
    weight = Column(Integer, nullable=True)  # severity 0-5

    symptom = relationship("Symptom", back_populates="records")

    __mapper_args__ = {"polymorphic_identity": "symptom"}

    UPDATABLE_FIELDS = HealthRecord.UPDATABLE_FIELDS + ("weight",)

    @property
    def category_name(self) -> str:
        return self.symptom.name if self.symptom else "N/A"

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update({
            "symptomId": self.symptom_id,
            "medicationId": None,
            "symptom": {"name": self.symptom.name} if self.symptom else None,
            "weight": self.weight,
        })
        return data


class MedicationRecord(HealthRecord):
    medication_id = Column(String, ForeignKey("medications.id"), nullable=True)
    dosage = Column(String, nullable=True)  # e.g. "500mg"
    quantity = Column(Integer, nullable=True)  # tablets taken

    medication = relationship("Medication", back_populates="records")

    __mapper_args__ = {"polymorphic_identity": "medication"}

    UPDATABLE_FIELDS = HealthRecord.UPDATABLE_FIELDS + ("dosage", "quantity")

    @property
    def category_name(self) -> str:
        return self.medication.name if self.medication else "N/A"

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update({
            "medicationId": self.medication_id,
            "symptomId": None,
            "medication": {"name": self.medication.name} if self.medication else None,
            "dosage": self.dosage,
            "quantity": self.quantity,
        })
        return data
