from datetime import date, datetime, time, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from pydantic import Field

from healthdiary.auth import get_current_user, authorize, ensure_subject
from healthdiary.db import get_db
from healthdiary.models import User, Symptom, Medication, HealthRecord, SymptomRecord, MedicationRecord
from healthdiary.api.schemas import CamelModel, RecordDateTime

router = APIRouter()


class SymptomRecordCreate(CamelModel):
    record_date: RecordDateTime
    symptom_id: str
    weight: Optional[int] = Field(default=None, ge=0, le=5)  # severity
    notes: Optional[str] = None
    user_id: Optional[str] = None


class MedicationRecordCreate(CamelModel):
    record_date: RecordDateTime
    medication_id: str
    dosage: Optional[str] = None
    quantity: Optional[int] = Field(default=None, ge=0)
    notes: Optional[str] = None
    user_id: Optional[str] = None


class HealthRecordUpdate(CamelModel):
    record_date: Optional[RecordDateTime] = None
    notes: Optional[str] = None
    weight: Optional[int] = Field(default=None, ge=0, le=5)
    dosage: Optional[str] = None
    quantity: Optional[int] = Field(default=None, ge=0)


def _get_or_404(db: Session, record_id: str) -> HealthRecord:
    record = db.query(HealthRecord).filter(HealthRecord.id == record_id).first()
    if not record:
        raise HTTPException(status_code=404, detail="Health record not found")
    return record


def _usable_entry(db: Session, model, entry_id: str, user: User, label: str):
    """Catalog entry that the user may log against: a preset or one of their own."""
    entry = db.query(model).filter(model.id == entry_id).first()
    if not entry:
        raise HTTPException(status_code=400, detail=f"{label} not found")
    if entry.is_custom and entry.user_id != user.id:
        raise HTTPException(status_code=403, detail=f"{label} belongs to another user")
    return entry


@router.get("")
def list_records(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """All records of the authenticated user."""
    records = db.query(HealthRecord).filter(
        HealthRecord.user_id == user.id
    ).order_by(HealthRecord.record_date.asc()).all()
    return [r.to_dict() for r in records]


@router.get("/user/{user_id}")
def list_by_user(user_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    authorize(user_id, user)

    records = db.query(HealthRecord).filter(
        HealthRecord.user_id == user_id
    ).order_by(HealthRecord.record_date.asc()).all()
    return [r.to_dict() for r in records]


@router.get("/user/{user_id}/date/{record_date}")
def list_by_user_and_date(user_id: str, record_date: date, user: User = Depends(get_current_user),
                          db: Session = Depends(get_db)):
    """Records logged on one calendar day."""
    authorize(user_id, user)

    day_start = datetime.combine(record_date, time.min)
    records = db.query(HealthRecord).filter(
        HealthRecord.user_id == user_id,
        HealthRecord.record_date >= day_start,
        HealthRecord.record_date < day_start + timedelta(days=1)
    ).order_by(HealthRecord.record_date.asc()).all()

    if not records:
        raise HTTPException(status_code=404, detail="No health records found for this user on the given date")

    return [r.to_dict() for r in records]


@router.get("/{record_id}")
def get_record(record_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    record = _get_or_404(db, record_id)
    authorize(record.user_id, user)
    return record.to_dict()


@router.post("/symptoms", status_code=201)
def create_symptom_record(data: SymptomRecordCreate, user: User = Depends(get_current_user),
                          db: Session = Depends(get_db)):
    ensure_subject(data.user_id, user)
    _usable_entry(db, Symptom, data.symptom_id, user, "Symptom")

    record = SymptomRecord(
        user_id=user.id,
        record_date=data.record_date,
        symptom_id=data.symptom_id,
        weight=data.weight,
        notes=data.notes
    )
    db.add(record)
    db.commit()
    db.refresh(record)

    return record.to_dict()


@router.post("/medications", status_code=201)
def create_medication_record(data: MedicationRecordCreate, user: User = Depends(get_current_user),
                             db: Session = Depends(get_db)):
    ensure_subject(data.user_id, user)
    _usable_entry(db, Medication, data.medication_id, user, "Medication")

    record = MedicationRecord(
        user_id=user.id,
        record_date=data.record_date,
        medication_id=data.medication_id,
        dosage=data.dosage,
        quantity=data.quantity,
        notes=data.notes
    )
    db.add(record)
    db.commit()
    db.refresh(record)

    return record.to_dict()


@router.put("/{record_id}")
def update_record(record_id: str, data: HealthRecordUpdate, user: User = Depends(get_current_user),
                  db: Session = Depends(get_db)):
    """Partial update; only fields of the record's own variant may be sent."""
    record = _get_or_404(db, record_id)
    authorize(record.user_id, user)

    # Explicit nulls clear optional fields
    changes = data.model_dump(exclude_unset=True)
    foreign = [name for name in changes if name not in record.UPDATABLE_FIELDS]
    if foreign:
        raise HTTPException(
            status_code=400,
            detail=f"Fields not applicable to a {record.kind} record: {', '.join(sorted(foreign))}"
        )
    if "record_date" in changes and changes["record_date"] is None:
        raise HTTPException(status_code=400, detail="recordDate cannot be cleared")

    for name, value in changes.items():
        setattr(record, name, value)

    db.commit()
    db.refresh(record)

    return record.to_dict()


@router.delete("/{record_id}")
def delete_record(record_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    record = _get_or_404(db, record_id)
    authorize(record.user_id, user)

    db.delete(record)
    db.commit()

    return {"message": "Health record deleted successfully"}
