"""
Symptom and medication catalogs.

Both share one shape: shared presets (is_custom=False) plus entries each user
adds for themselves. Presets are seeded by scripts/seed_templates.py and are
read-only here.
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import or_
from sqlalchemy.orm import Session

from healthdiary.auth import get_current_user, authorize, ensure_subject
from healthdiary.db import get_db
from healthdiary.models import User, Symptom, Medication
from healthdiary.api.schemas import CamelModel


class CatalogEntryCreate(CamelModel):
    name: str
    description: Optional[str] = None
    is_custom: Optional[bool] = None  # accepted for compatibility, entries are always custom
    user_id: Optional[str] = None


class CatalogEntryUpdate(CamelModel):
    name: Optional[str] = None
    description: Optional[str] = None


def build_catalog_router(model, label: str) -> APIRouter:
    router = APIRouter()

    def _get_or_404(db: Session, entry_id: str):
        entry = db.query(model).filter(model.id == entry_id).first()
        if not entry:
            raise HTTPException(status_code=404, detail=f"{label} not found")
        return entry

    @router.get("")
    def list_all(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
        """Presets plus the caller's own entries."""
        entries = db.query(model).filter(
            or_(model.is_custom == False, model.user_id == user.id)
        ).order_by(model.created_at.asc()).all()
        return [entry.to_dict() for entry in entries]

    @router.get("/user/{user_id}")
    def list_by_user(user_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
        """Custom entries created by the user."""
        authorize(user_id, user)

        entries = db.query(model).filter(model.user_id == user_id).order_by(model.created_at.asc()).all()
        if not entries:
            raise HTTPException(status_code=404, detail=f"No {label.lower()} entries found for this user")

        return [entry.to_dict() for entry in entries]

    @router.get("/all/{user_id}")
    def list_available(user_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
        """Presets first, then the user's own entries."""
        authorize(user_id, user)

        templates = db.query(model).filter(model.is_custom == False).order_by(model.name.asc()).all()
        custom = db.query(model).filter(
            model.user_id == user_id,
            model.is_custom == True
        ).order_by(model.created_at.asc()).all()

        return [entry.to_dict() for entry in templates + custom]

    @router.get("/{entry_id}")
    def get_one(entry_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
        entry = _get_or_404(db, entry_id)
        if entry.is_custom:
            authorize(entry.user_id, user)
        return entry.to_dict()

    @router.post("", status_code=201)
    def create(data: CatalogEntryCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
        ensure_subject(data.user_id, user)

        name = data.name.strip()
        if not name:
            raise HTTPException(status_code=400, detail="Name is required")

        entry = model(
            name=name,
            description=data.description,
            is_custom=True,
            user_id=user.id
        )
        db.add(entry)
        db.commit()
        db.refresh(entry)

        return entry.to_dict()

    @router.put("/{entry_id}")
    def update(entry_id: str, data: CatalogEntryUpdate, user: User = Depends(get_current_user),
               db: Session = Depends(get_db)):
        entry = _get_or_404(db, entry_id)
        authorize(entry.user_id, user)

        if data.name is not None:
            if not data.name.strip():
                raise HTTPException(status_code=400, detail="Name is required")
            entry.name = data.name.strip()
        if data.description is not None:
            entry.description = data.description

        db.commit()
        db.refresh(entry)

        return entry.to_dict()

    @router.delete("/{entry_id}")
    def delete(entry_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
        entry = _get_or_404(db, entry_id)
        authorize(entry.user_id, user)

        in_use = len(entry.records)
        if in_use:
            raise HTTPException(
                status_code=400,
                detail=f"{label} is used by {in_use} health record(s); delete those records first"
            )

        db.delete(entry)
        db.commit()

        return {"message": f"{label} deleted successfully"}

    return router


symptom_router = build_catalog_router(Symptom, "Symptom")
medication_router = build_catalog_router(Medication, "Medication")
