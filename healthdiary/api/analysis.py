from datetime import datetime
from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException, UploadFile, File, Form
from fastapi.responses import FileResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from pydantic import TypeAdapter, ValidationError

from healthdiary.auth import get_current_user, authorize
from healthdiary.config import get_settings
from healthdiary.db import get_db
from healthdiary.models import User, Analysis
from healthdiary.services import storage
from healthdiary.api.schemas import RecordDateTime

router = APIRouter()

ALLOWED_TYPES = {"image/jpeg", "image/png", "application/pdf"}

CONTENT_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".pdf": "application/pdf",
}

_record_date = TypeAdapter(RecordDateTime)


def _owned_or_404(db: Session, analysis_id: str, user: User) -> Analysis:
    analysis = db.query(Analysis).filter(Analysis.id == analysis_id).first()
    if not analysis:
        raise HTTPException(status_code=404, detail="Analysis not found")
    authorize(analysis.user_id, user)
    return analysis


@router.post("/upload", status_code=201)
async def upload_analysis(
    file: UploadFile = File(...),
    title: str = Form(""),
    record_date: str = Form("", alias="recordDate"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Upload a lab result (JPEG, PNG or PDF, up to MAX_UPLOAD_BYTES) for a calendar date.
    """
    if not title.strip() or not record_date.strip():
        raise HTTPException(status_code=400, detail="Analysis title and date are required")

    try:
        recorded_at: datetime = _record_date.validate_python(record_date.strip())
    except ValidationError:
        raise HTTPException(status_code=400, detail="Invalid analysis date")

    if file.content_type not in ALLOWED_TYPES:
        raise HTTPException(status_code=400, detail="Invalid file type. Only JPEG, PNG and PDF are allowed.")

    limit = get_settings().max_upload_bytes
    content = await file.read(limit + 1)
    if not content:
        raise HTTPException(status_code=400, detail="File was not uploaded")
    if len(content) > limit:
        raise HTTPException(status_code=400, detail="File is too large")

    rel_path = storage.save_bytes(storage.ANALYSES, file.filename, content)

    with storage.removed_on_failure(rel_path):
        analysis = Analysis(
            user_id=user.id,
            title=title.strip(),
            file_path=rel_path,
            record_date=recorded_at
        )
        try:
            db.add(analysis)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        db.refresh(analysis)

    return {"message": "Analysis uploaded successfully", "analysis": analysis.to_dict()}


@router.get("/user/{user_id}")
def list_user_analyses(user_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    authorize(user_id, user)

    analyses = db.query(Analysis).filter(
        Analysis.user_id == user_id
    ).order_by(Analysis.record_date.asc()).all()

    return [a.to_dict() for a in analyses]


@router.get("/file/{analysis_id}")
def get_analysis_file(analysis_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    analysis = _owned_or_404(db, analysis_id, user)

    if not storage.exists(analysis.file_path):
        raise HTTPException(status_code=404, detail="File not found")

    path = storage.resolve(analysis.file_path)
    media_type = CONTENT_TYPES.get(Path(path).suffix.lower(), "application/octet-stream")

    return FileResponse(
        path,
        media_type=media_type,
        headers={"Content-Disposition": "inline"}
    )


@router.delete("/{analysis_id}")
def delete_analysis(analysis_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    analysis = _owned_or_404(db, analysis_id, user)

    storage.remove(analysis.file_path)
    db.delete(analysis)
    db.commit()

    return {"message": "Analysis deleted successfully"}
