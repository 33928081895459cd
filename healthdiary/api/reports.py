from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from healthdiary.auth import get_current_user, authorize, ensure_subject
from healthdiary.db import get_db
from healthdiary.engine.reports import ReportGenerator, KINDS, FORMATS, PDF_MIME, XLSX_MIME
from healthdiary.models import User, Report
from healthdiary.services import storage
from healthdiary.api.schemas import DateRange

router = APIRouter()


class ReportRequest(DateRange):
    user_id: Optional[str] = None


def _owned_or_404(db: Session, report_id: str, user: User) -> Report:
    report = db.query(Report).filter(Report.id == report_id).first()
    if not report:
        raise HTTPException(status_code=404, detail="Report not found")
    authorize(report.user_id, user)
    return report


def _file_response(report: Report) -> FileResponse:
    if not storage.exists(report.file_path):
        raise HTTPException(status_code=404, detail="Report file not found")

    path = storage.resolve(report.file_path)
    return FileResponse(
        path,
        media_type=XLSX_MIME if report.is_excel else PDF_MIME,
        filename=path.name,
        headers={"X-Report-Id": report.id}
    )


@router.post("/{kind}/{fmt}", status_code=201)
def create_report(kind: str, fmt: str, data: ReportRequest, user: User = Depends(get_current_user),
                  db: Session = Depends(get_db)):
    """
    Generate a symptom or medication report for a date range.

    Responds with the file itself; the new report id is in the X-Report-Id header.
    """
    if kind not in KINDS:
        raise HTTPException(status_code=400, detail=f"Report type must be one of: {', '.join(KINDS)}")
    if fmt not in FORMATS:
        raise HTTPException(status_code=400, detail=f"Report format must be one of: {', '.join(FORMATS)}")

    ensure_subject(data.user_id, user)
    if data.start_date > data.end_date:
        raise HTTPException(status_code=400, detail="startDate must not be after endDate")

    report = ReportGenerator(db).generate(user, kind, fmt, data.start_date, data.end_date)
    if report is None:
        raise HTTPException(status_code=404, detail=f"No {kind} records found for this user in the given period")

    response = _file_response(report)
    response.status_code = 201
    return response


@router.get("/user/{user_id}")
def list_reports(user_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    authorize(user_id, user)

    reports = db.query(Report).filter(Report.user_id == user_id).order_by(Report.created_at.desc()).all()
    return [r.to_dict() for r in reports]


@router.get("/{report_id}")
def get_report(report_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return _owned_or_404(db, report_id, user).to_dict()


@router.get("/{report_id}/download")
def download_report(report_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return _file_response(_owned_or_404(db, report_id, user))


@router.delete("/{report_id}")
def delete_report(report_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    report = _owned_or_404(db, report_id, user)

    storage.remove(report.file_path)
    db.delete(report)
    db.commit()

    return {"message": "Report deleted successfully"}
