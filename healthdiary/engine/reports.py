"""
Symptom and medication reports rendered as PDF (reportlab) or Excel (xlsxwriter).

Charts are drawn with matplotlib into a temporary directory that only lives
for the duration of one document build.
"""
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from pathlib import Path
from typing import Dict, List, Optional, Tuple
from xml.sax.saxutils import escape
import logging
import os
import tempfile

import matplotlib
from matplotlib.figure import Figure
import xlsxwriter
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer, Image
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from healthdiary.config import get_settings
from healthdiary.models import User, Report, Symptom, Medication, SymptomRecord, MedicationRecord
from healthdiary.services import storage

logger = logging.getLogger(__name__)

KINDS = ("symptoms", "medications")
FORMATS = ("pdf", "excel")
TOP_N = 3
DOMINANT_SHARE = 0.5
DATE_FORMAT = "%d.%m.%Y %H:%M"

PDF_MIME = "application/pdf"
XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

TITLES = {
    "symptoms": "Symptom Report",
    "medications": "Medication Report",
}


@dataclass
class ReportStats:
    total: int
    counts: Dict[str, int]
    top: List[Tuple[str, int]]
    average_severity: Optional[float] = None
    recommendation: str = ""
    severity_series: List[Tuple[datetime, int]] = field(default_factory=list)


def summarize(records: list, kind: str) -> ReportStats:
    """Counts per category name (first-seen order on ties), top-N and mean severity."""
    counts: Dict[str, int] = {}
    for record in records:
        name = record.category_name
        counts[name] = counts.get(name, 0) + 1

    # sorted() is stable, so equal counts keep first-seen order
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)

    stats = ReportStats(total=len(records), counts=dict(ranked), top=ranked[:TOP_N])

    if kind == "symptoms":
        severities = [r.weight for r in records if r.weight is not None]
        if severities:
            stats.average_severity = round(sum(severities) / len(severities), 2)
        stats.severity_series = [
            (r.record_date, r.weight) for r in records if r.weight is not None
        ]

    stats.recommendation = recommendation_for(stats, kind)
    return stats


def recommendation_for(stats: ReportStats, kind: str) -> str:
    if stats.total and stats.top:
        name, count = stats.top[0]
        if count / stats.total > DOMINANT_SHARE:
            if kind == "symptoms":
                return (
                    f"{name} accounts for most of your symptom records ({count} of {stats.total}). "
                    f"Consider consulting a doctor about it."
                )
            return (
                f"{name} makes up most of your medication intake ({count} of {stats.total}). "
                f"Confirm the dosage with your doctor."
            )

    if kind == "symptoms":
        return "No single symptom dominates this period. Keep logging and consult a doctor if anything gets worse."
    return "Your medication intake is spread across several drugs. Keep following the prescribed schedule."


# --- Charts ---

def render_pie_chart(counts: Dict[str, int], path: Path, title: str) -> Path:
    fig = Figure(figsize=(6, 4))
    ax = fig.subplots()
    ax.pie(list(counts.values()), labels=list(counts.keys()), autopct="%1.0f%%", startangle=90)
    ax.set_title(title)
    ax.axis("equal")
    fig.tight_layout()
    fig.savefig(path, format="png", dpi=100)
    return path


def render_severity_chart(series: List[Tuple[datetime, int]], path: Path) -> Path:
    fig = Figure(figsize=(7, 3.5))
    ax = fig.subplots()
    ax.plot([point[0] for point in series], [point[1] for point in series], marker="o")
    ax.set_ylim(0, 5.5)
    ax.set_title("Severity over time")
    ax.set_ylabel("Severity (0-5)")
    fig.autofmt_xdate()
    fig.tight_layout()
    fig.savefig(path, format="png", dpi=100)
    return path


def render_charts(stats: ReportStats, kind: str, chart_dir: str) -> Dict[str, Path]:
    charts = {
        "pie": render_pie_chart(
            stats.counts,
            Path(chart_dir) / "distribution.png",
            "Symptom distribution" if kind == "symptoms" else "Medication distribution"
        )
    }
    if kind == "symptoms" and stats.severity_series:
        charts["severity"] = render_severity_chart(stats.severity_series, Path(chart_dir) / "severity.png")
    return charts


# --- Documents ---

def detail_rows(records: list, kind: str) -> List[List[str]]:
    if kind == "symptoms":
        rows = [["Date", "Symptom", "Severity (0-5)"]]
        for r in records:
            rows.append([
                r.record_date.strftime(DATE_FORMAT),
                r.category_name,
                "" if r.weight is None else str(r.weight)
            ])
    else:
        rows = [["Date", "Medication", "Dosage", "Quantity"]]
        for r in records:
            rows.append([
                r.record_date.strftime(DATE_FORMAT),
                r.category_name,
                r.dosage or "",
                "" if r.quantity is None else str(r.quantity)
            ])
    return rows


def summary_rows(stats: ReportStats, kind: str) -> List[List[str]]:
    rows = [["Metric", "Value"], ["Total records", str(stats.total)]]
    if kind == "symptoms":
        avg = "n/a" if stats.average_severity is None else f"{stats.average_severity:.2f}"
        rows.append(["Average severity", avg])
    return rows


def _register_font(name: str, path: Path) -> str:
    if name not in pdfmetrics.getRegisteredFontNames():
        pdfmetrics.registerFont(TTFont(name, str(path)))
    return name


def _pdf_font() -> Tuple[str, str]:
    """
    Regular and bold font names for PDF text.

    The built-in Type 1 fonts have no Cyrillic glyphs, so a TTF is always
    embedded: REPORT_FONT_PATH when set, otherwise the DejaVu Sans that
    ships with matplotlib.
    """
    font_path = get_settings().report_font_path
    if font_path and os.path.exists(font_path):
        font = _register_font("ReportFont", Path(font_path))
        return font, font

    ttf_dir = Path(matplotlib.get_data_path()) / "fonts" / "ttf"
    return (
        _register_font("DejaVuSans", ttf_dir / "DejaVuSans.ttf"),
        _register_font("DejaVuSans-Bold", ttf_dir / "DejaVuSans-Bold.ttf"),
    )


def _table_style(header_font: str, body_font: str) -> TableStyle:
    return TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.grey),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.whitesmoke),
        ("ALIGN", (0, 0), (-1, -1), "LEFT"),
        ("FONTNAME", (0, 0), (-1, 0), header_font),
        ("FONTNAME", (0, 1), (-1, -1), body_font),
        ("BOTTOMPADDING", (0, 0), (-1, 0), 8),
        ("BACKGROUND", (0, 1), (-1, -1), colors.beige),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.black),
    ])


def write_pdf(path: Path, user: User, kind: str, start: date, end: date,
              stats: ReportStats, records: list, charts: Dict[str, Path]) -> None:
    regular, bold = _pdf_font()
    styles = getSampleStyleSheet()
    for name in ("Title", "Heading2", "Normal"):
        styles[name].fontName = bold if name != "Normal" else regular

    doc = SimpleDocTemplate(str(path), pagesize=A4)
    elements = [
        Paragraph(TITLES[kind], styles["Title"]),
        Paragraph(f"User: {escape(user.username)} (age {user.age})", styles["Normal"]),
        Paragraph(f"Period: {start.strftime('%d.%m.%Y')} - {end.strftime('%d.%m.%Y')}", styles["Normal"]),
        Spacer(1, 16),
    ]

    summary = Table(summary_rows(stats, kind), colWidths=[200, 200])
    summary.setStyle(_table_style(bold, regular))
    elements += [summary, Spacer(1, 16)]

    elements.append(Paragraph(f"Top {TOP_N}", styles["Heading2"]))
    for idx, (name, count) in enumerate(stats.top, 1):
        elements.append(Paragraph(f"{idx}. {escape(name)}: {count}", styles["Normal"]))
    elements.append(Spacer(1, 12))

    elements.append(Paragraph("Recommendation", styles["Heading2"]))
    elements.append(Paragraph(escape(stats.recommendation), styles["Normal"]))
    elements.append(Spacer(1, 12))

    elements.append(Image(str(charts["pie"]), width=360, height=240))
    if "severity" in charts:
        elements.append(Image(str(charts["severity"]), width=420, height=210))
    elements.append(Spacer(1, 16))

    elements.append(Paragraph("Records", styles["Heading2"]))
    details = Table(detail_rows(records, kind), repeatRows=1)
    details.setStyle(_table_style(bold, regular))
    elements.append(details)

    doc.build(elements)


def write_excel(path: Path, user: User, kind: str, start: date, end: date,
                stats: ReportStats, records: list, charts: Dict[str, Path]) -> None:
    workbook = xlsxwriter.Workbook(str(path))
    try:
        header_format = workbook.add_format({
            "bold": True,
            "bg_color": "#4154f1",
            "font_color": "white",
            "align": "center"
        })
        title_format = workbook.add_format({"bold": True, "font_size": 14})

        sheet = workbook.add_worksheet("Summary")
        sheet.set_column(0, 0, 24)
        sheet.set_column(1, 1, 40)
        sheet.write(0, 0, TITLES[kind], title_format)
        sheet.write(1, 0, "User")
        sheet.write(1, 1, f"{user.username} (age {user.age})")
        sheet.write(2, 0, "Period")
        sheet.write(2, 1, f"{start.strftime('%d.%m.%Y')} - {end.strftime('%d.%m.%Y')}")

        row = 4
        for idx, values in enumerate(summary_rows(stats, kind)):
            for col, value in enumerate(values):
                sheet.write(row, col, value, header_format if idx == 0 else None)
            row += 1

        row += 1
        sheet.write(row, 0, f"Top {TOP_N}", header_format)
        sheet.write(row, 1, "Count", header_format)
        for name, count in stats.top:
            row += 1
            sheet.write(row, 0, name)
            sheet.write(row, 1, count)

        row += 2
        sheet.write(row, 0, "Recommendation", header_format)
        sheet.write(row, 1, stats.recommendation)

        sheet.insert_image(0, 3, str(charts["pie"]), {"x_scale": 0.8, "y_scale": 0.8})
        if "severity" in charts:
            sheet.insert_image(18, 3, str(charts["severity"]), {"x_scale": 0.8, "y_scale": 0.8})

        records_sheet = workbook.add_worksheet("Records")
        for r_idx, values in enumerate(detail_rows(records, kind)):
            for col, value in enumerate(values):
                records_sheet.write(r_idx, col, value, header_format if r_idx == 0 else None)
        records_sheet.set_column(0, 0, 18)
        records_sheet.set_column(1, 3, 24)
    finally:
        # Images are read from disk here, so the chart directory must still exist
        workbook.close()


class ReportGenerator:
    """Builds one report file and its Report row for a user and a date range."""

    def __init__(self, db: Session):
        self.db = db

    def load_records(self, user_id: str, kind: str, start: date, end: date) -> list:
        lower = datetime.combine(start, time.min)
        upper = datetime.combine(end + timedelta(days=1), time.min)

        if kind == "symptoms":
            query = self.db.query(SymptomRecord).join(Symptom, SymptomRecord.symptom_id == Symptom.id)
            model = SymptomRecord
        else:
            query = self.db.query(MedicationRecord).join(Medication, MedicationRecord.medication_id == Medication.id)
            model = MedicationRecord

        return query.filter(
            model.user_id == user_id,
            model.record_date >= lower,
            model.record_date < upper
        ).order_by(model.record_date.asc()).all()

    def generate(self, user: User, kind: str, fmt: str, start: date, end: date) -> Optional[Report]:
        """Render and persist a report. Returns None when the period has no records."""
        if kind not in KINDS or fmt not in FORMATS:
            raise ValueError(f"Unsupported report {kind}/{fmt}")

        records = self.load_records(user.id, kind, start, end)
        if not records:
            return None

        stats = summarize(records, kind)
        extension = "pdf" if fmt == "pdf" else "xlsx"
        filename = storage.unique_name(f"{kind}_report_{user.id}.{extension}")
        rel_path = storage.relative_path(storage.REPORTS, filename)
        writer = write_pdf if fmt == "pdf" else write_excel

        storage.ensure_dirs()
        with storage.removed_on_failure(rel_path):
            with tempfile.TemporaryDirectory(prefix="report-charts-") as chart_dir:
                charts = render_charts(stats, kind, chart_dir)
                writer(storage.resolve(rel_path), user, kind, start, end, stats, records, charts)

            report = Report(
                user_id=user.id,
                type=Report.type_for(kind, fmt),
                start_date=start,
                end_date=end,
                file_path=rel_path
            )
            try:
                self.db.add(report)
                self.db.commit()
            except SQLAlchemyError:
                self.db.rollback()
                raise
            self.db.refresh(report)

        logger.info(f"Generated {report.type} report {report.id} for user {user.id} ({stats.total} records)")
        return report
