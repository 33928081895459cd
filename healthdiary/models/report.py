from sqlalchemy import Column, String, DateTime, Date, ForeignKey, Enum
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid

from healthdiary.db.database import Base


class Report(Base):
    """Generated PDF/Excel artifact. The file lives as long as the row does."""
    __tablename__ = "reports"

    TYPES = ("symptoms", "medications", "symptoms_excel", "medications_excel")

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("users.id"), nullable=False)
    type = Column(Enum(*TYPES, name="report_type"), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    file_path = Column(String, nullable=False)  # relative to UPLOAD_DIR
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="reports")

    @staticmethod
    def type_for(kind: str, fmt: str) -> str:
        return kind if fmt == "pdf" else f"{kind}_excel"

    @property
    def is_excel(self) -> bool:
        return self.type.endswith("_excel")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "type": self.type,
            "startDate": str(self.start_date),
            "endDate": str(self.end_date),
            "filePath": self.file_path,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
