from sqlalchemy import Column, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid

from healthdiary.db.database import Base


class Analysis(Base):
    """Uploaded lab result (photo or PDF) pinned to a calendar date."""
    __tablename__ = "analyses"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("users.id"), nullable=False)
    title = Column(String, nullable=False)  # e.g. "Blood test"
    file_path = Column(String, nullable=False)  # relative to UPLOAD_DIR
    record_date = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="analyses")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "title": self.title,
            "filePath": self.file_path,
            "recordDate": self.record_date.isoformat() if self.record_date else None,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
