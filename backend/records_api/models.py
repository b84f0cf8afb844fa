from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String, Text, UniqueConstraint

from records_api.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RecordModel(Base):
    __tablename__ = "records"
    __table_args__ = (
        UniqueConstraint("email", name="uq_records_email"),
        # ids are never reused, including on SQLite
        {"sqlite_autoincrement": True},
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
