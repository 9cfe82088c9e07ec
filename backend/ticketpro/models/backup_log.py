from sqlalchemy import Column, Integer, String

from ticketpro.db.base import Base, UTCDateTime, utcnow


class BackupLog(Base):
    __tablename__ = "backup_logs"

    id = Column(Integer, primary_key=True, index=True)
    backup_type = Column(String(20), nullable=False)  # daily, scheduled, manual
    file_name = Column(String(255), nullable=False)
    file_id = Column(String(255), nullable=True)
    status = Column(String(20), nullable=False)  # completed, failed
    record_count = Column(Integer, nullable=False, default=0)
    error_message = Column(String(1000), nullable=True)
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow, index=True)
