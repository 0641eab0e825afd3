from sqlalchemy import Column, Integer, String, DateTime, Text
from datetime import datetime
from app.database import Base


class SyncLog(Base):
    """One row per sync invocation; never updated."""

    __tablename__ = "sync_logs"

    id = Column(Integer, primary_key=True, index=True)
    synced_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    mode = Column(String(10), nullable=False)  # 'auto' or 'manual'
    duration_ms = Column(Integer, nullable=True)
    entries_synced = Column(Integer, nullable=False, default=0)
    entries_updated = Column(Integer, nullable=False, default=0)
    entries_deleted = Column(Integer, nullable=False, default=0)
    error_message = Column(Text, nullable=True)

    @property
    def succeeded(self) -> bool:
        return self.error_message is None

    def __repr__(self):
        return f"<SyncLog(mode={self.mode}, synced={self.entries_synced}, updated={self.entries_updated}, deleted={self.entries_deleted})>"
