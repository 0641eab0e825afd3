from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
from app.database import Base


class TimeLog(Base):
    __tablename__ = "TimeLogs"

    id = Column(Integer, primary_key=True, index=True)
    client_id = Column(Integer, ForeignKey("Clients.id"), nullable=False, index=True)
    # Null for legacy rows created before ClickUp ids were tracked
    clickup_time_entry_id = Column(String(50), nullable=True)
    clickup_task_id = Column(String(50), nullable=True)
    clickup_user_id = Column(String(50), nullable=True)
    start_time = Column(DateTime, nullable=False, index=True)  # UTC
    duration_minutes = Column(Integer, nullable=False, default=0)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    client = relationship("Client", back_populates="time_logs")

    __table_args__ = (
        UniqueConstraint("client_id", "clickup_time_entry_id", name="uq_timelogs_client_entry"),
    )

    def __repr__(self):
        return f"<TimeLog(id={self.id}, entry={self.clickup_time_entry_id}, minutes={self.duration_minutes})>"
