from sqlalchemy import Column, Integer, String, Float, DateTime
from sqlalchemy.orm import relationship
from datetime import datetime
from app.database import Base


class Client(Base):
    __tablename__ = "Clients"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=True)
    clickup_list_id = Column(String(50), nullable=True, index=True)
    billing_cycle_start_day = Column(Integer, nullable=True)  # 1-31
    weekly_allocated_hours = Column(Float, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    time_logs = relationship("TimeLog", back_populates="client")

    @property
    def weekly_hours(self) -> float:
        return float(self.weekly_allocated_hours or 0)

    @property
    def is_billable(self) -> bool:
        """Only clients with a start day and weekly hours take part in sync and calculations."""
        return bool(self.billing_cycle_start_day) and self.billing_cycle_start_day > 0 and self.weekly_hours > 0

    def __repr__(self):
        return f"<Client(id={self.id}, name={self.name}, list={self.clickup_list_id})>"
