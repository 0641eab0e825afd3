from sqlalchemy import Column, Integer, String
from app.database import Base


class TeamMember(Base):
    __tablename__ = "ClickUpUsers"

    id = Column(Integer, primary_key=True, index=True)
    clickup_user_id = Column(String(50), nullable=False, unique=True)
    username = Column(String(100), nullable=True)

    def __repr__(self):
        return f"<TeamMember(clickup_user_id={self.clickup_user_id}, username={self.username})>"
