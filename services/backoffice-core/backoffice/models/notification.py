"""
Staff notification model
"""
from sqlalchemy import Column, String, DateTime, Boolean, Text
from datetime import datetime
from backoffice.core.database import Base, generate_id


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String, primary_key=True, default=generate_id)
    user_id = Column(String, nullable=False, index=True)  # recipient Staff id
    content = Column(Text, nullable=False)
    author = Column(String, nullable=False)
    lead_id = Column(String, nullable=True, index=True)
    lead_name = Column(String, nullable=True)
    read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
