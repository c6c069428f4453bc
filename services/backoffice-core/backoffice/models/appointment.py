"""
Appointment model
"""
from sqlalchemy import Column, String, DateTime, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import datetime
from backoffice.core.database import Base, generate_id
from backoffice.models.lead import LeadStage


class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(String, primary_key=True, default=generate_id)
    lead_id = Column(String, ForeignKey("leads.id"), nullable=False, index=True)
    lead_name = Column(String, nullable=False)  # mirror of Lead.name
    start_time = Column(DateTime, nullable=False, index=True)
    end_time = Column(DateTime, nullable=False, index=True)
    owner_id = Column(String, ForeignKey("staff.id"), nullable=False, index=True)  # mirror of Lead.owner_id
    stage = Column(SQLEnum(LeadStage), nullable=False)  # mirror of Lead.stage
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    # Relationships
    lead = relationship("Lead", back_populates="appointments")

    def is_open(self, now: datetime) -> bool:
        """An appointment stays open until its end time has passed"""
        return self.end_time >= now
