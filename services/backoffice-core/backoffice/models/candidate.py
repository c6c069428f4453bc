"""
Recruiting candidate model
"""
from sqlalchemy import Column, String, DateTime, Float, Text, Enum as SQLEnum
from datetime import datetime
import enum
from backoffice.core.database import Base, generate_id


class PipelineStatus(str, enum.Enum):
    NEW_APPLICANT = "New Applicant"
    INTERVIEWS = "Interviews"
    APPROVED = "Approved"
    ONBOARDING = "Onboarding"
    ACTIVE = "Active"
    REJECTED = "Rejected"
    INACTIVE = "Inactive"


class Candidate(Base):
    __tablename__ = "candidates"

    id = Column(String, primary_key=True, default=generate_id)
    full_name = Column(String, nullable=False)
    email = Column(String, nullable=True)
    whatsapp_number = Column(String, nullable=False)
    pipeline_status = Column(SQLEnum(PipelineStatus), nullable=False, default=PipelineStatus.NEW_APPLICANT, index=True)
    last_status_change_date = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    applied_date = Column(DateTime, nullable=False, default=datetime.utcnow)
    source = Column(String, nullable=False, default="Application Form")
    recruiter = Column(String, nullable=True)
    status_reason = Column(String, nullable=True)
    score = Column(Float, nullable=True)
    motivation = Column(Text, nullable=True)
