"""
Staff and dealership models
"""
from sqlalchemy import Column, String, DateTime, ForeignKey, Float, Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import datetime
import enum
from backoffice.core.database import Base, generate_id


class StaffRole(str, enum.Enum):
    ADMIN = "Admin"
    SUPERVISOR = "Supervisor"
    BROKER = "Broker"


class Staff(Base):
    __tablename__ = "staff"

    id = Column(String, primary_key=True, default=generate_id)
    name = Column(String, nullable=False)
    email = Column(String, nullable=True, index=True)
    role = Column(SQLEnum(StaffRole), nullable=False, default=StaffRole.BROKER, index=True)
    supervisor_id = Column(String, ForeignKey("staff.id"), nullable=True, index=True)
    commission = Column(Float, nullable=True)  # flat per-sale rate
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    # Relationships
    supervisor = relationship("Staff", remote_side=[id], back_populates="team")
    team = relationship("Staff", back_populates="supervisor")


class Dealership(Base):
    __tablename__ = "dealerships"

    id = Column(String, primary_key=True, default=generate_id)
    name = Column(String, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
