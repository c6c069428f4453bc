"""
Vehicle inventory model
"""
from sqlalchemy import Column, String, DateTime, ForeignKey, Integer, Float, Enum as SQLEnum
from datetime import datetime
import enum
from backoffice.core.database import Base, generate_id


class VehicleStatus(str, enum.Enum):
    AVAILABLE = "Available"
    RESERVED = "Reserved"
    SOLD = "Sold"


class Vehicle(Base):
    __tablename__ = "vehicles"

    id = Column(String, primary_key=True, default=generate_id)
    make = Column(String, nullable=False)
    model = Column(String, nullable=False)
    year = Column(Integer, nullable=True)
    price = Column(Float, nullable=True)
    status = Column(SQLEnum(VehicleStatus), nullable=False, default=VehicleStatus.AVAILABLE, index=True)
    sold_by = Column(String, ForeignKey("staff.id"), nullable=True)
    sold_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
