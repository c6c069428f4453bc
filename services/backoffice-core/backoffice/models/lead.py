"""
Lead and note history models
"""
from sqlalchemy import Column, String, DateTime, ForeignKey, Float, Integer, Text, Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import datetime
import enum
from backoffice.core.database import Base, generate_id


class LeadStage(str, enum.Enum):
    NUEVO = "Nuevo"
    CALIFICADO = "Calificado"
    CITADO = "Citado"
    EN_SEGUIMIENTO = "En Seguimiento"
    GANADO = "Ganado"
    PERDIDO = "Perdido"
    NO_SHOW = "No Show"


# Stages a lead can still progress from
OPEN_STAGES = (
    LeadStage.NUEVO,
    LeadStage.CALIFICADO,
    LeadStage.CITADO,
    LeadStage.EN_SEGUIMIENTO,
)

# Closing stages reserved for supervisors and admins
CLOSING_STAGES = (LeadStage.GANADO, LeadStage.PERDIDO)


class LeadChannel(str, enum.Enum):
    FACEBOOK = "Facebook"
    WHATSAPP = "WhatsApp"
    CALL = "Call"
    VISIT = "Visit"
    OTHER = "Other"


class LeadLanguage(str, enum.Enum):
    ENGLISH = "English"
    SPANISH = "Spanish"


class NoteType(str, enum.Enum):
    MANUAL = "Manual"
    SYSTEM = "System"
    STAGE_CHANGE = "Stage Change"
    OWNER_CHANGE = "Owner Change"
    DEALERSHIP_CHANGE = "Dealership Change"
    VEHICLE_LINK = "Vehicle Link"
    AI_ANALYSIS = "AI Analysis"


class Lead(Base):
    __tablename__ = "leads"

    id = Column(String, primary_key=True, default=generate_id)
    name = Column(String, nullable=False)
    phone = Column(String, nullable=False, index=True)
    email = Column(String, nullable=True)
    channel = Column(SQLEnum(LeadChannel), nullable=False, default=LeadChannel.OTHER)
    language = Column(SQLEnum(LeadLanguage), nullable=False, default=LeadLanguage.SPANISH)
    stage = Column(SQLEnum(LeadStage), nullable=False, default=LeadStage.NUEVO, index=True)
    owner_id = Column(String, ForeignKey("staff.id"), nullable=False, index=True)
    owner_name = Column(String, nullable=False)  # cache of Staff.name
    dealership_id = Column(String, ForeignKey("dealerships.id"), nullable=False, index=True)
    dealership_name = Column(String, nullable=False)  # cache of Dealership.name
    interested_vehicle_id = Column(String, ForeignKey("vehicles.id"), nullable=True)
    broker_commission = Column(Float, nullable=True)
    version = Column(Integer, nullable=False)  # bumped by the mapper on every UPDATE
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    last_activity = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    # Relationships
    appointments = relationship(
        "Appointment",
        back_populates="lead",
        cascade="all, delete-orphan",
        order_by="Appointment.start_time",
    )

    __mapper_args__ = {"version_id_col": version}


class NoteEntry(Base):
    """Append-only audit entry. lead_id is deliberately not a foreign key."""
    __tablename__ = "note_entries"

    id = Column(String, primary_key=True, default=generate_id)
    lead_id = Column(String, nullable=False, index=True)
    content = Column(Text, nullable=False)
    author = Column(String, nullable=False)
    type = Column(SQLEnum(NoteType), nullable=False, default=NoteType.MANUAL)
    date = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
