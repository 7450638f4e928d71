from sqlalchemy import (
    Column, Integer, String, ForeignKey, DateTime, Boolean, Date, Time, Text,
    UniqueConstraint, Enum as SQLEnum, event, select, func as sa_func
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum

from ..core.database import Base

class SessionStatus(str, enum.Enum):
    OPEN = "open"
    RUNNING = "running"
    PAUSED = "paused"
    CLOSED = "closed"

class TokenStatus(str, enum.Enum):
    WAITING = "waiting"
    CURRENT = "current"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

class BookedBy(str, enum.Enum):
    INTERNAL = "internal"
    PUBLIC = "public"

# Completed and cancelled are terminal
TOKEN_TRANSITIONS = {
    TokenStatus.WAITING: {TokenStatus.CURRENT, TokenStatus.CANCELLED},
    TokenStatus.CURRENT: {TokenStatus.COMPLETED, TokenStatus.CANCELLED},
    TokenStatus.COMPLETED: set(),
    TokenStatus.CANCELLED: set(),
}

ACTIVE_TOKEN_STATUSES = (TokenStatus.WAITING, TokenStatus.CURRENT)

class QueueSession(Base):
    __tablename__ = "queue_sessions"
    __table_args__ = (
        UniqueConstraint("chamber_id", "session_date", "start_time", name="uq_queue_sessions_slot"),
    )

    id = Column(Integer, primary_key=True, index=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False, index=True)
    chamber_id = Column(Integer, ForeignKey("chambers.id"), nullable=False, index=True)

    session_date = Column(Date, nullable=False, index=True)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    status = Column(SQLEnum(SessionStatus), default=SessionStatus.OPEN, nullable=False)
    current_token = Column(Integer, default=0, nullable=False)
    max_patients = Column(Integer, default=30, nullable=False)
    avg_consultation_minutes = Column(Integer, default=5, nullable=False)
    is_custom = Column(Boolean, default=False, nullable=False)
    booking_open = Column(Boolean, default=True, nullable=False)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    chamber = relationship("Chamber", back_populates="sessions")
    tokens = relationship(
        "QueueToken", back_populates="session",
        cascade="all, delete-orphan", order_by="QueueToken.token_number"
    )

    def __repr__(self):
        return (
            f"<QueueSession(id={self.id}, chamber_id={self.chamber_id}, "
            f"date='{self.session_date}', start='{self.start_time}')>"
        )

class QueueToken(Base):
    __tablename__ = "queue_tokens"
    __table_args__ = (
        UniqueConstraint("session_id", "token_number", name="uq_queue_tokens_number"),
    )

    id = Column(Integer, primary_key=True, index=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False, index=True)
    session_id = Column(Integer, ForeignKey("queue_sessions.id"), nullable=False, index=True)
    chamber_id = Column(Integer, ForeignKey("chambers.id"), nullable=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)

    # Assigned on insert; anything the caller sets is overwritten
    token_number = Column(Integer, nullable=False, default=0)
    queue_date = Column(Date, nullable=False, index=True)
    status = Column(SQLEnum(TokenStatus), default=TokenStatus.WAITING, nullable=False)
    booked_by = Column(SQLEnum(BookedBy), default=BookedBy.INTERNAL, nullable=False)
    serial_number = Column(String(30), nullable=True)
    visiting_reason = Column(Text, nullable=True)

    called_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    session = relationship("QueueSession", back_populates="tokens")
    patient = relationship("Patient")

    def can_transition_to(self, new_status: TokenStatus) -> bool:
        return new_status in TOKEN_TRANSITIONS[TokenStatus(self.status)]

    def __repr__(self):
        return f"<QueueToken(id={self.id}, session_id={self.session_id}, number={self.token_number}, status='{self.status}')>"

@event.listens_for(QueueToken, "before_insert")
def assign_token_number(mapper, connection, target):
    """Number tokens sequentially within their session."""
    last_number = connection.execute(
        select(sa_func.max(QueueToken.token_number)).where(
            QueueToken.session_id == target.session_id
        )
    ).scalar()
    target.token_number = (last_number or 0) + 1

    if not target.serial_number:
        target.serial_number = f"{target.queue_date:%Y%m%d}-{target.token_number}"
