from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Boolean, Time, Numeric, CheckConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from ..core.database import Base

class Chamber(Base):
    __tablename__ = "chambers"

    id = Column(Integer, primary_key=True, index=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False, index=True)

    name = Column(String(150), nullable=False)
    address = Column(String(255), nullable=False)
    contact_number = Column(String(20), nullable=True)
    is_active = Column(Boolean, default=True)
    is_primary = Column(Boolean, default=False)

    # Fees
    new_patient_fee = Column(Numeric(10, 2), nullable=True)
    return_patient_fee = Column(Numeric(10, 2), nullable=True)

    # Timestamps
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    doctor = relationship("Doctor", back_populates="chambers")
    availability_slots = relationship(
        "AvailabilitySlot", back_populates="chamber", cascade="all, delete-orphan"
    )
    sessions = relationship("QueueSession", back_populates="chamber")

    def __repr__(self):
        return f"<Chamber(id={self.id}, name='{self.name}', doctor_id={self.doctor_id})>"

class AvailabilitySlot(Base):
    """Recurring weekly window; day_of_week counts from Sunday = 0."""
    __tablename__ = "availability_slots"
    __table_args__ = (
        CheckConstraint("day_of_week >= 0 AND day_of_week <= 6", name="availability_slots_day_check"),
    )

    id = Column(Integer, primary_key=True, index=True)
    chamber_id = Column(Integer, ForeignKey("chambers.id"), nullable=False, index=True)

    day_of_week = Column(Integer, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    slot_duration_minutes = Column(Integer, nullable=True)
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime, server_default=func.now())

    chamber = relationship("Chamber", back_populates="availability_slots")

    def __repr__(self):
        return (
            f"<AvailabilitySlot(id={self.id}, chamber_id={self.chamber_id}, "
            f"day={self.day_of_week}, start='{self.start_time}')>"
        )
