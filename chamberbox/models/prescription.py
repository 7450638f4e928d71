from sqlalchemy import Column, Integer, ForeignKey, DateTime, Date, Text, JSON
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from ..core.database import Base

class Prescription(Base):
    __tablename__ = "prescriptions"

    id = Column(Integer, primary_key=True, index=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)

    # [{"name": ..., "dosage": ..., "duration": ...}, ...]
    medicines = Column(JSON, nullable=False, default=list)
    chief_complaint = Column(Text, nullable=True)
    advice = Column(Text, nullable=True)
    follow_up_date = Column(Date, nullable=True)

    created_at = Column(DateTime, server_default=func.now())

    patient = relationship("Patient", back_populates="prescriptions")

    def __repr__(self):
        return f"<Prescription(id={self.id}, patient_id={self.patient_id})>"
