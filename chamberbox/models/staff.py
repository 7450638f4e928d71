from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Boolean, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from ..core.database import Base
from ..core.permissions import StaffRole

class StaffMember(Base):
    __tablename__ = "staff_members"
    __table_args__ = (
        UniqueConstraint("doctor_id", "email", name="uq_staff_members_doctor_email"),
    )

    id = Column(Integer, primary_key=True, index=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False, index=True)
    # Empty until the invited person signs up
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=True)

    email = Column(String(255), nullable=False, index=True)
    full_name = Column(String(150), nullable=False)
    phone = Column(String(20), nullable=True)
    role = Column(String(20), nullable=False)
    is_active = Column(Boolean, default=True)

    invited_at = Column(DateTime, server_default=func.now())
    accepted_at = Column(DateTime, nullable=True)

    doctor = relationship("Doctor", back_populates="staff_members")
    user = relationship("User", back_populates="staff_member")

    @property
    def staff_role(self) -> StaffRole:
        return StaffRole.from_label(self.role)

    def __repr__(self):
        return f"<StaffMember(id={self.id}, email='{self.email}', role='{self.role}')>"
