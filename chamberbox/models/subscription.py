from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Boolean, Numeric, Text, Enum as SQLEnum
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from ..core.database import Base
from .doctor import SubscriptionTier

# Numeric caps use -1 for "unlimited"
UNLIMITED = -1

class SubscriptionPlan(Base):
    __tablename__ = "subscription_plans"

    id = Column(Integer, primary_key=True, index=True)
    tier = Column(SQLEnum(SubscriptionTier), unique=True, nullable=False)
    name = Column(String(50), nullable=False)
    description = Column(Text, nullable=True)

    # Caps
    max_patients = Column(Integer, nullable=False, default=100)
    max_prescriptions_per_month = Column(Integer, nullable=False, default=50)
    max_staff = Column(Integer, nullable=False, default=0)
    max_chambers = Column(Integer, nullable=False, default=1)

    # Capabilities
    can_use_public_profile = Column(Boolean, default=False, nullable=False)
    can_use_queue_booking = Column(Boolean, default=False, nullable=False)
    can_use_whatsapp_notifications = Column(Boolean, default=False, nullable=False)
    can_use_analytics = Column(Boolean, default=False, nullable=False)
    can_export_data = Column(Boolean, default=False, nullable=False)
    can_use_custom_branding = Column(Boolean, default=False, nullable=False)

    price_monthly = Column(Numeric(10, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="BDT")

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<SubscriptionPlan(tier='{self.tier}', max_patients={self.max_patients})>"

class SubscriptionUsage(Base):
    __tablename__ = "subscription_usage"

    id = Column(Integer, primary_key=True, index=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), unique=True, nullable=False)

    # Billing period the monthly counters belong to, "YYYY-MM"
    current_month = Column(String(7), nullable=False)
    patients_added_this_month = Column(Integer, nullable=False, default=0)
    prescriptions_this_month = Column(Integer, nullable=False, default=0)
    total_patients = Column(Integer, nullable=False, default=0)
    total_prescriptions = Column(Integer, nullable=False, default=0)

    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    doctor = relationship("Doctor", back_populates="usage")

    def __repr__(self):
        return f"<SubscriptionUsage(doctor_id={self.doctor_id}, month='{self.current_month}')>"
