from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Boolean, Text, Enum as SQLEnum
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum

from ..core.database import Base

class SubscriptionTier(str, enum.Enum):
    TRIAL = "trial"
    BASIC = "basic"
    PRO = "pro"
    PREMIUM = "premium"
    ENTERPRISE = "enterprise"

class Doctor(Base):
    __tablename__ = "doctors"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)

    # Profile
    full_name = Column(String(150), nullable=False)
    specialization = Column(String(100), nullable=True)
    phone = Column(String(20), nullable=True)
    bio = Column(Text, nullable=True)

    # Public page
    slug = Column(String(100), unique=True, nullable=True, index=True)
    is_public = Column(Boolean, default=False)

    # Subscription
    subscription_tier = Column(SQLEnum(SubscriptionTier), default=SubscriptionTier.TRIAL, nullable=False)
    subscription_expires_at = Column(DateTime, nullable=True)

    # Timestamps
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    user = relationship("User", back_populates="doctor")
    chambers = relationship("Chamber", back_populates="doctor", cascade="all, delete-orphan")
    patients = relationship("Patient", back_populates="doctor")
    staff_members = relationship("StaffMember", back_populates="doctor")
    usage = relationship("SubscriptionUsage", back_populates="doctor", uselist=False)

    def __repr__(self):
        return f"<Doctor(id={self.id}, name='{self.full_name}', tier='{self.subscription_tier}')>"
