from pydantic import BaseModel, ConfigDict, Field, field_validator
from datetime import datetime
from typing import Optional

from ..models.doctor import SubscriptionTier
from .common import normalize_phone


class DoctorProfileUpdate(BaseModel):
    full_name: Optional[str] = Field(None, min_length=2, max_length=150)
    specialization: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = None
    bio: Optional[str] = Field(None, max_length=2000)
    slug: Optional[str] = Field(None, min_length=3, max_length=100, pattern=r"^[a-z0-9]+(-[a-z0-9]+)*$")
    is_public: Optional[bool] = None

    @field_validator("phone")
    @classmethod
    def phone_format(cls, v):
        return normalize_phone(v)


class DoctorProfileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    full_name: str
    specialization: Optional[str] = None
    phone: Optional[str] = None
    bio: Optional[str] = None
    slug: Optional[str] = None
    is_public: bool
    subscription_tier: SubscriptionTier
    subscription_expires_at: Optional[datetime] = None
