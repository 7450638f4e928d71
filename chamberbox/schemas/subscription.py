from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from ..models.doctor import SubscriptionTier


class PlanResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    tier: SubscriptionTier
    name: str
    description: Optional[str] = None
    max_patients: int
    max_prescriptions_per_month: int
    max_staff: int
    max_chambers: int
    can_use_public_profile: bool
    can_use_queue_booking: bool
    can_use_whatsapp_notifications: bool
    can_use_analytics: bool
    can_export_data: bool
    can_use_custom_branding: bool
    price_monthly: Decimal
    currency: str


class PlanUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    description: Optional[str] = None
    max_patients: Optional[int] = Field(None, ge=-1)
    max_prescriptions_per_month: Optional[int] = Field(None, ge=-1)
    max_staff: Optional[int] = Field(None, ge=-1)
    max_chambers: Optional[int] = Field(None, ge=-1)
    can_use_public_profile: Optional[bool] = None
    can_use_queue_booking: Optional[bool] = None
    can_use_whatsapp_notifications: Optional[bool] = None
    can_use_analytics: Optional[bool] = None
    can_export_data: Optional[bool] = None
    can_use_custom_branding: Optional[bool] = None
    price_monthly: Optional[Decimal] = Field(None, ge=0)


class UsageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    current_month: str
    patients_added_this_month: int
    prescriptions_this_month: int
    total_patients: int
    total_prescriptions: int


class LimitResponse(BaseModel):
    current: int
    max: int
    is_unlimited: bool
    within_limit: bool
    remaining: int
    percentage: float


class FeatureResponse(BaseModel):
    feature: str
    has_access: bool
    plan_required: Optional[str] = None
    message: str = ""


class SubscriptionOverview(BaseModel):
    tier: SubscriptionTier
    plan: Optional[PlanResponse] = None
    usage: Optional[UsageResponse] = None
    readiness: str
    is_expired: bool
    expires_at: Optional[datetime] = None
    days_remaining: Optional[int] = None
    limits: dict


class TierAssignment(BaseModel):
    tier: SubscriptionTier
    expires_at: Optional[datetime] = None
