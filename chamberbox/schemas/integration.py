from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional

from .common import normalize_phone, validate_calendly_url


class IntegrationUpdate(BaseModel):
    calendly_enabled: Optional[bool] = None
    calendly_url: Optional[str] = None
    whatsapp_enabled: Optional[bool] = None
    whatsapp_number: Optional[str] = None
    send_booking_confirmation: Optional[bool] = None
    reminder_hours_before: Optional[int] = Field(None, ge=0, le=72)
    confirmation_template: Optional[str] = Field(None, min_length=1, max_length=1000)

    @field_validator("calendly_url")
    @classmethod
    def calendly_url_format(cls, v):
        return validate_calendly_url(v)

    @field_validator("whatsapp_number")
    @classmethod
    def whatsapp_number_format(cls, v):
        return normalize_phone(v)


class IntegrationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    calendly_enabled: bool
    calendly_url: Optional[str] = None
    whatsapp_enabled: bool
    whatsapp_number: Optional[str] = None
    send_booking_confirmation: bool
    reminder_hours_before: int
    confirmation_template: str
