from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from datetime import date, time
from decimal import Decimal
from typing import List, Optional

from .common import normalize_phone


class PublicChamber(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    address: str
    contact_number: Optional[str] = None
    new_patient_fee: Optional[Decimal] = None
    return_patient_fee: Optional[Decimal] = None


class PublicDoctorProfile(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    full_name: str
    specialization: Optional[str] = None
    bio: Optional[str] = None
    slug: str
    chambers: List[PublicChamber] = Field(default_factory=list)
    queue_booking_enabled: bool = False


class AvailableSlot(BaseModel):
    date: date
    chamber_id: int
    chamber_name: str
    chamber_address: str
    start_time: time
    end_time: time
    slot_duration_minutes: int
    current_bookings: int
    max_patients: int
    is_available: bool
    session_id: Optional[int] = None
    booking_open: bool


class PublicBooking(BaseModel):
    patient_name: str = Field(..., min_length=1, max_length=150)
    patient_phone: str
    patient_age: Optional[int] = Field(None, ge=0, le=150)
    patient_gender: Optional[str] = Field(None, max_length=20)
    visiting_reason: Optional[str] = Field(None, max_length=500)
    session_id: Optional[int] = None
    chamber_id: Optional[int] = None
    queue_date: Optional[date] = None

    @field_validator("patient_phone")
    @classmethod
    def phone_format(cls, v):
        return normalize_phone(v)

    @model_validator(mode="after")
    def session_or_chamber_date(self):
        if self.session_id is None and (self.chamber_id is None or self.queue_date is None):
            raise ValueError("Provide a session_id, or a chamber_id with a queue_date")
        return self


class BookingConfirmation(BaseModel):
    token_id: int
    token_number: int
    serial_number: Optional[str] = None
    queue_date: date
    session_id: int
    patients_ahead: int
    message: str


class QueueStatusResponse(BaseModel):
    status: str
    patient_serial: Optional[int] = None
    current_serial: Optional[int] = None
    patients_ahead: Optional[int] = None
    estimated_wait_minutes: Optional[int] = None
    avg_consultation_minutes: Optional[int] = None
    session_status: Optional[str] = None
    doctor_name: Optional[str] = None
    chamber_name: Optional[str] = None
    chamber_address: Optional[str] = None
    schedule_start: Optional[time] = None
    schedule_end: Optional[time] = None
