from pydantic import BaseModel, ConfigDict, Field, model_validator
from datetime import date, datetime, time
from typing import Optional

from ..models.queue import SessionStatus, TokenStatus, BookedBy


class SessionCreate(BaseModel):
    chamber_id: int
    session_date: date
    start_time: time
    end_time: time
    max_patients: Optional[int] = Field(None, gt=0, le=500)
    avg_consultation_minutes: Optional[int] = Field(None, gt=0, le=240)
    notes: Optional[str] = None

    @model_validator(mode="after")
    def end_after_start(self):
        if self.end_time <= self.start_time:
            raise ValueError("End time must be after start time")
        return self


class SessionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    doctor_id: int
    chamber_id: int
    session_date: date
    start_time: time
    end_time: time
    status: SessionStatus
    current_token: int
    max_patients: int
    avg_consultation_minutes: int
    is_custom: bool
    booking_open: bool
    notes: Optional[str] = None
    token_count: Optional[int] = None


class SessionStatusUpdate(BaseModel):
    status: SessionStatus


class BookingToggle(BaseModel):
    booking_open: bool


class TokenCreate(BaseModel):
    patient_id: int
    visiting_reason: Optional[str] = Field(None, max_length=500)
    # Accepted for compatibility; the number is always assigned on insert
    token_number: Optional[int] = None


class TokenResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    session_id: int
    chamber_id: Optional[int] = None
    patient_id: int
    token_number: int
    queue_date: date
    status: TokenStatus
    booked_by: BookedBy
    serial_number: Optional[str] = None
    visiting_reason: Optional[str] = None
    called_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class TokenStatusUpdate(BaseModel):
    status: TokenStatus
