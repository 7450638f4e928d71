from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from datetime import time
from decimal import Decimal
from typing import Optional

from .common import normalize_phone


class ChamberBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=150)
    address: str = Field(..., min_length=1, max_length=255)
    contact_number: Optional[str] = None
    is_primary: bool = False
    new_patient_fee: Optional[Decimal] = Field(None, ge=0)
    return_patient_fee: Optional[Decimal] = Field(None, ge=0)

    @field_validator("contact_number")
    @classmethod
    def contact_number_format(cls, v):
        return normalize_phone(v)


class ChamberCreate(ChamberBase):
    pass


class ChamberUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    address: Optional[str] = Field(None, min_length=1, max_length=255)
    contact_number: Optional[str] = None
    is_active: Optional[bool] = None
    is_primary: Optional[bool] = None
    new_patient_fee: Optional[Decimal] = Field(None, ge=0)
    return_patient_fee: Optional[Decimal] = Field(None, ge=0)

    @field_validator("contact_number")
    @classmethod
    def contact_number_format(cls, v):
        return normalize_phone(v)


class ChamberResponse(ChamberBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    doctor_id: int
    is_active: bool


class SlotCreate(BaseModel):
    day_of_week: int = Field(..., ge=0, le=6, description="0 = Sunday")
    start_time: time
    end_time: time
    slot_duration_minutes: Optional[int] = Field(None, gt=0, le=240)
    is_active: bool = True

    @model_validator(mode="after")
    def end_after_start(self):
        if self.end_time <= self.start_time:
            raise ValueError("End time must be after start time")
        return self


class SlotUpdate(BaseModel):
    day_of_week: Optional[int] = Field(None, ge=0, le=6)
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    slot_duration_minutes: Optional[int] = Field(None, gt=0, le=240)
    is_active: Optional[bool] = None


class SlotResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    chamber_id: int
    day_of_week: int
    start_time: time
    end_time: time
    slot_duration_minutes: Optional[int] = None
    is_active: bool
