from pydantic import BaseModel, ConfigDict, Field
from datetime import date, datetime
from typing import List, Optional


class Medicine(BaseModel):
    name: str = Field(..., min_length=1, max_length=150)
    dosage: Optional[str] = None
    duration: Optional[str] = None
    instructions: Optional[str] = None


class PrescriptionCreate(BaseModel):
    patient_id: int
    medicines: List[Medicine] = Field(default_factory=list)
    chief_complaint: Optional[str] = None
    advice: Optional[str] = None
    follow_up_date: Optional[date] = None


class PrescriptionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    doctor_id: int
    patient_id: int
    medicines: List[Medicine]
    chief_complaint: Optional[str] = None
    advice: Optional[str] = None
    follow_up_date: Optional[date] = None
    created_at: Optional[datetime] = None
