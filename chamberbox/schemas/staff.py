from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from datetime import datetime
from typing import Dict, Optional

from ..core.permissions import STAFF_ROLE_LABELS
from .common import normalize_phone


def _check_role(value: Optional[str]) -> Optional[str]:
    if value is not None and value not in STAFF_ROLE_LABELS:
        raise ValueError(f"Role must be one of: {', '.join(STAFF_ROLE_LABELS)}")
    return value


class StaffInvite(BaseModel):
    email: EmailStr
    full_name: str = Field(..., min_length=1, max_length=150)
    phone: Optional[str] = None
    role: str = "receptionist"

    @field_validator("role")
    @classmethod
    def role_known(cls, v):
        return _check_role(v)

    @field_validator("phone")
    @classmethod
    def phone_format(cls, v):
        return normalize_phone(v)


class StaffUpdate(BaseModel):
    full_name: Optional[str] = Field(None, min_length=1, max_length=150)
    phone: Optional[str] = None
    role: Optional[str] = None
    is_active: Optional[bool] = None

    @field_validator("role")
    @classmethod
    def role_known(cls, v):
        return _check_role(v)

    @field_validator("phone")
    @classmethod
    def phone_format(cls, v):
        return normalize_phone(v)


class StaffResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    doctor_id: int
    user_id: Optional[int] = None
    email: str
    full_name: str
    phone: Optional[str] = None
    role: str
    is_active: bool
    invited_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    permissions: Dict[str, bool] = Field(default_factory=dict)

    @classmethod
    def from_member(cls, member) -> "StaffResponse":
        response = cls.model_validate(member)
        response.permissions = member.staff_role.permissions.as_dict()
        return response
