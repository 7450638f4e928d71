from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...api.deps import RequestContext, get_doctor_context, get_request_context
from ...schemas.doctor import DoctorProfileUpdate, DoctorProfileResponse

router = APIRouter(prefix="/profile", tags=["Profile"])

@router.get("", response_model=DoctorProfileResponse)
async def get_profile(context: RequestContext = Depends(get_request_context)):
    return context.doctor

@router.patch("", response_model=DoctorProfileResponse)
async def update_profile(
    profile_data: DoctorProfileUpdate,
    context: RequestContext = Depends(get_doctor_context),
    db: Session = Depends(get_db)
):
    """Edit the doctor's profile and public page settings."""
    doctor = context.doctor
    for field, value in profile_data.model_dump(exclude_unset=True).items():
        setattr(doctor, field, value)
    db.commit()
    db.refresh(doctor)
    return doctor
