from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional

from ...core.database import get_db
from ...api.deps import RequestContext, get_doctor_context, require_permission
from ...schemas.prescription import PrescriptionCreate, PrescriptionResponse
from ...services.prescription_service import PrescriptionService

router = APIRouter(prefix="/prescriptions", tags=["Prescriptions"])

@router.post("", response_model=PrescriptionResponse, status_code=status.HTTP_201_CREATED)
async def create_prescription(
    prescription_data: PrescriptionCreate,
    context: RequestContext = Depends(get_doctor_context),
    db: Session = Depends(get_db)
):
    """Write a prescription; counts against the plan's monthly prescription limit."""
    return PrescriptionService(db).create_prescription(
        context.doctor, prescription_data.model_dump()
    )

@router.get("", response_model=List[PrescriptionResponse])
async def list_prescriptions(
    patient_id: Optional[int] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    context: RequestContext = Depends(require_permission("can_view_prescriptions")),
    db: Session = Depends(get_db)
):
    return PrescriptionService(db).list_prescriptions(context.doctor_id, patient_id, skip, limit)

@router.get("/{prescription_id}", response_model=PrescriptionResponse)
async def get_prescription(
    prescription_id: int,
    context: RequestContext = Depends(require_permission("can_view_prescriptions")),
    db: Session = Depends(get_db)
):
    return PrescriptionService(db).get_prescription(context.doctor_id, prescription_id)
