from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional

from ...core.database import get_db
from ...api.deps import RequestContext, require_permission
from ...schemas.patient import PatientCreate, PatientUpdate, PatientResponse
from ...services.patient_service import PatientService

router = APIRouter(prefix="/patients", tags=["Patients"])

@router.get("", response_model=List[PatientResponse])
async def list_patients(
    search: Optional[str] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    context: RequestContext = Depends(require_permission("can_view_patient_list")),
    db: Session = Depends(get_db)
):
    return PatientService(db).list_patients(context.doctor_id, search, skip, limit)

@router.post("", response_model=PatientResponse, status_code=status.HTTP_201_CREATED)
async def create_patient(
    patient_data: PatientCreate,
    context: RequestContext = Depends(require_permission("can_add_patients")),
    db: Session = Depends(get_db)
):
    """Register a patient; counts against the plan's patient limit."""
    return PatientService(db).create_patient(context.doctor, patient_data.model_dump())

@router.get("/{patient_id}", response_model=PatientResponse)
async def get_patient(
    patient_id: int,
    context: RequestContext = Depends(require_permission("can_view_patient_list")),
    db: Session = Depends(get_db)
):
    return PatientService(db).get_patient(context.doctor_id, patient_id)

@router.patch("/{patient_id}", response_model=PatientResponse)
async def update_patient(
    patient_id: int,
    patient_data: PatientUpdate,
    context: RequestContext = Depends(require_permission("can_edit_patients")),
    db: Session = Depends(get_db)
):
    return PatientService(db).update_patient(
        context.doctor_id, patient_id, patient_data.model_dump(exclude_unset=True)
    )
