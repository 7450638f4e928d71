from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List

from ...core.database import get_db
from ...api.deps import RequestContext, require_permission
from ...schemas.queue import TokenCreate, TokenResponse, TokenStatusUpdate
from ...services.patient_service import PatientService
from ...services.queue_service import QueueService

router = APIRouter(prefix="/queue", tags=["Queue"])

@router.get("/sessions/{session_id}/tokens", response_model=List[TokenResponse])
async def list_tokens(
    session_id: int,
    context: RequestContext = Depends(require_permission("can_manage_queue")),
    db: Session = Depends(get_db)
):
    return QueueService(db).list_tokens(context.doctor_id, session_id)

@router.post(
    "/sessions/{session_id}/tokens",
    response_model=TokenResponse,
    status_code=status.HTTP_201_CREATED
)
async def add_token(
    session_id: int,
    token_data: TokenCreate,
    context: RequestContext = Depends(require_permission("can_manage_queue")),
    db: Session = Depends(get_db)
):
    """Queue a patient; the token number is assigned when the row is stored."""
    queue_service = QueueService(db)
    session = queue_service.get_session(context.doctor_id, session_id)
    patient = PatientService(db).get_patient(context.doctor_id, token_data.patient_id)

    return queue_service.add_token(session, patient.id, visiting_reason=token_data.visiting_reason)

@router.patch("/tokens/{token_id}/status", response_model=TokenResponse)
async def update_token_status(
    token_id: int,
    status_data: TokenStatusUpdate,
    context: RequestContext = Depends(require_permission("can_manage_queue")),
    db: Session = Depends(get_db)
):
    return QueueService(db).update_token_status(context.doctor_id, token_id, status_data.status)

@router.post("/sessions/{session_id}/call-next")
async def call_next(
    session_id: int,
    context: RequestContext = Depends(require_permission("can_manage_queue")),
    db: Session = Depends(get_db)
):
    """Complete the current patient and call the next one waiting."""
    token = QueueService(db).call_next(context.doctor_id, session_id)
    if token is None:
        return {"message": "No patients waiting", "token": None}
    return {
        "message": f"Calling token {token.token_number}",
        "token": TokenResponse.model_validate(token),
    }
