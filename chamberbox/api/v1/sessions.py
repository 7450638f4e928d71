from fastapi import APIRouter, Depends, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from datetime import date
from typing import List, Optional
import logging

from ...core.database import get_db
from ...core.errors import SessionMaterializationError
from ...api.deps import RequestContext, require_permission, verify_cron_secret
from ...schemas.queue import SessionCreate, SessionResponse, SessionStatusUpdate, BookingToggle
from ...services.queue_service import QueueService
from ...services.session_materializer import SessionMaterializer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["Sessions"])

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "authorization, content-type, x-cron-secret",
}

@router.options("/auto-create")
async def auto_create_preflight():
    return Response(status_code=status.HTTP_204_NO_CONTENT, headers=CORS_HEADERS)

@router.post("/auto-create")
async def auto_create_sessions(
    db: Session = Depends(get_db),
    _: None = Depends(verify_cron_secret)
):
    """Materialize queue sessions from weekly availability for the coming window."""
    try:
        result = SessionMaterializer(db).run()
    except SessionMaterializationError as e:
        logger.error(f"Session auto-create failed: {e.message}")
        return JSONResponse(
            status_code=e.status_code, content={"error": e.message}, headers=CORS_HEADERS
        )

    return JSONResponse(content=result.as_response(), headers=CORS_HEADERS)

@router.get("", response_model=List[SessionResponse])
async def list_sessions(
    session_date: Optional[date] = None,
    context: RequestContext = Depends(require_permission("can_manage_queue")),
    db: Session = Depends(get_db)
):
    """Sessions of one day (today by default) with token counts."""
    rows = QueueService(db).list_sessions(context.doctor_id, session_date or date.today())
    return [
        SessionResponse.model_validate(session).model_copy(update={"token_count": count})
        for session, count in rows
    ]

@router.post("", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def create_custom_session(
    session_data: SessionCreate,
    context: RequestContext = Depends(require_permission("can_manage_queue")),
    db: Session = Depends(get_db)
):
    """Add a one-off session outside the weekly schedule."""
    return QueueService(db).create_session(context.doctor_id, session_data.model_dump())

@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(
    session_id: int,
    context: RequestContext = Depends(require_permission("can_manage_queue")),
    db: Session = Depends(get_db)
):
    return QueueService(db).get_session(context.doctor_id, session_id)

@router.patch("/{session_id}/status", response_model=SessionResponse)
async def update_session_status(
    session_id: int,
    status_data: SessionStatusUpdate,
    context: RequestContext = Depends(require_permission("can_manage_queue")),
    db: Session = Depends(get_db)
):
    return QueueService(db).update_session_status(context.doctor_id, session_id, status_data.status)

@router.patch("/{session_id}/booking", response_model=SessionResponse)
async def toggle_booking(
    session_id: int,
    toggle: BookingToggle,
    context: RequestContext = Depends(require_permission("can_manage_queue")),
    db: Session = Depends(get_db)
):
    return QueueService(db).set_booking_open(context.doctor_id, session_id, toggle.booking_open)

@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(
    session_id: int,
    context: RequestContext = Depends(require_permission("can_manage_queue")),
    db: Session = Depends(get_db)
):
    """Delete a session together with its tokens."""
    QueueService(db).delete_session(context.doctor_id, session_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
