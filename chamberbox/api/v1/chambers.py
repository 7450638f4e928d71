from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session
from typing import List

from ...core.database import get_db
from ...api.deps import RequestContext, get_doctor_context, require_permission
from ...schemas.chamber import (
    ChamberCreate, ChamberUpdate, ChamberResponse, SlotCreate, SlotUpdate, SlotResponse
)
from ...services.chamber_service import ChamberService

router = APIRouter(prefix="/chambers", tags=["Chambers"])

@router.get("", response_model=List[ChamberResponse])
async def list_chambers(
    context: RequestContext = Depends(require_permission("can_view_settings")),
    db: Session = Depends(get_db)
):
    return ChamberService(db).list_chambers(context.doctor_id)

@router.post("", response_model=ChamberResponse, status_code=status.HTTP_201_CREATED)
async def create_chamber(
    chamber_data: ChamberCreate,
    context: RequestContext = Depends(get_doctor_context),
    db: Session = Depends(get_db)
):
    return ChamberService(db).create_chamber(context.doctor, chamber_data.model_dump())

@router.patch("/{chamber_id}", response_model=ChamberResponse)
async def update_chamber(
    chamber_id: int,
    chamber_data: ChamberUpdate,
    context: RequestContext = Depends(get_doctor_context),
    db: Session = Depends(get_db)
):
    return ChamberService(db).update_chamber(
        context.doctor_id, chamber_id, chamber_data.model_dump(exclude_unset=True)
    )

@router.delete("/{chamber_id}", status_code=status.HTTP_204_NO_CONTENT)
async def deactivate_chamber(
    chamber_id: int,
    context: RequestContext = Depends(get_doctor_context),
    db: Session = Depends(get_db)
):
    ChamberService(db).delete_chamber(context.doctor_id, chamber_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

# Weekly availability

@router.get("/{chamber_id}/slots", response_model=List[SlotResponse])
async def list_slots(
    chamber_id: int,
    context: RequestContext = Depends(require_permission("can_view_settings")),
    db: Session = Depends(get_db)
):
    return ChamberService(db).list_slots(context.doctor_id, chamber_id)

@router.post("/{chamber_id}/slots", response_model=SlotResponse, status_code=status.HTTP_201_CREATED)
async def add_slot(
    chamber_id: int,
    slot_data: SlotCreate,
    context: RequestContext = Depends(get_doctor_context),
    db: Session = Depends(get_db)
):
    return ChamberService(db).add_slot(context.doctor_id, chamber_id, slot_data.model_dump())

@router.patch("/slots/{slot_id}", response_model=SlotResponse)
async def update_slot(
    slot_id: int,
    slot_data: SlotUpdate,
    context: RequestContext = Depends(get_doctor_context),
    db: Session = Depends(get_db)
):
    return ChamberService(db).update_slot(
        context.doctor_id, slot_id, slot_data.model_dump(exclude_unset=True)
    )

@router.delete("/slots/{slot_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_slot(
    slot_id: int,
    context: RequestContext = Depends(get_doctor_context),
    db: Session = Depends(get_db)
):
    ChamberService(db).delete_slot(context.doctor_id, slot_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
