from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session
from typing import List

from ...core.database import get_db
from ...api.deps import RequestContext, get_request_context, require_permission
from ...schemas.staff import StaffInvite, StaffUpdate, StaffResponse
from ...services.staff_service import StaffService

router = APIRouter(prefix="/staff", tags=["Staff"])

staff_admin = require_permission("can_manage_staff")

@router.get("/me")
async def my_permissions(context: RequestContext = Depends(get_request_context)):
    """The caller's role and effective permissions."""
    return {
        "role": context.role.value,
        "staff_role": context.staff_role.label if context.staff_role else None,
        "doctor_id": context.doctor_id,
        "permissions": context.permissions.as_dict(),
    }

@router.get("", response_model=List[StaffResponse])
async def list_staff(
    context: RequestContext = Depends(staff_admin),
    db: Session = Depends(get_db)
):
    return [StaffResponse.from_member(m) for m in StaffService(db).list_staff(context.doctor_id)]

@router.post("", response_model=StaffResponse, status_code=status.HTTP_201_CREATED)
async def invite_staff(
    invite: StaffInvite,
    context: RequestContext = Depends(staff_admin),
    db: Session = Depends(get_db)
):
    """Invite someone by email; they join when they register with that address."""
    member = StaffService(db).invite(context.doctor, invite.model_dump())
    return StaffResponse.from_member(member)

@router.patch("/{staff_id}", response_model=StaffResponse)
async def update_staff(
    staff_id: int,
    staff_data: StaffUpdate,
    context: RequestContext = Depends(staff_admin),
    db: Session = Depends(get_db)
):
    member = StaffService(db).update(
        context.doctor_id, staff_id, staff_data.model_dump(exclude_unset=True)
    )
    return StaffResponse.from_member(member)

@router.delete("/{staff_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_staff(
    staff_id: int,
    context: RequestContext = Depends(staff_admin),
    db: Session = Depends(get_db)
):
    StaffService(db).remove(context.doctor_id, staff_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
