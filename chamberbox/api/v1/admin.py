from fastapi import APIRouter, Depends, Query, Response
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from datetime import date
from typing import List
import logging

from ...core.database import get_db
from ...core.errors import NotFoundError
from ...api.deps import get_admin_user
from ...models.user import User
from ...schemas.auth import UserResponse
from ...services.export_service import ExportService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])

@router.get("/export/database")
async def export_database(
    admin: User = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    """Every table as JSON plus a SQL restore script."""
    logger.info(f"Starting database export for user {admin.id}...")
    result = ExportService(db).export_database(exported_by=admin.email)

    filename = f"chamberbox_backup_{date.today().isoformat()}.json"
    return JSONResponse(
        content=result,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )

@router.get("/export/schema")
async def export_schema(
    admin: User = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    """CREATE statements for every table and index, without data."""
    filename = f"chamberbox_schema_{date.today().isoformat()}.sql"
    return Response(
        content=ExportService(db).export_schema(),
        media_type="application/sql",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )

@router.get("/users", response_model=List[UserResponse])
async def list_users(
    skip: int = Query(0, ge=0),
    limit: int = Query(10, ge=1, le=100),
    admin: User = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    """List all users (admin only)."""
    return db.query(User).order_by(User.id).offset(skip).limit(limit).all()

@router.patch("/users/{user_id}/status")
async def update_user_status(
    user_id: int,
    is_active: bool,
    admin: User = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    """Update user active status (admin only)."""
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError("User not found")

    user.is_active = is_active
    db.commit()

    return {"message": f"User {'activated' if is_active else 'deactivated'} successfully"}
