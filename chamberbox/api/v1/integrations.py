from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...api.deps import RequestContext, require_permission
from ...schemas.integration import IntegrationUpdate, IntegrationResponse
from ...services.integration_service import IntegrationService

router = APIRouter(prefix="/integrations", tags=["Integrations"])

integration_admin = require_permission("can_manage_integrations")

@router.get("", response_model=IntegrationResponse)
async def get_integration_settings(
    context: RequestContext = Depends(integration_admin),
    db: Session = Depends(get_db)
):
    """Saved settings, or the defaults when nothing has been saved."""
    return IntegrationService(db).get_settings(context.doctor_id)

@router.put("", response_model=IntegrationResponse)
async def update_integration_settings(
    settings_data: IntegrationUpdate,
    context: RequestContext = Depends(integration_admin),
    db: Session = Depends(get_db)
):
    return IntegrationService(db).update_settings(
        context.doctor, settings_data.model_dump(exclude_unset=True)
    )
