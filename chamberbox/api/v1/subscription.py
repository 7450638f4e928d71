from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from dataclasses import asdict
from typing import List

from ...core.database import get_db
from ...api.deps import RequestContext, get_admin_user, get_request_context
from ...models.doctor import SubscriptionTier
from ...models.user import User
from ...schemas.subscription import (
    PlanResponse, PlanUpdate, UsageResponse, LimitResponse, FeatureResponse,
    SubscriptionOverview, TierAssignment
)
from ...services.feature_gate import Feature, LimitType, check_feature_access, check_limit
from ...services.subscription_service import SubscriptionService

router = APIRouter(prefix="/subscription", tags=["Subscription"])

@router.get("", response_model=SubscriptionOverview)
async def current_subscription(
    context: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db)
):
    """Plan, usage, limits and expiry for the doctor the caller works for."""
    service = SubscriptionService(db)
    doctor = context.doctor
    snapshot = service.snapshot(doctor)
    db.commit()

    return SubscriptionOverview(
        tier=doctor.subscription_tier,
        plan=PlanResponse.model_validate(snapshot.plan) if snapshot.plan else None,
        usage=UsageResponse.model_validate(snapshot.usage) if snapshot.usage else None,
        readiness=snapshot.readiness.value,
        is_expired=snapshot.is_expired,
        expires_at=doctor.subscription_expires_at,
        days_remaining=service.days_remaining(doctor),
        limits={
            limit.value: LimitResponse(**asdict(check_limit(limit, snapshot)))
            for limit in LimitType
        },
    )

@router.get("/plans", response_model=List[PlanResponse])
async def list_plans(db: Session = Depends(get_db)):
    return SubscriptionService(db).list_plans()

@router.get("/features/{feature}", response_model=FeatureResponse)
async def check_feature(
    feature: Feature,
    context: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db)
):
    access = check_feature_access(feature, SubscriptionService(db).snapshot(context.doctor))
    db.commit()
    return FeatureResponse(
        feature=feature.value,
        has_access=access.has_access,
        plan_required=access.plan_required,
        message=access.message,
    )

@router.get("/limits/{limit}", response_model=LimitResponse)
async def check_limit_status(
    limit: LimitType,
    context: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db)
):
    status_ = SubscriptionService(db).check_limit(context.doctor, limit)
    db.commit()
    return LimitResponse(**asdict(status_))

# Admin

@router.patch("/plans/{tier}", response_model=PlanResponse)
async def update_plan(
    tier: SubscriptionTier,
    plan_data: PlanUpdate,
    admin: User = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    return SubscriptionService(db).update_plan(tier, plan_data.model_dump(exclude_unset=True))

@router.put("/doctors/{doctor_id}")
async def assign_tier(
    doctor_id: int,
    assignment: TierAssignment,
    admin: User = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    doctor = SubscriptionService(db).assign_tier(doctor_id, assignment.tier, assignment.expires_at)
    return {
        "doctor_id": doctor.id,
        "tier": doctor.subscription_tier,
        "expires_at": doctor.subscription_expires_at,
    }
