from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from datetime import datetime, date
from decimal import Decimal
from typing import List, Optional
import logging

from ..models.doctor import Doctor, SubscriptionTier
from ..models.subscription import SubscriptionPlan, SubscriptionUsage, UNLIMITED
from ..core.errors import FeatureLockedError, LimitReachedError, NotFoundError
from .feature_gate import (
    Feature, LimitType, LimitStatus, FeatureAccess, Readiness, SubscriptionSnapshot,
    check_feature_access, check_limit, combine_readiness
)

logger = logging.getLogger(__name__)

DEFAULT_PLANS = [
    {
        "tier": SubscriptionTier.TRIAL, "name": "Trial",
        "max_patients": 100, "max_prescriptions_per_month": 50, "max_staff": 1, "max_chambers": 1,
        "can_use_public_profile": True, "can_use_queue_booking": True,
        "price_monthly": Decimal("0"),
    },
    {
        "tier": SubscriptionTier.BASIC, "name": "Basic",
        "max_patients": 500, "max_prescriptions_per_month": 300, "max_staff": 2, "max_chambers": 2,
        "can_use_public_profile": True, "can_use_queue_booking": True, "can_export_data": True,
        "price_monthly": Decimal("500"),
    },
    {
        "tier": SubscriptionTier.PRO, "name": "Pro",
        "max_patients": 2000, "max_prescriptions_per_month": 1000, "max_staff": 5, "max_chambers": 5,
        "can_use_public_profile": True, "can_use_queue_booking": True, "can_export_data": True,
        "can_use_whatsapp_notifications": True, "can_use_analytics": True,
        "price_monthly": Decimal("1000"),
    },
    {
        "tier": SubscriptionTier.PREMIUM, "name": "Premium",
        "max_patients": UNLIMITED, "max_prescriptions_per_month": UNLIMITED,
        "max_staff": UNLIMITED, "max_chambers": UNLIMITED,
        "can_use_public_profile": True, "can_use_queue_booking": True, "can_export_data": True,
        "can_use_whatsapp_notifications": True, "can_use_analytics": True,
        "can_use_custom_branding": True,
        "price_monthly": Decimal("2000"),
    },
    {
        "tier": SubscriptionTier.ENTERPRISE, "name": "Enterprise",
        "max_patients": UNLIMITED, "max_prescriptions_per_month": UNLIMITED,
        "max_staff": UNLIMITED, "max_chambers": UNLIMITED,
        "can_use_public_profile": True, "can_use_queue_booking": True, "can_export_data": True,
        "can_use_whatsapp_notifications": True, "can_use_analytics": True,
        "can_use_custom_branding": True,
        "price_monthly": Decimal("5000"),
    },
]

def billing_month(today: Optional[date] = None) -> str:
    return (today or date.today()).strftime("%Y-%m")

class SubscriptionService:
    def __init__(self, db: Session):
        self.db = db

    def ensure_default_plans(self) -> int:
        """Seed the plan catalogue when it is empty."""
        if self.db.query(SubscriptionPlan).count() > 0:
            return 0

        for plan_data in DEFAULT_PLANS:
            self.db.add(SubscriptionPlan(**plan_data))
        self.db.commit()

        logger.info(f"Seeded {len(DEFAULT_PLANS)} subscription plans")
        return len(DEFAULT_PLANS)

    def list_plans(self) -> List[SubscriptionPlan]:
        return self.db.query(SubscriptionPlan).order_by(SubscriptionPlan.price_monthly).all()

    def get_plan(self, tier: SubscriptionTier) -> SubscriptionPlan:
        plan = self.db.query(SubscriptionPlan).filter(SubscriptionPlan.tier == tier).first()
        if not plan:
            raise NotFoundError(f"No plan configured for tier '{SubscriptionTier(tier).value}'")
        return plan

    def update_plan(self, tier: SubscriptionTier, updates: dict) -> SubscriptionPlan:
        plan = self.get_plan(tier)
        for field, value in updates.items():
            setattr(plan, field, value)
        self.db.commit()
        self.db.refresh(plan)
        return plan

    def assign_tier(
        self, doctor_id: int, tier: SubscriptionTier, expires_at: Optional[datetime]
    ) -> Doctor:
        doctor = self.db.query(Doctor).filter(Doctor.id == doctor_id).first()
        if not doctor:
            raise NotFoundError("Doctor not found")

        self.get_plan(tier)
        doctor.subscription_tier = tier
        doctor.subscription_expires_at = expires_at
        self.db.commit()
        self.db.refresh(doctor)

        logger.info(f"Doctor {doctor.id} moved to tier {SubscriptionTier(tier).value}")
        return doctor

    def get_usage(self, doctor: Doctor, today: Optional[date] = None) -> SubscriptionUsage:
        """Return the usage row, creating it or rolling it into the current month."""
        month = billing_month(today)
        usage = self.db.query(SubscriptionUsage).filter(
            SubscriptionUsage.doctor_id == doctor.id
        ).first()

        if usage is None:
            usage = SubscriptionUsage(
                doctor_id=doctor.id,
                current_month=month,
                patients_added_this_month=0,
                prescriptions_this_month=0,
                total_patients=0,
                total_prescriptions=0,
            )
            self.db.add(usage)
            self.db.flush()
        elif usage.current_month != month:
            usage.current_month = month
            usage.patients_added_this_month = 0
            usage.prescriptions_this_month = 0
            self.db.flush()

        return usage

    @staticmethod
    def is_expired(doctor: Doctor, now: Optional[datetime] = None) -> bool:
        if doctor.subscription_expires_at is None:
            return False
        return doctor.subscription_expires_at < (now or datetime.utcnow())

    @staticmethod
    def days_remaining(doctor: Doctor, now: Optional[datetime] = None) -> Optional[int]:
        if doctor.subscription_expires_at is None:
            return None
        delta = doctor.subscription_expires_at - (now or datetime.utcnow())
        # Partial days count as a full day
        return max(0, delta.days + (1 if delta.seconds or delta.microseconds else 0))

    def snapshot(self, doctor: Optional[Doctor], today: Optional[date] = None) -> SubscriptionSnapshot:
        """Load profile, plan and usage into one snapshot for the gate."""
        if doctor is None:
            return SubscriptionSnapshot(plan=None, usage=None, is_expired=False, readiness=Readiness.PENDING)

        plan = usage = None
        plan_state = usage_state = Readiness.READY

        try:
            plan = self.db.query(SubscriptionPlan).filter(
                SubscriptionPlan.tier == doctor.subscription_tier
            ).first()
            if plan is None:
                logger.error(f"No plan configured for tier {doctor.subscription_tier}")
                plan_state = Readiness.FAILED
        except SQLAlchemyError as e:
            logger.error(f"Failed to load plan for doctor {doctor.id}: {str(e)}")
            plan_state = Readiness.FAILED

        try:
            usage = self.get_usage(doctor, today)
        except SQLAlchemyError as e:
            logger.error(f"Failed to load usage for doctor {doctor.id}: {str(e)}")
            usage_state = Readiness.FAILED

        return SubscriptionSnapshot(
            plan=plan,
            usage=usage,
            is_expired=self.is_expired(doctor),
            readiness=combine_readiness([Readiness.READY, plan_state, usage_state]),
        )

    def check_feature(self, doctor: Doctor, feature: Feature) -> FeatureAccess:
        return check_feature_access(feature, self.snapshot(doctor))

    def check_limit(self, doctor: Doctor, limit: LimitType) -> LimitStatus:
        return check_limit(limit, self.snapshot(doctor))

    def require_feature(self, doctor: Doctor, feature: Feature) -> None:
        access = self.check_feature(doctor, feature)
        if not access.has_access:
            raise FeatureLockedError(access.message, plan_required=access.plan_required)

    def require_within_limit(self, doctor: Doctor, limit: LimitType) -> LimitStatus:
        status = self.check_limit(doctor, limit)
        if not status.within_limit:
            raise LimitReachedError(
                f"You have reached your plan's {LimitType(limit).value} limit. "
                "Please upgrade your plan to add more."
            )
        return status

    def record_patient_added(self, doctor: Doctor) -> None:
        usage = self.get_usage(doctor)
        usage.patients_added_this_month += 1
        usage.total_patients += 1

    def record_prescription_created(self, doctor: Doctor) -> None:
        usage = self.get_usage(doctor)
        usage.prescriptions_this_month += 1
        usage.total_prescriptions += 1
