"""
Plan entitlement checks.

Every check is recomputed from the subscription snapshot it is given; nothing
is cached or persisted. While the snapshot is still loading the gate answers
"allowed" so callers are not blocked before plan data arrives.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Optional

UNLIMITED = -1

EXPIRED_MESSAGE = "Your subscription has expired. Please renew to access this feature."
UNAVAILABLE_MESSAGE = "Subscription details could not be loaded. Please try again."


class Readiness(str, Enum):
    PENDING = "pending"
    READY = "ready"
    FAILED = "failed"


def combine_readiness(states: Iterable[Readiness]) -> Readiness:
    """Any failure wins, then any pending source; otherwise ready."""
    states = list(states)
    if any(state == Readiness.FAILED for state in states):
        return Readiness.FAILED
    if any(state == Readiness.PENDING for state in states):
        return Readiness.PENDING
    return Readiness.READY


class Feature(str, Enum):
    PUBLIC_PROFILE = "public_profile"
    QUEUE_BOOKING = "queue_booking"
    WHATSAPP = "whatsapp"
    ANALYTICS = "analytics"
    EXPORT = "export"
    BRANDING = "branding"


class LimitType(str, Enum):
    PATIENTS = "patients"
    PRESCRIPTIONS = "prescriptions"


# feature -> (plan flag, plan named in the denial message)
FEATURE_MAP = {
    Feature.PUBLIC_PROFILE: ("can_use_public_profile", "Basic"),
    Feature.QUEUE_BOOKING: ("can_use_queue_booking", "Basic"),
    Feature.WHATSAPP: ("can_use_whatsapp_notifications", "Pro"),
    Feature.ANALYTICS: ("can_use_analytics", "Pro"),
    Feature.EXPORT: ("can_export_data", "Basic"),
    Feature.BRANDING: ("can_use_custom_branding", "Premium"),
}

# limit -> (usage counter, plan cap)
LIMIT_MAP = {
    LimitType.PATIENTS: ("total_patients", "max_patients"),
    LimitType.PRESCRIPTIONS: ("prescriptions_this_month", "max_prescriptions_per_month"),
}


@dataclass(frozen=True)
class SubscriptionSnapshot:
    """Plan and usage as seen by one request."""
    plan: Optional[Any]
    usage: Optional[Any]
    is_expired: bool
    readiness: Readiness = Readiness.READY


@dataclass(frozen=True)
class FeatureAccess:
    has_access: bool
    plan_required: Optional[str] = None
    message: str = ""


@dataclass(frozen=True)
class LimitStatus:
    current: int
    max: int
    is_unlimited: bool
    within_limit: bool
    remaining: int
    percentage: float = 0.0


def check_feature_access(feature: Feature, snapshot: SubscriptionSnapshot) -> FeatureAccess:
    feature = Feature(feature)

    if snapshot.readiness == Readiness.PENDING:
        return FeatureAccess(has_access=True)
    if snapshot.readiness == Readiness.FAILED:
        return FeatureAccess(has_access=False, message=UNAVAILABLE_MESSAGE)

    if snapshot.is_expired:
        return FeatureAccess(has_access=False, message=EXPIRED_MESSAGE)

    flag, plan_required = FEATURE_MAP[feature]
    if snapshot.plan is None or not getattr(snapshot.plan, flag, False):
        return FeatureAccess(
            has_access=False,
            plan_required=plan_required,
            message=f"This feature requires {plan_required} plan or higher.",
        )

    return FeatureAccess(has_access=True)


def limit_status(current: int, maximum: int) -> LimitStatus:
    """Compare a usage counter against a plan cap (-1 means unlimited)."""
    current = max(current or 0, 0)
    is_unlimited = maximum == UNLIMITED
    within_limit = is_unlimited or current < maximum

    if is_unlimited:
        remaining = UNLIMITED
        percentage = 0.0
    else:
        remaining = max(maximum - current, 0)
        percentage = min(current / maximum * 100, 100.0) if maximum > 0 else 0.0

    return LimitStatus(
        current=current,
        max=maximum,
        is_unlimited=is_unlimited,
        within_limit=within_limit,
        remaining=remaining,
        percentage=percentage,
    )


def check_limit(limit: LimitType, snapshot: SubscriptionSnapshot) -> LimitStatus:
    limit = LimitType(limit)
    usage_field, plan_field = LIMIT_MAP[limit]

    current = getattr(snapshot.usage, usage_field, 0) if snapshot.usage is not None else 0
    maximum = getattr(snapshot.plan, plan_field, 0) if snapshot.plan is not None else 0

    if snapshot.readiness == Readiness.PENDING:
        return LimitStatus(
            current=current, max=UNLIMITED, is_unlimited=True,
            within_limit=True, remaining=UNLIMITED,
        )

    if snapshot.readiness == Readiness.FAILED or snapshot.is_expired:
        return LimitStatus(
            current=current, max=maximum, is_unlimited=False,
            within_limit=False, remaining=0,
        )

    return limit_status(current, maximum)
