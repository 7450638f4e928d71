from types import SimpleNamespace

import pytest

from chamberbox.services.feature_gate import (
    EXPIRED_MESSAGE, UNAVAILABLE_MESSAGE, Feature, LimitType, Readiness,
    SubscriptionSnapshot, check_feature_access, check_limit, combine_readiness, limit_status
)


def make_plan(**overrides):
    plan = dict(
        can_use_public_profile=True,
        can_use_queue_booking=True,
        can_use_whatsapp_notifications=False,
        can_use_analytics=False,
        can_export_data=False,
        can_use_custom_branding=False,
        max_patients=100,
        max_prescriptions_per_month=50,
    )
    plan.update(overrides)
    return SimpleNamespace(**plan)


def make_usage(total_patients=0, prescriptions_this_month=0):
    return SimpleNamespace(
        total_patients=total_patients,
        prescriptions_this_month=prescriptions_this_month,
    )


def snapshot(plan=None, usage=None, is_expired=False, readiness=Readiness.READY):
    return SubscriptionSnapshot(
        plan=plan if plan is not None else make_plan(),
        usage=usage if usage is not None else make_usage(),
        is_expired=is_expired,
        readiness=readiness,
    )


class TestReadiness:

    def test_all_ready(self):
        assert combine_readiness([Readiness.READY] * 3) == Readiness.READY

    def test_pending_when_any_source_pending(self):
        assert combine_readiness([Readiness.READY, Readiness.PENDING, Readiness.READY]) == Readiness.PENDING

    def test_failure_wins_over_pending(self):
        assert combine_readiness([Readiness.PENDING, Readiness.FAILED]) == Readiness.FAILED


class TestFeatureAccess:

    def test_flag_grants_access(self):
        access = check_feature_access(Feature.PUBLIC_PROFILE, snapshot())
        assert access.has_access
        assert access.plan_required is None

    @pytest.mark.parametrize("feature,plan_name", [
        (Feature.WHATSAPP, "Pro"),
        (Feature.ANALYTICS, "Pro"),
        (Feature.EXPORT, "Basic"),
        (Feature.BRANDING, "Premium"),
    ])
    def test_missing_flag_names_required_plan(self, feature, plan_name):
        access = check_feature_access(feature, snapshot())
        assert not access.has_access
        assert access.plan_required == plan_name
        assert access.message == f"This feature requires {plan_name} plan or higher."

    def test_expired_denies_every_feature(self):
        plan = make_plan(
            can_use_whatsapp_notifications=True, can_use_analytics=True,
            can_export_data=True, can_use_custom_branding=True,
        )
        for feature in Feature:
            access = check_feature_access(feature, snapshot(plan=plan, is_expired=True))
            assert not access.has_access
            assert access.message == EXPIRED_MESSAGE

    def test_pending_allows_everything(self):
        pending = SubscriptionSnapshot(plan=None, usage=None, is_expired=False, readiness=Readiness.PENDING)
        assert all(check_feature_access(f, pending).has_access for f in Feature)

    def test_failed_denies(self):
        access = check_feature_access(Feature.PUBLIC_PROFILE, snapshot(readiness=Readiness.FAILED))
        assert not access.has_access
        assert access.message == UNAVAILABLE_MESSAGE

    def test_accepts_tag_strings(self):
        assert check_feature_access("queue_booking", snapshot()).has_access


class TestLimits:

    def test_within_limit(self):
        status = limit_status(40, 100)
        assert status.within_limit
        assert status.remaining == 60
        assert status.percentage == 40.0
        assert not status.is_unlimited

    def test_at_limit(self):
        status = limit_status(100, 100)
        assert not status.within_limit
        assert status.remaining == 0

    def test_over_limit_never_negative(self):
        assert limit_status(120, 100).remaining == 0

    def test_unlimited(self):
        status = limit_status(5000, -1)
        assert status.is_unlimited
        assert status.within_limit
        assert status.remaining == -1

    def test_patients_use_total_count(self):
        status = check_limit(LimitType.PATIENTS, snapshot(usage=make_usage(total_patients=100)))
        assert not status.within_limit

    def test_prescriptions_use_monthly_count(self):
        usage = make_usage(total_patients=500, prescriptions_this_month=10)
        status = check_limit(LimitType.PRESCRIPTIONS, snapshot(usage=usage))
        assert status.within_limit
        assert status.current == 10
        assert status.remaining == 40

    def test_expired_denies_with_nothing_remaining(self):
        status = check_limit(LimitType.PATIENTS, snapshot(is_expired=True))
        assert not status.within_limit
        assert status.remaining == 0

    def test_pending_reports_unlimited(self):
        pending = SubscriptionSnapshot(plan=None, usage=None, is_expired=False, readiness=Readiness.PENDING)
        status = check_limit(LimitType.PATIENTS, pending)
        assert status.within_limit
        assert status.is_unlimited
