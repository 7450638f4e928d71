from sqlalchemy.orm import Session
from datetime import datetime
from typing import List, Optional
import logging

from ..core.errors import NotFoundError, LimitReachedError, ValidationFailedError
from ..core.permissions import StaffRole
from ..models.doctor import Doctor
from ..models.staff import StaffMember
from ..models.subscription import UNLIMITED
from ..models.user import User
from .subscription_service import SubscriptionService

logger = logging.getLogger(__name__)

class StaffService:
    def __init__(self, db: Session):
        self.db = db

    def list_staff(self, doctor_id: int) -> List[StaffMember]:
        return self.db.query(StaffMember).filter(
            StaffMember.doctor_id == doctor_id
        ).order_by(StaffMember.invited_at, StaffMember.id).all()

    def get_staff(self, doctor_id: int, staff_id: int) -> StaffMember:
        member = self.db.query(StaffMember).filter(
            StaffMember.id == staff_id,
            StaffMember.doctor_id == doctor_id
        ).first()
        if not member:
            raise NotFoundError("Staff member not found")
        return member

    def invite(self, doctor: Doctor, data: dict) -> StaffMember:
        """Record an invitation; the person becomes active staff when they sign up."""
        plan = SubscriptionService(self.db).get_plan(doctor.subscription_tier)
        active = self.db.query(StaffMember).filter(
            StaffMember.doctor_id == doctor.id,
            StaffMember.is_active.is_(True)
        ).count()
        if plan.max_staff != UNLIMITED and active >= plan.max_staff:
            raise LimitReachedError(
                "You have reached your plan's staff limit. Please upgrade your plan to add more."
            )

        email = data["email"].lower()
        existing = self.db.query(StaffMember).filter(
            StaffMember.doctor_id == doctor.id,
            StaffMember.email == email
        ).first()
        if existing:
            raise ValidationFailedError("This person has already been invited")

        member = StaffMember(
            doctor_id=doctor.id,
            email=email,
            full_name=data["full_name"],
            phone=data.get("phone"),
            role=StaffRole.from_label(data["role"]).label,
            is_active=True,
        )
        self.db.add(member)
        self.db.commit()
        self.db.refresh(member)

        logger.info(f"Doctor {doctor.id} invited {email} as {member.role}")
        return member

    def update(self, doctor_id: int, staff_id: int, updates: dict) -> StaffMember:
        member = self.get_staff(doctor_id, staff_id)
        if "role" in updates and updates["role"] is not None:
            updates["role"] = StaffRole.from_label(updates["role"]).label
        for field, value in updates.items():
            setattr(member, field, value)
        self.db.commit()
        self.db.refresh(member)
        return member

    def remove(self, doctor_id: int, staff_id: int) -> None:
        member = self.get_staff(doctor_id, staff_id)
        self.db.delete(member)
        self.db.commit()

    def pending_invitation(self, email: str) -> Optional[StaffMember]:
        return self.db.query(StaffMember).filter(
            StaffMember.email == email.lower(),
            StaffMember.user_id.is_(None),
            StaffMember.is_active.is_(True)
        ).order_by(StaffMember.invited_at.desc()).first()

    def accept_invitation(self, member: StaffMember, user: User) -> StaffMember:
        """Link a signed-up user to their invitation. Does not commit."""
        member.user_id = user.id
        member.accepted_at = datetime.utcnow()
        return member
