from sqlalchemy.orm import Session
from typing import List
import logging

from ..models.chamber import Chamber, AvailabilitySlot
from ..models.doctor import Doctor
from ..models.subscription import UNLIMITED
from ..core.errors import NotFoundError, LimitReachedError, ValidationFailedError
from .subscription_service import SubscriptionService

logger = logging.getLogger(__name__)

class ChamberService:
    def __init__(self, db: Session):
        self.db = db

    def list_chambers(self, doctor_id: int) -> List[Chamber]:
        return self.db.query(Chamber).filter(
            Chamber.doctor_id == doctor_id
        ).order_by(Chamber.is_primary.desc(), Chamber.id).all()

    def get_chamber(self, doctor_id: int, chamber_id: int) -> Chamber:
        chamber = self.db.query(Chamber).filter(
            Chamber.id == chamber_id,
            Chamber.doctor_id == doctor_id
        ).first()
        if not chamber:
            raise NotFoundError("Chamber not found")
        return chamber

    def create_chamber(self, doctor: Doctor, data: dict) -> Chamber:
        """Add a chamber within the plan's chamber cap."""
        plan = SubscriptionService(self.db).get_plan(doctor.subscription_tier)
        existing = self.db.query(Chamber).filter(Chamber.doctor_id == doctor.id).count()
        if plan.max_chambers != UNLIMITED and existing >= plan.max_chambers:
            raise LimitReachedError(
                "You have reached your plan's chamber limit. Please upgrade your plan to add more."
            )

        chamber = Chamber(doctor_id=doctor.id, **data)
        if existing == 0:
            chamber.is_primary = True
        elif chamber.is_primary:
            self._clear_primary(doctor.id)

        self.db.add(chamber)
        self.db.commit()
        self.db.refresh(chamber)

        logger.info(f"Chamber {chamber.id} created for doctor {doctor.id}")
        return chamber

    def update_chamber(self, doctor_id: int, chamber_id: int, updates: dict) -> Chamber:
        chamber = self.get_chamber(doctor_id, chamber_id)
        if updates.get("is_primary"):
            self._clear_primary(doctor_id)
        for field, value in updates.items():
            setattr(chamber, field, value)
        self.db.commit()
        self.db.refresh(chamber)
        return chamber

    def delete_chamber(self, doctor_id: int, chamber_id: int) -> None:
        """Deactivate rather than delete; sessions and tokens keep their chamber."""
        chamber = self.get_chamber(doctor_id, chamber_id)
        chamber.is_active = False
        chamber.is_primary = False
        self.db.commit()

    def _clear_primary(self, doctor_id: int) -> None:
        self.db.query(Chamber).filter(
            Chamber.doctor_id == doctor_id,
            Chamber.is_primary.is_(True)
        ).update({"is_primary": False})

    # Availability templates

    def list_slots(self, doctor_id: int, chamber_id: int) -> List[AvailabilitySlot]:
        self.get_chamber(doctor_id, chamber_id)
        return self.db.query(AvailabilitySlot).filter(
            AvailabilitySlot.chamber_id == chamber_id
        ).order_by(AvailabilitySlot.day_of_week, AvailabilitySlot.start_time).all()

    def add_slot(self, doctor_id: int, chamber_id: int, data: dict) -> AvailabilitySlot:
        self.get_chamber(doctor_id, chamber_id)
        if data["end_time"] <= data["start_time"]:
            raise ValidationFailedError("End time must be after start time")

        slot = AvailabilitySlot(chamber_id=chamber_id, **data)
        self.db.add(slot)
        self.db.commit()
        self.db.refresh(slot)
        return slot

    def get_slot(self, doctor_id: int, slot_id: int) -> AvailabilitySlot:
        slot = self.db.query(AvailabilitySlot).join(Chamber).filter(
            AvailabilitySlot.id == slot_id,
            Chamber.doctor_id == doctor_id
        ).first()
        if not slot:
            raise NotFoundError("Availability slot not found")
        return slot

    def update_slot(self, doctor_id: int, slot_id: int, updates: dict) -> AvailabilitySlot:
        slot = self.get_slot(doctor_id, slot_id)
        start = updates.get("start_time", slot.start_time)
        end = updates.get("end_time", slot.end_time)
        if end <= start:
            raise ValidationFailedError("End time must be after start time")

        for field, value in updates.items():
            setattr(slot, field, value)
        self.db.commit()
        self.db.refresh(slot)
        return slot

    def delete_slot(self, doctor_id: int, slot_id: int) -> None:
        # Sessions already materialized from this template stay in place
        slot = self.get_slot(doctor_id, slot_id)
        self.db.delete(slot)
        self.db.commit()
