from sqlalchemy.orm import Session
import logging

from ..models.doctor import Doctor
from ..models.integration import IntegrationSettings, DEFAULT_CONFIRMATION_TEMPLATE
from .feature_gate import Feature
from .subscription_service import SubscriptionService

logger = logging.getLogger(__name__)

class IntegrationService:
    def __init__(self, db: Session):
        self.db = db

    def get_settings(self, doctor_id: int) -> IntegrationSettings:
        """Stored settings, or unsaved defaults when the doctor has none yet."""
        stored = self.db.query(IntegrationSettings).filter(
            IntegrationSettings.doctor_id == doctor_id
        ).first()
        if stored:
            return stored

        return IntegrationSettings(
            doctor_id=doctor_id,
            calendly_enabled=False,
            calendly_url=None,
            whatsapp_enabled=False,
            whatsapp_number=None,
            send_booking_confirmation=True,
            reminder_hours_before=2,
            confirmation_template=DEFAULT_CONFIRMATION_TEMPLATE,
        )

    def update_settings(self, doctor: Doctor, updates: dict) -> IntegrationSettings:
        if updates.get("whatsapp_enabled"):
            SubscriptionService(self.db).require_feature(doctor, Feature.WHATSAPP)

        settings_row = self.get_settings(doctor.id)
        if settings_row.id is None:
            self.db.add(settings_row)

        for field, value in updates.items():
            setattr(settings_row, field, value)
        self.db.commit()
        self.db.refresh(settings_row)

        logger.info(f"Integration settings updated for doctor {doctor.id}")
        return settings_row
