from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Boolean, Text
from sqlalchemy.sql import func

from ..core.database import Base

DEFAULT_CONFIRMATION_TEMPLATE = (
    "Dear {{patient_name}}, your appointment with {{doctor_name}} is confirmed "
    "for {{date}} at {{time}}. Serial: {{serial_number}}. Address: {{chamber_address}}"
)

class IntegrationSettings(Base):
    __tablename__ = "integration_settings"

    id = Column(Integer, primary_key=True, index=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), unique=True, nullable=False)

    # Calendly
    calendly_enabled = Column(Boolean, default=False, nullable=False)
    calendly_url = Column(String(255), nullable=True)

    # WhatsApp
    whatsapp_enabled = Column(Boolean, default=False, nullable=False)
    whatsapp_number = Column(String(20), nullable=True)

    # Notifications
    send_booking_confirmation = Column(Boolean, default=True, nullable=False)
    reminder_hours_before = Column(Integer, default=2, nullable=False)
    confirmation_template = Column(Text, default=DEFAULT_CONFIRMATION_TEMPLATE, nullable=False)

    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<IntegrationSettings(doctor_id={self.doctor_id})>"
