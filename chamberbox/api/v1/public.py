from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from datetime import date
from typing import List, Optional

from ...core.config import settings
from ...core.database import get_db
from ...core.errors import NotFoundError
from ...api.deps import rate_limit_check
from ...models.doctor import Doctor
from ...models.queue import BookedBy
from ...schemas.common import normalize_phone
from ...schemas.public import (
    PublicDoctorProfile, PublicChamber, AvailableSlot, PublicBooking,
    BookingConfirmation, QueueStatusResponse
)
from ...services.chamber_service import ChamberService
from ...services.feature_gate import Feature
from ...services.queue_service import QueueService
from ...services.subscription_service import SubscriptionService

router = APIRouter(prefix="/public", tags=["Public"])

def _public_doctor(db: Session, slug: str) -> Doctor:
    doctor = db.query(Doctor).filter(Doctor.slug == slug, Doctor.is_public.is_(True)).first()
    if not doctor:
        raise NotFoundError("Doctor not found")
    return doctor

@router.get("/doctors/{slug}", response_model=PublicDoctorProfile)
async def doctor_profile(slug: str, db: Session = Depends(get_db)):
    """Public profile page; needs a plan with the public profile feature."""
    doctor = _public_doctor(db, slug)
    subscriptions = SubscriptionService(db)
    subscriptions.require_feature(doctor, Feature.PUBLIC_PROFILE)
    booking = subscriptions.check_feature(doctor, Feature.QUEUE_BOOKING)
    db.commit()

    chambers = [c for c in ChamberService(db).list_chambers(doctor.id) if c.is_active]
    return PublicDoctorProfile(
        id=doctor.id,
        full_name=doctor.full_name,
        specialization=doctor.specialization,
        bio=doctor.bio,
        slug=doctor.slug,
        chambers=[PublicChamber.model_validate(c) for c in chambers],
        queue_booking_enabled=booking.has_access,
    )

@router.get("/doctors/{slug}/slots", response_model=List[AvailableSlot])
async def available_slots(
    slug: str,
    start: Optional[date] = None,
    days: int = Query(settings.PUBLIC_BOOKING_DAYS, ge=1, le=31),
    db: Session = Depends(get_db)
):
    """Bookable slots for the coming days with current capacity."""
    doctor = _public_doctor(db, slug)
    SubscriptionService(db).require_feature(doctor, Feature.QUEUE_BOOKING)
    db.commit()

    return QueueService(db).available_slots(doctor.id, start or date.today(), days)

@router.post(
    "/doctors/{slug}/book",
    response_model=BookingConfirmation,
    status_code=status.HTTP_201_CREATED
)
async def book(
    slug: str,
    booking: PublicBooking,
    db: Session = Depends(get_db),
    _: None = Depends(rate_limit_check)
):
    """Book a queue token; the patient is matched or registered by phone."""
    doctor = _public_doctor(db, slug)
    SubscriptionService(db).require_feature(doctor, Feature.QUEUE_BOOKING)

    token, ahead = QueueService(db).book(doctor, booking.model_dump(), BookedBy.PUBLIC)
    return BookingConfirmation(
        token_id=token.id,
        token_number=token.token_number,
        serial_number=token.serial_number,
        queue_date=token.queue_date,
        session_id=token.session_id,
        patients_ahead=ahead,
        message=f"Booking confirmed. Your serial number is {token.token_number}.",
    )

@router.get("/queue-status", response_model=QueueStatusResponse)
async def queue_status(
    phone: str,
    serial: Optional[int] = None,
    db: Session = Depends(get_db)
):
    """Where a patient stands in today's queue."""
    try:
        phone = normalize_phone(phone)
    except ValueError:
        raise NotFoundError("No booking found for this phone number")
    return QueueService(db).queue_status(phone, serial)
