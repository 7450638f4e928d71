from sqlalchemy.orm import Session
from sqlalchemy import func
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Tuple
import logging

from ..core.config import settings
from ..core.errors import NotFoundError, InvalidTransitionError, BookingUnavailableError
from ..models.chamber import Chamber, AvailabilitySlot
from ..models.doctor import Doctor
from ..models.patient import Patient
from ..models.queue import (
    QueueSession, QueueToken, SessionStatus, TokenStatus, BookedBy, ACTIVE_TOKEN_STATUSES
)
from .session_materializer import day_of_week, session_key, truncate_time
from .patient_service import PatientService

logger = logging.getLogger(__name__)

DEFAULT_SLOT_MINUTES = 15

class QueueService:
    def __init__(self, db: Session):
        self.db = db

    # Sessions

    def get_session(self, doctor_id: int, session_id: int) -> QueueSession:
        session = self.db.query(QueueSession).filter(
            QueueSession.id == session_id,
            QueueSession.doctor_id == doctor_id
        ).first()
        if not session:
            raise NotFoundError("Session not found")
        return session

    def list_sessions(self, doctor_id: int, session_date: date) -> List[Tuple[QueueSession, int]]:
        """Sessions of one day with their token counts."""
        sessions = self.db.query(QueueSession).filter(
            QueueSession.doctor_id == doctor_id,
            QueueSession.session_date == session_date
        ).order_by(QueueSession.start_time).all()

        counts = self._token_counts([s.id for s in sessions])
        return [(s, counts.get(s.id, 0)) for s in sessions]

    def create_session(self, doctor_id: int, data: dict) -> QueueSession:
        """Create a session by hand; the materializer leaves it alone."""
        chamber = self.db.query(Chamber).filter(
            Chamber.id == data["chamber_id"],
            Chamber.doctor_id == doctor_id
        ).first()
        if not chamber:
            raise NotFoundError("Chamber not found")

        session = QueueSession(
            doctor_id=doctor_id,
            chamber_id=chamber.id,
            session_date=data["session_date"],
            start_time=truncate_time(data["start_time"]),
            end_time=truncate_time(data["end_time"]),
            max_patients=data.get("max_patients") or settings.DEFAULT_MAX_PATIENTS,
            avg_consultation_minutes=data.get("avg_consultation_minutes") or settings.DEFAULT_CONSULTATION_MINUTES,
            is_custom=data.get("is_custom", True),
            notes=data.get("notes"),
            status=SessionStatus.OPEN,
            current_token=0,
            booking_open=True,
        )
        self.db.add(session)
        self.db.commit()
        self.db.refresh(session)
        return session

    def update_session_status(self, doctor_id: int, session_id: int, status: SessionStatus) -> QueueSession:
        session = self.get_session(doctor_id, session_id)
        session.status = status
        self.db.commit()
        self.db.refresh(session)
        return session

    def set_booking_open(self, doctor_id: int, session_id: int, booking_open: bool) -> QueueSession:
        session = self.get_session(doctor_id, session_id)
        session.booking_open = booking_open
        self.db.commit()
        self.db.refresh(session)
        return session

    def delete_session(self, doctor_id: int, session_id: int) -> None:
        session = self.get_session(doctor_id, session_id)
        # Tokens go with the session through the relationship cascade
        self.db.delete(session)
        self.db.commit()

    # Tokens

    def _token_counts(self, session_ids: List[int], active_only: bool = False) -> Dict[int, int]:
        if not session_ids:
            return {}
        query = self.db.query(QueueToken.session_id, func.count(QueueToken.id)).filter(
            QueueToken.session_id.in_(session_ids)
        )
        if active_only:
            query = query.filter(QueueToken.status.in_(ACTIVE_TOKEN_STATUSES))
        return dict(query.group_by(QueueToken.session_id).all())

    def active_token_count(self, session_id: int) -> int:
        return self._token_counts([session_id], active_only=True).get(session_id, 0)

    def ensure_bookable(self, session: QueueSession) -> None:
        if session.status == SessionStatus.CLOSED:
            raise BookingUnavailableError("This session is closed")
        if not session.booking_open:
            raise BookingUnavailableError("Booking is closed for this session")
        if self.active_token_count(session.id) >= session.max_patients:
            raise BookingUnavailableError("This session is fully booked")

    def add_token(
        self,
        session: QueueSession,
        patient_id: int,
        booked_by: BookedBy = BookedBy.INTERNAL,
        visiting_reason: Optional[str] = None,
        commit: bool = True,
    ) -> QueueToken:
        """Queue a patient; the token number is only known after the flush."""
        self.ensure_bookable(session)

        token = QueueToken(
            doctor_id=session.doctor_id,
            session_id=session.id,
            chamber_id=session.chamber_id,
            patient_id=patient_id,
            queue_date=session.session_date,
            token_number=0,
            status=TokenStatus.WAITING,
            booked_by=booked_by,
            visiting_reason=visiting_reason,
        )
        self.db.add(token)
        self.db.flush()

        if commit:
            self.db.commit()
            self.db.refresh(token)

        logger.info(f"Token {token.token_number} issued in session {session.id}")
        return token

    def list_tokens(self, doctor_id: int, session_id: int) -> List[QueueToken]:
        self.get_session(doctor_id, session_id)
        return self.db.query(QueueToken).filter(
            QueueToken.session_id == session_id
        ).order_by(QueueToken.token_number).all()

    def get_token(self, doctor_id: int, token_id: int) -> QueueToken:
        token = self.db.query(QueueToken).filter(
            QueueToken.id == token_id,
            QueueToken.doctor_id == doctor_id
        ).first()
        if not token:
            raise NotFoundError("Token not found")
        return token

    def _transition(self, token: QueueToken, new_status: TokenStatus) -> None:
        if not token.can_transition_to(new_status):
            raise InvalidTransitionError(
                f"Cannot move token from {TokenStatus(token.status).value} to {TokenStatus(new_status).value}"
            )
        token.status = new_status
        if new_status == TokenStatus.CURRENT:
            token.called_at = datetime.utcnow()
        elif new_status == TokenStatus.COMPLETED:
            token.completed_at = datetime.utcnow()

    def update_token_status(self, doctor_id: int, token_id: int, new_status: TokenStatus) -> QueueToken:
        token = self.get_token(doctor_id, token_id)
        self._transition(token, new_status)

        if new_status == TokenStatus.CURRENT:
            # One patient is seen at a time; the previous one is done
            previous = self.db.query(QueueToken).filter(
                QueueToken.session_id == token.session_id,
                QueueToken.status == TokenStatus.CURRENT,
                QueueToken.id != token.id
            ).all()
            for other in previous:
                self._transition(other, TokenStatus.COMPLETED)

            session = token.session
            session.current_token = token.token_number
            session.status = SessionStatus.RUNNING

        self.db.commit()
        self.db.refresh(token)
        return token

    def call_next(self, doctor_id: int, session_id: int) -> Optional[QueueToken]:
        """Finish the patient being seen and call the next one waiting."""
        session = self.get_session(doctor_id, session_id)

        current = self.db.query(QueueToken).filter(
            QueueToken.session_id == session.id,
            QueueToken.status == TokenStatus.CURRENT
        ).first()
        if current:
            self._transition(current, TokenStatus.COMPLETED)

        next_token = self.db.query(QueueToken).filter(
            QueueToken.session_id == session.id,
            QueueToken.status == TokenStatus.WAITING
        ).order_by(QueueToken.token_number).first()

        if next_token:
            self._transition(next_token, TokenStatus.CURRENT)
            session.current_token = next_token.token_number
            session.status = SessionStatus.RUNNING

        self.db.commit()
        if next_token:
            self.db.refresh(next_token)
            logger.info(f"Calling token {next_token.token_number} in session {session.id}")
        return next_token

    def patients_ahead(self, token: QueueToken) -> int:
        return self.db.query(func.count(QueueToken.id)).filter(
            QueueToken.session_id == token.session_id,
            QueueToken.status.in_(ACTIVE_TOKEN_STATUSES),
            QueueToken.token_number < token.token_number
        ).scalar() or 0

    # Public booking

    def available_slots(self, doctor_id: int, start: date, days: int) -> List[dict]:
        """Bookable template slots per day, with capacity from existing sessions."""
        chambers = self.db.query(Chamber).filter(
            Chamber.doctor_id == doctor_id,
            Chamber.is_active.is_(True)
        ).all()
        if not chambers:
            return []

        chamber_ids = [c.id for c in chambers]
        slots = self.db.query(AvailabilitySlot).filter(
            AvailabilitySlot.chamber_id.in_(chamber_ids),
            AvailabilitySlot.is_active.is_(True)
        ).all()

        date_to = start + timedelta(days=days - 1)
        sessions = self.db.query(QueueSession).filter(
            QueueSession.doctor_id == doctor_id,
            QueueSession.session_date >= start,
            QueueSession.session_date <= date_to
        ).all()
        sessions_by_key = {
            session_key(s.chamber_id, s.session_date, s.start_time): s for s in sessions
        }
        counts = self._token_counts(
            [s.id for s in sessions if s.status != SessionStatus.CLOSED], active_only=True
        )

        result = []
        for offset in range(days):
            day = start + timedelta(days=offset)
            weekday = day_of_week(day)

            for chamber in chambers:
                for slot in slots:
                    if slot.chamber_id != chamber.id or slot.day_of_week != weekday:
                        continue

                    session = sessions_by_key.get(session_key(chamber.id, day, slot.start_time))
                    if session is not None and session.status == SessionStatus.CLOSED:
                        continue

                    current_bookings = counts.get(session.id, 0) if session else 0
                    max_patients = session.max_patients if session else settings.DEFAULT_MAX_PATIENTS
                    booking_open = session.booking_open if session else True

                    result.append({
                        "date": day,
                        "chamber_id": chamber.id,
                        "chamber_name": chamber.name,
                        "chamber_address": chamber.address,
                        "start_time": truncate_time(slot.start_time),
                        "end_time": truncate_time(slot.end_time),
                        "slot_duration_minutes": slot.slot_duration_minutes or DEFAULT_SLOT_MINUTES,
                        "current_bookings": current_bookings,
                        "max_patients": max_patients,
                        "is_available": bool(session) and booking_open and current_bookings < max_patients,
                        "session_id": session.id if session else None,
                        "booking_open": booking_open,
                    })

        return sorted(result, key=lambda s: (s["date"], s["start_time"]))

    def find_open_session(
        self, doctor_id: int, chamber_id: int, queue_date: date
    ) -> Optional[QueueSession]:
        return self.db.query(QueueSession).filter(
            QueueSession.doctor_id == doctor_id,
            QueueSession.chamber_id == chamber_id,
            QueueSession.session_date == queue_date,
            QueueSession.status.in_([SessionStatus.OPEN, SessionStatus.RUNNING, SessionStatus.PAUSED])
        ).order_by(QueueSession.start_time).first()

    def book(self, doctor: Doctor, data: dict, booked_by: BookedBy) -> Tuple[QueueToken, int]:
        """Find or register the patient and queue them; returns the token and patients ahead."""
        if data.get("session_id"):
            session = self.get_session(doctor.id, data["session_id"])
        else:
            session = self.find_open_session(doctor.id, data["chamber_id"], data["queue_date"])
            if session is None:
                raise BookingUnavailableError("No open session for this chamber on that date")

        self.ensure_bookable(session)

        patient, _ = PatientService(self.db).find_or_create(
            doctor,
            name=data["patient_name"],
            phone=data["patient_phone"],
            age=data.get("patient_age"),
            gender=data.get("patient_gender"),
        )

        token = self.add_token(
            session,
            patient.id,
            booked_by=booked_by,
            visiting_reason=data.get("visiting_reason"),
        )
        return token, self.patients_ahead(token)

    def queue_status(self, phone: str, serial_number: Optional[int] = None, today: Optional[date] = None) -> dict:
        """Where a patient stands in today's queue, looked up by phone."""
        today = today or date.today()

        patient_ids = [p.id for p in self.db.query(Patient.id).filter(Patient.phone == phone).all()]
        if not patient_ids:
            raise NotFoundError("No booking found for this phone number")

        query = self.db.query(QueueToken).filter(
            QueueToken.patient_id.in_(patient_ids),
            QueueToken.queue_date == today,
            QueueToken.status.in_(ACTIVE_TOKEN_STATUSES)
        )
        if serial_number:
            query = query.filter(QueueToken.token_number == serial_number)
        token = query.order_by(QueueToken.token_number.desc()).first()

        if token is None:
            seen = self.db.query(QueueToken.id).filter(
                QueueToken.patient_id.in_(patient_ids),
                QueueToken.queue_date == today,
                QueueToken.status == TokenStatus.COMPLETED
            ).first()
            if seen:
                return {"status": "already_seen"}
            raise NotFoundError("No booking found for this phone number")

        session = token.session
        chamber = session.chamber
        doctor = self.db.query(Doctor).filter(Doctor.id == session.doctor_id).first()
        ahead = self.patients_ahead(token)
        avg_minutes = session.avg_consultation_minutes or settings.DEFAULT_CONSULTATION_MINUTES

        return {
            "status": TokenStatus(token.status).value,
            "patient_serial": token.token_number,
            "current_serial": session.current_token,
            "patients_ahead": ahead,
            "estimated_wait_minutes": ahead * avg_minutes,
            "avg_consultation_minutes": avg_minutes,
            "session_status": SessionStatus(session.status).value,
            "doctor_name": doctor.full_name if doctor else None,
            "chamber_name": chamber.name if chamber else None,
            "chamber_address": chamber.address if chamber else None,
            "schedule_start": session.start_time,
            "schedule_end": session.end_time,
        }
