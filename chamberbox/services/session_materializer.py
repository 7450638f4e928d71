"""
Expands recurring weekly availability into dated queue sessions.

Each run looks at a rolling window starting today. Whether a session is
created for a (chamber, date, start time) key depends only on whether a
session with that key already exists, so running the job again over the same
window creates nothing new. Sessions doctors created by hand (``is_custom``)
occupy their key like any other session and are never touched.
"""
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, time, timedelta
from typing import Dict, Iterable, List, Optional, Set, Tuple
import logging

from sqlalchemy import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.errors import SessionMaterializationError
from ..models.chamber import Chamber, AvailabilitySlot
from ..models.queue import QueueSession, SessionStatus

logger = logging.getLogger(__name__)

SessionKey = Tuple[int, date, str]


@dataclass
class MaterializationResult:
    message: str
    sessions_created: int
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    sessions_staged: int = 0
    failed_batches: List[int] = field(default_factory=list)

    def as_response(self) -> dict:
        body = {"message": self.message, "sessions_created": self.sessions_created}
        if self.date_from is not None:
            body["date_range"] = {
                "from": self.date_from.isoformat(),
                "to": self.date_to.isoformat(),
            }
        return body


def day_of_week(day: date) -> int:
    """Sunday = 0 ... Saturday = 6."""
    return day.isoweekday() % 7


def truncate_time(value: time) -> time:
    return value.replace(second=0, microsecond=0)


def session_key(chamber_id: int, session_date: date, start_time: time) -> SessionKey:
    return (chamber_id, session_date, start_time.strftime("%H:%M"))


def window_dates(today: date, days: int) -> List[date]:
    return [today + timedelta(days=offset) for offset in range(days)]


def plan_sessions(
    chambers: Iterable[Chamber],
    slots: Iterable[AvailabilitySlot],
    existing_keys: Set[SessionKey],
    dates: List[date],
    max_patients: int,
    default_consultation_minutes: int,
) -> List[dict]:
    """Rows for every (chamber, date, slot) key not already taken."""
    slots_by_chamber: Dict[int, List[AvailabilitySlot]] = defaultdict(list)
    for slot in slots:
        slots_by_chamber[slot.chamber_id].append(slot)

    taken = set(existing_keys)
    staged = []

    for chamber in chambers:
        chamber_slots = slots_by_chamber.get(chamber.id, [])

        for session_date in dates:
            weekday = day_of_week(session_date)

            for slot in chamber_slots:
                if slot.day_of_week != weekday:
                    continue

                key = session_key(chamber.id, session_date, slot.start_time)
                if key in taken:
                    continue
                # Two templates with the same start time yield one session
                taken.add(key)

                staged.append({
                    "doctor_id": chamber.doctor_id,
                    "chamber_id": chamber.id,
                    "session_date": session_date,
                    "start_time": truncate_time(slot.start_time),
                    "end_time": truncate_time(slot.end_time),
                    "status": SessionStatus.OPEN,
                    "current_token": 0,
                    "max_patients": max_patients,
                    "avg_consultation_minutes": slot.slot_duration_minutes or default_consultation_minutes,
                    "is_custom": False,
                    "booking_open": True,
                })

    return staged


class SessionMaterializer:
    def __init__(
        self,
        db: Session,
        window_days: Optional[int] = None,
        batch_size: Optional[int] = None,
    ):
        self.db = db
        self.window_days = window_days or settings.SESSION_WINDOW_DAYS
        self.batch_size = batch_size or settings.SESSION_BATCH_SIZE

    def run(self, today: Optional[date] = None) -> MaterializationResult:
        today = today or date.today()

        chambers = self._load_active_chambers()
        if not chambers:
            return MaterializationResult(message="No active chambers found", sessions_created=0)

        slots = self._load_active_slots()
        if not slots:
            return MaterializationResult(message="No availability slots found", sessions_created=0)

        dates = window_dates(today, self.window_days)
        existing_keys = self._load_existing_keys(dates[0], dates[-1])

        staged = plan_sessions(
            chambers,
            slots,
            existing_keys,
            dates,
            max_patients=settings.DEFAULT_MAX_PATIENTS,
            default_consultation_minutes=settings.DEFAULT_CONSULTATION_MINUTES,
        )

        created, failed_batches = self._insert_batches(staged)
        logger.info(f"Auto-created {created} sessions for next {self.window_days} days")

        return MaterializationResult(
            message="Sessions auto-created successfully",
            sessions_created=created,
            date_from=dates[0],
            date_to=dates[-1],
            sessions_staged=len(staged),
            failed_batches=failed_batches,
        )

    def _load_active_chambers(self) -> List[Chamber]:
        try:
            return self.db.query(Chamber).filter(Chamber.is_active.is_(True)).all()
        except SQLAlchemyError as e:
            logger.error(f"Failed to load chambers: {str(e)}")
            raise SessionMaterializationError("Failed to load active chambers") from e

    def _load_active_slots(self) -> List[AvailabilitySlot]:
        try:
            return self.db.query(AvailabilitySlot).filter(AvailabilitySlot.is_active.is_(True)).all()
        except SQLAlchemyError as e:
            logger.error(f"Failed to load availability slots: {str(e)}")
            raise SessionMaterializationError("Failed to load availability slots") from e

    def _load_existing_keys(self, date_from: date, date_to: date) -> Set[SessionKey]:
        try:
            rows = self.db.query(
                QueueSession.chamber_id, QueueSession.session_date, QueueSession.start_time
            ).filter(
                QueueSession.session_date >= date_from,
                QueueSession.session_date <= date_to,
            ).all()
        except SQLAlchemyError as e:
            logger.error(f"Failed to load existing sessions: {str(e)}")
            raise SessionMaterializationError("Failed to load existing sessions") from e

        return {session_key(row.chamber_id, row.session_date, row.start_time) for row in rows}

    def _insert_batches(self, staged: List[dict]) -> Tuple[int, List[int]]:
        """Insert staged rows batch by batch; a failing batch is skipped."""
        created = 0
        failed_batches = []

        for batch_number, start in enumerate(range(0, len(staged), self.batch_size)):
            batch = staged[start:start + self.batch_size]
            try:
                self.db.execute(insert(QueueSession), batch)
                self.db.commit()
            except SQLAlchemyError as e:
                self.db.rollback()
                failed_batches.append(batch_number)
                logger.error(f"Error inserting session batch {batch_number}: {str(e)}")
                continue
            created += len(batch)

        return created, failed_batches
