from sqlalchemy.orm import Session
from sqlalchemy import or_
from typing import List, Optional, Tuple
import logging

from ..models.doctor import Doctor
from ..models.patient import Patient
from ..core.errors import NotFoundError
from .feature_gate import LimitType
from .subscription_service import SubscriptionService

logger = logging.getLogger(__name__)

class PatientService:
    def __init__(self, db: Session):
        self.db = db
        self.subscriptions = SubscriptionService(db)

    def create_patient(self, doctor: Doctor, data: dict) -> Patient:
        """Register a patient against the doctor's patient cap."""
        self.subscriptions.require_within_limit(doctor, LimitType.PATIENTS)

        patient = Patient(doctor_id=doctor.id, **data)
        self.db.add(patient)
        self.subscriptions.record_patient_added(doctor)
        self.db.commit()
        self.db.refresh(patient)

        logger.info(f"Patient {patient.id} registered for doctor {doctor.id}")
        return patient

    def find_or_create(
        self,
        doctor: Doctor,
        name: str,
        phone: str,
        age: Optional[int] = None,
        gender: Optional[str] = None,
    ) -> Tuple[Patient, bool]:
        """Match on phone within the doctor's records; create when missing."""
        patient = self.db.query(Patient).filter(
            Patient.doctor_id == doctor.id,
            Patient.phone == phone
        ).first()
        if patient:
            return patient, False

        self.subscriptions.require_within_limit(doctor, LimitType.PATIENTS)

        patient = Patient(
            doctor_id=doctor.id,
            name=name.strip(),
            phone=phone,
            age=age,
            gender=gender,
        )
        self.db.add(patient)
        self.subscriptions.record_patient_added(doctor)
        self.db.flush()
        return patient, True

    def get_patient(self, doctor_id: int, patient_id: int) -> Patient:
        patient = self.db.query(Patient).filter(
            Patient.id == patient_id,
            Patient.doctor_id == doctor_id
        ).first()
        if not patient:
            raise NotFoundError("Patient not found")
        return patient

    def list_patients(
        self, doctor_id: int, search: Optional[str] = None, skip: int = 0, limit: int = 50
    ) -> List[Patient]:
        query = self.db.query(Patient).filter(Patient.doctor_id == doctor_id)
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(Patient.name.ilike(pattern), Patient.phone.like(pattern)))
        return query.order_by(Patient.created_at.desc(), Patient.id.desc()).offset(skip).limit(limit).all()

    def update_patient(self, doctor_id: int, patient_id: int, updates: dict) -> Patient:
        patient = self.get_patient(doctor_id, patient_id)
        for field, value in updates.items():
            setattr(patient, field, value)
        self.db.commit()
        self.db.refresh(patient)
        return patient
