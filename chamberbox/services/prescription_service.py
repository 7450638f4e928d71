from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from ..models.doctor import Doctor
from ..models.prescription import Prescription
from .feature_gate import LimitType
from .patient_service import PatientService
from .subscription_service import SubscriptionService
from ..core.errors import NotFoundError

logger = logging.getLogger(__name__)

class PrescriptionService:
    def __init__(self, db: Session):
        self.db = db
        self.subscriptions = SubscriptionService(db)

    def create_prescription(self, doctor: Doctor, data: dict) -> Prescription:
        """Write a prescription against the monthly prescription cap."""
        PatientService(self.db).get_patient(doctor.id, data["patient_id"])
        self.subscriptions.require_within_limit(doctor, LimitType.PRESCRIPTIONS)

        prescription = Prescription(doctor_id=doctor.id, **data)
        self.db.add(prescription)
        self.subscriptions.record_prescription_created(doctor)
        self.db.commit()
        self.db.refresh(prescription)

        logger.info(f"Prescription {prescription.id} created for patient {prescription.patient_id}")
        return prescription

    def get_prescription(self, doctor_id: int, prescription_id: int) -> Prescription:
        prescription = self.db.query(Prescription).filter(
            Prescription.id == prescription_id,
            Prescription.doctor_id == doctor_id
        ).first()
        if not prescription:
            raise NotFoundError("Prescription not found")
        return prescription

    def list_prescriptions(
        self, doctor_id: int, patient_id: Optional[int] = None, skip: int = 0, limit: int = 50
    ) -> List[Prescription]:
        query = self.db.query(Prescription).filter(Prescription.doctor_id == doctor_id)
        if patient_id is not None:
            query = query.filter(Prescription.patient_id == patient_id)
        return query.order_by(Prescription.created_at.desc(), Prescription.id.desc()).offset(skip).limit(limit).all()
