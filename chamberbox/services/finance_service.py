from sqlalchemy.orm import Session
from sqlalchemy import func
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, List, Optional
import calendar
import csv
import io
import logging

from ..core.errors import NotFoundError, ValidationFailedError
from ..models.patient import Patient
from ..models.prescription import Prescription
from ..models.queue import QueueToken
from ..models.transaction import Transaction, TransactionType, PaymentMethod

logger = logging.getLogger(__name__)

CSV_COLUMNS = [
    "id", "transaction_date", "type", "category", "payment_method",
    "amount", "patient_id", "visit_id", "description",
]

@dataclass
class DueCollectionResult:
    income: Transaction
    remaining_due: Optional[Transaction]
    collected_amount: Decimal
    remaining_amount: Decimal

def month_bounds(today: date):
    last_day = calendar.monthrange(today.year, today.month)[1]
    return today.replace(day=1), today.replace(day=last_day)

class FinanceService:
    def __init__(self, db: Session):
        self.db = db

    def list_transactions(
        self,
        doctor_id: int,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        payment_method: Optional[PaymentMethod] = None,
    ) -> List[Transaction]:
        """Transactions in a date range, defaulting to the current month."""
        default_from, default_to = month_bounds(date.today())
        query = self.db.query(Transaction).filter(
            Transaction.doctor_id == doctor_id,
            Transaction.transaction_date >= (date_from or default_from),
            Transaction.transaction_date <= (date_to or default_to),
        )
        if payment_method is not None:
            query = query.filter(Transaction.payment_method == payment_method)
        return query.order_by(Transaction.transaction_date.desc(), Transaction.id.desc()).all()

    def add_transaction(self, doctor_id: int, data: dict) -> Transaction:
        if data.get("patient_id") is not None:
            self._ensure_patient(doctor_id, data["patient_id"])

        transaction = Transaction(doctor_id=doctor_id, **data)
        if transaction.transaction_date is None:
            transaction.transaction_date = date.today()

        self.db.add(transaction)
        self.db.commit()
        self.db.refresh(transaction)
        return transaction

    def get_transaction(self, doctor_id: int, transaction_id: int) -> Transaction:
        transaction = self.db.query(Transaction).filter(
            Transaction.id == transaction_id,
            Transaction.doctor_id == doctor_id
        ).first()
        if not transaction:
            raise NotFoundError("Transaction not found")
        return transaction

    def delete_transaction(self, doctor_id: int, transaction_id: int) -> None:
        transaction = self.get_transaction(doctor_id, transaction_id)
        self.db.delete(transaction)
        self.db.commit()

    def collect_due(
        self,
        doctor_id: int,
        due_id: int,
        amount: Decimal,
        payment_method: PaymentMethod,
        today: Optional[date] = None,
    ) -> DueCollectionResult:
        """
        Turn a due into a paid income, leaving a smaller due when the
        collection is partial.

        The income is recorded for the amount actually collected, so an
        overpayment is kept as is. A partial collection replaces the original
        due with one for the balance, keeping its patient, visit and date.
        All steps are committed together.
        """
        due = self.get_transaction(doctor_id, due_id)
        if due.payment_method != PaymentMethod.DUE:
            raise ValidationFailedError("Only due transactions can be collected")
        if payment_method == PaymentMethod.DUE:
            raise ValidationFailedError("Collected payments need a real payment method")

        amount = Decimal(amount)
        if amount <= 0:
            raise ValidationFailedError("Collected amount must be greater than zero")

        original = Decimal(due.amount)
        patient_name = due.patient.name if due.patient else "patient"

        income = Transaction(
            doctor_id=doctor_id,
            amount=amount,
            type=TransactionType.INCOME,
            category=due.category,
            payment_method=payment_method,
            description=f"Due collected from {patient_name}",
            patient_id=due.patient_id,
            visit_id=due.visit_id,
            transaction_date=today or date.today(),
        )
        self.db.add(income)

        remaining_due = None
        remaining_amount = Decimal("0")
        if amount < original:
            remaining_amount = original - amount
            remaining_due = Transaction(
                doctor_id=doctor_id,
                amount=remaining_amount,
                type=due.type,
                category=due.category,
                payment_method=PaymentMethod.DUE,
                description=f"Remaining due from {patient_name}",
                patient_id=due.patient_id,
                visit_id=due.visit_id,
                transaction_date=due.transaction_date,
            )

        self.db.delete(due)
        if remaining_due is not None:
            self.db.add(remaining_due)
        self.db.commit()

        self.db.refresh(income)
        if remaining_due is not None:
            self.db.refresh(remaining_due)

        logger.info(
            f"Collected {amount} of due {due_id} for doctor {doctor_id}, "
            f"{remaining_amount} remaining"
        )
        return DueCollectionResult(
            income=income,
            remaining_due=remaining_due,
            collected_amount=amount,
            remaining_amount=remaining_amount,
        )

    def today_stats(self, doctor_id: int, today: Optional[date] = None) -> Dict[str, Decimal]:
        """Income split by how it was paid, plus expenses, for one day."""
        rows = self.db.query(
            Transaction.amount, Transaction.type, Transaction.payment_method
        ).filter(
            Transaction.doctor_id == doctor_id,
            Transaction.transaction_date == (today or date.today())
        ).all()

        stats = {key: Decimal("0") for key in ("income", "expense", "cash", "digital", "dues")}
        for amount, kind, method in rows:
            amount = Decimal(amount)
            if kind == TransactionType.INCOME:
                stats["income"] += amount
                if method == PaymentMethod.CASH:
                    stats["cash"] += amount
                elif method == PaymentMethod.DUE:
                    stats["dues"] += amount
                else:
                    stats["digital"] += amount
            else:
                stats["expense"] += amount
        return stats

    def summary(
        self, doctor_id: int, date_from: Optional[date] = None, date_to: Optional[date] = None
    ) -> dict:
        transactions = self.list_transactions(doctor_id, date_from, date_to)

        total_income = Decimal("0")
        total_expense = Decimal("0")
        by_category: Dict[str, Decimal] = {}
        for t in transactions:
            amount = Decimal(t.amount)
            if t.type == TransactionType.INCOME:
                total_income += amount
            else:
                total_expense += amount
            by_category[t.category] = by_category.get(t.category, Decimal("0")) + amount

        return {
            "total_income": total_income,
            "total_expense": total_expense,
            "by_category": by_category,
        }

    def outstanding_dues(self, doctor_id: int) -> List[Transaction]:
        return self.db.query(Transaction).filter(
            Transaction.doctor_id == doctor_id,
            Transaction.payment_method == PaymentMethod.DUE
        ).order_by(Transaction.transaction_date).all()

    def export_csv(
        self, doctor_id: int, date_from: Optional[date] = None, date_to: Optional[date] = None
    ) -> str:
        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(CSV_COLUMNS)

        for t in self.list_transactions(doctor_id, date_from, date_to):
            writer.writerow([
                t.id,
                t.transaction_date.isoformat(),
                TransactionType(t.type).value,
                t.category,
                PaymentMethod(t.payment_method).value,
                f"{Decimal(t.amount):.2f}",
                t.patient_id or "",
                t.visit_id or "",
                t.description or "",
            ])
        return buffer.getvalue()

    def analytics(self, doctor_id: int, months: int = 6, today: Optional[date] = None) -> dict:
        """Monthly income and expense for the last few months plus activity counts."""
        today = today or date.today()
        first_month = today.replace(day=1)
        for _ in range(months - 1):
            first_month = (first_month - timedelta(days=1)).replace(day=1)

        monthly: Dict[str, Dict[str, Decimal]] = {}
        cursor = first_month
        while cursor <= today:
            monthly[cursor.strftime("%Y-%m")] = {"income": Decimal("0"), "expense": Decimal("0")}
            cursor = month_bounds(cursor)[1] + timedelta(days=1)

        for t in self.list_transactions(doctor_id, first_month, today):
            bucket = monthly[t.transaction_date.strftime("%Y-%m")]
            key = "income" if t.type == TransactionType.INCOME else "expense"
            bucket[key] += Decimal(t.amount)

        patient_count = self.db.query(func.count(Patient.id)).filter(
            Patient.doctor_id == doctor_id
        ).scalar() or 0
        prescription_count = self.db.query(func.count(Prescription.id)).filter(
            Prescription.doctor_id == doctor_id
        ).scalar() or 0
        token_count = self.db.query(func.count(QueueToken.id)).filter(
            QueueToken.doctor_id == doctor_id,
            QueueToken.queue_date >= first_month
        ).scalar() or 0

        return {
            "monthly": [
                {"month": month, **values} for month, values in monthly.items()
            ],
            "total_patients": patient_count,
            "total_prescriptions": prescription_count,
            "tokens_in_period": token_count,
        }

    def _ensure_patient(self, doctor_id: int, patient_id: int) -> None:
        exists = self.db.query(Patient.id).filter(
            Patient.id == patient_id,
            Patient.doctor_id == doctor_id
        ).first()
        if not exists:
            raise NotFoundError("Patient not found")
