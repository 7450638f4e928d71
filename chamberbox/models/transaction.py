from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Date, Text, Numeric, Enum as SQLEnum
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum

from ..core.database import Base

class TransactionType(str, enum.Enum):
    INCOME = "income"
    EXPENSE = "expense"

class PaymentMethod(str, enum.Enum):
    CASH = "cash"
    BKASH = "bkash"
    NAGAD = "nagad"
    CARD = "card"
    DUE = "due"

class Transaction(Base):
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, index=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=True, index=True)
    # Visit records live outside this service; kept as a plain reference
    visit_id = Column(Integer, nullable=True)

    amount = Column(Numeric(10, 2), nullable=False)
    type = Column(SQLEnum(TransactionType), nullable=False)
    category = Column(String(50), nullable=False, default="consultation")
    payment_method = Column(SQLEnum(PaymentMethod), nullable=False, default=PaymentMethod.CASH)
    description = Column(Text, nullable=True)
    transaction_date = Column(Date, nullable=False, index=True)

    created_at = Column(DateTime, server_default=func.now())

    patient = relationship("Patient")

    @property
    def is_due(self) -> bool:
        return self.payment_method == PaymentMethod.DUE

    def __repr__(self):
        return f"<Transaction(id={self.id}, amount={self.amount}, type='{self.type}', method='{self.payment_method}')>"
