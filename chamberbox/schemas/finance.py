from pydantic import BaseModel, ConfigDict, Field, field_validator
from datetime import date
from decimal import Decimal
from typing import Optional

from ..models.transaction import TransactionType, PaymentMethod


class TransactionCreate(BaseModel):
    amount: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    type: TransactionType
    category: str = Field("consultation", min_length=1, max_length=50)
    payment_method: PaymentMethod = PaymentMethod.CASH
    description: Optional[str] = None
    patient_id: Optional[int] = None
    visit_id: Optional[int] = None
    transaction_date: Optional[date] = None


class TransactionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    doctor_id: int
    amount: Decimal
    type: TransactionType
    category: str
    payment_method: PaymentMethod
    description: Optional[str] = None
    patient_id: Optional[int] = None
    visit_id: Optional[int] = None
    transaction_date: date


class DueCollection(BaseModel):
    amount: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    payment_method: PaymentMethod = PaymentMethod.CASH

    @field_validator("payment_method")
    @classmethod
    def not_due(cls, v):
        if v == PaymentMethod.DUE:
            raise ValueError("Collected payments need a real payment method")
        return v


class DueCollectionResponse(BaseModel):
    collected: TransactionResponse
    remaining_due: Optional[TransactionResponse] = None
    remaining_amount: Decimal
