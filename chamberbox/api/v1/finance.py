from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session
from datetime import date
from typing import List, Optional

from ...core.database import get_db
from ...api.deps import RequestContext, require_permission
from ...models.transaction import PaymentMethod
from ...schemas.finance import (
    TransactionCreate, TransactionResponse, DueCollection, DueCollectionResponse
)
from ...services.feature_gate import Feature
from ...services.finance_service import FinanceService
from ...services.subscription_service import SubscriptionService

router = APIRouter(prefix="/finance", tags=["Finance"])

finance_access = require_permission("can_view_finances")

@router.get("/transactions", response_model=List[TransactionResponse])
async def list_transactions(
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    payment_method: Optional[PaymentMethod] = None,
    context: RequestContext = Depends(finance_access),
    db: Session = Depends(get_db)
):
    """Transactions in a date range; the current month when no range is given."""
    return FinanceService(db).list_transactions(context.doctor_id, date_from, date_to, payment_method)

@router.post("/transactions", response_model=TransactionResponse, status_code=status.HTTP_201_CREATED)
async def add_transaction(
    transaction_data: TransactionCreate,
    context: RequestContext = Depends(finance_access),
    db: Session = Depends(get_db)
):
    return FinanceService(db).add_transaction(context.doctor_id, transaction_data.model_dump())

@router.delete("/transactions/{transaction_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_transaction(
    transaction_id: int,
    context: RequestContext = Depends(finance_access),
    db: Session = Depends(get_db)
):
    FinanceService(db).delete_transaction(context.doctor_id, transaction_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

@router.get("/dues", response_model=List[TransactionResponse])
async def list_dues(
    context: RequestContext = Depends(finance_access),
    db: Session = Depends(get_db)
):
    return FinanceService(db).outstanding_dues(context.doctor_id)

@router.post("/dues/{due_id}/collect", response_model=DueCollectionResponse)
async def collect_due(
    due_id: int,
    collection: DueCollection,
    context: RequestContext = Depends(finance_access),
    db: Session = Depends(get_db)
):
    """Record a payment against a due; a partial payment leaves a smaller due."""
    result = FinanceService(db).collect_due(
        context.doctor_id, due_id, collection.amount, collection.payment_method
    )
    return DueCollectionResponse(
        collected=TransactionResponse.model_validate(result.income),
        remaining_due=(
            TransactionResponse.model_validate(result.remaining_due)
            if result.remaining_due is not None else None
        ),
        remaining_amount=result.remaining_amount,
    )

@router.get("/today")
async def today_stats(
    context: RequestContext = Depends(finance_access),
    db: Session = Depends(get_db)
):
    return FinanceService(db).today_stats(context.doctor_id)

@router.get("/summary")
async def summary(
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    context: RequestContext = Depends(finance_access),
    db: Session = Depends(get_db)
):
    return FinanceService(db).summary(context.doctor_id, date_from, date_to)

@router.get("/export")
async def export_transactions(
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    context: RequestContext = Depends(finance_access),
    db: Session = Depends(get_db)
):
    """CSV of the doctor's transactions; needs a plan with data export."""
    SubscriptionService(db).require_feature(context.doctor, Feature.EXPORT)

    content = FinanceService(db).export_csv(context.doctor_id, date_from, date_to)
    filename = f"transactions_{date.today().isoformat()}.csv"
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )

@router.get("/analytics")
async def analytics(
    months: int = 6,
    context: RequestContext = Depends(finance_access),
    db: Session = Depends(get_db)
):
    SubscriptionService(db).require_feature(context.doctor, Feature.ANALYTICS)
    return FinanceService(db).analytics(context.doctor_id, months=max(1, min(months, 24)))
