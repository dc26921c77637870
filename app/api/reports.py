from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.auth import require_admin
from app.database import get_db
from app.models.inventory_transaction import TransactionType
from app.schemas.common import ok
from app.services import report_service

router = APIRouter(prefix="/reports", tags=["Reports"], dependencies=[Depends(require_admin)])


@router.get("/inventory")
def inventory_report(branch_id: str | None = None, db: Session = Depends(get_db)):
    return ok(report_service.inventory_summary(db, branch_id=branch_id))


@router.get("/tasks")
def tasks_report(
    start_date: datetime | None = Query(None),
    end_date: datetime | None = Query(None),
    branch_id: str | None = None,
    db: Session = Depends(get_db),
):
    return ok(report_service.task_summary(db, start_date=start_date, end_date=end_date, branch_id=branch_id))


@router.get("/invoices")
def invoices_report(db: Session = Depends(get_db)):
    return ok(report_service.invoice_summary(db))


@router.get("/top-clients")
def top_clients_report(limit: int = 10, db: Session = Depends(get_db)):
    return ok(report_service.top_clients(db, limit=limit))


@router.get("/inventory-movement")
def inventory_movement_report(
    item_id: str | None = None,
    type: TransactionType | None = None,
    limit: int = 50,
    db: Session = Depends(get_db),
):
    return ok(report_service.inventory_movement(db, item_id=item_id, tx_type=type, limit=limit))
