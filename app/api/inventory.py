from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.actors import Actor, AdminActor
from app.api.auth import require_admin, require_staff
from app.database import get_db
from app.models.inventory import StockStatus
from app.schemas.common import ok, page_of
from app.schemas.inventory import (
    AdjustRequest,
    InventoryItemCreate,
    InventoryItemOut,
    InventoryItemUpdate,
    InventoryTransactionOut,
    RestockRequest,
    ReturnRequest,
    WithdrawRequest,
)
from app.services import inventory_service

router = APIRouter(prefix="/inventory", tags=["Inventory"])


@router.get("")
def list_items(
    branch_id: str | None = None,
    category: str | None = None,
    status: StockStatus | None = None,
    search: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    _: Actor = Depends(require_staff),
    db: Session = Depends(get_db),
):
    items, total = inventory_service.list_items(
        db, branch_id=branch_id, category=category, status=status, search=search, page=page, limit=limit
    )
    return ok(page_of([InventoryItemOut.model_validate(i) for i in items], total, page, limit))


@router.post("", status_code=201)
def create_item(data: InventoryItemCreate, admin: AdminActor = Depends(require_admin), db: Session = Depends(get_db)):
    item = inventory_service.create_item(db, data, admin)
    return ok(InventoryItemOut.model_validate(item), message="Inventory item created")


@router.get("/{item_id}")
def get_item(item_id: str, _: Actor = Depends(require_staff), db: Session = Depends(get_db)):
    return ok(InventoryItemOut.model_validate(inventory_service.get_item(db, item_id)))


@router.put("/{item_id}")
def update_item(
    item_id: str,
    data: InventoryItemUpdate,
    admin: AdminActor = Depends(require_admin),
    db: Session = Depends(get_db),
):
    item = inventory_service.update_item(db, item_id, data, admin)
    return ok(InventoryItemOut.model_validate(item), message="Inventory item updated")


@router.delete("/{item_id}")
def delete_item(item_id: str, admin: AdminActor = Depends(require_admin), db: Session = Depends(get_db)):
    inventory_service.delete_item(db, item_id, admin)
    return ok(message="Inventory item deleted")


@router.post("/{item_id}/withdraw")
def withdraw(item_id: str, data: WithdrawRequest, actor: Actor = Depends(require_staff), db: Session = Depends(get_db)):
    item = inventory_service.withdraw(db, item_id, data.quantity, actor, task_id=data.task_id, notes=data.notes)
    return ok(InventoryItemOut.model_validate(item), message="Stock withdrawn")


@router.post("/{item_id}/restock")
def restock(item_id: str, data: RestockRequest, actor: Actor = Depends(require_staff), db: Session = Depends(get_db)):
    item = inventory_service.restock(db, item_id, data.quantity, actor, notes=data.notes)
    return ok(InventoryItemOut.model_validate(item), message="Stock restocked")


@router.post("/{item_id}/return")
def return_stock(item_id: str, data: ReturnRequest, actor: Actor = Depends(require_staff), db: Session = Depends(get_db)):
    item = inventory_service.return_stock(db, item_id, data.quantity, actor, task_id=data.task_id, notes=data.notes)
    return ok(InventoryItemOut.model_validate(item), message="Stock returned")


@router.post("/{item_id}/adjust")
def adjust(item_id: str, data: AdjustRequest, admin: AdminActor = Depends(require_admin), db: Session = Depends(get_db)):
    item = inventory_service.adjust(db, item_id, data.new_quantity, admin, notes=data.notes)
    return ok(InventoryItemOut.model_validate(item), message="Stock adjusted")


@router.get("/{item_id}/transactions")
def history(
    item_id: str,
    limit: int | None = Query(None, ge=1),
    _: Actor = Depends(require_staff),
    db: Session = Depends(get_db),
):
    txs = inventory_service.get_transaction_history(db, item_id, limit=limit)
    return ok([InventoryTransactionOut.model_validate(t) for t in txs])
