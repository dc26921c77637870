"""Stock ledger.

Quantity changes are single conditional UPDATE statements, and each one is
committed together with its InventoryTransaction row. ``quantity_current``
cannot go negative even when withdrawals race.
"""

import logging
from datetime import datetime, timedelta

from sqlalchemy import and_, or_, update
from sqlalchemy.orm import Session

from app.actors import Actor, AdminActor, WorkerActor, staff_user_id
from app.config import settings
from app.database import utcnow
from app.exceptions import (
    AuthorizationError,
    ConflictError,
    InsufficientStock,
    InvalidQuantity,
    NotFoundError,
)
from app.models.inventory import InventoryItem, StockStatus
from app.models.inventory_transaction import InventoryTransaction, TransactionType
from app.models.task import Task
from app.models.user import User
from app.schemas.inventory import InventoryItemCreate, InventoryItemUpdate
from app.services import notification_service

logger = logging.getLogger(__name__)


def _check_quantity(quantity: float) -> None:
    if quantity is None or quantity <= 0:
        raise InvalidQuantity(quantity)


def _acting_user(actor: Actor) -> str:
    user_id = staff_user_id(actor)
    if user_id is None:
        raise AuthorizationError("Clients cannot change stock")
    return user_id


def _require_admin(actor: Actor) -> None:
    if not isinstance(actor, AdminActor):
        raise AuthorizationError("Admin only")


def _reload(db: Session, item_id: str) -> InventoryItem:
    return db.get(InventoryItem, item_id, populate_existing=True)


# ---------------------------------------------------------------------------
# Catalogue
# ---------------------------------------------------------------------------


def get_item(db: Session, item_id: str) -> InventoryItem:
    item = db.get(InventoryItem, item_id)
    if not item:
        raise NotFoundError.of("Inventory item")
    return item


def get_item_by_sku(db: Session, sku: str) -> InventoryItem | None:
    return db.query(InventoryItem).filter(InventoryItem.sku == sku.strip().upper()).first()


def _status_clause(status: StockStatus):
    current = InventoryItem.quantity_current
    if status == StockStatus.OUT_OF_STOCK:
        return current <= 0
    if status == StockStatus.LOW_STOCK:
        return and_(current > 0, current <= InventoryItem.quantity_minimum)
    if status == StockStatus.OVERSTOCKED:
        return and_(current > InventoryItem.quantity_minimum, current >= InventoryItem.quantity_maximum)
    return and_(current > InventoryItem.quantity_minimum, current < InventoryItem.quantity_maximum)


def list_items(
    db: Session,
    branch_id: str | None = None,
    category: str | None = None,
    status: StockStatus | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[InventoryItem], int]:
    q = db.query(InventoryItem)
    if branch_id:
        q = q.filter(InventoryItem.branch_id == branch_id)
    if category:
        q = q.filter(InventoryItem.category == category)
    if status:
        q = q.filter(_status_clause(status))
    if search:
        pattern = f"%{search}%"
        q = q.filter(or_(
            InventoryItem.name.ilike(pattern),
            InventoryItem.sku.ilike(pattern),
            InventoryItem.description.ilike(pattern),
        ))
    total = q.count()
    items = q.order_by(InventoryItem.created_at.desc()).offset((page - 1) * limit).limit(limit).all()
    return items, total


def create_item(db: Session, data: InventoryItemCreate, actor: Actor) -> InventoryItem:
    _require_admin(actor)
    if get_item_by_sku(db, data.sku):
        raise ConflictError(f"Inventory item with SKU {data.sku} already exists")
    item = InventoryItem(**data.model_dump())
    db.add(item)
    db.flush()

    if data.quantity_current > 0:
        db.add(InventoryTransaction(
            item_id=item.id,
            worker_id=actor.user_id,
            type=TransactionType.RESTOCK,
            quantity=data.quantity_current,
            unit=item.unit,
            previous_quantity=0.0,
            new_quantity=data.quantity_current,
            notes="Initial stock on item creation",
            confirmed_by=actor.user_id,
            created_at=utcnow(),
        ))
        item.last_restocked = utcnow()

    db.commit()
    db.refresh(item)
    logger.info("Created inventory item %s (%s)", item.sku, item.id)
    return item


def update_item(db: Session, item_id: str, data: InventoryItemUpdate, actor: Actor) -> InventoryItem:
    _require_admin(actor)
    item = get_item(db, item_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(item, field, value)
    db.commit()
    db.refresh(item)
    return item


def delete_item(db: Session, item_id: str, actor: Actor) -> None:
    _require_admin(actor)
    item = get_item(db, item_id)
    referenced = db.query(InventoryTransaction).filter(InventoryTransaction.item_id == item.id).first()
    if referenced:
        raise ConflictError("Inventory item has transactions and cannot be deleted; deactivate it instead")
    db.delete(item)
    db.commit()


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------


def apply_withdrawal(
    db: Session,
    item_id: str,
    quantity: float,
    worker_id: str,
    confirmed_by: str,
    task_id: str | None = None,
    notes: str = "",
    now: datetime | None = None,
) -> InventoryItem:
    """Decrement stock and stage the transaction row without committing.

    The caller owns the commit, so several withdrawals (a task's materials) can
    share one database transaction.
    """
    _check_quantity(quantity)
    now = now or utcnow()
    result = db.execute(
        update(InventoryItem)
        .where(InventoryItem.id == item_id, InventoryItem.quantity_current >= quantity)
        .values(quantity_current=InventoryItem.quantity_current - quantity, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        item = _reload(db, item_id)
        if not item:
            raise NotFoundError.of("Inventory item")
        raise InsufficientStock(item.name, item.quantity_current, quantity)

    item = _reload(db, item_id)
    db.add(InventoryTransaction(
        item_id=item.id,
        task_id=task_id,
        worker_id=worker_id,
        type=TransactionType.WITHDRAWAL,
        quantity=quantity,
        unit=item.unit,
        previous_quantity=item.quantity_current + quantity,
        new_quantity=item.quantity_current,
        notes=notes,
        confirmed_by=confirmed_by,
        created_at=now,
    ))
    return item


def _apply_increment(
    db: Session,
    item_id: str,
    quantity: float,
    tx_type: TransactionType,
    user_id: str,
    task_id: str | None,
    notes: str,
) -> InventoryItem:
    _check_quantity(quantity)
    now = utcnow()
    values = {"quantity_current": InventoryItem.quantity_current + quantity, "updated_at": now}
    if tx_type == TransactionType.RESTOCK:
        values["last_restocked"] = now
    result = db.execute(
        update(InventoryItem)
        .where(InventoryItem.id == item_id)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise NotFoundError.of("Inventory item")

    item = _reload(db, item_id)
    db.add(InventoryTransaction(
        item_id=item.id,
        task_id=task_id,
        worker_id=user_id,
        type=tx_type,
        quantity=quantity,
        unit=item.unit,
        previous_quantity=item.quantity_current - quantity,
        new_quantity=item.quantity_current,
        notes=notes,
        confirmed_by=user_id,
        created_at=now,
    ))
    return item


def _check_task(db: Session, task_id: str | None, actor: Actor) -> None:
    """A worker may only book stock against a task assigned to them."""
    if not task_id:
        return
    task = db.get(Task, task_id)
    if not task:
        raise NotFoundError.of("Task")
    if isinstance(actor, WorkerActor) and task.worker_id != actor.user_id:
        raise AuthorizationError("Not authorized to access this task")


def withdraw(
    db: Session,
    item_id: str,
    quantity: float,
    actor: Actor,
    task_id: str | None = None,
    notes: str = "",
) -> InventoryItem:
    user_id = _acting_user(actor)
    try:
        _check_task(db, task_id, actor)
        item = apply_withdrawal(db, item_id, quantity, user_id, user_id, task_id=task_id, notes=notes)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("Withdrew %g %s of %s (now %g)", quantity, item.unit, item.sku, item.quantity_current)
    check_low_stock_alert(db, item)
    return item


def restock(db: Session, item_id: str, quantity: float, actor: Actor, notes: str = "") -> InventoryItem:
    user_id = _acting_user(actor)
    try:
        item = _apply_increment(db, item_id, quantity, TransactionType.RESTOCK, user_id, None, notes)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("Restocked %g %s of %s (now %g)", quantity, item.unit, item.sku, item.quantity_current)
    return item


def return_stock(
    db: Session,
    item_id: str,
    quantity: float,
    actor: Actor,
    task_id: str | None = None,
    notes: str = "",
) -> InventoryItem:
    """Put unused material back on the shelf."""
    user_id = _acting_user(actor)
    try:
        _check_task(db, task_id, actor)
        item = _apply_increment(db, item_id, quantity, TransactionType.RETURN, user_id, task_id, notes)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("Returned %g %s of %s (now %g)", quantity, item.unit, item.sku, item.quantity_current)
    return item


def adjust(db: Session, item_id: str, new_quantity: float, actor: Actor, notes: str = "") -> InventoryItem:
    """Set an absolute count after a stocktake.

    Guarded by the previously read quantity; a concurrent ledger write makes
    this fail with ConflictError instead of silently overwriting it.
    """
    _require_admin(actor)
    if new_quantity is None or new_quantity < 0:
        raise InvalidQuantity(new_quantity)
    item = get_item(db, item_id)
    previous = item.quantity_current
    if new_quantity == previous:
        return item

    now = utcnow()
    try:
        result = db.execute(
            update(InventoryItem)
            .where(InventoryItem.id == item_id, InventoryItem.quantity_current == previous)
            .values(quantity_current=new_quantity, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise ConflictError("Stock changed while adjusting; reload and retry")
        db.add(InventoryTransaction(
            item_id=item.id,
            worker_id=actor.user_id,
            type=TransactionType.ADJUSTMENT,
            quantity=abs(new_quantity - previous),
            unit=item.unit,
            previous_quantity=previous,
            new_quantity=new_quantity,
            notes=notes,
            confirmed_by=actor.user_id,
            created_at=now,
        ))
        db.commit()
    except Exception:
        db.rollback()
        raise
    item = _reload(db, item_id)
    logger.info("Adjusted %s from %g to %g", item.sku, previous, new_quantity)
    check_low_stock_alert(db, item)
    return item


def get_transaction_history(db: Session, item_id: str, limit: int | None = None) -> list[InventoryTransaction]:
    get_item(db, item_id)
    q = (
        db.query(InventoryTransaction)
        .filter(InventoryTransaction.item_id == item_id)
        .order_by(InventoryTransaction.created_at.desc())
    )
    if limit:
        q = q.limit(limit)
    return q.all()


# ---------------------------------------------------------------------------
# Low-stock alerting
# ---------------------------------------------------------------------------


def check_low_stock_alert(db: Session, item: InventoryItem) -> bool:
    """Alert one admin when the item sits at or below its minimum.

    At most one alert per cooldown window: the window is claimed with a
    conditional update, so concurrent withdrawals cannot both send. Failures
    here are logged and never undo the stock change that triggered them.
    """
    if not item.low_stock_alert_enabled or item.quantity_current > item.quantity_minimum:
        return False

    try:
        admin = (
            db.query(User)
            .filter(User.role == "admin", User.active == True)  # noqa: E712
            .order_by(User.created_at)
            .first()
        )
        if not admin:
            logger.warning("Low stock on %s but no active admin to alert", item.sku)
            return False

        now = utcnow()
        cutoff = now - timedelta(hours=settings.LOW_STOCK_ALERT_COOLDOWN_HOURS)
        claimed = db.execute(
            update(InventoryItem)
            .where(
                InventoryItem.id == item.id,
                or_(InventoryItem.last_alert_sent_at.is_(None), InventoryItem.last_alert_sent_at < cutoff),
            )
            .values(last_alert_sent_at=now)
            .execution_options(synchronize_session=False)
        )
        db.commit()
        if claimed.rowcount == 0:
            logger.info("Low stock alert for %s suppressed by cooldown", item.sku)
            return False

        db.refresh(item)
        notification_service.notify_low_stock(db, admin, item)
        return True
    except Exception:
        db.rollback()
        logger.exception("Low stock alert for %s failed", item.sku)
        return False
