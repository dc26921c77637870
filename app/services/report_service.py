from datetime import datetime

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models.client import Client
from app.models.inventory import InventoryItem, StockStatus
from app.models.inventory_transaction import InventoryTransaction, TransactionType
from app.models.invoice import Invoice, PaymentStatus
from app.models.task import Task, TaskStatus


def inventory_summary(db: Session, branch_id: str | None = None) -> dict:
    q = db.query(InventoryItem).filter(InventoryItem.active == True)  # noqa: E712
    if branch_id:
        q = q.filter(InventoryItem.branch_id == branch_id)
    items = q.all()

    by_status = {s.value: 0 for s in StockStatus}
    for item in items:
        by_status[item.stock_status.value] += 1
    low_stock = [
        i for i in items
        if i.stock_status in (StockStatus.LOW_STOCK, StockStatus.OUT_OF_STOCK)
    ]

    return {
        "total_items": len(items),
        "total_units_in_stock": round(sum(i.quantity_current for i in items), 2),
        "total_inventory_value": round(sum(i.quantity_current * i.cost_price for i in items), 2),
        "items_by_status": by_status,
        "low_stock_count": len(low_stock),
        "low_stock_items": [
            {
                "id": i.id,
                "sku": i.sku,
                "name": i.name,
                "quantity": i.quantity_current,
                "minimum": i.quantity_minimum,
                "unit": i.unit,
            }
            for i in low_stock
        ],
        "by_category": _group_by_category(items),
    }


def _group_by_category(items: list[InventoryItem]) -> list[dict]:
    cats: dict[str, dict] = {}
    for i in items:
        cat = i.category or "other"
        if cat not in cats:
            cats[cat] = {"category": cat, "item_count": 0, "total_units": 0.0, "total_value": 0.0}
        cats[cat]["item_count"] += 1
        cats[cat]["total_units"] += i.quantity_current
        cats[cat]["total_value"] += i.quantity_current * i.cost_price
    for v in cats.values():
        v["total_units"] = round(v["total_units"], 2)
        v["total_value"] = round(v["total_value"], 2)
    return list(cats.values())


def task_summary(
    db: Session,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    branch_id: str | None = None,
) -> dict:
    q = db.query(Task)
    if start_date:
        q = q.filter(Task.scheduled_date >= start_date)
    if end_date:
        q = q.filter(Task.scheduled_date <= end_date)
    if branch_id:
        q = q.filter(Task.branch_id == branch_id)

    tasks = q.all()
    total = len(tasks)
    by_status = {s.value: 0 for s in TaskStatus}
    completed_durations = []
    revenue = 0.0

    for t in tasks:
        status_val = t.status.value
        by_status[status_val] = by_status.get(status_val, 0) + 1
        if t.status == TaskStatus.COMPLETED:
            completed_durations.append(t.actual_duration)
            revenue += t.cost_total

    completed = by_status[TaskStatus.COMPLETED.value]
    return {
        "total_tasks": total,
        "tasks_by_status": by_status,
        "completion_rate": round(completed / total * 100, 2) if total else 0.0,
        "average_duration_hours": (
            round(sum(completed_durations) / len(completed_durations), 2) if completed_durations else 0.0
        ),
        "completed_task_value": round(revenue, 2),
        "date_range": {
            "start": start_date.isoformat() if start_date else None,
            "end": end_date.isoformat() if end_date else None,
        },
    }


def invoice_summary(db: Session) -> dict:
    rows = (
        db.query(
            Invoice.payment_status,
            func.count(Invoice.id).label("count"),
            func.coalesce(func.sum(Invoice.total), 0).label("total"),
            func.coalesce(func.sum(Invoice.paid_amount), 0).label("paid"),
        )
        .group_by(Invoice.payment_status)
        .all()
    )
    by_status = {s.value: {"count": 0, "total": 0.0} for s in PaymentStatus}
    invoiced = collected = 0.0
    for r in rows:
        by_status[r.payment_status.value] = {"count": int(r.count), "total": round(float(r.total), 2)}
        if r.payment_status != PaymentStatus.CANCELLED:
            invoiced += float(r.total)
            collected += float(r.paid)
    return {
        "invoices_by_status": by_status,
        "total_invoiced": round(invoiced, 2),
        "total_collected": round(collected, 2),
        "outstanding": round(invoiced - collected, 2),
    }


def top_clients(db: Session, limit: int = 10) -> list[dict]:
    results = (
        db.query(
            Client.id,
            Client.name,
            func.count(Task.id).label("task_count"),
            func.sum(Task.cost_total).label("total_value"),
        )
        .join(Task, Task.client_id == Client.id)
        .group_by(Client.id, Client.name)
        .order_by(func.sum(Task.cost_total).desc())
        .limit(limit)
        .all()
    )

    return [
        {
            "client_id": r.id,
            "name": r.name,
            "task_count": int(r.task_count),
            "total_value": round(float(r.total_value or 0), 2),
        }
        for r in results
    ]


def inventory_movement(
    db: Session,
    item_id: str | None = None,
    tx_type: TransactionType | None = None,
    limit: int = 50,
) -> list[dict]:
    q = db.query(InventoryTransaction, InventoryItem.sku, InventoryItem.name).join(
        InventoryItem, InventoryItem.id == InventoryTransaction.item_id
    )
    if item_id:
        q = q.filter(InventoryTransaction.item_id == item_id)
    if tx_type:
        q = q.filter(InventoryTransaction.type == tx_type)
    rows = q.order_by(InventoryTransaction.created_at.desc()).limit(limit).all()

    return [
        {
            "id": tx.id,
            "item_id": tx.item_id,
            "sku": sku,
            "name": name,
            "type": tx.type.value,
            "quantity": tx.quantity,
            "unit": tx.unit,
            "previous_quantity": tx.previous_quantity,
            "new_quantity": tx.new_quantity,
            "task_id": tx.task_id,
            "worker_id": tx.worker_id,
            "notes": tx.notes,
            "created_at": tx.created_at.isoformat() if tx.created_at else None,
        }
        for tx, sku, name in rows
    ]
