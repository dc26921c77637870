from app.models.inventory_transaction import TransactionType
from app.schemas.task import TaskCreate
from app.services import inventory_service, report_service, task_service

API = "/api/v1/reports"


def test_inventory_summary(db, make_item):
    make_item(sku="A", current=0, category="seeds")
    make_item(sku="B", current=5, minimum=10, cost_price=2.0)
    make_item(sku="C", current=50, minimum=10, cost_price=1.0)

    summary = report_service.inventory_summary(db)

    assert summary["total_items"] == 3
    assert summary["items_by_status"]["out-of-stock"] == 1
    assert summary["items_by_status"]["low-stock"] == 1
    assert summary["items_by_status"]["in-stock"] == 1
    assert {i["sku"] for i in summary["low_stock_items"]} == {"A", "B"}
    assert summary["total_inventory_value"] == 60


def test_task_summary(db, admin_actor, worker, worker_actor, task_payload):
    done = task_service.create_task(db, TaskCreate(**task_payload()), admin_actor)
    task_service.create_task(db, TaskCreate(**task_payload(title="Later")), admin_actor)
    task_service.assign_task(db, done.id, worker.id, admin_actor)
    task_service.complete_task(db, done.id, None, None, worker_actor)

    summary = report_service.task_summary(db)

    assert summary["total_tasks"] == 2
    assert summary["tasks_by_status"]["completed"] == 1
    assert summary["tasks_by_status"]["pending"] == 1
    assert summary["completion_rate"] == 50.0
    assert summary["completed_task_value"] == 250


def test_inventory_movement_filters_by_type(db, make_item, worker_actor):
    item = make_item(current=30)
    inventory_service.withdraw(db, item.id, 3, worker_actor)
    inventory_service.restock(db, item.id, 10, worker_actor)

    rows = report_service.inventory_movement(db, tx_type=TransactionType.WITHDRAWAL)

    assert [r["type"] for r in rows] == ["withdrawal"]
    assert rows[0]["sku"] == item.sku


def test_reports_are_admin_only(client, admin_headers, worker_headers):
    assert client.get(f"{API}/inventory", headers=worker_headers).status_code == 403
    resp = client.get(f"{API}/invoices", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["total_invoiced"] == 0
