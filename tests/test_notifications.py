import httpx
import pytest

from app.exceptions import DependencyError
from app.models.notification import Notification, NotificationType
from app.schemas.task import TaskCreate
from app.services import email_service, notification_service, task_service, whatsapp_service
from app.services.notification_service import NotificationEvent, Recipient

API = "/api/v1/notifications"


@pytest.fixture
def inbox(db, worker, other_worker, customer):
    def _send(recipient, title):
        notification_service.dispatch(db, NotificationEvent(
            type=NotificationType.ASSIGNMENT,
            recipient=recipient,
            title=title,
            message=f"{title} message",
        ))

    _send(Recipient.from_user(worker), "First")
    _send(Recipient.from_user(worker), "Second")
    _send(Recipient.from_user(other_worker), "Not yours")
    _send(Recipient.from_client(customer), "For the client")


def test_dispatch_survives_failing_channels(db, worker, monkeypatch):
    def down(*args, **kwargs):
        raise DependencyError("gateway down")

    monkeypatch.setattr(email_service, "send_email", down)
    monkeypatch.setattr(whatsapp_service, "send_whatsapp", down)

    result = notification_service.dispatch(db, NotificationEvent(
        type=NotificationType.ASSIGNMENT,
        recipient=Recipient.from_user(worker),
        title="Hello",
        message="Hi",
    ))

    assert (result.in_app, result.email, result.whatsapp) == (True, False, False)
    assert db.query(Notification).count() == 1


def test_unexpected_channel_errors_do_not_escape(db, admin_actor, worker, task_payload, monkeypatch):
    def bad_number(*args, **kwargs):
        raise httpx.InvalidURL("Invalid non-printable ASCII character in URL")

    def smtp_bug(*args, **kwargs):
        raise TypeError("unexpected attachment")

    monkeypatch.setattr(whatsapp_service, "send_whatsapp", bad_number)
    monkeypatch.setattr(email_service, "send_email", smtp_bug)
    task = task_service.create_task(db, TaskCreate(**task_payload()), admin_actor)

    assigned = task_service.assign_task(db, task.id, worker.id, admin_actor)

    assert assigned.worker_id == worker.id
    note = db.query(Notification).filter(Notification.recipient_id == worker.id).one()
    assert (note.email_sent, note.whatsapp_sent) == (False, False)


def test_delivery_flags_recorded(db, worker, monkeypatch):
    monkeypatch.setattr(email_service, "send_email", lambda *a, **kw: True)
    monkeypatch.setattr(whatsapp_service, "send_whatsapp", lambda *a, **kw: False)

    notification_service.dispatch(db, NotificationEvent(
        type=NotificationType.ASSIGNMENT,
        recipient=Recipient.from_user(worker),
        title="Hello",
        message="Hi",
    ))

    note = db.query(Notification).one()
    assert note.email_sent is True
    assert note.whatsapp_sent is False


def test_credentials_skip_the_inbox(db, customer):
    result = notification_service.notify_client_credentials(db, customer, "owner", "s3cret")
    assert result.in_app is False
    assert db.query(Notification).count() == 0


def test_inbox_is_scoped_to_recipient(client, inbox, worker_headers, client_headers):
    body = client.get(API, headers=worker_headers).json()["data"]
    assert body["total"] == 2
    assert body["unread_count"] == 2
    assert {n["title"] for n in body["items"]} == {"First", "Second"}

    body = client.get(API, headers=client_headers).json()["data"]
    assert [n["title"] for n in body["items"]] == ["For the client"]


def test_mark_read_and_read_all(client, inbox, worker_headers):
    items = client.get(API, headers=worker_headers).json()["data"]["items"]

    resp = client.patch(f"{API}/{items[0]['id']}/read", headers=worker_headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["read"] is True

    body = client.get(API, params={"unread_only": True}, headers=worker_headers).json()["data"]
    assert body["total"] == 1
    assert body["unread_count"] == 1

    resp = client.patch(f"{API}/read-all", headers=worker_headers)
    assert resp.json()["data"]["updated"] == 1
    assert client.get(API, headers=worker_headers).json()["data"]["unread_count"] == 0


def test_cannot_touch_someone_elses_notification(client, db, inbox, worker_headers, other_worker):
    theirs = db.query(Notification).filter(Notification.recipient_id == other_worker.id).one()

    assert client.patch(f"{API}/{theirs.id}/read", headers=worker_headers).status_code == 404
    assert client.delete(f"{API}/{theirs.id}", headers=worker_headers).status_code == 404


def test_delete(client, inbox, worker_headers):
    items = client.get(API, headers=worker_headers).json()["data"]["items"]
    resp = client.delete(f"{API}/{items[0]['id']}", headers=worker_headers)
    assert resp.status_code == 200
    assert client.get(API, headers=worker_headers).json()["data"]["total"] == 1
