import jwt
import pytest

from app.actors import AdminActor, ClientActor, WorkerActor
from app.config import settings
from app.exceptions import AuthenticationError, ConflictError, ValidationError
from app.services import auth_service
from conftest import PASSWORD

AUTH = "/api/v1/auth"
USERS = "/api/v1/users"


class TestTokens:
    def test_actor_kinds(self, db, admin, worker, customer):
        assert auth_service.actor_from_token(db, auth_service.create_access_token(admin.id, "admin")) == AdminActor(
            user_id=admin.id, name="Admin"
        )
        assert isinstance(auth_service.actor_from_token(db, auth_service.create_access_token(worker.id, "worker")), WorkerActor)
        actor = auth_service.actor_from_token(db, auth_service.create_access_token(customer.id, "client"))
        assert actor == ClientActor(client_id=customer.id, name="Villa Owner")

    def test_role_claim_cannot_promote_a_worker(self, db, worker):
        token = auth_service.create_access_token(worker.id, "admin")
        assert isinstance(auth_service.actor_from_token(db, token), WorkerActor)

    def test_rejects_foreign_signature(self, db, admin):
        token = jwt.encode({"sub": admin.id, "role": "admin"}, "some-other-key", algorithm="HS256")
        with pytest.raises(AuthenticationError):
            auth_service.actor_from_token(db, token)

    def test_disabled_user(self, db, worker):
        token = auth_service.create_access_token(worker.id, "worker")
        worker.active = False
        db.commit()
        with pytest.raises(AuthenticationError):
            auth_service.actor_from_token(db, token)


class TestUsers:
    def test_create_and_authenticate(self, db, branch):
        user = auth_service.create_user(db, "Noor", "Noor@GardenCo.com", "pa55word", branch_id=branch.id)
        assert user.email == "noor@gardenco.com"
        assert user.role == "worker"
        assert auth_service.authenticate_user(db, "noor@gardenco.com", "pa55word").id == user.id
        assert auth_service.authenticate_user(db, "noor@gardenco.com", "wrong") is None

    def test_duplicate_email(self, db, worker):
        with pytest.raises(ConflictError):
            auth_service.create_user(db, "Again", "khalid@gardenco.com", "pa55word")

    def test_role_must_be_staff(self, db):
        with pytest.raises(ValidationError):
            auth_service.create_user(db, "C", "c@gardenco.com", "pa55word", role="client")

    def test_cannot_disable_self(self, db, admin):
        with pytest.raises(ConflictError):
            auth_service.set_user_active(db, admin.id, False, admin.id)

    def test_default_admin_seeded_once(self, db):
        auth_service.ensure_default_admin(db)
        auth_service.ensure_default_admin(db)
        users = auth_service.list_users(db)
        assert [u.email for u in users] == [settings.DEFAULT_ADMIN_EMAIL]


class TestApi:
    def test_login(self, client, admin):
        resp = client.post(f"{AUTH}/login", json={"email": "ADMIN@gardenco.com", "password": PASSWORD})
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["role"] == "admin"
        assert data["profile"]["email"] == "admin@gardenco.com"
        assert "password_hash" not in data["profile"]
        assert resp.cookies.get("token") == data["token"]

        me = client.get(f"{AUTH}/me", headers={"Authorization": f"Bearer {data['token']}"})
        assert me.json()["data"]["profile"]["id"] == admin.id

    def test_wrong_password(self, client, admin):
        resp = client.post(f"{AUTH}/login", json={"email": "admin@gardenco.com", "password": "nope"})
        assert resp.status_code == 401
        assert resp.json()["message"] == "Invalid email or password"

    def test_client_login_flags_temporary_password(self, client, customer):
        resp = client.post(f"{AUTH}/client-login", json={"username": "Owner", "password": PASSWORD})
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["role"] == "client"
        assert data["password_temporary"] is True

    def test_client_changes_password(self, client, customer, client_headers):
        resp = client.post(
            f"{AUTH}/change-password",
            json={"current_password": PASSWORD, "password": "n3w-secret"},
            headers=client_headers,
        )
        assert resp.status_code == 200
        resp = client.post(f"{AUTH}/client-login", json={"username": "owner", "password": "n3w-secret"})
        assert resp.json()["data"]["password_temporary"] is False

    def test_user_management_is_admin_only(self, client, admin_headers, worker_headers, branch):
        body = {"name": "Noor", "email": "noor@gardenco.com", "password": "pa55word", "branch_id": branch.id}
        assert client.post(USERS, json=body, headers=worker_headers).status_code == 403

        resp = client.post(USERS, json=body, headers=admin_headers)
        assert resp.status_code == 201
        assert resp.json()["data"]["role"] == "worker"

        workers = client.get(f"{USERS}/workers", headers=admin_headers).json()["data"]
        assert "Noor" in {w["name"] for w in workers}

    def test_invalid_email_rejected(self, client, admin_headers):
        resp = client.post(USERS, json={"name": "X", "email": "not-an-email", "password": "pa55word"}, headers=admin_headers)
        assert resp.status_code == 400
        assert resp.json()["errors"][0]["field"] == "email"

    def test_toggle_active(self, client, admin_headers, worker):
        resp = client.patch(f"{USERS}/{worker.id}/active", headers=admin_headers)
        assert resp.json()["data"] == {"id": worker.id, "active": False}

    def test_logout(self, client):
        resp = client.post(f"{AUTH}/logout")
        assert resp.status_code == 200
        assert resp.json() == {"success": True, "message": "Logged out"}
