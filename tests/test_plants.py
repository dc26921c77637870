import pytest

from app.exceptions import AuthorizationError, ConflictError, ValidationError
from app.models.plant import Plant
from app.schemas.plant import PlantCreate, PlantUpdate
from app.schemas.task import TaskCreate, TaskUpdate
from app.services import plant_service, storage_service, task_service

API = "/api/v1/plants"


@pytest.fixture
def make_plant(db, admin_actor):
    def _make(name_en="Bougainvillea", name_ar="جهنمية", **kwargs):
        return plant_service.create_plant(db, PlantCreate(name_en=name_en, name_ar=name_ar, **kwargs), admin_actor)

    return _make


class TestCatalogue:
    def test_create_and_read_publicly(self, client, admin_headers, worker_headers):
        body = {
            "name_en": "Date palm",
            "name_ar": "نخلة",
            "category": "tree",
            "care_watering": "Weekly in summer",
            "seasonality": ["spring", "summer"],
            "tags": ["shade"],
        }
        assert client.post(API, json=body, headers=worker_headers).status_code == 403

        resp = client.post(API, json=body, headers=admin_headers)
        assert resp.status_code == 201
        data = resp.json()["data"]
        assert data["seasonality"] == ["spring", "summer"]
        assert data["tags"] == ["shade"]
        assert data["times_used"] == 0

        # no token needed to browse the catalogue
        resp = client.get(f"{API}/{data['id']}")
        assert resp.status_code == 200
        assert resp.json()["data"]["care_watering"] == "Weekly in summer"

    def test_localized_name_falls_back_to_english(self, client, make_plant):
        plant = make_plant(description_en="Flowering climber")

        data = client.get(f"{API}/{plant.id}", params={"lang": "ar"}).json()["data"]
        assert data["name"] == "جهنمية"

        data = client.get(f"{API}/{plant.id}", params={"lang": "bn"}).json()["data"]
        assert data["name"] == "Bougainvillea"
        assert data["description"] == "Flowering climber"

        assert client.get(f"{API}/{plant.id}", params={"lang": "fr"}).status_code == 400

    def test_rejects_unknown_category(self, client, admin_headers):
        resp = client.post(API, json={"name_en": "X", "name_ar": "س", "category": "cactus"}, headers=admin_headers)
        assert resp.status_code == 400
        assert resp.json()["errors"][0]["field"] == "category"

    def test_filters_and_categories(self, client, make_plant):
        make_plant(category="flower")
        make_plant(name_en="Olive", name_ar="زيتون", category="tree")
        make_plant(name_en="Old fern", name_ar="سرخس", category="other", active=False)

        body = client.get(API, params={"search": "زيتون"}).json()["data"]
        assert [p["name_en"] for p in body["items"]] == ["Olive"]

        body = client.get(API, params={"active": True}).json()["data"]
        assert body["total"] == 2

        assert client.get(f"{API}/categories").json()["data"] == ["flower", "other", "tree"]

    def test_update(self, db, make_plant, admin_actor, worker_actor):
        plant = make_plant()
        updated = plant_service.update_plant(db, plant.id, PlantUpdate(price=12.5, tags=["climber"]), admin_actor)
        assert updated.price == 12.5
        assert updated.tags == '["climber"]'
        with pytest.raises(AuthorizationError):
            plant_service.update_plant(db, plant.id, PlantUpdate(price=1), worker_actor)

    def test_unknown_plant(self, client):
        resp = client.get(f"{API}/missing")
        assert resp.status_code == 404
        assert resp.json()["message"] == "Plant not found"


class TestImage:
    def test_replace_drops_previous_file(self, client, make_plant, admin_headers, png):
        plant = make_plant()
        url = f"{API}/{plant.id}/image"

        first = client.put(url, files={"image": ("a.png", png(), "image/png")}, headers=admin_headers).json()["data"]
        assert first["image_url"].startswith("/uploads/plants/")
        first_id = first["image_url"].removeprefix("/uploads/")
        assert storage_service.path_for(first_id).exists()

        second = client.put(url, files={"image": ("b.png", png("red"), "image/png")}, headers=admin_headers).json()["data"]
        assert second["image_url"] != first["image_url"]
        assert not storage_service.path_for(first_id).exists()

        resp = client.delete(url, headers=admin_headers)
        assert resp.json()["data"]["image_url"] == ""

    def test_not_an_image(self, client, make_plant, admin_headers):
        plant = make_plant()
        resp = client.put(
            f"{API}/{plant.id}/image", files={"image": ("a.png", b"not a picture", "image/png")}, headers=admin_headers
        )
        assert resp.status_code == 400


class TestTaskPlants:
    def test_task_records_plants_and_usage(self, client, db, make_plant, admin_actor, task_payload, admin_headers):
        plant = make_plant()

        task = task_service.create_task(
            db, TaskCreate(**task_payload(plants=[{"plant_id": plant.id, "quantity": 4, "notes": "by the gate"}])),
            admin_actor,
        )

        data = client.get(f"/api/v1/tasks/{task.id}", headers=admin_headers).json()["data"]
        assert data["plants"] == [{"id": task.plants[0].id, "plant_id": plant.id, "quantity": 4, "notes": "by the gate"}]
        db.expire_all()
        stored = db.get(Plant, plant.id)
        assert stored.times_used == 1
        assert stored.last_used_at is not None

    def test_update_counts_only_new_plants(self, db, make_plant, admin_actor, task_payload):
        rose = make_plant(name_en="Rose", name_ar="ورد")
        olive = make_plant(name_en="Olive", name_ar="زيتون")
        task = task_service.create_task(db, TaskCreate(**task_payload(plants=[{"plant_id": rose.id}])), admin_actor)

        task_service.update_task(
            db, task.id, TaskUpdate(plants=[{"plant_id": rose.id}, {"plant_id": olive.id}]), admin_actor
        )

        db.expire_all()
        assert db.get(Plant, rose.id).times_used == 1
        assert db.get(Plant, olive.id).times_used == 1
        assert len(task_service.get_task(db, task.id).plants) == 2

    def test_inactive_plant_rejected(self, db, make_plant, admin_actor, task_payload):
        plant = make_plant(active=False)
        with pytest.raises(ValidationError):
            task_service.create_task(db, TaskCreate(**task_payload(plants=[{"plant_id": plant.id}])), admin_actor)

    def test_delete_refused_while_used(self, db, make_plant, admin_actor, task_payload):
        used = make_plant()
        unused = make_plant(name_en="Olive", name_ar="زيتون")
        task_service.create_task(db, TaskCreate(**task_payload(plants=[{"plant_id": used.id}])), admin_actor)

        with pytest.raises(ConflictError):
            plant_service.delete_plant(db, used.id, admin_actor)
        plant_service.delete_plant(db, unused.id, admin_actor)
        assert db.get(Plant, unused.id) is None
