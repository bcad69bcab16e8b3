"""
Tests for the HTTP layer.

Covers:
- status mapping for every repository error kind (scripted fake repository)
- end-to-end CRUD against the in-memory repository
- health endpoint, correlation ids and startup seeding
"""

from datetime import date, datetime, timezone
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

import src.api.main as main_module
from src.api.main import create_app
from src.core.settings import AppSettings
from src.db.seed import DEFAULT_USER_ID
from src.repositories.base import UserRepository
from src.repositories.errors import (
    AlreadyExistsError,
    DoesNotExistError,
    InvalidIdError,
    LockError,
    StorageError,
)
from src.repositories.memory import InMemoryUserRepository
from src.schemas.user import CustomData, User


def _settings(**overrides):
    return AppSettings(_env_file=None, **overrides)


def _payload(user_id=None, name="Rob"):
    return {
        "id": str(user_id or uuid4()),
        "name": name,
        "birth_date": "1977-03-10",
        "custom_data": {"random": 1},
    }


@pytest.fixture
def fake_repo():
    """Scripted repository implementing the contract."""
    repo = AsyncMock(spec=UserRepository)
    repo.backend_name = "fake"
    return repo


@pytest.fixture
def fake_client(fake_repo):
    app = create_app(repository=fake_repo, settings=_settings())
    with TestClient(app) as client:
        yield client


@pytest.fixture
def client():
    app = create_app(repository=InMemoryUserRepository(), settings=_settings())
    with TestClient(app) as test_client:
        yield test_client


def _stored(user_id, name="Mi nombre"):
    return User(
        id=user_id,
        name=name,
        birth_date=date(1977, 3, 10),
        custom_data=CustomData(random=1),
        created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


class TestWithFakeRepository:
    """Each contract outcome maps to one HTTP status."""

    def test_get_works(self, fake_client, fake_repo):
        user_id = uuid4()
        fake_repo.get.return_value = _stored(user_id)

        response = fake_client.get(f"/v1/user/{user_id}")

        assert response.status_code == 200
        body = response.json()
        assert body["id"] == str(user_id)
        assert body["name"] == "Mi nombre"
        fake_repo.get.assert_awaited_once_with(user_id)

    def test_get_invalid_id_is_404(self, fake_client, fake_repo):
        user_id = uuid4()
        fake_repo.get.side_effect = InvalidIdError(user_id)

        response = fake_client.get(f"/v1/user/{user_id}")

        assert response.status_code == 404
        body = response.json()
        assert body["error"]["type"] == "invalid_id"
        assert body["error"]["details"]["user_id"] == str(user_id)

    def test_create_works(self, fake_client, fake_repo):
        user_id = uuid4()
        fake_repo.create.return_value = _stored(user_id)

        response = fake_client.post("/v1/user", json=_payload(user_id, name="Mi nombre"))

        assert response.status_code == 201
        assert response.json()["id"] == str(user_id)
        sent = fake_repo.create.await_args.args[0]
        assert isinstance(sent, User)
        assert sent.custom_data.random == 1

    @pytest.mark.parametrize(
        "error",
        [
            AlreadyExistsError(uuid4()),
            StorageError("create", "OperationalError"),
            LockError("acquire write lock", "timed out after 5.0s"),
        ],
    )
    def test_create_failures_are_500(self, fake_client, fake_repo, error):
        fake_repo.create.side_effect = error

        response = fake_client.post("/v1/user", json=_payload())

        assert response.status_code == 500
        assert response.json()["error"]["type"] == error.error_type

    def test_update_works(self, fake_client, fake_repo):
        user_id = uuid4()
        fake_repo.update.return_value = _stored(user_id, name="Robert")

        response = fake_client.put("/v1/user", json=_payload(user_id, name="Robert"))

        assert response.status_code == 200
        assert response.json()["name"] == "Robert"

    def test_update_missing_is_404(self, fake_client, fake_repo):
        fake_repo.update.side_effect = DoesNotExistError(uuid4())

        response = fake_client.put("/v1/user", json=_payload())

        assert response.status_code == 404
        assert response.json()["error"]["type"] == "does_not_exist"

    def test_update_storage_fault_is_500(self, fake_client, fake_repo):
        fake_repo.update.side_effect = StorageError("update", "OperationalError")

        response = fake_client.put("/v1/user", json=_payload())

        assert response.status_code == 500

    def test_delete_works(self, fake_client, fake_repo):
        user_id = uuid4()
        fake_repo.delete.return_value = user_id

        response = fake_client.delete(f"/v1/user/{user_id}")

        assert response.status_code == 200
        assert response.text == str(user_id)

    def test_delete_storage_fault_is_500(self, fake_client, fake_repo):
        fake_repo.delete.side_effect = StorageError("delete", "OperationalError")

        response = fake_client.delete(f"/v1/user/{uuid4()}")

        assert response.status_code == 500
        assert response.json()["error"]["type"] == "storage_error"


class TestRequestValidation:
    """Malformed requests never reach the repository."""

    def test_bad_path_id_is_400(self, fake_client, fake_repo):
        response = fake_client.get("/v1/user/not-a-uuid")

        assert response.status_code == 400
        assert response.json()["error"]["type"] == "validation_error"
        fake_repo.get.assert_not_awaited()

    @pytest.mark.parametrize(
        "change",
        [
            {"name": ""},
            {"name": "   "},
            {"birth_date": "1977-03-10T10:00:00"},
            {"custom_data": {}},
            {"custom_data": {"random": -1}},
            {"id": "nope"},
        ],
    )
    def test_bad_body_is_422(self, fake_client, fake_repo, change):
        payload = {**_payload(), **change}

        response = fake_client.post("/v1/user", json=payload)

        assert response.status_code == 422
        fake_repo.create.assert_not_awaited()


class TestEndToEnd:
    """CRUD through the app against the in-memory repository."""

    def test_user_lifecycle(self, client):
        user_id = uuid4()

        created = client.post("/v1/user", json=_payload(user_id))
        assert created.status_code == 201
        created_body = created.json()
        assert created_body["created_at"] is not None
        assert created_body["updated_at"] is None

        fetched = client.get(f"/v1/user/{user_id}")
        assert fetched.status_code == 200
        assert fetched.json() == created_body

        updated = client.put("/v1/user", json=_payload(user_id, name="Robert"))
        assert updated.status_code == 200
        updated_body = updated.json()
        assert updated_body["name"] == "Robert"
        assert updated_body["created_at"] == created_body["created_at"]
        assert updated_body["updated_at"] is not None

        deleted = client.delete(f"/v1/user/{user_id}")
        assert deleted.status_code == 200
        assert deleted.text == str(user_id)

        assert client.get(f"/v1/user/{user_id}").status_code == 404

    def test_duplicate_post_is_500(self, client):
        payload = _payload()
        assert client.post("/v1/user", json=payload).status_code == 201

        response = client.post("/v1/user", json={**payload, "name": "Other"})

        assert response.status_code == 500
        assert client.get(f"/v1/user/{payload['id']}").json()["name"] == "Rob"

    def test_custom_data_round_trips_verbatim(self, client):
        payload = _payload()
        payload["custom_data"] = {"random": 5, "nested": {"a": [1, 2]}}

        client.post("/v1/user", json=payload)

        assert client.get(f"/v1/user/{payload['id']}").json()["custom_data"] == payload["custom_data"]


class TestAmbient:
    """Health, correlation ids and startup behavior."""

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["message"] == "Healthy"
        assert response.headers["thread-id"] == str(client.app.state.worker_id)

    def test_correlation_id_echoed(self, client):
        response = client.get("/health", headers={"X-Correlation-ID": "abc-123"})
        assert response.headers["X-Correlation-ID"] == "abc-123"

    def test_error_envelope_carries_correlation_id(self, client):
        response = client.get(f"/v1/user/{uuid4()}", headers={"X-Request-ID": "req-9"})

        body = response.json()
        assert body["status"] == 404
        assert body["correlation_id"] == "req-9"
        assert body["method"] == "GET"

    def test_auto_seed_builds_memory_repository(self):
        app = create_app(settings=_settings(AUTO_SEED=True, REPOSITORY_BACKEND="memory"))
        with TestClient(app) as client:
            response = client.get(f"/v1/user/{DEFAULT_USER_ID}")
            assert response.status_code == 200
            assert response.json()["name"] == "Rob"
            assert isinstance(app.state.repository, InMemoryUserRepository)

    def test_sql_backend_creates_schema(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
        app = create_app(settings=_settings(REPOSITORY_BACKEND="sql", AUTO_SEED=True))
        with TestClient(app) as client:
            assert client.get(f"/v1/user/{DEFAULT_USER_ID}").status_code == 200
            payload = _payload()
            assert client.post("/v1/user", json=payload).status_code == 201
            assert client.post("/v1/user", json=payload).status_code == 500

    def test_startup_log_names_environment(self):
        app = create_app(
            repository=InMemoryUserRepository(), settings=_settings(ENVIRONMENT="staging")
        )
        with patch.object(main_module.logger, "info") as info:
            with TestClient(app):
                pass

        assert any("staging" in call.args for call in info.call_args_list)
