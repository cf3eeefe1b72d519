"""Push/pull completos contra o servidor real (TestClient + SQLite)."""
import uuid

import pytest

from src.data.remote_repository import ObjectStorage, RemoteProjectRepository
from src.models.base import SyncStatus, is_local_id
from src.models.project import ProjectBase
from src.services.project_service import ProjectService
from src.services.sync_engine import SyncEngine
from src.services.sync_session import SyncSessionController


@pytest.fixture
def user_id():
    return f"user-{uuid.uuid4().hex[:8]}"


@pytest.fixture
def live_engine(repository, api_client):
    return SyncEngine(repository, RemoteProjectRepository(api_client), ObjectStorage(api_client))


@pytest.fixture
def live_service(repository, api_client):
    return ProjectService(repository, RemoteProjectRepository(api_client), ObjectStorage(api_client), background=False)


def test_offline_project_reaches_server(live_engine, live_service, repository, api_client, user_id):
    local = live_service.create_project(user_id, ProjectBase(name="Deck Lights"))
    assert is_local_id(local.id)

    result = live_engine.full_sync(user_id)

    assert result.success is True
    assert result.conflict_count == 0
    server = api_client.get("/projects", params={"user_id": user_id}).json()
    assert [p["name"] for p in server] == ["Deck Lights"]

    projects = repository.get_projects()
    assert [p.id for p in projects] == [server[0]["id"]]
    assert projects[0].sync_status == SyncStatus.SYNCED


def test_edit_of_project_deleted_elsewhere_is_a_conflict(live_engine, live_service, repository, api_client, user_id):
    live_service.create_project(user_id, ProjectBase(name="Porch"))
    live_engine.sync_to_cloud(user_id)
    project = repository.get_projects()[0]

    api_client.delete(f"/projects/{project.id}")
    live_service.update_project(project.id, name="Porch v2")
    result = live_engine.sync_to_cloud(user_id)

    assert result.conflict_count == 1
    stored = repository.get_project(project.id)
    assert stored.name == "Porch v2"
    assert stored.sync_status == SyncStatus.ERROR


def test_sign_in_and_out_on_a_new_device(repository, api_client, user_id):
    path = f"{user_id}/house.jpg"
    api_client.put(f"/storage/{path}", content=b"jpeg")
    api_client.post("/projects", json={"user_id": user_id, "name": "Garage", "image_path": path})

    engine = SyncEngine(repository, RemoteProjectRepository(api_client), ObjectStorage(api_client))
    controller = SyncSessionController(engine, repository)
    result = controller.start_session(user_id)
    assert result.success is True
    assert result.synced_count == 1
    assert repository.get_projects()[0].name == "Garage"

    controller.end_session()
    assert repository.get_projects() == []


def test_pull_after_sign_in_fills_cache(live_engine, repository, api_client, user_id):
    path = f"{user_id}/house.jpg"
    api_client.put(f"/storage/{path}", content=b"jpeg")
    api_client.post("/projects", json={"user_id": user_id, "name": "Garage", "image_path": path})

    live_engine.sync_from_cloud(user_id)

    project = repository.get_projects()[0]
    assert project.name == "Garage"
    assert "/storage/object/" in project.image_url
    assert api_client.get(project.image_url).content == b"jpeg"
