import logging

import pytest

from src.data.remote_repository import RemoteError
from src.models.base import SyncStatus, is_local_id
from src.models.project import ProjectBase
from src.services.project_service import ProjectService
from tests.helpers import USER_ID, make_project


@pytest.fixture
def service(repository, remote, storage):
    return ProjectService(repository, remote, storage, background=False)


def test_create_uses_local_placeholder(service, repository, remote):
    project = service.create_project(USER_ID, ProjectBase(name="Deck Lights", address="1 Main St"))

    assert is_local_id(project.id)
    stored = repository.get_project(project.id)
    assert stored.address == "1 Main St"
    assert stored.sync_status == SyncStatus.PENDING
    remote.insert.assert_not_called()


def test_update_marks_dirty(service, repository, seed):
    seed(make_project(id="srv-1", is_dirty=False, sync_status=SyncStatus.SYNCED))

    service.update_project("srv-1", name="Roofline")

    project = repository.get_project("srv-1")
    assert project.name == "Roofline"
    assert project.is_dirty is True


def test_update_rejects_sync_fields(service, seed):
    seed(make_project(id="srv-1"))

    with pytest.raises(ValueError):
        service.update_project("srv-1", sync_status=SyncStatus.SYNCED)


def test_update_unknown_project(service):
    with pytest.raises(KeyError):
        service.update_project("missing", name="X")


def test_delete_local_only_project_skips_server(service, repository, remote, seed):
    seed(make_project(id="local_abc"))

    assert service.delete_project("local_abc") is True
    assert repository.get_projects() == []
    remote.delete.assert_not_called()


def test_delete_synced_project_hits_server_after_local_delete(service, repository, remote, seed):
    seed(make_project(id="srv-1"))

    service.delete_project("srv-1")

    assert repository.get_project("srv-1") is None
    remote.delete.assert_called_once_with("srv-1")


def test_remote_delete_failure_is_only_logged(service, repository, remote, seed, caplog):
    seed(make_project(id="srv-1"))
    remote.delete.side_effect = RemoteError("offline", code="network")

    with caplog.at_level(logging.ERROR, logger="ProjectService"):
        assert service.delete_project("srv-1") is True

    assert repository.get_projects() == []
    assert "srv-1" in caplog.text


def test_attach_image(service, repository, storage, seed, tmp_path):
    image = tmp_path / "house.png"
    image.write_bytes(b"png-bytes")
    seed(make_project(id="srv-1", is_dirty=False, sync_status=SyncStatus.SYNCED))
    storage.upload.side_effect = lambda path, content, content_type: path
    storage.get_signed_url.return_value = "https://signed"

    project = service.attach_image("srv-1", USER_ID, str(image))

    path, content, content_type = storage.upload.call_args.args
    assert path.startswith(f"{USER_ID}/") and path.endswith(".png")
    assert content == b"png-bytes"
    assert content_type == "image/png"
    assert project.image_path == path
    assert project.image_url == "https://signed"
    assert repository.get_project("srv-1").is_dirty is True


def test_attach_image_offline(service, repository, storage, seed, tmp_path):
    image = tmp_path / "house.jpg"
    image.write_bytes(b"jpg")
    seed(make_project(id="srv-1"))
    storage.upload.side_effect = RemoteError("offline", code="network")

    assert service.attach_image("srv-1", USER_ID, str(image)) is None
    assert repository.get_project("srv-1").image_path is None
