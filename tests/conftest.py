import os
import tempfile
from unittest.mock import MagicMock

import pytest

# O backend lê a configuração no import: aponta tudo para um diretório temporário
_SERVER_DIR = tempfile.mkdtemp(prefix="lightplan-server-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_SERVER_DIR, 'server.db')}"
os.environ["STORAGE_DIR"] = os.path.join(_SERVER_DIR, "storage")
os.environ["STORAGE_SECRET"] = "test-secret"

from src.data.local_store import LocalStore
from src.data.project_repository import ProjectRepository
from src.data.remote_repository import ObjectStorage, RemoteProjectRepository
from src.services.sync_engine import SyncEngine


@pytest.fixture
def store(tmp_path):
    return LocalStore(db_path=str(tmp_path / "local.db"))


@pytest.fixture
def repository(store):
    return ProjectRepository(store)


@pytest.fixture
def seed(store):
    """Grava registros diretamente no store, com o estado de sync informado"""
    def _seed(*projects):
        store.save_all(list(projects))
        return list(projects)
    return _seed


@pytest.fixture
def remote():
    mock = MagicMock(spec=RemoteProjectRepository)
    mock.select_all_for_user.return_value = []
    return mock


@pytest.fixture
def storage():
    mock = MagicMock(spec=ObjectStorage)
    mock.get_signed_url.return_value = None
    return mock


@pytest.fixture
def engine(repository, remote, storage):
    return SyncEngine(repository, remote, storage)


@pytest.fixture(scope="session")
def api_client():
    """Servidor real (FastAPI + SQLite assíncrono) compartilhado pela sessão de testes"""
    from fastapi.testclient import TestClient
    from backend.main import app

    with TestClient(app) as client:
        yield client
