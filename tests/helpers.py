from datetime import datetime, timezone

from src.models.base import SyncStatus
from src.models.project import Project, StoredProject

USER_ID = "user-1"


def make_project(**kwargs) -> StoredProject:
    data = {"user_id": USER_ID, "name": "Deck Lights"}
    data.update(kwargs)
    return StoredProject(**data)


def make_remote(project_id: str, **kwargs) -> Project:
    now = datetime(2026, 1, 1, tzinfo=timezone.utc)
    data = {"id": project_id, "user_id": USER_ID, "name": "Deck Lights", "created_at": now, "updated_at": now}
    data.update(kwargs)
    return Project(**data)


def assert_dirty_invariant(projects):
    for project in projects:
        if not project.is_dirty:
            assert project.sync_status == SyncStatus.SYNCED
