import threading
from unittest.mock import MagicMock

import pytest

from src.models.base import SyncStatus
from src.services.sync_engine import SyncEngine, SyncResult
from src.services.sync_session import (
    ALREADY_SYNCING,
    NOT_AUTHENTICATED,
    AuthEvent,
    SyncPhase,
    SyncSessionController,
)
from tests.helpers import USER_ID, make_project


class FakeTimer:
    """Substitui threading.Timer: guarda o callback para o teste disparar"""
    created = []

    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.cancelled = False
        self.daemon = False
        FakeTimer.created.append(self)

    def start(self):
        pass

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if not self.cancelled:
            self.callback()


@pytest.fixture
def sync_engine():
    mock = MagicMock(spec=SyncEngine)
    mock.sync_from_cloud.return_value = SyncResult(success=True, synced_count=3, pulled=True)
    mock.full_sync.return_value = SyncResult(success=True, synced_count=1)
    mock.retry_failed_syncs.return_value = SyncResult(success=True)
    return mock


@pytest.fixture
def controller(sync_engine, repository):
    FakeTimer.created = []
    return SyncSessionController(
        sync_engine, repository,
        success_display=2, error_display=5,
        timer_factory=FakeTimer,
        spawn=lambda target, *args: target(*args),
    )


class TestStartSession:
    def test_empty_cache_pulls_from_server(self, controller, sync_engine):
        result = controller.start_session(USER_ID)

        assert result.synced_count == 3
        sync_engine.sync_from_cloud.assert_called_once_with(USER_ID)
        sync_engine.full_sync.assert_not_called()

    def test_cache_of_same_user_only_refreshes_counters(self, controller, sync_engine, repository, seed):
        seed(
            make_project(id="a"),
            make_project(id="b", sync_status=SyncStatus.ERROR),
            make_project(id="c", is_dirty=False, sync_status=SyncStatus.SYNCED),
        )
        repository.store.save_metadata(user_id=USER_ID)

        result = controller.start_session(USER_ID)

        assert result.success is True
        sync_engine.sync_from_cloud.assert_not_called()
        assert controller.state.pending_changes == 2
        assert controller.state.has_sync_errors is True
        assert controller.state.phase == SyncPhase.IDLE

    def test_cache_of_another_user_pulls(self, controller, sync_engine, repository, seed):
        seed(make_project(id="a", user_id="someone-else"))
        repository.store.save_metadata(user_id="someone-else")

        controller.start_session(USER_ID)

        sync_engine.sync_from_cloud.assert_called_once_with(USER_ID)


class TestPhases:
    def test_success_reverts_to_idle_after_two_seconds(self, controller):
        controller.start_session(USER_ID)
        phases = []
        controller.subscribe(lambda state: phases.append(state.phase))

        controller.manual_sync()

        assert phases[:2] == [SyncPhase.SYNCING, SyncPhase.SUCCESS]
        timer = FakeTimer.created[-1]
        assert timer.delay == 2
        timer.fire()
        assert controller.state.phase == SyncPhase.IDLE

    def test_error_stays_visible_for_five_seconds(self, controller, sync_engine):
        controller.start_session(USER_ID)
        sync_engine.full_sync.return_value = SyncResult(success=False, error="offline")

        result = controller.manual_sync()

        assert result.error == "offline"
        assert controller.state.phase == SyncPhase.ERROR
        assert FakeTimer.created[-1].delay == 5

    def test_new_sync_cancels_pending_revert(self, controller):
        controller.start_session(USER_ID)
        controller.manual_sync()
        first_timer = FakeTimer.created[-1]

        controller.manual_sync()

        assert first_timer.cancelled is True


class TestUserTriggeredSync:
    def test_manual_sync_runs_full_sync(self, controller, sync_engine):
        controller.start_session(USER_ID)

        result = controller.manual_sync()

        assert result.synced_count == 1
        sync_engine.full_sync.assert_called_once_with(USER_ID)

    def test_retry_failed_syncs(self, controller, sync_engine):
        controller.start_session(USER_ID)

        controller.retry_failed_syncs()

        sync_engine.retry_failed_syncs.assert_called_once_with(USER_ID)

    def test_requires_signed_in_user(self, controller, sync_engine):
        result = controller.manual_sync()

        assert result.success is False
        assert result.error == NOT_AUTHENTICATED
        sync_engine.full_sync.assert_not_called()

    def test_concurrent_request_is_rejected(self, controller, sync_engine):
        controller.start_session(USER_ID)
        controller._busy.acquire()
        try:
            result = controller.manual_sync()
        finally:
            controller._busy.release()

        assert result.success is False
        assert result.error == ALREADY_SYNCING
        sync_engine.full_sync.assert_not_called()

    def test_engine_exception_becomes_failed_result(self, controller, sync_engine):
        controller.start_session(USER_ID)
        sync_engine.full_sync.side_effect = OSError("disk full")

        result = controller.manual_sync()

        assert result.success is False
        assert "disk full" in result.error
        assert controller.state.phase == SyncPhase.ERROR
        # O lock foi liberado
        assert controller.manual_sync().success is False
        assert controller._busy.acquire(blocking=False)


class TestEndSession:
    def test_sign_out_clears_local_data(self, controller, repository, seed):
        controller.start_session(USER_ID)
        seed(make_project(id="a"))

        controller.end_session()

        assert repository.get_projects() == []
        assert controller.state.user_id is None
        assert controller.state.phase == SyncPhase.IDLE

    def test_first_load_without_session_keeps_data(self, controller, repository, seed):
        seed(make_project(id="a"))

        controller.end_session()

        assert [p.id for p in repository.get_projects()] == ["a"]


def test_auth_events_drive_the_session(controller, sync_engine, repository, seed):
    controller.handle_auth_event(AuthEvent.SIGNED_IN, USER_ID)
    sync_engine.sync_from_cloud.assert_called_once_with(USER_ID)
    assert controller.state.user_id == USER_ID

    seed(make_project(id="a"))
    controller.handle_auth_event(AuthEvent.SIGNED_OUT)

    assert repository.get_projects() == []
    assert controller.state.user_id is None


def test_unsubscribe(controller):
    calls = []
    unsubscribe = controller.subscribe(calls.append)
    unsubscribe()

    controller.refresh_counters()

    assert calls == []


class TestAuthEventsInBackground:
    @pytest.fixture
    def spawned(self):
        return []

    @pytest.fixture
    def threaded_controller(self, sync_engine, repository, spawned):
        return SyncSessionController(
            sync_engine, repository,
            timer_factory=FakeTimer,
            spawn=lambda target, *args: spawned.append((target, args)),
        )

    def test_sign_in_does_not_wait_for_the_pull(self, threaded_controller, sync_engine, spawned):
        threaded_controller.handle_auth_event(AuthEvent.SIGNED_IN, USER_ID)

        assert threaded_controller.state.user_id == USER_ID
        sync_engine.sync_from_cloud.assert_not_called()

        target, args = spawned[0]
        target(*args)
        sync_engine.sync_from_cloud.assert_called_once_with(USER_ID)

    def test_pull_scheduled_before_sign_out_is_dropped(self, threaded_controller, sync_engine, repository, spawned):
        threaded_controller.handle_auth_event(AuthEvent.SIGNED_IN, USER_ID)
        threaded_controller.handle_auth_event(AuthEvent.SIGNED_OUT)

        target, args = spawned[0]
        result = target(*args)

        assert result.error == NOT_AUTHENTICATED
        sync_engine.sync_from_cloud.assert_not_called()
        assert repository.get_metadata().user_id is None


def test_sign_out_waits_for_running_pull(controller, sync_engine, repository):
    started, release = threading.Event(), threading.Event()

    def slow_pull(user_id):
        started.set()
        release.wait(5)
        repository.replace_all_projects([make_project(id="srv-1")], user_id)
        return SyncResult(success=True, synced_count=1, pulled=True)

    sync_engine.sync_from_cloud.side_effect = slow_pull
    pull = threading.Thread(target=controller.start_session, args=(USER_ID,))
    pull.start()
    assert started.wait(5)

    sign_out = threading.Thread(target=controller.end_session)
    sign_out.start()
    sign_out.join(0.2)
    assert sign_out.is_alive()

    release.set()
    pull.join(5)
    sign_out.join(5)

    assert repository.get_projects() == []
    assert repository.get_metadata().user_id is None
    assert controller.state.user_id is None
