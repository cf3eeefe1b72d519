import logging
import threading
from enum import Enum
from typing import Callable, List, Optional
from datetime import datetime
from sqlmodel import SQLModel

from src import config
from src.data.project_repository import ProjectRepository
from src.models.base import SyncStatus
from src.services.sync_engine import SyncEngine, SyncResult

logger = logging.getLogger("SyncSession")

ALREADY_SYNCING = "Sincronização já em andamento"
NOT_AUTHENTICATED = "Usuário não autenticado"


class SyncPhase(str, Enum):
    IDLE = "idle"
    SYNCING = "syncing"
    SUCCESS = "success"
    ERROR = "error"


class AuthEvent(str, Enum):
    SIGNED_IN = "signed-in"
    SIGNED_OUT = "signed-out"


class SyncState(SQLModel):
    """Fotografia do estado exibido pela UI"""
    phase: SyncPhase = SyncPhase.IDLE
    pending_changes: int = 0
    has_sync_errors: bool = False
    last_sync_time: Optional[datetime] = None
    user_id: Optional[str] = None


class SyncSessionController:
    """
    Estado de sincronização da sessão do usuário logado.

    O sync só acontece em dois momentos: no login (uma vez) e quando o usuário pede
    (manual_sync / retry_failed_syncs). Não há timer, polling nem sync em background.
    Apenas uma reconciliação roda por vez; pedidos concorrentes são recusados.
    """

    def __init__(
        self,
        engine: SyncEngine,
        repository: ProjectRepository,
        success_display: float = config.SUCCESS_DISPLAY_SECONDS,
        error_display: float = config.ERROR_DISPLAY_SECONDS,
        timer_factory: Callable = threading.Timer,
        spawn: Optional[Callable] = None,
    ):
        self.engine = engine
        self.repository = repository
        self.success_display = success_display
        self.error_display = error_display
        self.timer_factory = timer_factory
        self.spawn = spawn or run_in_thread

        self.state = SyncState()
        self._listeners: List[Callable[[SyncState], None]] = []
        self._busy = threading.Lock()
        self._revert_timer = None
        # Distingue "primeira carga sem sessão" de "logout de verdade"
        self._had_session = False

    # --- OBSERVADORES (UI) ---

    def subscribe(self, listener: Callable[[SyncState], None]) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _notify(self):
        snapshot = self.state.model_copy()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Listener de sync falhou")

    def _set_phase(self, phase: SyncPhase):
        self._cancel_revert()
        self.state.phase = phase

        if phase in (SyncPhase.SUCCESS, SyncPhase.ERROR):
            delay = self.success_display if phase == SyncPhase.SUCCESS else self.error_display
            self._revert_timer = self.timer_factory(delay, self._revert_to_idle)
            self._revert_timer.daemon = True
            self._revert_timer.start()

        self._notify()

    def _cancel_revert(self):
        if self._revert_timer is not None:
            self._revert_timer.cancel()
            self._revert_timer = None

    def _revert_to_idle(self):
        self._revert_timer = None
        if self.state.phase in (SyncPhase.SUCCESS, SyncPhase.ERROR):
            self.state.phase = SyncPhase.IDLE
            self._notify()

    # --- CONTADORES ---

    def refresh_counters(self):
        """Relê pendentes/erros/último sync do cache local (sem rede)"""
        try:
            projects = self.repository.get_projects()
            metadata = self.repository.get_metadata()
        except Exception:
            logger.exception("Erro ao atualizar contadores de sync")
            return

        self.state.pending_changes = sum(1 for p in projects if p.is_dirty)
        self.state.has_sync_errors = any(p.sync_status == SyncStatus.ERROR for p in projects)
        self.state.last_sync_time = metadata.last_full_sync
        self._notify()

    # --- SESSÃO ---

    def handle_auth_event(self, event: AuthEvent, user_id: Optional[str] = None):
        if event == AuthEvent.SIGNED_IN and user_id:
            # O pull inicial vai para uma thread: o login não espera a rede
            self._open_session(user_id)
            self.spawn(self._initial_pull, user_id)
        elif event == AuthEvent.SIGNED_OUT:
            self.end_session()

    def start_session(self, user_id: str) -> SyncResult:
        """
        Login: se não há dados locais ou eles são de outro usuário, faz um pull completo.
        Caso contrário só atualiza os contadores, sem tocar a rede.
        """
        self._open_session(user_id)
        return self._initial_pull(user_id)

    def _open_session(self, user_id: str):
        self.state.user_id = user_id
        self._had_session = True
        self.refresh_counters()

    def _initial_pull(self, user_id: str) -> SyncResult:
        try:
            has_data = bool(self.repository.get_projects())
            same_user = self.repository.get_metadata().user_id == user_id
        except Exception as e:
            logger.exception("Erro ao inspecionar o cache local no login")
            return SyncResult(success=False, error=str(e))

        if has_data and same_user:
            return SyncResult(success=True)

        logger.info(f"Login de {user_id}: carregando projetos do servidor")
        return self._run(self.engine.sync_from_cloud, expected_user=user_id)

    def end_session(self):
        """
        Logout: apaga o cache só se havia alguém logado antes.
        Espera o sync em andamento terminar, senão ele regravaria os dados apagados.
        """
        with self._busy:
            self._cancel_revert()
            if self._had_session:
                try:
                    self.repository.clear_user_data()
                except Exception:
                    logger.exception("Erro ao limpar dados do usuário")

            self._had_session = False
            self.state = SyncState()
        self._notify()

    # --- ENTRADAS DO USUÁRIO ---

    def manual_sync(self) -> SyncResult:
        return self._run(self.engine.full_sync)

    def retry_failed_syncs(self) -> SyncResult:
        return self._run(self.engine.retry_failed_syncs)

    def _run(self, operation: Callable[[str], SyncResult], expected_user: Optional[str] = None) -> SyncResult:
        if not self.state.user_id:
            return SyncResult(success=False, error=NOT_AUTHENTICATED)

        if not self._busy.acquire(blocking=False):
            logger.warning("Sync recusado: outro sync em andamento")
            return SyncResult(success=False, error=ALREADY_SYNCING)

        try:
            # Relido com o lock: um logout pode ter acontecido antes dele
            user_id = self.state.user_id
            if not user_id or (expected_user and user_id != expected_user):
                return SyncResult(success=False, error=NOT_AUTHENTICATED)

            self._set_phase(SyncPhase.SYNCING)
            try:
                result = operation(user_id)
            except Exception as e:
                logger.exception("Sync falhou")
                result = SyncResult(success=False, error=str(e))

            self._set_phase(SyncPhase.SUCCESS if result.success else SyncPhase.ERROR)
            self.refresh_counters()
            return result
        finally:
            self._busy.release()


def run_in_thread(target: Callable, *args):
    threading.Thread(target=target, args=args, daemon=True).start()
