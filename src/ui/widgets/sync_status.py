import threading
import flet as ft
from src.services.sync_session import SyncPhase, SyncSessionController, SyncState


class SyncStatusBar(ft.Row):
    """
    Indicador de sync + botões de sincronizar e reenviar falhas.
    Só reflete o SyncSessionController; nunca dispara sync sozinho.
    """

    def __init__(self, page: ft.Page, controller: SyncSessionController, on_synced=None):
        super().__init__()
        self.page_ref = page
        self.controller = controller
        self.on_synced = on_synced

        self.icon = ft.Icon(ft.Icons.CLOUD_DONE, color=ft.Colors.GREEN)
        self.lbl_status = ft.Text("", size=12)
        self.btn_sync = ft.ElevatedButton("Sincronizar", icon=ft.Icons.CLOUD_SYNC, on_click=self.run_sync)
        self.btn_retry = ft.TextButton("Reenviar falhas", icon=ft.Icons.REFRESH, visible=False, on_click=self.run_retry)

        self.controls = [self.icon, self.lbl_status, self.btn_sync, self.btn_retry]
        self._unsubscribe = None
        self._last_phase = None

    def did_mount(self):
        self._unsubscribe = self.controller.subscribe(self.render)
        self._last_phase = self.controller.state.phase
        self.render(self.controller.state)

    def will_unmount(self):
        if self._unsubscribe:
            self._unsubscribe()

    def render(self, state: SyncState):
        if state.phase == SyncPhase.SYNCING:
            self.icon.name, self.icon.color = ft.Icons.SYNC, ft.Colors.BLUE
            self.lbl_status.value = "Sincronizando..."
        elif state.phase == SyncPhase.ERROR or state.has_sync_errors:
            self.icon.name, self.icon.color = ft.Icons.ERROR, ft.Colors.RED
            self.lbl_status.value = "Erro no sync"
        elif state.pending_changes:
            self.icon.name, self.icon.color = ft.Icons.CLOUD_UPLOAD, ft.Colors.AMBER_700
            self.lbl_status.value = f"{state.pending_changes} alterações pendentes"
        else:
            self.icon.name, self.icon.color = ft.Icons.CLOUD_DONE, ft.Colors.GREEN
            self.lbl_status.value = "Tudo sincronizado"

        self.btn_sync.disabled = state.phase == SyncPhase.SYNCING
        self.btn_retry.visible = state.has_sync_errors
        self.update()

        # Inclui o pull do login, que roda fora de qualquer botão
        finished = state.phase == SyncPhase.SUCCESS and self._last_phase != SyncPhase.SUCCESS
        self._last_phase = state.phase
        if finished and self.on_synced:
            self.on_synced()

    def _in_background(self, operation, ok_msg):
        def worker():
            result = operation()
            if result.success:
                msg = f"{ok_msg} ▲▼{result.synced_count}"
                if result.conflict_count:
                    msg += f" ({result.conflict_count} conflitos)"
                color = ft.Colors.GREEN
            else:
                msg, color = f"Erro: {result.error or '?'}", ft.Colors.RED

            self.page_ref.open(ft.SnackBar(ft.Text(msg), bgcolor=color))

        threading.Thread(target=worker, daemon=True).start()

    def run_sync(self, e):
        self._in_background(self.controller.manual_sync, "Sync OK!")

    def run_retry(self, e):
        self._in_background(self.controller.retry_failed_syncs, "Reenvio OK!")
