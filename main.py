import logging
import flet as ft

from src.data.local_store import LocalStore
from src.data.project_repository import ProjectRepository
from src.data.remote_repository import ObjectStorage, RemoteProjectRepository, create_client
from src.services.auth_service import AuthService
from src.services.project_service import ProjectService
from src.services.sync_engine import SyncEngine
from src.services.sync_session import SyncSessionController
from src.ui.pages.login_page import LoginPage
from src.ui.widgets.project_list import ProjectList
from src.ui.widgets.sync_status import SyncStatusBar

logging.basicConfig(level=logging.INFO)


def main(page: ft.Page):
    page.title = "LightPlan"
    page.theme_mode = ft.ThemeMode.LIGHT

    try:
        repository = ProjectRepository(LocalStore())
    except Exception as e:
        page.add(ft.Text(f"Erro de Setup: {e}", color="red"))
        return

    # --- Montagem das dependências (uma sessão por app) ---
    client = create_client()
    remote = RemoteProjectRepository(client)
    storage = ObjectStorage(client)
    auth = AuthService(client)
    sync_engine = SyncEngine(repository, remote, storage)
    sync_controller = SyncSessionController(sync_engine, repository)
    project_service = ProjectService(repository, remote, storage)

    # Login/logout dirigem o ciclo de vida do sync
    auth.subscribe(sync_controller.handle_auth_event)

    def route_change(route):
        page.views.clear()

        if page.route == "/login":
            page.views.append(
                ft.View(
                    "/login",
                    [LoginPage(page, auth, on_login_success=lambda: page.go("/"))],
                    vertical_alignment=ft.MainAxisAlignment.CENTER,
                    horizontal_alignment=ft.CrossAxisAlignment.CENTER
                )
            )

        elif page.route == "/":
            current_user = auth.get_current_user()
            if not current_user:
                page.go("/login")
                return

            project_list = ProjectList(
                page, repository, project_service, current_user.id,
                resolve_image_url=sync_engine.refresh_image_url,
                on_change=sync_controller.refresh_counters
            )
            sync_bar = SyncStatusBar(page, sync_controller, on_synced=project_list.load_data)

            page.views.append(
                ft.View(
                    "/",
                    [
                        ft.AppBar(
                            title=ft.Text(f"Olá, {current_user.full_name or current_user.email}"),
                            actions=[ft.IconButton(ft.Icons.LOGOUT, on_click=logout_click)]
                        ),
                        ft.Container(content=sync_bar, padding=10),
                        project_list,
                    ]
                )
            )

        page.update()

    def view_pop(view):
        page.views.pop()
        top_view = page.views[-1]
        page.go(top_view.route)

    def logout_click(e):
        auth.logout()
        page.go("/login")

    page.on_route_change = route_change
    page.on_view_pop = view_pop
    page.go("/login")

if __name__ == "__main__":
    ft.app(target=main)
