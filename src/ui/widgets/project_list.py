import threading
import flet as ft
from typing import Callable, Dict, List, Optional
from src.data.project_repository import ProjectRepository
from src.models.base import SyncStatus
from src.models.project import ProjectBase, StoredProject
from src.services.project_service import ProjectService

STATUS_COLORS = {
    SyncStatus.SYNCED: ft.Colors.GREEN,
    SyncStatus.PENDING: ft.Colors.AMBER_700,
    SyncStatus.SYNCING: ft.Colors.BLUE,
    SyncStatus.ERROR: ft.Colors.RED,
}


class ProjectList(ft.Column):
    def __init__(
        self,
        page: ft.Page,
        repository: ProjectRepository,
        service: ProjectService,
        user_id: str,
        resolve_image_url: Callable[[str], Optional[str]],
        on_change=None
    ):
        super().__init__()
        self.page_ref = page
        self.repository = repository
        self.service = service
        self.user_id = user_id
        # SyncEngine.refresh_image_url: usa o cache e só reassina quando vence
        self.resolve_image_url = resolve_image_url
        # Avisa quem precisa recontar pendentes (SyncSessionController.refresh_counters)
        self.on_change = on_change

        self.projects: List[StoredProject] = []
        self.image_urls: Dict[str, str] = {}
        self.editing: Optional[StoredProject] = None
        self.image_target: Optional[StoredProject] = None
        self.expand = True

        self.txt_search = ft.TextField(
            label="Buscar Projeto",
            prefix_icon=ft.Icons.SEARCH,
            on_change=lambda e: self.render_list(),
            border_radius=10
        )
        self.list_view = ft.ListView(expand=True, spacing=10, padding=10)
        self.lbl_status = ft.Text("Carregando...", italic=True, color=ft.Colors.GREY_500)

        # Dialog de criação/edição (o mesmo formulário)
        self.txt_name = ft.TextField(label="Nome *")
        self.txt_description = ft.TextField(label="Descrição", multiline=True)
        self.txt_address = ft.TextField(label="Endereço")
        self.txt_phone = ft.TextField(label="Telefone")
        self.txt_email = ft.TextField(label="E-mail")
        self.form_fields = {
            "name": self.txt_name,
            "description": self.txt_description,
            "address": self.txt_address,
            "phone_number": self.txt_phone,
            "email": self.txt_email,
        }
        self.dlg_title = ft.Text("Novo Projeto")
        self.dlg_form = ft.AlertDialog(
            title=self.dlg_title,
            content=ft.Column(list(self.form_fields.values()), tight=True),
            actions=[
                ft.TextButton("Cancelar", on_click=lambda e: self.page_ref.close(self.dlg_form)),
                ft.ElevatedButton("Salvar", on_click=self.save_project),
            ]
        )

        self.file_picker = ft.FilePicker(on_result=self.on_image_picked)

        self.controls = [
            ft.Row([
                ft.Container(content=self.txt_search, expand=True),
                ft.IconButton(ft.Icons.ADD, tooltip="Novo projeto", on_click=self.open_create),
            ]),
            self.lbl_status,
            self.list_view,
        ]

    def did_mount(self):
        self.page_ref.overlay.append(self.file_picker)
        self.page_ref.update()
        self.load_data()

    def will_unmount(self):
        if self.file_picker in self.page_ref.overlay:
            self.page_ref.overlay.remove(self.file_picker)

    def load_data(self):
        # Sempre do cache local: a tela nunca espera a rede
        self.projects = self.repository.get_projects()
        self.render_list()
        if any(p.image_path for p in self.projects):
            threading.Thread(target=self._refresh_images, daemon=True).start()

    def _refresh_images(self):
        urls = {}
        for project in self.projects:
            if project.image_path:
                url = self.resolve_image_url(project.id)
                if url:
                    urls[project.id] = url
        if urls != self.image_urls:
            self.image_urls = urls
            self.render_list()

    def render_list(self):
        query = (self.txt_search.value or "").lower()
        visible = [p for p in self.projects if query in p.name.lower()]

        self.list_view.controls.clear()
        self.lbl_status.visible = not visible
        self.lbl_status.value = "Nenhum projeto."

        for project in visible:
            self.list_view.controls.append(
                ft.ListTile(
                    leading=self._leading(project),
                    title=ft.Text(project.name, weight="bold"),
                    subtitle=ft.Text(project.address or project.description or ""),
                    on_click=lambda _, p=project: self.open_edit(p),
                    trailing=ft.Row(
                        [
                            ft.IconButton(
                                ft.Icons.ADD_PHOTO_ALTERNATE_OUTLINED,
                                tooltip="Imagem",
                                on_click=lambda _, p=project: self.pick_image(p)
                            ),
                            ft.IconButton(
                                ft.Icons.DELETE_OUTLINE,
                                on_click=lambda _, p=project: self.delete_project(p)
                            ),
                        ],
                        tight=True,
                    ),
                )
            )
        self.update()

    def _leading(self, project: StoredProject) -> ft.Control:
        color = STATUS_COLORS.get(project.sync_status, ft.Colors.GREY)
        url = self.image_urls.get(project.id) or project.image_url
        if not url:
            return ft.Icon(ft.Icons.HOUSE, color=color)

        # Borda com a cor do status de sync
        return ft.Container(
            content=ft.Image(src=url, width=40, height=40, fit=ft.ImageFit.COVER),
            border=ft.border.all(2, color),
            border_radius=6,
            clip_behavior=ft.ClipBehavior.HARD_EDGE,
        )

    # --- FORMULÁRIO ---

    def open_create(self, e):
        self.editing = None
        self.dlg_title.value = "Novo Projeto"
        for field in self.form_fields.values():
            field.value = ""
            field.error_text = None
        self.page_ref.open(self.dlg_form)

    def open_edit(self, project: StoredProject):
        self.editing = project
        self.dlg_title.value = "Editar Projeto"
        for key, field in self.form_fields.items():
            field.value = getattr(project, key) or ""
            field.error_text = None
        self.page_ref.open(self.dlg_form)

    def save_project(self, e):
        if not self.txt_name.value:
            self.txt_name.error_text = "Obrigatório"
            self.dlg_form.update()
            return

        values = {key: field.value or None for key, field in self.form_fields.items()}
        if self.editing:
            self.service.update_project(self.editing.id, **values)
        else:
            self.service.create_project(self.user_id, ProjectBase(**values))

        self.editing = None
        self.page_ref.close(self.dlg_form)
        self._changed()

    # --- IMAGEM ---

    def pick_image(self, project: StoredProject):
        self.image_target = project
        self.file_picker.pick_files(allow_multiple=False, file_type=ft.FilePickerFileType.IMAGE)

    def on_image_picked(self, e: ft.FilePickerResultEvent):
        project, self.image_target = self.image_target, None
        if not project or not e.files or not e.files[0].path:
            return

        # Upload toca a rede: fora da thread da UI
        def worker():
            updated = self.service.attach_image(project.id, self.user_id, e.files[0].path)
            if updated is None:
                self.page_ref.open(ft.SnackBar(ft.Text("Não foi possível enviar a imagem"), bgcolor=ft.Colors.RED))
                return
            self._changed()

        threading.Thread(target=worker, daemon=True).start()

    def delete_project(self, project: StoredProject):
        self.service.delete_project(project.id)
        self._changed()

    def _changed(self):
        self.load_data()
        if self.on_change:
            self.on_change()
