import logging
import mimetypes
import os
import threading
import time
from typing import Optional

from src.data.project_repository import ProjectRepository
from src.data.remote_repository import ObjectStorage, RemoteError, RemoteProjectRepository
from src.models.base import is_local_id
from src.models.project import ProjectBase, StoredProject

logger = logging.getLogger("ProjectService")


class ProjectService:
    """
    Mutações disparadas pela UI. Tudo vai primeiro para o cache local
    (a tela atualiza na hora); o servidor só é tocado no sync, exceto
    o upload de imagem e o delete remoto "best effort".
    """

    def __init__(
        self,
        repository: ProjectRepository,
        remote: RemoteProjectRepository,
        storage: ObjectStorage,
        background: bool = True,
    ):
        self.repository = repository
        self.remote = remote
        self.storage = storage
        self.background = background

    def create_project(self, user_id: str, data: ProjectBase) -> StoredProject:
        project = StoredProject(user_id=user_id, **data.model_dump())
        return self.repository.upsert_project(project)

    def update_project(self, project_id: str, **changes) -> StoredProject:
        project = self.repository.get_project(project_id)
        if not project:
            raise KeyError(project_id)

        editable = set(ProjectBase.model_fields)
        invalid = set(changes) - editable
        if invalid:
            raise ValueError(f"Campos não editáveis: {sorted(invalid)}")

        return self.repository.upsert_project(project.model_copy(update=changes))

    def attach_image(self, project_id: str, user_id: str, file_path: str) -> Optional[StoredProject]:
        """Sobe a imagem para o bucket e grava a referência no projeto"""
        ext = os.path.splitext(file_path)[1].lstrip(".").lower() or "jpg"
        path = f"{user_id}/{int(time.time() * 1000)}.{ext}"
        content_type = mimetypes.guess_type(file_path)[0] or f"image/{ext}"

        try:
            with open(file_path, "rb") as f:
                self.storage.upload(path, f.read(), content_type)
        except RemoteError as e:
            # Offline: o projeto continua sem imagem, o usuário tenta de novo depois
            logger.error(f"Upload da imagem falhou: {e}")
            return None

        url = self.storage.get_signed_url(path)
        return self.update_project(project_id, image_path=path, image_url=url)

    def delete_project(self, project_id: str) -> bool:
        """
        Delete otimista: sai do cache na hora.
        O delete remoto roda depois e não bloqueia a UI; falha só é logada.
        """
        removed = self.repository.delete_project(project_id)

        if removed and not is_local_id(project_id):
            if self.background:
                threading.Thread(target=self._delete_remote, args=(project_id,), daemon=True).start()
            else:
                self._delete_remote(project_id)
        return removed

    def _delete_remote(self, project_id: str):
        try:
            self.remote.delete(project_id)
            logger.info(f"Projeto {project_id} removido do servidor")
        except RemoteError as e:
            logger.error(f"Erro ao remover projeto {project_id} do servidor: {e}")
