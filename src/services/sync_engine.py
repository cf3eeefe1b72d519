import logging
from datetime import timedelta
from typing import Callable, List, Optional
from sqlmodel import SQLModel

from src import config
from src.data.project_repository import IMAGE_URL_CACHE_TTL, ProjectRepository
from src.data.remote_repository import (
    ObjectStorage,
    RecordNotFoundError,
    RemoteError,
    RemoteProjectRepository,
)
from src.models.base import is_local_id, utc_now
from src.models.project import Project, StoredProject

logger = logging.getLogger("SyncEngine")


class SyncResult(SQLModel):
    success: bool
    synced_count: int = 0
    # Só o caso "linha remota sumiu" durante o push
    conflict_count: int = 0
    failed_count: int = 0
    # False quando o pull foi pulado pelo cooldown
    pulled: bool = False
    error: Optional[str] = None


class SyncEngine:
    """
    Reconciliação entre o cache local e o servidor.
    PUSH envia os registros dirty, um a um e isolados;
    PULL substitui o cache pelo conjunto remoto do usuário.
    Nada aqui é persistido entre tentativas.
    """

    def __init__(
        self,
        repository: ProjectRepository,
        remote: RemoteProjectRepository,
        storage: ObjectStorage,
        pull_cooldown: timedelta = timedelta(seconds=config.PULL_COOLDOWN_SECONDS),
        clock: Callable = utc_now,
    ):
        self.repository = repository
        self.remote = remote
        self.storage = storage
        self.pull_cooldown = pull_cooldown
        self.clock = clock

    # --- PUSH ---

    def sync_to_cloud(self, user_id: str) -> SyncResult:
        try:
            # Snapshot único: o que ficar dirty depois disso fica para o próximo push
            dirty = self.repository.get_dirty_projects()
        except Exception as e:
            logger.error(f"Push: não foi possível ler os pendentes: {e}")
            return SyncResult(success=False, error=str(e))

        logger.info(f"Push: {len(dirty)} projetos pendentes")
        return self._push(user_id, dirty)

    def _push(self, user_id: str, projects: List[StoredProject]) -> SyncResult:
        result = SyncResult(success=True)

        for project in projects:
            self.repository.mark_syncing(project.id)
            try:
                if is_local_id(project.id):
                    created = self.remote.insert(user_id, project.editable_fields())
                    self.repository.rebind_project(project.id, created)
                else:
                    self.remote.update(project.id, project.editable_fields())
                    self.repository.mark_synced(project.id)
                result.synced_count += 1
            except RecordNotFoundError:
                # Apagado (ou inacessível) no servidor: o usuário decide o que fazer
                logger.warning(f"Conflito: projeto {project.id} não existe mais no servidor")
                result.conflict_count += 1
                self.repository.mark_sync_error(project.id)
            except RemoteError as e:
                logger.error(f"Erro ao enviar projeto {project.id}: {e}")
                result.failed_count += 1
                self.repository.mark_sync_error(project.id)
            except Exception:
                # Qualquer outra falha fica restrita a este registro
                logger.exception(f"Erro inesperado ao enviar projeto {project.id}")
                result.failed_count += 1
                self.repository.mark_sync_error(project.id)

        logger.info(
            f"Push concluído: {result.synced_count} enviados, "
            f"{result.conflict_count} conflitos, {result.failed_count} falhas"
        )
        return result

    # --- PULL ---

    def sync_from_cloud(self, user_id: str) -> SyncResult:
        try:
            remote_projects = self.remote.select_all_for_user(user_id)
        except RemoteError as e:
            logger.error(f"Pull falhou: {e}")
            return SyncResult(success=False, error=str(e))

        # Alterações locais ainda pendentes do mesmo usuário não são sobrescritas
        preserve = []
        if self.repository.get_metadata().user_id == user_id:
            preserve = self.repository.get_dirty_projects()

        projects = [self._with_fresh_image_url(p) for p in remote_projects]
        self.repository.replace_all_projects(projects, user_id, preserve=preserve)

        logger.info(f"Pull: {len(projects)} projetos recebidos do servidor")
        return SyncResult(success=True, synced_count=len(projects), pulled=True)

    def _with_fresh_image_url(self, remote: Project) -> StoredProject:
        project = StoredProject.from_remote(remote)
        if not project.image_path:
            return project

        url = self.storage.get_signed_url(project.image_path)
        if not url:
            # Mantém a URL anterior
            return project

        now = utc_now()
        return project.model_copy(update={
            "image_url": url,
            "image_url_cached_at": now,
            "image_url_expires_at": now + IMAGE_URL_CACHE_TTL,
        })

    # --- ORQUESTRAÇÃO ---

    def pull_due(self, user_id: str) -> bool:
        metadata = self.repository.get_metadata()
        if not metadata.last_full_sync or metadata.user_id != user_id:
            return True
        return self.clock() - metadata.last_full_sync >= self.pull_cooldown

    def full_sync(self, user_id: str) -> SyncResult:
        """Push sempre; pull só fora da janela de cooldown"""
        push = self.sync_to_cloud(user_id)
        if not push.success:
            return push

        if not self.pull_due(user_id):
            logger.info("Pull ignorado: último sync completo ainda dentro do cooldown")
            return push

        pull = self.sync_from_cloud(user_id)
        return SyncResult(
            success=pull.success,
            synced_count=push.synced_count + pull.synced_count,
            conflict_count=push.conflict_count,
            failed_count=push.failed_count,
            pulled=pull.pulled,
            error=pull.error,
        )

    def retry_failed_syncs(self, user_id: str) -> SyncResult:
        """Reenvia somente os registros que estavam em erro"""
        reset = self.repository.reset_failed_projects()
        if not reset:
            return SyncResult(success=True)

        logger.info(f"Retry: {len(reset)} projetos com erro voltaram para pending")
        return self._push(user_id, reset)

    # --- IMAGENS ---

    def refresh_image_url(self, project_id: str) -> Optional[str]:
        """URL de exibição: a do cache se ainda válida, senão assina de novo"""
        project = self.repository.get_project(project_id)
        if not project:
            return None

        cached = self.repository.get_cached_image_url(project)
        if cached or not project.image_path:
            return cached or project.image_url

        url = self.storage.get_signed_url(project.image_path)
        if not url:
            return project.image_url

        self.repository.cache_image_url(project_id, url)
        return url
