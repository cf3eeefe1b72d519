import logging
from datetime import datetime, timedelta
from typing import Iterable, List, Optional
from src.data.local_store import LocalStore
from src.models.base import SyncStatus, utc_now
from src.models.project import Project, ProjectMetadata, StoredProject

logger = logging.getLogger("ProjectRepository")

# URLs assinadas do storage valem 1h; guardamos por 50 minutos
IMAGE_URL_CACHE_TTL = timedelta(minutes=50)
# Abaixo disso a URL em cache é considerada vencida
IMAGE_URL_MIN_VALIDITY = timedelta(minutes=5)


class ProjectRepository:
    """
    Fachada CRUD sobre o LocalStore.
    Único escritor do cache: dono das regras de dirty checking e sync_status.
    Toda operação lê a coleção inteira, altera em memória e grava de volta.
    """

    def __init__(self, store: Optional[LocalStore] = None):
        self.store = store or LocalStore()

    @staticmethod
    def _index_of(projects: List[StoredProject], project_id: str) -> Optional[int]:
        for index, project in enumerate(projects):
            if project.id == project_id:
                return index
        return None

    # --- LEITURA ---

    def get_projects(self) -> List[StoredProject]:
        return self.store.get_all()

    def get_project(self, project_id: str) -> Optional[StoredProject]:
        projects = self.store.get_all()
        index = self._index_of(projects, project_id)
        return projects[index] if index is not None else None

    def get_dirty_projects(self) -> List[StoredProject]:
        """Registros pendentes de envio"""
        return [p for p in self.store.get_all() if p.is_dirty]

    def get_failed_projects(self) -> List[StoredProject]:
        return [p for p in self.store.get_all() if p.sync_status == SyncStatus.ERROR]

    def get_metadata(self) -> ProjectMetadata:
        return self.store.get_metadata()

    # --- ESCRITA LOCAL ---

    def upsert_project(self, project: StoredProject) -> StoredProject:
        """
        Insere (no topo) ou substitui na mesma posição.
        Toda escrita local é considerada pendente de sync, mesmo vinda de um sync:
        para registrar estado pós-sync use os mark_* / rebind_project.
        """
        projects = self.store.get_all()
        updated = project.model_copy(update={
            "is_dirty": True,
            "sync_status": SyncStatus.PENDING,
            "updated_at": utc_now(),
        })

        index = self._index_of(projects, project.id)
        if index is None:
            logger.info(f"Criando projeto local - {project.name}")
            projects.insert(0, updated)
        else:
            logger.info(f"Atualizando projeto local - {project.name}")
            projects[index] = updated

        self.store.save_all(projects)
        return updated

    def delete_project(self, project_id: str) -> bool:
        """Remove só do cache; o servidor não é tocado aqui"""
        projects = self.store.get_all()
        remaining = [p for p in projects if p.id != project_id]
        if len(remaining) == len(projects):
            return False

        logger.info(f"Removendo projeto local - {project_id}")
        self.store.save_all(remaining)
        return True

    # --- TRANSIÇÕES DE SYNC ---

    def _transition(self, project_id: str, **changes) -> Optional[StoredProject]:
        projects = self.store.get_all()
        index = self._index_of(projects, project_id)
        if index is None:
            return None

        projects[index] = projects[index].model_copy(update=changes)
        self.store.save_all(projects)
        return projects[index]

    def mark_synced(self, project_id: str) -> Optional[StoredProject]:
        return self._transition(
            project_id,
            is_dirty=False,
            sync_status=SyncStatus.SYNCED,
            last_synced=utc_now(),
        )

    def mark_syncing(self, project_id: str) -> Optional[StoredProject]:
        return self._transition(project_id, is_dirty=True, sync_status=SyncStatus.SYNCING)

    def mark_sync_error(self, project_id: str) -> Optional[StoredProject]:
        # Continua dirty: a alteração local ainda não chegou ao servidor
        return self._transition(project_id, is_dirty=True, sync_status=SyncStatus.ERROR)

    def rebind_project(self, old_id: str, remote: Project) -> Optional[StoredProject]:
        """
        Troca o ID provisório (local_...) pelo ID emitido pelo servidor.
        A entrada antiga some e a nova ocupa a mesma posição, já sincronizada.
        """
        projects = self.store.get_all()
        index = self._index_of(projects, old_id)
        if index is None:
            return None

        now = utc_now()
        rebound = projects[index].model_copy(update={
            "id": remote.id,
            "created_at": remote.created_at,
            "updated_at": remote.updated_at,
            "is_dirty": False,
            "sync_status": SyncStatus.SYNCED,
            "last_synced": now,
        })

        # Se por algum motivo o ID novo já existir, a cópia antiga dele sai
        projects = [p for p in projects if p.id != remote.id]
        index = self._index_of(projects, old_id)
        projects[index] = rebound

        self.store.save_all(projects)
        logger.info(f"Projeto {old_id} agora é {remote.id}")
        return rebound

    def reset_failed_projects(self) -> List[StoredProject]:
        """error -> pending (dirty). Retorna os registros resetados"""
        projects = self.store.get_all()
        reset = []
        for index, project in enumerate(projects):
            if project.sync_status == SyncStatus.ERROR:
                projects[index] = project.model_copy(update={
                    "is_dirty": True,
                    "sync_status": SyncStatus.PENDING,
                })
                reset.append(projects[index])

        if reset:
            self.store.save_all(projects)
        return reset

    def replace_all_projects(
        self,
        projects: Iterable[StoredProject],
        user_id: str,
        preserve: Iterable[StoredProject] = (),
    ):
        """
        Substituição total após um pull completo: o cache passa a espelhar o servidor.
        Os registros de `preserve` (alterações locais ainda pendentes) são mantidos como estão.
        """
        now = utc_now()
        mirrored = [
            p.model_copy(update={
                "is_dirty": False,
                "sync_status": SyncStatus.SYNCED,
                "last_synced": now,
            })
            for p in projects
        ]

        kept = {p.id: p for p in preserve}
        result = [kept.pop(p.id, p) for p in mirrored]
        # Pendentes que o servidor ainda não conhece vão para o topo
        result = list(kept.values()) + result

        self.store.save_all(result)
        self.store.save_metadata(last_full_sync=now, user_id=user_id)
        logger.info(f"Cache local substituído: {len(mirrored)} do servidor, {len(result) - len(mirrored)} pendentes mantidos")

    def clear_user_data(self):
        """Usado no logout"""
        self.store.clear()

    # --- CACHE DE URL DE IMAGEM ---

    def get_cached_image_url(self, project: StoredProject, now: Optional[datetime] = None) -> Optional[str]:
        if not project.image_url or not project.image_url_expires_at:
            return None

        now = now or utc_now()
        if project.image_url_expires_at - now < IMAGE_URL_MIN_VALIDITY:
            return None
        return project.image_url

    def cache_image_url(self, project_id: str, url: str) -> Optional[StoredProject]:
        """Guarda a URL assinada sem marcar o registro como dirty"""
        now = utc_now()
        return self._transition(
            project_id,
            image_url=url,
            image_url_cached_at=now,
            image_url_expires_at=now + IMAGE_URL_CACHE_TTL,
        )
