import uuid
from datetime import datetime
from typing import Optional
from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel
from .base import SyncStatus, new_local_id, utc_now


class ProjectBase(SQLModel):
    """
    Campos editáveis pelo usuário.
    São exatamente os campos enviados ao servidor no insert/update.
    """
    name: str
    description: Optional[str] = None
    address: Optional[str] = None
    phone_number: Optional[str] = None
    email: Optional[str] = None

    # Referência da imagem no bucket (image_path) e URL assinada para exibição
    image_url: Optional[str] = None
    image_path: Optional[str] = None


class ProjectCreate(ProjectBase):
    user_id: str


class ProjectUpdate(SQLModel):
    # PATCH parcial: só os campos enviados são alterados
    name: Optional[str] = None
    description: Optional[str] = None
    address: Optional[str] = None
    phone_number: Optional[str] = None
    email: Optional[str] = None
    image_url: Optional[str] = None
    image_path: Optional[str] = None


class Project(ProjectBase, table=True):
    """Tabela do servidor (fonte da verdade remota)"""
    __tablename__ = "projects"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    user_id: str = Field(index=True)

    # CORREÇÃO: timezone=True, senão o Postgres recusa datetimes com fuso
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))


class StoredProject(ProjectBase):
    """
    Registro do cache local: o Project mais os campos de controle de sync.
    Invariante: is_dirty == False implica sync_status == synced.
    """
    id: str = Field(default_factory=new_local_id)
    user_id: str

    # Cache da URL assinada (derivado, nunca enviado ao servidor)
    image_url_expires_at: Optional[datetime] = None
    image_url_cached_at: Optional[datetime] = None

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    # Controle de sincronização
    is_dirty: bool = True
    sync_status: SyncStatus = SyncStatus.PENDING
    last_synced: Optional[datetime] = None

    def editable_fields(self) -> dict:
        """Payload para o servidor (sem campos de sync e de cache)"""
        return self.model_dump(mode="json", include=set(ProjectBase.model_fields))

    @classmethod
    def from_remote(cls, project: Project) -> "StoredProject":
        return cls.model_validate(project.model_dump())


class ProjectMetadata(SQLModel):
    """Metadados globais do cache local (um por instalação)"""
    last_full_sync: Optional[datetime] = None
    user_id: Optional[str] = None
