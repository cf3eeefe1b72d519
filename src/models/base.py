import uuid
from datetime import datetime, timezone
from enum import Enum

# Prefixo dos IDs gerados no aparelho antes do primeiro sync
LOCAL_ID_PREFIX = "local_"

# Função auxiliar para timestamps UTC
def utc_now():
    return datetime.now(timezone.utc)


def new_local_id() -> str:
    """Gera um ID provisório (placeholder) para registros criados offline"""
    return f"{LOCAL_ID_PREFIX}{uuid.uuid4().hex}"


def is_local_id(record_id: str) -> bool:
    """True se o registro ainda não foi aceito pelo servidor"""
    return record_id.startswith(LOCAL_ID_PREFIX)


class SyncStatus(str, Enum):
    """
    Estado de sincronização de um registro local.
    Ciclo: pending -> syncing -> (synced | error); error -> pending só via retry.
    """
    SYNCED = "synced"
    PENDING = "pending"
    SYNCING = "syncing"
    ERROR = "error"
