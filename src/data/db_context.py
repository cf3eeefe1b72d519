import sqlite3
import os
from typing import Optional
from src import config


def get_db_path() -> str:
    """
    Define o caminho do banco local dependendo do OS.
    No Android o bundle é somente leitura, então usamos o armazenamento interno gravável.
    """
    if "ANDROID_ARGUMENT" in os.environ and not os.path.isabs(config.LOCAL_DB_PATH):
        storage_path = os.environ.get("FLET_APP_STORAGE_DATA", os.getcwd())
        return os.path.join(storage_path, config.LOCAL_DB_PATH)

    # Desenvolvimento Desktop
    return config.LOCAL_DB_PATH


def create_connection(db_path: Optional[str] = None) -> sqlite3.Connection:
    """
    Cria conexão com otimizações para escrita frequente e UI fluida.
    """
    conn = sqlite3.connect(db_path or get_db_path(), timeout=10.0, check_same_thread=False)

    # --- Otimizações de Performance ---
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    conn.execute("PRAGMA temp_store=MEMORY;")

    return conn
