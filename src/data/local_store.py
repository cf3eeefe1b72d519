import json
import logging
import sqlite3
from contextlib import closing
from typing import List, Optional
from src.data.db_context import create_connection, get_db_path
from src.models.project import ProjectMetadata, StoredProject

logger = logging.getLogger("LocalStore")

# Os dois "slots" persistidos
PROJECTS_KEY = "local_projects"
METADATA_KEY = "local_metadata"


class LocalStore:
    """
    Armazenamento durável do cache offline (Chave-Valor sobre SQLite).
    Cada slot guarda um JSON: a lista de StoredProject e o objeto de metadados.

    Leitura corrompida vira "sem dados" (loga e segue).
    Falha de escrita sobe para quem chamou.
    """

    def __init__(self, db_path: Optional[str] = None):
        self.db_path = db_path or get_db_path()
        self._init_table()

    def _init_table(self):
        with closing(create_connection(self.db_path)) as conn, conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS local_slots (
                    key TEXT PRIMARY KEY,
                    value TEXT
                )
            """)

    def _read(self, key: str) -> Optional[str]:
        with closing(create_connection(self.db_path)) as conn:
            row = conn.execute("SELECT value FROM local_slots WHERE key = ?", (key,)).fetchone()
            return row[0] if row else None

    def _write(self, key: str, value: str):
        with closing(create_connection(self.db_path)) as conn, conn:
            conn.execute(
                "INSERT OR REPLACE INTO local_slots (key, value) VALUES (?, ?)",
                (key, value)
            )

    # --- PROJETOS ---

    def get_all(self) -> List[StoredProject]:
        try:
            data = self._read(PROJECTS_KEY)
            if not data:
                return []

            items = json.loads(data)
            if not isinstance(items, list):
                raise ValueError(f"slot '{PROJECTS_KEY}' não contém uma lista")

            projects = [StoredProject.model_validate(item) for item in items]
            logger.debug(f"{len(projects)} projetos lidos do armazenamento local")
            return projects
        except (sqlite3.Error, ValueError):
            # ValueError cobre JSON inválido e ValidationError do pydantic
            logger.exception("Cache local de projetos ilegível, tratando como vazio")
            return []

    def save_all(self, projects: List[StoredProject]):
        """Substitui a coleção inteira (atômico dentro do slot)"""
        payload = json.dumps([p.model_dump(mode="json") for p in projects])
        self._write(PROJECTS_KEY, payload)
        logger.debug(f"{len(projects)} projetos gravados no armazenamento local")

    # --- METADADOS ---

    def get_metadata(self) -> ProjectMetadata:
        try:
            data = self._read(METADATA_KEY)
            return ProjectMetadata.model_validate_json(data) if data else ProjectMetadata()
        except (sqlite3.Error, ValueError):
            logger.exception("Metadados locais ilegíveis, tratando como vazios")
            return ProjectMetadata()

    def save_metadata(self, **changes):
        """Merge: campos não informados são preservados"""
        unknown = set(changes) - set(ProjectMetadata.model_fields)
        if unknown:
            raise ValueError(f"Campos de metadados desconhecidos: {sorted(unknown)}")

        current = self.get_metadata()
        updated = ProjectMetadata.model_validate({**current.model_dump(), **changes})
        self._write(METADATA_KEY, updated.model_dump_json())

    def clear(self):
        with closing(create_connection(self.db_path)) as conn, conn:
            conn.execute(
                "DELETE FROM local_slots WHERE key IN (?, ?)",
                (PROJECTS_KEY, METADATA_KEY)
            )
        logger.info("Dados locais apagados")
