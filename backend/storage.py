import hashlib
import hmac
import os
import time
from pathlib import Path
from typing import Optional

BUCKET_NAME = "project-images"


class InvalidPathError(ValueError):
    pass


class BlobStorage:
    """
    Bucket de imagens em disco com URLs assinadas (HMAC) e prazo de validade.
    """

    def __init__(self, root: Optional[str] = None, secret: Optional[str] = None):
        self.root = Path(root or os.getenv("STORAGE_DIR", "storage")).resolve() / BUCKET_NAME
        # Em produção, este segredo deve vir de variáveis de ambiente seguras
        self.secret = (secret or os.getenv("STORAGE_SECRET", "lightplan_storage_dev")).encode()
        self.root.mkdir(parents=True, exist_ok=True)

    def resolve(self, path: str) -> Path:
        """Caminho absoluto do objeto, sem permitir sair do bucket"""
        target = (self.root / path).resolve()
        if target == self.root or self.root not in target.parents:
            raise InvalidPathError(path)
        return target

    def exists(self, path: str) -> bool:
        return self.resolve(path).is_file()

    def save(self, path: str, content: bytes):
        target = self.resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)

    def remove(self, path: str) -> bool:
        target = self.resolve(path)
        if not target.is_file():
            return False
        target.unlink()
        return True

    # --- ASSINATURA ---

    def _signature(self, path: str, expires: int) -> str:
        message = f"{path}:{expires}".encode()
        return hmac.new(self.secret, message, hashlib.sha256).hexdigest()

    def sign(self, path: str, expires_in: int) -> dict:
        expires = int(time.time()) + expires_in
        return {"expires": expires, "signature": self._signature(path, expires)}

    def verify(self, path: str, expires: int, signature: str) -> bool:
        if expires < time.time():
            return False
        return hmac.compare_digest(self._signature(path, expires), signature)
