import logging
from typing import List, Optional
import httpx
from src import config
from src.models.project import Project

logger = logging.getLogger("RemoteRepository")

# Código que o servidor devolve quando a linha não existe (ou não é acessível)
NOT_FOUND_CODE = "not_found"
NETWORK_ERROR_CODE = "network"
# HTTP 2xx com corpo que não é o esperado (ex.: portal de wifi devolvendo HTML)
INVALID_RESPONSE_CODE = "invalid_response"


class RemoteError(Exception):
    """Falha em uma chamada ao servidor (rede, validação, HTTP 5xx...)"""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.code = code


class RecordNotFoundError(RemoteError):
    """A linha remota sumiu: base para detecção de conflito no push"""

    def __init__(self, message: str):
        super().__init__(message, code=NOT_FOUND_CODE)


def create_client() -> httpx.Client:
    return httpx.Client(base_url=config.API_BASE_URL, timeout=config.API_TIMEOUT)


class _HttpGateway:
    def __init__(self, client: Optional[httpx.Client] = None):
        self.client = client or create_client()

    def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            response = self.client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise RemoteError(f"{method} {url}: {e}", code=NETWORK_ERROR_CODE) from e

        if response.status_code == 404:
            raise RecordNotFoundError(f"{method} {url}: registro não encontrado")
        if response.is_error:
            raise RemoteError(
                f"{method} {url}: HTTP {response.status_code} {response.text}",
                code=str(response.status_code)
            )
        return response

    def _json(self, response: httpx.Response):
        try:
            return response.json()
        except ValueError as e:
            request = response.request
            raise RemoteError(
                f"{request.method} {request.url.path}: resposta inválida do servidor",
                code=INVALID_RESPONSE_CODE
            ) from e

    def _project(self, data) -> Project:
        try:
            return Project.model_validate(data)
        except ValueError as e:
            raise RemoteError(f"Projeto inválido na resposta: {e}", code=INVALID_RESPONSE_CODE) from e


class RemoteProjectRepository(_HttpGateway):
    """CRUD sobre a tabela `projects` do servidor"""

    def insert(self, user_id: str, fields: dict) -> Project:
        response = self._request("POST", "/projects", json={"user_id": user_id, **fields})
        return self._project(self._json(response))

    def update(self, project_id: str, fields: dict) -> Project:
        response = self._request("PATCH", f"/projects/{project_id}", json=fields)
        return self._project(self._json(response))

    def select_all_for_user(self, user_id: str) -> List[Project]:
        """Todos os projetos do usuário, mais recentes primeiro"""
        response = self._request("GET", "/projects", params={"user_id": user_id})
        items = self._json(response)
        if not isinstance(items, list):
            raise RemoteError("GET /projects: lista esperada", code=INVALID_RESPONSE_CODE)
        return [self._project(item) for item in items]

    def delete(self, project_id: str):
        self._request("DELETE", f"/projects/{project_id}")


class ObjectStorage(_HttpGateway):
    """Bucket de imagens dos projetos"""

    def get_signed_url(self, path: str, expires_in: int = 3600) -> Optional[str]:
        """URL temporária; None se não der para assinar"""
        try:
            response = self._request("POST", "/storage/sign", json={"path": path, "expires_in": expires_in})
            return self._json(response)["signed_url"]
        except (RemoteError, KeyError, ValueError) as e:
            logger.error(f"Erro ao assinar URL de {path}: {e}")
            return None

    def upload(self, path: str, content: bytes, content_type: str = "application/octet-stream") -> str:
        response = self._request(
            "PUT", f"/storage/{path}",
            content=content,
            headers={"Content-Type": content_type}
        )
        return self._json(response)["path"]

    def remove(self, path: str):
        self._request("DELETE", f"/storage/{path}")
