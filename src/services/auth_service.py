import logging
from typing import Callable, List, Optional
import httpx

from src.data.remote_repository import RemoteError, create_client
from src.models.user import UserPublic
from src.services.sync_session import AuthEvent

logger = logging.getLogger("AuthService")


class AuthService:
    """
    Login contra o servidor. Guarda o usuário da sessão e avisa os inscritos
    (ex.: SyncSessionController.handle_auth_event) a cada entrada/saída.
    """

    def __init__(self, client: Optional[httpx.Client] = None):
        self.client = client or create_client()
        self._current_user: Optional[UserPublic] = None
        self._listeners: List[Callable[[AuthEvent, Optional[str]], None]] = []

    def subscribe(self, listener: Callable[[AuthEvent, Optional[str]], None]):
        self._listeners.append(listener)

    def _emit(self, event: AuthEvent, user_id: Optional[str]):
        for listener in list(self._listeners):
            listener(event, user_id)

    def _post(self, url: str, payload: dict) -> httpx.Response:
        try:
            return self.client.post(url, json=payload)
        except httpx.HTTPError as e:
            raise RemoteError(f"POST {url}: {e}") from e

    def authenticate(self, email: str, password: str) -> bool:
        """Verifica credenciais no servidor"""
        response = self._post("/auth/login", {"email": email, "password": password})
        if response.status_code == 401:
            return False
        if response.is_error:
            raise RemoteError(f"Login falhou: HTTP {response.status_code}", code=str(response.status_code))

        self._set_user(UserPublic.model_validate(response.json()))
        return True

    def sign_up(self, email: str, password: str, full_name: Optional[str] = None) -> bool:
        response = self._post(
            "/auth/signup",
            {"email": email, "password": password, "full_name": full_name}
        )
        if response.status_code == 409:
            return False
        if response.is_error:
            raise RemoteError(f"Cadastro falhou: HTTP {response.status_code}", code=str(response.status_code))

        self._set_user(UserPublic.model_validate(response.json()))
        return True

    def _set_user(self, user: UserPublic):
        self._current_user = user
        logger.info(f"Usuário {user.email} entrou")
        self._emit(AuthEvent.SIGNED_IN, user.id)

    def get_current_user(self) -> Optional[UserPublic]:
        return self._current_user

    def logout(self):
        self._current_user = None
        self._emit(AuthEvent.SIGNED_OUT, None)
