# src/gateway_dashboard/client/api.py

import logging
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import httpx

from ..schemas import LoginResponse
from .session import CredentialStore, Preferences

log = logging.getLogger(__name__)

API_PREFIX = "/api/router"
NOT_AUTHENTICATED = "Not authenticated"
DEFAULT_TIMEOUT_SECONDS = 15.0


class ClientError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class AuthExpiredError(ClientError):
    def __init__(self, message: str = NOT_AUTHENTICATED):
        super().__init__(message, status_code=401)


class LoginError(ClientError):
    pass


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        for key in ("error", "message", "detail"):
            if isinstance(payload.get(key), str):
                return payload[key]
    return f"Failed with status {response.status_code}"


class DashboardClient:
    """
    Talks to the dashboard server's /api/router routes.

    Credential headers are read from the store on every call, so a new login
    is picked up by the next request without rebuilding the client.
    """

    def __init__(
            self,
            credentials: CredentialStore,
            base_url: str,
            http_client: Optional[httpx.AsyncClient] = None,
            preferences: Optional[Preferences] = None,
    ):
        self.credentials = credentials
        self.preferences = preferences
        self.base_url = base_url.rstrip("/")
        parsed = urlparse(self.base_url)
        # The server's CSRF check wants an Origin matching its own host.
        self.origin = f"{parsed.scheme}://{parsed.netloc}"
        self._http = http_client or httpx.AsyncClient(timeout=DEFAULT_TIMEOUT_SECONDS)
        self._owns_http = http_client is None

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    def _url(self, path: str) -> str:
        return f"{self.base_url}{API_PREFIX}{path}"

    async def _request(self, method: str, path: str, body: Any = None) -> httpx.Response:
        headers = {"Cache-Control": "no-cache", **self.credentials.headers()}
        kwargs: Dict[str, Any] = {"headers": headers}
        if method != "GET":
            headers["Origin"] = self.origin
        if body is not None:
            kwargs["json"] = body
        try:
            return await self._http.request(method, self._url(path), **kwargs)
        except httpx.RequestError as e:
            log.warning("Dashboard request %s %s failed: %s", method, path, e)
            raise ClientError("Unable to connect to the gateway. Please check your connection and try again.") from e

    @staticmethod
    def _parse(response: httpx.Response) -> Any:
        if response.status_code == 401:
            raise AuthExpiredError()
        try:
            data = response.json() if response.text.strip() else {}
        except ValueError as e:
            raise ClientError("Malformed response from dashboard server", response.status_code) from e
        if isinstance(data, dict) and data.get("error") == NOT_AUTHENTICATED:
            raise AuthExpiredError()
        if not response.is_success:
            raise ClientError(_error_message(response), response.status_code)
        return data

    async def get_json(self, path: str) -> Any:
        return self._parse(await self._request("GET", path))

    async def post_json(self, path: str, body: Any = None) -> Any:
        return self._parse(await self._request("POST", path, body))

    # --- Session flows ---

    async def login(self, username: str, password: str, router_ip: str, remember_username: bool = False) -> LoginResponse:
        response = await self._request(
            "POST", "/login", {"username": username, "password": password, "routerIp": router_ip}
        )
        try:
            result = LoginResponse.model_validate(response.json())
        except ValueError as e:
            raise LoginError("Malformed login response", response.status_code) from e

        if not result.success or not result.token:
            raise LoginError(result.error or "Invalid credentials", response.status_code)

        self.credentials.set(result.token, result.routerIp or router_ip, result.username)
        if self.preferences is not None:
            self.preferences.remember_username(username if remember_username else None)
        return result

    async def logout(self) -> None:
        try:
            await self.post_json("/logout")
        except ClientError as e:
            log.warning("Logout call failed, clearing local credential anyway: %s", e.message)
        finally:
            self.credentials.clear()

    async def reboot(self) -> Dict[str, Any]:
        """The gateway drops off the network for several minutes after this returns."""
        return await self.post_json("/reboot")

    async def save_ap_config(self, config: Dict[str, Any]) -> Dict[str, Any]:
        return await self.post_json("/ap", config)
