# src/gateway_dashboard/gateway_api.py

import asyncio
import json
import logging
from typing import Any, Dict, Optional

import httpx
from pydantic import BaseModel, Field

from .errors import (
    MalformedResponseError,
    NotAuthenticatedError,
    UpstreamError,
    UpstreamTimeoutError,
    UpstreamUnreachableError,
)
from .schemas import HealthStatus

log = logging.getLogger(__name__)

# --- Gateway endpoints (fixed, not configurable) ---
GATEWAY_INFO_PATH = "/TMI/v1/gateway?get=all"
SIGNAL_INFO_PATH = "/TMI/v1/gateway?get=signal"
CELL_INFO_PATH = "/TMI/v1/network/telemetry?get=cell"
CLIENTS_PATH = "/TMI/v1/network/telemetry?get=clients"
SIM_INFO_PATH = "/TMI/v1/network/telemetry?get=sim"
TELEMETRY_ALL_PATH = "/TMI/v1/network/telemetry?get=all"
AP_CONFIG_GET_PATH = "/TMI/v1/network/configuration/v2?get=ap"
AP_CONFIG_SET_PATH = "/TMI/v1/network/configuration/v2?set=ap"
REBOOT_PATH = "/TMI/v1/gateway/reset?set=reboot"
VERSION_PATH = "/TMI/v1/version"
LOGIN_PATH = "/TMI/v1/auth/login"

DEFAULT_TIMEOUT_SECONDS = 10.0


class RequestOptions(BaseModel):
    """Options for a single forwarded gateway call."""

    auth: bool = Field(False, description="Attach the bearer token; the call fails as not-authenticated without one.")
    method: str = Field("GET", description="HTTP method sent to the gateway.")
    body: Optional[Any] = Field(None, description="JSON body; omitted from the request when None.")
    timeout: Optional[float] = Field(
        None, gt=0, description="Seconds before the call is aborted. None uses the client's timeout."
    )


def _extract_error_message(response: httpx.Response) -> Optional[str]:
    try:
        payload = response.json()
    except ValueError:
        return None
    if not isinstance(payload, dict):
        return None
    result = payload.get("result")
    if isinstance(result, dict) and isinstance(result.get("message"), str):
        return result["message"]
    for key in ("error", "message"):
        if isinstance(payload.get(key), str):
            return payload[key]
    return None


def normalize_response(response: httpx.Response) -> Any:
    """
    Turns a raw gateway response into its JSON payload or one GatewayError.

    Every caller goes through here so nothing downstream looks at status
    codes or body shapes again.
    """
    if response.status_code in (401, 403):
        raise NotAuthenticatedError()

    if not response.is_success:
        message = _extract_error_message(response)
        raise UpstreamError(message or f"Request failed with status {response.status_code}")

    # Some write operations answer with an empty body.
    text = response.text
    if not text.strip():
        return {}
    try:
        return json.loads(text)
    except ValueError as e:
        raise MalformedResponseError() from e


class GatewayClient:
    """
    Forwards calls to one gateway. Holds no state between calls beyond the
    address, token and the shared httpx client it was built with.
    """

    def __init__(
            self,
            http_client: httpx.AsyncClient,
            gateway_ip: str,
            token: Optional[str] = None,
            timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self._http = http_client
        self.gateway_ip = gateway_ip
        self.token = token
        self.timeout = timeout

    def _url(self, endpoint: str) -> str:
        return f"http://{self.gateway_ip}{endpoint}"

    async def _send(self, method: str, endpoint: str, headers: Dict[str, str], body: Any, timeout: float) -> httpx.Response:
        request_kwargs = {"headers": headers, "timeout": timeout}
        if body is not None:
            request_kwargs["json"] = body
        try:
            # wait_for cancels the request task when the timer wins, so the
            # connection is released instead of left pending.
            return await asyncio.wait_for(
                self._http.request(method, self._url(endpoint), **request_kwargs),
                timeout=timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            log.warning("Gateway %s timed out after %ss on %s %s", self.gateway_ip, timeout, method, endpoint)
            raise UpstreamTimeoutError(
                f"Gateway not responding (no answer from {self.gateway_ip} within {timeout:g}s)"
            ) from e
        except (httpx.RequestError, httpx.InvalidURL) as e:
            log.warning("Gateway %s unreachable on %s %s: %s", self.gateway_ip, method, endpoint, e)
            raise UpstreamUnreachableError(f"Unable to reach gateway at {self.gateway_ip}") from e

    async def fetch(self, endpoint: str, options: Optional[RequestOptions] = None) -> Any:
        options = options or RequestOptions()
        headers = {"Content-Type": "application/json"}
        if options.auth:
            if not self.token:
                raise NotAuthenticatedError()
            headers["Authorization"] = f"Bearer {self.token}"

        timeout = options.timeout or self.timeout
        response = await self._send(options.method, endpoint, headers, options.body, timeout)
        log.info(
            "Gateway %s %s %s -> %s", self.gateway_ip, options.method, endpoint, response.status_code,
            extra={"gateway_ip": self.gateway_ip, "path": endpoint},
        )
        return normalize_response(response)

    # --- Forwarded operations ---

    async def get_gateway_info(self) -> Dict[str, Any]:
        return await self.fetch(GATEWAY_INFO_PATH)

    async def get_signal_info(self) -> Dict[str, Any]:
        return await self.fetch(SIGNAL_INFO_PATH)

    async def get_cell_info(self) -> Dict[str, Any]:
        return await self.fetch(CELL_INFO_PATH, RequestOptions(auth=True))

    async def get_clients(self) -> Dict[str, Any]:
        return await self.fetch(CLIENTS_PATH, RequestOptions(auth=True))

    async def get_sim_info(self) -> Dict[str, Any]:
        return await self.fetch(SIM_INFO_PATH, RequestOptions(auth=True))

    async def get_ap_config(self) -> Dict[str, Any]:
        return await self.fetch(AP_CONFIG_GET_PATH, RequestOptions(auth=True))

    async def set_ap_config(self, config: Dict[str, Any]) -> None:
        """Replaces the whole AP configuration; the gateway gets no partial patch."""
        await self.fetch(AP_CONFIG_SET_PATH, RequestOptions(auth=True, method="POST", body=config))

    async def reboot(self) -> None:
        await self.fetch(REBOOT_PATH, RequestOptions(auth=True, method="POST"))

    async def get_telemetry_all(self) -> Dict[str, Any]:
        return await self.fetch(TELEMETRY_ALL_PATH, RequestOptions(auth=True))

    async def get_version(self) -> Dict[str, Any]:
        return await self.fetch(VERSION_PATH)

    async def login(self, username: str, password: str) -> Dict[str, Any]:
        """
        Exchanges credentials for a gateway token.

        Returns {"token", "expiration"}. Rejected credentials raise
        NotAuthenticatedError carrying a message safe to show the user.
        """
        response = await self._send(
            "POST",
            LOGIN_PATH,
            {"Content-Type": "application/json"},
            {"username": username, "password": password},
            self.timeout,
        )
        try:
            data = response.json() if response.text.strip() else {}
        except ValueError as e:
            raise MalformedResponseError() from e

        auth = data.get("auth") if isinstance(data, dict) else None
        if isinstance(auth, dict) and auth.get("token"):
            log.info("Login to gateway %s succeeded for user %s", self.gateway_ip, username)
            return {"token": auth["token"], "expiration": auth.get("expiration")}

        message = "Invalid credentials"
        result = data.get("result") if isinstance(data, dict) else None
        if isinstance(result, dict) and isinstance(result.get("message"), str) and result["message"]:
            message = result["message"]
        log.info("Login to gateway %s rejected for user %s (status %s)", self.gateway_ip, username, response.status_code)
        raise NotAuthenticatedError(message)

    async def check_health(self, timeout: float) -> HealthStatus:
        """Probes the version endpoint; never raises."""
        try:
            response = await self._send("GET", VERSION_PATH, {}, None, timeout)
        except UpstreamTimeoutError:
            return HealthStatus(status="offline", ip=self.gateway_ip, message="Connection timeout")
        except UpstreamUnreachableError as e:
            return HealthStatus(status="offline", ip=self.gateway_ip, message=e.message)

        if response.is_success:
            return HealthStatus(status="online", ip=self.gateway_ip)
        return HealthStatus(status="error", ip=self.gateway_ip, message="Gateway returned error")
