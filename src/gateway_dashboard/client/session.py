# src/gateway_dashboard/client/session.py

import logging
from typing import Dict, Optional

from pydantic import BaseModel

from .storage import MemoryStore

log = logging.getLogger(__name__)

AUTH_TOKEN_KEY = "tmo_auth_token"
ROUTER_IP_KEY = "tmo_router_ip"
USERNAME_KEY = "tmo_username"

REMEMBERED_USERNAME_KEY = "remembered_username"
THEME_KEY = "theme"
SIDEBAR_PINNED_KEY = "sidebar-pinned"

GATEWAY_IP_HEADER = "X-Gateway-IP"
AUTH_TOKEN_HEADER = "X-Auth-Token"


class SessionCredential(BaseModel):
    """
    One client's authenticated relationship to one gateway.
    Only the token and address are required; the server never stores this.
    """
    token: str
    routerIp: str
    username: Optional[str] = None


class CredentialStore:
    """Single source of truth for "are we logged in, and to which gateway"."""

    def __init__(self, store: MemoryStore):
        self._store = store

    def get(self) -> Optional[SessionCredential]:
        token = self._store.get_item(AUTH_TOKEN_KEY)
        router_ip = self._store.get_item(ROUTER_IP_KEY)
        # A half-written credential counts as no credential.
        if not token or not router_ip:
            return None
        return SessionCredential(
            token=token,
            routerIp=router_ip,
            username=self._store.get_item(USERNAME_KEY) or None,
        )

    def set(self, token: str, router_ip: str, username: Optional[str] = None) -> None:
        if not token or not router_ip:
            raise ValueError("token and router_ip are both required")
        values = {AUTH_TOKEN_KEY: token, ROUTER_IP_KEY: router_ip}
        remove = ()
        if username:
            values[USERNAME_KEY] = username
        else:
            remove = (USERNAME_KEY,)
        self._store.update(values, remove=remove)
        log.info("Stored credential for gateway %s", router_ip)

    def clear(self) -> None:
        self._store.update({}, remove=(AUTH_TOKEN_KEY, ROUTER_IP_KEY, USERNAME_KEY))
        log.info("Cleared stored credential")

    def is_authenticated(self) -> bool:
        return self.get() is not None

    def headers(self) -> Dict[str, str]:
        credential = self.get()
        if credential is None:
            return {}
        return {
            GATEWAY_IP_HEADER: credential.routerIp,
            AUTH_TOKEN_HEADER: credential.token,
        }


class Preferences:
    """User preferences kept next to the credential but never cleared with it."""

    def __init__(self, store: MemoryStore):
        self._store = store

    @property
    def remembered_username(self) -> Optional[str]:
        return self._store.get_item(REMEMBERED_USERNAME_KEY)

    def remember_username(self, username: Optional[str]) -> None:
        if username:
            self._store.set_item(REMEMBERED_USERNAME_KEY, username)
        else:
            self._store.remove_item(REMEMBERED_USERNAME_KEY)

    @property
    def theme(self) -> str:
        return self._store.get_item(THEME_KEY) or "dark"

    @theme.setter
    def theme(self, value: str) -> None:
        if value not in ("dark", "light"):
            raise ValueError(f"unknown theme {value!r}")
        self._store.set_item(THEME_KEY, value)

    @property
    def sidebar_pinned(self) -> bool:
        return self._store.get_item(SIDEBAR_PINNED_KEY) == "true"

    @sidebar_pinned.setter
    def sidebar_pinned(self, value: bool) -> None:
        self._store.set_item(SIDEBAR_PINNED_KEY, "true" if value else "false")
