# src/gateway_dashboard/client/ap_config.py

import asyncio
import copy
import logging
from typing import Any, Dict, Optional

from .api import ClientError, DashboardClient
from .sync import Resource

log = logging.getLogger(__name__)

SSID_BANDS = ("2.4ghzSsid", "5.0ghzSsid", "6.0ghzSsid")
RADIO_BANDS = ("2.4ghz", "5.0ghz", "6.0ghz")

SAVE_SETTLE_SECONDS = 2.0

DRIVER_BUSY_MESSAGE = (
    "The gateway's WiFi driver is currently busy processing another request. "
    "Please wait a few seconds and try again."
)
SESSION_EXPIRED_MESSAGE = "Session expired. Please log in again."


class ConfirmationRequired(Exception):
    """Raised when an edit needs the user to confirm before it is applied."""


class DraftError(Exception):
    pass


def friendly_save_error(message: Optional[str]) -> str:
    text = (message or "").lower()
    if "driver is busy" in text:
        return DRIVER_BUSY_MESSAGE
    if "not authenticated" in text:
        return SESSION_EXPIRED_MESSAGE
    return message or "Failed to save settings"


class ApConfigEditor:
    """
    Unsaved local copy of the gateway's AP configuration.

    Saving sends the whole object. Any fresh copy from the server replaces
    the draft outright, so concurrent edits elsewhere are last-write-wins.
    """

    def __init__(self, api: DashboardClient, resource: Resource, settle_seconds: float = SAVE_SETTLE_SECONDS):
        self.api = api
        self.resource = resource
        self.settle_seconds = settle_seconds
        self.draft: Optional[Dict[str, Any]] = None
        self.dirty = False
        self.save_error: Optional[str] = None
        self.saving = False
        self._seen: Any = None
        resource_data = resource.data
        if resource_data is not None:
            self.load(resource_data)

    # --- Loading ---

    def load(self, config: Dict[str, Any]) -> None:
        self.draft = copy.deepcopy(config)
        self._seen = config
        self.dirty = False

    def on_resource_update(self, resource: Resource) -> None:
        """Subscriber hook: a new server copy wins over any local edits."""
        if resource.data is not None and resource.data is not self._seen:
            self.load(resource.data)

    async def refresh(self) -> None:
        self.draft = None
        self.dirty = False
        data = await self.resource.refresh()
        if data is not None:
            self.load(data)

    def discard(self) -> None:
        if self.resource.data is not None:
            self.load(self.resource.data)

    # --- Edits ---

    @property
    def ssid(self) -> Dict[str, Any]:
        if not self.draft or not self.draft.get("ssids"):
            raise DraftError("No SSID configuration loaded")
        return self.draft["ssids"][0]

    def enabled_ssid_bands(self) -> int:
        return sum(1 for band in SSID_BANDS if self.ssid.get(band))

    def toggle_ssid_band(self, band: str) -> bool:
        """Returns False when the change was refused (last enabled band)."""
        if band not in SSID_BANDS:
            raise ValueError(f"unknown SSID band {band!r}")
        ssid = self.ssid
        current = bool(ssid.get(band))
        if current and self.enabled_ssid_bands() <= 1:
            return False
        ssid[band] = not current
        self.dirty = True
        return True

    def toggle_radio(self, band: str, confirm: bool = False) -> None:
        if band not in RADIO_BANDS:
            raise ValueError(f"unknown radio band {band!r}")
        if not self.draft or band not in self.draft:
            raise DraftError(f"Radio {band} is not present in this configuration")
        radio = self.draft[band]
        currently_enabled = bool(radio.get("isRadioEnabled"))
        if band == "5.0ghz" and currently_enabled and not confirm:
            raise ConfirmationRequired(
                "Disabling the 5 GHz radio disconnects devices using it and can make "
                "this dashboard unreachable over WiFi."
            )
        radio["isRadioEnabled"] = not currently_enabled
        self.dirty = True

    def toggle_broadcast(self) -> None:
        ssid = self.ssid
        ssid["isBroadcastEnabled"] = not ssid.get("isBroadcastEnabled")
        self.dirty = True

    def set_ssid_name(self, name: str) -> None:
        self.ssid["ssidName"] = name
        self.dirty = True

    def set_wpa_key(self, key: str) -> None:
        self.ssid["wpaKey"] = key
        self.dirty = True

    # --- Save ---

    async def save(self) -> bool:
        if self.draft is None or not self.dirty:
            return False

        self.saving = True
        self.save_error = None
        try:
            await self.api.save_ap_config(self.draft)
        except ClientError as e:
            self.save_error = friendly_save_error(e.message)
            log.warning("Saving AP config failed: %s", e.message)
            return False
        finally:
            self.saving = False

        self.dirty = False
        # The gateway needs a moment before reads reflect the new settings.
        await asyncio.sleep(self.settle_seconds)
        data = await self.resource.refresh()
        if data is not None:
            self.load(data)
        return True
