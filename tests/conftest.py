import asyncio
import copy
import json

import httpx
import pytest
from fastapi.testclient import TestClient

from gateway_dashboard.config import Settings
from gateway_dashboard.main import create_app

DASHBOARD_HOST = "gateway.example"
DASHBOARD_URL = f"http://{DASHBOARD_HOST}"
GATEWAY_TOKEN = "token-abc123"
GATEWAY_PASSWORD = "hunter2"

SIGNAL = {
    "5g": {
        "antennaUsed": "Internal_directional",
        "bands": ["n41"],
        "bars": 4.0,
        "cid": 311,
        "gNBID": 1234567,
        "rsrp": -88,
        "rsrq": -11,
        "rssi": -72,
        "sinr": 17,
    },
    "generic": {"apn": "FBB.HOME", "hasIPv6": True, "registration": "registered"},
}

GATEWAY_INFO = {
    "device": {
        "hardwareVersion": "R01",
        "macId": "AA:BB:CC:DD:EE:FF",
        "manufacturer": "Arcadyan",
        "model": "KVD21",
        "role": "gateway",
        "serial": "ABC123",
        "softwareVersion": "1.2103.0.0",
    },
    "signal": SIGNAL,
    "time": {"localTime": 1700000000, "localTimeZone": "UTC", "upTime": 93784},
}

CELL_INFO = {
    "cell": {
        "5g": {
            "bandwidth": "100M",
            "cqi": 12,
            "earfcn": "520110",
            "ecgi": "3102601234567",
            "mcc": "310",
            "mnc": "260",
            "pci": "211",
            "plmn": "310260",
            "sector": SIGNAL["5g"],
            "status": True,
            "supportedBands": ["n41", "n71"],
            "tac": "12345",
        },
        "generic": {"apn": "FBB.HOME", "hasIPv6": True, "registration": "registered", "roaming": False},
        "gps": {"latitude": 47.6, "longitude": -122.3},
    }
}

CLIENTS = {
    "clients": {
        "2.4ghz": [],
        "5.0ghz": [{"connected": True, "ipv4": "192.168.12.50", "ipv6": [], "mac": "11:22:33:44:55:66", "name": "laptop", "signal": -51}],
        "ethernet": [],
        "wifi": [],
    }
}

SIM_INFO = {"sim": {"iccId": "8901", "imei": "3567", "imsi": "3102", "msisdn": "15555550100", "status": True}}

AP_CONFIG = {
    "2.4ghz": {"isRadioEnabled": True, "channel": "Auto", "channelBandwidth": "20MHz", "mode": "auto"},
    "5.0ghz": {"isRadioEnabled": True, "channel": "Auto", "channelBandwidth": "80MHz", "mode": "auto"},
    "ssids": [
        {
            "2.4ghzSsid": True,
            "5.0ghzSsid": True,
            "encryptionMode": "AES",
            "encryptionVersion": "WPA2/WPA3",
            "guest": False,
            "isBroadcastEnabled": True,
            "ssidName": "HomeNet",
            "wpaKey": "correct horse",
        }
    ],
}


class FakeGateway:
    """Stands in for the gateway's management API behind httpx.MockTransport."""

    def __init__(self):
        self.calls = []
        self.online = True
        self.cancelled = 0
        self.ap_config = copy.deepcopy(AP_CONFIG)
        self.responses = {}
        self.reply("GET", "/TMI/v1/gateway?get=all", json=GATEWAY_INFO)
        self.reply("GET", "/TMI/v1/gateway?get=signal", json={"signal": SIGNAL})
        self.reply("GET", "/TMI/v1/network/telemetry?get=cell", json=CELL_INFO, auth=True)
        self.reply("GET", "/TMI/v1/network/telemetry?get=clients", json=CLIENTS, auth=True)
        self.reply("GET", "/TMI/v1/network/telemetry?get=sim", json=SIM_INFO, auth=True)
        self.reply("GET", "/TMI/v1/network/telemetry?get=all",
                   json={**CELL_INFO, **CLIENTS, **SIM_INFO}, auth=True)
        self.reply("GET", "/TMI/v1/version", json={"version": 1})
        self.responses[("GET", "/TMI/v1/network/configuration/v2?get=ap")] = self._get_ap
        self.responses[("POST", "/TMI/v1/network/configuration/v2?set=ap")] = self._set_ap
        self.responses[("POST", "/TMI/v1/gateway/reset?set=reboot")] = self._reboot
        self.responses[("POST", "/TMI/v1/auth/login")] = self._login

    def reply(self, method, path, status=200, json=None, text=None, auth=False):
        def handler(request):
            if auth and request.headers.get("Authorization") != f"Bearer {GATEWAY_TOKEN}":
                return httpx.Response(401, json={"result": {"error": 11, "message": "Invalid token"}})
            if text is not None:
                return httpx.Response(status, text=text)
            return httpx.Response(status, json=json)

        self.responses[(method, path)] = handler

    def hang(self, method, path, seconds=5.0):
        async def handler(request):
            try:
                await asyncio.sleep(seconds)
            except asyncio.CancelledError:
                self.cancelled += 1
                raise
            return httpx.Response(200, json={})

        self.responses[(method, path)] = handler

    def paths(self):
        return [request.url.raw_path.decode() for request in self.calls]

    def _authorized(self, request):
        return request.headers.get("Authorization") == f"Bearer {GATEWAY_TOKEN}"

    def _get_ap(self, request):
        if not self._authorized(request):
            return httpx.Response(401, json={"result": {"message": "Invalid token"}})
        return httpx.Response(200, json=self.ap_config)

    def _set_ap(self, request):
        if not self._authorized(request):
            return httpx.Response(401, json={"result": {"message": "Invalid token"}})
        self.ap_config = json.loads(request.content)
        return httpx.Response(200, text="")

    def _reboot(self, request):
        if not self._authorized(request):
            return httpx.Response(401, json={"result": {"message": "Invalid token"}})
        # The device goes away right after acknowledging.
        self.online = False
        return httpx.Response(200, text="")

    def _login(self, request):
        body = json.loads(request.content)
        if body.get("username") == "admin" and body.get("password") == GATEWAY_PASSWORD:
            return httpx.Response(200, json={"auth": {"token": GATEWAY_TOKEN, "expiration": 1700003600}})
        return httpx.Response(401, json={"result": {"error": 5, "message": "Invalid password"}})

    async def __call__(self, request):
        self.calls.append(request)
        if not self.online:
            raise httpx.ConnectError("No route to host", request=request)
        key = (request.method, request.url.raw_path.decode())
        handler = self.responses.get(key)
        if handler is None:
            return httpx.Response(404, json={"result": {"message": "Unknown endpoint"}})
        response = handler(request)
        if asyncio.iscoroutine(response):
            response = await response
        return response


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def test_settings():
    return Settings(GATEWAY_TIMEOUT_SECONDS=0.2, HEALTH_TIMEOUT_SECONDS=0.2)


@pytest.fixture
def app(gateway, test_settings):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(gateway))
    return create_app(http_client=http_client, app_settings=test_settings)


@pytest.fixture
def client(app):
    return TestClient(app, base_url=DASHBOARD_URL)


@pytest.fixture
def auth_headers():
    return {
        "X-Gateway-IP": "192.168.12.1",
        "X-Auth-Token": GATEWAY_TOKEN,
        "Origin": DASHBOARD_URL,
    }
