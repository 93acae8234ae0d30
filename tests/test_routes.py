from conftest import (
    CELL_INFO,
    CLIENTS,
    DASHBOARD_URL,
    GATEWAY_INFO,
    GATEWAY_PASSWORD,
    GATEWAY_TOKEN,
    SIGNAL,
    SIM_INFO,
)


def test_gateway_info_needs_no_auth(client, gateway):
    resp = client.get("/api/router/gateway")
    assert resp.status_code == 200
    assert resp.json() == GATEWAY_INFO
    assert "Authorization" not in gateway.calls[0].headers


def test_signal_info(client):
    resp = client.get("/api/router/signal")
    assert resp.status_code == 200
    assert resp.json() == {"signal": SIGNAL}


def test_authenticated_routes(client, auth_headers):
    assert client.get("/api/router/cell", headers=auth_headers).json() == CELL_INFO
    assert client.get("/api/router/clients", headers=auth_headers).json() == CLIENTS
    assert client.get("/api/router/sim", headers=auth_headers).json() == SIM_INFO
    telemetry = client.get("/api/router/telemetry", headers=auth_headers).json()
    assert set(telemetry) == {"cell", "clients", "sim"}


def test_version(client):
    assert client.get("/api/router/version").json() == {"version": 1}


def test_protected_route_without_token_is_401_before_gateway(client, gateway):
    resp = client.get("/api/router/cell", headers={"X-Gateway-IP": "192.168.12.1"})
    assert resp.status_code == 401
    assert resp.json() == {"error": "Not authenticated"}
    assert gateway.calls == []


def test_gateway_rejected_token_maps_to_401(client, auth_headers):
    headers = {**auth_headers, "X-Auth-Token": "expired"}
    resp = client.get("/api/router/sim", headers=headers)
    assert resp.status_code == 401
    assert resp.json() == {"error": "Not authenticated"}


def test_public_gateway_address_replaced_by_default(client, gateway):
    resp = client.get("/api/router/gateway", headers={"X-Gateway-IP": "8.8.8.8"})
    assert resp.status_code == 200
    assert gateway.calls[0].url.host == "192.168.12.1"


def test_valid_gateway_address_is_used(client, gateway):
    client.get("/api/router/version", headers={"X-Gateway-IP": "10.0.0.1"})
    assert gateway.calls[0].url.host == "10.0.0.1"


def test_repeated_gets_are_identical(client, auth_headers):
    first = client.get("/api/router/cell", headers=auth_headers)
    second = client.get("/api/router/cell", headers=auth_headers)
    assert first.content == second.content


def test_upstream_timeout_is_500_with_distinct_message(client, gateway):
    gateway.hang("GET", "/TMI/v1/gateway?get=all")
    resp = client.get("/api/router/gateway")
    assert resp.status_code == 500
    assert "not responding" in resp.json()["error"]


def test_upstream_unreachable_is_500(client, gateway):
    gateway.online = False
    resp = client.get("/api/router/gateway")
    assert resp.status_code == 500
    assert resp.json() == {"error": "Unable to reach gateway at 192.168.12.1"}


def test_upstream_error_message_is_relayed(client, gateway, auth_headers):
    gateway.reply("POST", "/TMI/v1/network/configuration/v2?set=ap", status=500,
                  json={"result": {"error": 9, "message": "WiFi driver is busy"}})
    resp = client.post("/api/router/ap", json={"ssids": []}, headers=auth_headers)
    assert resp.status_code == 500
    assert resp.json() == {"error": "WiFi driver is busy"}


def test_set_ap_config(client, gateway, auth_headers):
    config = client.get("/api/router/ap", headers=auth_headers).json()
    config["ssids"][0]["ssidName"] = "NewName"
    resp = client.post("/api/router/ap", json=config, headers=auth_headers)
    assert resp.status_code == 200
    assert resp.json() == {"success": True}
    assert gateway.ap_config["ssids"][0]["ssidName"] == "NewName"


def test_reboot(client, gateway, auth_headers):
    resp = client.post("/api/router/reboot", headers=auth_headers)
    assert resp.json() == {"success": True}
    assert gateway.paths() == ["/TMI/v1/gateway/reset?set=reboot"]


def test_login_success(client, gateway):
    resp = client.post(
        "/api/router/login",
        json={"username": "admin", "password": GATEWAY_PASSWORD, "routerIp": "192.168.12.1"},
        headers={"Origin": DASHBOARD_URL},
    )
    assert resp.status_code == 200
    assert resp.json() == {
        "success": True,
        "token": GATEWAY_TOKEN,
        "expiration": 1700003600,
        "routerIp": "192.168.12.1",
        "username": "admin",
    }


def test_login_with_public_address_uses_default(client, gateway):
    resp = client.post(
        "/api/router/login",
        json={"username": "admin", "password": GATEWAY_PASSWORD, "routerIp": "8.8.8.8"},
        headers={"Origin": DASHBOARD_URL},
    )
    assert resp.json()["routerIp"] == "192.168.12.1"
    assert gateway.calls[0].url.host == "192.168.12.1"


def test_login_bad_password(client):
    resp = client.post(
        "/api/router/login",
        json={"username": "admin", "password": "nope"},
        headers={"Origin": DASHBOARD_URL},
    )
    assert resp.status_code == 401
    assert resp.json() == {"success": False, "error": "Invalid password"}


def test_login_gateway_down_does_not_leak_details(client, gateway):
    gateway.online = False
    resp = client.post(
        "/api/router/login",
        json={"username": "admin", "password": GATEWAY_PASSWORD},
        headers={"Origin": DASHBOARD_URL},
    )
    assert resp.status_code == 500
    assert resp.json() == {"success": False, "error": "Connection failed. Is the gateway reachable?"}


def test_logout(client):
    resp = client.post("/api/router/logout", headers={"Origin": DASHBOARD_URL})
    assert resp.json() == {"success": True}


def test_health_online_and_offline(client, gateway):
    assert client.get("/api/router/health").json() == {"status": "online", "ip": "192.168.12.1"}
    gateway.online = False
    body = client.get("/api/router/health").json()
    assert body["status"] == "offline"
    assert body["ip"] == "192.168.12.1"


def test_csrf_rejects_foreign_origin(client, gateway, auth_headers):
    headers = {**auth_headers, "Origin": "https://evil.example"}
    resp = client.post("/api/router/reboot", headers=headers)
    assert resp.status_code == 403
    assert resp.json() == {"error": "CSRF validation failed"}
    assert gateway.calls == []


def test_csrf_accepts_matching_origin_then_checks_auth(client):
    resp = client.post("/api/router/reboot", headers={"Origin": "https://gateway.example"})
    # Passed the CSRF check; failed the separate token check.
    assert resp.status_code == 401


def test_csrf_accepts_matching_referer(client, auth_headers):
    headers = {k: v for k, v in auth_headers.items() if k != "Origin"}
    headers["Referer"] = f"{DASHBOARD_URL}/wifi"
    resp = client.post("/api/router/reboot", headers=headers)
    assert resp.status_code == 200


def test_csrf_rejects_missing_origin_and_referer(client, auth_headers):
    headers = {k: v for k, v in auth_headers.items() if k != "Origin"}
    resp = client.post("/api/router/reboot", headers=headers)
    assert resp.status_code == 403


def test_csrf_ignores_userinfo_trick(client, auth_headers):
    headers = {**auth_headers, "Origin": "https://gateway.example@evil.example"}
    assert client.post("/api/router/reboot", headers=headers).status_code == 403


def test_get_requests_skip_csrf(client):
    resp = client.get("/api/router/version", headers={"Origin": "https://evil.example"})
    assert resp.status_code == 200


def test_leading_zero_gateway_address_is_canonicalised(client, gateway):
    resp = client.get("/api/router/gateway", headers={"X-Gateway-IP": "192.168.012.001"})
    assert resp.status_code == 200
    assert gateway.calls[0].url.host == "192.168.12.1"

    resp = client.get("/api/router/health", headers={"X-Gateway-IP": "010.000.000.001"})
    assert resp.json() == {"status": "online", "ip": "10.0.0.1"}


def test_login_with_non_ascii_digits_uses_default(client, gateway):
    resp = client.post(
        "/api/router/login",
        json={"username": "admin", "password": GATEWAY_PASSWORD, "routerIp": "١٩٢.١٦٨.١.١"},
        headers={"Origin": DASHBOARD_URL},
    )
    assert resp.status_code == 200
    assert resp.json()["routerIp"] == "192.168.12.1"
    assert gateway.calls[0].url.host == "192.168.12.1"
