# src/gateway_dashboard/main.py

import logging
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import httpx
from fastapi import APIRouter, Body, Depends, FastAPI, Header, Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response as StarletteResponse

from .config import Settings, settings
from .errors import CsrfRejectedError, GatewayError, NotAuthenticatedError
from .gateway_api import GatewayClient
from .network import resolve_gateway_ip
from .schemas import HealthStatus, LoginRequest, LoginResponse, SuccessResponse

log = logging.getLogger(__name__)

API_PREFIX = "/api/router"
GATEWAY_IP_HEADER = "X-Gateway-IP"
AUTH_TOKEN_HEADER = "X-Auth-Token"

STATE_CHANGING_METHODS = {"POST", "PUT", "PATCH", "DELETE"}
PROTECTED_API_ROUTES = (
    f"{API_PREFIX}/clients",
    f"{API_PREFIX}/cell",
    f"{API_PREFIX}/sim",
    f"{API_PREFIX}/ap",
    f"{API_PREFIX}/telemetry",
    f"{API_PREFIX}/reboot",
)

LOGIN_CONNECTION_ERROR = "Connection failed. Is the gateway reachable?"


def _host_of(url: Optional[str]) -> Optional[str]:
    if not url:
        return None
    try:
        netloc = urlparse(url).netloc
    except ValueError:
        return None
    # Drop any userinfo so "https://gateway.example@evil.example" compares as evil.example
    netloc = netloc.rsplit("@", 1)[-1]
    return netloc.lower() or None


def is_same_origin(origin: Optional[str], referer: Optional[str], host: Optional[str]) -> bool:
    if not host:
        return False
    host = host.lower()
    return _host_of(origin) == host or _host_of(referer) == host


class CsrfMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        if request.method in STATE_CHANGING_METHODS:
            if not is_same_origin(
                    request.headers.get("origin"),
                    request.headers.get("referer"),
                    request.headers.get("host"),
            ):
                log.warning(
                    "CSRF check failed for %s %s", request.method, request.url.path,
                    extra={"path": request.url.path},
                )
                err = CsrfRejectedError()
                return JSONResponse({"error": err.message}, status_code=err.status_code)
        response: StarletteResponse = await call_next(request)
        return response


class AuthHeaderMiddleware(BaseHTTPMiddleware):
    """Rejects calls to auth-only routes that arrive without a token header."""

    async def dispatch(self, request, call_next):
        path = request.url.path
        if any(path.startswith(route) for route in PROTECTED_API_ROUTES):
            if not request.headers.get(AUTH_TOKEN_HEADER):
                err = NotAuthenticatedError()
                return JSONResponse({"error": err.message}, status_code=err.status_code)
        return await call_next(request)


# --- Dependencies ---
def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_http_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.http_client


def get_gateway_ip(
        x_gateway_ip: Optional[str] = Header(None),
        app_settings: Settings = Depends(get_settings),
) -> str:
    # Re-validated on every request; a value the client stored earlier is not trusted.
    return resolve_gateway_ip(x_gateway_ip, app_settings.DEFAULT_GATEWAY_IP)


def get_gateway_client(
        gateway_ip: str = Depends(get_gateway_ip),
        x_auth_token: Optional[str] = Header(None),
        http_client: httpx.AsyncClient = Depends(get_http_client),
        app_settings: Settings = Depends(get_settings),
) -> GatewayClient:
    return GatewayClient(
        http_client,
        gateway_ip,
        token=x_auth_token,
        timeout=app_settings.GATEWAY_TIMEOUT_SECONDS,
    )


# --- Routes ---
router = APIRouter(prefix=API_PREFIX)


@router.get("/gateway")
async def gateway_info(gateway: GatewayClient = Depends(get_gateway_client)):
    return await gateway.get_gateway_info()


@router.get("/signal")
async def signal_info(gateway: GatewayClient = Depends(get_gateway_client)):
    return await gateway.get_signal_info()


@router.get("/cell")
async def cell_info(gateway: GatewayClient = Depends(get_gateway_client)):
    return await gateway.get_cell_info()


@router.get("/clients")
async def clients(gateway: GatewayClient = Depends(get_gateway_client)):
    return await gateway.get_clients()


@router.get("/sim")
async def sim_info(gateway: GatewayClient = Depends(get_gateway_client)):
    return await gateway.get_sim_info()


@router.get("/ap")
async def get_ap_config(gateway: GatewayClient = Depends(get_gateway_client)):
    return await gateway.get_ap_config()


@router.post("/ap", response_model=SuccessResponse)
async def set_ap_config(
        config: Dict[str, Any] = Body(...),
        gateway: GatewayClient = Depends(get_gateway_client),
):
    log.info("Replacing AP configuration on gateway %s", gateway.gateway_ip)
    await gateway.set_ap_config(config)
    return SuccessResponse()


@router.post("/reboot", response_model=SuccessResponse)
async def reboot(gateway: GatewayClient = Depends(get_gateway_client)):
    log.info("Rebooting gateway %s", gateway.gateway_ip)
    await gateway.reboot()
    return SuccessResponse()


@router.get("/telemetry")
async def telemetry(gateway: GatewayClient = Depends(get_gateway_client)):
    return await gateway.get_telemetry_all()


@router.get("/version")
async def version(gateway: GatewayClient = Depends(get_gateway_client)):
    return await gateway.get_version()


@router.post("/login", response_model=LoginResponse, response_model_exclude_none=True)
async def login(
        credentials: LoginRequest,
        http_client: httpx.AsyncClient = Depends(get_http_client),
        app_settings: Settings = Depends(get_settings),
):
    gateway_ip = resolve_gateway_ip(credentials.routerIp, app_settings.DEFAULT_GATEWAY_IP)
    gateway = GatewayClient(http_client, gateway_ip, timeout=app_settings.GATEWAY_TIMEOUT_SECONDS)
    try:
        auth = await gateway.login(credentials.username, credentials.password)
    except NotAuthenticatedError as e:
        return JSONResponse(
            LoginResponse(success=False, error=e.message).model_dump(exclude_none=True),
            status_code=status.HTTP_401_UNAUTHORIZED,
        )
    except GatewayError as e:
        log.error("Login to gateway %s failed: %s (%s)", gateway_ip, e.message, e.kind)
        return JSONResponse(
            LoginResponse(success=False, error=LOGIN_CONNECTION_ERROR).model_dump(exclude_none=True),
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    return LoginResponse(
        success=True,
        token=auth["token"],
        expiration=auth.get("expiration"),
        routerIp=gateway_ip,
        username=credentials.username,
    )


@router.post("/logout", response_model=SuccessResponse)
async def logout():
    # Credentials live with the client; nothing to clear here.
    return SuccessResponse()


@router.get("/health", response_model=HealthStatus, response_model_exclude_none=True)
async def health(
        gateway: GatewayClient = Depends(get_gateway_client),
        app_settings: Settings = Depends(get_settings),
):
    return await gateway.check_health(app_settings.HEALTH_TIMEOUT_SECONDS)


# --- Error handling ---
async def gateway_error_handler(request: Request, exc: GatewayError):
    log.error(
        "%s %s failed: %s (%s)", request.method, request.url.path, exc.message, exc.kind,
        extra={"path": request.url.path},
    )
    return JSONResponse({"error": exc.message}, status_code=exc.status_code)


async def unexpected_error_handler(request: Request, exc: Exception):
    log.exception("Unexpected error handling %s %s", request.method, request.url.path)
    return JSONResponse({"error": "Internal server error"}, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


# --- FastAPI App Setup ---
def create_app(
        http_client: Optional[httpx.AsyncClient] = None,
        app_settings: Optional[Settings] = None,
) -> FastAPI:
    app_settings = app_settings or settings
    app = FastAPI(
        title="Gateway Dashboard API",
        description="Proxy between the dashboard client and the gateway's local management API.",
        version="0.1.0"
    )
    app.state.settings = app_settings
    app.state.http_client = http_client or httpx.AsyncClient(
        timeout=httpx.Timeout(app_settings.GATEWAY_TIMEOUT_SECONDS)
    )

    # Added last runs first: the CSRF check happens before the token precheck.
    app.add_middleware(AuthHeaderMiddleware)
    app.add_middleware(CsrfMiddleware)

    app.add_exception_handler(GatewayError, gateway_error_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)
    app.include_router(router)

    @app.on_event("startup")
    async def startup_event():
        log.info(
            "Gateway Dashboard starting: default gateway %s, timeout %ss",
            app_settings.DEFAULT_GATEWAY_IP,
            app_settings.GATEWAY_TIMEOUT_SECONDS,
        )

    @app.on_event("shutdown")
    async def shutdown_event():
        await app.state.http_client.aclose()

    return app


app = create_app()


def run():
    import uvicorn

    from .logging_setup import setup_logging

    setup_logging()
    uvicorn.run(app, host=settings.HOST, port=settings.PORT, log_config=None)
