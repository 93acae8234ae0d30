# src/gateway_dashboard/client/sync.py

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from ..schemas import LoginResponse
from .api import AuthExpiredError, ClientError, DashboardClient
from .session import CredentialStore

log = logging.getLogger(__name__)

DEDUPE_INTERVAL_SECONDS = 2.0
ERROR_RETRY_COUNT = 3
ERROR_RETRY_INTERVAL_SECONDS = 5.0

Fetcher = Callable[[str], Awaitable[Any]]
Subscriber = Callable[["Resource"], None]


@dataclass(frozen=True)
class ResourceSpec:
    name: str
    path: str
    interval: float


RESOURCE_SPECS: Dict[str, ResourceSpec] = {
    spec.name: spec for spec in (
        ResourceSpec("health", "/health", 5.0),
        ResourceSpec("gateway", "/gateway", 5.0),
        ResourceSpec("signal", "/signal", 3.0),
        ResourceSpec("cell", "/cell", 5.0),
        ResourceSpec("clients", "/clients", 10.0),
        ResourceSpec("sim", "/sim", 30.0),
        ResourceSpec("ap", "/ap", 30.0),
        ResourceSpec("telemetry", "/telemetry", 5.0),
        ResourceSpec("version", "/version", 60.0),
    )
}


class RedirectGuard:
    """
    Makes the session-expired reaction happen once no matter how many
    resources report it at the same time.

    All resources share one event loop and the flag is set before the first
    await, so a plain attribute is enough.
    """

    def __init__(self, credentials: CredentialStore, on_unauthorized: Callable[[], Union[None, Awaitable[None]]]):
        self._credentials = credentials
        self._on_unauthorized = on_unauthorized
        self._redirecting = False

    @property
    def redirecting(self) -> bool:
        return self._redirecting

    async def trigger(self) -> bool:
        if self._redirecting:
            return False
        self._redirecting = True
        log.warning("Session expired, clearing credential and returning to login")
        self._credentials.clear()
        result = self._on_unauthorized()
        if inspect.isawaitable(result):
            await result
        return True

    def reset(self) -> None:
        """Re-arms the guard after a fresh login."""
        self._redirecting = False


@dataclass
class FetchState:
    data: Any = None
    error: Optional[ClientError] = None
    is_validating: bool = False
    last_fetched: Optional[float] = None


class Resource:
    """
    Client-side cache entry for one polled route.

    Data from the last successful fetch stays in place while a refresh runs
    and after a refresh fails; only a successful fetch replaces it.
    """

    def __init__(
            self,
            spec: ResourceSpec,
            fetcher: Fetcher,
            guard: RedirectGuard,
            dedupe_interval: float = DEDUPE_INTERVAL_SECONDS,
            retry_count: int = ERROR_RETRY_COUNT,
            retry_interval: float = ERROR_RETRY_INTERVAL_SECONDS,
            clock: Callable[[], float] = time.monotonic,
    ):
        self.spec = spec
        self.state = FetchState()
        self._fetcher = fetcher
        self._guard = guard
        self._dedupe_interval = dedupe_interval
        self._retry_count = retry_count
        self._retry_interval = retry_interval
        self._clock = clock
        self._last_future: Optional[asyncio.Future] = None
        self._last_started: Optional[float] = None
        self._subscribers: List[Subscriber] = []
        self._poll_task: Optional[asyncio.Task] = None
        self._consecutive_errors = 0

    @property
    def name(self) -> str:
        return self.spec.name

    @property
    def data(self) -> Any:
        return self.state.data

    @property
    def error(self) -> Optional[ClientError]:
        return self.state.error

    @property
    def is_loading(self) -> bool:
        # Only the very first load counts as loading.
        return self.state.is_validating and self.state.data is None

    @property
    def is_validating(self) -> bool:
        return self.state.is_validating

    async def revalidate(self, force: bool = False) -> Any:
        """
        Fetches the resource unless a fetch started within the dedupe window,
        in which case that fetch's outcome is shared. Returns the current data.
        """
        if self._guard.redirecting:
            return self.state.data

        future = self._last_future
        in_flight = future is not None and not future.done()
        recent = (
                self._last_started is not None
                and self._clock() - self._last_started < self._dedupe_interval
        )
        if future is None or not (in_flight or (recent and not force)):
            self._last_started = self._clock()
            future = asyncio.ensure_future(self._fetch())
            self._last_future = future

        await asyncio.shield(future)
        return self.state.data

    async def refresh(self) -> Any:
        """Manual refresh; leaves the polling schedule alone."""
        return await self.revalidate(force=True)

    async def _fetch(self) -> None:
        self.state.is_validating = True
        try:
            data = await self._fetcher(self.spec.path)
        except AuthExpiredError:
            self.state.is_validating = False
            await self._guard.trigger()
            return
        except ClientError as e:
            self.state.is_validating = False
            self.state.error = e
            self._consecutive_errors += 1
            log.warning("Refresh of %s failed: %s", self.name, e.message)
            self._notify()
            return

        self.state.is_validating = False
        changed = data != self.state.data or self.state.error is not None
        self.state.data = data
        self.state.error = None
        self.state.last_fetched = time.time()
        self._consecutive_errors = 0
        if changed:
            self._notify()

    def _notify(self) -> None:
        # Snapshot: a subscriber removed while this fetch ran is not called.
        for callback in list(self._subscribers):
            try:
                callback(self)
            except Exception:
                log.exception("Subscriber of %s raised", self.name)

    # --- Subscriptions and polling ---

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Starts polling on the first subscriber. Returns the unsubscribe function."""
        self._subscribers.append(callback)
        if self._poll_task is None or self._poll_task.done():
            self._poll_task = asyncio.ensure_future(self._poll())

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)
            if not self._subscribers:
                self.stop()

        return unsubscribe

    def next_delay(self) -> float:
        if self.state.error is not None and 0 < self._consecutive_errors <= self._retry_count:
            return min(self._retry_interval, self.spec.interval)
        return self.spec.interval

    async def _poll(self) -> None:
        while True:
            await self.revalidate()
            await asyncio.sleep(self.next_delay())

    def stop(self) -> None:
        if self._poll_task is not None:
            self._poll_task.cancel()
            self._poll_task = None


class DataSync:
    """Owns every polled resource and the shared session-expired guard."""

    def __init__(
            self,
            api: DashboardClient,
            on_unauthorized: Callable[[], Union[None, Awaitable[None]]],
            dedupe_interval: float = DEDUPE_INTERVAL_SECONDS,
            specs: Optional[Dict[str, ResourceSpec]] = None,
    ):
        self.api = api
        self.guard = RedirectGuard(api.credentials, on_unauthorized)
        self.resources: Dict[str, Resource] = {
            name: Resource(spec, api.get_json, self.guard, dedupe_interval=dedupe_interval)
            for name, spec in (specs or RESOURCE_SPECS).items()
        }

    def __getitem__(self, name: str) -> Resource:
        return self.resources[name]

    def stop(self) -> None:
        for resource in self.resources.values():
            resource.stop()

    async def login(self, username: str, password: str, router_ip: str, remember_username: bool = False) -> LoginResponse:
        """Logs in through the api and re-arms the guard so polling resumes."""
        result = await self.api.login(username, password, router_ip, remember_username=remember_username)
        self.guard.reset()
        return result
