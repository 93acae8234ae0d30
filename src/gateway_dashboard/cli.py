# src/gateway_dashboard/cli.py

import argparse
import asyncio
import getpass
import logging
import sys

from .config import settings
from .logging_setup import setup_logging
from .client.api import ClientError, DashboardClient
from .client.display import format_uptime, summarize_signal
from .client.session import CredentialStore, Preferences
from .client.storage import JsonFileStore
from .client.sync import DataSync, Resource

log = logging.getLogger(__name__)


def _build_client(args) -> DashboardClient:
    store = JsonFileStore(args.state_file)
    return DashboardClient(
        CredentialStore(store),
        args.server,
        preferences=Preferences(store),
    )


async def _login(args) -> int:
    client = _build_client(args)
    username = args.username or client.preferences.remembered_username or "admin"
    password = args.password or getpass.getpass(f"Password for {username}@{args.ip}: ")
    try:
        result = await client.login(username, password, args.ip, remember_username=args.remember)
    except ClientError as e:
        print(f"Login failed: {e.message}", file=sys.stderr)
        return 1
    finally:
        await client.aclose()
    print(f"Logged in to {result.routerIp} as {result.username}")
    return 0


async def _logout(args) -> int:
    client = _build_client(args)
    try:
        await client.logout()
    finally:
        await client.aclose()
    print("Logged out")
    return 0


async def _reboot(args) -> int:
    client = _build_client(args)
    try:
        if not client.credentials.is_authenticated():
            print("Not logged in. Run 'gateway-dashboard login' first.", file=sys.stderr)
            return 1
        await client.reboot()
    except ClientError as e:
        print(f"Reboot failed: {e.message}", file=sys.stderr)
        return 1
    finally:
        await client.aclose()
    print("Reboot requested. The gateway will be unreachable for a few minutes.")
    return 0


async def _watch(args) -> int:
    client = _build_client(args)
    expired = asyncio.Event()

    def on_unauthorized():
        print("Session expired. Run 'gateway-dashboard login' again.", file=sys.stderr)
        expired.set()

    sync = DataSync(client, on_unauthorized)

    def show_health(resource: Resource):
        if resource.data:
            status = resource.data.get("status")
            message = resource.data.get("message")
            print(f"health: {status} ({resource.data.get('ip')})" + (f" - {message}" if message else ""))

    def show_signal(resource: Resource):
        if resource.error is not None:
            print(f"gateway: error - {resource.error.message}")
        elif resource.data:
            uptime = (resource.data.get("time") or {}).get("upTime")
            suffix = f" | up {format_uptime(uptime)}" if uptime is not None else ""
            print(f"gateway: {summarize_signal(resource.data)}{suffix}")

    sync["health"].subscribe(show_health)
    sync["gateway"].subscribe(show_signal)
    try:
        if args.duration:
            await asyncio.wait_for(expired.wait(), timeout=args.duration)
        else:
            await expired.wait()
    except asyncio.TimeoutError:
        pass
    finally:
        sync.stop()
        await client.aclose()
    return 1 if expired.is_set() else 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Gateway Dashboard")
    parser.add_argument("--server", default=settings.DASHBOARD_URL, help="Dashboard server URL")
    parser.add_argument("--state-file", default=settings.CLIENT_STATE_FILE, help="Where the client keeps its credential")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("serve", help="Run the dashboard server")

    login_parser = sub.add_parser("login", help="Log in to the gateway")
    login_parser.add_argument("--ip", default=settings.DEFAULT_GATEWAY_IP, help="Gateway address")
    login_parser.add_argument("--username", help="Gateway user (defaults to the remembered one)")
    login_parser.add_argument("--password", help="Prompted for when omitted")
    login_parser.add_argument("--remember", action="store_true", help="Remember the username")

    sub.add_parser("logout", help="Forget the stored credential")
    sub.add_parser("reboot", help="Reboot the gateway")

    watch_parser = sub.add_parser("watch", help="Print gateway health and signal as they change")
    watch_parser.add_argument("--duration", type=float, help="Stop after this many seconds")

    args = parser.parse_args(argv)
    setup_logging("DEBUG" if args.verbose else "WARNING")

    if args.command == "serve":
        from .main import run
        run()
        return 0

    commands = {"login": _login, "logout": _logout, "reboot": _reboot, "watch": _watch}
    return asyncio.run(commands[args.command](args))


if __name__ == "__main__":
    sys.exit(main())
