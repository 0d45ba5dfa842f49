from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import signal
import sys
from pathlib import Path
from typing import Any, Optional

from .context import Paths, RpcdContext
from .exceptions import RpcdError
from .permissions import PermissionManager
from .rpc import RpcHandler
from .server import VERSION, HTTPServer
from .uci import UciConfig

logger = logging.getLogger(__name__)


def _default_state_dir() -> Path:
    """Fallback to /var/lib/rpcd (production) or .state (dev) depending on permissions."""
    if os.geteuid() == 0:
        return Path("/var/lib/rpcd")
    return Path.cwd() / ".state"


STATE_DIR = Path(os.environ.get("RPCD_STATE_DIR", _default_state_dir()))
HOST = os.environ.get("RPCD_HOST", "127.0.0.1")
PORT = int(os.environ.get("RPCD_PORT", "8089"))


class RpcdApp:
    """Assembles context, RPC handler and HTTP server and exposes async lifecycle."""

    def __init__(
        self,
        *,
        state_dir: Path | None = None,
        config_dir: Path | None = None,
        host: str | None = None,
        port: int | None = None,
        paths: Paths | None = None,
    ) -> None:
        self.state_dir = state_dir or STATE_DIR
        self.state_dir.mkdir(exist_ok=True, parents=True)
        paths = paths or Paths.from_env()
        permission_manager = PermissionManager(self.state_dir / "permissions.json")
        self.context = RpcdContext(
            state_dir=self.state_dir,
            paths=paths,
            config=UciConfig(config_dir or paths.config_dir),
            permission_manager=permission_manager,
        )
        self.rpc = RpcHandler(self.context)
        self.http_server = HTTPServer(self.rpc, host=host or HOST, port=port or PORT)

    async def start(self) -> None:
        await self.http_server.start()

    async def stop(self) -> None:
        await self.http_server.stop()


def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Host introspection and control over JSON-RPC")
    parser.add_argument("--host", default=None, help=f"bind address (default {HOST})")
    parser.add_argument("--port", type=int, default=None, help=f"HTTP port (default {PORT})")
    parser.add_argument("--state-dir", type=Path, default=None, help="override state directory")
    parser.add_argument("--config-dir", type=Path, default=None, help="override UCI config directory")
    parser.add_argument("--call", metavar="OBJECT.METHOD", help="run a single call and print the result")
    parser.add_argument("--args", default="{}", help="JSON arguments for --call")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    return parser.parse_args(argv)


def run_call(app: RpcdApp, target: str, raw_args: str) -> int:
    obj, _, method = target.rpartition(".")
    try:
        arguments = json.loads(raw_args)
    except json.JSONDecodeError as e:
        print(f"invalid --args: {e}", file=sys.stderr)
        return 2
    try:
        result = app.rpc.call(obj, method, arguments)
    except RpcdError as e:
        print(json.dumps(e.to_dict(), indent=2), file=sys.stderr)
        return 1
    print(json.dumps(result, indent=2))
    return 0


async def serve(app: RpcdApp) -> None:
    await app.start()

    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()

    def _handle_signal(signum: int, _frame: Any | None) -> None:
        logger.info(f"Received signal {signum}, shutting down")
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _handle_signal, sig, None)
        except NotImplementedError:
            pass

    await stop_event.wait()
    await app.stop()


def main(argv: Optional[list] = None) -> int:
    """Entry point for the rpcd-lite command."""
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )

    app = RpcdApp(
        state_dir=args.state_dir,
        config_dir=args.config_dir,
        host=args.host,
        port=args.port,
    )

    if args.call:
        return run_call(app, args.call, args.args)

    logger.info(f"Starting rpcd-lite {VERSION}")
    try:
        asyncio.run(serve(app))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    return 0


if __name__ == "__main__":
    sys.exit(main())
