#!/usr/bin/env python3
"""
Devices API Server -- customers, sites and devices behind cookie sessions.

Usage:
  python main.py serve
  python main.py serve --port 8443
  python main.py serve --port 8080 --no-tls
  python main.py init-db
  python main.py version

Environment variables (prefix DEVICES_SERVER_, .env supported):
  JWT_SECRET     Token signing secret, at least 16 characters. Required unless DEBUG=true.
  ADMIN_SECRET   Shared secret for the /admin endpoints. Required unless DEBUG=true.
  PORT           Listen port. Required to serve unless --port is given.

Stopping:
  Ctrl-C / SIGTERM, or create the stop file (default tmp/stop). The file is
  polled once per second and removed at the next startup.
"""

import argparse
import asyncio
import logging
import sys
import time
from pathlib import Path
from typing import Optional

from core.config import VERSION, get_settings
from core.shutdown import clear_stale_stop_file, wait_for_stop_file

logger = logging.getLogger("devicesapi.server")


def _fail(message: str) -> int:
    print(f"  [!] {message}", file=sys.stderr)
    return 1


# ---------------------------------------------------------------------------
# serve
# ---------------------------------------------------------------------------


async def _serve(server, stop_file: Path) -> None:
    """Run uvicorn until it exits on a signal or the stop file appears."""

    def _stop(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Stop-file watcher failed, shutting down: %s", exc, exc_info=exc)
        server.should_exit = True

    watcher = asyncio.create_task(wait_for_stop_file(stop_file))
    watcher.add_done_callback(_stop)
    try:
        await server.serve()
    finally:
        watcher.cancel()


def cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    settings = get_settings()
    port: Optional[int] = args.port or settings.port
    if not port:
        return _fail("No port configured. Set DEVICES_SERVER_PORT or pass --port.")

    tls = settings.tls_enabled and not args.no_tls
    certfile = args.certfile or settings.tls_cert_file
    keyfile = args.keyfile or settings.tls_key_file
    if tls:
        for label, path in (("certificate", certfile), ("key", keyfile)):
            if not Path(path).is_file():
                return _fail(f"TLS {label} file '{path}' not found. Pass --no-tls to serve plain HTTP.")

    stop_file = Path(args.stop_file or settings.stop_file)
    clear_stale_stop_file(stop_file)

    from api.main import app

    config = uvicorn.Config(
        app,
        host=args.host or settings.host,
        port=port,
        ssl_certfile=certfile if tls else None,
        ssl_keyfile=keyfile if tls else None,
        log_config=None,
    )
    server = uvicorn.Server(config)

    started = time.monotonic()
    logger.info("Starting %s on %s:%d (tls=%s)", settings.app_name, config.host, port, tls)
    asyncio.run(_serve(server, stop_file))
    logger.info("Server stopped after %.1fs", time.monotonic() - started)
    return 0


# ---------------------------------------------------------------------------
# init-db
# ---------------------------------------------------------------------------


def cmd_init_db(args: argparse.Namespace) -> int:
    from inventory.store import InventoryStore

    store = InventoryStore(db_url=args.database_url)
    try:
        print(f"Created tables: {', '.join(store.created_tables) or '(none)'}")
        print(f"Existing tables: {', '.join(store.existing_tables) or '(none)'}")
    finally:
        store.close()
    return 0


def cmd_version(args: argparse.Namespace) -> int:
    print(f"devices-api {VERSION}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="devices-api",
        description="CRUD API for customers, sites and devices.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  DEVICES_SERVER_PORT=8443 python main.py serve
  python main.py serve --port 8080 --no-tls
  python main.py serve --stop-file /run/devices-api/stop
  python main.py init-db
        """,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    serve = sub.add_parser("serve", help="Run the HTTPS server")
    serve.add_argument("--host", default=None, help="Bind address (default: DEVICES_SERVER_HOST or 0.0.0.0)")
    serve.add_argument("--port", type=int, default=None, help="Listen port (default: DEVICES_SERVER_PORT)")
    serve.add_argument("--no-tls", action="store_true", help="Serve plain HTTP")
    serve.add_argument("--certfile", metavar="PATH", default=None, help="TLS certificate (default: server.crt)")
    serve.add_argument("--keyfile", metavar="PATH", default=None, help="TLS private key (default: server.key)")
    serve.add_argument("--stop-file", metavar="PATH", default=None, help="Sentinel file that stops the server")
    serve.set_defaults(func=cmd_serve)

    init_db = sub.add_parser("init-db", help="Create missing tables and report what exists")
    init_db.add_argument("--database-url", default=None, help="SQLAlchemy URL (default: DEVICES_SERVER_DATABASE_URL)")
    init_db.set_defaults(func=cmd_init_db)

    version = sub.add_parser("version", help="Print the version")
    version.set_defaults(func=cmd_version)
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "func", None):
        parser.print_help()
        return 0

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    try:
        return args.func(args)
    except ValueError as exc:
        # Settings validation (missing secrets in production mode)
        return _fail(str(exc))


if __name__ == "__main__":
    sys.exit(main())
