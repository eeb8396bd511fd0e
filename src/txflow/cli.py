"""Command line interface.

Usage:
    txflow hash payload.json
    txflow hash --kind task task.json
    txflow status <tx_hash>
    txflow watch <tx_hash> --poll --timeout 120
    txflow pending --jwt <token> --once
    txflow serve-mock --port 8080

Environment variables (TXFLOW_ prefix, see txflow.config):
    TXFLOW_GATEWAY_URL: Gateway base URL
    TXFLOW_GATEWAY_API_KEY: Gateway API key
    TXFLOW_USE_STREAMING: Watch via server-sent events (default: true)
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Optional

from txflow.config import get_settings
from txflow.gateway.client import GatewayClient
from txflow.gateway.contracts import TxStatus
from txflow.hashing import compute_hash, compute_slt_hash, compute_task_hash
from txflow.pending import PendingTransactionRegistry
from txflow.session import Session
from txflow.watcher.factory import create_watcher

logger = logging.getLogger(__name__)


def _configure_logging() -> None:
    settings = get_settings()
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _print_status(status: TxStatus) -> None:
    print(json.dumps(status.model_dump(mode="json", exclude_none=True), indent=2))


def _read_json(path: str):
    if path == "-":
        return json.load(sys.stdin)
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def cmd_hash(args: argparse.Namespace) -> int:
    payload = _read_json(args.file)
    if args.kind == "task":
        print(compute_task_hash(payload))
    elif args.kind == "slt":
        print(compute_slt_hash(payload))
    else:
        print(compute_hash(payload))
    return 0


async def cmd_status(args: argparse.Namespace) -> int:
    async with GatewayClient() as gateway:
        status = await gateway.get_status(args.tx_hash)
    if status is None:
        print(f"Transaction {args.tx_hash} is not registered")
        return 1
    _print_status(status)
    return 0


async def cmd_watch(args: argparse.Namespace) -> int:
    settings = get_settings()

    async with GatewayClient() as gateway:
        watcher = create_watcher(gateway, settings, streaming=False if args.poll else None)

        def on_update(status: TxStatus) -> None:
            print(f"{status.tx_hash}: {status.state.value}")

        watch = watcher.watch(
            args.tx_hash,
            on_update=on_update,
            timeout=args.timeout or settings.watch_timeout,
        )
        try:
            final = await watch.wait()
        finally:
            await watcher.aclose()

    if final is None:
        return 1
    if final.is_failed:
        print(f"Failed: {final.last_error or final.state.value}")
        return 1
    print(f"Confirmed: {settings.explorer_link(final.tx_hash) or final.tx_hash}")
    return 0


async def cmd_pending(args: argparse.Namespace) -> int:
    session = Session(args.jwt)
    if not session.is_authenticated:
        print("A JWT is required (--jwt)")
        return 1

    async with GatewayClient(session=session) as gateway:
        registry = PendingTransactionRegistry(gateway, session)

        if args.once:
            for status in await registry.fetch():
                _print_status(status)
            return 0

        def on_change(items: list[TxStatus]) -> None:
            print(f"{len(items)} pending")
            for item in items:
                print(f"  {item.tx_hash} {item.tx_type} {item.state.value}")

        pending = registry.list(on_change=on_change)
        try:
            while pending.is_running:
                await asyncio.sleep(1)
        finally:
            await pending.aclose()
    return 0


def cmd_serve_mock(args: argparse.Namespace) -> int:
    import uvicorn

    from txflow.mock_gateway import create_app

    settings = get_settings()
    app = create_app(step_delay=args.step_delay)
    uvicorn.run(
        app,
        host=args.host or settings.mock_host,
        port=args.port or settings.mock_port,
        log_level="debug" if settings.debug else "info",
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="txflow", description="Transaction lifecycle tools")
    subparsers = parser.add_subparsers(dest="command", required=True)

    hash_parser = subparsers.add_parser("hash", help="Compute a content hash")
    hash_parser.add_argument("file", help="JSON file, or - for stdin")
    hash_parser.add_argument(
        "--kind",
        choices=["content", "task", "slt"],
        default="content",
        help="content: normalized JSON; task: project task id; slt: module token name",
    )

    status_parser = subparsers.add_parser("status", help="Show a transaction's status")
    status_parser.add_argument("tx_hash")

    watch_parser = subparsers.add_parser("watch", help="Watch a transaction until terminal")
    watch_parser.add_argument("tx_hash")
    watch_parser.add_argument("--poll", action="store_true", help="Poll instead of streaming")
    watch_parser.add_argument("--timeout", type=float, help="Seconds to wait (default: settings)")

    pending_parser = subparsers.add_parser("pending", help="List pending transactions")
    pending_parser.add_argument("--jwt", help="User JWT")
    pending_parser.add_argument("--once", action="store_true", help="Fetch once and exit")

    mock_parser = subparsers.add_parser("serve-mock", help="Run the mock gateway")
    mock_parser.add_argument("--host", help="Bind host (default: settings.mock_host)")
    mock_parser.add_argument("--port", type=int, help="Bind port (default: settings.mock_port)")
    mock_parser.add_argument(
        "--step-delay", type=float, help="Seconds per state advance (default: settings)"
    )

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    _configure_logging()

    if args.command == "hash":
        return cmd_hash(args)
    if args.command == "serve-mock":
        return cmd_serve_mock(args)

    commands = {
        "status": cmd_status,
        "watch": cmd_watch,
        "pending": cmd_pending,
    }
    try:
        return asyncio.run(commands[args.command](args))
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 130
