"""CLI tool for admin operations.

Usage:
    python -m smart_dca.cli serve [--host HOST] [--port PORT]
    python -m smart_dca.cli generate-key
    python -m smart_dca.cli list-positions [OWNER]
    python -m smart_dca.cli delete-position POSITION_ID
    python -m smart_dca.cli run-sweep
"""

import asyncio
import sys

from cryptography.fernet import Fernet

from smart_dca.config import settings
from smart_dca.utils.constants import PRICE_PRECISION
from smart_dca.utils.logging import setup_logging

COMMANDS = ("serve", "generate-key", "list-positions", "delete-position", "run-sweep")


def generate_key():
    """Print a new Fernet key for DCA_ENCRYPTION_KEY."""
    print(Fernet.generate_key().decode())


def serve(args: list[str]):
    import uvicorn

    host = "0.0.0.0"
    port = 8000
    if "--host" in args:
        host = args[args.index("--host") + 1]
    if "--port" in args:
        port = int(args[args.index("--port") + 1])
    uvicorn.run("smart_dca.main:app", host=host, port=port)


def _services():
    from smart_dca.container import build_services

    setup_logging()
    services = build_services(settings)
    services.store.init()
    return services


def list_positions(args: list[str]):
    services = _services()
    engine = services.position_engine
    positions = engine.get_user_positions(args[0]) if args else engine.get_active_positions()
    if not positions:
        print("No positions.")
        return

    for p in positions:
        targets = "/".join(t["symbol"] for t in p.target_tokens)
        print(
            f"{p.id}  {p.status.value:<9}  {p.owner[:12]}  {p.source_token}->{targets}  "
            f"{p.executed_periods}/{p.total_periods}  invested={p.total_invested}  "
            f"avg={p.average_price / PRICE_PRECISION:.6f}"
        )


def delete_position(args: list[str]):
    if not args:
        print("Usage: python -m smart_dca.cli delete-position POSITION_ID")
        sys.exit(1)

    services = _services()
    position = services.store.get(args[0])
    if position is None:
        print(f"Position '{args[0]}' not found.")
        sys.exit(1)

    confirm = input(f"Delete {position.id} ({position.status.value}, owner {position.owner})? [y/N] ")
    if confirm.strip().lower() != "y":
        print("Aborted.")
        return
    services.store.delete(position.id)
    print(f"Position '{position.id}' deleted.")


def run_sweep():
    """Run one execute sweep and one vault snapshot immediately."""
    services = _services()

    async def _run():
        try:
            report = await services.scheduler.run_execute_sweep()
            snapshot = await services.scheduler.run_yield_sweep()
        finally:
            await services.close()
        return report, snapshot

    report, snapshot = asyncio.run(_run())
    if report is not None:
        print(
            f"Checked {report.checked}, executed {report.executed}, completed {report.completed}, "
            f"failed {report.failed}, skipped {report.skipped}"
        )
    if snapshot is not None:
        print(f"Vault snapshot recorded: total_assets={snapshot.total_assets}")


def main():
    if len(sys.argv) < 2:
        print("Usage: python -m smart_dca.cli <command>")
        print(f"Commands: {', '.join(COMMANDS)}")
        sys.exit(1)

    command = sys.argv[1]
    args = sys.argv[2:]
    if command == "serve":
        serve(args)
    elif command == "generate-key":
        generate_key()
    elif command == "list-positions":
        list_positions(args)
    elif command == "delete-position":
        delete_position(args)
    elif command == "run-sweep":
        run_sweep()
    else:
        print(f"Unknown command: {command}")
        sys.exit(1)


if __name__ == "__main__":
    main()
