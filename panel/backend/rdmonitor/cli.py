"""CLI for the panel: manage stored settings and print traffic from a terminal."""
import argparse
import asyncio
import sys

from rdmonitor.config import settings
from rdmonitor.database import SessionLocal, Base, engine
from rdmonitor.services.aggregator import (
    CycleMode,
    SlotState,
    TrafficAggregator,
    default_client_factory,
    load_traffic_details,
)
from rdmonitor.services.demo_data import traffic_account
from rdmonitor.services.settings_store import API_KEY, DEMO_MODE, load_monitor_config, set_pin, set_value
from rdmonitor.utils.units import format_bytes

WINDOW_TITLES = {
    "today": "Today",
    "this_month": "This month",
    "last_31_days": "Last 31 days",
    "last_7_days": "Last 7 days",
}


def _load_config():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        return load_monitor_config(db)
    finally:
        db.close()


def cmd_set_api_key(args: argparse.Namespace) -> int:
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        set_value(db, API_KEY, args.api_key.strip())
        print("API key saved")
        return 0
    finally:
        db.close()


def cmd_set_demo(args: argparse.Namespace) -> int:
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        set_value(db, DEMO_MODE, "1" if args.enabled == "on" else "0")
        print(f"Demo mode {args.enabled}")
        return 0
    finally:
        db.close()


def cmd_set_pin(args: argparse.Namespace) -> int:
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        set_pin(db, args.pin)
    except ValueError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    finally:
        db.close()
    print("PIN updated" if args.pin else "PIN removed")
    return 0


async def _summary(config) -> int:
    aggregator = TrafficAggregator()
    cycle = aggregator.refresh(config)
    await cycle.wait()
    title = "Traffic (demo)" if config.is_demo else "Traffic"
    print(title)
    for window in cycle.windows:
        slot = cycle.summary.slots[window.label]
        name = WINDOW_TITLES[window.label.value]
        if slot.state is SlotState.ERROR:
            print(f"  {name:<14} error: {slot.error.message}")
        else:
            print(f"  {name:<14} {format_bytes(slot.value)}")
    if cycle.hosts:
        print("Hosts")
        for entry in cycle.hosts:
            print(f"  {entry.host:<20} {entry.used_gb:8.2f} / {entry.limit_gb:.2f}")
    if cycle.mode is CycleMode.DEMO:
        account = traffic_account(cycle.daily_records)
        print(f"Account: {format_bytes(account['used'])} used of {format_bytes(account['limit'])}")
    if cycle.last_error:
        print(f"error: {cycle.last_error}", file=sys.stderr)
        return 1
    return 0


def cmd_summary(args: argparse.Namespace) -> int:
    return asyncio.run(_summary(_load_config()))


async def _details(config) -> int:
    days = await load_traffic_details(config)
    if not days:
        print("No traffic data available")
        return 0
    for day in days:
        print(f"{day.date}  {format_bytes(day.total_bytes)}")
        for host in day.hosts:
            print(f"    {host.name:<20} {format_bytes(host.bytes)}")
    return 0


def cmd_details(args: argparse.Namespace) -> int:
    return asyncio.run(_details(_load_config()))


async def _test_connection(config) -> int:
    if config.is_demo:
        print("Demo mode active - using sample data")
        return 0
    async with default_client_factory(config) as client:
        result = await client.check_connection()
    if result["auth_valid"]:
        print(f"Connected as {result['username']}" if result["username"] else "Connected successfully")
        return 0
    print(f"error: {result['error']}", file=sys.stderr)
    return 1


def cmd_test_connection(args: argparse.Namespace) -> int:
    return asyncio.run(_test_connection(_load_config()))


def cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("rdmonitor.main:app", host=args.host or settings.host, port=args.port or settings.port)
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="RD Monitor CLI")
    sub = parser.add_subparsers(dest="cmd", required=True)

    key = sub.add_parser("set-api-key", help="Store the Real-Debrid API key")
    key.add_argument("api_key", help="Private API token, or 'demo'")
    key.set_defaults(func=cmd_set_api_key)

    demo = sub.add_parser("demo", help="Turn demo mode on or off")
    demo.add_argument("enabled", choices=["on", "off"])
    demo.set_defaults(func=cmd_set_demo)

    pin = sub.add_parser("set-pin", help="Set or remove the panel unlock PIN")
    pin.add_argument("--pin", default="", help="4-digit PIN, empty to remove")
    pin.set_defaults(func=cmd_set_pin)

    summary = sub.add_parser("summary", help="Refresh and print the traffic summary")
    summary.set_defaults(func=cmd_summary)

    details = sub.add_parser("details", help="Print per-day traffic for the last 31 days")
    details.set_defaults(func=cmd_details)

    test = sub.add_parser("test-connection", help="Check the stored API key")
    test.set_defaults(func=cmd_test_connection)

    serve = sub.add_parser("serve", help="Run the HTTP panel")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)
    serve.set_defaults(func=cmd_serve)

    args = parser.parse_args()
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
