"""Synthetic traffic used in demo mode instead of the remote API."""
import asyncio
import random
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from rdmonitor.services.traffic_decode import HostTraffic, TrafficDay, TrafficHostBytes, sort_host_traffic
from rdmonitor.services.windows import DATE_FORMAT, WindowLabel, build_windows

GIB = 1024 * 1024 * 1024

DEMO_DAYS = 30
DEMO_HOSTS = [
    "mega.nz",
    "1fichier.com",
    "rapidgator.net",
    "turbobit.net",
    "nitroflare.com",
    "uploaded.net",
    "katfile.com",
]
# Popularity of DEMO_HOSTS, same order
HOST_WEIGHTS = [0.30, 0.25, 0.20, 0.15, 0.05, 0.03, 0.02]
# Per-host usage range (GB) for the host chart, decaying with popularity
HOST_USAGE_RANGES = [(45, 85), (25, 65), (15, 45), (10, 35), (5, 25), (2, 15), (1, 8)]
HOST_LIMIT_RANGE = (150, 1000)

WEEKEND_RANGE_GB = (8.0, 25.0)
WEEKDAY_RANGE_GB = (2.0, 18.0)
SPIKE_CHANCE = 0.15
SPIKE_FACTOR = (1.5, 3.0)
TODAY_MIN_GB = 2.0

SECOND_HOST_CHANCE = 0.3
SECOND_HOSTS = DEMO_HOSTS[:4]
SECOND_HOST_SHARE = (0.1, 0.8)

ACCOUNT_LIMIT_BYTES = 1000 * GIB


@dataclass(frozen=True)
class DailyTrafficRecord:
    date: str
    bytes: int
    host: str
    type: str = "download"


def is_demo_key(api_key: str) -> bool:
    return (api_key or "").lower() == "demo"


class SyntheticTrafficGenerator:
    """Randomized traffic with a fixed shape.

    Pass `seed` (or an `rng`) to get reproducible output.
    """

    def __init__(self, rng: Optional[random.Random] = None, seed: Optional[int] = None):
        self.rng = rng or random.Random(seed)

    async def simulate_delay(self, min_seconds: float = 0.5, max_seconds: float = 2.0) -> None:
        await asyncio.sleep(self.rng.uniform(min_seconds, max_seconds))

    def pick_host(self) -> str:
        draw = self.rng.random()
        cumulative = 0.0
        for host, weight in zip(DEMO_HOSTS, HOST_WEIGHTS):
            cumulative += weight
            if draw <= cumulative:
                return host
        return DEMO_HOSTS[0]

    def daily_gb(self, day: datetime, offset: int) -> float:
        low, high = WEEKEND_RANGE_GB if day.weekday() >= 5 else WEEKDAY_RANGE_GB
        gb = self.rng.uniform(low, high)
        if self.rng.random() < SPIKE_CHANCE:
            gb *= self.rng.uniform(*SPIKE_FACTOR)
        if offset == 0:
            gb = max(gb, TODAY_MIN_GB)
        return gb

    def generate(self, now: datetime) -> list[DailyTrafficRecord]:
        """30 daily records from `now` back to `now - 29 days`, newest first."""
        records = []
        for offset in range(DEMO_DAYS):
            day = now - timedelta(days=offset)
            gb = self.daily_gb(day, offset)
            host = self.pick_host()
            records.append(
                DailyTrafficRecord(
                    date=day.strftime(DATE_FORMAT),
                    bytes=int(gb * GIB),
                    host=host,
                )
            )
        return records

    def host_usage(self) -> list[HostTraffic]:
        """Per-host usage for the host chart.

        Drawn independently of the daily records, so the two do not add up.
        """
        entries = []
        for host, (low, high) in zip(DEMO_HOSTS, HOST_USAGE_RANGES):
            entries.append(
                HostTraffic(
                    host=host,
                    used_gb=self.rng.uniform(low, high),
                    limit_gb=self.rng.uniform(*HOST_LIMIT_RANGE),
                )
            )
        return sort_host_traffic(entries)

    def traffic_days(self, records: list[DailyTrafficRecord]) -> list[TrafficDay]:
        """Group records by date; some days get a smaller second host."""
        by_date: dict[str, list[TrafficHostBytes]] = {}
        for record in records:
            hosts = by_date.get(record.date)
            if hosts is not None:
                hosts.append(TrafficHostBytes(name=record.host, bytes=record.bytes))
                continue
            hosts = [TrafficHostBytes(name=record.host, bytes=record.bytes)]
            if self.rng.random() < SECOND_HOST_CHANCE:
                extra_host = self.rng.choice(SECOND_HOSTS)
                if extra_host != record.host:
                    extra_bytes = int(self.rng.uniform(*SECOND_HOST_SHARE) * record.bytes)
                    hosts.append(TrafficHostBytes(name=extra_host, bytes=extra_bytes))
            by_date[record.date] = hosts

        days = []
        for date_str, hosts in by_date.items():
            hosts.sort(key=lambda row: row.bytes, reverse=True)
            days.append(TrafficDay(date=date_str, hosts=hosts, total_bytes=sum(row.bytes for row in hosts)))
        days.sort(key=lambda d: d.date, reverse=True)
        return days


def summarize(records: list[DailyTrafficRecord], now: datetime) -> dict[WindowLabel, int]:
    """Bucket records into the four reporting windows and sum bytes per window."""
    totals = {}
    for window in build_windows(now):
        totals[window.label] = sum(r.bytes for r in records if window.contains_date(r.date))
    return totals


def traffic_account(records: list[DailyTrafficRecord]) -> dict:
    """Account-level quota view of the records against a 1 TB limit."""
    used = sum(r.bytes for r in records)
    return {
        "left": max(0, ACCOUNT_LIMIT_BYTES - used),
        "used": used,
        "limit": ACCOUNT_LIMIT_BYTES,
        "type": "premium",
        "reset": "daily",
    }
