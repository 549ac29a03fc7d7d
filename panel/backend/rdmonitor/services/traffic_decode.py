"""
Decoders for the traffic endpoints.

`traffic/details` maps YYYY-MM-DD -> day object, where a day carries either a
direct `bytes` count or a `hosts` mapping of host -> {"bytes": n}. The byte
counts come back as ints, floats or numeric strings depending on the day.

`traffic` maps host -> quota record discriminated by `type`
("gigabytes" or "links").
"""
import re
from dataclasses import dataclass, field
from typing import Any

from rdmonitor.services.rd_client import ParseFailure
from rdmonitor.utils.units import bytes_to_gb

FALLBACK_HOST_NAME = "Real-Debrid"
# plain decimal integer: no whitespace, underscores or fractional part
INTEGER_STRING = re.compile(r"[+-]?[0-9]+")


@dataclass(frozen=True)
class HostTraffic:
    host: str
    used_gb: float
    limit_gb: float


@dataclass(frozen=True)
class TrafficHostBytes:
    name: str
    bytes: int


@dataclass
class TrafficDay:
    date: str
    hosts: list[TrafficHostBytes] = field(default_factory=list)
    total_bytes: int = 0


def decode_byte_count(value: Any) -> int:
    """Normalize one `bytes` field to an int.

    Tries int, then float (truncated), then integer string, in that order.
    Anything else is a ParseFailure.
    """
    if isinstance(value, bool):
        raise ParseFailure(f"Invalid byte count: {value!r}")
    if isinstance(value, int):
        result = value
    elif isinstance(value, float):
        if value != value or value in (float("inf"), float("-inf")):
            raise ParseFailure(f"Invalid byte count: {value!r}")
        result = int(value)
    elif isinstance(value, str):
        if INTEGER_STRING.fullmatch(value) is None:
            raise ParseFailure(f"Invalid byte count: {value!r}")
        result = int(value)
    else:
        raise ParseFailure(f"Invalid byte count: {value!r}")
    if result < 0:
        raise ParseFailure(f"Negative byte count: {value!r}")
    return result


def _as_number(value: Any) -> float:
    # Quota fields fall back to zero when absent or not numeric
    if isinstance(value, bool) or value is None:
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return 0.0
    return 0.0


def _details_mapping(payload: Any) -> dict:
    # An account without traffic gets an empty JSON array instead of an object
    if isinstance(payload, list) and not payload:
        return {}
    if not isinstance(payload, dict):
        raise ParseFailure("Traffic details payload is not an object")
    return payload


def _host_bytes(hosts: Any) -> list[TrafficHostBytes]:
    if not isinstance(hosts, dict):
        return []
    rows = []
    for name, host_data in hosts.items():
        if not isinstance(host_data, dict) or host_data.get("bytes") is None:
            continue
        rows.append(TrafficHostBytes(name=name, bytes=decode_byte_count(host_data["bytes"])))
    return rows


def day_bytes(day: dict) -> int:
    """Total bytes of one day: the direct count if present, otherwise the hosts sum."""
    if day.get("bytes") is not None:
        return decode_byte_count(day["bytes"])
    return sum(row.bytes for row in _host_bytes(day.get("hosts")))


def sum_traffic_details(payload: Any) -> int:
    """Sum every day of a `traffic/details` response into one byte count."""
    total = 0
    for day in _details_mapping(payload).values():
        if not isinstance(day, dict):
            continue
        total += day_bytes(day)
    return total


def parse_traffic_days(payload: Any) -> list[TrafficDay]:
    """Per-day, per-host breakdown of a `traffic/details` response, newest day first."""
    days = []
    for date_str, day in _details_mapping(payload).items():
        if not isinstance(day, dict):
            continue
        hosts = _host_bytes(day.get("hosts"))
        total = sum(row.bytes for row in hosts)
        if total == 0 and day.get("bytes") is not None:
            total = decode_byte_count(day["bytes"])
            hosts = [TrafficHostBytes(name=FALLBACK_HOST_NAME, bytes=total)]
        if total > 0:
            hosts.sort(key=lambda row: row.bytes, reverse=True)
            days.append(TrafficDay(date=date_str, hosts=hosts, total_bytes=total))
    days.sort(key=lambda d: d.date, reverse=True)
    return days


def decode_host_entry(host: str, record: Any) -> HostTraffic | None:
    """One `traffic` entry, or None when its type is unknown or it carries no usage."""
    if not isinstance(record, dict):
        return None
    kind = record.get("type")
    if kind == "gigabytes":
        used_gb = bytes_to_gb(_as_number(record.get("bytes")))
        limit_gb = _as_number(record.get("limit"))
    elif kind == "links":
        links = _as_number(record.get("links"))
        limit = _as_number(record.get("limit"))
        if links <= 0 and limit <= 0:
            return None
        # Link quotas are shown as a percentage of the limit
        used_gb = links / limit * 100 if limit > 0 else 0.0
        limit_gb = 100.0
    else:
        return None
    used_gb = max(used_gb, 0.0)
    limit_gb = max(limit_gb, 0.0)
    if used_gb > 0 or limit_gb > 0:
        return HostTraffic(host=host, used_gb=used_gb, limit_gb=limit_gb)
    return None


def sort_host_traffic(entries: list[HostTraffic]) -> list[HostTraffic]:
    return sorted(entries, key=lambda entry: entry.used_gb, reverse=True)


def decode_host_traffic(payload: Any) -> list[HostTraffic]:
    """Normalize a `traffic` response into a list sorted by usage, highest first."""
    if isinstance(payload, list) and not payload:
        return []
    if not isinstance(payload, dict):
        raise ParseFailure("Host traffic payload is not an object")
    entries = []
    for host, record in payload.items():
        entry = decode_host_entry(host, record)
        if entry is not None:
            entries.append(entry)
    return sort_host_traffic(entries)
