"""One coroutine per remote traffic query; no retries, errors propagate to the caller."""
import logging

from rdmonitor.services.rd_client import RDClient
from rdmonitor.services.traffic_decode import (
    HostTraffic,
    TrafficDay,
    decode_host_traffic,
    parse_traffic_days,
    sum_traffic_details,
)
from rdmonitor.services.windows import TrafficWindow

logger = logging.getLogger(__name__)

TRAFFIC_DETAILS_ENDPOINT = "traffic/details"
HOST_TRAFFIC_ENDPOINT = "traffic"


async def fetch_window_bytes(client: RDClient, window: TrafficWindow) -> int:
    """Total bytes downloaded over `window`."""
    payload = await client.get_json(
        TRAFFIC_DETAILS_ENDPOINT,
        params={"start": window.start_date, "end": window.end_date},
    )
    total = sum_traffic_details(payload)
    logger.debug("Traffic for %s (%s..%s): %d bytes", window.label.value, window.start_date, window.end_date, total)
    return total


async def fetch_host_traffic(client: RDClient) -> list[HostTraffic]:
    payload = await client.get_json(HOST_TRAFFIC_ENDPOINT)
    return decode_host_traffic(payload)


async def fetch_traffic_details(client: RDClient, start_date: str, end_date: str) -> list[TrafficDay]:
    """Per-day breakdown between two YYYY-MM-DD dates, newest day first."""
    payload = await client.get_json(
        TRAFFIC_DETAILS_ENDPOINT,
        params={"start": start_date, "end": end_date},
    )
    return parse_traffic_days(payload)
