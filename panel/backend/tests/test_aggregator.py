import asyncio
from datetime import datetime

import httpx
import pytest

from rdmonitor.services.aggregator import CycleMode, SlotState, TrafficAggregator, load_traffic_details
from rdmonitor.services.demo_data import GIB, SyntheticTrafficGenerator
from rdmonitor.services.rd_client import ErrorKind
from rdmonitor.services.settings_store import MonitorConfig
from rdmonitor.services.windows import WindowLabel

NOW = datetime(2024, 3, 15, 12, 0)

# start dates of each window for NOW
TODAY_START = "2024-03-15"
MONTH_START = "2024-03-01"
LAST_31_START = "2024-02-13"
LAST_7_START = "2024-03-08"

WINDOW_BYTES = {TODAY_START: 100, MONTH_START: 3000, LAST_31_START: 9000, LAST_7_START: 1500}

HOSTS_PAYLOAD = {
    "mega.nz": {"type": "gigabytes", "bytes": 2147483648, "limit": 100.0},
    "x.com": {"type": "links", "links": 50, "limit": 200},
}

LIVE = MonitorConfig(api_key="live-key")


def details_by_start(request: httpx.Request) -> httpx.Response:
    start = request.url.params["start"]
    return httpx.Response(200, json={start: {"bytes": WINDOW_BYTES[start]}})


@pytest.mark.asyncio
async def test_live_cycle_fills_every_window(fake_api, aggregator):
    fake_api.route("traffic/details", details_by_start)
    fake_api.json("traffic", HOSTS_PAYLOAD)

    cycle = aggregator.refresh(LIVE, NOW)
    assert cycle.mode is CycleMode.LIVE
    await cycle.wait()

    summary = cycle.summary
    assert summary.today_bytes == 100
    assert summary.this_month_bytes == 3000
    assert summary.last_31_days_bytes == 9000
    assert summary.last_7_days_bytes == 1500
    assert all(slot.state is SlotState.OK for slot in summary.slots.values())
    assert [h.host for h in cycle.hosts] == ["x.com", "mega.nz"]
    assert cycle.hosts_state is SlotState.OK
    assert cycle.last_error is None
    assert not cycle.pending

    details_requests = [r for r in fake_api.requests if r.url.path.endswith("traffic/details")]
    assert len(details_requests) == 4
    assert all(r.headers["Authorization"] == "Bearer live-key" for r in fake_api.requests)


@pytest.mark.asyncio
async def test_one_failed_window_leaves_siblings_intact(fake_api, aggregator):
    def handler(request):
        if request.url.params["start"] == TODAY_START:
            return httpx.Response(429)
        return details_by_start(request)

    fake_api.route("traffic/details", handler)
    fake_api.json("traffic", HOSTS_PAYLOAD)

    cycle = aggregator.refresh(LIVE, NOW)
    await cycle.wait()

    errors = cycle.summary.errors
    assert list(errors) == [WindowLabel.TODAY]
    assert errors[WindowLabel.TODAY].kind is ErrorKind.RATE_LIMITED
    assert cycle.summary.today_bytes == 0
    assert cycle.summary.this_month_bytes == 3000
    assert cycle.summary.last_31_days_bytes == 9000
    assert cycle.summary.last_7_days_bytes == 1500
    assert cycle.last_error == "Rate limit exceeded. Please wait a moment."
    assert len(cycle.hosts) == 2


@pytest.mark.asyncio
async def test_host_failure_empties_host_list_only(fake_api, aggregator):
    fake_api.route("traffic/details", details_by_start)
    fake_api.json("traffic", {"error": "bad_token"}, status_code=401)

    cycle = aggregator.refresh(LIVE, NOW)
    await cycle.wait()

    assert cycle.hosts == []
    assert cycle.hosts_state is SlotState.ERROR
    assert cycle.hosts_error.kind is ErrorKind.UNAUTHORIZED
    assert cycle.summary.errors == {}
    assert cycle.summary.last_31_days_bytes == 9000


@pytest.mark.asyncio
async def test_parse_failure_is_reported_per_window(fake_api, aggregator):
    def handler(request):
        if request.url.params["start"] == LAST_7_START:
            return httpx.Response(200, content=b"not json")
        return details_by_start(request)

    fake_api.route("traffic/details", handler)
    fake_api.json("traffic", HOSTS_PAYLOAD)

    cycle = aggregator.refresh(LIVE, NOW)
    await cycle.wait()

    assert cycle.summary.slots[WindowLabel.LAST_7_DAYS].error.kind is ErrorKind.PARSE_FAILURE
    assert cycle.summary.today_bytes == 100


@pytest.mark.asyncio
async def test_partial_summary_is_visible_mid_flight(fake_api, aggregator):
    release = asyncio.Event()

    async def handler(request):
        if request.url.params["start"] == LAST_31_START:
            await release.wait()
        return details_by_start(request)

    fake_api.route("traffic/details", handler)
    fake_api.json("traffic", HOSTS_PAYLOAD)

    cycle = aggregator.refresh(LIVE, NOW)
    for _ in range(100):
        if cycle.summary.slots[WindowLabel.LAST_7_DAYS].state is SlotState.OK and cycle.hosts:
            if cycle.summary.today_bytes and cycle.summary.this_month_bytes:
                break
        await asyncio.sleep(0.01)

    assert cycle.pending
    assert cycle.summary.today_bytes == 100
    assert cycle.summary.this_month_bytes == 3000
    assert cycle.summary.last_7_days_bytes == 1500
    assert cycle.summary.slots[WindowLabel.LAST_31_DAYS].state is SlotState.PENDING
    assert cycle.summary.last_31_days_bytes == 0

    release.set()
    await cycle.wait()
    assert cycle.summary.last_31_days_bytes == 9000
    assert not cycle.pending


@pytest.mark.asyncio
async def test_superseded_cycle_results_are_dropped(fake_api):
    release_a = asyncio.Event()

    async def handler(request):
        if request.headers["Authorization"] == "Bearer key-a":
            await release_a.wait()
            start = request.url.params["start"]
            return httpx.Response(200, json={start: {"bytes": 777_777}})
        return details_by_start(request)

    async def hosts_handler(request):
        if request.headers["Authorization"] == "Bearer key-a":
            await release_a.wait()
            return httpx.Response(200, json={"stale.host": {"type": "gigabytes", "bytes": GIB, "limit": 1}})
        return httpx.Response(200, json=HOSTS_PAYLOAD)

    fake_api.route("traffic/details", handler)
    fake_api.route("traffic", hosts_handler)
    aggregator = TrafficAggregator(client_factory=fake_api.client_factory(), cancel_superseded=False)

    cycle_a = aggregator.refresh(MonitorConfig(api_key="key-a"), NOW)
    cycle_b = aggregator.refresh(MonitorConfig(api_key="key-b"), NOW)
    assert cycle_b.generation > cycle_a.generation
    assert aggregator.current is cycle_b

    await cycle_b.wait()
    before = {label: slot.value for label, slot in cycle_b.summary.slots.items()}
    hosts_before = list(cycle_b.hosts)

    release_a.set()
    await cycle_a.wait()

    assert {label: slot.value for label, slot in cycle_b.summary.slots.items()} == before
    assert cycle_b.hosts == hosts_before
    assert cycle_b.summary.this_month_bytes == 3000
    # the stale cycle's own summary is not written either
    assert all(slot.state is SlotState.PENDING for slot in cycle_a.summary.slots.values())
    assert cycle_a.hosts == []
    assert aggregator.current is cycle_b


@pytest.mark.asyncio
async def test_superseded_cycle_is_cancelled_by_default(fake_api, aggregator):
    never = asyncio.Event()

    async def slow(request):
        await never.wait()
        return httpx.Response(200, json={})

    fake_api.route("traffic/details", slow)
    fake_api.route("traffic", slow)

    cycle_a = aggregator.refresh(LIVE, NOW)
    await asyncio.sleep(0)
    fake_api.route("traffic/details", details_by_start)
    fake_api.json("traffic", HOSTS_PAYLOAD)
    cycle_b = aggregator.refresh(LIVE, NOW)

    await cycle_a.wait()
    await cycle_b.wait()
    assert all(task.cancelled() or task.done() for task in cycle_a.tasks)
    assert not cycle_a.pending
    assert cycle_b.summary.today_bytes == 100


@pytest.mark.asyncio
async def test_back_to_back_refreshes_close_every_client(fake_api):
    fake_api.route("traffic/details", details_by_start)
    fake_api.json("traffic", HOSTS_PAYLOAD)
    make_client = fake_api.client_factory()
    clients = []

    def factory(config):
        client = make_client(config)
        clients.append(client)
        return client

    aggregator = TrafficAggregator(client_factory=factory)
    cycle_a = aggregator.refresh(MonitorConfig(api_key="key-a"), NOW)
    cycle_b = aggregator.refresh(MonitorConfig(api_key="key-b"), NOW)
    await cycle_a.wait()
    await cycle_b.wait()

    assert len(clients) == 2
    assert [client.closed for client in clients] == [True, True]
    assert not cycle_a.pending
    assert cycle_b.summary.today_bytes == 100


@pytest.mark.asyncio
async def test_without_api_key_no_queries_are_issued(fake_api, aggregator):
    cycle = aggregator.refresh(MonitorConfig(api_key=""), NOW)
    await cycle.wait()
    assert cycle.mode is CycleMode.UNCONFIGURED
    assert fake_api.requests == []
    assert cycle.last_error == "No API key configured"
    assert cycle.summary.today_bytes == 0
    assert not cycle.pending
    for slot in cycle.summary.slots.values():
        assert slot.state is SlotState.ERROR
        assert slot.error.kind is ErrorKind.NO_DATA
        assert slot.error.message == "No API key configured"


@pytest.mark.asyncio
@pytest.mark.parametrize("config", [MonitorConfig(api_key="DEMO"), MonitorConfig(api_key="real", demo_mode=True)])
async def test_demo_cycle_uses_generator_only(fake_api, config):
    aggregator = TrafficAggregator(
        client_factory=fake_api.client_factory(),
        generator=SyntheticTrafficGenerator(seed=11),
        demo_delay=(0, 0),
    )
    cycle = aggregator.refresh(config, NOW)
    assert cycle.mode is CycleMode.DEMO
    await cycle.wait()

    assert fake_api.requests == []
    summary = cycle.summary
    assert all(slot.state is SlotState.OK for slot in summary.slots.values())
    assert summary.today_bytes >= 2 * GIB
    assert summary.today_bytes <= summary.last_7_days_bytes <= summary.last_31_days_bytes
    assert summary.this_month_bytes <= summary.last_31_days_bytes
    assert summary.last_31_days_bytes == sum(r.bytes for r in cycle.daily_records)
    assert len(cycle.hosts) == 7
    assert cycle.last_error is None


@pytest.mark.asyncio
async def test_demo_cycle_is_reproducible_with_seed():
    totals = []
    for _ in range(2):
        aggregator = TrafficAggregator(generator=SyntheticTrafficGenerator(seed=8), demo_delay=(0, 0))
        cycle = aggregator.refresh(MonitorConfig(api_key="demo"), NOW)
        await cycle.wait()
        totals.append(({label: s.value for label, s in cycle.summary.slots.items()}, cycle.hosts))
    assert totals[0] == totals[1]


@pytest.mark.asyncio
async def test_load_traffic_details_live(fake_api):
    seen = {}

    def handler(request):
        seen.update(request.url.params)
        return httpx.Response(200, json={"2024-03-14": {"bytes": 10}, "2024-03-15": {"bytes": 20}})

    fake_api.route("traffic/details", handler)
    days = await load_traffic_details(LIVE, NOW, client_factory=fake_api.client_factory())
    assert seen == {"start": LAST_31_START, "end": "2024-03-15"}
    assert [d.date for d in days] == ["2024-03-15", "2024-03-14"]


@pytest.mark.asyncio
async def test_load_traffic_details_demo():
    days = await load_traffic_details(
        MonitorConfig(api_key="demo"),
        NOW,
        generator=SyntheticTrafficGenerator(seed=2),
        demo_delay=(0, 0),
    )
    assert len(days) == 30
    assert days[0].date == "2024-03-15"


def test_monitor_config_refresh_cadence():
    assert MonitorConfig(api_key="k").refresh_seconds == 300
    assert MonitorConfig(api_key="demo").refresh_seconds == 60
    assert MonitorConfig(demo_mode=True).refresh_seconds == 60
