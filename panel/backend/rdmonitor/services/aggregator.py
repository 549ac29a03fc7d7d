"""
Traffic aggregation.

Each refresh starts a new cycle. In live mode a cycle runs five queries
concurrently (four reporting windows plus the per-host usage) and writes each
result into the cycle as soon as it resolves, so readers can see a partially
filled summary while other queries are still in flight. In demo mode one
synthetic dataset feeds every field.

Cycles are numbered. A result is only written while its cycle is still the
current one; anything arriving for a superseded cycle is dropped.
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Optional

from rdmonitor.config import settings
from rdmonitor.services.demo_data import DailyTrafficRecord, SyntheticTrafficGenerator, summarize
from rdmonitor.services.rd_client import NoData, RDAPIError, RDClient
from rdmonitor.services.settings_store import MonitorConfig
from rdmonitor.services.traffic_decode import HostTraffic, TrafficDay
from rdmonitor.services.traffic_queries import fetch_host_traffic, fetch_traffic_details, fetch_window_bytes
from rdmonitor.services.windows import DATE_FORMAT, TrafficWindow, WindowLabel, build_windows

logger = logging.getLogger(__name__)

DETAILS_DAYS = 31


class CycleMode(str, Enum):
    LIVE = "live"
    DEMO = "demo"
    UNCONFIGURED = "unconfigured"


class SlotState(str, Enum):
    PENDING = "pending"
    OK = "ok"
    ERROR = "error"


@dataclass
class WindowSlot:
    label: WindowLabel
    state: SlotState = SlotState.PENDING
    value: int = 0
    error: Optional[RDAPIError] = None


class TrafficSummary:
    """Byte totals per window. Unresolved and failed windows read as 0; check `slots` for state."""

    def __init__(self):
        self.slots = {label: WindowSlot(label) for label in WindowLabel}

    @property
    def today_bytes(self) -> int:
        return self.slots[WindowLabel.TODAY].value

    @property
    def this_month_bytes(self) -> int:
        return self.slots[WindowLabel.THIS_MONTH].value

    @property
    def last_31_days_bytes(self) -> int:
        return self.slots[WindowLabel.LAST_31_DAYS].value

    @property
    def last_7_days_bytes(self) -> int:
        return self.slots[WindowLabel.LAST_7_DAYS].value

    def set_value(self, label: WindowLabel, value: int) -> bool:
        slot = self.slots[label]
        if slot.state is not SlotState.PENDING:
            return False
        slot.value = max(0, value)
        slot.state = SlotState.OK
        return True

    def set_error(self, label: WindowLabel, error: RDAPIError) -> bool:
        slot = self.slots[label]
        if slot.state is not SlotState.PENDING:
            return False
        slot.error = error
        slot.state = SlotState.ERROR
        return True

    @property
    def errors(self) -> dict[WindowLabel, RDAPIError]:
        return {label: slot.error for label, slot in self.slots.items() if slot.state is SlotState.ERROR}


class TrafficCycle:
    def __init__(self, generation: int, mode: CycleMode, now: datetime):
        self.generation = generation
        self.mode = mode
        self.started_at = now
        self.windows: list[TrafficWindow] = build_windows(now)
        self.summary = TrafficSummary()
        self.hosts: list[HostTraffic] = []
        self.hosts_state = SlotState.PENDING
        self.hosts_error: Optional[RDAPIError] = None
        self.last_error: Optional[str] = None
        self.daily_records: list[DailyTrafficRecord] = []
        self.tasks: list[asyncio.Task] = []
        # closes the live client after the queries settle, cancel() leaves it running
        self.cleanup: Optional[asyncio.Task] = None

    @property
    def pending(self) -> bool:
        tasks = self.tasks + ([self.cleanup] if self.cleanup else [])
        return any(not task.done() for task in tasks)

    def cancel(self) -> None:
        for task in self.tasks:
            task.cancel()

    async def wait(self) -> None:
        """Wait for every query of this cycle to settle and its client to close."""
        if self.tasks:
            await asyncio.gather(*self.tasks, return_exceptions=True)
        if self.cleanup is not None:
            await asyncio.gather(self.cleanup, return_exceptions=True)


def default_client_factory(config: MonitorConfig) -> RDClient:
    return RDClient(config.api_key, base_url=config.api_base_url, timeout=config.request_timeout)


class TrafficAggregator:
    """Runs refresh cycles and keeps the latest one in `current`."""

    def __init__(
        self,
        client_factory: Callable[[MonitorConfig], RDClient] = default_client_factory,
        generator: Optional[SyntheticTrafficGenerator] = None,
        demo_delay: tuple[float, float] = None,
        cancel_superseded: bool = True,
    ):
        self.client_factory = client_factory
        self.generator = generator or SyntheticTrafficGenerator()
        self.demo_delay = demo_delay or (settings.demo_delay_min, settings.demo_delay_max)
        self.cancel_superseded = cancel_superseded
        self.current: Optional[TrafficCycle] = None
        self._generation = 0

    def is_current(self, cycle: TrafficCycle) -> bool:
        return cycle.generation == self._generation

    def refresh(self, config: MonitorConfig, now: Optional[datetime] = None) -> TrafficCycle:
        """Start a new cycle, superseding the previous one. Must run inside an event loop."""
        now = now or datetime.now().astimezone()
        self._generation += 1
        previous = self.current

        if config.is_demo:
            mode = CycleMode.DEMO
        elif config.api_key:
            mode = CycleMode.LIVE
        else:
            mode = CycleMode.UNCONFIGURED
        cycle = TrafficCycle(self._generation, mode, now)
        self.current = cycle

        if previous is not None and previous.pending:
            logger.debug("Cycle %d superseded by %d", previous.generation, cycle.generation)
            if self.cancel_superseded:
                previous.cancel()

        if mode is CycleMode.DEMO:
            cycle.tasks.append(asyncio.create_task(self._run_demo(cycle)))
        elif mode is CycleMode.LIVE:
            self._start_live(cycle, config)
        else:
            error = NoData("No API key configured")
            for window in cycle.windows:
                cycle.summary.set_error(window.label, error)
            cycle.last_error = error.message
            cycle.hosts_state = SlotState.OK
        return cycle

    def _start_live(self, cycle: TrafficCycle, config: MonitorConfig) -> None:
        client = self.client_factory(config)
        queries = [asyncio.create_task(self._run_window(cycle, client, window)) for window in cycle.windows]
        queries.append(asyncio.create_task(self._run_hosts(cycle, client)))
        cycle.tasks.extend(queries)
        cycle.cleanup = asyncio.create_task(self._close_client(client, queries))

    async def _close_client(self, client: RDClient, queries: list[asyncio.Task]) -> None:
        # gather(return_exceptions=True) also returns when the queries are cancelled
        await asyncio.gather(*queries, return_exceptions=True)
        await client.close()

    def _record_error(self, cycle: TrafficCycle, what: str, error: RDAPIError) -> None:
        logger.warning("Traffic query %s failed (cycle %d): %s", what, cycle.generation, error.message)
        cycle.last_error = error.message

    async def _run_window(self, cycle: TrafficCycle, client: RDClient, window: TrafficWindow) -> None:
        try:
            value = await fetch_window_bytes(client, window)
        except RDAPIError as e:
            if self.is_current(cycle):
                cycle.summary.set_error(window.label, e)
                self._record_error(cycle, window.label.value, e)
            return
        if not self.is_current(cycle):
            logger.debug("Dropping %s result of superseded cycle %d", window.label.value, cycle.generation)
            return
        cycle.summary.set_value(window.label, value)

    async def _run_hosts(self, cycle: TrafficCycle, client: RDClient) -> None:
        try:
            hosts = await fetch_host_traffic(client)
        except RDAPIError as e:
            if self.is_current(cycle):
                cycle.hosts = []
                cycle.hosts_error = e
                cycle.hosts_state = SlotState.ERROR
                self._record_error(cycle, "hosts", e)
            return
        if not self.is_current(cycle):
            logger.debug("Dropping host traffic of superseded cycle %d", cycle.generation)
            return
        cycle.hosts = hosts
        cycle.hosts_state = SlotState.OK

    async def _run_demo(self, cycle: TrafficCycle) -> None:
        await self.generator.simulate_delay(*self.demo_delay)
        if not self.is_current(cycle):
            return
        records = self.generator.generate(cycle.started_at)
        cycle.daily_records = records
        for label, total in summarize(records, cycle.started_at).items():
            cycle.summary.set_value(label, total)
        cycle.hosts = self.generator.host_usage()
        cycle.hosts_state = SlotState.OK


async def load_traffic_details(
    config: MonitorConfig,
    now: Optional[datetime] = None,
    client_factory: Callable[[MonitorConfig], RDClient] = default_client_factory,
    generator: Optional[SyntheticTrafficGenerator] = None,
    demo_delay: tuple[float, float] = None,
) -> list[TrafficDay]:
    """Per-day traffic over the last 31 days, newest first."""
    now = now or datetime.now().astimezone()
    if config.is_demo:
        generator = generator or SyntheticTrafficGenerator()
        await generator.simulate_delay(*(demo_delay or (settings.demo_delay_min, settings.demo_delay_max)))
        return generator.traffic_days(generator.generate(now))
    if not config.api_key:
        return []
    start = (now - timedelta(days=DETAILS_DAYS)).strftime(DATE_FORMAT)
    async with client_factory(config) as client:
        return await fetch_traffic_details(client, start, now.strftime(DATE_FORMAT))
