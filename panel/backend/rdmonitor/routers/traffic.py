from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from rdmonitor.database import get_db
from rdmonitor.routers.auth import require_unlocked
from rdmonitor.schemas.traffic import (
    HostListResponse,
    HostTrafficResponse,
    TrafficDayResponse,
    TrafficDetailsResponse,
    TrafficHostBytesResponse,
    TrafficSummaryResponse,
    WindowResponse,
)
from rdmonitor.services.aggregator import TrafficAggregator, TrafficCycle, load_traffic_details
from rdmonitor.services.rd_client import RDAPIError
from rdmonitor.services.settings_store import load_monitor_config
from rdmonitor.utils.units import format_bytes

router = APIRouter(prefix="/api/traffic", tags=["traffic"], dependencies=[Depends(require_unlocked)])


def get_aggregator(request: Request) -> TrafficAggregator:
    return request.app.state.aggregator


def _cycle_to_response(cycle: TrafficCycle, refresh_seconds: int) -> TrafficSummaryResponse:
    windows = []
    for window in cycle.windows:
        slot = cycle.summary.slots[window.label]
        windows.append(
            WindowResponse(
                label=window.label.value,
                start_date=window.start_date,
                end_date=window.end_date,
                state=slot.state.value,
                bytes=slot.value,
                formatted=format_bytes(slot.value),
                error=slot.error.message if slot.error else None,
                error_kind=slot.error.kind.value if slot.error else None,
            )
        )
    summary = cycle.summary
    return TrafficSummaryResponse(
        generation=cycle.generation,
        mode=cycle.mode.value,
        started_at=cycle.started_at.isoformat(),
        pending=cycle.pending,
        today_bytes=summary.today_bytes,
        this_month_bytes=summary.this_month_bytes,
        last_31_days_bytes=summary.last_31_days_bytes,
        last_7_days_bytes=summary.last_7_days_bytes,
        windows=windows,
        hosts_state=cycle.hosts_state.value,
        hosts_error=cycle.hosts_error.message if cycle.hosts_error else None,
        last_error=cycle.last_error,
        refresh_seconds=refresh_seconds,
    )


def _current_cycle(aggregator: TrafficAggregator) -> TrafficCycle:
    if aggregator.current is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No refresh has run yet")
    return aggregator.current


@router.post("/refresh", response_model=TrafficSummaryResponse)
async def refresh(
    db: Session = Depends(get_db),
    aggregator: TrafficAggregator = Depends(get_aggregator),
    wait: bool = Query(False),
):
    config = load_monitor_config(db)
    cycle = aggregator.refresh(config)
    if wait:
        await cycle.wait()
    return _cycle_to_response(cycle, config.refresh_seconds)


@router.get("/summary", response_model=TrafficSummaryResponse)
def summary(
    db: Session = Depends(get_db),
    aggregator: TrafficAggregator = Depends(get_aggregator),
):
    cycle = _current_cycle(aggregator)
    return _cycle_to_response(cycle, load_monitor_config(db).refresh_seconds)


@router.get("/hosts", response_model=HostListResponse)
def hosts(aggregator: TrafficAggregator = Depends(get_aggregator)):
    cycle = _current_cycle(aggregator)
    return HostListResponse(
        generation=cycle.generation,
        state=cycle.hosts_state.value,
        hosts=[HostTrafficResponse(host=h.host, used_gb=h.used_gb, limit_gb=h.limit_gb) for h in cycle.hosts],
        error=cycle.hosts_error.message if cycle.hosts_error else None,
    )


@router.get("/details", response_model=TrafficDetailsResponse)
async def details(
    db: Session = Depends(get_db),
    aggregator: TrafficAggregator = Depends(get_aggregator),
):
    config = load_monitor_config(db)
    try:
        days = await load_traffic_details(
            config,
            client_factory=aggregator.client_factory,
            generator=aggregator.generator,
            demo_delay=aggregator.demo_delay,
        )
    except RDAPIError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message)
    return TrafficDetailsResponse(
        demo=config.is_demo,
        days=[
            TrafficDayResponse(
                date=day.date,
                hosts=[
                    TrafficHostBytesResponse(name=h.name, bytes=h.bytes, formatted=format_bytes(h.bytes))
                    for h in day.hosts
                ],
                total_bytes=day.total_bytes,
                formatted=format_bytes(day.total_bytes),
            )
            for day in days
        ],
    )
