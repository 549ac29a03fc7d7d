from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from rdmonitor.database import get_db
from rdmonitor.routers.auth import require_unlocked
from rdmonitor.schemas.settings import ConnectionStatusResponse, SettingsResponse, SettingsUpdate
from rdmonitor.routers.traffic import get_aggregator
from rdmonitor.services.aggregator import TrafficAggregator
from rdmonitor.services.settings_store import (
    API_KEY,
    AUTO_REFRESH,
    DEMO_MODE,
    REFRESH_INTERVAL,
    TRAFFIC_WARNING_THRESHOLD,
    load_monitor_config,
    read_settings,
    set_pin,
    set_value,
)

router = APIRouter(prefix="/api/settings", tags=["settings"], dependencies=[Depends(require_unlocked)])


@router.get("", response_model=SettingsResponse)
def get_settings(db: Session = Depends(get_db)):
    return SettingsResponse(**read_settings(db))


@router.put("", response_model=SettingsResponse)
def update_settings(body: SettingsUpdate, db: Session = Depends(get_db)):
    if body.api_key is not None:
        set_value(db, API_KEY, body.api_key.strip())
    if body.demo_mode is not None:
        set_value(db, DEMO_MODE, "1" if body.demo_mode else "0")
    if body.pin is not None:
        set_pin(db, body.pin)
    if body.auto_refresh is not None:
        set_value(db, AUTO_REFRESH, "1" if body.auto_refresh else "0")
    if body.refresh_interval is not None:
        set_value(db, REFRESH_INTERVAL, str(body.refresh_interval))
    if body.traffic_warning_threshold is not None:
        set_value(db, TRAFFIC_WARNING_THRESHOLD, str(body.traffic_warning_threshold))
    return SettingsResponse(**read_settings(db))


@router.post("/test-connection", response_model=ConnectionStatusResponse)
async def test_connection(
    db: Session = Depends(get_db),
    aggregator: TrafficAggregator = Depends(get_aggregator),
):
    config = load_monitor_config(db)
    if config.is_demo:
        return ConnectionStatusResponse(demo=True, message="Demo mode active - using sample data")
    async with aggregator.client_factory(config) as client:
        result = await client.check_connection()
    if result["auth_valid"]:
        message = f"Connected as {result['username']}" if result["username"] else "Connected successfully"
    else:
        message = result["error"] or "Connection failed"
    return ConnectionStatusResponse(
        api_reachable=result["api_reachable"],
        auth_valid=result["auth_valid"],
        username=result["username"],
        message=message,
    )
