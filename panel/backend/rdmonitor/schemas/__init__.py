from rdmonitor.schemas.settings import (
    ConnectionStatusResponse,
    SettingsResponse,
    SettingsUpdate,
    Token,
    UnlockRequest,
)
from rdmonitor.schemas.system import HealthResponse
from rdmonitor.schemas.traffic import (
    HostListResponse,
    TrafficDetailsResponse,
    TrafficSummaryResponse,
)

__all__ = [
    "ConnectionStatusResponse", "SettingsResponse", "SettingsUpdate", "Token", "UnlockRequest",
    "HealthResponse",
    "HostListResponse", "TrafficDetailsResponse", "TrafficSummaryResponse",
]
