from typing import Optional

from pydantic import BaseModel


class WindowResponse(BaseModel):
    label: str
    start_date: str
    end_date: str
    state: str  # pending, ok, error
    bytes: int = 0
    formatted: str = "0 B"
    error: Optional[str] = None
    error_kind: Optional[str] = None


class HostTrafficResponse(BaseModel):
    host: str
    used_gb: float
    limit_gb: float


class TrafficSummaryResponse(BaseModel):
    generation: int
    mode: str  # live, demo, unconfigured
    started_at: str
    pending: bool = False
    today_bytes: int = 0
    this_month_bytes: int = 0
    last_31_days_bytes: int = 0
    last_7_days_bytes: int = 0
    windows: list[WindowResponse] = []
    hosts_state: str = "pending"
    hosts_error: Optional[str] = None
    last_error: Optional[str] = None
    refresh_seconds: int = 300


class HostListResponse(BaseModel):
    generation: int
    state: str
    hosts: list[HostTrafficResponse] = []
    error: Optional[str] = None


class TrafficHostBytesResponse(BaseModel):
    name: str
    bytes: int
    formatted: str


class TrafficDayResponse(BaseModel):
    date: str
    hosts: list[TrafficHostBytesResponse] = []
    total_bytes: int = 0
    formatted: str = "0 B"


class TrafficDetailsResponse(BaseModel):
    days: list[TrafficDayResponse] = []
    demo: bool = False
