from typing import Optional

from pydantic import BaseModel, Field


class SettingsResponse(BaseModel):
    api_key_set: bool = False
    demo_mode: bool = False
    pin_set: bool = False
    auto_refresh: bool = True
    refresh_interval: int = 300
    traffic_warning_threshold: float = 80.0


class SettingsUpdate(BaseModel):
    api_key: Optional[str] = None
    demo_mode: Optional[bool] = None
    pin: Optional[str] = Field(None, pattern=r"^(\d{4})?$")  # empty string removes the PIN
    auto_refresh: Optional[bool] = None
    refresh_interval: Optional[int] = Field(None, ge=30, le=86400)
    traffic_warning_threshold: Optional[float] = Field(None, ge=0, le=100)


class ConnectionStatusResponse(BaseModel):
    api_reachable: bool = False
    auth_valid: bool = False
    username: Optional[str] = None
    demo: bool = False
    message: str = ""


class UnlockRequest(BaseModel):
    pin: str = Field(..., pattern=r"^\d{4}$")


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
