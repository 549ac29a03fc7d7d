"""Persistent user settings and the immutable config snapshot handed to the aggregator."""
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from rdmonitor.config import settings
from rdmonitor.models.setting import StoredSetting
from rdmonitor.services.demo_data import is_demo_key
from rdmonitor.utils.auth import hash_pin

API_KEY = "api_key"
DEMO_MODE = "demo_mode"
PIN_HASH = "pin_hash"
AUTO_REFRESH = "auto_refresh"
REFRESH_INTERVAL = "refresh_interval"
TRAFFIC_WARNING_THRESHOLD = "traffic_warning_threshold"

DEFAULTS = {
    AUTO_REFRESH: "1",
    REFRESH_INTERVAL: str(settings.live_refresh_seconds),
    TRAFFIC_WARNING_THRESHOLD: "80.0",
}


@dataclass(frozen=True)
class MonitorConfig:
    api_key: str = ""
    demo_mode: bool = False
    api_base_url: str = settings.api_base_url
    request_timeout: float = settings.request_timeout
    live_refresh_seconds: int = settings.live_refresh_seconds

    @property
    def is_demo(self) -> bool:
        return self.demo_mode or is_demo_key(self.api_key)

    @property
    def refresh_seconds(self) -> int:
        return settings.demo_refresh_seconds if self.is_demo else self.live_refresh_seconds


def _to_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def get_value(db: Session, key: str) -> Optional[str]:
    row = db.get(StoredSetting, key)
    if row is not None:
        return row.value
    return DEFAULTS.get(key)


def set_value(db: Session, key: str, value: str) -> None:
    row = db.get(StoredSetting, key)
    if row is None:
        db.add(StoredSetting(key=key, value=value))
    else:
        row.value = value
    db.commit()


def delete_value(db: Session, key: str) -> None:
    row = db.get(StoredSetting, key)
    if row is not None:
        db.delete(row)
        db.commit()


def get_api_key(db: Session) -> str:
    value = get_value(db, API_KEY)
    return value if value is not None else settings.default_api_key


def get_demo_mode(db: Session) -> bool:
    value = get_value(db, DEMO_MODE)
    return _to_bool(value) if value is not None else settings.default_demo_mode


def load_monitor_config(db: Session) -> MonitorConfig:
    return MonitorConfig(
        api_key=get_api_key(db),
        demo_mode=get_demo_mode(db),
        api_base_url=settings.api_base_url,
        request_timeout=settings.request_timeout,
        live_refresh_seconds=int(get_value(db, REFRESH_INTERVAL)),
    )


def get_pin_hash(db: Session) -> Optional[str]:
    return get_value(db, PIN_HASH) or None


def set_pin(db: Session, pin: Optional[str]) -> None:
    """Set the unlock PIN; None or empty removes it."""
    if pin:
        set_value(db, PIN_HASH, hash_pin(pin))
    else:
        delete_value(db, PIN_HASH)


def read_settings(db: Session) -> dict:
    return {
        "api_key_set": bool(get_api_key(db)),
        "demo_mode": get_demo_mode(db),
        "pin_set": get_pin_hash(db) is not None,
        "auto_refresh": _to_bool(get_value(db, AUTO_REFRESH)),
        "refresh_interval": int(get_value(db, REFRESH_INTERVAL)),
        "traffic_warning_threshold": float(get_value(db, TRAFFIC_WARNING_THRESHOLD)),
    }
