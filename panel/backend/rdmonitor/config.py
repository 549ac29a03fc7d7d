"""Panel configuration from environment."""
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database (settings store)
    database_url: str = "sqlite:///./rdmonitor.db"

    # JWT (PIN unlock)
    secret_key: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 1440  # 24h

    # Remote API
    api_base_url: str = "https://api.real-debrid.com/rest/1.0/"
    request_timeout: float = 30.0
    connection_test_timeout: float = 10.0

    # Initial values for the settings store, used until changed through the panel
    default_api_key: str = ""
    default_demo_mode: bool = False

    # Background refresh loop; live cadence can be overridden from the settings store
    background_refresh: bool = True
    live_refresh_seconds: int = 300
    demo_refresh_seconds: int = 60

    # Demo mode simulated latency (seconds)
    demo_delay_min: float = 0.5
    demo_delay_max: float = 2.0

    # Server
    host: str = "0.0.0.0"
    port: int = 8080


settings = Settings()
