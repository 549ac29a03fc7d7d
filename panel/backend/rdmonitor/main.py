import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from rdmonitor.config import settings
from rdmonitor.database import Base, SessionLocal, engine
from rdmonitor.routers import auth, settings as settings_router, system, traffic
from rdmonitor.services.aggregator import TrafficAggregator
from rdmonitor.services.settings_store import AUTO_REFRESH, get_value, load_monitor_config

# When running in Docker, static/ is next to backend/ (parent of rdmonitor/)
STATIC_DIR = Path(__file__).resolve().parent.parent.parent / "static"


async def _refresh_loop(app: FastAPI):
    """Start a new traffic cycle every 300s (live) or 60s (demo)."""
    while True:
        interval = settings.live_refresh_seconds
        try:
            db = SessionLocal()
            try:
                config = load_monitor_config(db)
                auto_refresh = get_value(db, AUTO_REFRESH) == "1"
            finally:
                db.close()
            interval = config.refresh_seconds
            if auto_refresh:
                app.state.aggregator.refresh(config)
        except Exception:
            logging.exception("Traffic refresh failed")
        await asyncio.sleep(interval)


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)
    task = None
    if settings.background_refresh:
        task = asyncio.create_task(_refresh_loop(app))
    yield
    if task is not None:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
    current = app.state.aggregator.current
    if current is not None:
        current.cancel()
        await current.wait()


app = FastAPI(title="RD Monitor", lifespan=lifespan)
app.state.aggregator = TrafficAggregator()
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(system.router)
app.include_router(auth.router)
app.include_router(settings_router.router)
app.include_router(traffic.router)

if STATIC_DIR.is_dir():
    app.mount("/", StaticFiles(directory=str(STATIC_DIR), html=True), name="static")
else:

    @app.get("/")
    def root():
        return {"service": "rdmonitor-panel", "docs": "/docs"}
