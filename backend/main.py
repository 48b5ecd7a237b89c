from __future__ import annotations

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv
import os
import logging
from typing import Any, Dict, Optional

from datetime import datetime
from zoneinfo import ZoneInfo

from config import get_data_dir, get_line_config, get_timezone_name
from data_cache import DataCache
from position_simulator import PositionSimulator, VehicleResponse, VehiclesResponse
from window_scheduler import WindowScheduler

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

load_dotenv()

TZ = ZoneInfo(get_timezone_name())

app = FastAPI()

data_cache = DataCache(get_data_dir())
scheduler: Optional[WindowScheduler] = None


@app.on_event("startup")
async def startup_event():
    global scheduler
    data_cache.load_all()

    scheduler = WindowScheduler(data_cache, tz=TZ)
    # 起動直後に1回適用してから周期ポーリングに入る
    scheduler.poll()
    scheduler.start()

    app.state.simulator = PositionSimulator(data_cache, tz=TZ)
    logger.info(
        "Data loaded: %d lines, %d directions",
        len(data_cache.lines),
        len(data_cache.directions),
    )


@app.on_event("shutdown")
async def shutdown_event():
    if scheduler is not None:
        scheduler.stop()


# CORS 設定
_default_origins = "http://localhost:3000"
_raw_origins = os.getenv("FRONTEND_URL", _default_origins)
frontend_urls = [
    origin.strip()
    for origin in _raw_origins.split(",")
    if origin.strip()
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=frontend_urls,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/api/health")
async def health():
    return {"status": "ok"}


@app.get("/api/lines")
async def get_lines():
    logger.info("GET /api/lines called")

    colors = data_cache.get_line_color_map()

    def to_line_summary(line_id: str) -> Dict[str, Any]:
        conf = get_line_config(line_id)
        return {
            "id": line_id,
            "name": conf.name if conf else line_id,
            "color": colors.get(line_id, "#ffffff"),
            "is_ring": data_cache.is_ring(line_id),
            "directions": [d.label for d in data_cache.directions_for(line_id)],
            "active_window": data_cache.applied_windows.get(line_id),
        }

    return {"lines": [to_line_summary(line_id) for line_id in data_cache.line_ids()]}


@app.get("/api/lines/{line_id}/intervals")
async def get_line_intervals(line_id: str):
    logger.info("GET /api/lines/%s/intervals", line_id)

    if not data_cache.directions_for(line_id):
        raise HTTPException(status_code=404, detail=f"Line not found: {line_id}")

    weekday = datetime.now(TZ).isoweekday()
    windows = data_cache.catalog.windows_for(line_id, weekday)
    return {
        "line_id": line_id,
        "day_of_week": weekday,
        "active_window": data_cache.applied_windows.get(line_id),
        "windows": {
            key: [
                {
                    "station_range": list(seg.station_range) if seg.station_range else None,
                    "minutes": seg.minutes,
                }
                for seg in window.segments
            ]
            for key, window in windows.items()
        },
    }


@app.get("/api/vehicles", response_model=VehiclesResponse)
async def get_vehicles(at: Optional[str] = Query(default=None)):
    """
    指定時刻（省略時は現在時刻）に走行中の全編成を返す。
    at は ISO8601（例: 2025-01-20T08:00:00+08:00）。
    """
    now = datetime.now(TZ)
    if at:
        try:
            now = datetime.fromisoformat(at)
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Invalid 'at' parameter: {at}")
        if now.tzinfo is None:
            now = now.replace(tzinfo=TZ)

    simulator: PositionSimulator = app.state.simulator
    vehicles = simulator.query(now)
    return VehiclesResponse(
        vehicles=[VehicleResponse.from_dataclass(v) for v in vehicles],
        count=len(vehicles),
        timestamp=now.isoformat(),
    )
