import asyncio
import logging
from datetime import datetime, timezone
from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from signage.config import (
    API_KEY,
    CAMPAIGN_CHECK_MS,
    EXPIRED_CAMPAIGN_CLEANUP_MS,
    EXPIRED_CAMPAIGN_GRACE_MS,
    QUIET_ACCESS_LOG,
    QUIET_WEBSOCKET_LOG,
)
from signage.db import Base, engine, ensure_sqlite_schema
from signage.db import SessionLocal
from signage.api import campaign, group, playlist, slide
from signage.services.monitor import ActiveCampaignCache, TransitionMonitor
from signage.services.reaper import ExpiryReaper
from signage.services.realtime import hub
from signage.services.storage import storage

logger = logging.getLogger(__name__)

Base.metadata.create_all(bind=engine)
ensure_sqlite_schema()
storage.ensure()

active_campaigns = ActiveCampaignCache()
monitor = TransitionMonitor(active_campaigns, SessionLocal, hub)
reaper = ExpiryReaper(active_campaigns, SessionLocal, storage, hub, EXPIRED_CAMPAIGN_GRACE_MS)
_background_tasks: list[asyncio.Task] = []

if QUIET_ACCESS_LOG:
    # Keep warning/error lines, suppress normal access noise (200/201 etc).
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

if QUIET_WEBSOCKET_LOG:
    # Players reconnect on their own; dropped sockets only add stack trace noise.
    logging.getLogger("websockets").setLevel(logging.CRITICAL)
    logging.getLogger("uvicorn.protocols.websockets").setLevel(logging.CRITICAL)


async def _run_every(interval_ms: int, tick) -> None:
    while True:
        try:
            await tick()
        except Exception:
            logger.exception("Background tick failed")
        await asyncio.sleep(interval_ms / 1000)


app = FastAPI()
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.get("/")
def root():
    return {
        "ok": True,
        "service": "signage-campaigns",
        "time_utc": datetime.now(timezone.utc).isoformat(),
        "docs": "/docs",
    }

@app.get("/healthz")
def healthz():
    return {"ok": True, "revision": hub.revision, "clients": hub.client_count}


@app.websocket("/ws/updates")
async def ws_updates(websocket: WebSocket):
    await hub.connect(websocket)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        await hub.disconnect(websocket)
    except Exception:
        await hub.disconnect(websocket)


@app.on_event("startup")
async def startup_events() -> None:
    if _background_tasks:
        return
    logger.info(
        "Starting campaign monitor every %sms and cleanup every %sms (grace %sms)",
        CAMPAIGN_CHECK_MS,
        EXPIRED_CAMPAIGN_CLEANUP_MS,
        EXPIRED_CAMPAIGN_GRACE_MS,
    )
    _background_tasks.append(asyncio.create_task(_run_every(CAMPAIGN_CHECK_MS, monitor.tick)))
    _background_tasks.append(asyncio.create_task(_run_every(EXPIRED_CAMPAIGN_CLEANUP_MS, reaper.tick)))


@app.on_event("shutdown")
async def shutdown_events() -> None:
    for task in _background_tasks:
        task.cancel()
    for task in _background_tasks:
        try:
            await task
        except asyncio.CancelledError:
            pass
    _background_tasks.clear()

@app.middleware("http")
async def api_key_middleware(request: Request, call_next):
    if not API_KEY:
        return await call_next(request)
    path = request.url.path
    if path.startswith("/docs") or path.startswith("/openapi.json") or path.startswith("/redoc") or path.startswith("/uploads"):
        return await call_next(request)
    if request.headers.get("X-API-Key") != API_KEY:
        return JSONResponse({"detail": "Unauthorized"}, status_code=401)
    return await call_next(request)

app.include_router(group.router)
app.include_router(campaign.router)
app.include_router(slide.router)
app.include_router(playlist.router)

app.mount("/uploads", StaticFiles(directory=storage.root), name="uploads")
