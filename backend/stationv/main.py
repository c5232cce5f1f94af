# stationv/main.py
import logging

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from stationv.config import settings
from stationv.core.router import hub
from stationv.api.v1.routers import channels
from stationv.api.v1.routers.ws_relay import router as ws_relay_router

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("uvicorn.error")

app = FastAPI(title=settings.APP_NAME)

# CORS (renderer runs on a different origin than the relay)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.on_event("startup")
async def on_startup():
    logger.info("[relay] %s started (env=%s)", settings.APP_NAME, settings.env)
    logger.info("[relay] WebSocket endpoint: ws://%s:%s%s", settings.host, settings.port, settings.ws_path)
    logger.info("[relay] history limit %d, nickname suffixing %s",
                settings.history_limit, "on" if settings.allow_nick_suffix else "off")
    if hub.bridge is not None:
        logger.info("[relay] IRC bridge enabled (allowed hosts: %s)",
                    ", ".join(settings.irc_allowed_hosts) or "any")

@app.on_event("shutdown")
async def on_shutdown():
    # State is memory-only; it does not survive a restart.
    logger.info("[relay] shutting down, dropping %d channels and %d users",
                len(hub.directory.names()), len(hub.identity.users()))
    hub.reset()

# REST (read-only introspection)
app.include_router(channels.router, prefix="/api/v1")

# WebSocket relay
app.include_router(ws_relay_router)

@app.get("/healthz")
def healthz():
    return {"ok": True}


def run() -> None:
    """Console entry point: serve the relay with uvicorn. Exits if the port cannot be bound."""
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
