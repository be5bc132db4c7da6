from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse

from .db import create_engine, create_session_factory
from .routes_ops import router as ops_router
from .settings import get_settings
from .worker.runner import WorkerSupervisor

logger = logging.getLogger("clipline")

settings = get_settings()
engine = create_engine(settings.async_database_url)

app = FastAPI(title=settings.app_name)
app.state.settings = settings
app.state.session_factory = create_session_factory(engine)
app.state.supervisor = None


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url)
    return PlainTextResponse("Internal Server Error", status_code=500)


@app.get("/ping")
async def ping():
    return {"status": "ok"}


app.include_router(ops_router)


@app.on_event("startup")
async def startup_event():
    """Run the stage workers in-process when enabled."""
    logger.info(f"{settings.app_name} starting (environment={settings.environment})")
    if not settings.workers_enabled:
        logger.info("Workers disabled (WORKERS_ENABLED=false)")
        return
    supervisor = WorkerSupervisor(settings, app.state.session_factory)
    supervisor.start()
    app.state.supervisor = supervisor
    logger.info("Workers started on app startup")


@app.on_event("shutdown")
async def shutdown_event():
    supervisor = app.state.supervisor
    if supervisor is not None:
        await supervisor.stop()
        logger.info("Workers stopped on app shutdown")
    await engine.dispose()
