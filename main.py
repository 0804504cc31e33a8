# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Sprint Desk
===========
Release/Scrum Master rotation, sprint capacity planning and a planning-poker
room, backed by a PocketBase (or in-memory) record store.

Port: 8000
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sprint_desk.controllers import (
    capacity_controller,
    poker_controller,
    rotation_controller,
    system_controller,
)
from sprint_desk.core.config import settings
from sprint_desk.core.dependencies import get_rotation_service
from sprint_desk.core.logging import get_logger
from sprint_desk.middleware import MetricsMiddleware, RequestIDMiddleware

logger = get_logger(settings.SERVICE_NAME)


@asynccontextmanager
async def lifespan(application: FastAPI):
    # An invalid rotation must stop the service from starting.
    config = get_rotation_service().load()
    logger.info(
        "%s v%s starting: store=%s, first_sprint=%s",
        settings.SERVICE_NAME, settings.SERVICE_VERSION,
        settings.STORE_BACKEND, config.first_sprint_number,
    )
    yield
    logger.info("%s shutting down", settings.SERVICE_NAME)


app = FastAPI(
    title="Sprint Desk",
    description="Sprint duty rotation, capacity planning and planning poker.",
    version=settings.SERVICE_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestIDMiddleware)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    request_id = getattr(request.state, "request_id", None)
    logger.exception("Unhandled exception", extra={"request_id": request_id})
    return JSONResponse(
        status_code=500,
        content={"error": "internal_server_error", "detail": str(exc), "request_id": request_id},
    )


app.include_router(system_controller.router)
app.include_router(rotation_controller.router)
app.include_router(capacity_controller.router)
app.include_router(poker_controller.router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.SERVICE_PORT, log_level="info")
