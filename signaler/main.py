"""FastAPI application for the Blitz Chat signaling relay."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse, Response

from .core.config import settings
from .routers import signaling as signaling_router
from .services.ice import broker

logger = logging.getLogger(__name__)


def check_settings() -> None:
    """Fail fast in production when provider credentials are missing."""

    for name in settings.missing_required_settings():
        if settings.app_env == "production":
            raise RuntimeError(f"ENV: {name} env var is unset")
        logger.warning("ENV: %s env var is unset; ICE config requests will fail", name)


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    check_settings()
    async with httpx.AsyncClient(timeout=httpx.Timeout(settings.ice_request_timeout)) as client:
        broker.bind(client)
        try:
            yield
        finally:
            broker.bind(None)


app = FastAPI(title="Blitz Chat Signaler", version="0.1.0", lifespan=lifespan)

if settings.cors_allow_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(signaling_router.router)


@app.get("/", response_class=PlainTextResponse, tags=["meta"])
async def index() -> PlainTextResponse:
    return PlainTextResponse("Blitz Chat Signaler Server")


@app.get("/api/health", tags=["meta"])
async def health() -> dict[str, str]:
    """Simple liveness probe."""

    return {"status": "ok"}


@app.head("/api/health", tags=["meta"])
async def health_head() -> Response:
    """Allow HEAD for uptime monitors that only need the status code."""

    return Response(status_code=200)
