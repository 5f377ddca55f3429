#!/usr/bin/env python3
"""
Campus Session - Main Entry Point

This is the thin orchestration layer that:
1. Loads configuration
2. Builds the session stack
3. Serves the session state and auth actions over HTTP

All lifecycle logic is in the modules, following black box principles.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import redis.asyncio as redis
import uvicorn
from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sse_starlette.sse import EventSourceResponse

from campus import __version__
from campus.config.provider import ConfigProvider, EnvConfigProvider
from campus.logging_config import configure_logging, get_logging_config
from campus.modules.api import (
    AuthActionResponse,
    RefreshResponse,
    SessionStateResponse,
    SignInRequest,
    SignUpRequest,
)
from campus.modules.identity import AuthError
from campus.modules.session import SessionFactory, SessionManager, SessionSnapshot
from campus.modules.storage import StorageModule

# Configuration provider (centralized config access)
config_provider: ConfigProvider = EnvConfigProvider()
api_config = config_provider.get_api_config()

configure_logging(api_config.log_level)
logger = logging.getLogger(__name__)

# Module instances (initialized at startup)
session_manager: Optional[SessionManager] = None
storage: Optional[StorageModule] = None
redis_client: Optional[redis.Redis] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifecycle - initialize and cleanup resources.
    """
    global session_manager, storage, redis_client

    logger.info("Starting Campus Session API...")

    storage_config = config_provider.get_storage_config()
    if storage_config.backend == "redis":
        storage = StorageModule(storage_config.redis_url)
        redis_client = await storage.connect()

    session_manager = SessionFactory.build(config_provider, redis_client=redis_client)
    await session_manager.start(wait=False)
    logger.info("Session manager started, initialization running in background")

    yield

    logger.info("Shutting down Campus Session API...")
    await session_manager.close()
    if storage:
        await storage.disconnect()
    logger.info("Campus Session API shutdown complete")


app = FastAPI(
    title="Campus Session API",
    description="Session lifecycle for the course portal",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=api_config.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Dependency injection helpers
async def get_session_manager() -> SessionManager:
    if not session_manager:
        raise HTTPException(503, "Service not initialized")
    return session_manager


def _state_response(snapshot: SessionSnapshot) -> SessionStateResponse:
    return SessionStateResponse(**snapshot.to_dict(), authenticated=snapshot.is_authenticated)


# Session Endpoints


@app.get("/session", response_model=SessionStateResponse)
async def get_session_state(manager: SessionManager = Depends(get_session_manager)):
    """
    Current session state.

    Returns:
        200: ``{user, session, profile, loading}``
        503: Service not initialized
    """
    return _state_response(manager.snapshot)


@app.get("/session/stream")
async def stream_session_state(manager: SessionManager = Depends(get_session_manager)):
    """
    SSE endpoint pushing every session state transition.

    The current state is sent first, then one ``state`` event per change.
    """

    async def event_generator() -> AsyncGenerator:
        changes: asyncio.Queue = asyncio.Queue()
        manager.add_listener(changes.put_nowait)
        try:
            yield {"event": "state", "data": _state_response(manager.snapshot).model_dump_json()}
            while True:
                snapshot = await changes.get()
                yield {"event": "state", "data": _state_response(snapshot).model_dump_json()}
        except asyncio.CancelledError:
            logger.info("Session stream client disconnected")
            raise
        finally:
            manager.remove_listener(changes.put_nowait)

    return EventSourceResponse(event_generator())


# Auth Endpoints


@app.post("/auth/sign-in", response_model=AuthActionResponse)
async def sign_in(request: SignInRequest, manager: SessionManager = Depends(get_session_manager)):
    """
    Sign in with email and password.

    Returns:
        200: ``ok`` true, or ``ok`` false with the provider's message
    """
    result = await manager.sign_in(request.email, request.password)
    return AuthActionResponse(ok=result.ok, error=result.error)


@app.post("/auth/sign-up", response_model=AuthActionResponse)
async def sign_up(request: SignUpRequest, manager: SessionManager = Depends(get_session_manager)):
    """
    Create an account.

    Returns:
        200: ``confirmation_required`` is true while the email is unconfirmed
    """
    result = await manager.sign_up(request.email, request.password, request.full_name)
    return AuthActionResponse(
        ok=result.ok,
        error=result.error,
        confirmation_required=result.confirmation_required,
    )


@app.post("/auth/sign-out", status_code=204)
async def sign_out(manager: SessionManager = Depends(get_session_manager)):
    """Sign out and clear local credentials."""
    await manager.sign_out()


@app.post("/auth/refresh", response_model=RefreshResponse)
async def refresh(manager: SessionManager = Depends(get_session_manager)):
    """
    Force a token renewal.

    Returns:
        200: ``refreshed`` false with the provider's message on failure
    """
    try:
        session = await manager.refresh_session()
    except AuthError as e:
        return RefreshResponse(refreshed=False, error=e.message)
    return RefreshResponse(refreshed=True, expires_at=session.expires_at)


# Health/Monitoring Endpoints


@app.get("/healthz")
async def healthz():
    """
    Minimal health check endpoint for readiness/liveness probes.

    Returns:
        200: Service is running
    """
    return {"status": "ok"}


@app.get("/health")
async def health_check():
    """
    Health check with session manager status.

    Returns:
        200: Service healthy
        503: Service unhealthy
    """
    try:
        if redis_client:
            await redis_client.ping()
            redis_status = "connected"
        else:
            redis_status = "not used"

        if session_manager is None:
            return JSONResponse(
                status_code=503,
                content={"status": "unhealthy", "redis": redis_status, "session": "not initialized"},
            )

        breaker = session_manager.breaker.snapshot()
        status = "healthy" if breaker["state"] == "NORMAL" else "degraded"
        return {
            "status": status,
            "redis": redis_status,
            "initialized": session_manager.initialized,
            "authenticated": session_manager.snapshot.is_authenticated,
            "refresh_breaker": breaker,
            "version": __version__,
        }
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        return JSONResponse(status_code=503, content={"status": "unhealthy", "error": str(e)})


# Error handlers


@app.exception_handler(redis.ConnectionError)
async def redis_error_handler(request, exc):
    """Handle Redis connection errors."""
    logger.error(f"Redis connection error: {exc}")
    return JSONResponse(status_code=503, content={"error": "Credential store connection failed"})


@app.exception_handler(ValueError)
async def validation_error_handler(request, exc):
    """Handle validation errors."""
    logger.error(f"Validation error: {exc}")
    return JSONResponse(status_code=400, content={"error": str(exc)})


def run() -> None:
    uvicorn.run(
        "campus.main:app",
        host=api_config.host,
        port=api_config.port,
        log_level=api_config.log_level.lower(),
        reload=api_config.debug,
        log_config=get_logging_config(api_config.log_level),
    )


if __name__ == "__main__":
    run()
