"""
factorshot.api.main — FastAPI application entry point
=====================================================

Run with::

    uvicorn factorshot.api.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

load_dotenv()

from factorshot import __version__  # noqa: E402
from factorshot.api.auth import router as auth_router  # noqa: E402
from factorshot.api.deps import get_engine  # noqa: E402
from factorshot.api.routes.admin import router as admin_router  # noqa: E402
from factorshot.api.routes.sessions import router as sessions_router  # noqa: E402
from factorshot.engine.lifecycle import (  # noqa: E402
    SessionError,
    SessionFinished,
    SessionForbidden,
    SessionNotFound,
)

logger = logging.getLogger(__name__)

_ERROR_STATUS: dict[type[SessionError], int] = {
    SessionNotFound: status.HTTP_404_NOT_FOUND,
    SessionForbidden: status.HTTP_403_FORBIDDEN,
    SessionFinished: status.HTTP_409_CONFLICT,
}


def _cors_origins() -> list[str]:
    """Origins allowed to call the API from a browser.

    ``CORS_ALLOW_ORIGINS`` (comma-separated) wins; otherwise the single
    ``FRONTEND_URL``; otherwise none.
    """
    configured = os.getenv("CORS_ALLOW_ORIGINS") or os.getenv("FRONTEND_URL") or ""
    origins = (part.strip().rstrip("/") for part in configured.split(","))
    return [origin for origin in origins if origin]


@asynccontextmanager
async def lifespan(app: FastAPI):
    engine = get_engine()
    logger.info("%s listening (database %r)", app.title, engine.url.database)
    yield
    engine.dispose()
    logger.info("%s stopped", app.title)


app = FastAPI(
    title="Factorshot API",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SessionError)
async def session_error_handler(request: Request, exc: SessionError) -> JSONResponse:
    """Lifecycle violations → 404 / 403 / 409 with a stable ``error`` code."""
    code = _ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
    logger.info(
        "%s %s refused: %s (session=%s)",
        request.method, request.url.path, exc.kind, exc.session_id,
    )
    return JSONResponse(
        status_code=code,
        content={"error": exc.kind, "message": exc.message},
    )


# Mount routers
app.include_router(auth_router, prefix="/api")
app.include_router(sessions_router, prefix="/api")
app.include_router(admin_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}
