#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
PyWikiDump: FastAPI application factory
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path

import uvicorn
from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from wikidump.core.config import get_settings
from wikidump.core.dependencies import load_wiki
from wikidump.core.errors import WikiError
from wikidump.routes import articles, render, search
from wikidump.schemas import HealthResponse
from wikidump.ui import views


log = logging.getLogger(__name__)


# -----------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    settings = get_settings()
    # Tests install their own service before the app starts.
    if getattr(app.state, "wiki", None) is None:
        # Building the index from a full listing takes minutes; keep the loop free.
        await run_in_threadpool(load_wiki, app, settings)
    yield


# -----------------------------------------------------------------------------

def create_app() -> FastAPI:
    settings = get_settings()

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Read-only browser for MediaWiki multistream dumps.",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
        lifespan=lifespan,
    )
    app.state.wiki = None

    # ── Static files ──────────────────────────────────────────────────────

    static_dir = Path(__file__).parent / "static"
    app.mount("/static", StaticFiles(directory=str(static_dir)), name="static")

    # ── CORS ──────────────────────────────────────────────────────────────

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    # ── API routers ───────────────────────────────────────────────────────

    prefix = "/api/v1"

    app.include_router(articles.router, prefix=prefix)
    app.include_router(search.router,   prefix=prefix)
    app.include_router(render.router,   prefix=prefix)

    # ── UI (Jinja2) router ────────────────────────────────────────────────

    app.include_router(views.router)

    # ── Global exception handlers ─────────────────────────────────────────

    @app.exception_handler(WikiError)
    async def wiki_error(request: Request, exc: WikiError):
        if exc.status_code >= 500:
            log.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
        if request.url.path.startswith("/api/"):
            return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})
        return views.error_page(request, exc.status_code, exc.detail)

    # ── Health check ──────────────────────────────────────────────────────

    @app.get("/api/health", tags=["system"], response_model=HealthResponse)
    async def health(request: Request):
        wiki = request.app.state.wiki
        return HealthResponse(
            status="ok" if wiki is not None else "unavailable",
            version=settings.app_version,
            app=settings.app_name,
            entries=len(wiki.index) if wiki is not None else 0,
            blocks=len(wiki.index.pairs) if wiki is not None else 0,
        )

    return app


# -----------------------------------------------------------------------------

app = create_app()


def run() -> None:
    settings = get_settings()
    uvicorn.run(
        "wikidump.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()


# -----------------------------------------------------------------------------
