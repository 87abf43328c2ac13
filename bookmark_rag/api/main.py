"""
FastAPI application for the bookmark archive API.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Callable

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .deps import Services, build_services
from .routes import router


def create_app(build: Callable[[], Services] = build_services) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Wire store, caches and LLM client on startup; drop conversations on shutdown."""
        app.state.services = build()
        yield
        app.state.services.streamers.clear()

    app = FastAPI(
        title="Bookmark RAG API",
        description="Ask questions about saved bookmarks, with streamed grounded answers",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])
    app.include_router(router)
    return app


logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

app = create_app()
