# Copyright (c) 2026 Heureum AI. All rights reserved.

"""
Context Guard - FastAPI service bounding and repairing LLM conversation histories
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from context_guard.config import settings
from context_guard.routers import context
from context_guard.services.agent_service import create_summary_llm
from context_guard.services.context.summarizer import ChatModelSummarizer

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Configure logging and attach the summary model to ``app.state``.

    ``app.state.summary_model`` stays ``None`` without credentials, which
    turns summarization requests into no-ops.
    """
    logging.basicConfig(level=settings.LOG_LEVEL.upper())
    app.state.summary_model = None
    if settings.summary_model_configured:
        app.state.summary_model = ChatModelSummarizer(create_summary_llm(settings))
        logger.info("Summary model ready: %s", settings.SUMMARY_MODEL)
    else:
        logger.info("No summary model credentials; summarization disabled")
    logger.info("Starting %s...", settings.APP_NAME)
    yield
    logger.info("Shutting down %s...", settings.APP_NAME)


app = FastAPI(
    title=settings.APP_NAME,
    description="Conversation history sanitization and windowing for multi-agent LLM services",
    version=settings.APP_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(context.router, prefix="/v1/context", tags=["context"])


class HealthResponse(BaseModel):
    """Liveness payload: status plus the running version."""

    status: str
    version: str


@app.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Report liveness."""
    return HealthResponse(status="healthy", version=settings.APP_VERSION)


@app.get("/")
async def root() -> dict[str, str]:
    """Service banner with links to the docs and health endpoints."""
    return {
        "message": "Context Guard Service",
        "docs": "/docs",
        "health": "/health",
    }
