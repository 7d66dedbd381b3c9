# Copyright (c) 2026 Heureum AI. All rights reserved.

"""
Context router - runs the processing pipeline over a submitted history.
"""

import logging

from fastapi import APIRouter, Request

from context_guard.config import settings
from context_guard.schemas.context import ProcessRequest, ProcessResponse, StepSchema
from context_guard.services.context.pipeline import process_context

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/process", response_model=ProcessResponse)
async def process_history(body: ProcessRequest, request: Request) -> ProcessResponse:
    """Bound and repair a conversation history.

    Summarization only runs when the application has a summary model.

    Args:
        body (ProcessRequest): History and pipeline options.
        request (Request): Incoming request, used to reach application state.

    Returns:
        ProcessResponse: Processed history and per-stage diagnostics.
    """
    summary_model = getattr(request.app.state, "summary_model", None)
    if body.options.enable_summarization and summary_model is None:
        logger.info("Summarization requested but no summary model is configured; skipping")

    options = body.options.to_options(settings, summary_model=summary_model)
    result = await process_context(body.messages, options)
    return ProcessResponse(
        messages=result.messages,
        steps=[StepSchema(name=s.name, before=s.before, after=s.after) for s in result.steps],
        summarized=result.summarized,
        trim_mode=result.trim_mode.value,
    )
