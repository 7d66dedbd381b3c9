# Copyright (c) 2026 Heureum AI. All rights reserved.

"""Schemas for the context processing API."""
from .context import (
    ProcessOptionsSchema,
    ProcessRequest,
    ProcessResponse,
    StepSchema,
)

__all__ = [
    "ProcessOptionsSchema",
    "ProcessRequest",
    "ProcessResponse",
    "StepSchema",
]
