# Copyright (c) 2026 Heureum AI. All rights reserved.

"""Shared test fixtures for the context-guard test suite."""

from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock

import pytest
from context_guard.models import (
    AssistantMessage,
    HumanMessage,
    Message,
    MessageKind,
    SystemMessage,
    ToolResultMessage,
    has_usable_content,
    tool_call_ids,
)


# ---------------------------------------------------------------------------
# Message factories
# ---------------------------------------------------------------------------


@pytest.fixture
def tool_exchange():
    """Factory fixture for an assistant tool request followed by its results."""

    def _factory(
        *ids: str,
        name: str = "search",
        text: str = "",
        args: Optional[Dict[str, Any]] = None,
        result: str = "result",
    ) -> List[Message]:
        assistant = AssistantMessage(
            content=text,
            tool_calls=[{"id": i, "name": name, "args": dict(args or {})} for i in ids],
        )
        results = [ToolResultMessage(tool_call_id=i, name=name, content=result) for i in ids]
        return [assistant, *results]

    return _factory


@pytest.fixture
def chat_history():
    """Factory fixture for a plain alternating human/assistant history."""

    def _factory(turns: int = 5, system: Optional[str] = "You are helpful.") -> List[Message]:
        messages: List[Message] = [SystemMessage(content=system)] if system else []
        for i in range(turns):
            messages.append(HumanMessage(content=f"question {i}"))
            messages.append(AssistantMessage(content=f"answer {i}"))
        return messages

    return _factory


# ---------------------------------------------------------------------------
# Collaborator mocks
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_summary_model():
    """Factory fixture for an async summary model returning fixed text."""

    def _factory(text: str = "Summary of conversation.", error: Optional[Exception] = None) -> AsyncMock:
        if error is not None:
            return AsyncMock(side_effect=error)
        return AsyncMock(return_value=text)

    return _factory


# ---------------------------------------------------------------------------
# Invariant checks
# ---------------------------------------------------------------------------


def _check_pairing(messages: List[Message]) -> None:
    """Assert the structural contract the model API enforces."""
    exposed: set = set()
    satisfied: set = set()
    owner_ids: Optional[set] = None
    seen_non_system = False

    for msg in messages:
        if msg.kind == MessageKind.SYSTEM:
            assert not seen_non_system, "system message after conversation start"
            owner_ids = None
            continue
        seen_non_system = True

        if msg.kind == MessageKind.TOOL:
            assert owner_ids is not None, f"tool result {msg.tool_call_id} not after an assistant"
            assert msg.tool_call_id in owner_ids, f"tool result {msg.tool_call_id} not requested by owner"
            assert msg.tool_call_id not in satisfied, f"duplicate result for {msg.tool_call_id}"
            satisfied.add(msg.tool_call_id)
            continue

        if msg.kind == MessageKind.ASSISTANT:
            ids = set(tool_call_ids(msg))
            assert not ids & exposed, f"tool call ids exposed twice: {ids & exposed}"
            assert has_usable_content(msg), "assistant message with neither text nor tool calls"
            exposed |= ids
            owner_ids = ids
        else:
            owner_ids = None

    assert exposed == satisfied, f"unanswered tool calls: {exposed - satisfied}"


@pytest.fixture
def check_pairing():
    """Fixture providing the pairing invariant checker."""
    return _check_pairing
