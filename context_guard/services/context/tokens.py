# Copyright (c) 2026 Heureum AI. All rights reserved.

"""
Token size estimates.

tiktoken's ``gpt-4o`` encoding when it can be loaded, otherwise one token
per four characters.  Thinking text counts towards an assistant message;
tool-call metadata is charged at the character rate because encoders
under-count the padding in serialized JSON.

``count_lc_tokens`` measures LangChain messages the same way and can be
handed to the trimmer as its tokenizer.
"""

from __future__ import annotations

import json
import logging
from typing import Any, List, Sequence

from langchain_core.messages import BaseMessage

from context_guard.models import Message, MessageKind, ThinkingBlock

TOOL_CALL_FALLBACK_CHARS = 128
CHARS_PER_TOKEN_FALLBACK = 4

logger = logging.getLogger(__name__)

try:
    import tiktoken

    _encoding = tiktoken.encoding_for_model("gpt-4o")

    def estimate_tokens(text: str) -> int:
        """Token count of *text* under the gpt-4o encoding."""
        return len(_encoding.encode(text))

except Exception:
    logger.info("tiktoken unavailable, using chars/%d heuristic", CHARS_PER_TOKEN_FALLBACK)

    def estimate_tokens(text: str) -> int:  # type: ignore[misc]
        """Character-based token estimate, never below 1."""
        return max(1, len(text) // CHARS_PER_TOKEN_FALLBACK)


def _json_chars(value: Any) -> int:
    try:
        return len(json.dumps(value, ensure_ascii=False))
    except (TypeError, ValueError):
        return TOOL_CALL_FALLBACK_CHARS


def _tool_calls_chars(msg: Message) -> int:
    if msg.kind != MessageKind.ASSISTANT or not msg.tool_calls:
        return 0
    return sum(_json_chars(tc.model_dump()) for tc in msg.tool_calls)


def _content_text(msg: Message) -> str:
    if msg.kind != MessageKind.ASSISTANT:
        return msg.content
    parts = [msg.text]
    parts.extend(b.thinking for b in msg.content if isinstance(b, ThinkingBlock))
    return "\n".join(p for p in parts if p)


def estimate_message_tokens(msg: Message) -> int:
    """Estimated size of one message.

    Args:
        msg (Message): Message to measure.

    Returns:
        int: Tokens of the text and thinking content, plus the tool calls
            serialized as JSON at the character rate.
    """
    tokens = estimate_tokens(_content_text(msg))
    call_chars = _tool_calls_chars(msg)
    if call_chars:
        tokens += max(1, call_chars // CHARS_PER_TOKEN_FALLBACK)
    return tokens


def estimate_messages_tokens(messages: Sequence[Message]) -> int:
    """Estimated size of a history; see :func:`estimate_message_tokens`."""
    return sum(estimate_message_tokens(m) for m in messages)


def count_lc_tokens(messages: List[BaseMessage]) -> int:
    """Token counter over LangChain messages, usable as a trimmer tokenizer.

    Args:
        messages (List[BaseMessage]): LangChain messages to measure.

    Returns:
        int: Estimated token count including tool-call arguments.
    """
    total = 0
    for msg in messages:
        content = msg.content if isinstance(msg.content, str) else json.dumps(msg.content, ensure_ascii=False, default=str)
        total += estimate_tokens(content)
        calls = getattr(msg, "tool_calls", None)
        if calls:
            total += max(1, _json_chars(calls) // CHARS_PER_TOKEN_FALLBACK)
    return total
