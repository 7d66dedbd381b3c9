# Copyright (c) 2026 Heureum AI. All rights reserved.

"""
Window trimming.

Bounds the history to a budget:

  1. Token budget, delegated to LangChain's ``trim_messages`` with the
     injected tokenizer (keep most recent, never start on a tool result).
  2. Message-count fallback when no tokenizer is given, it raises, or it
     would keep nothing.  The cut point moves forward until it lands on a
     human message or an assistant message without tool calls.

System messages are never trimmed and always sort to the front.  Messages
mentioning the original request or a preserve keyword are re-inserted even
when they fall before the cut, together with the rest of their exchange
(an assistant message with tool calls plus its adjacent results).

The trimmed window may still contain half pairs; the pipeline's final
repair pass is responsible for them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, List, Optional, Sequence, Union

from langchain_core.language_models import BaseLanguageModel
from langchain_core.messages import BaseMessage
from langchain_core.messages import trim_messages as lc_trim_messages

from context_guard.models import Message, MessageKind, message_text
from context_guard.services.context.convert import to_langchain

logger = logging.getLogger(__name__)

Tokenizer = Union[Callable[[List[BaseMessage]], int], BaseLanguageModel]


class TrimMode(str, Enum):
    """How the window was chosen."""

    NONE = "none"
    TOKENS = "tokens"
    COUNT = "count"
    RAW = "raw"


@dataclass
class TrimOutcome:
    """Result of a trimming pass.

    Attributes:
        messages (List[Message]): Trimmed history, system messages first.
        mode (TrimMode): How the window was chosen.
        preserved_count (int): Messages re-inserted as task-critical.
    """

    messages: List[Message]
    mode: TrimMode
    preserved_count: int = 0


def _count_tokens(tokenizer: Tokenizer, messages: List[BaseMessage]) -> int:
    if isinstance(tokenizer, BaseLanguageModel):
        return tokenizer.get_num_tokens_from_messages(messages)
    return tokenizer(messages)


def _trim_by_tokens(
    systems: List[Message],
    others: List[Message],
    max_tokens: int,
    tokenizer: Tokenizer,
    prefix: str,
) -> Optional[List[int]]:
    """Indices of *others* kept under the token budget, or ``None`` on failure."""
    lc_others = to_langchain(others)
    try:
        budget = max_tokens
        if systems:
            budget -= _count_tokens(tokenizer, to_langchain(systems))
        if budget <= 0:
            logger.warning("%s[TRIM] System messages alone exceed %d tokens", prefix, max_tokens)
            return None
        trimmed = lc_trim_messages(
            lc_others,
            max_tokens=budget,
            token_counter=tokenizer,
            strategy="last",
            start_on=("human", "ai"),
            allow_partial=False,
        )
    except Exception as e:
        logger.warning("%s[TRIM] Token counting failed, falling back to message count: %s", prefix, e)
        return None

    index_of = {id(m): i for i, m in enumerate(lc_others)}
    kept = [index_of.get(id(m)) for m in trimmed]
    if any(i is None for i in kept):
        logger.warning("%s[TRIM] Token trimmer returned unknown messages, falling back to message count", prefix)
        return None
    if others and not kept:
        logger.warning("%s[TRIM] No message fits in %d tokens, falling back to message count", prefix, budget)
        return None
    return sorted(i for i in kept if i is not None)


def _is_safe_start(msg: Message) -> bool:
    if msg.kind == MessageKind.HUMAN:
        return True
    return msg.kind == MessageKind.ASSISTANT and not msg.tool_calls


def _trim_by_count(others: List[Message], fallback_message_count: int, prefix: str) -> List[int]:
    """Indices of *others* kept under the message-count budget."""
    if len(others) <= fallback_message_count:
        return list(range(len(others)))

    start = max(0, len(others) - fallback_message_count)
    while start < len(others) and not _is_safe_start(others[start]):
        start += 1

    if start >= len(others) and others:
        logger.warning(
            "%s[TRIM] WARNING: No valid start point found, keeping last %d messages",
            prefix,
            fallback_message_count,
        )
        start = max(0, len(others) - fallback_message_count)

    return list(range(start, len(others)))


def _exchanges(messages: Sequence[Message]) -> List[List[int]]:
    """Group indices into exchanges: an assistant with tool calls and its adjacent results."""
    groups: List[List[int]] = []
    for i, msg in enumerate(messages):
        if (
            msg.kind == MessageKind.TOOL
            and groups
            and messages[groups[-1][0]].kind == MessageKind.ASSISTANT
            and messages[groups[-1][0]].tool_calls
        ):
            groups[-1].append(i)
            continue
        groups.append([i])
    return groups


def _matcher(original_request: Optional[str], keywords: Iterable[str]) -> Optional[Callable[[Message], bool]]:
    needles = [n.casefold() for n in ([original_request or ""] + list(keywords)) if n and n.strip()]
    if not needles:
        return None

    def matches(msg: Message) -> bool:
        text = message_text(msg).casefold()
        return any(needle in text for needle in needles)

    return matches


def _preserve_task_critical(
    others: List[Message],
    kept: List[int],
    original_request: Optional[str],
    preserve_keywords: Iterable[str],
) -> List[int]:
    """Indices of dropped messages that must be re-inserted."""
    matches = _matcher(original_request, preserve_keywords)
    if matches is None:
        return []
    kept_set = set(kept)
    preserved: List[int] = []
    for group in _exchanges(others):
        dropped = [i for i in group if i not in kept_set]
        if dropped and any(matches(others[i]) for i in group):
            preserved.extend(dropped)
    return preserved


def apply_window(
    messages: List[Message],
    *,
    max_tokens: int,
    fallback_message_count: int,
    tokenizer: Optional[Tokenizer] = None,
    original_request: Optional[str] = None,
    preserve_keywords: Iterable[str] = (),
    log_prefix: str = "",
) -> TrimOutcome:
    """Trim *messages* to the token or message budget.

    Args:
        messages (List[Message]): History to trim.
        max_tokens (int): Token budget, used when a tokenizer is given.
        fallback_message_count (int): Non-system message budget for the
            count fallback.
        tokenizer (Optional[Tokenizer]): Token counter over LangChain
            messages, or a LangChain model.
        original_request (Optional[str]): Text identifying task-critical
            messages.
        preserve_keywords (Iterable[str]): Further task-critical keywords.
        log_prefix (str): Prefix for log lines.

    Returns:
        TrimOutcome: Trimmed history and how it was chosen. Never empty when
            *messages* is non-empty.
    """
    prefix = f"{log_prefix} " if log_prefix else ""
    if not messages:
        return TrimOutcome(messages=[], mode=TrimMode.NONE)

    systems = [m for m in messages if m.kind == MessageKind.SYSTEM]
    others = [m for m in messages if m.kind != MessageKind.SYSTEM]

    kept: Optional[List[int]] = None
    mode = TrimMode.TOKENS
    if tokenizer is not None:
        kept = _trim_by_tokens(systems, others, max_tokens, tokenizer, prefix)
    if kept is None:
        mode = TrimMode.COUNT
        kept = _trim_by_count(others, fallback_message_count, prefix)
    if len(kept) == len(others):
        mode = TrimMode.NONE

    preserved = _preserve_task_critical(others, kept, original_request, preserve_keywords)
    if preserved:
        logger.info("%s[TRIM] Preserving %d task-critical messages from before the cut", prefix, len(preserved))

    window = [others[i] for i in sorted(set(kept) | set(preserved))]
    result = systems + window

    if not result:
        logger.warning("%s[TRIM] CRITICAL: Would return 0 messages, keeping original tail", prefix)
        return TrimOutcome(messages=messages[-max(1, fallback_message_count):], mode=TrimMode.RAW)

    if mode != TrimMode.NONE:
        logger.info("%s[TRIM] %s-based: %d -> %d messages", prefix, mode.value.capitalize(), len(messages), len(result))
    return TrimOutcome(messages=result, mode=mode, preserved_count=len(preserved))


def trim_messages(
    messages: List[Message],
    *,
    max_tokens: int,
    fallback_message_count: int,
    tokenizer: Optional[Tokenizer] = None,
    original_request: Optional[str] = None,
    preserve_keywords: Iterable[str] = (),
    log_prefix: str = "",
) -> List[Message]:
    """Trim *messages*; see :func:`apply_window` for the parameters."""
    return apply_window(
        messages,
        max_tokens=max_tokens,
        fallback_message_count=fallback_message_count,
        tokenizer=tokenizer,
        original_request=original_request,
        preserve_keywords=preserve_keywords,
        log_prefix=log_prefix,
    ).messages
