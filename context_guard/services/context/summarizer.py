# Copyright (c) 2026 Heureum AI. All rights reserved.

"""
LLM-based summarization of the old prefix of a conversation.

Once the non-system history grows past a token threshold, everything but
the most recent messages is rendered as a flat transcript and handed to a
summary model.  The digest replaces the prefix as a single system message
marked with ``SUMMARY_PREFIX``; a later run finds that marker, folds the
previous digest into the new transcript and replaces it, so summaries never
pile up.

The summary model is any async ``(transcript) -> str`` callable.
``ChatModelSummarizer`` adapts a LangChain chat model to that shape.

A failed or empty summary never raises: the prefix is dropped and the
result is the same as plain truncation.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import List, Optional, Protocol, Tuple

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage as LCHumanMessage
from langchain_core.messages import SystemMessage as LCSystemMessage

from context_guard.models import Message, MessageKind, SystemMessage
from context_guard.services.context.convert import extract_text
from context_guard.services.context.tokens import estimate_messages_tokens, estimate_tokens
from context_guard.services.prompts.base import (
    PREVIOUS_SUMMARY_LABEL,
    SUMMARY_PREFIX,
    SUMMARY_SYSTEM_PROMPT,
)

logger = logging.getLogger(__name__)


class SummaryModel(Protocol):
    """Async summarization collaborator."""

    async def __call__(self, transcript: str) -> str:
        ...


class ChatModelSummarizer:
    """Adapt a LangChain chat model to the ``SummaryModel`` protocol.

    Args:
        llm (BaseChatModel): Chat model producing the summary.
        system_prompt (str): Fixed summarization instruction.
    """

    def __init__(self, llm: BaseChatModel, system_prompt: str = SUMMARY_SYSTEM_PROMPT) -> None:
        self.llm = llm
        self.system_prompt = system_prompt

    async def __call__(self, transcript: str) -> str:
        response = await self.llm.ainvoke(
            [
                LCSystemMessage(content=self.system_prompt),
                LCHumanMessage(content=transcript),
            ]
        )
        return extract_text(response.content)


@dataclass
class SummaryOutcome:
    """Result of a summarization pass.

    Attributes:
        messages (List[Message]): History after the pass.
        summarized (bool): Whether a new summary message was produced.
    """

    messages: List[Message]
    summarized: bool


def _messages_to_text(
    messages: List[Message],
    max_chars_per_message: int = 2_000,
) -> str:
    """Serialize messages to a transcript for summarization.

    Format:
        [User]: ...
        [Assistant]: ...          (text content only)
        [Assistant tool calls]: name(key=val); name2(key=val)
        [Tool result (name)]: ...

    Sections are separated by double newlines so the model reads the text
    as a record, not a conversation to continue.

    Args:
        messages (List[Message]): Messages to convert.
        max_chars_per_message (int): Maximum characters kept per message
            content. Defaults to 2000.

    Returns:
        str: Double-newline-joined string of role-prefixed entries.
    """
    parts: List[str] = []
    for msg in messages:
        if msg.kind == MessageKind.HUMAN:
            content = msg.content[:max_chars_per_message]
            if content:
                parts.append(f"[User]: {content}")

        elif msg.kind == MessageKind.ASSISTANT:
            content = msg.text[:max_chars_per_message]
            if content:
                parts.append(f"[Assistant]: {content}")
            if msg.tool_calls:
                tc_strs: List[str] = []
                for tc in msg.tool_calls:
                    try:
                        pairs = ", ".join(f"{k}={json.dumps(v, ensure_ascii=False)}" for k, v in tc.args.items())
                    except (TypeError, ValueError):
                        pairs = str(tc.args)
                    tc_strs.append(f"{tc.name or 'unknown'}({pairs[:max_chars_per_message]})")
                parts.append(f"[Assistant tool calls]: {'; '.join(tc_strs)}")

        elif msg.kind == MessageKind.TOOL:
            content = msg.content[:max_chars_per_message]
            label = f"[Tool result ({msg.name})]" if msg.name else "[Tool result]"
            if content:
                parts.append(f"{label}: {content}")

        elif msg.kind == MessageKind.SYSTEM:
            content = msg.content[:max_chars_per_message]
            if content:
                parts.append(f"[System]: {content}")

    return "\n\n".join(parts)


def is_summary_message(msg: Message, summary_prefix: str = SUMMARY_PREFIX) -> bool:
    """Whether *msg* is a summary produced by an earlier run."""
    return msg.kind == MessageKind.SYSTEM and msg.content.startswith(summary_prefix)


def _split_point(conversation: List[Message], keep_messages: int) -> int:
    """Index where the kept tail starts.

    Walks back so the tail never starts on a tool result, keeping the
    requesting assistant message with its results.
    """
    split = max(0, len(conversation) - keep_messages)
    while 0 < split < len(conversation) and conversation[split].kind == MessageKind.TOOL:
        split -= 1
    return split


def _partition(
    messages: List[Message],
    summary_prefix: str,
) -> Tuple[List[Message], List[Message], List[Message]]:
    systems: List[Message] = []
    previous: List[Message] = []
    conversation: List[Message] = []
    for msg in messages:
        if is_summary_message(msg, summary_prefix):
            previous.append(msg)
        elif msg.kind == MessageKind.SYSTEM:
            systems.append(msg)
        else:
            conversation.append(msg)
    return systems, previous, conversation


async def summarize_if_needed(
    messages: List[Message],
    model: Optional[SummaryModel],
    *,
    trigger_tokens: int,
    keep_messages: int,
    summary_prefix: str = SUMMARY_PREFIX,
    log_prefix: str = "",
) -> SummaryOutcome:
    """Replace the old prefix of the history with an LLM summary.

    Runs only when the estimated size of the non-system messages exceeds
    *trigger_tokens* and there are more than *keep_messages* of them.

    Args:
        messages (List[Message]): History to summarize.
        model (Optional[SummaryModel]): Summary collaborator. ``None``
            disables the pass.
        trigger_tokens (int): Estimated token size that triggers the pass.
        keep_messages (int): Most recent non-system messages kept verbatim.
        summary_prefix (str): Marker identifying summary messages.
        log_prefix (str): Prefix for log lines.

    Returns:
        SummaryOutcome: ``[systems, summary, *kept]`` on success,
            ``[systems, previous summary, *kept]`` when the model fails or
            returns nothing, and *messages* unchanged when the pass does not apply.
    """
    prefix = f"{log_prefix} " if log_prefix else ""
    if model is None or not messages:
        return SummaryOutcome(messages=messages, summarized=False)

    systems, previous, conversation = _partition(messages, summary_prefix)
    tokens = estimate_messages_tokens(conversation)
    if tokens <= trigger_tokens or len(conversation) <= keep_messages:
        return SummaryOutcome(messages=messages, summarized=False)

    split = _split_point(conversation, max(0, keep_messages))
    to_summarize = conversation[:split]
    to_keep = conversation[split:]
    if not to_summarize:
        return SummaryOutcome(messages=messages, summarized=False)

    logger.info(
        "%s[SUMMARIZE] Summarizing %d messages (~%d tokens), keeping %d",
        prefix,
        len(to_summarize),
        tokens,
        len(to_keep),
    )

    transcript = _messages_to_text(to_summarize)
    if previous:
        previous_text = "\n\n".join(m.content[len(summary_prefix) :].strip() for m in previous)
        transcript = f"{PREVIOUS_SUMMARY_LABEL}: {previous_text}\n\n{transcript}"

    try:
        summary = (await model(transcript) or "").strip()
    except Exception as e:
        logger.error("%s[SUMMARIZE] Summarization failed, falling back to truncation: %s", prefix, e)
        return SummaryOutcome(messages=systems + previous + to_keep, summarized=False)

    if not summary:
        logger.warning("%s[SUMMARIZE] Summary model returned nothing, falling back to truncation", prefix)
        return SummaryOutcome(messages=systems + previous + to_keep, summarized=False)

    summary_message = SystemMessage(content=f"{summary_prefix}\n\n{summary}")
    logger.info(
        "%s[SUMMARIZE] Replaced %d messages with a summary (~%d tokens)",
        prefix,
        len(to_summarize),
        estimate_tokens(summary),
    )
    return SummaryOutcome(messages=systems + [summary_message] + to_keep, summarized=True)
