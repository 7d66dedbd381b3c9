# Copyright (c) 2026 Heureum AI. All rights reserved.

"""
Tool request / tool result pairing repair.

The model API rejects a conversation unless every tool result directly
follows the assistant message that requested it, each request has exactly
one result, and no request id appears on two assistant messages.  Raw
history breaks these rules routinely:

  - the frontend re-sends an assistant message it already sent (duplicate
    echo, same tool-call ids),
  - a tool call is cancelled and never gets a result (dangling call),
  - trimming or summarization drops one half of a pair (orphan result).

``synthesize_missing_tool_results`` answers calls that never got a result;
``filter_orphaned_tool_results`` removes what cannot be kept;
``repair_dangling_tool_calls`` answers calls whose result was removed.
Run them in that order (``repair_tool_use_result_pairing``), before and
after any lossy pass.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Set

from context_guard.models import (
    Message,
    MessageKind,
    ToolResultMessage,
    has_text_content,
    strip_tool_requests,
    tool_call_ids,
)
from context_guard.services.prompts.base import DANGLING_TOOL_RESULT

logger = logging.getLogger(__name__)


@dataclass
class RepairReport:
    """Result of a repair pass.

    Attributes:
        messages (List[Message]): The repaired message list.
        dropped_count (int): Messages removed by the orphan/duplicate filter.
        synthesized_count (int): Placeholder tool results inserted.
    """

    messages: List[Message]
    dropped_count: int
    synthesized_count: int


def _prefix(log_prefix: str) -> str:
    return f"{log_prefix} " if log_prefix else ""


def filter_orphaned_tool_results(messages: List[Message], log_prefix: str = "") -> List[Message]:
    """Drop orphaned tool results, duplicate echoes and empty assistant turns.

    Assistant messages keep only the tool calls that have a result somewhere
    in *messages* and were not already exposed by an earlier assistant
    message.  A message whose calls were all exposed before is a duplicate
    echo and is dropped.  One left with neither calls nor text is dropped.

    Tool results are kept only when the nearest preceding non-tool message
    in the output is an assistant exposing their id, and no earlier result
    already answered that id.

    Args:
        messages (List[Message]): Message history, possibly malformed.
        log_prefix (str): Prefix for log lines (e.g. ``"[architect]"``).

    Returns:
        List[Message]: Filtered history. System and human messages pass
            through unchanged.
    """
    prefix = _prefix(log_prefix)

    result_ids: Set[str] = {m.tool_call_id for m in messages if m.kind == MessageKind.TOOL}

    emitted_ids: Set[str] = set()
    satisfied_ids: Set[str] = set()
    filtered: List[Message] = []

    for msg in messages:
        if msg.kind == MessageKind.ASSISTANT:
            ids = tool_call_ids(msg)
            if ids and all(tc_id in emitted_ids for tc_id in ids):
                logger.info(
                    "%s[FILTER] Skipping duplicate assistant message - tool calls already emitted: %s",
                    prefix,
                    ", ".join(tc.name for tc in msg.tool_calls),
                )
                continue

            if msg.tool_calls:
                resolved = [tc_id for tc_id in ids if tc_id in result_ids and tc_id not in emitted_ids]
                unresolved = [tc for tc in msg.tool_calls if tc.id not in resolved]
                if unresolved:
                    logger.info(
                        "%s[FILTER] Found %d unresolved tool calls: %s",
                        prefix,
                        len(unresolved),
                        ", ".join(tc.name or tc.id for tc in unresolved),
                    )
                if resolved:
                    emitted_ids.update(resolved)
                    filtered.append(strip_tool_requests(msg, {tc.id for tc in unresolved}))
                    continue
                msg = strip_tool_requests(msg, {tc.id for tc in msg.tool_calls})

            if not has_text_content(msg):
                logger.info("%s[FILTER] Removing assistant message with no text and no resolved tool calls", prefix)
                continue
            filtered.append(msg)
            continue

        if msg.kind == MessageKind.TOOL:
            if msg.tool_call_id in satisfied_ids:
                logger.info("%s[FILTER] Removing duplicate tool result: %s", prefix, msg.tool_call_id)
                continue
            owner = _nearest_non_tool(filtered)
            if owner is None or msg.tool_call_id not in tool_call_ids(owner):
                logger.info("%s[FILTER] Removing orphaned tool result: %s", prefix, msg.tool_call_id)
                continue
            satisfied_ids.add(msg.tool_call_id)

        filtered.append(msg)

    return filtered


def _nearest_non_tool(output: List[Message]) -> Optional[Message]:
    """Nearest message before the current tail that is not a tool result."""
    for prev in reversed(output):
        if prev.kind != MessageKind.TOOL:
            return prev
    return None


def repair_dangling_tool_calls(messages: List[Message], log_prefix: str = "") -> List[Message]:
    """Insert placeholder results for tool calls that never got one.

    Each assistant message is followed by its run of adjacent tool results.
    Every tool call id on the message that is missing from that run gets a
    synthetic result inserted directly after the assistant message.

    Expects input that already passed ``filter_orphaned_tool_results``.

    Args:
        messages (List[Message]): Message history to repair.
        log_prefix (str): Prefix for log lines.

    Returns:
        List[Message]: History in which every tool call has a result.
    """
    prefix = _prefix(log_prefix)
    repaired: List[Message] = []
    satisfied_ids: Set[str] = set()
    repaired_count = 0

    for i, msg in enumerate(messages):
        repaired.append(msg)
        if msg.kind == MessageKind.TOOL:
            satisfied_ids.add(msg.tool_call_id)
            continue
        if msg.kind != MessageKind.ASSISTANT or not msg.tool_calls:
            continue

        run_ids: Set[str] = set()
        for following in messages[i + 1 :]:
            if following.kind != MessageKind.TOOL:
                break
            run_ids.add(following.tool_call_id)

        for tc in msg.tool_calls:
            if not tc.id or tc.id in run_ids or tc.id in satisfied_ids:
                continue
            repaired.append(
                ToolResultMessage(tool_call_id=tc.id, name=tc.name, content=DANGLING_TOOL_RESULT)
            )
            satisfied_ids.add(tc.id)
            repaired_count += 1

    if repaired_count:
        logger.info(
            "%s[REPAIR] Created %d synthetic tool results for dangling tool calls",
            prefix,
            repaired_count,
        )
    return repaired


def synthesize_missing_tool_results(messages: List[Message], log_prefix: str = "") -> List[Message]:
    """Answer tool calls that have no result anywhere with a placeholder.

    Runs before ``filter_orphaned_tool_results`` so that cancelled calls
    stay visible to the model as cancelled instead of being stripped.
    Each missing id is answered once, directly after the first assistant
    message requesting it.  Calls whose result exists somewhere, even out
    of place, are left for the filter and the dangling repair.

    Args:
        messages (List[Message]): Message history.
        log_prefix (str): Prefix for log lines.

    Returns:
        List[Message]: History in which every requested id has a result
            somewhere.
    """
    result_ids: Set[str] = {m.tool_call_id for m in messages if m.kind == MessageKind.TOOL}
    answered: Set[str] = set()
    output: List[Message] = []

    for msg in messages:
        output.append(msg)
        if msg.kind != MessageKind.ASSISTANT:
            continue
        for tc in msg.tool_calls:
            if not tc.id or tc.id in result_ids or tc.id in answered:
                continue
            output.append(ToolResultMessage(tool_call_id=tc.id, name=tc.name, content=DANGLING_TOOL_RESULT))
            answered.add(tc.id)

    if answered:
        logger.info(
            "%s[REPAIR] Created %d synthetic tool results for tool calls without a result",
            _prefix(log_prefix),
            len(answered),
        )
    return output


def enforce_tool_result_ordering(messages: List[Message], log_prefix: str = "") -> List[Message]:
    """Move displaced tool results directly after the message that requested them.

    A result separated from its assistant message by unrelated messages is
    re-attached after the assistant's other adjacent results, keeping the
    relative order of results.  Results whose id no assistant message
    declares stay where they are for the orphan filter to handle.

    Args:
        messages (List[Message]): Message history.
        log_prefix (str): Prefix for log lines.

    Returns:
        List[Message]: Reordered history.
    """
    owner_of: Dict[str, int] = {}
    for i, msg in enumerate(messages):
        for tc_id in tool_call_ids(msg):
            owner_of.setdefault(tc_id, i)

    attached: Dict[int, List[Message]] = {}
    for msg in messages:
        if msg.kind == MessageKind.TOOL and msg.tool_call_id in owner_of:
            attached.setdefault(owner_of[msg.tool_call_id], []).append(msg)

    ordered: List[Message] = []
    for i, msg in enumerate(messages):
        if msg.kind == MessageKind.TOOL and msg.tool_call_id in owner_of:
            continue
        ordered.append(msg)
        ordered.extend(attached.get(i, []))

    moved = sum(1 for before, after in zip(messages, ordered) if before is not after)
    if moved:
        logger.info("%s[ORDER] Reattached displaced tool results (%d positions changed)", _prefix(log_prefix), moved)
    return ordered


def repair_tool_use_result_pairing(messages: List[Message], log_prefix: str = "") -> RepairReport:
    """Restore the pairing contract on an arbitrary history.

    Answers calls that have no result, runs the orphan/duplicate filter,
    then repairs calls whose result was rejected.

    Args:
        messages (List[Message]): Message history to repair.
        log_prefix (str): Prefix for log lines.

    Returns:
        RepairReport: Repaired messages with drop and synthesis counts.
    """
    answered = synthesize_missing_tool_results(messages, log_prefix)
    filtered = filter_orphaned_tool_results(answered, log_prefix)
    repaired = repair_dangling_tool_calls(filtered, log_prefix)
    return RepairReport(
        messages=repaired,
        dropped_count=len(answered) - len(filtered),
        synthesized_count=(len(answered) - len(messages)) + (len(repaired) - len(filtered)),
    )
