# Copyright (c) 2026 Heureum AI. All rights reserved.

"""
Tool result clearing and tool-call argument stripping.

Clearing replaces the content of old tool results with a fixed placeholder,
leaving the request/result pairing intact.  Optionally the arguments of the
matching tool calls are blanked as well; ids and names are preserved
exactly because every pairing check compares ids.

Argument stripping applies the same idea to requests alone: large argument
values of selected tools (document bodies, batch payloads) in older
assistant messages are replaced with a short marker.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Set

from context_guard.models import Message, MessageKind, ToolCall
from context_guard.services.prompts.base import CLEARED_TOOL_RESULT, OMITTED_ARG_TEMPLATE

logger = logging.getLogger(__name__)


def clear_old_tool_results(
    messages: List[Message],
    *,
    keep_count: int = 5,
    exclude_tools: Iterable[str] = (),
    clear_tool_inputs: bool = False,
    placeholder: str = CLEARED_TOOL_RESULT,
    log_prefix: str = "",
) -> List[Message]:
    """Clear older tool results while preserving recent ones.

    Results of excluded tools are never cleared and do not count towards
    *keep_count*.

    Args:
        messages (List[Message]): History to process.
        keep_count (int): Most recent non-excluded results to keep.
        exclude_tools (Iterable[str]): Tool names never cleared.
        clear_tool_inputs (bool): Also blank the arguments of the tool calls
            whose results were cleared.
        placeholder (str): Replacement content.
        log_prefix (str): Prefix for log lines.

    Returns:
        List[Message]: History with older results cleared. The input list
            is returned when nothing changed.
    """
    prefix = f"{log_prefix} " if log_prefix else ""
    excluded = set(exclude_tools)

    to_clear: Set[int] = set()
    kept = 0
    for i in range(len(messages) - 1, -1, -1):
        msg = messages[i]
        if msg.kind != MessageKind.TOOL or msg.name in excluded:
            continue
        if kept < keep_count:
            kept += 1
        else:
            to_clear.add(i)

    if not to_clear:
        return messages

    logger.info("%s[CLEAR] Clearing %d old tool results, keeping %d", prefix, len(to_clear), kept)

    cleared_ids = {messages[i].tool_call_id for i in to_clear}
    result: List[Message] = []
    for i, msg in enumerate(messages):
        if i in to_clear:
            if msg.content != placeholder:
                msg = msg.model_copy(update={"content": placeholder})
        elif clear_tool_inputs and msg.kind == MessageKind.ASSISTANT:
            msg = _blank_args(msg, cleared_ids)
        result.append(msg)
    return result


def _blank_args(msg: Message, ids: Set[str]) -> Message:
    if not any(tc.id in ids and tc.args for tc in msg.tool_calls):
        return msg
    calls = [
        tc.model_copy(update={"args": {}}) if tc.id in ids else tc
        for tc in msg.tool_calls
    ]
    return msg.model_copy(update={"tool_calls": calls})


def _strip_call_args(tc: ToolCall, max_arg_chars: int) -> ToolCall:
    args: Dict[str, object] = {}
    changed = False
    for key, value in tc.args.items():
        rendered = value if isinstance(value, str) else repr(value)
        if len(rendered) > max_arg_chars and not (isinstance(value, str) and value.startswith("[omitted ")):
            args[key] = OMITTED_ARG_TEMPLATE.format(length=len(rendered))
            changed = True
        else:
            args[key] = value
    return tc.model_copy(update={"args": args}) if changed else tc


def strip_large_tool_call_args(
    messages: List[Message],
    *,
    tool_names: Iterable[str],
    keep_count: int = 2,
    max_arg_chars: int = 500,
    log_prefix: str = "",
) -> List[Message]:
    """Blank large argument values of selected tools in older assistant messages.

    Args:
        messages (List[Message]): History to process.
        tool_names (Iterable[str]): Tools whose arguments may be stripped.
        keep_count (int): Most recent assistant messages left untouched.
        max_arg_chars (int): Values longer than this are replaced.
        log_prefix (str): Prefix for log lines.

    Returns:
        List[Message]: History with large arguments replaced by markers.
    """
    names = set(tool_names)
    if not names:
        return messages

    assistant_indices = [i for i, m in enumerate(messages) if m.kind == MessageKind.ASSISTANT]
    protected = set(assistant_indices[-keep_count:]) if keep_count > 0 else set()

    result = list(messages)
    stripped = 0
    for i in assistant_indices:
        if i in protected:
            continue
        msg = messages[i]
        calls = [
            _strip_call_args(tc, max_arg_chars) if tc.name in names else tc
            for tc in msg.tool_calls
        ]
        changed = sum(1 for old, new in zip(msg.tool_calls, calls) if old is not new)
        if changed:
            result[i] = msg.model_copy(update={"tool_calls": calls})
            stripped += changed

    if not stripped:
        return messages
    logger.info(
        "%s[STRIP] Stripped large arguments from %d tool calls",
        f"{log_prefix} " if log_prefix else "",
        stripped,
    )
    return result
