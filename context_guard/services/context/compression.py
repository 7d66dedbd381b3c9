# Copyright (c) 2026 Heureum AI. All rights reserved.

"""
Tool result compression.

Older, oversized tool results are replaced by a per-tool summary.  Rules
are plain ``(content) -> summary`` callables registered by tool name; tools
without a rule get head truncation with a length marker.

Compressed content never exceeds ``max_length``, so compressing twice is a
no-op.  ``tool_call_id`` and ``name`` are never touched.
"""

from __future__ import annotations

import json
import logging
from typing import Callable, Dict, List, Optional

from context_guard.models import Message, MessageKind
from context_guard.services.prompts.base import TRUNCATION_MARKER_TEMPLATE

logger = logging.getLogger(__name__)

CompressionRule = Callable[[str], str]


class CompressionRules:
    """Registry mapping tool names to compression rules."""

    def __init__(self, rules: Optional[Dict[str, CompressionRule]] = None) -> None:
        self._rules: Dict[str, CompressionRule] = dict(rules or {})

    def register(self, tool_name: str, rule: CompressionRule) -> None:
        """Register (or replace) the rule for a tool."""
        self._rules[tool_name] = rule

    def register_many(self, rules: Dict[str, CompressionRule]) -> None:
        """Register several rules at once."""
        for tool_name, rule in rules.items():
            self.register(tool_name, rule)

    def get(self, tool_name: str) -> Optional[CompressionRule]:
        """Rule registered for *tool_name*, or ``None``."""
        return self._rules.get(tool_name)

    def __contains__(self, tool_name: object) -> bool:
        return tool_name in self._rules

    @property
    def rules(self) -> Dict[str, CompressionRule]:
        """Read-only access to registered rules."""
        return self._rules


def truncate_with_marker(text: str, max_length: int) -> str:
    """Keep the head of *text* and append a length marker.

    Prefers cutting at a newline within the last 20 % of the kept region.
    The result, marker included, is never longer than *max_length*.

    Args:
        text (str): Text to truncate.
        max_length (int): Maximum length of the result.

    Returns:
        str: *text* unchanged if short enough, otherwise head plus marker.
    """
    if len(text) <= max_length:
        return text

    widest_marker = TRUNCATION_MARKER_TEMPLATE.format(kept=max_length, total=len(text))
    keep_chars = max_length - len(widest_marker)
    if keep_chars <= 0:
        return text[: max(0, max_length)]

    cut_point = keep_chars
    last_newline = text.rfind("\n", 0, keep_chars)
    if last_newline > keep_chars * 0.8:
        cut_point = last_newline

    return text[:cut_point] + TRUNCATION_MARKER_TEMPLATE.format(kept=cut_point, total=len(text))


def head_tail_rule(head_chars: int = 300, tail_chars: int = 200) -> CompressionRule:
    """Rule keeping the first *head_chars* and last *tail_chars* characters."""

    def rule(content: str) -> str:
        if head_chars + tail_chars >= len(content):
            return content
        tail = content[-tail_chars:] if tail_chars > 0 else ""
        return (
            f"{content[:head_chars]}\n...\n{tail}"
            f"\n\n[Tool result trimmed: kept first {head_chars} and last {tail_chars} "
            f"of {len(content)} chars.]"
        )

    return rule


def json_outline_rule(max_items: int = 5, max_item_chars: int = 120) -> CompressionRule:
    """Rule describing a JSON payload by shape instead of content.

    Arrays report their length and the first *max_items* entries (each
    cut to *max_item_chars*); objects report their keys.  Non-JSON content
    is returned unchanged so generic truncation can take over.
    """

    def _preview(value: object) -> str:
        rendered = json.dumps(value, ensure_ascii=False, default=str)
        return rendered if len(rendered) <= max_item_chars else rendered[:max_item_chars] + "..."

    def rule(content: str) -> str:
        try:
            data = json.loads(content)
        except (TypeError, ValueError):
            return content
        if isinstance(data, list):
            lines = [f"[JSON array with {len(data)} items]"]
            lines.extend(f"- {_preview(item)}" for item in data[:max_items])
            if len(data) > max_items:
                lines.append(f"... {len(data) - max_items} more")
            return "\n".join(lines)
        if isinstance(data, dict):
            keys = ", ".join(str(k) for k in data.keys())
            return f"[JSON object with {len(data)} keys] {keys}"
        return content

    return rule


def _compress_content(
    content: str,
    tool_name: str,
    max_length: int,
    rules: Optional[CompressionRules],
    prefix: str,
) -> str:
    rule = rules.get(tool_name) if rules is not None else None
    summary: Optional[str] = None
    if rule is not None:
        try:
            summary = rule(content)
        except Exception as e:
            logger.warning("%s[COMPRESS] Rule for %s failed, using truncation: %s", prefix, tool_name, e)
        if summary is not None and not isinstance(summary, str):
            summary = None
    if summary is None:
        summary = content
    return truncate_with_marker(summary, max_length)


def compress_tool_results(
    messages: List[Message],
    *,
    keep_count: int = 3,
    max_length: int = 2_000,
    rules: Optional[CompressionRules] = None,
    log_prefix: str = "",
) -> List[Message]:
    """Compress older oversized tool results.

    The *keep_count* most recent results of each tool name are left
    untouched.  Older results longer than *max_length* are replaced by
    their rule's summary, or by generic truncation.

    Args:
        messages (List[Message]): History to process.
        keep_count (int): Recent results kept verbatim per tool name.
        max_length (int): Size threshold for compression.
        rules (Optional[CompressionRules]): Per-tool rules.
        log_prefix (str): Prefix for log lines.

    Returns:
        List[Message]: History with older results compressed. The input
            list is returned when nothing changed.
    """
    prefix = f"{log_prefix} " if log_prefix else ""
    seen_per_tool: Dict[str, int] = {}
    to_compress: List[int] = []

    for i in range(len(messages) - 1, -1, -1):
        msg = messages[i]
        if msg.kind != MessageKind.TOOL:
            continue
        seen = seen_per_tool.get(msg.name, 0)
        seen_per_tool[msg.name] = seen + 1
        if seen < keep_count:
            continue
        if len(msg.content) > max_length:
            to_compress.append(i)

    if not to_compress:
        return messages

    result = list(messages)
    saved = 0
    for i in to_compress:
        msg = messages[i]
        compressed = _compress_content(msg.content, msg.name, max_length, rules, prefix)
        saved += len(msg.content) - len(compressed)
        result[i] = msg.model_copy(update={"content": compressed})

    logger.info(
        "%s[COMPRESS] Compressed %d old tool results (%d chars saved)",
        prefix,
        len(to_compress),
        saved,
    )
    return result
