# Copyright (c) 2026 Heureum AI. All rights reserved.

"""Tests for token and message-count window trimming."""

import logging
from typing import List

from context_guard.models import AssistantMessage, HumanMessage, Message, SystemMessage, ToolResultMessage
from context_guard.services.context.trimming import TrimMode, apply_window, trim_messages
from langchain_core.messages import BaseMessage

# ---------------------------------------------------------------------------
# Common helpers
# ---------------------------------------------------------------------------


def _ten_per_message(messages: List[BaseMessage]) -> int:
    """Tokenizer charging a flat 10 tokens per message."""
    return 10 * len(messages)


def _failing_tokenizer(messages: List[BaseMessage]) -> int:
    """Tokenizer that always raises."""
    raise RuntimeError("tokenizer offline")


def _ai(tc_id: str, name: str = "search", args=None) -> AssistantMessage:
    """Create an assistant message with a single tool call."""
    return AssistantMessage(tool_calls=[{"id": tc_id, "name": name, "args": args or {}}])


def _tool(tc_id: str, content: str = "result", name: str = "search") -> ToolResultMessage:
    """Create a tool result for the given id."""
    return ToolResultMessage(tool_call_id=tc_id, name=name, content=content)


def _h(text: str) -> HumanMessage:
    return HumanMessage(content=text)


def _a(text: str) -> AssistantMessage:
    return AssistantMessage(content=text)


# ---------------------------------------------------------------------------
# Message-count fallback
# ---------------------------------------------------------------------------


class TestCountTrimming:
    """Tests for the message-count fallback."""

    def test_keeps_most_recent(self):
        """Verify the last N non-system messages are kept after the system prompt."""
        system = SystemMessage(content="s")
        messages: List[Message] = [system, _h("h1"), _a("a1"), _h("h2"), _a("a2"), _h("h3"), _a("a3")]
        outcome = apply_window(messages, max_tokens=1000, fallback_message_count=4)
        assert outcome.mode == TrimMode.COUNT
        assert outcome.messages == [system, _h("h2"), _a("a2"), _h("h3"), _a("a3")]

    def test_cut_advances_past_tool_results(self):
        """Verify the cut never lands on a tool result or a tool-calling assistant."""
        messages = [_h("h1"), _ai("t1"), _tool("t1"), _a("done"), _h("h2")]
        outcome = apply_window(messages, max_tokens=1000, fallback_message_count=3)
        assert outcome.messages == [_a("done"), _h("h2")]

    def test_no_safe_start_keeps_raw_tail(self, caplog):
        """Verify the raw tail is kept when no safe cut point exists."""
        caplog.set_level(logging.WARNING)
        messages = [_ai("a"), _tool("a"), _ai("b"), _tool("b")]
        outcome = apply_window(messages, max_tokens=1000, fallback_message_count=2)
        assert outcome.messages == [_ai("b"), _tool("b")]
        assert "No valid start point found" in caplog.text

    def test_under_budget_unchanged(self):
        """Verify nothing is trimmed when the history fits."""
        messages = [SystemMessage(content="s"), _h("h1"), _a("a1")]
        outcome = apply_window(messages, max_tokens=1000, fallback_message_count=10)
        assert outcome.mode == TrimMode.NONE
        assert outcome.messages == messages

    def test_system_messages_sorted_first(self):
        """Verify system messages move to the front and are never trimmed."""
        late_system = SystemMessage(content="late")
        messages = [_h("h1"), _a("a1"), late_system, _h("h2")]
        outcome = apply_window(messages, max_tokens=1000, fallback_message_count=1)
        assert outcome.messages == [late_system, _h("h2")]

    def test_empty_input(self):
        """Verify empty input produces empty output."""
        outcome = apply_window([], max_tokens=1000, fallback_message_count=5)
        assert outcome.messages == []
        assert outcome.mode == TrimMode.NONE

    def test_trim_messages_returns_list(self):
        """Verify the list-returning wrapper matches apply_window."""
        messages = [_h("h1"), _a("a1"), _h("h2")]
        assert trim_messages(messages, max_tokens=1000, fallback_message_count=1) == [_h("h2")]

    def test_empty_window_keeps_raw_tail(self, caplog):
        """Verify a window that would be empty falls back to the raw tail."""
        caplog.set_level(logging.WARNING)
        outcome = apply_window([_h("a"), _a("b")], max_tokens=1000, fallback_message_count=0)
        assert outcome.mode == TrimMode.RAW
        assert outcome.messages == [_a("b")]
        assert "Would return 0 messages" in caplog.text


# ---------------------------------------------------------------------------
# Token trimming
# ---------------------------------------------------------------------------


class TestTokenTrimming:
    """Tests for token-budget trimming through the injected tokenizer."""

    def test_keeps_recent_within_budget(self):
        """Verify the budget, minus the system prompt, bounds the window."""
        system = SystemMessage(content="s")
        messages = [system, _h("h1"), _a("a1"), _h("h2"), _a("a2")]
        outcome = apply_window(messages, max_tokens=30, fallback_message_count=40, tokenizer=_ten_per_message)
        assert outcome.mode == TrimMode.TOKENS
        assert outcome.messages == [system, _h("h2"), _a("a2")]

    def test_never_starts_on_tool_result(self):
        """Verify a window that would start on a tool result is shortened."""
        messages = [_h("h1"), _ai("t1"), _tool("t1"), _a("a2")]
        outcome = apply_window(messages, max_tokens=20, fallback_message_count=40, tokenizer=_ten_per_message)
        assert outcome.messages == [_a("a2")]

    def test_tokenizer_failure_falls_back_to_count(self, caplog):
        """Verify a raising tokenizer degrades to message-count trimming."""
        caplog.set_level(logging.WARNING)
        messages = [_h("h1"), _a("a1"), _h("h2")]
        outcome = apply_window(messages, max_tokens=30, fallback_message_count=1, tokenizer=_failing_tokenizer)
        assert outcome.mode == TrimMode.COUNT
        assert outcome.messages == [_h("h2")]
        assert "Token counting failed" in caplog.text

    def test_system_over_budget_falls_back_to_count(self):
        """Verify an oversized system prompt degrades to message-count trimming."""
        messages = [SystemMessage(content="s"), _h("h1"), _h("h2")]
        outcome = apply_window(messages, max_tokens=5, fallback_message_count=1, tokenizer=_ten_per_message)
        assert outcome.mode == TrimMode.COUNT
        assert outcome.messages == [SystemMessage(content="s"), _h("h2")]

    def test_nothing_fits_falls_back_to_count(self):
        """Verify an empty token window degrades to message-count trimming."""
        messages = [_h("h1"), _h("h2")]
        outcome = apply_window(
            messages,
            max_tokens=5,
            fallback_message_count=1,
            tokenizer=lambda msgs: 100 * len(msgs),
        )
        assert outcome.mode == TrimMode.COUNT
        assert outcome.messages == [_h("h2")]


# ---------------------------------------------------------------------------
# Task-critical preservation
# ---------------------------------------------------------------------------


class TestTaskCriticalPreservation:
    """Tests for original-request and keyword preservation."""

    def test_original_request_preserved(self):
        """Verify the message holding the original request survives, case-insensitively."""
        request = _h("Please deploy the Zephyr service")
        messages = [request, _a("ok"), _h("h2"), _a("a2"), _h("h3")]
        outcome = apply_window(messages, max_tokens=1000, fallback_message_count=2, original_request="zephyr")
        assert outcome.messages == [request, _a("a2"), _h("h3")]
        assert outcome.preserved_count == 1

    def test_exchange_preserved_whole(self):
        """Verify a matching tool request is preserved together with its result."""
        call = _ai("t1", name="read_plan", args={"plan": "X"})
        result = _tool("t1", "plan body", name="read_plan")
        messages = [_h("start"), call, result, _h("a"), _a("b"), _h("c")]
        outcome = apply_window(messages, max_tokens=1000, fallback_message_count=2, preserve_keywords=("read_plan",))
        assert outcome.messages == [call, result, _a("b"), _h("c")]
        assert outcome.preserved_count == 2

    def test_keyword_in_result_preserves_request(self):
        """Verify a match inside a tool result also brings back its request."""
        call = _ai("t1")
        result = _tool("t1", "the BILLING schema")
        messages = [_h("start"), call, result, _a("b"), _h("c")]
        outcome = apply_window(messages, max_tokens=1000, fallback_message_count=2, preserve_keywords=("billing",))
        assert outcome.messages == [call, result, _a("b"), _h("c")]

    def test_token_path_preserves_keywords(self):
        """Verify preservation also applies after token trimming."""
        request = _h("migrate the billing database")
        messages = [request, _a("a1"), _h("h2"), _a("a2")]
        outcome = apply_window(
            messages,
            max_tokens=20,
            fallback_message_count=40,
            tokenizer=_ten_per_message,
            preserve_keywords=("billing",),
        )
        assert outcome.mode == TrimMode.TOKENS
        assert outcome.messages == [request, _h("h2"), _a("a2")]

    def test_blank_keywords_ignored(self):
        """Verify empty keywords do not preserve everything."""
        messages = [_h("h1"), _a("a1"), _h("h2")]
        outcome = apply_window(messages, max_tokens=1000, fallback_message_count=1, preserve_keywords=("", "  "))
        assert outcome.messages == [_h("h2")]
        assert outcome.preserved_count == 0
