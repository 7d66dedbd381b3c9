# Copyright (c) 2026 Heureum AI. All rights reserved.

"""Tests for token size estimates."""

from context_guard.models import AssistantMessage, HumanMessage
from context_guard.services.context.tokens import (
    count_lc_tokens,
    estimate_message_tokens,
    estimate_messages_tokens,
    estimate_tokens,
)
from langchain_core.messages import AIMessage
from langchain_core.messages import HumanMessage as LCHumanMessage


class TestEstimates:
    """Tests for message size estimates."""

    def test_longer_text_costs_more(self):
        assert estimate_tokens("word " * 400) > estimate_tokens("word")

    def test_tool_calls_add_cost(self):
        """Verify tool-call arguments count towards the message."""
        plain = AssistantMessage(content="ok")
        calling = AssistantMessage(
            content="ok",
            tool_calls=[{"id": "t1", "name": "write_file", "args": {"body": "z" * 400}}],
        )
        assert estimate_message_tokens(calling) >= estimate_message_tokens(plain) + 100

    def test_thinking_counts(self):
        """Verify reasoning text is part of the estimate."""
        plain = AssistantMessage(content="ok")
        thinking = AssistantMessage(content=[{"type": "thinking", "thinking": "step " * 200}, {"type": "text", "text": "ok"}])
        assert estimate_message_tokens(thinking) > estimate_message_tokens(plain)

    def test_history_is_sum(self):
        """Verify a history costs the sum of its messages."""
        messages = [HumanMessage(content="hello there"), AssistantMessage(content="general kenobi")]
        assert estimate_messages_tokens(messages) == sum(estimate_message_tokens(m) for m in messages)


class TestCountLcTokens:
    """Tests for the LangChain tokenizer."""

    def test_sum_over_messages(self):
        """Verify the count is additive across messages."""
        first, second = LCHumanMessage(content="alpha beta"), AIMessage(content="gamma delta")
        assert count_lc_tokens([first, second]) == count_lc_tokens([first]) + count_lc_tokens([second])

    def test_tool_calls_add_cost(self):
        """Verify tool calls on an AIMessage are charged."""
        plain = AIMessage(content="ok")
        calling = AIMessage(content="ok", tool_calls=[{"id": "t1", "name": "search", "args": {"q": "x" * 200}}])
        assert count_lc_tokens([calling]) > count_lc_tokens([plain])

    def test_empty(self):
        assert count_lc_tokens([]) == 0
