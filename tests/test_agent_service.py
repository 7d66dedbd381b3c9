# Copyright (c) 2026 Heureum AI. All rights reserved.

"""Tests for AgentService and summary model construction."""

import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from context_guard.config import Settings, settings
from context_guard.models import AssistantMessage, HumanMessage, ToolResultMessage
from context_guard.services.agent_service import AgentService, create_summary_llm
from context_guard.services.context.settings import ProcessOptions
from context_guard.services.prompts.base import EMPTY_RESPONSE_NUDGE
from langchain_core.messages import AIMessage, SystemMessage as LCSystemMessage, ToolMessage


def _llm(*replies: AIMessage) -> MagicMock:
    """Mock chat model returning *replies* in order."""
    llm = MagicMock()
    llm.ainvoke = AsyncMock(side_effect=list(replies))
    return llm


class TestAgentServiceInvoke:
    """Tests for AgentService.invoke."""

    @pytest.mark.asyncio
    async def test_returns_reply(self):
        """Verify the reply is converted and the system prompt goes first."""
        llm = _llm(AIMessage(content="Hello!"))
        service = AgentService(llm, options=ProcessOptions())

        reply = await service.invoke("You are helpful.", [HumanMessage(content="hi")])

        assert isinstance(reply, AssistantMessage)
        assert reply.text == "Hello!"
        sent = llm.ainvoke.call_args.args[0]
        assert isinstance(sent[0], LCSystemMessage)
        assert sent[0].content == "You are helpful."
        assert sent[1].content == "hi"

    @pytest.mark.asyncio
    async def test_empty_reply_retried_with_nudge(self, caplog):
        """Verify an empty reply triggers one retry with a nudge."""
        caplog.set_level(logging.WARNING)
        llm = _llm(AIMessage(content=""), AIMessage(content="Now with text."))
        service = AgentService(llm, options=ProcessOptions())

        reply = await service.invoke("sys", [HumanMessage(content="hi")])

        assert reply.text == "Now with text."
        assert llm.ainvoke.call_count == 2
        retry_prompt = llm.ainvoke.call_args_list[1].args[0]
        assert retry_prompt[-1].content == EMPTY_RESPONSE_NUDGE
        assert "retrying with a nudge" in caplog.text

    @pytest.mark.asyncio
    async def test_tool_call_reply_not_retried(self):
        """Verify a reply with only tool calls counts as usable."""
        llm = _llm(AIMessage(content="", tool_calls=[{"id": "t1", "name": "search", "args": {}}]))
        service = AgentService(llm, options=ProcessOptions())

        reply = await service.invoke("sys", [HumanMessage(content="hi")])

        assert [tc.id for tc in reply.tool_calls] == ["t1"]
        assert llm.ainvoke.call_count == 1

    @pytest.mark.asyncio
    async def test_second_empty_reply_returned(self):
        """Verify the retry result is returned even when still empty."""
        llm = _llm(AIMessage(content=""), AIMessage(content=""))
        service = AgentService(llm, options=ProcessOptions())

        reply = await service.invoke("sys", [HumanMessage(content="hi")])

        assert reply.text == ""
        assert llm.ainvoke.call_count == 2

    @pytest.mark.asyncio
    async def test_history_repaired_before_call(self):
        """Verify orphaned results never reach the model."""
        llm = _llm(AIMessage(content="ok"))
        service = AgentService(llm, options=ProcessOptions())
        history = [HumanMessage(content="hi"), ToolResultMessage(tool_call_id="ghost", name="search", content="?")]

        await service.invoke("sys", history)

        sent = llm.ainvoke.call_args.args[0]
        assert not any(isinstance(m, ToolMessage) for m in sent)

    @pytest.mark.asyncio
    async def test_tools_bound(self):
        """Verify configured tools are bound before invoking."""
        bound = MagicMock()
        bound.ainvoke = AsyncMock(return_value=AIMessage(content="done"))
        llm = MagicMock()
        llm.bind_tools = MagicMock(return_value=bound)
        tools = [{"name": "search", "description": "Search", "parameters": {"type": "object", "properties": {}}}]
        service = AgentService(llm, options=ProcessOptions(), tools=tools)

        reply = await service.invoke("sys", [HumanMessage(content="hi")])

        assert reply.text == "done"
        llm.bind_tools.assert_called_once_with(tools)

    @pytest.mark.asyncio
    async def test_prepare(self):
        """Verify prepare returns the processed history behind the prompt."""
        service = AgentService(MagicMock(), options=ProcessOptions(fallback_message_count=1))
        history = [HumanMessage(content="old"), AssistantMessage(content="reply"), HumanMessage(content="new")]

        prepared = await service.prepare("sys", history)

        assert [m.content for m in prepared] == ["sys", "new"]

    def test_default_options_from_settings(self):
        """Verify options default to the application settings."""
        service = AgentService(MagicMock())
        assert service.options.max_tokens == settings.CONTEXT_MAX_TOKENS
        assert service.options.fallback_message_count == settings.CONTEXT_FALLBACK_MESSAGE_COUNT


class TestCreateSummaryLLM:
    """Tests for create_summary_llm."""

    def test_openai_model(self):
        """Verify non-Gemini models are created through ChatOpenAI."""
        cfg = Settings(SUMMARY_MODEL="gpt-4o-mini", OPENAI_API_KEY="sk-test", SUMMARY_MAX_TOKENS=500)
        with patch("context_guard.services.agent_service.ChatOpenAI") as chat_openai:
            create_summary_llm(cfg)
        kwargs = chat_openai.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["max_completion_tokens"] == 500
        assert kwargs["api_key"].get_secret_value() == "sk-test"

    def test_gemini_model(self):
        """Verify Gemini models are created through ChatGoogleGenerativeAI."""
        cfg = Settings(SUMMARY_MODEL="gemini-2.0-flash", GOOGLE_API_KEY="g-test")
        with patch("context_guard.services.agent_service.ChatGoogleGenerativeAI") as chat_gemini:
            create_summary_llm(cfg)
        kwargs = chat_gemini.call_args.kwargs
        assert kwargs["model"] == "gemini-2.0-flash"
        assert kwargs["google_api_key"] == "g-test"
        assert kwargs["temperature"] == cfg.SUMMARY_TEMPERATURE
