# Copyright (c) 2026 Heureum AI. All rights reserved.

"""
Model invocation glue.

``AgentService`` is the consumer of the context pipeline: it bounds and
repairs the history, prepends the agent's system prompt, calls the chat
model through LangChain and converts the reply back to the canonical
message model.  The chat model is injected; ``create_summary_llm`` builds
the one used for summaries from settings at startup.
"""

import logging
from typing import List, Optional, Sequence

from langchain_core.language_models import BaseChatModel
from langchain_google_genai import ChatGoogleGenerativeAI
from langchain_openai import ChatOpenAI
from pydantic import SecretStr

from context_guard.config import Settings, settings
from context_guard.models import (
    AssistantMessage,
    HumanMessage,
    Message,
    MessageKind,
    SystemMessage,
    has_usable_content,
)
from context_guard.services.context.convert import from_langchain_message, to_langchain
from context_guard.services.context.pipeline import process
from context_guard.services.context.settings import ProcessOptions
from context_guard.services.prompts.base import EMPTY_RESPONSE_NUDGE

logger = logging.getLogger(__name__)


def create_summary_llm(cfg: Settings = settings) -> BaseChatModel:
    """Create the summary model based on the SUMMARY_MODEL setting.

    ``gemini*`` models go through Google AI Studio, everything else through
    OpenAI.

    Args:
        cfg (Settings): Settings providing model name and credentials.

    Returns:
        BaseChatModel: The configured chat model.
    """
    model = cfg.SUMMARY_MODEL
    if model.startswith("gemini"):
        return ChatGoogleGenerativeAI(
            model=model,
            google_api_key=cfg.GOOGLE_API_KEY,
            temperature=cfg.SUMMARY_TEMPERATURE,
            max_output_tokens=cfg.SUMMARY_MAX_TOKENS,
        )
    return ChatOpenAI(
        api_key=SecretStr(cfg.OPENAI_API_KEY),
        model=model,
        temperature=cfg.SUMMARY_TEMPERATURE,
        max_completion_tokens=cfg.SUMMARY_MAX_TOKENS,
    )


class AgentService:
    """Invoke a chat model on a processed history.

    Args:
        llm (BaseChatModel): Chat model answering the agent's turn.
        options (Optional[ProcessOptions]): Pipeline options applied to
            every history before the call.
        tools (Optional[list]): Tool schemas bound to the model, if any.
    """

    def __init__(
        self,
        llm: BaseChatModel,
        options: Optional[ProcessOptions] = None,
        tools: Optional[list] = None,
    ) -> None:
        self.llm = llm
        self.options = options or ProcessOptions.from_settings(settings)
        self.tools = list(tools or [])

    async def _call_llm(self, lc_messages: list):
        """Invoke the model, binding tools when configured.

        Args:
            lc_messages (list): LangChain message objects forming the prompt.

        Returns:
            AIMessage: The model response.
        """
        if self.tools:
            return await self.llm.bind_tools(self.tools).ainvoke(lc_messages)
        return await self.llm.ainvoke(lc_messages)

    async def prepare(self, system_prompt: str, history: Sequence[Message]) -> List[Message]:
        """Processed history with the agent's system prompt in front.

        System messages already in *history* (such as an earlier summary)
        follow the agent prompt.
        """
        processed = await process(history, self.options)
        return [SystemMessage(content=system_prompt)] + processed

    async def invoke(self, system_prompt: str, history: Sequence[Message]) -> AssistantMessage:
        """Run one agent turn.

        A reply with neither text nor tool calls (for example thinking only)
        is retried once with a nudge appended to the prompt.

        Args:
            system_prompt (str): Agent instructions.
            history (Sequence[Message]): Raw conversation history.

        Returns:
            AssistantMessage: The model reply. May still be unusable when the
                retry also comes back empty.
        """
        messages = await self.prepare(system_prompt, history)
        lc_messages = to_langchain(messages)

        reply = await self._reply(lc_messages)
        if has_usable_content(reply):
            return reply

        logger.warning("%sModel returned an empty response, retrying with a nudge", self.options.prefix)
        lc_messages.append(to_langchain([HumanMessage(content=EMPTY_RESPONSE_NUDGE)])[0])
        reply = await self._reply(lc_messages)
        if not has_usable_content(reply):
            logger.error("%sModel returned an empty response after retry", self.options.prefix)
        return reply

    async def _reply(self, lc_messages: list) -> AssistantMessage:
        response = await self._call_llm(lc_messages)
        reply = from_langchain_message(response)
        if reply.kind != MessageKind.ASSISTANT:
            return AssistantMessage(content=getattr(reply, "content", ""))
        return reply
