# Copyright (c) 2026 Heureum AI. All rights reserved.

"""LangChain message conversion.

``to_langchain`` renders the canonical message model into LangChain
messages for model invocation and token counting.  Assistant tool requests
are emitted once, through ``AIMessage.tool_calls``; text and thinking
blocks become the content list, so the provider never sees the same
``tool_use`` id twice.

``from_langchain`` goes the other way for model replies and for histories
kept as LangChain objects.
"""

from __future__ import annotations

from typing import Any, Dict, List, Sequence

from langchain_core.messages import (
    AIMessage,
    BaseMessage,
    HumanMessage as LCHumanMessage,
    SystemMessage as LCSystemMessage,
    ToolMessage,
)

from context_guard.models import (
    AssistantMessage,
    HumanMessage,
    Message,
    MessageKind,
    SystemMessage,
    TextBlock,
    ThinkingBlock,
    ToolResultMessage,
)


def extract_text(content: Any) -> str:
    """Extract plain text from LangChain message content.

    Args:
        content (Any): Raw content (str, list of blocks, or other).

    Returns:
        str: The concatenated text representation.
    """
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "\n".join(
            item if isinstance(item, str) else str(item.get("text", ""))
            for item in content
            if isinstance(item, str) or (isinstance(item, dict) and item.get("type", "text") == "text")
        )
    return str(content)


def _assistant_content(msg: AssistantMessage) -> Any:
    if all(isinstance(b, TextBlock) for b in msg.content):
        return msg.text
    blocks: List[Dict[str, Any]] = []
    for block in msg.content:
        if isinstance(block, TextBlock):
            blocks.append({"type": "text", "text": block.text})
        elif isinstance(block, ThinkingBlock):
            rendered: Dict[str, Any] = {"type": block.type}
            if block.type == "redacted_thinking":
                rendered["data"] = block.signature or ""
            else:
                rendered["thinking"] = block.thinking
                if block.signature:
                    rendered["signature"] = block.signature
            blocks.append(rendered)
    return blocks


def to_langchain_message(msg: Message) -> BaseMessage:
    """Convert one message to its LangChain counterpart.

    Args:
        msg (Message): Message to convert.

    Returns:
        BaseMessage: The corresponding LangChain message instance.
    """
    if msg.kind == MessageKind.SYSTEM:
        return LCSystemMessage(content=msg.content)
    if msg.kind == MessageKind.HUMAN:
        return LCHumanMessage(content=msg.content)
    if msg.kind == MessageKind.ASSISTANT:
        kwargs: Dict[str, Any] = {}
        if msg.id:
            kwargs["id"] = msg.id
        if msg.name:
            kwargs["name"] = msg.name
        return AIMessage(
            content=_assistant_content(msg),
            tool_calls=[{"id": tc.id, "name": tc.name, "args": dict(tc.args)} for tc in msg.tool_calls],
            **kwargs,
        )
    return ToolMessage(content=msg.content, tool_call_id=msg.tool_call_id, name=msg.name or None)


def to_langchain(messages: Sequence[Message]) -> List[BaseMessage]:
    """Convert a message list to LangChain messages."""
    return [to_langchain_message(m) for m in messages]


def from_langchain_message(msg: BaseMessage) -> Message:
    """Convert a LangChain message to the canonical model.

    ``tool_use`` blocks present in AIMessage content are merged into the
    canonical tool-call list by the model itself.

    Args:
        msg (BaseMessage): LangChain message.

    Returns:
        Message: The converted message. Unknown message types become
            human messages carrying their text.
    """
    if isinstance(msg, LCSystemMessage):
        return SystemMessage(content=extract_text(msg.content))
    if isinstance(msg, AIMessage):
        return AssistantMessage(
            content=msg.content,
            tool_calls=[
                {"id": tc.get("id") or "", "name": tc.get("name", ""), "args": tc.get("args", {})}
                for tc in (msg.tool_calls or [])
            ],
            id=msg.id,
            name=msg.name,
        )
    if isinstance(msg, ToolMessage):
        return ToolResultMessage(
            tool_call_id=msg.tool_call_id,
            name=msg.name or "",
            content=extract_text(msg.content),
        )
    if isinstance(msg, LCHumanMessage):
        return HumanMessage(content=extract_text(msg.content))
    return HumanMessage(content=extract_text(getattr(msg, "content", "")))


def from_langchain(messages: Sequence[BaseMessage]) -> List[Message]:
    """Convert LangChain messages to the canonical model."""
    return [from_langchain_message(m) for m in messages]
