# Copyright (c) 2026 Heureum AI. All rights reserved.

"""Conversation message model.

Four message variants share one explicit discriminant, ``kind``.  Every
pass in ``services.context`` classifies messages through :func:`kind` and
the accessors below instead of probing class names.

Tool requests live in exactly one place: ``AssistantMessage.tool_calls``.
Provider payloads that also carry ``tool_use`` content blocks are folded
into that list at construction; the block form is only ever rendered on
demand (:attr:`AssistantMessage.content_blocks`).
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Annotated, Any, Dict, Iterable, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

_THINKING_TYPES = frozenset({"thinking", "redacted_thinking"})


class MessageKind(str, Enum):
    """Message kind enumeration.

    Attributes:
        SYSTEM (str): Instructions; always sorted to the front.
        HUMAN (str): End-user input.
        ASSISTANT (str): Model output, optionally requesting tool calls.
        TOOL (str): External result of one tool call.
    """

    SYSTEM = "system"
    HUMAN = "human"
    ASSISTANT = "assistant"
    TOOL = "tool"


class ToolCall(BaseModel):
    """Single tool invocation requested by the model.

    Attributes:
        id (str): Identifier correlating the call with its result.
        name (str): Name of the tool to invoke.
        args (Dict[str, Any]): Parsed tool arguments.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    args: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _accept_provider_shapes(cls, data: Any) -> Any:
        """Accept ``input`` (Anthropic) and JSON-string ``args`` (OpenAI)."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if "args" not in data and "input" in data:
            data["args"] = data.pop("input")
        args = data.get("args")
        if isinstance(args, str):
            try:
                parsed = json.loads(args) if args.strip() else {}
            except ValueError:
                parsed = {"raw": args}
            data["args"] = parsed if isinstance(parsed, dict) else {"value": parsed}
        elif args is None:
            data["args"] = {}
        if data.get("id") is None:
            data["id"] = ""
        return data


class TextBlock(BaseModel):
    """Plain text fragment of an assistant message."""

    model_config = ConfigDict(frozen=True)

    type: Literal["text"] = "text"
    text: str


class ThinkingBlock(BaseModel):
    """Reasoning fragment of an assistant message.

    Attributes:
        type (Literal["thinking", "redacted_thinking"]): Block discriminator.
        thinking (str): Reasoning text (empty for redacted blocks).
        signature (Optional[str]): Provider signature, replayed verbatim.
    """

    model_config = ConfigDict(frozen=True)

    type: Literal["thinking", "redacted_thinking"] = "thinking"
    thinking: str = ""
    signature: Optional[str] = None


class ToolRequestBlock(BaseModel):
    """Rendered ``tool_use`` block. Derived from ``tool_calls``, never stored."""

    model_config = ConfigDict(frozen=True)

    type: Literal["tool_use"] = "tool_use"
    id: str
    name: str
    input: Dict[str, Any] = Field(default_factory=dict)


ContentBlock = Annotated[Union[TextBlock, ThinkingBlock], Field(discriminator="type")]


class SystemMessage(BaseModel):
    """System instructions."""

    model_config = ConfigDict(frozen=True)

    kind: Literal[MessageKind.SYSTEM] = MessageKind.SYSTEM
    content: str


class HumanMessage(BaseModel):
    """End-user input."""

    model_config = ConfigDict(frozen=True)

    kind: Literal[MessageKind.HUMAN] = MessageKind.HUMAN
    content: str


class AssistantMessage(BaseModel):
    """Model output.

    Attributes:
        kind (Literal[MessageKind.ASSISTANT]): Discriminant.
        content (List[ContentBlock]): Ordered text and thinking fragments.
            A plain string is normalized to a single ``TextBlock``.
        tool_calls (List[ToolCall]): Canonical list of tool requests.
        id (Optional[str]): Provider message identifier, if any.
        name (Optional[str]): Name of the agent that produced the message.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal[MessageKind.ASSISTANT] = MessageKind.ASSISTANT
    content: List[ContentBlock] = Field(default_factory=list)
    tool_calls: List[ToolCall] = Field(default_factory=list)
    id: Optional[str] = None
    name: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _normalize(cls, data: Any) -> Any:
        """Normalize content and lift ``tool_use`` blocks into ``tool_calls``."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        raw_content = data.get("content")
        raw_calls = list(data.get("tool_calls") or [])

        blocks: List[Any] = []
        lifted: List[Any] = []
        if isinstance(raw_content, str):
            if raw_content:
                blocks.append({"type": "text", "text": raw_content})
        elif isinstance(raw_content, list):
            for block in raw_content:
                if isinstance(block, str):
                    blocks.append({"type": "text", "text": block})
                elif isinstance(block, (TextBlock, ThinkingBlock)):
                    blocks.append(block)
                elif isinstance(block, ToolRequestBlock):
                    lifted.append({"id": block.id, "name": block.name, "args": block.input})
                elif isinstance(block, dict):
                    block_type = block.get("type")
                    if block_type == "text":
                        blocks.append({"type": "text", "text": block.get("text") or ""})
                    elif block_type in _THINKING_TYPES:
                        blocks.append(
                            {
                                "type": block_type,
                                "thinking": block.get("thinking") or "",
                                "signature": block.get("signature") or block.get("data"),
                            }
                        )
                    elif block_type == "tool_use":
                        lifted.append(block)
        data["content"] = blocks

        calls: List[Any] = []
        seen: set[str] = set()
        for tc in raw_calls + lifted:
            tc_id = tc.id if isinstance(tc, ToolCall) else (tc.get("id") or "")
            if tc_id and tc_id in seen:
                continue
            if tc_id:
                seen.add(tc_id)
            calls.append(tc)
        data["tool_calls"] = calls
        return data

    @property
    def text(self) -> str:
        """Concatenated text of all ``TextBlock`` fragments."""
        return "\n".join(b.text for b in self.content if isinstance(b, TextBlock) and b.text)

    @property
    def content_blocks(self) -> List[Union[TextBlock, ThinkingBlock, ToolRequestBlock]]:
        """Wire view of the message: stored blocks, then one block per tool call."""
        rendered: List[Union[TextBlock, ThinkingBlock, ToolRequestBlock]] = list(self.content)
        rendered.extend(
            ToolRequestBlock(id=tc.id, name=tc.name, input=dict(tc.args)) for tc in self.tool_calls
        )
        return rendered


class ToolResultMessage(BaseModel):
    """External outcome of one tool request.

    Attributes:
        kind (Literal[MessageKind.TOOL]): Discriminant.
        tool_call_id (str): Id of the tool call this result answers.
        name (str): Name of the tool that produced the result.
        content (str): Result payload as text.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal[MessageKind.TOOL] = MessageKind.TOOL
    tool_call_id: str
    name: str = ""
    content: str = ""

    @model_validator(mode="before")
    @classmethod
    def _flatten_content(cls, data: Any) -> Any:
        """Join list content into plain text and default a missing name."""
        if isinstance(data, dict) and isinstance(data.get("content"), list):
            data = dict(data)
            data["content"] = "\n".join(
                item if isinstance(item, str) else str(item.get("text", ""))
                for item in data["content"]
                if isinstance(item, (str, dict))
            )
        if isinstance(data, dict) and data.get("name") is None:
            data = dict(data)
            data["name"] = ""
        return data


Message = Annotated[
    Union[SystemMessage, HumanMessage, AssistantMessage, ToolResultMessage],
    Field(discriminator="kind"),
]


# ---------------------------------------------------------------------------
# Classification & accessors
# ---------------------------------------------------------------------------


def kind(msg: Message) -> MessageKind:
    """Return the discriminant of *msg*."""
    return msg.kind


def tool_call_ids(msg: Message) -> List[str]:
    """Ids of the tool calls requested by an assistant message.

    Args:
        msg (Message): Any message.

    Returns:
        List[str]: Non-empty tool-call ids in request order, without
            duplicates. Empty for every other kind.
    """
    if msg.kind != MessageKind.ASSISTANT:
        return []
    ids: List[str] = []
    for tc in msg.tool_calls:
        if tc.id and tc.id not in ids:
            ids.append(tc.id)
    return ids


def message_text(msg: Message) -> str:
    """Searchable text of a message.

    Assistant messages contribute their text blocks plus the name and JSON
    arguments of each tool call.
    """
    if msg.kind != MessageKind.ASSISTANT:
        return msg.content
    parts = [msg.text] if msg.text else []
    for tc in msg.tool_calls:
        try:
            args = json.dumps(tc.args, ensure_ascii=False, sort_keys=True)
        except (TypeError, ValueError):
            args = str(tc.args)
        parts.append(f"{tc.name} {args}")
    return "\n".join(parts)


def has_text_content(msg: Message) -> bool:
    """Whether *msg* carries non-whitespace text.

    Thinking blocks do not count: some providers reject assistant turns
    made only of reasoning.
    """
    if msg.kind == MessageKind.ASSISTANT:
        return any(isinstance(b, TextBlock) and b.text.strip() for b in msg.content)
    return bool(msg.content.strip())


def has_usable_content(msg: Message) -> bool:
    """Non-empty text, or at least one tool call."""
    if msg.kind == MessageKind.ASSISTANT and msg.tool_calls:
        return True
    return has_text_content(msg)


def strip_tool_requests(msg: AssistantMessage, ids_to_remove: Iterable[str]) -> AssistantMessage:
    """Return a copy of *msg* without the given tool calls.

    When no tool call remains the message collapses to its text blocks.
    The original message is returned as-is when nothing would change.

    Args:
        msg (AssistantMessage): Assistant message to strip.
        ids_to_remove (Iterable[str]): Tool-call ids to drop.

    Returns:
        AssistantMessage: The stripped message.
    """
    remove = set(ids_to_remove)
    kept = [tc for tc in msg.tool_calls if tc.id not in remove]
    if len(kept) == len(msg.tool_calls):
        return msg
    if kept:
        return msg.model_copy(update={"tool_calls": kept})
    text_only = [b for b in msg.content if isinstance(b, TextBlock)]
    return msg.model_copy(update={"tool_calls": [], "content": text_only})


def strip_thinking_blocks(messages: List[Message]) -> List[Message]:
    """Remove thinking blocks from every assistant message.

    Needed when a model running with thinking disabled receives history
    produced by a model that had it enabled.
    """
    result: List[Message] = []
    for msg in messages:
        if msg.kind == MessageKind.ASSISTANT and any(isinstance(b, ThinkingBlock) for b in msg.content):
            msg = msg.model_copy(
                update={"content": [b for b in msg.content if not isinstance(b, ThinkingBlock)]}
            )
        result.append(msg)
    return result
