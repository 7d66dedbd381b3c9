# Copyright (c) 2026 Heureum AI. All rights reserved.

"""Context processing API schemas."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from context_guard.config import Settings
from context_guard.models import Message
from context_guard.services.context.settings import ProcessOptions
from context_guard.services.context.summarizer import SummaryModel
from context_guard.services.context.tokens import count_lc_tokens


class ProcessOptionsSchema(BaseModel):
    """Serializable subset of ``ProcessOptions``.

    Unset fields fall back to the application settings. Collaborators
    (tokenizer, summary model) are provided by the server, never by the
    client.

    Attributes:
        max_tokens (Optional[int]): Token budget for trimming.
        fallback_message_count (Optional[int]): Message budget for the count
            fallback.
        count_tokens (bool): Trim by estimated tokens instead of message
            count.
        enable_summarization (bool): Summarize the old prefix when the
            server has a summary model.
        summarize_trigger_tokens (Optional[int]): Size that triggers
            summarization.
        summarize_keep_messages (Optional[int]): Messages kept verbatim when
            summarizing.
        enable_tool_compression (bool): Compress old tool results.
        compression_keep_count (Optional[int]): Recent results per tool kept.
        compression_max_length (Optional[int]): Compression size threshold.
        enable_tool_clearing (bool): Clear old tool results.
        tool_keep_count (Optional[int]): Recent results kept when clearing.
        exclude_tools (List[str]): Tools never cleared.
        clear_tool_inputs (bool): Blank arguments of cleared tool calls.
        enable_arg_stripping (bool): Blank large tool-call arguments.
        large_arg_tools (List[str]): Tools whose arguments may be blanked.
        arg_keep_count (int): Recent assistant messages left untouched.
        max_arg_chars (int): Argument size threshold.
        original_request (Optional[str]): Text marking task-critical
            messages.
        preserve_keywords (List[str]): Keywords marking task-critical
            messages.
        strip_thinking (bool): Drop thinking blocks first.
        reorder_tool_results (bool): Re-attach displaced tool results.
        log_prefix (str): Prefix for server log lines.
    """

    max_tokens: Optional[int] = Field(default=None, gt=0, description="Token budget")
    fallback_message_count: Optional[int] = Field(default=None, gt=0, description="Message budget")
    count_tokens: bool = Field(default=False, description="Trim by estimated tokens")

    enable_summarization: bool = False
    summarize_trigger_tokens: Optional[int] = Field(default=None, ge=0)
    summarize_keep_messages: Optional[int] = Field(default=None, ge=0)

    enable_tool_compression: bool = False
    compression_keep_count: Optional[int] = Field(default=None, ge=0)
    compression_max_length: Optional[int] = Field(default=None, gt=0)

    enable_tool_clearing: bool = False
    tool_keep_count: Optional[int] = Field(default=None, ge=0)
    exclude_tools: List[str] = Field(default_factory=list)
    clear_tool_inputs: bool = False

    enable_arg_stripping: bool = False
    large_arg_tools: List[str] = Field(default_factory=list)
    arg_keep_count: int = Field(default=2, ge=0)
    max_arg_chars: int = Field(default=500, gt=0)

    original_request: Optional[str] = None
    preserve_keywords: List[str] = Field(default_factory=list)

    strip_thinking: bool = False
    reorder_tool_results: bool = False
    log_prefix: str = ""

    def to_options(self, cfg: Settings, summary_model: Optional[SummaryModel] = None) -> ProcessOptions:
        """Build pipeline options, filling unset fields from *cfg*.

        Args:
            cfg (Settings): Application settings.
            summary_model (Optional[SummaryModel]): Server-side summary model.

        Returns:
            ProcessOptions: Options for one pipeline run.
        """
        overrides: Dict[str, Any] = {
            name: value
            for name, value in self.model_dump(exclude={"count_tokens"}).items()
            if value is not None
        }
        overrides["enable_summarization"] = self.enable_summarization and summary_model is not None
        if summary_model is not None:
            overrides["summarization_model"] = summary_model
        if self.count_tokens:
            overrides["tokenizer"] = count_lc_tokens
        return ProcessOptions.from_settings(cfg, **overrides)


class ProcessRequest(BaseModel):
    """Request to process a conversation history.

    Attributes:
        messages (List[Message]): Raw history, possibly malformed.
        options (ProcessOptionsSchema): Pipeline options.
    """

    messages: List[Message] = Field(description="Conversation history")
    options: ProcessOptionsSchema = Field(default_factory=ProcessOptionsSchema)


class StepSchema(BaseModel):
    """Message counts around one pipeline stage."""

    name: str
    before: int
    after: int


class ProcessResponse(BaseModel):
    """Processed history and pipeline diagnostics.

    Attributes:
        messages (List[Message]): Bounded, pairing-consistent history.
        steps (List[StepSchema]): Stages that ran, in order.
        summarized (bool): Whether a summary replaced the old prefix.
        trim_mode (str): How the trimming window was chosen.
    """

    messages: List[Message]
    steps: List[StepSchema] = Field(default_factory=list)
    summarized: bool = False
    trim_mode: str
