# Copyright (c) 2026 Heureum AI. All rights reserved.

"""
Context processing options.

One ``ProcessOptions`` value configures a single pipeline run.  Every stage
is independently toggleable; the two external collaborators (tokenizer and
summary model) are passed in explicitly and never looked up globally.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Optional, Tuple

from context_guard.services.prompts.base import CLEARED_TOOL_RESULT

if TYPE_CHECKING:
    from context_guard.config import Settings
    from context_guard.services.context.compression import CompressionRules
    from context_guard.services.context.summarizer import SummaryModel
    from context_guard.services.context.trimming import Tokenizer


@dataclass(frozen=True)
class TokenLimits:
    """Default token budgets per agent type."""

    orchestrator: int = 100_000
    sub_agent: int = 50_000
    summary: int = 2_000


@dataclass(frozen=True)
class MessageLimits:
    """Default message-count budgets used when no tokenizer is available."""

    orchestrator: int = 40
    sub_agent: int = 15


TOKEN_LIMITS = TokenLimits()
MESSAGE_LIMITS = MessageLimits()


@dataclass(frozen=True)
class ProcessOptions:
    """All context-processing configuration in one place.

    Stages (applied in order):
      1. Repair          : missing results, orphan/duplicate filter, dangling calls
      2. Arg stripping   : blank large tool-call arguments (optional)
      3. Compression     : per-tool summaries of old results (optional)
      4. Clearing        : placeholder for old results (optional)
      5. Summarization   : LLM digest of the old prefix (optional)
      6. Trimming        : token or message-count window
      7. Repair again    : mandatory

    Attributes:
        max_tokens (int): Token budget for the trimmer.
        fallback_message_count (int): Message budget when token trimming is
            unavailable or fails.
        tokenizer (Optional[Tokenizer]): Token counter over LangChain
            messages, or a LangChain model. ``None`` forces count trimming.
        enable_summarization (bool): Whether to run the summarizer.
        summarize_trigger_tokens (int): Estimated non-system size that
            triggers summarization.
        summarize_keep_messages (int): Most recent non-system messages kept
            verbatim by the summarizer.
        summarization_model (Optional[SummaryModel]): Async
            ``(transcript) -> summary`` collaborator.
        enable_tool_compression (bool): Whether to compress old tool results.
        compression_keep_count (int): Most recent results per tool name left
            untouched by compression.
        compression_max_length (int): Results longer than this are compressed.
        compression_rules (Optional[CompressionRules]): Per-tool rules; tools
            without a rule get generic truncation.
        enable_tool_clearing (bool): Whether to clear old tool results.
        tool_keep_count (int): Most recent non-excluded results left intact.
        exclude_tools (Tuple[str, ...]): Tool names never cleared.
        clear_tool_inputs (bool): Also blank the ``args`` of tool calls whose
            results were cleared.
        cleared_placeholder (str): Replacement text for cleared results.
        enable_arg_stripping (bool): Whether to blank large tool-call args.
        large_arg_tools (Tuple[str, ...]): Tools whose args may be blanked.
        arg_keep_count (int): Most recent assistant messages left untouched.
        max_arg_chars (int): Argument values longer than this are blanked.
        original_request (Optional[str]): Task text whose messages survive
            trimming regardless of position.
        preserve_keywords (Tuple[str, ...]): Keywords with the same effect.
        strip_thinking (bool): Drop thinking blocks before processing.
        reorder_tool_results (bool): Move displaced tool results next to
            their request before repair.
        log_prefix (str): Prefix for log lines; no behavioural effect.
    """

    max_tokens: int = TOKEN_LIMITS.orchestrator
    fallback_message_count: int = MESSAGE_LIMITS.orchestrator
    tokenizer: Optional["Tokenizer"] = None

    enable_summarization: bool = False
    summarize_trigger_tokens: int = 100_000
    summarize_keep_messages: int = 20
    summarization_model: Optional["SummaryModel"] = None

    enable_tool_compression: bool = False
    compression_keep_count: int = 3
    compression_max_length: int = 2_000
    compression_rules: Optional["CompressionRules"] = None

    enable_tool_clearing: bool = False
    tool_keep_count: int = 5
    exclude_tools: Tuple[str, ...] = field(default_factory=tuple)
    clear_tool_inputs: bool = False
    cleared_placeholder: str = CLEARED_TOOL_RESULT

    enable_arg_stripping: bool = False
    large_arg_tools: Tuple[str, ...] = field(default_factory=tuple)
    arg_keep_count: int = 2
    max_arg_chars: int = 500

    original_request: Optional[str] = None
    preserve_keywords: Tuple[str, ...] = field(default_factory=tuple)

    strip_thinking: bool = False
    reorder_tool_results: bool = False
    log_prefix: str = ""

    def __post_init__(self) -> None:
        # Accept lists from callers; keep the value hashable and immutable.
        for name in ("exclude_tools", "large_arg_tools", "preserve_keywords"):
            value = getattr(self, name)
            if not isinstance(value, tuple):
                object.__setattr__(self, name, tuple(value or ()))

    def with_overrides(self, **overrides: Any) -> "ProcessOptions":
        """Return a copy with the given fields replaced."""
        return replace(self, **overrides)

    @classmethod
    def for_orchestrator(cls, **overrides: Any) -> "ProcessOptions":
        """Budgets sized for the supervisor agent."""
        base = dict(max_tokens=TOKEN_LIMITS.orchestrator, fallback_message_count=MESSAGE_LIMITS.orchestrator)
        base.update(overrides)
        return cls(**base)

    @classmethod
    def for_sub_agent(cls, **overrides: Any) -> "ProcessOptions":
        """Budgets sized for a specialised sub-agent."""
        base = dict(max_tokens=TOKEN_LIMITS.sub_agent, fallback_message_count=MESSAGE_LIMITS.sub_agent)
        base.update(overrides)
        return cls(**base)

    @classmethod
    def from_settings(cls, cfg: "Settings", **overrides: Any) -> "ProcessOptions":
        """Build options from application settings.

        Args:
            cfg (Settings): Application settings providing pipeline defaults.
            **overrides: Per-call fields that take precedence.

        Returns:
            ProcessOptions: Options seeded from ``cfg``.
        """
        base = dict(
            max_tokens=cfg.CONTEXT_MAX_TOKENS,
            fallback_message_count=cfg.CONTEXT_FALLBACK_MESSAGE_COUNT,
            summarize_trigger_tokens=cfg.SUMMARIZE_TRIGGER_TOKENS,
            summarize_keep_messages=cfg.SUMMARIZE_KEEP_MESSAGES,
            compression_keep_count=cfg.COMPRESSION_KEEP_COUNT,
            compression_max_length=cfg.COMPRESSION_MAX_LENGTH,
            tool_keep_count=cfg.TOOL_KEEP_COUNT,
        )
        base.update(overrides)
        return cls(**base)

    @property
    def prefix(self) -> str:
        """Log prefix with trailing space, or an empty string."""
        return f"{self.log_prefix} " if self.log_prefix else ""
