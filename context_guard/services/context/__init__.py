# Copyright (c) 2026 Heureum AI. All rights reserved.

"""
Conversation context processing.

Keeps a growing multi-agent message log inside a size budget while every
tool request stays paired with exactly one adjacent result:

  Repair  (repair.py)
      Drop orphaned results and duplicate echoes, synthesize placeholder
      results for dangling calls, optionally re-attach displaced results.

  Verbosity reduction  (compression.py, clearing.py)
      Per-tool summaries or placeholders for old tool results; large
      tool-call arguments blanked in old requests.

  Summarization  (summarizer.py)
      LLM digest of the old prefix once it passes a token threshold.

  Trimming  (trimming.py)
      Token window via LangChain ``trim_messages``, message-count fallback,
      task-critical messages re-inserted.

  Pipeline  (pipeline.py)
      All of the above in a fixed order, repairing again after the lossy
      stages.

Usage:

    options = ProcessOptions.for_sub_agent(
        tokenizer=count_lc_tokens,
        enable_tool_clearing=True,
        exclude_tools=("read_plan",),
        original_request=user_request,
    )
    messages = await process(messages, options)
"""

from context_guard.services.context.clearing import clear_old_tool_results, strip_large_tool_call_args
from context_guard.services.context.compression import (
    CompressionRule,
    CompressionRules,
    compress_tool_results,
    head_tail_rule,
    json_outline_rule,
    truncate_with_marker,
)
from context_guard.services.context.convert import from_langchain, to_langchain
from context_guard.services.context.pipeline import ProcessResult, StepRecord, process, process_context
from context_guard.services.context.repair import (
    RepairReport,
    enforce_tool_result_ordering,
    filter_orphaned_tool_results,
    repair_dangling_tool_calls,
    repair_tool_use_result_pairing,
    synthesize_missing_tool_results,
)
from context_guard.services.context.settings import MESSAGE_LIMITS, TOKEN_LIMITS, ProcessOptions
from context_guard.services.context.summarizer import ChatModelSummarizer, SummaryModel, summarize_if_needed
from context_guard.services.context.tokens import (
    count_lc_tokens,
    estimate_message_tokens,
    estimate_messages_tokens,
    estimate_tokens,
)
from context_guard.services.context.trimming import Tokenizer, TrimMode, apply_window, trim_messages

__all__ = [
    "ProcessOptions",
    "TOKEN_LIMITS",
    "MESSAGE_LIMITS",
    "process",
    "process_context",
    "ProcessResult",
    "StepRecord",
    "filter_orphaned_tool_results",
    "repair_dangling_tool_calls",
    "enforce_tool_result_ordering",
    "repair_tool_use_result_pairing",
    "synthesize_missing_tool_results",
    "RepairReport",
    "compress_tool_results",
    "CompressionRule",
    "CompressionRules",
    "head_tail_rule",
    "json_outline_rule",
    "truncate_with_marker",
    "clear_old_tool_results",
    "strip_large_tool_call_args",
    "summarize_if_needed",
    "SummaryModel",
    "ChatModelSummarizer",
    "apply_window",
    "trim_messages",
    "Tokenizer",
    "TrimMode",
    "estimate_tokens",
    "estimate_message_tokens",
    "estimate_messages_tokens",
    "count_lc_tokens",
    "to_langchain",
    "from_langchain",
]
