# Copyright (c) 2026 Heureum AI. All rights reserved.

"""
Context processing pipeline.

One parameterized pipeline runs every stage in a fixed order:

    [strip thinking] -> [reorder results] -> repair
    -> [strip large args] -> [compress] -> [clear] -> [summarize]
    -> trim -> repair

where repair is: answer missing results -> filter orphans and duplicate
echoes -> repair dangling calls.  Bracketed stages are toggled by
``ProcessOptions``.  The closing repair always runs: trimming and
summarization are the stages most likely to split a tool request from
its result.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from context_guard.models import HumanMessage, Message, strip_thinking_blocks
from context_guard.services.context.clearing import clear_old_tool_results, strip_large_tool_call_args
from context_guard.services.context.compression import compress_tool_results
from context_guard.services.context.repair import enforce_tool_result_ordering, repair_tool_use_result_pairing
from context_guard.services.context.settings import ProcessOptions
from context_guard.services.context.summarizer import summarize_if_needed
from context_guard.services.context.trimming import TrimMode, apply_window
from context_guard.services.prompts.base import CONTEXT_UNAVAILABLE_NOTICE

logger = logging.getLogger(__name__)

Stage = Callable[[List[Message]], List[Message]]


@dataclass
class StepRecord:
    """Message counts around one pipeline stage.

    Attributes:
        name (str): Stage name.
        before (int): Message count entering the stage.
        after (int): Message count leaving the stage.
    """

    name: str
    before: int
    after: int


@dataclass
class ProcessResult:
    """Output of one pipeline run.

    Attributes:
        messages (List[Message]): Bounded, pairing-consistent history.
        steps (List[StepRecord]): Stages that ran, in order.
        summarized (bool): Whether a new summary replaced the old prefix.
        trim_mode (TrimMode): How the trimmer chose the window.
    """

    messages: List[Message]
    steps: List[StepRecord] = field(default_factory=list)
    summarized: bool = False
    trim_mode: TrimMode = TrimMode.NONE


def _run_optional(name: str, stage: Stage, messages: List[Message], prefix: str) -> List[Message]:
    """Run an optional stage; on failure log and keep its input."""
    try:
        return stage(messages)
    except Exception as e:
        logger.warning("%s[PIPELINE] Stage %s failed, skipping: %s", prefix, name, e)
        return messages


async def process_context(
    messages: Sequence[Message],
    options: Optional[ProcessOptions] = None,
) -> ProcessResult:
    """Run the full pipeline and report what each stage did.

    Args:
        messages (Sequence[Message]): Raw history, possibly malformed.
        options (Optional[ProcessOptions]): Pipeline configuration. Defaults
            to ``ProcessOptions()``.

    Returns:
        ProcessResult: Processed history plus diagnostics. The history is
            non-empty whenever *messages* is.
    """
    opts = options or ProcessOptions()
    prefix = opts.prefix
    result = ProcessResult(messages=list(messages))
    if not result.messages:
        return result

    current: List[Message] = result.messages

    def step(name: str, after: List[Message]) -> None:
        nonlocal current
        result.steps.append(StepRecord(name=name, before=len(current), after=len(after)))
        current = after

    if opts.strip_thinking:
        step("strip_thinking", strip_thinking_blocks(current))
    if opts.reorder_tool_results:
        step("reorder", enforce_tool_result_ordering(current, opts.log_prefix))

    step("repair", repair_tool_use_result_pairing(current, opts.log_prefix).messages)

    if opts.enable_arg_stripping:
        step(
            "strip_args",
            _run_optional(
                "strip_args",
                lambda msgs: strip_large_tool_call_args(
                    msgs,
                    tool_names=opts.large_arg_tools,
                    keep_count=opts.arg_keep_count,
                    max_arg_chars=opts.max_arg_chars,
                    log_prefix=opts.log_prefix,
                ),
                current,
                prefix,
            ),
        )

    if opts.enable_tool_compression:
        step(
            "compress",
            _run_optional(
                "compress",
                lambda msgs: compress_tool_results(
                    msgs,
                    keep_count=opts.compression_keep_count,
                    max_length=opts.compression_max_length,
                    rules=opts.compression_rules,
                    log_prefix=opts.log_prefix,
                ),
                current,
                prefix,
            ),
        )

    if opts.enable_tool_clearing:
        step(
            "clear",
            _run_optional(
                "clear",
                lambda msgs: clear_old_tool_results(
                    msgs,
                    keep_count=opts.tool_keep_count,
                    exclude_tools=opts.exclude_tools,
                    clear_tool_inputs=opts.clear_tool_inputs,
                    placeholder=opts.cleared_placeholder,
                    log_prefix=opts.log_prefix,
                ),
                current,
                prefix,
            ),
        )

    if opts.enable_summarization and opts.summarization_model is not None:
        outcome = await summarize_if_needed(
            current,
            opts.summarization_model,
            trigger_tokens=opts.summarize_trigger_tokens,
            keep_messages=opts.summarize_keep_messages,
            log_prefix=opts.log_prefix,
        )
        result.summarized = outcome.summarized
        step("summarize", outcome.messages)

    window = apply_window(
        current,
        max_tokens=opts.max_tokens,
        fallback_message_count=opts.fallback_message_count,
        tokenizer=opts.tokenizer,
        original_request=opts.original_request,
        preserve_keywords=opts.preserve_keywords,
        log_prefix=opts.log_prefix,
    )
    result.trim_mode = window.mode
    step("trim", window.messages)

    step("final_repair", repair_tool_use_result_pairing(current, opts.log_prefix).messages)

    if not current:
        logger.warning("%s[PIPELINE] No valid message survived, substituting a context notice", prefix)
        step("empty_guard", [HumanMessage(content=CONTEXT_UNAVAILABLE_NOTICE)])

    logger.debug(
        "%s[PIPELINE] %d -> %d messages (%s)",
        prefix,
        len(messages),
        len(current),
        ", ".join(f"{s.name}:{s.before}->{s.after}" for s in result.steps),
    )
    result.messages = current
    return result


async def process(
    messages: Sequence[Message],
    options: Optional[ProcessOptions] = None,
) -> List[Message]:
    """Bounded, pairing-consistent copy of *messages*.

    See :func:`process_context` for the stages and their diagnostics.
    """
    return (await process_context(messages, options)).messages
