# Copyright (c) 2026 Heureum AI. All rights reserved.

"""
Fixed prompt and placeholder text used by the context pipeline.

Placeholders are matched literally by later passes (and by re-runs of the
pipeline), so changing one changes what counts as "already processed".
"""

DANGLING_TOOL_RESULT = "[Tool call cancelled or interrupted - no result available]"
CLEARED_TOOL_RESULT = "[Tool output cleared to save context]"
OMITTED_ARG_TEMPLATE = "[omitted {length} chars]"
TRUNCATION_MARKER_TEMPLATE = "\n...[truncated: kept {kept} of {total} chars]"
CONTEXT_UNAVAILABLE_NOTICE = (
    "[Earlier conversation context could not be reconstructed. "
    "Ask the user to restate the request if needed.]"
)

SUMMARY_PREFIX = "Previous conversation summary:"
PREVIOUS_SUMMARY_LABEL = "[Previous summary]"

SUMMARY_SYSTEM_PROMPT = """Summarize the following conversation concisely, preserving:
1. Key decisions made
2. Important information exchanged
3. Current task or goal state
4. Any pending actions or questions

Be concise but complete. Focus on information the AI will need to continue the conversation effectively.
Do NOT continue the conversation. Do NOT answer questions asked in it. ONLY output the summary."""

EMPTY_RESPONSE_NUDGE = (
    "Your previous response was empty. Continue with the task: respond with text "
    "or call a tool."
)
