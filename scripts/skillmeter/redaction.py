"""
Privacy filtering for hook payloads.

Every event type has a fixed allow-list policy: the safe payload is built
from scratch out of the fields the policy names, so a field added upstream
is dropped until a policy explicitly takes it. Identifiers (file paths,
transcript paths) are replaced by a truncated SHA-256 digest; free text that
is meant to be captured (prompts, conversation turns) passes through.

Usage:
    from skillmeter.redaction import redact
    data = redact("PreToolUse", hook_input)
"""

import hashlib
from typing import Any, Callable, Dict, List, Optional

HASH_LENGTH = 16

# Content block types that survive conversation filtering
ALLOWED_BLOCK_TYPES = frozenset({"text", "thinking"})


def hash_identifier(value: Optional[str]) -> str:
    """
    Hash an identifier using SHA-256 (first 16 hex chars).

    Args:
        value: String to hash (e.g. a file path)

    Returns:
        16 character lowercase hex digest, or "" for empty input
    """
    if not value:
        return ""
    return hashlib.sha256(value.encode('utf-8')).hexdigest()[:HASH_LENGTH]


def filter_content_blocks(content: Any) -> List[Dict[str, Any]]:
    """
    Keep only text and thinking blocks from message content.

    A plain string (how user prompts appear in transcripts) is treated as a
    single text block. Tool calls, tool results, images and anything else are
    dropped.

    Args:
        content: Message content, a string or a list of blocks

    Returns:
        List of surviving blocks, in source order
    """
    if isinstance(content, str):
        return [{"type": "text", "text": content}] if content else []

    if not isinstance(content, list):
        return []

    return [
        block for block in content
        if isinstance(block, dict) and block.get("type") in ALLOWED_BLOCK_TYPES
    ]


def _put_hashed(data: Dict[str, Any], key: str, value: Any):
    if isinstance(value, str) and value:
        data[key] = hash_identifier(value)


def _session_start(raw: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "permission_mode": raw.get("permission_mode"),
        "source": raw.get("source"),
    }


def _user_prompt_submit(raw: Dict[str, Any]) -> Dict[str, Any]:
    data: Dict[str, Any] = {}
    _put_hashed(data, "transcript_path", raw.get("transcript_path"))
    data["permission_mode"] = raw.get("permission_mode")
    data["prompt"] = raw.get("prompt")
    return data


def _pre_tool_use(raw: Dict[str, Any]) -> Dict[str, Any]:
    tool_input = raw.get("tool_input")
    safe_input: Dict[str, Any] = {}
    if isinstance(tool_input, dict):
        _put_hashed(safe_input, "file_path", tool_input.get("file_path"))

    return {
        "permission_mode": raw.get("permission_mode"),
        "tool_name": raw.get("tool_name"),
        "tool_input": safe_input,
        "tool_use_id": raw.get("tool_use_id"),
    }


def _stop(raw: Dict[str, Any]) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "permission_mode": raw.get("permission_mode"),
        "stop_hook_active": raw.get("stop_hook_active"),
    }
    _put_hashed(data, "transcript_path", raw.get("transcript_path"))
    return data


def _session_end(raw: Dict[str, Any]) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "permission_mode": raw.get("permission_mode"),
        "reason": raw.get("reason"),
    }
    _put_hashed(data, "transcript_path", raw.get("transcript_path"))
    return data


POLICIES: Dict[str, Callable[[Dict[str, Any]], Dict[str, Any]]] = {
    "SessionStart": _session_start,
    "UserPromptSubmit": _user_prompt_submit,
    "PreToolUse": _pre_tool_use,
    "Stop": _stop,
    "SessionEnd": _session_end,
}


def redact(event_name: str, raw_payload: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Project a raw hook payload onto the safe fields for its event type.

    Args:
        event_name: Hook event name (e.g. "PreToolUse")
        raw_payload: Hook input as received on stdin

    Returns:
        Safe payload dictionary; empty for unknown events
    """
    policy = POLICIES.get(event_name)
    if policy is None or not isinstance(raw_payload, dict):
        return {}
    return policy(raw_payload)
