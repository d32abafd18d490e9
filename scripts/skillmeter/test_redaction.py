#!/usr/bin/env python3
"""
Tests for hook payload redaction.

Run with: python3 -m pytest scripts/skillmeter/test_redaction.py -v
"""

import hashlib
import sys
import unittest
from pathlib import Path

# Add parent to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from skillmeter.redaction import (
    POLICIES,
    filter_content_blocks,
    hash_identifier,
    redact,
)


class TestHashIdentifier(unittest.TestCase):
    """Test truncated SHA-256 hashing of identifiers."""

    def test_known_value(self):
        expected = hashlib.sha256(b"/etc/passwd").hexdigest()[:16]
        self.assertEqual(hash_identifier("/etc/passwd"), expected)

    def test_fixed_length_hex(self):
        for value in ("a", "/Users/someone/project/main.py", "ünïcødé/路径"):
            digest = hash_identifier(value)
            self.assertEqual(len(digest), 16)
            self.assertRegex(digest, r'^[0-9a-f]{16}$')

    def test_deterministic(self):
        self.assertEqual(hash_identifier("/tmp/x"), hash_identifier("/tmp/x"))
        self.assertNotEqual(hash_identifier("/tmp/x"), hash_identifier("/tmp/y"))

    def test_utf8_bytes(self):
        value = "/home/zoë/notes.md"
        expected = hashlib.sha256(value.encode('utf-8')).hexdigest()[:16]
        self.assertEqual(hash_identifier(value), expected)

    def test_empty(self):
        self.assertEqual(hash_identifier(""), "")
        self.assertEqual(hash_identifier(None), "")


class TestPolicies(unittest.TestCase):
    """Test per-event allow-list projections."""

    def test_pre_tool_use_hashes_file_path(self):
        raw = {
            "session_id": "s1",
            "permission_mode": "default",
            "tool_name": "Read",
            "tool_use_id": "toolu_01",
            "tool_input": {"file_path": "/etc/passwd", "offset": 10, "limit": 5},
            "cwd": "/Users/someone/secret-project",
        }
        data = redact("PreToolUse", raw)

        self.assertEqual(data["tool_input"], {"file_path": hash_identifier("/etc/passwd")})
        self.assertEqual(data["tool_name"], "Read")
        self.assertEqual(data["tool_use_id"], "toolu_01")
        self.assertEqual(data["permission_mode"], "default")
        self.assertNotIn("cwd", data)
        self.assertNotIn("/etc/passwd", repr(data))

    def test_pre_tool_use_without_file_path(self):
        raw = {"tool_name": "Bash", "tool_input": {"command": "cat ~/.ssh/id_rsa"}}
        data = redact("PreToolUse", raw)

        self.assertEqual(data["tool_input"], {})
        self.assertNotIn("id_rsa", repr(data))

    def test_pre_tool_use_empty_file_path_omitted(self):
        data = redact("PreToolUse", {"tool_name": "Write", "tool_input": {"file_path": ""}})
        self.assertEqual(data["tool_input"], {})

    def test_pre_tool_use_non_dict_tool_input(self):
        data = redact("PreToolUse", {"tool_name": "Odd", "tool_input": "/etc/passwd"})
        self.assertEqual(data["tool_input"], {})

    def test_user_prompt_submit(self):
        raw = {
            "transcript_path": "~/.claude/projects/x/abc.jsonl",
            "permission_mode": "plan",
            "prompt": "Refactor the parser please",
            "cwd": "/somewhere",
        }
        data = redact("UserPromptSubmit", raw)

        self.assertEqual(data, {
            "transcript_path": hash_identifier("~/.claude/projects/x/abc.jsonl"),
            "permission_mode": "plan",
            "prompt": "Refactor the parser please",
        })

    def test_user_prompt_submit_without_transcript(self):
        data = redact("UserPromptSubmit", {"prompt": "hi", "permission_mode": "default"})
        self.assertNotIn("transcript_path", data)
        self.assertEqual(data["prompt"], "hi")

    def test_session_start(self):
        raw = {"permission_mode": "default", "source": "startup", "transcript_path": "/t.jsonl"}
        self.assertEqual(redact("SessionStart", raw),
                         {"permission_mode": "default", "source": "startup"})

    def test_stop(self):
        raw = {"permission_mode": "default", "stop_hook_active": True, "transcript_path": "/t.jsonl"}
        data = redact("Stop", raw)
        self.assertIs(data["stop_hook_active"], True)
        self.assertEqual(data["transcript_path"], hash_identifier("/t.jsonl"))

    def test_session_end(self):
        data = redact("SessionEnd", {"reason": "exit", "permission_mode": "default"})
        self.assertEqual(data, {"permission_mode": "default", "reason": "exit"})

    def test_extra_fields_never_survive(self):
        for event_name in POLICIES:
            raw = {"brand_new_field": "/private/path", "session_id": "s"}
            data = redact(event_name, raw)
            self.assertNotIn("brand_new_field", data, event_name)
            self.assertNotIn("/private/path", repr(data), event_name)

    def test_unknown_event(self):
        self.assertEqual(redact("Notification", {"message": "hello"}), {})

    def test_non_dict_payload(self):
        self.assertEqual(redact("Stop", None), {})


class TestContentBlockFilter(unittest.TestCase):
    """Test the text/thinking allow-list for conversation content."""

    def test_keeps_text_and_thinking_only(self):
        content = [
            {"type": "thinking", "thinking": "hmm"},
            {"type": "tool_use", "name": "Read", "input": {"file_path": "/etc/passwd"}},
            {"type": "text", "text": "done"},
            {"type": "tool_result", "content": "root:x:0:0"},
            {"type": "image", "source": {}},
        ]
        self.assertEqual(filter_content_blocks(content), [
            {"type": "thinking", "thinking": "hmm"},
            {"type": "text", "text": "done"},
        ])

    def test_string_content_is_text(self):
        self.assertEqual(filter_content_blocks("hello"), [{"type": "text", "text": "hello"}])

    def test_empty_and_invalid(self):
        self.assertEqual(filter_content_blocks(""), [])
        self.assertEqual(filter_content_blocks(None), [])
        self.assertEqual(filter_content_blocks([{"type": "tool_use"}, "stray", 3]), [])


if __name__ == "__main__":
    unittest.main(verbosity=2)
