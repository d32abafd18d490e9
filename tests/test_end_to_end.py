#!/usr/bin/env python3
"""
End-to-end tests for the hook scripts.

Runs the real entry scripts as Claude Code would (JSON on stdin, plugin root
in the environment) against a local collector, including the detached
upload started by the Stop hook.

Run with: python3 -m pytest tests/test_end_to_end.py -v
"""

import gzip
import json
import os
import subprocess
import sys
import tempfile
import threading
import time
import unittest
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parent.parent
SCRIPTS_DIR = REPO_ROOT / "scripts"
if str(SCRIPTS_DIR) not in sys.path:
    sys.path.insert(0, str(SCRIPTS_DIR))

from skillmeter.redaction import hash_identifier
from skillmeter.rotation import find_detached_logs

HOOK_SCRIPTS = {
    "SessionStart": "session_start.py",
    "UserPromptSubmit": "user_prompt_submit.py",
    "PreToolUse": "pre_tool_use.py",
    "Stop": "stop.py",
    "SessionEnd": "session_end.py",
}


def start_collector(status=200):
    """Start a collector on a free port; returns (server, received records list)."""
    received = []

    class Handler(BaseHTTPRequestHandler):
        def do_POST(self):
            body = self.rfile.read(int(self.headers.get("Content-Length", 0)))
            text = gzip.decompress(body).decode("utf-8")
            received.append({
                "content_type": self.headers.get("Content-Type"),
                "records": [json.loads(line) for line in text.splitlines() if line.strip()],
            })
            self.send_response(status)
            self.send_header("Content-Length", "0")
            self.end_headers()

        def log_message(self, format, *args):
            pass

    server = ThreadingHTTPServer(("127.0.0.1", 0), Handler)
    server.daemon_threads = True
    threading.Thread(target=server.serve_forever, daemon=True).start()
    return server, received


def wait_for(predicate, timeout=15.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.1)
    return predicate()


class TestHookScripts(unittest.TestCase):
    """Drive the plugin through a short session."""

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.plugin_root = Path(self.temp_dir.name)
        self.log_file = self.plugin_root / "logs" / "events.jsonl"
        self.transcript = self.plugin_root / "transcript.jsonl"
        self.transcript.write_text("\n".join(json.dumps(e) for e in [
            {"type": "user", "uuid": "a1", "message": {"role": "user", "content": "Read the passwd file"}},
            {"type": "assistant", "uuid": "a2", "message": {"role": "assistant", "content": [
                {"type": "tool_use", "name": "Read", "input": {"file_path": "/etc/passwd"}},
                {"type": "text", "text": "It lists local accounts."}]}},
        ]) + "\n")

        self.server, self.received = start_collector()
        host, port = self.server.server_address[:2]

        self.env = dict(os.environ)
        for name in ("SKILLMETER_TELEMETRY_ENABLED", "SKILLMETER_API_KEY", "API_KEY",
                     "BACKEND_URL", "TIMEOUT_SECONDS"):
            self.env.pop(name, None)
        self.env.update({
            "CLAUDE_PLUGIN_ROOT": str(self.plugin_root),
            "USER": "e2e-user",
            "SKILLMETER_USE_KEYCHAIN": "0",
            "SKILLMETER_BACKEND_URL": f"http://{host}:{port}/logs/claude",
            "SKILLMETER_TIMEOUT": "5",
        })

    def tearDown(self):
        self.server.shutdown()
        self.server.server_close()
        self.temp_dir.cleanup()

    def run_hook(self, event_name, payload, env=None):
        stdin = payload if isinstance(payload, str) else json.dumps(payload)
        return subprocess.run(
            [sys.executable, str(SCRIPTS_DIR / HOOK_SCRIPTS[event_name])],
            input=stdin,
            capture_output=True,
            text=True,
            env=env or self.env,
            timeout=30,
        )

    def test_pre_tool_use_record(self):
        result = self.run_hook("PreToolUse", {
            "session_id": "abc", "tool_name": "Read",
            "tool_input": {"file_path": "/etc/passwd"},
        })

        self.assertEqual(result.returncode, 0, result.stderr)
        lines = self.log_file.read_text().splitlines()
        self.assertEqual(len(lines), 1)
        record = json.loads(lines[0])
        self.assertEqual(record["data"]["tool_input"], {"file_path": hash_identifier("/etc/passwd")})
        self.assertNotIn("/etc/passwd", lines[0])

        device_id_file = self.plugin_root / "logs" / ".device-id"
        self.assertEqual(record["device_id"], device_id_file.read_text().strip())

    def test_session_flow_delivers_and_cleans_up(self):
        self.assertEqual(self.run_hook("SessionStart", {
            "session_id": "abc", "source": "startup", "transcript_path": str(self.transcript),
        }).returncode, 0)
        self.assertEqual(self.run_hook("UserPromptSubmit", {
            "session_id": "abc", "prompt": "Read the passwd file",
            "transcript_path": str(self.transcript),
        }).returncode, 0)
        self.assertEqual(self.run_hook("PreToolUse", {
            "session_id": "abc", "tool_name": "Read", "tool_input": {"file_path": "/etc/passwd"},
        }).returncode, 0)

        result = self.run_hook("Stop", {"session_id": "abc", "transcript_path": str(self.transcript)})
        self.assertEqual(result.returncode, 0, result.stderr)
        self.assertFalse(self.log_file.exists())

        self.assertTrue(wait_for(lambda: self.received and not find_detached_logs(self.log_file)),
                        "detached upload did not finish")

        batch = self.received[0]
        self.assertEqual(batch["content_type"], "application/x-ndjson")
        self.assertEqual([r["hook_event_name"] for r in batch["records"]],
                         ["SessionStart", "UserPromptSubmit", "PreToolUse", "Stop"])
        self.assertEqual(len({r["device_id"] for r in batch["records"]}), 1)
        conversation = batch["records"][-1]["data"]["conversation"]
        self.assertEqual(conversation[-1]["content"], [{"type": "text", "text": "It lists local accounts."}])
        self.assertTrue((self.plugin_root / "tracking" / "abc.json").exists())

    def test_session_end_is_sent_inline(self):
        result = self.run_hook("SessionEnd", {
            "session_id": "abc", "reason": "exit", "transcript_path": str(self.transcript),
        })

        self.assertEqual(result.returncode, 0, result.stderr)
        self.assertEqual(len(self.received), 1)
        self.assertEqual(self.received[0]["content_type"], "application/json")
        record = self.received[0]["records"][0]
        self.assertEqual(record["hook_event_name"], "SessionEnd")
        self.assertEqual(len(record["data"]["conversation"]), 2)
        self.assertFalse(self.log_file.exists())

    def test_empty_stdin_is_noop(self):
        for event_name in HOOK_SCRIPTS:
            result = self.run_hook(event_name, "")
            self.assertEqual(result.returncode, 0, event_name)
        self.assertFalse((self.plugin_root / "logs").exists())

    def test_kill_switch(self):
        env = dict(self.env, SKILLMETER_TELEMETRY_ENABLED="false")
        result = self.run_hook("PreToolUse", {"session_id": "abc", "tool_name": "Bash"}, env=env)
        self.assertEqual(result.returncode, 0)
        self.assertFalse(self.log_file.exists())


if __name__ == "__main__":
    unittest.main(verbosity=2)
