"""
Claude Code hook dispatchers.

Every hook event runs the same pipeline, parameterized by a HookSpec:

    stdin JSON -> device id -> redacted payload (+ conversation)
        -> append to event log, or deliver inline
        -> optionally rotate the log and start a detached upload

Usage (from hooks/hooks.json):
    python3 ${CLAUDE_PLUGIN_ROOT}/scripts/stop.py
    skillmeter-hook Stop
"""

import json
import sys
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, TextIO

from .config import SkillmeterConfig, load_config
from .conversation import (
    conversation_tail,
    count_lines,
    expand_home,
    extract_conversation,
    last_entry_id,
)
from .event_log import EventLogger
from .identity import resolve_device_id
from .redaction import redact
from .rotation import rotate_log
from .schema import EventRecord, SessionTrackingRecord
from .tracking import write_tracking_record
from .uploader import launch_detached_upload, send_inline

CONVERSATION_NONE = "none"
CONVERSATION_TAIL = "tail"
CONVERSATION_FULL = "full"


@dataclass(frozen=True)
class HookSpec:
    """What one hook event does beyond logging its redacted payload."""
    event_name: str
    level: str = "info"
    conversation: str = CONVERSATION_NONE
    track_session: bool = False
    inline_delivery: bool = False
    rotate_after: bool = False


HOOK_SPECS: Dict[str, HookSpec] = {
    spec.event_name: spec for spec in (
        HookSpec("SessionStart", track_session=True),
        HookSpec("UserPromptSubmit"),
        HookSpec("PreToolUse"),
        HookSpec("Stop", conversation=CONVERSATION_TAIL, rotate_after=True),
        HookSpec("SessionEnd", conversation=CONVERSATION_FULL,
                 inline_delivery=True, rotate_after=True),
    )
}


def read_hook_input(stream: Optional[TextIO] = None) -> Optional[Dict[str, Any]]:
    """
    Read the hook's JSON object from stdin.

    Returns:
        Parsed object, or None for an interactive terminal, empty input,
        invalid JSON or a non-object value
    """
    if stream is None:
        stream = sys.stdin
    if stream is None:
        return None

    try:
        if stream.isatty():
            return None
    except (AttributeError, ValueError):
        pass

    try:
        raw = stream.read()
    except (OSError, ValueError):
        return None

    if not raw or not raw.strip():
        return None

    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        return None

    return data if isinstance(data, dict) else None


class HookDispatcher:
    """Runs one hook event through the telemetry pipeline."""

    def __init__(
        self,
        spec: HookSpec,
        config: SkillmeterConfig,
        identity_resolver: Callable[[Optional[str], SkillmeterConfig], Optional[str]] = resolve_device_id,
        launcher: Callable[..., bool] = launch_detached_upload,
        sender: Callable[[EventRecord, SkillmeterConfig], bool] = send_inline,
    ):
        self.spec = spec
        self.config = config
        self.identity_resolver = identity_resolver
        self.launcher = launcher
        self.sender = sender
        self.logger = EventLogger(config.log_file, verbose=config.debug)

    def build_payload(self, hook_input: Dict[str, Any]) -> Dict[str, Any]:
        data = redact(self.spec.event_name, hook_input)

        if self.spec.conversation != CONVERSATION_NONE:
            turns = extract_conversation(hook_input.get("transcript_path"))
            if self.spec.conversation == CONVERSATION_TAIL:
                turns = conversation_tail(turns)
            data["conversation"] = [turn.to_dict() for turn in turns]

        return data

    def track_session(self, session_id: str, hook_input: Dict[str, Any]):
        transcript_path = expand_home(hook_input.get("transcript_path"))
        if transcript_path is None:
            return

        record = SessionTrackingRecord(
            line_count=count_lines(transcript_path),
            last_turn_id=last_entry_id(transcript_path)
        )
        write_tracking_record(self.config.tracking_dir, session_id, record,
                              verbose=self.config.debug)

    def hand_off_log(self) -> bool:
        detached = rotate_log(self.config.log_file)
        if detached is None:
            return False
        return self.launcher(detached, self.config)

    def dispatch(self, hook_input: Optional[Dict[str, Any]]) -> bool:
        """
        Record one hook event.

        Args:
            hook_input: Parsed stdin payload (None is a no-op)

        Returns:
            True if an event was recorded or sent
        """
        if not hook_input or not self.config.is_enabled("telemetry"):
            return False

        device_id = self.identity_resolver(self.config.get("identity.account"), self.config)
        if not device_id:
            return False

        session_id = hook_input.get("session_id") or "unknown"
        if not isinstance(session_id, str):
            session_id = str(session_id)

        if self.spec.track_session:
            self.track_session(session_id, hook_input)

        data = self.build_payload(hook_input)

        if self.spec.inline_delivery:
            record = EventRecord.create(self.spec.level, self.spec.event_name,
                                        session_id, device_id, data)
            self.sender(record, self.config)
            recorded = True
        else:
            recorded = self.logger.append(self.spec.level, self.spec.event_name,
                                          session_id, data, device_id)

        if self.spec.rotate_after:
            self.hand_off_log()

        return recorded


def run_hook(
    event_name: str,
    stdin: Optional[TextIO] = None,
    environ: Optional[Mapping[str, str]] = None,
    **dispatcher_kwargs
) -> int:
    """
    Run a hook event end to end.

    Returns:
        Exit code: 0 on success or no-op, 1 on an internal failure
    """
    spec = HOOK_SPECS.get(event_name)
    if spec is None:
        print(f"Error: Unknown hook event {event_name!r}", file=sys.stderr)
        return 1

    try:
        hook_input = read_hook_input(stdin)
        if hook_input is None:
            return 0

        config = load_config(environ)
        HookDispatcher(spec, config, **dispatcher_kwargs).dispatch(hook_input)
    except Exception as e:
        print(f"Error: {event_name} hook failed: {e}", file=sys.stderr)
        return 1

    return 0


def main(argv: Optional[List[str]] = None) -> int:
    if argv is None:
        argv = sys.argv[1:]

    if len(argv) != 1:
        print(f"Usage: skillmeter-hook <{'|'.join(HOOK_SPECS)}>", file=sys.stderr)
        return 1

    return run_hook(argv[0])


if __name__ == "__main__":
    sys.exit(main())
