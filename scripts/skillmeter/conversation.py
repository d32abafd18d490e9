"""
Extract the dialogue from a Claude Code session transcript.

Transcripts are .jsonl files with one entry per line. Only user and
assistant entries are kept, and only their text and thinking blocks; an
entry left with no content is dropped. Extraction is a pure function of the
file contents and keeps no state between calls.
"""

import json
import os
from pathlib import Path
from typing import Iterator, List, Optional, Union

from .redaction import filter_content_blocks
from .schema import ConversationTurn

PathLike = Union[str, Path]

DIALOGUE_TYPES = ('user', 'assistant')


def expand_home(path: Optional[PathLike]) -> Optional[Path]:
    """Expand a leading ~ to the home directory."""
    if not path:
        return None
    return Path(os.path.expanduser(str(path)))


def _iter_entries(transcript_path: Path) -> Iterator[dict]:
    with open(transcript_path, 'r', encoding='utf-8', errors='replace') as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                entry = json.loads(line)
            except json.JSONDecodeError:
                continue
            if isinstance(entry, dict):
                yield entry


def turn_from_entry(entry: dict) -> Optional[ConversationTurn]:
    """
    Build a conversation turn from a transcript entry.

    Args:
        entry: JSONL transcript entry

    Returns:
        ConversationTurn, or None if the entry is not dialogue or has no
        text/thinking content
    """
    entry_type = entry.get('type', '')
    if entry_type not in DIALOGUE_TYPES:
        return None

    message = entry.get('message')
    if not isinstance(message, dict):
        return None

    content = filter_content_blocks(message.get('content'))
    if not content:
        return None

    return ConversationTurn(
        role=entry_type,
        content=content,
        schema_version=entry.get('version'),
        branch_name=entry.get('gitBranch'),
        timestamp=entry.get('timestamp')
    )


def iter_conversation(transcript_path: Optional[PathLike]) -> Iterator[ConversationTurn]:
    """
    Lazily yield conversation turns in transcript order.

    Yields nothing if the transcript does not exist.
    """
    path = expand_home(transcript_path)
    if path is None or not path.is_file():
        return

    for entry in _iter_entries(path):
        turn = turn_from_entry(entry)
        if turn is not None:
            yield turn


def extract_conversation(transcript_path: Optional[PathLike]) -> List[ConversationTurn]:
    """
    Extract all conversation turns from a transcript.

    Args:
        transcript_path: Path to transcript .jsonl file (may start with ~)

    Returns:
        List of turns, possibly empty; [] if the file cannot be read
    """
    try:
        return list(iter_conversation(transcript_path))
    except OSError:
        return []


def conversation_tail(turns: List[ConversationTurn]) -> List[ConversationTurn]:
    """
    Get the latest exchange: the last user turn and everything after it.

    If there is no user turn the whole list is returned.
    """
    for index in range(len(turns) - 1, -1, -1):
        if turns[index].role == 'user':
            return turns[index:]
    return list(turns)


def count_lines(transcript_path: Optional[PathLike]) -> int:
    """Count non-blank lines in a transcript (0 if missing)."""
    path = expand_home(transcript_path)
    if path is None or not path.is_file():
        return 0
    try:
        with open(path, 'r', encoding='utf-8', errors='replace') as f:
            return sum(1 for line in f if line.strip())
    except OSError:
        return 0


def last_entry_id(transcript_path: Optional[PathLike]) -> Optional[str]:
    """Get the uuid of the last parsable transcript entry, if any."""
    path = expand_home(transcript_path)
    if path is None or not path.is_file():
        return None

    last_id = None
    try:
        for entry in _iter_entries(path):
            if entry.get('uuid'):
                last_id = entry['uuid']
    except OSError:
        return None
    return last_id
