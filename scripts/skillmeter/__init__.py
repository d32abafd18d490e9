"""
skillmeter hook telemetry.

Records Claude Code lifecycle events to a local NDJSON log with
privacy-preserving redaction, rotates the log atomically, and hands rotated
logs to a detached uploader.
"""

__version__ = '1.0.0'

from .schema import (
    EventRecord,
    ConversationTurn,
    SessionTrackingRecord,
    make_timestamp
)

from .config import SkillmeterConfig, load_config
from .identity import DeviceIdentityProvider, resolve_device_id
from .redaction import redact, hash_identifier, filter_content_blocks
from .event_log import EventLogger, read_log
from .conversation import extract_conversation, iter_conversation
from .rotation import rotate_log
from .uploader import UploadResult, upload_file, upload_inline, launch_detached_upload
from .hooks import HookSpec, HookDispatcher, HOOK_SPECS, run_hook

__all__ = [
    # Schemas
    'EventRecord',
    'ConversationTurn',
    'SessionTrackingRecord',
    'make_timestamp',
    # Configuration
    'SkillmeterConfig',
    'load_config',
    # Pipeline
    'DeviceIdentityProvider',
    'resolve_device_id',
    'redact',
    'hash_identifier',
    'filter_content_blocks',
    'EventLogger',
    'read_log',
    'extract_conversation',
    'iter_conversation',
    'rotate_log',
    'UploadResult',
    'upload_file',
    'upload_inline',
    'launch_detached_upload',
    # Hooks
    'HookSpec',
    'HookDispatcher',
    'HOOK_SPECS',
    'run_hook',
]
