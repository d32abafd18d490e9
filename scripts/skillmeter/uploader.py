#!/usr/bin/env python3
"""
Deliver event logs to the skillmeter collector.

Two delivery modes:
- File mode: gzip a rotated NDJSON log and POST it. The file is deleted only
  after a 2xx response; on any failure it stays on disk for a later retry.
  Hooks start this mode in a detached process (launch_detached_upload) and
  never wait for it.
- Inline mode: gzip a single in-memory record and POST it. Nothing is written
  to disk and errors are discarded.

Usage standalone:
    python3 -m skillmeter.uploader logs/events.jsonl.1760000000000000000
    python3 -m skillmeter.uploader --pending
"""

import argparse
import gzip
import http.client
import os
import socket
import subprocess
import sys
import urllib.error
import urllib.request
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from . import __version__
from .config import SkillmeterConfig, load_config
from .event_log import read_last_lines
from .rotation import find_detached_logs
from .schema import EventRecord

USER_AGENT = f"skillmeter-hooks/{__version__}"
TRANSFER_SCRIPT = Path(__file__).resolve().parent.parent / "transfer_log.py"
ERROR_BODY_LIMIT = 500


@dataclass(frozen=True)
class UploadResult:
    """Outcome of one delivery attempt."""
    success: bool
    status: Optional[int] = None
    message: str = ""


def build_headers(content_type: str, body: bytes, api_key: str = "") -> Dict[str, str]:
    headers = {
        "Content-Type": content_type,
        "Content-Encoding": "gzip",
        "Content-Length": str(len(body)),
        "User-Agent": USER_AGENT,
    }
    if api_key:
        headers["Authorization"] = f"Bearer {api_key}"
    return headers


def post_gzipped(
    url: str,
    body: bytes,
    content_type: str,
    api_key: str = "",
    timeout: float = 10
) -> UploadResult:
    """
    POST an already compressed body.

    Returns:
        UploadResult; success only for 2xx responses
    """
    req = urllib.request.Request(
        url,
        data=body,
        headers=build_headers(content_type, body, api_key),
        method="POST",
    )

    try:
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            status = resp.status
            response_body = resp.read().decode("utf-8", errors="replace")
    except urllib.error.HTTPError as e:
        try:
            error_body = e.read().decode("utf-8", errors="replace")
        except (OSError, http.client.HTTPException):
            error_body = ""
        return UploadResult(False, e.code, f"HTTP {e.code}: {error_body[:ERROR_BODY_LIMIT]}")
    except urllib.error.URLError as e:
        if isinstance(e.reason, socket.timeout):
            return UploadResult(False, None, "Request timeout")
        return UploadResult(False, None, f"Network error: {e.reason}")
    except socket.timeout:
        return UploadResult(False, None, "Request timeout")
    except (OSError, ValueError, http.client.HTTPException) as e:
        return UploadResult(False, None, f"Network error: {e}")

    if 200 <= status < 300:
        return UploadResult(True, status, f"HTTP {status}")
    return UploadResult(False, status, f"HTTP {status}: {response_body[:ERROR_BODY_LIMIT]}")


def upload_file(log_file: Path, config: SkillmeterConfig) -> UploadResult:
    """
    Upload a detached log file and delete it on success.

    Args:
        log_file: Path to a rotated NDJSON log
        config: Resolved configuration (endpoint, key, timeout)

    Returns:
        UploadResult
    """
    log_file = Path(log_file)
    try:
        content = log_file.read_bytes()
    except FileNotFoundError:
        return UploadResult(False, None, "Log file not provided or does not exist")
    except OSError as e:
        return UploadResult(False, None, f"Failed to read log file: {e}")

    result = post_gzipped(
        config.backend_url,
        gzip.compress(content),
        "application/x-ndjson",
        api_key=config.api_key,
        timeout=config.timeout_seconds,
    )

    if result.success:
        try:
            log_file.unlink()
        except FileNotFoundError:
            # Another retry of the same stray file got there first
            pass
        except OSError as e:
            return UploadResult(True, result.status, f"{result.message} (file kept: {e})")

    return result


def upload_inline(record: EventRecord, config: SkillmeterConfig) -> UploadResult:
    """Upload a single record without touching the local log."""
    try:
        body = gzip.compress(record.to_json().encode("utf-8"))
    except (TypeError, ValueError) as e:
        return UploadResult(False, None, f"Failed to encode record: {e}")

    return post_gzipped(
        config.backend_url,
        body,
        "application/json",
        api_key=config.api_key,
        timeout=config.timeout_seconds,
    )


def send_inline(record: EventRecord, config: SkillmeterConfig) -> bool:
    """Best-effort inline delivery; all failures are discarded."""
    try:
        result = upload_inline(record, config)
    except Exception as e:
        if config.debug:
            print(f"Warning: Inline delivery failed: {e}", file=sys.stderr)
        return False

    if not result.success and config.debug:
        print(f"Warning: Inline delivery failed: {result.message}", file=sys.stderr)
    return result.success


def child_environment(config: SkillmeterConfig) -> Dict[str, str]:
    """Environment for the detached uploader, carrying this process's config."""
    env = dict(os.environ)
    env["CLAUDE_PLUGIN_ROOT"] = str(config.plugin_root)
    env["SKILLMETER_BACKEND_URL"] = config.backend_url
    env["SKILLMETER_TIMEOUT"] = str(config.timeout_seconds)
    env["SKILLMETER_USE_KEYCHAIN"] = "1" if config.get("identity.use_keychain", True) else "0"
    if config.api_key:
        env["SKILLMETER_API_KEY"] = config.api_key
    return env


def upload_command(log_file: Path) -> List[str]:
    if TRANSFER_SCRIPT.exists():
        return [sys.executable, str(TRANSFER_SCRIPT), str(log_file)]
    return [sys.executable, "-m", "skillmeter.uploader", str(log_file)]


def launch_detached_upload(log_file: Path, config: SkillmeterConfig) -> bool:
    """
    Start a file-mode upload in an independent process and return at once.

    The child has no stdio pipes to this process and is not waited on, so
    the hook can exit while the upload runs.

    Returns:
        True if the process was spawned
    """
    kwargs = {
        "stdin": subprocess.DEVNULL,
        "stdout": subprocess.DEVNULL,
        "stderr": subprocess.DEVNULL,
        "close_fds": True,
        "env": child_environment(config),
    }
    if os.name == "nt":
        kwargs["creationflags"] = (
            subprocess.DETACHED_PROCESS | subprocess.CREATE_NEW_PROCESS_GROUP
        )
    else:
        kwargs["start_new_session"] = True

    try:
        subprocess.Popen(upload_command(log_file), **kwargs)
    except (OSError, ValueError, subprocess.SubprocessError) as e:
        if config.debug:
            print(f"Warning: Failed to start uploader for {log_file}: {e}", file=sys.stderr)
        return False
    return True


def transfer(log_file: Path, config: SkillmeterConfig) -> bool:
    """Upload one file and report the outcome on stdout/stderr."""
    print(f"Transferring: {log_file}")
    result = upload_file(log_file, config)

    if result.success:
        print(f"✓ Transfer successful: {log_file}")
        return True

    print(f"✗ Transfer failed: {log_file}", file=sys.stderr)
    print(result.message, file=sys.stderr)
    tail = read_last_lines(log_file, 1)
    if tail:
        print(f"  Last undelivered record: {tail[:200]}", file=sys.stderr)
    return False


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Upload rotated skillmeter event logs to the collector"
    )
    parser.add_argument("log_files", nargs="*", type=Path,
                        help="Rotated log files to upload")
    parser.add_argument("--pending", action="store_true",
                        help="Also upload every rotated log left next to the active log")
    args = parser.parse_args(argv)

    config = load_config()

    log_files = list(args.log_files)
    if args.pending:
        named = {p.resolve() for p in log_files}
        log_files.extend(p for p in find_detached_logs(config.log_file) if p.resolve() not in named)

    if not log_files and args.pending:
        print("No pending logs to transfer")
        return 0

    if not log_files:
        print("✗ Transfer failed: Log file not provided or does not exist", file=sys.stderr)
        return 1

    ok = True
    for log_file in log_files:
        ok = transfer(log_file, config) and ok

    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
