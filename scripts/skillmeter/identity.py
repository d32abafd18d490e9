"""
Stable per-account device identity.

A device id is an uppercase UUID created on first use and kept outside the
process: in the macOS login keychain when the `security` tool is available,
otherwise in a file readable only by the owning user. Resolution never
raises; None means telemetry is disabled for this process.
"""

import os
import shutil
import subprocess
import sys
import uuid
from pathlib import Path
from typing import List, Optional

from .config import SkillmeterConfig

SECURITY_TIMEOUT_SECONDS = 5


def new_device_id() -> str:
    """Generate a fresh identifier in uppercase canonical UUID form."""
    return str(uuid.uuid4()).upper()


class DeviceIdStore:
    """Backend interface: somewhere a device id can be read and stored."""

    name = "store"

    def available(self) -> bool:
        raise NotImplementedError

    def get(self) -> Optional[str]:
        raise NotImplementedError

    def put(self, device_id: str) -> bool:
        raise NotImplementedError


class KeychainStore(DeviceIdStore):
    """Generic password item in the macOS keychain, via the security CLI."""

    name = "keychain"

    def __init__(self, account: str, service_name: str, security_path: Optional[str] = None):
        self.account = account
        self.service_name = service_name
        self._security_path = security_path

    def _security(self) -> Optional[str]:
        if self._security_path is None:
            self._security_path = shutil.which("security") or ""
        return self._security_path or None

    def available(self) -> bool:
        return sys.platform == "darwin" and bool(self.account) and self._security() is not None

    def _run(self, *args: str) -> subprocess.CompletedProcess:
        return subprocess.run(
            [self._security(), *args],
            stdin=subprocess.DEVNULL,
            capture_output=True,
            text=True,
            timeout=SECURITY_TIMEOUT_SECONDS
        )

    def get(self) -> Optional[str]:
        try:
            result = self._run(
                "find-generic-password",
                "-a", self.account,
                "-s", self.service_name,
                "-w"
            )
        except (OSError, subprocess.SubprocessError):
            return None

        if result.returncode != 0:
            return None
        return result.stdout.strip() or None

    def put(self, device_id: str) -> bool:
        try:
            result = self._run(
                "add-generic-password",
                "-a", self.account,
                "-s", self.service_name,
                "-w", device_id
            )
        except (OSError, subprocess.SubprocessError):
            return False
        return result.returncode == 0


class FileStore(DeviceIdStore):
    """Plain file fallback, created with mode 0600."""

    name = "file"

    def __init__(self, path: Path):
        self.path = Path(path)

    def available(self) -> bool:
        return True

    def get(self) -> Optional[str]:
        try:
            value = self.path.read_text(encoding='utf-8').strip()
        except OSError:
            return None
        return value or None

    def put(self, device_id: str) -> bool:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(str(self.path), os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                f.write(device_id)
            # O_CREAT mode is masked by umask and ignored for existing files
            os.chmod(self.path, 0o600)
        except OSError:
            return False
        return True


class DeviceIdentityProvider:
    """
    Get-or-create a device id across an ordered list of stores.

    The first available store that already holds an id wins. Otherwise a new
    id is generated and stored in the first store that accepts it.
    """

    def __init__(self, stores: List[DeviceIdStore]):
        self.stores = stores

    def resolve(self) -> Optional[str]:
        available = [store for store in self.stores if store.available()]
        if not available:
            return None

        for store in available:
            existing = store.get()
            if existing:
                return existing

        device_id = new_device_id()
        for store in available:
            if store.put(device_id):
                return device_id

        return None


def default_stores(account: str, config: SkillmeterConfig) -> List[DeviceIdStore]:
    """Keychain first (unless disabled), file fallback second."""
    stores: List[DeviceIdStore] = []
    if config.get("identity.use_keychain", True):
        stores.append(KeychainStore(account, config.get("identity.service_name")))
    stores.append(FileStore(Path(config.get("identity.fallback_file"))))
    return stores


def resolve_device_id(
    account: Optional[str],
    config: SkillmeterConfig
) -> Optional[str]:
    """
    Resolve the stable device id for an account.

    Args:
        account: Local account name (None/"" disables telemetry)
        config: Resolved configuration

    Returns:
        Device id string, or None if no store is usable
    """
    if not account:
        return None

    try:
        return DeviceIdentityProvider(default_stores(account, config)).resolve()
    except Exception as e:
        if config.debug:
            print(f"Warning: Failed to resolve device id: {e}", file=sys.stderr)
        return None
