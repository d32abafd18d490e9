"""
Configuration management for skillmeter hooks.

Provides configuration resolved once per hook process with:
- Built-in defaults derived from the plugin root
- Optional JSON file overrides
- Environment variable overrides
- Dot-notation access

Components never read the environment themselves; the hook entry point
builds a SkillmeterConfig and passes it down.
"""

import json
import os
import sys
from pathlib import Path
from typing import Any, Mapping, Optional

DEFAULT_BACKEND_URL = "https://api.meter.skillbench.com/logs/claude"
DEFAULT_TIMEOUT_SECONDS = 10
SERVICE_NAME = "com.skillbench.device-id"
CONFIG_FILE_NAME = "skillmeter_config.json"

_TRUE_VALUES = ("true", "1", "yes")


def default_plugin_root() -> Path:
    """Directory containing scripts/, i.e. the installed plugin."""
    return Path(__file__).resolve().parent.parent.parent


class SkillmeterConfig:
    """
    Configuration for one hook invocation.

    Usage:
        config = load_config()

        if config.is_enabled('telemetry'):
            logger = EventLogger(config.log_file)
    """

    def __init__(self, values: Optional[dict] = None):
        self._config = values if values is not None else {}

    @classmethod
    def defaults(cls, plugin_root: Path) -> dict:
        """
        Get default configuration for a plugin root.

        Args:
            plugin_root: Root directory of the installed plugin

        Returns:
            Dictionary with default settings
        """
        log_dir = plugin_root / "logs"
        return {
            "plugin_root": str(plugin_root),
            "telemetry": {
                "enabled": True,
                "debug": False,
            },
            "logging": {
                "log_dir": str(log_dir),
                "log_file": str(log_dir / "events.jsonl"),
            },
            "tracking": {
                "dir": str(plugin_root / "tracking"),
            },
            "identity": {
                "account": "",
                "use_keychain": True,
                "service_name": SERVICE_NAME,
                "fallback_file": str(log_dir / ".device-id"),
            },
            "upload": {
                "backend_url": DEFAULT_BACKEND_URL,
                "api_key": "",
                "timeout_seconds": DEFAULT_TIMEOUT_SECONDS,
            },
        }

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value with dot notation.

        Args:
            key: Configuration key (e.g., "upload.backend_url")
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        value = self._config
        for k in key.split('.'):
            if isinstance(value, dict):
                value = value.get(k)
            else:
                return default

        return value if value is not None else default

    def set(self, key: str, value: Any):
        """
        Set configuration value (runtime only, not persisted).

        Args:
            key: Configuration key (dot notation)
            value: Value to set
        """
        keys = key.split('.')
        config = self._config

        for k in keys[:-1]:
            if k not in config:
                config[k] = {}
            config = config[k]

        config[keys[-1]] = value

    def is_enabled(self, feature: str) -> bool:
        return bool(self.get(f"{feature}.enabled", False))

    def get_all(self) -> dict:
        return json.loads(json.dumps(self._config))

    # Typed accessors for the values every component needs

    @property
    def plugin_root(self) -> Path:
        return Path(self.get("plugin_root"))

    @property
    def log_dir(self) -> Path:
        return Path(self.get("logging.log_dir"))

    @property
    def log_file(self) -> Path:
        return Path(self.get("logging.log_file"))

    @property
    def tracking_dir(self) -> Path:
        return Path(self.get("tracking.dir"))

    @property
    def backend_url(self) -> str:
        return self.get("upload.backend_url", DEFAULT_BACKEND_URL)

    @property
    def api_key(self) -> str:
        return self.get("upload.api_key", "")

    @property
    def timeout_seconds(self) -> float:
        return float(self.get("upload.timeout_seconds", DEFAULT_TIMEOUT_SECONDS))

    @property
    def debug(self) -> bool:
        return bool(self.get("telemetry.debug", False))


def _merge(target: dict, source: dict):
    """Deep merge source dictionary into target."""
    for key, value in source.items():
        if key in target and isinstance(target[key], dict) and isinstance(value, dict):
            _merge(target[key], value)
        else:
            target[key] = value


def _first_env(environ: Mapping[str, str], *names: str) -> Optional[str]:
    for name in names:
        value = environ.get(name)
        if value:
            return value
    return None


def _apply_env_overrides(config: SkillmeterConfig, environ: Mapping[str, str]):
    """Apply environment variable overrides to configuration."""
    account = _first_env(environ, "USER", "USERNAME")
    if account:
        config.set("identity.account", account)

    backend_url = _first_env(environ, "SKILLMETER_BACKEND_URL", "BACKEND_URL")
    if backend_url:
        config.set("upload.backend_url", backend_url)

    api_key = _first_env(environ, "SKILLMETER_API_KEY", "API_KEY")
    if api_key:
        config.set("upload.api_key", api_key)

    timeout = _first_env(environ, "SKILLMETER_TIMEOUT", "TIMEOUT_SECONDS")
    if timeout:
        try:
            seconds = float(timeout)
            if seconds <= 0:
                raise ValueError(timeout)
            config.set("upload.timeout_seconds", seconds)
        except ValueError:
            print(f"Warning: Ignoring invalid timeout {timeout!r}, "
                  f"using {DEFAULT_TIMEOUT_SECONDS}s", file=sys.stderr)

    # SKILLMETER_TELEMETRY_ENABLED=false
    if "SKILLMETER_TELEMETRY_ENABLED" in environ:
        value = environ["SKILLMETER_TELEMETRY_ENABLED"].lower()
        config.set("telemetry.enabled", value in _TRUE_VALUES)

    if "SKILLMETER_USE_KEYCHAIN" in environ:
        value = environ["SKILLMETER_USE_KEYCHAIN"].lower()
        config.set("identity.use_keychain", value in _TRUE_VALUES)

    if "SKILLMETER_DEBUG" in environ:
        value = environ["SKILLMETER_DEBUG"].lower()
        config.set("telemetry.debug", value in _TRUE_VALUES)


def load_config(
    environ: Optional[Mapping[str, str]] = None,
    config_path: Optional[Path] = None
) -> SkillmeterConfig:
    """
    Resolve configuration once for this process.

    Precedence: environment variables > JSON config file > defaults.

    Args:
        environ: Environment mapping (defaults to os.environ)
        config_path: Path to skillmeter_config.json (optional)

    Returns:
        SkillmeterConfig instance
    """
    if environ is None:
        environ = os.environ

    plugin_root_env = environ.get("CLAUDE_PLUGIN_ROOT")
    plugin_root = Path(plugin_root_env) if plugin_root_env else default_plugin_root()

    values = SkillmeterConfig.defaults(plugin_root)

    if config_path is None:
        config_path = plugin_root / "config" / CONFIG_FILE_NAME

    if config_path.exists():
        try:
            with open(config_path) as f:
                file_values = json.load(f)
            if isinstance(file_values, dict):
                _merge(values, file_values)
        except (OSError, json.JSONDecodeError) as e:
            print(f"Warning: Failed to load config from {config_path}: {e}",
                  file=sys.stderr)

    config = SkillmeterConfig(values)
    _apply_env_overrides(config, environ)
    return config
