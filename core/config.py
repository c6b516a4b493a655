import copy
import shutil
import yaml
import typer
from pathlib import Path
from typing import Any, Dict

from core.errors import ConfigError

DEFAULT_CONFIG = {
    "repeater": {
        "command": ["node", "stats.js"],
        "cwd": None,
        "host": "127.0.0.1",
        "port": 8125,
        "protocol": "udp4",
        "server": "./servers/udp",
        "backends": ["./backends/repeater"],
        "ready_pattern": "server is listening",
        "launch_timeout_seconds": 10.0,
        "stop_timeout_seconds": 5.0
    },
    "collector": {
        "bind_host": "0.0.0.0",
        "host": "127.0.0.1",
        "port": 9125
    },
    "scenario": {
        "payload": "foobar",
        "collect_seconds": 0.1
    },
    "logging": {
        "verbose": False
    }
}

def merge_settings(defaults: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Returns a fresh dict: `overrides` layered over `defaults`, section by section."""
    merged = copy.deepcopy(defaults)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_settings(merged[key], value)
        else:
            merged[key] = value
    return merged

class ConfigManager:
    """
    Harness settings backed by harness.yml.
    Anything the file leaves out falls back to DEFAULT_CONFIG, so a
    missing file behaves like an empty one.
    """
    def __init__(self, config_path: Path):
        self.config_path = Path(config_path)
        self.config = self.load_config()

    def load_config(self) -> Dict[str, Any]:
        if not self.config_path.exists():
            return copy.deepcopy(DEFAULT_CONFIG)
        try:
            with open(self.config_path, 'r') as f:
                user_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Cannot parse {self.config_path}: {e}") from e
        if not isinstance(user_config, dict):
            raise ConfigError(f"{self.config_path} must contain a mapping at the top level.")
        return merge_settings(DEFAULT_CONFIG, user_config)

    def save_config(self):
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_path, 'w') as f:
            yaml.safe_dump(self.config, f, default_flow_style=False, sort_keys=False)

    def get(self, *keys: str, default: Any = None) -> Any:
        """Looks up a path of keys, e.g. get("repeater", "port")."""
        node: Any = self.config
        for key in keys:
            if not isinstance(node, dict) or node.get(key) is None:
                return default
            node = node[key]
        return node

    def set(self, value: Any, *keys: str):
        """Sets a nested value and writes the file."""
        *parents, leaf = keys
        node = self.config
        for key in parents:
            node = node.setdefault(key, {})
        node[leaf] = value
        self.save_config()

    @property
    def verbose(self) -> bool:
        return bool(self.get("logging", "verbose", default=False))

    def ensure_config(self):
        """Ensures the repeater can actually be launched with this configuration."""

        # 1. Repeater command
        command = self.get("repeater", "command", default=[])
        if isinstance(command, str) or not command:
            raise ConfigError("repeater.command must be a non-empty list of arguments.")
        executable = command[0]
        typer.secho(f"Checking repeater executable '{executable}'...", fg=typer.colors.CYAN)
        if shutil.which(executable) is None:
            raise ConfigError(f"Cannot find repeater executable '{executable}' on PATH.")
        typer.secho("Repeater executable found.", fg=typer.colors.GREEN)

        # 2. Working directory
        cwd = self.get("repeater", "cwd")
        if cwd is not None and not Path(cwd).is_dir():
            raise ConfigError(f"repeater.cwd '{cwd}' is not a directory.")

        # Save to create file if it didn't exist
        self.save_config()
