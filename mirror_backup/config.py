"""
Configuration and token discovery

Copyright 2025 HyperSec

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at

    http://www.apache.org/licenses/LICENSE-2.0

Unless required by applicable law or agreed to in writing, software
distributed under the License is distributed on an "AS IS" BASIS,
WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
See the License for the specific language governing permissions and
limitations under the License.
"""

import logging
import os
import shutil
import subprocess
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .archiver import ARCHIVE_FORMATS
from .base import ConfigurationError
from .clone import DEFAULT_CLONE_TIMEOUT
from .notifier import DEFAULT_NOTIFY_TIMEOUT
from .retention import DEFAULT_RETENTION_MAX

logger = logging.getLogger(__name__)

# Environment variable for each BackupConfig field
ENV_VARS = {
    "repos_file": "REPOS_FILE",
    "backup_root": "BACKUP_ROOT",
    "retention_max": "RETENTION_MAX",
    "clone_timeout": "CLONE_TIMEOUT",
    "clone_attempts": "CLONE_ATTEMPTS",
    "backoff_seconds": "CLONE_BACKOFF_SECONDS",
    "notify_timeout": "WEBHOOK_TIMEOUT",
    "archive_format": "ARCHIVE_FORMAT",
    "commit": "COMMIT_BACKUPS",
    "push_remote": "PUSH_REMOTE",
    "push_branch": "PUSH_BRANCH",
    "webhook_url": "WEBHOOK_URL",
}

# Secrets are only ever taken from the environment
SECRET_FIELDS = {"token", "webhook_url"}


def get_backup_token() -> Optional[str]:
    """
    Discover the clone token from standard locations.

    Priority:
    1. BACKUP_TOKEN environment variable
    2. GITHUB_TOKEN environment variable
    3. GH_TOKEN environment variable
    4. gh CLI auth token (via `gh auth token` command)

    Returns:
        Token or None if not found
    """
    for var in ("BACKUP_TOKEN", "GITHUB_TOKEN", "GH_TOKEN"):
        token = os.getenv(var)
        if token:
            logger.debug(f"[TOKEN] Token found in {var} env var")
            return token

    try:
        result = subprocess.run(
            ["gh", "auth", "token"],
            capture_output=True,
            text=True,
            timeout=5,
        )
        if result.returncode == 0 and result.stdout.strip():
            logger.info("[TOKEN] Token discovered from gh CLI")
            return result.stdout.strip()
    except (subprocess.TimeoutExpired, FileNotFoundError):
        pass

    return None


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class BackupConfig:
    token: Optional[str] = None
    webhook_url: Optional[str] = None
    repos_file: str = "repositories.txt"
    backup_root: str = "backups"
    retention_max: int = DEFAULT_RETENTION_MAX
    clone_timeout: int = DEFAULT_CLONE_TIMEOUT
    clone_attempts: int = 3
    backoff_seconds: float = 1.0
    notify_timeout: int = DEFAULT_NOTIFY_TIMEOUT
    archive_format: str = "zip"
    commit: bool = False
    push_remote: str = "origin"
    push_branch: str = "main"

    @classmethod
    def _coerce(cls, name: str, value: Any) -> Any:
        defaults = cls()
        default = getattr(defaults, name)
        if isinstance(default, bool):
            return _parse_bool(value)
        try:
            if isinstance(default, int):
                return int(value)
            if isinstance(default, float):
                return float(value)
        except (TypeError, ValueError):
            raise ConfigurationError(f"Invalid value for {name}: {value!r}")
        return str(value) if value is not None else None

    @classmethod
    def from_file(cls, config_path: str) -> Dict[str, Any]:
        """Read overrides from a YAML file; unknown keys are rejected"""
        path = Path(config_path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except FileNotFoundError:
            raise ConfigurationError(f"Configuration file not found: {config_path}")
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Error reading configuration file {config_path}: {e}")

        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration file {config_path} must be a mapping")

        known = {f.name for f in fields(cls)} - SECRET_FIELDS
        unknown = set(data) - known
        if unknown:
            raise ConfigurationError(
                f"Unknown configuration keys in {config_path}: {', '.join(sorted(unknown))}"
            )
        return {key: cls._coerce(key, value) for key, value in data.items()}

    @classmethod
    def load(cls, config_path: Optional[str] = None, **overrides: Any) -> "BackupConfig":
        """
        Build configuration with precedence:
        overrides (CLI) > environment > YAML file > defaults
        """
        values: Dict[str, Any] = {}

        if config_path:
            values.update(cls.from_file(config_path))

        for name, env_var in ENV_VARS.items():
            env_value = os.getenv(env_var)
            if env_value not in (None, ""):
                values[name] = cls._coerce(name, env_value)

        for name, value in overrides.items():
            if value is not None:
                values[name] = cls._coerce(name, value)

        values["token"] = get_backup_token()
        return cls(**values)

    def validate(self) -> None:
        """Pre-flight checks; raises ConfigurationError on the first problem"""
        if not self.token:
            raise ConfigurationError(
                "BACKUP_TOKEN environment variable is required"
            )
        if self.retention_max < 1:
            raise ConfigurationError("retention_max must be at least 1")
        if self.clone_attempts < 1:
            raise ConfigurationError("clone_attempts must be at least 1")
        if self.clone_timeout <= 0 or self.notify_timeout <= 0:
            raise ConfigurationError("timeouts must be positive")
        if self.backoff_seconds < 0:
            raise ConfigurationError("backoff_seconds must not be negative")
        if self.archive_format not in ARCHIVE_FORMATS:
            raise ConfigurationError(
                f"Unsupported archive format '{self.archive_format}' "
                f"(expected one of: {', '.join(ARCHIVE_FORMATS)})"
            )
        if not shutil.which("git"):
            raise ConfigurationError("git command is required but not found")

    def __repr__(self) -> str:
        shown = {
            f.name: ("***" if f.name in SECRET_FIELDS and getattr(self, f.name) else getattr(self, f.name))
            for f in fields(self)
        }
        return f"BackupConfig({', '.join(f'{k}={v!r}' for k, v in shown.items())})"
