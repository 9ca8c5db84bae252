"""
Base types shared by the backup pipeline

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
import shutil
import time
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import List, Optional


class BackupError(Exception):
    """Base class for all backup pipeline errors"""


class ConfigurationError(BackupError):
    """Fatal pre-flight error: nothing is backed up"""


class CloneError(BackupError):
    """Clone failed after exhausting the retry budget"""


class ArchiveError(BackupError):
    """Archive could not be written"""


@dataclass(frozen=True)
class RepositoryDescriptor:
    name: str
    source_url: str


@dataclass(frozen=True)
class BackupOutcome:
    repository: RepositoryDescriptor
    succeeded: bool
    started_at: datetime
    finished_at: datetime
    failure_reason: Optional[str] = None
    uncompressed_size_bytes: int = 0
    archive_size_bytes: int = 0

    @property
    def elapsed(self) -> timedelta:
        return self.finished_at - self.started_at


@dataclass(frozen=True)
class RunReport:
    run_date: date
    started_at: datetime
    finished_at: datetime
    outcomes: List[BackupOutcome] = field(default_factory=list)

    @property
    def elapsed(self) -> timedelta:
        return self.finished_at - self.started_at

    @property
    def succeeded_count(self) -> int:
        return sum(1 for o in self.outcomes if o.succeeded)

    @property
    def failed_count(self) -> int:
        return sum(1 for o in self.outcomes if not o.succeeded)

    @property
    def total(self) -> int:
        return len(self.outcomes)

    def successful_names(self) -> List[str]:
        return [o.repository.name for o in self.outcomes if o.succeeded]

    def failed_names(self) -> List[str]:
        return [o.repository.name for o in self.outcomes if not o.succeeded]


def format_bytes(size: int) -> str:
    """Format a byte count with decimal units, e.g. 1.5 kB"""
    unit = 1000
    if size < unit:
        return f"{size} B"
    div, exp = unit, 0
    n = size // unit
    while n >= unit:
        div *= unit
        exp += 1
        n //= unit
    return f"{size / div:.1f} {'kMGTPE'[exp]}B"


def robust_rmtree(path: Path, logger: logging.Logger, max_retries: int = 3) -> bool:
    """
    Remove a dated backup directory or a transient mirror, retrying briefly.
    Used for same-day replacement, failed-backup cleanup and retention pruning,
    where a leftover directory would be counted as a backup.

    Args:
        path: Path to remove
        logger: Logger for messages
        max_retries: Maximum number of retry attempts

    Returns:
        True if successfully removed (or already absent), False otherwise
    """
    if not path.exists():
        return True

    for attempt in range(max_retries):
        try:
            shutil.rmtree(path)
            return True
        except OSError as e:
            if attempt < max_retries - 1:
                time.sleep(0.5 * (attempt + 1))
                logger.debug(
                    f"[CLEANUP] Retry {attempt + 1}/{max_retries} removing {path}: {e}"
                )
            else:
                logger.warning(
                    f"[CLEANUP] Failed to remove {path} after {max_retries} attempts: {e}"
                )
                return False
    return False
