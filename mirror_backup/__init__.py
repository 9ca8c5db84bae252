"""
mirror-backup - Scheduled Git mirror backup tool

Mirrors a fixed list of Git repositories into dated, compressed archives
with bounded retention, run summaries and webhook notifications.

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

__version__ = "1.0.0"
__author__ = "Derek"
__license__ = "Apache-2.0"
__description__ = "Scheduled Git mirror backup tool with retention, summaries and webhook notifications"

from .archiver import Archiver
from .base import (
    ArchiveError,
    BackupError,
    BackupOutcome,
    CloneError,
    ConfigurationError,
    RepositoryDescriptor,
    RunReport,
)
from .clone import CloneExecutor
from .config import BackupConfig
from .main import MirrorBackupOrchestrator, main
from .notifier import Notifier
from .publisher import BackupPublisher
from .retention import RetentionEnforcer
from .summary import RunSummaryBuilder

__all__ = [
    "Archiver",
    "ArchiveError",
    "BackupConfig",
    "BackupError",
    "BackupOutcome",
    "BackupPublisher",
    "CloneError",
    "CloneExecutor",
    "ConfigurationError",
    "MirrorBackupOrchestrator",
    "Notifier",
    "RepositoryDescriptor",
    "RetentionEnforcer",
    "RunReport",
    "RunSummaryBuilder",
    "main",
]
