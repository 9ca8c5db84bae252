"""
Commit and push the backup tree to the hosting git repository

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
import subprocess
from datetime import date
from enum import Enum
from pathlib import Path
from typing import List, Optional

BOT_NAME = "Backup Bot"
BOT_EMAIL = "backup-bot@users.noreply.github.com"


class PublishResult(Enum):
    COMMITTED = "committed"
    NO_CHANGES = "no_changes"
    FAILED = "failed"


class BackupPublisher:
    def __init__(
        self,
        backup_root: Path,
        remote: str = "origin",
        branch: str = "main",
        work_tree: Optional[Path] = None,
        push: bool = True,
    ):
        self.backup_root = backup_root
        self.remote = remote
        self.branch = branch
        self.work_tree = work_tree or Path.cwd()
        self.push = push
        self.logger = logging.getLogger(self.__class__.__name__)

    def _git(self, *args: str) -> subprocess.CompletedProcess:
        cmd: List[str] = [
            "git",
            "-c",
            f"user.name={BOT_NAME}",
            "-c",
            f"user.email={BOT_EMAIL}",
            *args,
        ]
        # Output is discarded: push URLs may carry credentials
        return subprocess.run(
            cmd,
            cwd=str(self.work_tree),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )

    def publish(self, run_date: date) -> PublishResult:
        """Stage the backup tree, commit if anything changed, then push"""
        if self._git("add", "--all", "--", str(self.backup_root)).returncode != 0:
            self.logger.warning("[PUBLISH] Failed to stage backup changes")
            return PublishResult.FAILED

        if self._git("diff", "--staged", "--quiet").returncode == 0:
            self.logger.info("[PUBLISH] No changes to commit")
            return PublishResult.NO_CHANGES

        message = f"Daily mirror backup - {run_date.isoformat()}"
        if self._git("commit", "-m", message).returncode != 0:
            self.logger.warning("[PUBLISH] Failed to commit backup changes")
            return PublishResult.FAILED

        if self.push:
            if self._git("push", self.remote, self.branch).returncode != 0:
                self.logger.warning(
                    f"[PUBLISH] Failed to push to {self.remote}/{self.branch}"
                )
                return PublishResult.FAILED

        self.logger.info(f"[PUBLISH] Committed \"{message}\"{' and pushed' if self.push else ''}")
        return PublishResult.COMMITTED
