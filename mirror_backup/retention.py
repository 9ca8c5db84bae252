"""
Retention of dated backup directories

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
import re
from pathlib import Path
from typing import Dict, Iterable, List

from .base import robust_rmtree

DEFAULT_RETENTION_MAX = 5
DATE_DIR_PATTERN = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")


class RetentionEnforcer:
    def __init__(self, max_keep: int = DEFAULT_RETENTION_MAX):
        if max_keep < 1:
            raise ValueError("max_keep must be at least 1")
        self.max_keep = max_keep
        self.logger = logging.getLogger(self.__class__.__name__)

    def dated_directories(self, repo_root: Path) -> List[Path]:
        """Dated backup directories under repo_root, oldest first"""
        dated = [
            entry
            for entry in repo_root.iterdir()
            if entry.is_dir() and DATE_DIR_PATTERN.fullmatch(entry.name)
        ]
        # YYYY-MM-DD sorts chronologically
        return sorted(dated, key=lambda p: p.name)

    def enforce(self, repo_root: Path) -> List[Path]:
        """
        Delete all but the max_keep most recent dated directories.

        Entries whose name is not exactly YYYY-MM-DD are never touched.

        Returns:
            The directories that were removed
        """
        if not repo_root.is_dir():
            return []

        dated = self.dated_directories(repo_root)
        excess = len(dated) - self.max_keep
        if excess <= 0:
            return []

        removed = []
        for directory in dated[:excess]:
            if robust_rmtree(directory, self.logger):
                removed.append(directory)
                self.logger.info(f"[RETENTION] Removed old backup {directory}")
            else:
                self.logger.warning(f"[RETENTION] Could not remove {directory}")

        self.logger.info(
            f"[RETENTION] {repo_root.name}: kept {len(dated) - len(removed)}, "
            f"removed {len(removed)}"
        )
        return removed

    def enforce_all(self, backup_root: Path, repo_names: Iterable[str]) -> Dict[str, List[Path]]:
        """Apply retention to each repository; one failure never blocks the rest"""
        results = {}
        for name in dict.fromkeys(repo_names):
            try:
                results[name] = self.enforce(backup_root / name)
            except OSError as e:
                self.logger.warning(
                    f"[RETENTION] Failed to apply retention for {name}: {e}"
                )
                results[name] = []
        return results
