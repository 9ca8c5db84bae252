"""
Directory size measurement

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
from abc import ABC, abstractmethod
from pathlib import Path


class SizeProbe(ABC):
    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def measure(self, path: Path) -> int:
        """Total size in bytes of all files under path; raises OSError on failure"""


class WalkSizeProbe(SizeProbe):
    def measure(self, path: Path) -> int:
        def fail(error: OSError):
            raise error

        total = 0
        for root, _dirs, files in os.walk(path, onerror=fail):
            for name in files:
                file_path = os.path.join(root, name)
                if not os.path.islink(file_path):
                    total += os.path.getsize(file_path)
        return total


class DuSizeProbe(SizeProbe):
    """Uses `du -sb`; falls back to walking the tree if du misbehaves"""

    def __init__(self, du_path: str = "du"):
        super().__init__()
        self.du_path = du_path
        self.fallback = WalkSizeProbe()

    def measure(self, path: Path) -> int:
        try:
            result = subprocess.run(
                [self.du_path, "-sb", str(path)],
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
                text=True,
                timeout=120,
            )
            if result.returncode == 0:
                # Output: "123456\t/path/to/dir"
                parts = result.stdout.split()
                if parts:
                    return int(parts[0])
        except (subprocess.TimeoutExpired, OSError, ValueError) as e:
            self.logger.debug(f"[SIZE] du failed for {path}: {e}")

        return self.fallback.measure(path)


def select_size_probe() -> SizeProbe:
    """Pick the du-backed probe when du is installed, otherwise walk the tree"""
    du_path = shutil.which("du")
    if du_path:
        return DuSizeProbe(du_path)
    logging.getLogger(__name__).warning(
        "[CONFIG] du command not found, using directory walk for size calculation"
    )
    return WalkSizeProbe()
