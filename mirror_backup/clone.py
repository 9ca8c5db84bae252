"""
Mirror cloning with timeout and retries

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
import subprocess
from pathlib import Path
from typing import Optional

from .base import CloneError, robust_rmtree
from .credentials import redact
from .retry import RetryPolicy

DEFAULT_CLONE_TIMEOUT = 600


class CloneExecutor:
    def __init__(
        self,
        timeout: int = DEFAULT_CLONE_TIMEOUT,
        retry_policy: Optional[RetryPolicy] = None,
        token: Optional[str] = None,
    ):
        """
        Initialize clone executor
        Args:
            timeout: Seconds a single clone attempt may run before it is killed
            retry_policy: Attempts and backoff between failed attempts
            token: Secret to redact from captured git output
        """
        self.timeout = timeout
        self.retry_policy = retry_policy or RetryPolicy()
        self.token = token
        self.logger = logging.getLogger(self.__class__.__name__)

    def clone(self, url: str, destination: Path, label: Optional[str] = None) -> None:
        """
        Create a full mirror of url at destination.

        Raises:
            CloneError: with the last attempt's error once all attempts fail
        """
        label = label or destination.name

        def attempt_clone(attempt: int) -> None:
            # Every attempt starts from an empty destination
            if destination.exists():
                robust_rmtree(destination, self.logger)
            self.logger.info(
                f"[CLONE] Cloning {label} (attempt {attempt}/{self.retry_policy.max_attempts})..."
            )
            self._run_clone(url, destination)

        try:
            self.retry_policy.run(attempt_clone, retry_on=(CloneError,), label=f"Clone of {label}")
        except CloneError:
            robust_rmtree(destination, self.logger)
            raise

    def _run_clone(self, url: str, destination: Path) -> None:
        clone_cmd = ["git", "clone", "--mirror", url, str(destination)]
        env = dict(os.environ, GIT_TERMINAL_PROMPT="0")

        try:
            # Use DEVNULL for stdout to avoid memory buffering of git progress output
            result = subprocess.run(
                clone_cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                text=True,
                timeout=self.timeout,
                env=env,
            )
        except subprocess.TimeoutExpired:
            raise CloneError(f"git clone timed out after {self.timeout}s")
        except OSError as e:
            raise CloneError(f"git clone could not be started: {e}")

        if result.returncode != 0:
            stderr_truncated = redact((result.stderr or "").strip(), self.token)[:500]
            raise CloneError(
                f"git clone exited with code {result.returncode}: {stderr_truncated}"
            )
