"""
Tests for the clone executor

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

import subprocess
import tempfile
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from mirror_backup.base import CloneError
from mirror_backup.clone import CloneExecutor
from mirror_backup.retry import RetryPolicy


def no_sleep_policy(attempts: int = 3) -> RetryPolicy:
    return RetryPolicy(max_attempts=attempts, sleep=lambda s: None)


def completed(returncode: int, stderr: str = "") -> MagicMock:
    result = MagicMock()
    result.returncode = returncode
    result.stderr = stderr
    return result


class TestCloneExecutorMocked:
    """Tests for CloneExecutor with git mocked out"""

    def test_clone_command(self):
        """Test git command line, timeout and prompt suppression"""
        with tempfile.TemporaryDirectory() as tmpdir:
            destination = Path(tmpdir) / "repo.git"
            executor = CloneExecutor(timeout=42, retry_policy=no_sleep_policy())

            with patch("mirror_backup.clone.subprocess.run", return_value=completed(0)) as run:
                executor.clone("https://github.com/o/repo.git", destination)

            args, kwargs = run.call_args
            assert args[0] == [
                "git",
                "clone",
                "--mirror",
                "https://github.com/o/repo.git",
                str(destination),
            ]
            assert kwargs["timeout"] == 42
            assert kwargs["env"]["GIT_TERMINAL_PROMPT"] == "0"

    def test_retries_then_succeeds(self):
        """Test that two failed attempts followed by success do not raise"""
        with tempfile.TemporaryDirectory() as tmpdir:
            executor = CloneExecutor(retry_policy=no_sleep_policy())
            results = [completed(128, "network"), completed(128, "network"), completed(0)]

            with patch("mirror_backup.clone.subprocess.run", side_effect=results) as run:
                executor.clone("https://github.com/o/repo.git", Path(tmpdir) / "repo.git")

            assert run.call_count == 3

    def test_exhausted_attempts_raise(self):
        """Test CloneError after the last attempt fails"""
        with tempfile.TemporaryDirectory() as tmpdir:
            destination = Path(tmpdir) / "repo.git"
            executor = CloneExecutor(retry_policy=no_sleep_policy())

            with patch(
                "mirror_backup.clone.subprocess.run",
                return_value=completed(128, "fatal: repository not found"),
            ) as run:
                with pytest.raises(CloneError, match="repository not found"):
                    executor.clone("https://github.com/o/repo.git", destination)

            assert run.call_count == 3
            assert not destination.exists()

    def test_partial_destination_removed_between_attempts(self):
        """Test that every attempt starts from an empty destination"""
        with tempfile.TemporaryDirectory() as tmpdir:
            destination = Path(tmpdir) / "repo.git"
            seen_existing = []

            def fake_run(cmd, **kwargs):
                seen_existing.append(destination.exists())
                destination.mkdir()
                (destination / "partial").write_text("x")
                return completed(128, "interrupted")

            executor = CloneExecutor(retry_policy=no_sleep_policy(2))

            with patch("mirror_backup.clone.subprocess.run", side_effect=fake_run):
                with pytest.raises(CloneError):
                    executor.clone("https://github.com/o/repo.git", destination)

            assert seen_existing == [False, False]
            assert not destination.exists()

    def test_timeout(self):
        """Test that a hung clone is reported as a timeout"""
        with tempfile.TemporaryDirectory() as tmpdir:
            executor = CloneExecutor(timeout=5, retry_policy=no_sleep_policy(1))

            with patch(
                "mirror_backup.clone.subprocess.run",
                side_effect=subprocess.TimeoutExpired(cmd="git", timeout=5),
            ):
                with pytest.raises(CloneError, match="timed out after 5s"):
                    executor.clone("https://github.com/o/repo.git", Path(tmpdir) / "r.git")

    def test_token_redacted_from_error(self):
        """Test that git stderr is redacted before it is raised"""
        with tempfile.TemporaryDirectory() as tmpdir:
            executor = CloneExecutor(retry_policy=no_sleep_policy(1), token="s3cret")

            with patch(
                "mirror_backup.clone.subprocess.run",
                return_value=completed(128, "fatal: unable to access 'https://s3cret@github.com/o/r.git/'"),
            ):
                with pytest.raises(CloneError) as exc_info:
                    executor.clone("https://s3cret@github.com/o/r.git", Path(tmpdir) / "r.git")

            assert "s3cret" not in str(exc_info.value)


class TestCloneExecutorIntegration:
    """Integration tests cloning real local repositories"""

    def test_mirror_clone(self, local_git_repo):
        """Test mirroring a real local repository"""
        with tempfile.TemporaryDirectory() as tmpdir:
            destination = Path(tmpdir) / "test-repo.git"
            executor = CloneExecutor(retry_policy=no_sleep_policy(1))

            executor.clone(local_git_repo, destination)

            assert (destination / "HEAD").exists()
            assert (destination / "config").exists()
            assert "mirror = true" in (destination / "config").read_text()

    def test_missing_source_fails(self):
        """Test cloning a path that does not exist"""
        with tempfile.TemporaryDirectory() as tmpdir:
            executor = CloneExecutor(retry_policy=no_sleep_policy(2))

            with pytest.raises(CloneError):
                executor.clone(str(Path(tmpdir) / "does-not-exist"), Path(tmpdir) / "out.git")
