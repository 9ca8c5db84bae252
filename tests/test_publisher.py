"""
Tests for publishing backups to the hosting repository

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
from datetime import date
from pathlib import Path

import pytest

from mirror_backup.publisher import BackupPublisher, PublishResult


def git_output(*args, cwd) -> str:
    return subprocess.run(
        ["git", *args], cwd=cwd, capture_output=True, text=True, check=True
    ).stdout.strip()


class TestBackupPublisher:
    """Integration tests for BackupPublisher against local repositories"""

    @pytest.fixture
    def work_tree(self, local_git_repo):
        """Working repository with a bare 'origin' remote"""
        with tempfile.TemporaryDirectory() as remote_dir:
            remote = Path(remote_dir) / "origin.git"
            subprocess.run(
                ["git", "init", "--bare", str(remote)], capture_output=True, check=True
            )
            subprocess.run(
                ["git", "remote", "add", "origin", str(remote)],
                cwd=local_git_repo,
                capture_output=True,
                check=True,
            )
            yield Path(local_git_repo), remote

    def test_no_changes(self, work_tree):
        """Test that committed backups produce no new commit"""
        repo, _remote = work_tree
        branch = git_output("rev-parse", "--abbrev-ref", "HEAD", cwd=repo)
        (repo / "backups").mkdir()
        (repo / "backups" / "file.txt").write_text("data")
        git_output("add", "backups", cwd=repo)
        git_output("commit", "-m", "Existing backups", cwd=repo)

        publisher = BackupPublisher(repo / "backups", branch=branch, work_tree=repo)

        assert publisher.publish(date(2026, 3, 1)) == PublishResult.NO_CHANGES

    def test_commit_and_push(self, work_tree):
        """Test commit message, author and push to the remote"""
        repo, remote = work_tree
        branch = git_output("rev-parse", "--abbrev-ref", "HEAD", cwd=repo)
        archive_dir = repo / "backups" / "repoA" / "2026-03-01"
        archive_dir.mkdir(parents=True)
        (archive_dir / "repoA_2026-03-01.zip").write_bytes(b"PK")

        publisher = BackupPublisher(repo / "backups", branch=branch, work_tree=repo)

        assert publisher.publish(date(2026, 3, 1)) == PublishResult.COMMITTED
        assert git_output("log", "-1", "--format=%s", cwd=repo) == "Daily mirror backup - 2026-03-01"
        assert git_output("log", "-1", "--format=%an", cwd=repo) == "Backup Bot"
        assert (
            git_output("rev-parse", branch, cwd=remote)
            == git_output("rev-parse", "HEAD", cwd=repo)
        )

        # Second run with nothing new
        assert publisher.publish(date(2026, 3, 1)) == PublishResult.NO_CHANGES

    def test_commit_without_push(self, work_tree):
        """Test committing with push disabled"""
        repo, _remote = work_tree
        (repo / "backups").mkdir()
        (repo / "backups" / "file.txt").write_text("data")

        publisher = BackupPublisher(repo / "backups", work_tree=repo, push=False)

        assert publisher.publish(date(2026, 3, 1)) == PublishResult.COMMITTED

    def test_push_failure(self, work_tree):
        """Test push to an unknown remote is reported as failed"""
        repo, _remote = work_tree
        (repo / "backups").mkdir()
        (repo / "backups" / "file.txt").write_text("data")

        publisher = BackupPublisher(repo / "backups", remote="missing", work_tree=repo)

        assert publisher.publish(date(2026, 3, 1)) == PublishResult.FAILED
