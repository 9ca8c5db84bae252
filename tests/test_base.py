"""
Tests for base types and helpers

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
import tempfile
from datetime import date, datetime, timedelta
from pathlib import Path

from mirror_backup.base import (
    BackupOutcome,
    RepositoryDescriptor,
    RunReport,
    format_bytes,
    robust_rmtree,
)

START = datetime(2026, 3, 1, 2, 0, 0)


def make_outcome(name: str, succeeded: bool, seconds: int = 5) -> BackupOutcome:
    return BackupOutcome(
        repository=RepositoryDescriptor(name=name, source_url=f"https://github.com/o/{name}.git"),
        succeeded=succeeded,
        started_at=START,
        finished_at=START + timedelta(seconds=seconds),
        failure_reason=None if succeeded else "Clone failed",
    )


class TestBackupOutcome:
    """Tests for BackupOutcome"""

    def test_elapsed(self):
        """Test elapsed time of a single outcome"""
        outcome = make_outcome("repoA", True, seconds=42)
        assert outcome.elapsed == timedelta(seconds=42)


class TestRunReport:
    """Tests for RunReport aggregation"""

    def test_counts_add_up(self):
        """succeeded + failed always equals the number of outcomes"""
        report = RunReport(
            run_date=date(2026, 3, 1),
            started_at=START,
            finished_at=START + timedelta(minutes=2),
            outcomes=[
                make_outcome("repoA", True),
                make_outcome("repoB", False),
                make_outcome("repoC", True),
            ],
        )

        assert report.total == 3
        assert report.succeeded_count == 2
        assert report.failed_count == 1
        assert report.succeeded_count + report.failed_count == report.total
        assert report.elapsed == timedelta(minutes=2)

    def test_names_keep_order(self):
        """Test that name lists follow outcome order"""
        report = RunReport(
            run_date=date(2026, 3, 1),
            started_at=START,
            finished_at=START,
            outcomes=[
                make_outcome("zeta", True),
                make_outcome("alpha", False),
                make_outcome("beta", True),
            ],
        )

        assert report.successful_names() == ["zeta", "beta"]
        assert report.failed_names() == ["alpha"]

    def test_empty_report(self):
        """Test counts of a report without outcomes"""
        report = RunReport(run_date=date(2026, 3, 1), started_at=START, finished_at=START)
        assert report.total == 0
        assert report.succeeded_count == 0
        assert report.failed_count == 0


class TestFormatBytes:
    """Tests for human readable sizes"""

    def test_bytes(self):
        """Test sizes below one kilobyte"""
        assert format_bytes(0) == "0 B"
        assert format_bytes(999) == "999 B"

    def test_kilobytes(self):
        """Test kilobyte formatting"""
        assert format_bytes(1500) == "1.5 kB"

    def test_megabytes(self):
        """Test megabyte formatting"""
        assert format_bytes(2_500_000) == "2.5 MB"

    def test_gigabytes(self):
        """Test gigabyte formatting"""
        assert format_bytes(3_000_000_000) == "3.0 GB"


class TestRobustRmtree:
    """Tests for robust_rmtree"""

    def test_removes_tree(self):
        """Test removing a nested directory tree"""
        with tempfile.TemporaryDirectory() as tmpdir:
            target = Path(tmpdir) / "tree"
            (target / "nested").mkdir(parents=True)
            (target / "nested" / "file.txt").write_text("data")

            assert robust_rmtree(target, logging.getLogger("test")) is True
            assert not target.exists()

    def test_missing_path_is_success(self):
        """Test that an absent path counts as removed"""
        with tempfile.TemporaryDirectory() as tmpdir:
            assert robust_rmtree(Path(tmpdir) / "absent", logging.getLogger("test")) is True
