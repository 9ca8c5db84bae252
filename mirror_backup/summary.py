"""
Run summary reports

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

import json
import logging
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .base import BackupOutcome, RunReport, format_bytes

JSON_SUMMARY_NAME = "summary.json"
MARKDOWN_SUMMARY_NAME = "summary.md"


class RunSummaryBuilder:
    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()
        self.logger = logging.getLogger(self.__class__.__name__)

    def build(
        self,
        run_date: date,
        started_at: datetime,
        finished_at: datetime,
        outcomes: List[BackupOutcome],
    ) -> RunReport:
        return RunReport(
            run_date=run_date,
            started_at=started_at,
            finished_at=finished_at,
            outcomes=list(outcomes),
        )

    @staticmethod
    def success_rate(report: RunReport) -> float:
        if report.total == 0:
            return 0.0
        return report.succeeded_count / report.total * 100

    def outcome_to_dict(self, outcome: BackupOutcome) -> Dict[str, Any]:
        result = {
            "name": outcome.repository.name,
            "success": outcome.succeeded,
            "size": outcome.uncompressed_size_bytes,
            "duration": round(outcome.elapsed.total_seconds(), 3),
            "start_time": outcome.started_at.isoformat(),
            "end_time": outcome.finished_at.isoformat(),
        }
        if outcome.failure_reason:
            result["error"] = outcome.failure_reason
        if outcome.archive_size_bytes:
            result["zip_size"] = outcome.archive_size_bytes
        return result

    def to_dict(self, report: RunReport) -> Dict[str, Any]:
        return {
            "date": report.run_date.isoformat(),
            "start_time": report.started_at.isoformat(),
            "end_time": report.finished_at.isoformat(),
            "duration": round(report.elapsed.total_seconds(), 3),
            "results": [self.outcome_to_dict(o) for o in report.outcomes],
            "success_count": report.succeeded_count,
            "failure_count": report.failed_count,
        }

    def render_markdown(self, report: RunReport) -> str:
        lines = [
            f"# Backup Summary - {report.run_date.isoformat()}",
            "",
            f"- **Started:** {report.started_at.strftime('%Y-%m-%d %H:%M:%S')}",
            f"- **Finished:** {report.finished_at.strftime('%Y-%m-%d %H:%M:%S')}",
            f"- **Duration:** {report.elapsed.total_seconds():.1f}s",
            f"- **Repositories:** {report.total}",
            f"- **Successful:** {report.succeeded_count}",
            f"- **Failed:** {report.failed_count}",
            f"- **Success rate:** {self.success_rate(report):.1f}%",
            "",
            "## Results",
            "",
        ]

        for outcome in report.outcomes:
            marker = "✅" if outcome.succeeded else "❌"
            lines.append(f"### {marker} {outcome.repository.name}")
            lines.append("")
            lines.append(f"- Source: `{outcome.repository.source_url}`")
            lines.append(f"- Size: {format_bytes(outcome.uncompressed_size_bytes)}")
            if outcome.archive_size_bytes:
                lines.append(
                    f"- Archive size: {format_bytes(outcome.archive_size_bytes)}"
                )
            lines.append(f"- Duration: {outcome.elapsed.total_seconds():.1f}s")
            if outcome.failure_reason:
                lines.append(f"- Error: {outcome.failure_reason}")
            lines.append("")

        return "\n".join(lines)

    def write(self, report: RunReport, directory: Path) -> Dict[str, bool]:
        """
        Write summary.json and summary.md into directory.

        Both writes are best effort: failures are logged, never raised.
        """
        written = {JSON_SUMMARY_NAME: False, MARKDOWN_SUMMARY_NAME: False}

        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            self.logger.warning(
                f"[SUMMARY] Failed to create summary directory {directory}: {e}"
            )
            return written

        renderings = {
            JSON_SUMMARY_NAME: lambda: json.dumps(self.to_dict(report), indent=2),
            MARKDOWN_SUMMARY_NAME: lambda: self.render_markdown(report),
        }
        for filename, render in renderings.items():
            path = directory / filename
            try:
                path.write_text(render(), encoding="utf-8")
                written[filename] = True
                self.logger.info(f"[SUMMARY] Wrote {path}")
            except (OSError, TypeError, ValueError) as e:
                self.logger.warning(f"[SUMMARY] Failed to write {path}: {e}")

        return written

    def print_summary(self, report: RunReport) -> None:
        table = Table(title=f"Backup Summary - {report.run_date.isoformat()}")
        table.add_column("Repository")
        table.add_column("Status")
        table.add_column("Size", justify="right")
        table.add_column("Archive", justify="right")
        table.add_column("Duration", justify="right")
        table.add_column("Error")

        for outcome in report.outcomes:
            table.add_row(
                escape(outcome.repository.name),
                "[green]OK[/green]" if outcome.succeeded else "[red]FAIL[/red]",
                format_bytes(outcome.uncompressed_size_bytes),
                format_bytes(outcome.archive_size_bytes),
                f"{outcome.elapsed.total_seconds():.1f}s",
                escape(outcome.failure_reason or ""),
            )

        self.console.print(table)
        self.console.print(
            f"Total: {report.total}  Successful: {report.succeeded_count}  "
            f"Failed: {report.failed_count}  "
            f"Success rate: {self.success_rate(report):.1f}%  "
            f"Duration: {report.elapsed.total_seconds():.1f}s"
        )
