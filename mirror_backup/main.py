#!/usr/bin/env python3
"""
Scheduled mirror backup of a fixed repository list
"""

import argparse
import logging
import os
import sys
from datetime import date, datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from dotenv import load_dotenv
from loguru import logger
from rich_argparse import ArgumentDefaultsRichHelpFormatter
from tqdm import tqdm

from .archiver import ARCHIVE_FORMATS, Archiver
from .base import (
    ArchiveError,
    BackupOutcome,
    CloneError,
    ConfigurationError,
    RepositoryDescriptor,
    RunReport,
    format_bytes,
    robust_rmtree,
)
from .clone import CloneExecutor
from .config import BackupConfig
from .credentials import authenticated_url, redact, scrub_mirror_config
from .notifier import STATUS_CRASHED, STATUS_FAILURE, STATUS_SUCCESS, Notifier
from .publisher import BackupPublisher, PublishResult
from .repo_list import load_repository_list
from .retention import RetentionEnforcer
from .retry import RetryPolicy, linear_backoff
from .size_probe import SizeProbe, select_size_probe
from .summary import RunSummaryBuilder

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130

SUMMARY_DIR_NAME = "summary"


class InterceptHandler(logging.Handler):
    """Route standard logging records from library modules into loguru"""

    def emit(self, record: logging.LogRecord):
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        logger.opt(exception=record.exc_info).log(level, record.getMessage())


def setup_logging(verbose: bool = False, log_file: str = "mirror-backup.log"):
    """Setup console and file logging with loguru"""

    # Remove default loguru handler
    logger.remove()

    # Create logs directory
    log_dir = Path("logs")
    log_dir.mkdir(exist_ok=True)
    log_file_path = log_dir / log_file

    # Set log level
    log_level = "DEBUG" if verbose else "INFO"

    console_format = (
        "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
        "<level>{level: <8}</level> | "
        "<level>{message}</level>"
    )

    logger.add(sys.stdout, format=console_format, level=log_level, colorize=True)

    # Configure file handler with detailed format
    file_format = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} | {message}"

    logger.add(
        log_file_path,
        format=file_format,
        level=log_level,
        rotation="10 MB",
        retention="30 days",
        compression="zip",
        encoding="utf-8",
    )

    logging.basicConfig(
        handlers=[InterceptHandler()],
        level=logging.DEBUG if verbose else logging.INFO,
        force=True,
    )

    logger.info("[CONFIG] Logging configured")
    logger.debug(f"Log file: {log_file_path}")

    return logger


def get_env_default(env_var: str, fallback=None):
    """Get value from environment or .env file"""
    return os.getenv(env_var, fallback)


class MirrorBackupOrchestrator:
    def __init__(
        self,
        config: BackupConfig,
        clone_executor: Optional[CloneExecutor] = None,
        archiver: Optional[Archiver] = None,
        size_probe: Optional[SizeProbe] = None,
        retention: Optional[RetentionEnforcer] = None,
        summary_builder: Optional[RunSummaryBuilder] = None,
        publisher: Optional[BackupPublisher] = None,
        clock: Callable[[], datetime] = datetime.now,
        show_progress: bool = True,
    ):
        self.config = config
        self.backup_root = Path(config.backup_root)
        self.clone_executor = clone_executor
        self.archiver = archiver
        self.size_probe = size_probe
        self.retention = retention
        self.summary_builder = summary_builder
        self.publisher = publisher
        self.clock = clock
        self.show_progress = show_progress
        self.publish_result: Optional[PublishResult] = None

    def prepare(self):
        """Validate configuration and build any component not injected"""
        self.config.validate()

        if self.clone_executor is None:
            self.clone_executor = CloneExecutor(
                timeout=self.config.clone_timeout,
                retry_policy=RetryPolicy(
                    max_attempts=self.config.clone_attempts,
                    backoff=linear_backoff(self.config.backoff_seconds),
                ),
                token=self.config.token,
            )
        if self.archiver is None:
            self.archiver = Archiver(self.config.archive_format)
        if self.size_probe is None:
            self.size_probe = select_size_probe()
        if self.retention is None:
            self.retention = RetentionEnforcer(self.config.retention_max)
        if self.summary_builder is None:
            self.summary_builder = RunSummaryBuilder()
        if self.publisher is None and self.config.commit:
            self.publisher = BackupPublisher(
                self.backup_root,
                remote=self.config.push_remote,
                branch=self.config.push_branch,
            )

        logger.info(f"[CONFIG] Backup root: {self.backup_root}")
        logger.info(
            f"[CONFIG] Retention: {self.config.retention_max} backups per repository, "
            f"format: {self.config.archive_format}"
        )

    def backup_repository(self, repo: RepositoryDescriptor, run_date: date) -> BackupOutcome:
        """Backup a single repository into backups/<name>/<date>/"""
        started_at = self.clock()
        token = self.config.token
        date_str = run_date.isoformat()
        repo_dir = self.backup_root / repo.name / date_str
        mirror_path = repo_dir / f"{repo.name}.git"
        archive_path = repo_dir / f"{repo.name}_{date_str}{self.archiver.extension}"
        size = 0

        def failed(reason: str) -> BackupOutcome:
            reason = redact(reason, token)
            logger.error(f"[FAIL] {repo.name}: {reason}")
            return BackupOutcome(
                repository=repo,
                succeeded=False,
                started_at=started_at,
                finished_at=self.clock(),
                failure_reason=reason,
                uncompressed_size_bytes=size,
            )

        logger.info(f"[BACKUP] Backing up {repo.name}")

        try:
            # Same-day reruns replace the earlier backup
            if repo_dir.exists():
                logger.info(f"[CLEANUP] Replacing existing backup directory {repo_dir}")
                if not robust_rmtree(repo_dir, logger):
                    return failed(f"Could not clear existing backup directory {repo_dir}")
            repo_dir.mkdir(parents=True, exist_ok=True)

            try:
                self.clone_executor.clone(
                    authenticated_url(repo.source_url, token), mirror_path, label=repo.name
                )
            except CloneError as e:
                robust_rmtree(repo_dir, logger)
                return failed(f"Clone failed: {e}")

            scrub_mirror_config(mirror_path, token)

            try:
                size = self.size_probe.measure(mirror_path)
            except OSError as e:
                logger.warning(f"[SIZE] Failed to get directory size for {repo.name}: {e}")

            try:
                archive_size = self.archiver.create(mirror_path, archive_path)
            except ArchiveError as e:
                robust_rmtree(repo_dir, logger)
                return failed(f"Archive creation failed: {e}")

            if not robust_rmtree(mirror_path, logger):
                logger.warning(f"[CLEANUP] Mirror left on disk for {repo.name}: {mirror_path}")

        except Exception as e:
            logger.error(
                f"[ERROR] Backup failed for {repo.name}: {type(e).__name__}: {redact(str(e), token)}"
            )
            robust_rmtree(repo_dir, logger)
            return failed(f"{type(e).__name__}: {e}")

        outcome = BackupOutcome(
            repository=repo,
            succeeded=True,
            started_at=started_at,
            finished_at=self.clock(),
            uncompressed_size_bytes=size,
            archive_size_bytes=archive_size,
        )
        logger.info(
            f"[SUCCESS] Backed up {repo.name} ({format_bytes(size)} -> "
            f"{format_bytes(archive_size)}) in {outcome.elapsed.total_seconds():.1f}s"
        )
        return outcome

    def run(self) -> RunReport:
        """
        Run one complete backup: load, back up each repository in order,
        apply retention, write the summary and optionally publish.

        Raises:
            ConfigurationError: before any backup work if pre-flight fails
        """
        self.prepare()
        repos = load_repository_list(self.config.repos_file)

        run_started = self.clock()
        run_date = run_started.date()
        logger.info(f"[START] Backing up {len(repos)} repositories for {run_date.isoformat()}")

        outcomes: List[BackupOutcome] = []
        successful = 0
        failed = 0
        with tqdm(repos, desc="Backing up", unit="repo", disable=not self.show_progress) as pbar:
            for repo in pbar:
                pbar.set_description(f"[BACKUP] {repo.name}")
                outcome = self.backup_repository(repo, run_date)
                outcomes.append(outcome)
                if outcome.succeeded:
                    successful += 1
                else:
                    failed += 1
                pbar.set_postfix({"OK": successful, "FAIL": failed})

        self.retention.enforce_all(self.backup_root, [r.name for r in repos])

        report = self.summary_builder.build(run_date, run_started, self.clock(), outcomes)
        self.summary_builder.write(
            report, self.backup_root / SUMMARY_DIR_NAME / run_date.isoformat()
        )
        self.log_summary(report)

        if self.publisher:
            self.publish_result = self.publisher.publish(run_date)

        return report

    def log_summary(self, report: RunReport):
        logger.info("=" * 60)
        logger.info("[SUMMARY] BACKUP SUMMARY")
        logger.info("=" * 60)
        logger.info(f"[SUCCESS] Successful backups: {report.succeeded_count}")
        logger.info(f"[FAIL] Failed backups: {report.failed_count}")
        logger.info(f"[TOTAL] Total repositories: {report.total}")
        logger.info(
            f"[RATE] Success rate: {RunSummaryBuilder.success_rate(report):.1f}%"
        )
        if self.show_progress:
            self.summary_builder.print_summary(report)

        if report.failed_count > 0:
            logger.error(
                f"[WARN] {report.failed_count} repositories failed to backup: "
                f"{', '.join(report.failed_names())}"
            )
        else:
            logger.info("[COMPLETE] All repositories backed up successfully!")

    def list_backups(self) -> List[Dict]:
        """List archives under the backup root, newest first"""
        backups = []
        if not self.backup_root.exists():
            return backups

        for extension in ARCHIVE_FORMATS.values():
            for archive in self.backup_root.rglob(f"*{extension}"):
                if SUMMARY_DIR_NAME in archive.relative_to(self.backup_root).parts[:1]:
                    continue
                stat = archive.stat()
                backups.append(
                    {
                        "path": str(archive),
                        "size": stat.st_size,
                        "modified": datetime.fromtimestamp(stat.st_mtime).isoformat(),
                    }
                )

        return sorted(backups, key=lambda x: x["modified"], reverse=True)


def describe_run(
    report: RunReport, publish_result: Optional[PublishResult] = None
) -> Tuple[str, str]:
    """Notification status and message for a completed run"""
    if report.failed_count == 0:
        if publish_result == PublishResult.NO_CHANGES:
            return STATUS_SUCCESS, "No new backups needed (repositories unchanged)"
        return (
            STATUS_SUCCESS,
            f"Backup completed successfully: all {report.succeeded_count} repositories backed up",
        )
    if report.succeeded_count == 0:
        return STATUS_FAILURE, f"All backups failed ({report.failed_count} repositories)"
    return (
        STATUS_FAILURE,
        f"Some backups failed: {report.succeeded_count} succeeded, "
        f"{report.failed_count} failed ({', '.join(report.failed_names())})",
    )


def execute(orchestrator: MirrorBackupOrchestrator, notifier: Notifier) -> int:
    """
    Run the orchestrator and send exactly one notification whatever happens.

    Returns:
        Process exit status
    """
    token = orchestrator.config.token
    try:
        report = orchestrator.run()
    except ConfigurationError as e:
        logger.error(f"[CONFIG] {e}")
        notifier.notify(STATUS_FAILURE, f"Configuration error: {e}")
        return EXIT_CONFIG_ERROR
    except KeyboardInterrupt:
        logger.error("[ERROR] Backup interrupted")
        notifier.notify(STATUS_CRASHED, "Backup process was interrupted")
        return EXIT_INTERRUPTED
    except Exception as e:
        logger.opt(exception=True).error(
            f"[ERROR] Backup process crashed: {type(e).__name__}: {redact(str(e), token)}"
        )
        notifier.notify(
            STATUS_CRASHED, f"Backup process crashed: {type(e).__name__}: {redact(str(e), token)}"
        )
        return EXIT_FAILURE

    status, message = describe_run(report, orchestrator.publish_result)
    notifier.notify(status, message, report.successful_names())
    return EXIT_OK if report.failed_count == 0 else EXIT_FAILURE


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="[bold blue]Mirror Backup[/bold blue] - Mirror a list of Git repositories into dated, compressed archives",
        epilog="""
[bold green]Examples:[/bold green]
  [dim]# Back up every repository in repositories.txt[/dim]
  [yellow]%(prog)s[/yellow]

  [dim]# Use another list and backup directory, keep 10 backups[/dim]
  [yellow]%(prog)s[/yellow] [cyan]--repos-file[/cyan] [magenta]repos.txt[/magenta] [cyan]--backup-root[/cyan] [magenta]/srv/backups[/magenta] [cyan]--retention[/cyan] 10

  [dim]# List existing archives[/dim]
  [yellow]%(prog)s[/yellow] [cyan]--list[/cyan]

[bold blue]Environment:[/bold blue]
  BACKUP_TOKEN (required), WEBHOOK_URL, REPOS_FILE, BACKUP_ROOT, RETENTION_MAX,
  CLONE_TIMEOUT, CLONE_ATTEMPTS, ARCHIVE_FORMAT, COMMIT_BACKUPS, BACKUP_CONFIG
        """,
        formatter_class=ArgumentDefaultsRichHelpFormatter,
    )

    config_group = parser.add_argument_group("Configuration")
    config_group.add_argument(
        "--config",
        default=get_env_default("BACKUP_CONFIG"),
        metavar="FILE",
        help="YAML configuration file (env: BACKUP_CONFIG)",
    )
    config_group.add_argument(
        "--repos-file",
        metavar="FILE",
        help="Repository list, one URL per line (env: REPOS_FILE, default: repositories.txt)",
    )
    config_group.add_argument(
        "--backup-root",
        metavar="DIR",
        help="Directory receiving dated backups (env: BACKUP_ROOT, default: backups)",
    )
    config_group.add_argument(
        "--retention",
        type=int,
        metavar="N",
        help="Dated backups kept per repository (env: RETENTION_MAX, default: 5)",
    )
    config_group.add_argument(
        "--archive-format",
        choices=sorted(ARCHIVE_FORMATS),
        help="Archive format (env: ARCHIVE_FORMAT, default: zip)",
    )
    config_group.add_argument(
        "--commit",
        action="store_true",
        default=None,
        help="Commit and push the backup directory after the run (env: COMMIT_BACKUPS)",
    )

    ops_group = parser.add_argument_group("Operations")
    ops_group.add_argument("--list", action="store_true", help="List existing backups")
    ops_group.add_argument(
        "--validate-config",
        action="store_true",
        help="Run pre-flight checks only",
    )

    log_group = parser.add_argument_group("Logging Options")
    log_group.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging (DEBUG level)",
    )
    log_group.add_argument(
        "--log-file",
        default=get_env_default("LOG_FILE", "mirror-backup.log"),
        metavar="FILE",
        help="Log file name (env: LOG_FILE)",
    )

    return parser


def main(argv: Optional[List[str]] = None):
    # Load environment variables first (before parsing args)
    load_dotenv()

    args = build_parser().parse_args(argv)
    setup_logging(verbose=args.verbose, log_file=args.log_file)

    try:
        config = BackupConfig.load(
            args.config,
            repos_file=args.repos_file,
            backup_root=args.backup_root,
            retention_max=args.retention,
            archive_format=args.archive_format,
            commit=args.commit,
        )
    except ConfigurationError as e:
        logger.error(f"[CONFIG] {e}")
        Notifier(get_env_default("WEBHOOK_URL")).notify(
            STATUS_FAILURE, f"Configuration error: {e}"
        )
        sys.exit(EXIT_CONFIG_ERROR)

    orchestrator = MirrorBackupOrchestrator(config)

    if args.list:
        backups = orchestrator.list_backups()
        if backups:
            logger.info(f"Found {len(backups)} backups:")
            for backup in backups:
                logger.info(
                    f"  - {backup['path']} ({format_bytes(backup['size'])}) - {backup['modified']}"
                )
        else:
            logger.info("No backups found")
        return

    if args.validate_config:
        try:
            config.validate()
            load_repository_list(config.repos_file)
        except ConfigurationError as e:
            logger.error(f"[CONFIG] ❌ {e}")
            sys.exit(EXIT_CONFIG_ERROR)
        logger.info("[CONFIG] ✅ All configuration checks passed")
        return

    notifier = Notifier(config.webhook_url, timeout=config.notify_timeout)
    sys.exit(execute(orchestrator, notifier))


if __name__ == "__main__":
    main()
