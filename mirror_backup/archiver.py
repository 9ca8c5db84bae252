"""
Compressed archive creation for mirrored repositories

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
import tarfile
import zipfile
from pathlib import Path
from typing import Iterator

from .base import ArchiveError, format_bytes

ARCHIVE_FORMATS = {"zip": ".zip", "tar.gz": ".tar.gz"}


def walk_sorted(source_dir: Path) -> Iterator[Path]:
    """Yield source_dir and everything below it in a stable order"""
    yield source_dir
    for root, dirs, files in os.walk(source_dir):
        dirs.sort()
        root_path = Path(root)
        for name in dirs:
            yield root_path / name
        for name in sorted(files):
            yield root_path / name


class Archiver:
    def __init__(self, archive_format: str = "zip"):
        if archive_format not in ARCHIVE_FORMATS:
            raise ValueError(
                f"Unsupported archive format '{archive_format}' "
                f"(expected one of: {', '.join(ARCHIVE_FORMATS)})"
            )
        self.archive_format = archive_format
        self.logger = logging.getLogger(self.__class__.__name__)

    @property
    def extension(self) -> str:
        return ARCHIVE_FORMATS[self.archive_format]

    def create(self, source_dir: Path, archive_path: Path) -> int:
        """
        Fold source_dir into a single archive.

        Entry names are relative to source_dir's parent, so the archive's root
        entry is source_dir's own name. Modification times are preserved.

        Returns:
            Size of the written archive in bytes

        Raises:
            ArchiveError: on any I/O or encoding failure (partial output removed)
        """
        if not source_dir.is_dir():
            raise ArchiveError(f"Source directory does not exist: {source_dir}")

        self.logger.info(f"[ARCHIVE] Creating {archive_path.name}...")
        try:
            if self.archive_format == "zip":
                self._write_zip(source_dir, archive_path)
            else:
                self._write_tar(source_dir, archive_path)
            size = archive_path.stat().st_size
        except (OSError, zipfile.BadZipFile, tarfile.TarError, ValueError) as e:
            self._remove_partial(archive_path)
            raise ArchiveError(f"{type(e).__name__}: {e}") from e

        self.logger.info(f"[ARCHIVE] Wrote {archive_path} ({format_bytes(size)})")
        return size

    def _write_zip(self, source_dir: Path, archive_path: Path) -> None:
        base = source_dir.parent
        with zipfile.ZipFile(archive_path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            for path in walk_sorted(source_dir):
                arcname = path.relative_to(base).as_posix()
                if path.is_symlink():
                    continue
                # ZipInfo.from_file carries over mtime and permission bits
                info = zipfile.ZipInfo.from_file(path, arcname, strict_timestamps=False)
                if path.is_dir():
                    zf.writestr(info, b"")
                else:
                    info.compress_type = zipfile.ZIP_DEFLATED
                    with open(path, "rb") as src, zf.open(info, "w") as dst:
                        while True:
                            chunk = src.read(1024 * 1024)
                            if not chunk:
                                break
                            dst.write(chunk)

    def _write_tar(self, source_dir: Path, archive_path: Path) -> None:
        base = source_dir.parent
        with tarfile.open(archive_path, "w:gz") as tar:
            for path in walk_sorted(source_dir):
                arcname = path.relative_to(base).as_posix()
                tar.add(path, arcname=arcname, recursive=False)

    def _remove_partial(self, archive_path: Path) -> None:
        try:
            if archive_path.exists():
                archive_path.unlink()
        except OSError as e:
            self.logger.warning(
                f"[CLEANUP] Failed to remove partial archive {archive_path}: {e}"
            )
