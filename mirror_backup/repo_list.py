"""
Repository list loading

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
from typing import List, Optional
from urllib.parse import urlparse

from .base import ConfigurationError, RepositoryDescriptor

logger = logging.getLogger(__name__)

# git@github.com:org/repo.git
SHORTHAND_PATTERN = re.compile(r"^(?P<user>[\w.-]+)@(?P<host>[\w.-]+):(?P<path>.+)$")
UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def sanitize_path_component(component: str) -> str:
    """Strip everything outside the allow-list [A-Za-z0-9._-]"""
    cleaned = UNSAFE_CHARS.sub("", component)
    # "." and ".." survive the allow-list but are not usable directory names
    if cleaned.strip(".") == "":
        return ""
    return cleaned


def _url_path(url: str) -> str:
    match = SHORTHAND_PATTERN.match(url)
    if match:
        return match.group("path")
    if "://" in url:
        return urlparse(url).path
    return url


def extract_repo_name(url: str) -> Optional[str]:
    """
    Derive a filesystem-safe repository name from a clone URL.

    Supports https://host/org/repo.git, git@host:org/repo.git and local
    paths. At least two path segments (owner and repository) are required.

    Returns:
        The sanitized name, or None if it cannot be extracted
    """
    url = url.strip()
    if not url:
        return None

    segments = [s for s in _url_path(url).split("/") if s]
    if len(segments) < 2:
        return None

    name = segments[-1]
    if name.endswith(".git"):
        name = name[: -len(".git")]

    return sanitize_path_component(name) or None


def parse_repository_list(text: str) -> List[RepositoryDescriptor]:
    """
    Parse repository list content, one URL per line.

    Blank lines and lines starting with '#' are skipped. Any other line that
    does not yield a repository name aborts the whole load.

    Raises:
        ConfigurationError: if a line is malformed or no repository resolves
    """
    descriptors = []

    for line_num, raw_line in enumerate(text.splitlines(), 1):
        line = raw_line.strip()
        if not line:
            continue
        if line.startswith("#"):
            logger.debug(f"Skipping comment on line {line_num}: {line}")
            continue

        name = extract_repo_name(line)
        if not name:
            raise ConfigurationError(
                f"Cannot extract repository name on line {line_num}: {line}"
            )
        descriptors.append(RepositoryDescriptor(name=name, source_url=line))

    if not descriptors:
        raise ConfigurationError("No repositories found in repository list")

    return descriptors


def load_repository_list(file_path: str) -> List[RepositoryDescriptor]:
    """Load and parse the repository list file"""
    path = Path(file_path)
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise ConfigurationError(f"Repository file not found: {file_path}")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigurationError(f"Error reading repository file {file_path}: {e}")

    descriptors = parse_repository_list(text)
    logger.info(f"[LOAD] Loaded {len(descriptors)} repositories from {file_path}")
    return descriptors
