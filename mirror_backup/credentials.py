"""
Clone URL credential injection and scrubbing

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
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

from .repo_list import SHORTHAND_PATTERN

logger = logging.getLogger(__name__)

AUTH_SCHEMES = ("http", "https")


def authenticated_url(url: str, token: Optional[str]) -> str:
    """
    Build the URL used for cloning with the token as user-info.

    https://host/org/repo.git  -> https://<token>@host/org/repo.git
    git@host:org/repo.git      -> https://<token>@host/org/repo.git

    Local paths and other schemes are returned unchanged.
    """
    if not token:
        return url

    match = SHORTHAND_PATTERN.match(url)
    if match:
        return f"https://{token}@{match.group('host')}/{match.group('path')}"

    parsed = urlparse(url)
    if parsed.scheme not in AUTH_SCHEMES or not parsed.hostname:
        return url

    # Replace any user-info already present in the URL
    host = parsed.netloc.rsplit("@", 1)[-1]
    return parsed._replace(netloc=f"{token}@{host}").geturl()


def sanitized_url(url: str, token: Optional[str]) -> str:
    """Remove the exact '<token>@' user-info substring from a URL"""
    if not token:
        return url
    return url.replace(f"{token}@", "")


def redact(text: str, token: Optional[str]) -> str:
    """Mask every occurrence of the token in free text (e.g. git stderr)"""
    if not token or not text:
        return text
    return text.replace(token, "***")


def find_git_config(mirror_path: Path) -> Optional[Path]:
    """Locate the git config of a bare mirror or a working checkout"""
    for candidate in (mirror_path / "config", mirror_path / ".git" / "config"):
        if candidate.is_file():
            return candidate
    return None


def scrub_mirror_config(mirror_path: Path, token: Optional[str]) -> bool:
    """
    Remove the token from the mirror's on-disk git configuration.

    Best effort: a missing config is logged as a warning and reported as
    False; the backup itself is still considered successful.

    Returns:
        True if the config is credential-free afterwards
    """
    if not token:
        return True

    config_path = find_git_config(mirror_path)
    if config_path is None:
        logger.warning(
            f"[SANITIZE] No git config found in {mirror_path}; "
            "credentials may remain on disk"
        )
        return False

    try:
        content = config_path.read_text(encoding="utf-8")
        if token not in content:
            return True
        cleaned = sanitized_url(content, token)
        # Any remaining occurrence is outside user-info; mask it as well
        cleaned = redact(cleaned, token)
        config_path.write_text(cleaned, encoding="utf-8")
        logger.debug(f"[SANITIZE] Removed credentials from {config_path}")
        return True
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(
            f"[SANITIZE] Failed to remove credentials from {config_path}: {e}"
        )
        return False
