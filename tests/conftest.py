"""
Shared fixtures for the test suite

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

import pytest


def _git(*args, cwd):
    subprocess.run(["git", *args], cwd=cwd, capture_output=True, check=True)


@pytest.fixture
def make_git_repo():
    """Factory creating local git repositories at <tmp>/<owner>/<name>"""
    with tempfile.TemporaryDirectory() as tmpdir:

        def _make(name: str = "test-repo", owner: str = "local", commits: int = 1) -> str:
            repo_path = Path(tmpdir) / owner / name
            repo_path.mkdir(parents=True)

            _git("init", cwd=repo_path)
            _git("config", "user.email", "test@test.com", cwd=repo_path)
            _git("config", "user.name", "Test User", cwd=repo_path)

            for i in range(commits):
                readme = repo_path / "README.md"
                readme.write_text(f"# {name}\n\nRevision {i}\n")
                _git("add", "README.md", cwd=repo_path)
                _git("commit", "-m", f"Commit {i}", cwd=repo_path)

            return str(repo_path)

        yield _make


@pytest.fixture
def local_git_repo(make_git_repo):
    """A single local git repository with one commit"""
    return make_git_repo()
