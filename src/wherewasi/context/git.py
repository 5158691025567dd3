"""Repository metadata lookups through the git CLI."""

import subprocess
from pathlib import Path
from typing import Protocol

from loguru import logger

from wherewasi.context.models import RepoInfo

GIT_TIMEOUT_SECONDS = 2.0
COMMIT_DISPLAY_LENGTH = 50


class RepoInfoSource(Protocol):
    def repo_info(self, file_path: str) -> RepoInfo:
        """Return repository state for the file; all fields absent if unknown."""
        ...


class GitRepoInfoSource:
    """Reads branch, last commit subject and change count with ``git``."""

    def __init__(self, executable: str = "git", timeout: float = GIT_TIMEOUT_SECONDS):
        self.executable = executable
        self.timeout = timeout

    def _git(self, cwd: Path, *args: str) -> str | None:
        try:
            result = subprocess.run(
                [self.executable, *args],
                cwd=cwd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            logger.debug("git {} failed in {}: {}", args[0], cwd, exc)
            return None
        if result.returncode != 0:
            return None
        return result.stdout

    def repo_info(self, file_path: str) -> RepoInfo:
        cwd = Path(file_path).parent
        if not cwd.is_dir():
            return RepoInfo()

        inside = self._git(cwd, "rev-parse", "--is-inside-work-tree")
        if inside is None or inside.strip() != "true":
            return RepoInfo()

        branch = self._git(cwd, "rev-parse", "--abbrev-ref", "HEAD")
        branch = branch.strip() if branch else None
        if branch == "HEAD":
            # detached
            branch = None

        subject = self._git(cwd, "log", "-1", "--format=%s")
        last_commit = subject.strip() if subject and subject.strip() else None

        status = self._git(cwd, "status", "--porcelain")
        uncommitted = len([entry for entry in status.splitlines() if entry.strip()]) if status is not None else None

        return RepoInfo(branch=branch or None, last_commit=last_commit, uncommitted_files=uncommitted)


def truncate_commit(message: str, limit: int = COMMIT_DISPLAY_LENGTH) -> str:
    return message[:limit] + "..." if len(message) > limit else message


def format_git_info(branch: str | None, last_commit: str | None, uncommitted: int | None) -> str:
    """Long form, e.g. ``Branch: main • Commit: Fix parser • Uncommitted files: 3``."""
    parts = []
    if branch:
        parts.append(f"Branch: {branch}")
    if last_commit:
        parts.append(f"Commit: {truncate_commit(last_commit)}")
    if uncommitted:
        parts.append(f"Uncommitted files: {uncommitted}")
    return " • ".join(parts)


def short_git_summary(branch: str | None, uncommitted: int | None) -> str:
    parts = []
    if branch:
        parts.append(branch)
    if uncommitted:
        parts.append(f"{uncommitted} uncommitted")
    return " • ".join(parts)
