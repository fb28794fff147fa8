"""Git operations that produce the text sent for review."""

import logging
import re
from pathlib import Path
from typing import Dict, List, Optional, Union

import git
from git import Repo

from review_relay.errors import GitError

logger = logging.getLogger(__name__)

COMMIT_HASH_PATTERN = re.compile(r"^[0-9a-f]{7,40}$", re.IGNORECASE)


def is_valid_commit_hash(commit_hash: str) -> bool:
    """Full or abbreviated (7-40 hex chars) commit hash."""
    return bool(COMMIT_HASH_PATTERN.match(commit_hash or ""))


def is_safe_path(path: str) -> bool:
    """Reject empty paths, parent traversal and NUL bytes."""
    if not path or not isinstance(path, str):
        return False
    return ".." not in path and "\0" not in path


class GitOperations:
    """Reads diffs, commits and status from a git repository."""

    def __init__(self, repo_path: Optional[Union[str, Path]] = None):
        """Initialize GitOperations with a repository path.

        Args:
            repo_path: Path to the git repository. If None, uses current directory.

        Raises:
            GitError: If the path is not a git repository
        """
        self.repo_path = Path(repo_path) if repo_path else Path.cwd()
        self.repo = self._get_repo()

    def _get_repo(self) -> Repo:
        try:
            return Repo(self.repo_path, search_parent_directories=True)
        except (git.InvalidGitRepositoryError, git.NoSuchPathError):
            raise GitError(f"{self.repo_path} is not a git repository")

    def get_changes(self, include_staged: bool = True, include_unstaged: bool = True) -> str:
        """Concatenated diff text of uncommitted changes.

        Staged changes come first. A failing diff command is logged and
        skipped rather than failing the whole call.
        """
        commands = []
        if include_staged:
            commands.append(("--cached",))
        if include_unstaged:
            commands.append(())

        parts = []
        for args in commands:
            try:
                diff = self.repo.git.diff(*args)
            except git.GitCommandError as e:
                logger.warning(f"git diff {' '.join(args)} failed: {e}")
                continue
            if diff:
                parts.append(diff)
        return "\n".join(parts)

    def get_commit_info(self, commit_hash: Optional[str] = None) -> str:
        """Output of `git show <hash> --pretty=fuller --stat` (HEAD by default).

        Raises:
            GitError: If the hash is malformed or git fails
        """
        if commit_hash and not is_valid_commit_hash(commit_hash):
            raise GitError(f"Invalid commit hash: {commit_hash}")
        try:
            return self.repo.git.show(commit_hash or "HEAD", "--pretty=fuller", "--stat")
        except git.GitCommandError as e:
            raise GitError(f"Failed to read commit {commit_hash or 'HEAD'}: {e}")

    def get_status(self) -> Dict[str, List[str]]:
        """Files grouped as staged, unstaged and untracked."""
        result: Dict[str, List[str]] = {"staged": [], "unstaged": [], "untracked": []}

        if self.repo.head.is_valid():
            result["staged"] = [item.a_path for item in self.repo.index.diff("HEAD")]
        result["unstaged"] = [item.a_path for item in self.repo.index.diff(None)]
        result["untracked"] = list(self.repo.untracked_files)
        return result

