"""Git repository operations."""

import logging
from pathlib import Path
from typing import NamedTuple, Optional

from git import GitCommandError, InvalidGitRepositoryError, NoSuchPathError, Repo

logger = logging.getLogger(__name__)

BRANCH_FORMAT = "%(refname:short)%09%(objectname)%09%(committerdate:iso-strict)%09%(upstream)"
REMOTE_FORMAT = "%(refname:short)%09%(committerdate:iso-strict)"


class GitError(Exception):
    """Git operation error."""


class RawBranch(NamedTuple):
    """A local branch as reported by git, before any time parsing."""

    name: str
    commit_hash: str
    commit_time: str
    upstream: str


def normalize_upstream(upstream: str) -> str:
    """Turn ``refs/remotes/origin/x`` into ``origin/x``."""
    upstream = upstream.strip()
    if upstream.startswith("refs/remotes/"):
        return upstream[len("refs/remotes/") :]
    return upstream


def summarize_error(err: GitCommandError) -> str:
    """Condense a failed git command into a single line of git's own output."""
    lines = []
    for stream in (err.stderr, err.stdout):
        text = str(stream or "").strip()
        # GitPython wraps captured output as "stderr: '...'"
        for prefix in ("stderr:", "stdout:"):
            if text.startswith(prefix):
                text = text[len(prefix) :].strip().strip("'")
        lines.extend(line.strip() for line in text.splitlines())
    for line in lines:
        if line and not line.startswith(("hint:", "Auto-merging")):
            return line
    command = err.command[1] if isinstance(err.command, list) and len(err.command) > 1 else "command"
    return f"git {command} exited with status {err.status}"


class GitRepo:
    """Git repository operations."""

    def __init__(self, path: Path) -> None:
        """Initialize repository."""
        try:
            self.repo: Repo = Repo(path, search_parent_directories=True)
            if self.repo.bare:
                raise GitError("Cannot operate on bare repository")
        except (GitCommandError, ValueError, InvalidGitRepositoryError, NoSuchPathError) as err:
            raise GitError(f"not a git repository (or any of the parent directories): {path}") from err

    def list_local_branches(self) -> list[RawBranch]:
        """List local branches, most recent tip commit first."""
        try:
            output = self.repo.git.for_each_ref("--sort=-committerdate", f"--format={BRANCH_FORMAT}", "refs/heads")
        except GitCommandError as err:
            raise GitError(f"git for-each-ref failed: {summarize_error(err)}") from err

        branches = []
        for line in output.splitlines():
            fields = line.split("\t")
            if len(fields) < 4:
                continue
            name, commit_hash, commit_time, upstream = fields[:4]
            branches.append(RawBranch(name, commit_hash, commit_time.strip(), normalize_upstream(upstream)))
        return branches

    def current_branch(self) -> Optional[str]:
        """Get current branch name, or None when HEAD is detached."""
        try:
            return self.repo.active_branch.name
        except TypeError:
            # Detached HEAD
            return None
        except (GitCommandError, ValueError) as err:
            raise GitError(f"Failed to get current branch: {err}") from err

    def latest_local_action_time(self, branch_name: str) -> Optional[str]:
        """Get the date of the newest reflog entry for a branch.

        Returns None when the branch has no reflog, whether it expired, was
        cleared, or reflogs are disabled altogether.
        """
        try:
            output = self.repo.git.reflog(
                "--date=iso-strict",
                "--pretty=%gd",
                "-n",
                "1",
                f"refs/heads/{branch_name}",
            ).strip()
        except GitCommandError:
            logger.debug("No reflog for %s", branch_name)
            return None

        # e.g. refs/heads/feature@{2025-08-07T11:35:23+02:00}
        start = output.find("@{")
        end = output.rfind("}")
        if start == -1 or end == -1 or start + 2 >= end:
            return None
        return output[start + 2 : end]

    def remote_ref_times(self) -> dict[str, str]:
        """Get tip commit dates of all cached remote-tracking refs."""
        try:
            output = self.repo.git.for_each_ref(f"--format={REMOTE_FORMAT}", "refs/remotes")
        except GitCommandError:
            logger.debug("Could not list remote refs", exc_info=True)
            return {}

        times: dict[str, str] = {}
        for line in output.splitlines():
            parts = line.split("\t", 1)
            if len(parts) != 2:
                continue
            times[parts[0].strip()] = parts[1].strip()
        return times

    def fetch_all(self) -> None:
        """Fetch from all remotes, pruning deleted refs."""
        try:
            self.repo.git.fetch("--all", "--prune", "--tags", "--quiet")
        except GitCommandError as err:
            raise GitError(f"fetch failed: {summarize_error(err)}") from err

    def checkout(self, branch_name: str) -> None:
        """Switch the working tree to a branch."""
        logger.debug("git checkout %s", branch_name)
        try:
            self.repo.git.checkout(branch_name)
        except GitCommandError as err:
            raise GitError(summarize_error(err)) from err

    def delete_branch(self, branch_name: str, force: bool = False) -> None:
        """Delete a local branch, with ``-D`` when forced."""
        flag = "-D" if force else "-d"
        logger.debug("git branch %s %s", flag, branch_name)
        try:
            self.repo.git.branch(flag, branch_name)
        except GitCommandError as err:
            raise GitError(summarize_error(err)) from err

    def merge_into_current(self, branch_name: str) -> None:
        """Merge a branch into the checked-out branch.

        Conflicts are reported, never resolved.
        """
        logger.debug("git merge %s", branch_name)
        try:
            self.repo.git.merge(branch_name)
        except GitCommandError as err:
            raise GitError(summarize_error(err)) from err
