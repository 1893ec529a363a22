"""Test configuration and fixtures."""

from pathlib import Path
from typing import Callable, Generator, Optional

import pytest
from git import Actor, Repo

from grecent.git import GitError, RawBranch

MAIN_FIRST_DATE = "2024-01-01T00:00:00+00:00"
MAIN_SECOND_DATE = "2024-02-01T00:00:00+00:00"
FEATURE_DATE = "2024-06-01T00:00:00+00:00"
CONFLICT_DATE = "2023-03-01T00:00:00+00:00"


class FakeRepo:
    """In-memory stand-in for ``GitRepo``."""

    def __init__(
        self,
        branches: list[RawBranch],
        current: Optional[str] = None,
        reflog: Optional[dict[str, str]] = None,
        remotes: Optional[dict[str, str]] = None,
    ) -> None:
        self.branches = list(branches)
        self.current = current
        self.reflog = dict(reflog or {})
        self.remotes = dict(remotes or {})
        self.failures: dict[str, str] = {}
        self.calls: list[tuple] = []

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.failures:
            raise GitError(self.failures[operation])

    def list_local_branches(self) -> list[RawBranch]:
        self._maybe_fail("list")
        return list(self.branches)

    def current_branch(self) -> Optional[str]:
        return self.current

    def latest_local_action_time(self, branch_name: str) -> Optional[str]:
        return self.reflog.get(branch_name)

    def remote_ref_times(self) -> dict[str, str]:
        return dict(self.remotes)

    def fetch_all(self) -> None:
        self.calls.append(("fetch",))
        self._maybe_fail("fetch")

    def checkout(self, branch_name: str) -> None:
        self.calls.append(("checkout", branch_name))
        self._maybe_fail("checkout")
        self.current = branch_name

    def delete_branch(self, branch_name: str, force: bool = False) -> None:
        self.calls.append(("delete", branch_name, force))
        self._maybe_fail("force_delete" if force else "delete")
        self.branches = [branch for branch in self.branches if branch.name != branch_name]

    def merge_into_current(self, branch_name: str) -> None:
        self.calls.append(("merge", branch_name))
        self._maybe_fail("merge")


@pytest.fixture
def make_fake_repo() -> Callable[..., FakeRepo]:
    """Factory for fake repositories."""
    return FakeRepo


@pytest.fixture
def fake_repo() -> FakeRepo:
    """``main`` is current and idle; ``feature`` has newer local work and an upstream."""
    return FakeRepo(
        branches=[
            RawBranch("main", "a" * 40, "2024-01-01T00:00:00+00:00", ""),
            RawBranch("feature", "b" * 40, "2023-06-01T00:00:00+00:00", "origin/feature"),
            RawBranch("bugfix", "c" * 40, "2023-01-01T00:00:00+00:00", ""),
        ],
        current="main",
        reflog={"feature": "2024-06-01T00:00:00+00:00"},
        remotes={"origin/feature": "2024-05-01T00:00:00+00:00"},
    )


@pytest.fixture
def test_env(tmp_path: Path) -> Generator[tuple[Path, Path], None, None]:
    """Create local and remote repositories with commits at fixed dates.

    Branches once set up:
        main: current, tracks origin/main, tip at MAIN_SECOND_DATE
        feature: tracks origin/feature, tip at FEATURE_DATE
        conflict: no upstream, unmerged, edits README.md like main does

    Returns:
        Tuple of (local_repo_path, remote_repo_path)
    """
    remote_path = tmp_path / "remote"
    local_path = tmp_path / "local"
    remote_path.mkdir()
    local_path.mkdir()

    Repo.init(remote_path, bare=True)
    local_repo = Repo.init(local_path)

    author = Actor("Test User", "test@example.com")
    local_repo.config_writer().set_value("user", "name", author.name).release()
    local_repo.config_writer().set_value("user", "email", author.email).release()

    def commit(file_name: str, content: str, when: str) -> None:
        """Commit one file with author and committer dates pinned to ``when``."""
        (local_path / file_name).write_text(content)
        local_repo.index.add([file_name])
        with local_repo.git.custom_environment(GIT_AUTHOR_DATE=when, GIT_COMMITTER_DATE=when):
            local_repo.git.commit("-m", f"Update {file_name}")

    commit("README.md", "# Test Repository", MAIN_FIRST_DATE)
    local_repo.git.branch("-M", "main")

    origin = local_repo.create_remote("origin", url=str(remote_path))
    origin.push("main")
    local_repo.heads.main.set_tracking_branch(origin.refs.main)

    with local_repo.git.custom_environment(GIT_COMMITTER_DATE=FEATURE_DATE):
        local_repo.git.checkout("-b", "feature")
    commit("feature.txt", "Feature content", FEATURE_DATE)
    origin.push("feature")
    local_repo.heads.feature.set_tracking_branch(origin.refs.feature)

    local_repo.git.checkout("main")
    with local_repo.git.custom_environment(GIT_COMMITTER_DATE=CONFLICT_DATE):
        local_repo.git.checkout("-b", "conflict")
    commit("README.md", "conflicting readme", CONFLICT_DATE)

    local_repo.git.checkout("main")
    commit("README.md", "main readme", MAIN_SECOND_DATE)

    yield local_path, remote_path

    # Cleanup is handled by pytest's tmp_path fixture
