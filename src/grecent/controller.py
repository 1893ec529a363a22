"""Session transitions: key handling and background git jobs.

Transitions that need git never call it directly. They return a ``Job`` whose
``work`` runs off the event loop; its ``JobResult`` is handed back through
``Session.complete`` so the snapshot is replaced in one step or not at all.
"""

import logging
from dataclasses import dataclass
from functools import partial
from typing import Callable, NamedTuple, Optional

from grecent.git import GitError, GitRepo
from grecent.recency import BranchRecord, RankingError, rank_branches
from grecent.session import Action, Browsing, Confirming, SessionState, next_sort

logger = logging.getLogger(__name__)

Ranker = Callable[[GitRepo], tuple[BranchRecord, ...]]

SEARCH_HELP = "Search: type to filter, press Enter to apply, Esc to cancel"


class JobResult(NamedTuple):
    """Outcome of a background git job."""

    ok: bool
    message: str
    snapshot: Optional[tuple[BranchRecord, ...]] = None
    current: Optional[str] = None


@dataclass(frozen=True)
class Job:
    """A blocking git operation to run off the event loop."""

    label: str
    work: Callable[[], JobResult]


def _reranked(repo: GitRepo, ranker: Ranker, message: str) -> JobResult:
    try:
        snapshot = ranker(repo)
    except (GitError, RankingError) as err:
        return JobResult(True, f"{message}; refresh failed: {err}")
    return JobResult(True, message, snapshot)


def run_checkout(repo: GitRepo, name: str) -> JobResult:
    try:
        repo.checkout(name)
    except GitError as err:
        return JobResult(False, f"checkout failed: {err}")
    return JobResult(True, f"checked out {name}", current=name)


def run_delete(repo: GitRepo, ranker: Ranker, name: str) -> JobResult:
    """Delete a branch, falling back to a forced delete once."""
    try:
        # The snapshot may predate a checkout, so ask git again
        if repo.current_branch() == name:
            return JobResult(False, "cannot delete current branch")
        try:
            repo.delete_branch(name, force=False)
        except GitError as err:
            logger.debug("Safe delete of %s failed (%s), forcing", name, err)
            repo.delete_branch(name, force=True)
    except GitError as err:
        return JobResult(False, f"delete failed: {err}")
    return _reranked(repo, ranker, f"deleted {name}")


def run_merge(repo: GitRepo, ranker: Ranker, name: str) -> JobResult:
    try:
        if repo.current_branch() == name:
            return JobResult(False, "already on this branch")
        repo.merge_into_current(name)
    except GitError as err:
        return JobResult(False, f"merge failed: {err}")
    return _reranked(repo, ranker, f"merged {name} into current")


def run_refresh(repo: GitRepo, ranker: Ranker) -> JobResult:
    try:
        snapshot = ranker(repo)
    except (GitError, RankingError) as err:
        return JobResult(False, f"refresh failed: {err}")
    return JobResult(True, "refreshed", snapshot)


def run_fetch(repo: GitRepo, ranker: Ranker) -> JobResult:
    """Fetch all remotes, then refresh; a failed fetch still refreshes from cached refs."""
    fetch_error: Optional[GitError] = None
    try:
        repo.fetch_all()
    except GitError as err:
        logger.debug("Fetch failed, ranking from cached refs: %s", err)
        fetch_error = err
    result = run_refresh(repo, ranker)
    if not result.ok:
        return result
    if fetch_error is not None:
        return result._replace(message=f"{fetch_error}; refreshed from cached refs")
    return result._replace(message="fetched")


class Session:
    """Drives a ``SessionState`` from key presses and job completions."""

    def __init__(self, state: SessionState, repo: GitRepo, ranker: Ranker = rank_branches) -> None:
        self.state = state
        self.repo = repo
        self.ranker = ranker
        self._browse_keys: dict[str, Callable[[], Optional[Job]]] = {
            "UP": partial(self.move, -1),
            "k": partial(self.move, -1),
            "DOWN": partial(self.move, 1),
            "j": partial(self.move, 1),
            "HOME": self.move_top,
            "g": self.move_top,
            "END": self.move_bottom,
            "G": self.move_bottom,
            "/": self.begin_search,
            "ESC": self.clear_search,
            "s": self.cycle_sort,
            "ENTER": self.checkout,
            "x": partial(self.request, Action.DELETE),
            "DELETE": partial(self.request, Action.DELETE),
            "m": partial(self.request, Action.MERGE),
            "r": self.refresh,
            "f": self.fetch,
            "q": self.quit,
        }

    def handle_key(self, key: str) -> Optional[Job]:
        """Apply one key press; returns a job when git needs to run."""
        state = self.state
        if key == "CTRL_C":
            return self.quit()
        if state.search_draft is not None:
            self._edit_search(key)
            return None
        if isinstance(state.mode, Confirming):
            if key in ("y", "Y"):
                return self.confirm()
            if key in ("n", "N", "ESC"):
                return self.cancel()
            if key == "q":
                return self.quit()
            return None
        handler = self._browse_keys.get(key)
        if handler is None:
            return None
        return handler()

    def complete(self, job: Job, result: JobResult) -> None:
        """Fold a finished job back into the state."""
        state = self.state
        logger.debug("%s finished: ok=%s %s", job.label, result.ok, result.message)
        state.pending = None
        if result.snapshot is not None:
            state.replace_snapshot(result.snapshot)
        elif result.current is not None:
            state.mark_current(result.current)
        state.status_message = result.message

    def _start(self, job: Job) -> Optional[Job]:
        state = self.state
        if state.pending is not None:
            state.status_message = f"busy: {state.pending} in progress"
            return None
        state.pending = job.label
        state.status_message = f"{job.label}..."
        return job

    def move(self, delta: int) -> None:
        state = self.state
        if state.view:
            state.cursor = max(0, min(state.cursor + delta, len(state.view) - 1))

    def move_top(self) -> None:
        self.state.cursor = 0

    def move_bottom(self) -> None:
        self.state.cursor = max(0, len(self.state.view) - 1)

    def begin_search(self) -> None:
        state = self.state
        state.search_draft = state.search_text
        state.status_message = SEARCH_HELP

    def _edit_search(self, key: str) -> None:
        state = self.state
        if key == "ENTER":
            self.commit_search(state.search_draft or "")
        elif key == "ESC":
            state.search_draft = None
            state.status_message = "search cancelled"
        elif key == "BACKSPACE":
            state.search_draft = state.search_draft[:-1]
        elif key == "CTRL_U":
            state.search_draft = ""
        elif len(key) == 1 and key.isprintable():
            state.search_draft += key

    def commit_search(self, text: str) -> None:
        """Apply ``text`` as the filter."""
        state = self.state
        state.search_draft = None
        state.search_text = text
        state.cursor = 0
        state.refresh_view()
        if text and not state.view:
            state.status_message = f"no branches match {text!r}"
        else:
            state.status_message = "filter applied"

    def clear_search(self) -> None:
        state = self.state
        had_filter = bool(state.search_text)
        state.search_draft = None
        state.search_text = ""
        state.refresh_view()
        if had_filter:
            state.status_message = "filter cleared"

    def cycle_sort(self) -> None:
        state = self.state
        if state.search_text:
            state.status_message = "sorting is by relevance while filtering"
            return
        state.sort_key, state.sort_descending = next_sort(state.sort_key, state.sort_descending)
        state.refresh_view()
        direction = "desc" if state.sort_descending else "asc"
        state.status_message = f"sorted by {state.sort_key.value} {direction}"

    def checkout(self) -> Optional[Job]:
        selected = self.state.selected()
        if selected is None:
            return None
        return self._start(Job("checkout", partial(run_checkout, self.repo, selected.name)))

    def request(self, action: Action) -> None:
        """Ask for confirmation of ``action`` on the selected branch."""
        state = self.state
        selected = state.selected()
        if selected is None:
            return
        if state.pending is not None:
            state.status_message = f"busy: {state.pending} in progress"
            return
        state.mode = Confirming(action, selected.name)
        if action is Action.DELETE:
            state.status_message = f"delete {selected.name}? y/N"
        else:
            state.status_message = f"merge {selected.name} into current? y/N"

    def confirm(self) -> Optional[Job]:
        state = self.state
        mode = state.mode
        if not isinstance(mode, Confirming):
            return None
        state.mode = Browsing()

        target = state.find(mode.target)
        if target is None:
            state.status_message = f"{mode.target} no longer exists"
            return None
        if mode.action is Action.DELETE:
            if target.is_current:
                state.status_message = "cannot delete current branch"
                return None
            return self._start(Job("delete", partial(run_delete, self.repo, self.ranker, target.name)))
        if target.is_current:
            state.status_message = "already on this branch"
            return None
        return self._start(Job("merge", partial(run_merge, self.repo, self.ranker, target.name)))

    def cancel(self) -> None:
        self.state.mode = Browsing()
        self.state.status_message = "cancelled"

    def refresh(self) -> Optional[Job]:
        return self._start(Job("refresh", partial(run_refresh, self.repo, self.ranker)))

    def fetch(self) -> Optional[Job]:
        return self._start(Job("fetch", partial(run_fetch, self.repo, self.ranker)))

    def quit(self) -> None:
        self.state.quit = True
