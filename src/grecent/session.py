"""Interactive session state and view derivation."""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional, Union

from grecent.fuzzy import fuzzy_filter
from grecent.recency import BranchRecord


class SortKey(Enum):
    """Column the unfiltered view is ordered by."""

    TIME = "time"
    NAME = "name"


class Action(Enum):
    """Destructive actions that need confirmation."""

    DELETE = "delete"
    MERGE = "merge"


@dataclass(frozen=True)
class Browsing:
    """Default mode: navigating the branch list."""


@dataclass(frozen=True)
class Confirming:
    """Waiting for y/N on a destructive action against ``target``."""

    action: Action
    target: str


Mode = Union[Browsing, Confirming]

# time-desc -> name-asc -> time-asc -> name-desc -> time-desc
SORT_CYCLE: dict[tuple[SortKey, bool], tuple[SortKey, bool]] = {
    (SortKey.TIME, True): (SortKey.NAME, False),
    (SortKey.NAME, False): (SortKey.TIME, False),
    (SortKey.TIME, False): (SortKey.NAME, True),
    (SortKey.NAME, True): (SortKey.TIME, True),
}


def next_sort(sort_key: SortKey, descending: bool) -> tuple[SortKey, bool]:
    """Advance one step through the sort cycle."""
    return SORT_CYCLE[(sort_key, descending)]


def recompute_view(
    full: tuple[BranchRecord, ...],
    search_text: str,
    sort_key: SortKey,
    descending: bool,
) -> tuple[BranchRecord, ...]:
    """Derive the visible rows from the snapshot, the filter and the sort.

    While a filter is active rows come in relevance order and the sort key is
    ignored.
    """
    if search_text:
        names = [record.name for record in full]
        return tuple(full[index] for index in fuzzy_filter(search_text, names))

    if sort_key is SortKey.NAME:
        return tuple(sorted(full, key=lambda record: record.name, reverse=descending))
    return tuple(sorted(full, key=lambda record: record.activity_time, reverse=descending))


def clamp_cursor(cursor: int, view_length: int) -> int:
    """Keep ``cursor`` inside ``[0, view_length - 1]``, or 0 for an empty view."""
    if view_length == 0:
        return 0
    return max(0, min(cursor, view_length - 1))


@dataclass
class SessionState:
    """Everything the interactive view shows, owned by the event loop."""

    full: tuple[BranchRecord, ...] = ()
    view: tuple[BranchRecord, ...] = ()
    cursor: int = 0
    search_text: str = ""
    sort_key: SortKey = SortKey.TIME
    sort_descending: bool = True
    mode: Mode = field(default_factory=Browsing)
    status_message: str = ""
    search_draft: Optional[str] = None
    pending: Optional[str] = None
    quit: bool = False

    @classmethod
    def from_snapshot(cls, snapshot: tuple[BranchRecord, ...]) -> "SessionState":
        """Start a session on a freshly ranked snapshot."""
        state = cls(full=tuple(snapshot))
        state.refresh_view()
        return state

    def refresh_view(self) -> None:
        """Recompute ``view`` and re-clamp the cursor."""
        self.view = recompute_view(self.full, self.search_text, self.sort_key, self.sort_descending)
        self.cursor = clamp_cursor(self.cursor, len(self.view))

    def replace_snapshot(self, snapshot: tuple[BranchRecord, ...]) -> None:
        """Swap in a new snapshot, keeping the filter and sort."""
        self.full = tuple(snapshot)
        self.refresh_view()

    def mark_current(self, name: str) -> None:
        """Move the current-branch flag to ``name`` without re-ranking."""
        self.full = tuple(replace(record, is_current=record.name == name) for record in self.full)
        self.refresh_view()

    def selected(self) -> Optional[BranchRecord]:
        """Row under the cursor, if any."""
        if 0 <= self.cursor < len(self.view):
            return self.view[self.cursor]
        return None

    def find(self, name: str) -> Optional[BranchRecord]:
        """Look a branch up by name in the full snapshot."""
        for record in self.full:
            if record.name == name:
                return record
        return None
