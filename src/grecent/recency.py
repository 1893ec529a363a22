"""Branch recency scoring and ranking.

A branch's activity time is the newest of three signals:

1. the committer date of its tip commit,
2. the newest entry in its reflog (checkouts, commits, resets done locally),
3. the tip commit date of its upstream remote-tracking ref, if cached.

Missing signals are skipped, never treated as the epoch.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from grecent.git import GitRepo

logger = logging.getLogger(__name__)

GIT_DATE_LAYOUTS = (
    "%Y-%m-%d %H:%M:%S %z",
    "%a %b %d %H:%M:%S %Y %z",
)


class RankingError(Exception):
    """A branch's activity time could not be determined."""


@dataclass(frozen=True)
class BranchRecord:
    """One ranked local branch."""

    name: str
    commit_hash: str
    activity_time: datetime
    is_current: bool
    has_upstream: bool


def parse_git_date(text: str) -> Optional[datetime]:
    """Parse a date as printed by git; None when no known layout matches."""
    text = text.strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        parsed = _parse_git_layouts(text)
    if parsed is not None and parsed.tzinfo is None:
        # Naive and aware datetimes cannot be compared
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _parse_git_layouts(text: str) -> Optional[datetime]:
    for layout in GIT_DATE_LAYOUTS:
        try:
            return datetime.strptime(text, layout)
        except ValueError:
            continue
    return None


def activity_time(*candidates: Optional[datetime]) -> Optional[datetime]:
    """Return the newest of the candidates that are present."""
    present = [candidate for candidate in candidates if candidate is not None]
    if not present:
        return None
    return max(present)


def rank_branches(repo: GitRepo) -> tuple[BranchRecord, ...]:
    """Score every local branch and order them, most recently active first.

    Raises:
        RankingError: If some branch has no usable timestamp at all
        GitError: If the branch list itself cannot be read
    """
    current = repo.current_branch()
    remote_times = {}
    for ref_name, raw in repo.remote_ref_times().items():
        parsed = parse_git_date(raw)
        if parsed is None:
            logger.debug("Ignoring unparsable date %r for %s", raw, ref_name)
            continue
        remote_times[ref_name] = parsed

    records = []
    for branch in repo.list_local_branches():
        tip_time = parse_git_date(branch.commit_time)
        if tip_time is None:
            logger.warning("Unparsable commit date %r on %s", branch.commit_time, branch.name)

        raw_local = repo.latest_local_action_time(branch.name)
        local_time = parse_git_date(raw_local) if raw_local else None
        if raw_local and local_time is None:
            logger.debug("Ignoring unparsable reflog date %r for %s", raw_local, branch.name)

        upstream_time = remote_times.get(branch.upstream) if branch.upstream else None

        fused = activity_time(tip_time, local_time, upstream_time)
        if fused is None:
            raise RankingError(f"parse date for {branch.name}: unrecognized date {branch.commit_time!r}")

        records.append(
            BranchRecord(
                name=branch.name,
                commit_hash=branch.commit_hash,
                activity_time=fused,
                is_current=branch.name == current,
                has_upstream=bool(branch.upstream),
            )
        )

    # sorted() is stable with reverse=True, so ties keep git's tip-time order
    return tuple(sorted(records, key=lambda record: record.activity_time, reverse=True))
