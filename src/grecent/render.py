"""Turning ranked branches and session state into text."""

from datetime import datetime, timedelta
from typing import Any, NamedTuple

from rich.console import Group
from rich.table import Table
from rich.text import Text

from grecent.recency import BranchRecord
from grecent.session import SessionState

KEY_HELP = "j/k,↑/↓ move • / search (fuzzy) • s sort • r refresh • f fetch • enter checkout • x delete • m merge • q quit"
DATE_FORMAT = "%Y-%m-%d %H:%M"
SHORT_HASH_LENGTH = 7


class DisplayRow(NamedTuple):
    """One table line of the interactive view."""

    cursor: str
    marker: str
    name: str
    short_hash: str
    age: str
    date: str
    upstream: str


def humanize_age(then: datetime, now: datetime) -> str:
    """Describe how long ago ``then`` was, e.g. ``3d ago``."""
    age = now - then
    if age < timedelta(minutes=1):
        return "just now"
    if age < timedelta(hours=1):
        return f"{int(age / timedelta(minutes=1))}m ago"
    if age < timedelta(days=1):
        return f"{int(age / timedelta(hours=1))}h ago"
    if age < timedelta(days=30):
        return f"{int(age / timedelta(days=1))}d ago"
    if age < timedelta(days=365):
        months = int(age / timedelta(days=30))
        return f"{max(1, months)}mo ago"
    years = int(age / timedelta(days=365))
    return f"{max(1, years)}y ago"


def short_hash(commit_hash: str) -> str:
    return commit_hash[:SHORT_HASH_LENGTH]


def build_rows(state: SessionState, now: datetime) -> list[DisplayRow]:
    """Project the visible branches into display rows."""
    rows = []
    for index, record in enumerate(state.view):
        rows.append(
            DisplayRow(
                cursor="→" if index == state.cursor else "",
                marker="*" if record.is_current else "",
                name=record.name,
                short_hash=short_hash(record.commit_hash),
                age=humanize_age(record.activity_time, now),
                date=record.activity_time.strftime(DATE_FORMAT),
                upstream="yes" if record.has_upstream else "",
            )
        )
    return rows


def create_branch_table(rows: list[DisplayRow]) -> Table:
    """Create the branch table for the interactive view."""
    table = Table(show_header=True, header_style="bold", show_edge=False, box=None, pad_edge=False)
    table.add_column("", style="magenta", width=2, no_wrap=True)
    table.add_column("Branch", style="cyan", min_width=32, no_wrap=True)
    table.add_column("Hash", style="yellow", no_wrap=True)
    table.add_column("Age", no_wrap=True)
    table.add_column("Date", style="dim", no_wrap=True)
    table.add_column("Upstream", style="green", no_wrap=True)

    for row in rows:
        name = Text(row.name)
        if row.marker:
            name = Text(f"{row.marker} {row.name}", style="bold green")
        table.add_row(row.cursor, name, row.short_hash, row.age, row.date, row.upstream)
    return table


def render_screen(state: SessionState, now: datetime) -> Group:
    """Build the whole interactive screen."""
    parts: list[Any] = [
        Text("grecent - recent branches", style="bold"),
        Text(KEY_HELP, style="dim"),
        Text(""),
    ]
    if state.search_draft is not None:
        parts.append(Text.assemble(("search> ", "bold"), state.search_draft, ("▏", "blink")))
    elif state.search_text:
        parts.append(Text.assemble(("filter: ", "dim"), state.search_text))

    if state.view:
        parts.append(create_branch_table(build_rows(state, now)))
    else:
        parts.append(Text("no branches", style="dim italic"))

    if state.status_message:
        parts.append(Text(""))
        parts.append(Text(state.status_message, style="dim"))
    return Group(*parts)


def plain_lines(records: tuple[BranchRecord, ...], now: datetime) -> list[str]:
    """Format branches for non-interactive output, one per line."""
    lines = []
    for record in records:
        current = "*" if record.is_current else " "
        age = humanize_age(record.activity_time, now)
        lines.append(f"{current} {record.name:<30}  {short_hash(record.commit_hash)}  {age}")
    return lines


def json_payload(records: tuple[BranchRecord, ...]) -> list[dict[str, Any]]:
    """Serialize branches in ranked order, without derived fields."""
    return [
        {
            "name": record.name,
            "commitHash": record.commit_hash,
            "commitTime": record.activity_time.isoformat(),
            "isCurrent": record.is_current,
            "hasUpstream": record.has_upstream,
        }
        for record in records
    ]
