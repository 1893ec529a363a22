"""Command line interface for grecent."""

import json
import logging
import sys
import termios
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich import print
from rich.console import Console
from rich.markup import escape

from grecent.app import now, run_session
from grecent.controller import Session
from grecent.git import GitError, GitRepo
from grecent.recency import RankingError, rank_branches
from grecent.render import json_payload, plain_lines
from grecent.session import SessionState
from grecent.terminal import is_interactive

app = typer.Typer(help="List recent git branches by last activity", add_completion=False)
console = Console()
logger = logging.getLogger(__name__)


def fail(message: object) -> typer.Exit:
    """Report a fatal error; the caller raises the returned Exit."""
    print(f"[red]Error:[/red] {escape(str(message))}")
    return typer.Exit(code=1)


def get_repo(path: Path) -> GitRepo:
    """Get git repository instance."""
    try:
        return GitRepo(path)
    except GitError as err:
        raise fail(err) from err


@app.command()
def recent(
    path: Annotated[Path, typer.Option(help="Path to git repository")] = Path("."),
    limit: Annotated[
        int, typer.Option("--limit", "-n", min=1, envvar="GRECENT_LIMIT", help="Limit number of branches")
    ] = 10,
    json_output: Annotated[bool, typer.Option("--json", help="Output JSON")] = False,
    fetch: Annotated[
        bool, typer.Option("--fetch", help="Run 'git fetch --all --prune --tags' first to refresh remotes")
    ] = False,
    tui: Annotated[
        Optional[bool],
        typer.Option("--tui/--no-tui", help="Force or disable the interactive view (default: on a terminal)"),
    ] = None,
    tick: Annotated[
        float, typer.Option(min=0.1, envvar="GRECENT_TICK", help="Seconds between age refreshes in the interactive view")
    ] = 1.0,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Log git activity to stderr")] = False,
) -> None:
    """List local branches, most recently active first."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, stream=sys.stderr, format="%(levelname)s %(name)s: %(message)s")

    repo = get_repo(path)
    if fetch:
        try:
            repo.fetch_all()
        except GitError as err:
            # Stale remote times only weaken one signal
            logger.debug("Ignoring fetch failure: %s", err)

    try:
        branches = rank_branches(repo)[:limit]
    except (GitError, RankingError) as err:
        raise fail(err) from err

    if json_output:
        typer.echo(json.dumps(json_payload(branches), indent=2))
        return

    interactive = tui if tui is not None else is_interactive()
    if interactive:
        session = Session(SessionState.from_snapshot(branches), repo)
        try:
            run_session(session, console, sys.stdin.fileno(), tick_seconds=tick)
        except (termios.error, OSError) as err:
            raise fail(f"cannot start interactive view: {err}") from err
        return

    for line in plain_lines(branches, now()):
        typer.echo(line)


if __name__ == "__main__":
    app()
