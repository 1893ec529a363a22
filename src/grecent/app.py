"""Event loop of the interactive session.

Key presses (from a reader thread) and finished git jobs (from a worker pool)
are funneled through one queue; only this loop touches the session state.
A tick re-renders when the queue stays quiet so relative ages stay fresh.
"""

import logging
import queue
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timezone
from typing import NamedTuple, Optional, Union

from rich.console import Console
from rich.live import Live

from grecent.controller import Job, JobResult, Session
from grecent.render import render_screen
from grecent.terminal import KeyReader, TerminalController

logger = logging.getLogger(__name__)

KEY_POLL_MS = 100
READER_JOIN_SECONDS = 0.5


class KeyPressed(NamedTuple):
    key: str


class JobFinished(NamedTuple):
    job: Job
    result: JobResult


class Tick(NamedTuple):
    pass


class InputClosed(NamedTuple):
    pass


Event = Union[KeyPressed, JobFinished, Tick, InputClosed]


def process_event(session: Session, event: Event) -> Optional[Job]:
    """Apply one event to the session; returns a job to dispatch, if any."""
    if isinstance(event, KeyPressed):
        return session.handle_key(event.key)
    if isinstance(event, JobFinished):
        session.complete(event.job, event.result)
    elif isinstance(event, InputClosed):
        # Terminal hung up; nobody is left to press q
        session.quit()
    return None


def dispatch(executor: ThreadPoolExecutor, job: Job, events: "queue.Queue[Event]") -> Future:
    """Run ``job`` on the pool and post its result back to ``events``."""
    logger.debug("Dispatching %s", job.label)

    def on_done(future: Future) -> None:
        if future.cancelled():
            return
        error = future.exception()
        if error is None:
            result = future.result()
        else:
            logger.error("%s crashed", job.label, exc_info=error)
            result = JobResult(False, f"{job.label} failed: {error}")
        events.put(JobFinished(job, result))

    future = executor.submit(job.work)
    future.add_done_callback(on_done)
    return future


def read_keys(reader: KeyReader, events: "queue.Queue[Event]", stop: threading.Event) -> None:
    """Post key presses until stopped or until input ends."""
    while not stop.is_set():
        key = reader.read_key(timeout_ms=KEY_POLL_MS)
        if key:
            events.put(KeyPressed(key))
        elif reader.eof:
            logger.debug("Input closed, stopping key reader")
            events.put(InputClosed())
            return


def now() -> datetime:
    return datetime.now(timezone.utc)


def run_session(session: Session, console: Console, stdin_fd: int, tick_seconds: float = 1.0) -> None:
    """Run the interactive session until the user quits."""
    state = session.state
    events: "queue.Queue[Event]" = queue.Queue()
    stop = threading.Event()
    terminal = TerminalController(stdin_fd)
    # One worker: git jobs never overlap
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="grecent-git")
    reader_thread = threading.Thread(
        target=read_keys,
        args=(KeyReader(stdin_fd), events, stop),
        name="grecent-keys",
        daemon=True,
    )

    with terminal.cbreak_mode(), Live(
        render_screen(state, now()),
        console=console,
        screen=True,
        auto_refresh=False,
        transient=True,
    ) as live:
        reader_thread.start()
        try:
            while not state.quit:
                try:
                    event: Event = events.get(timeout=tick_seconds)
                except queue.Empty:
                    event = Tick()
                job = process_event(session, event)
                if job is not None:
                    dispatch(executor, job, events)
                live.update(render_screen(state, now()), refresh=True)
        except KeyboardInterrupt:
            session.quit()
        finally:
            stop.set()
            reader_thread.join(timeout=READER_JOIN_SECONDS)
            # In-flight git commands are abandoned, not rolled back
            executor.shutdown(wait=False, cancel_futures=True)
