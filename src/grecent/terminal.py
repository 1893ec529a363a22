"""Terminal input for the interactive session.

Puts stdin in cbreak mode and decodes raw bytes into key tokens such as
``UP``, ``ENTER`` or a single printable character.
"""

import contextlib
import os
import select
import sys
import termios
import tty
from typing import Iterator, Optional

ESC_SEQUENCE_TIMEOUT_MS = 25

_CONTROL_KEYS = {
    b"\x03": "CTRL_C",
    b"\x15": "CTRL_U",
    b"\x08": "BACKSPACE",
    b"\x7f": "BACKSPACE",
    b"\r": "ENTER",
    b"\n": "ENTER",
    b"\t": "TAB",
}

# ESC [ <final>
_CSI_KEYS = {
    b"A": "UP",
    b"B": "DOWN",
    b"C": "RIGHT",
    b"D": "LEFT",
    b"H": "HOME",
    b"F": "END",
}

# ESC [ <n> ~
_TILDE_KEYS = {
    b"1": "HOME",
    b"3": "DELETE",
    b"4": "END",
    b"7": "HOME",
    b"8": "END",
}


def is_interactive() -> bool:
    """Whether both stdin and stdout are attached to a terminal."""
    return sys.stdin.isatty() and sys.stdout.isatty()


class KeyReader:
    """Decodes key presses from a file descriptor."""

    def __init__(self, fd: int) -> None:
        self.fd = fd
        self.eof = False
        self._pending: list[bytes] = []

    def _read_byte(self, timeout_ms: Optional[int]) -> Optional[bytes]:
        if self._pending:
            return self._pending.pop(0)
        if self.eof:
            return None
        if timeout_ms is not None:
            ready, _, _ = select.select([self.fd], [], [], max(0.0, timeout_ms / 1000.0))
            if not ready:
                return None
        ch = os.read(self.fd, 1)
        if not ch:
            self.eof = True
            return None
        return ch

    def _read_utf8(self, first: bytes) -> str:
        # Lead byte tells how many continuation bytes follow
        lead = first[0]
        extra = 3 if lead >= 0xF0 else 2 if lead >= 0xE0 else 1 if lead >= 0xC0 else 0
        data = first
        for _ in range(extra):
            more = self._read_byte(ESC_SEQUENCE_TIMEOUT_MS)
            if more is None:
                break
            data += more
        return data.decode("utf-8", errors="replace")

    def read_key(self, timeout_ms: Optional[int] = None) -> str:
        """Read one key; returns ``""`` on timeout or end of input.

        After end of input ``eof`` is set and every later read returns ``""``.
        """
        ch = self._read_byte(timeout_ms)
        if ch is None:
            return ""
        if ch in _CONTROL_KEYS:
            return _CONTROL_KEYS[ch]
        if ch != b"\x1b":
            return self._read_utf8(ch)

        seq = self._read_byte(ESC_SEQUENCE_TIMEOUT_MS)
        if seq is None:
            return "ESC"
        if seq not in (b"[", b"O"):
            self._pending.append(seq)
            return "ESC"
        final = self._read_byte(ESC_SEQUENCE_TIMEOUT_MS)
        if final is None:
            return "ESC"
        if final in _CSI_KEYS:
            return _CSI_KEYS[final]
        if final in _TILDE_KEYS:
            tilde = self._read_byte(ESC_SEQUENCE_TIMEOUT_MS)
            if tilde == b"~":
                return _TILDE_KEYS[final]
        return "ESC"


class TerminalController:
    """Owns the tty state of stdin while the session runs."""

    def __init__(self, stdin_fd: int) -> None:
        self.stdin_fd = stdin_fd
        self._saved_tty_state = termios.tcgetattr(stdin_fd)

    @contextlib.contextmanager
    def cbreak_mode(self) -> Iterator[None]:
        """Unbuffered, no-echo input; output processing stays on for rich."""
        try:
            tty.setcbreak(self.stdin_fd, termios.TCSANOW)
            yield
        finally:
            termios.tcsetattr(self.stdin_fd, termios.TCSAFLUSH, self._saved_tty_state)
