"""Progress ticker shown while a remote call is pending."""

from __future__ import annotations

import shutil
import sys
import threading
import time
from typing import TextIO

_BOLD = "\x1b[1m"
_GREY = "\x1b[38;2;150;157;165m"
_RESET = "\x1b[0m"


def progress_line(label: str, start: float | None = None) -> tuple[str, float]:
    now = time.monotonic()
    origin = now if start is None else start
    elapsed = max(0, int(now - origin))
    return f"• {label} ({format_duration(elapsed)})", origin


def format_duration(seconds: int) -> str:
    minutes, secs = divmod(max(0, seconds), 60)
    if minutes:
        return f"{minutes}m {secs:02d}s"
    return f"{secs}s"


class ProgressTicker:
    """Redraws one status line on a TTY; prints start and end lines otherwise."""

    def __init__(
        self,
        label: str,
        done_label: str = "Done in",
        stream: TextIO | None = None,
        interval_s: float = 1.0,
    ) -> None:
        self.label = label
        self.done_label = done_label
        self.stream = stream or sys.stdout
        self.interval_s = max(0.01, interval_s)
        self.start: float | None = None
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._tty = bool(getattr(self.stream, "isatty", lambda: False)())

    def start_ticking(self) -> None:
        line, self.start = progress_line(self.label)
        if not self._tty:
            self.stream.write(f"{line}\n")
            self.stream.flush()
            return
        self._redraw(line)
        self._thread.start()

    def stop(self, done: bool = True) -> None:
        if self._thread.is_alive():
            self._stop.set()
            self._thread.join()
        elapsed = int(time.monotonic() - (self.start or time.monotonic()))
        label = f"{self.done_label} {format_duration(elapsed)}" if done else f"{self.label} failed"
        line = _separator_line(label, shutil.get_terminal_size(fallback=(80, 20)).columns)
        prefix = "\r" if self._tty else ""
        suffix = "\033[K\n" if self._tty else "\n"
        self.stream.write(f"{prefix}{_GREY}{line}{_RESET}{suffix}")
        self.stream.flush()

    def _run(self) -> None:
        while not self._stop.wait(self.interval_s):
            line, _ = progress_line(self.label, self.start)
            self._redraw(line)

    def _redraw(self, line: str) -> None:
        self.stream.write(f"\r{_BOLD}{line}{_RESET}\033[K")
        self.stream.flush()


def _separator_line(label: str, width: int) -> str:
    content = f" {label} "
    if width <= len(content) + 2:
        return content.strip()
    remaining = width - len(content)
    left = remaining // 2
    return f"{'─' * left}{content}{'─' * (remaining - left)}"
