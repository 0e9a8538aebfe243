from __future__ import annotations

import sys
from collections.abc import Callable
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

"""Progress display service with tqdm (TTY only).

An import run reports progress as ``(percent, message)``:
- 0 -> 50 %  decoding, mapping and validating rows
- 50 -> 95 % merge batches
- 100 %      only once the report is built

ProgressReporter wraps any such callback and keeps the contract (clamped to
[0, 100], never decreasing, 100 only via complete()). ProgressTracker is the
terminal renderer: a single percent-based tqdm bar, disabled when stdout is not
a TTY so CI logs are not filled with control sequences.
"""

__all__ = [
    "ProgressCallback",
    "ProgressReporter",
    "ProgressTracker",
    "is_tty_enabled",
]

ProgressCallback = Callable[[float, str], None]


def is_tty_enabled() -> bool:
    """Check if TTY output is enabled.

    Returns:
        True if stdout is a TTY and progress should be displayed, False otherwise
    """
    return sys.stdout.isatty()


class ProgressReporter:
    """Monotonic, clamped view over an optional progress callback."""

    def __init__(self, callback: ProgressCallback | None = None) -> None:
        self._callback = callback
        self.percent = 0.0
        self.completed = False

    def __call__(self, percent: float, message: str = "") -> None:
        if self.completed:
            return
        # 100 は complete() 専用。途中経過は 99 で頭打ち
        value = min(max(float(percent), 0.0), 99.0)
        if value < self.percent:
            value = self.percent
        self.percent = value
        if self._callback is not None:
            self._callback(value, message)

    def complete(self, message: str = "Import completed") -> None:
        if self.completed:
            return
        self.completed = True
        self.percent = 100.0
        if self._callback is not None:
            self._callback(100.0, message)


class ProgressTracker:
    """Percent based tqdm bar for one spreadsheet.

    Instances are callable with ``(percent, message)`` and can be passed straight
    to run_import() as ``on_progress``. In non-TTY environments nothing is drawn.
    """

    def __init__(self, description: str = "Importing") -> None:
        self.description = description
        self.position = 0.0

        self.enabled = is_tty_enabled()
        self.pbar: TqdmType[Any] | None
        if self.enabled:
            self.pbar = tqdm(
                total=100,
                desc=description,
                unit="%",
                disable=False,
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
                bar_format="{desc}: {percentage:3.0f}%|{bar}| {postfix}",
            )
        else:
            self.pbar = None

    def __call__(self, percent: float, message: str = "") -> None:
        step = percent - self.position
        if step <= 0:
            return
        self.position = percent
        if self.pbar is not None:
            self.pbar.update(step)
            if message:
                self.pbar.set_postfix_str(message, refresh=False)

    def close(self) -> None:
        """Close the progress bar."""
        if self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> ProgressTracker:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
