from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

"""Row insertion progress display with tqdm (TTY only).

In non-TTY environments (CI, pipes) the tracker is a no-op so that no ANSI
control sequences end up in captured output.
"""

__all__ = [
    "ProgressTracker",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    return sys.stdout.isatty()


class ProgressTracker:
    """Single tqdm bar over the rows queued for insertion.

    The total is only known after parsing and checks, so the bar is created
    by ``start(total)``; ``advance()`` is called once per attempted row.
    """

    def __init__(self, *, description: str = "Importing rows", enabled: bool | None = None) -> None:
        self.description = description
        self.enabled = is_tty_enabled() if enabled is None else enabled
        self.total = 0
        self.completed = 0
        self.pbar: TqdmType[Any] | None = None

    def start(self, total: int) -> None:
        self.total = total
        self.completed = 0
        if self.enabled and total > 0:
            self.pbar = tqdm(
                total=total,
                desc=self.description,
                unit="row",
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )

    def advance(self, n: int = 1) -> None:
        self.completed += n
        if self.pbar is not None:
            self.pbar.update(n)

    def set_postfix(self, **kwargs: Any) -> None:
        if self.pbar is not None:
            self.pbar.set_postfix(**kwargs)

    def close(self) -> None:
        if self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> ProgressTracker:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
