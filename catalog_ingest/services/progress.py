from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

"""Progress display with tqdm (TTY only).

The bar follows the `(completed, total)` callback contract of the upload
step, so it can be passed straight in as `progress_callback`. In non-TTY
environments (CI, redirected output) no bar is drawn.
"""

__all__ = [
    "ProgressTracker",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    return sys.stdout.isatty()


class ProgressTracker:
    """tqdm bar driven by absolute `(completed, total)` updates."""

    def __init__(self, *, description: str = "Uploading images", unit: str = "img") -> None:
        self.description = description
        self.unit = unit
        self.completed = 0
        self.total = 0
        self.enabled = is_tty_enabled()
        self.pbar: TqdmType[Any] | None = None

    def __call__(self, completed: int, total: int) -> None:
        self.completed = completed
        self.total = total
        if not self.enabled:
            return
        if self.pbar is None:
            self.pbar = tqdm(
                total=total,
                desc=self.description,
                unit=self.unit,
                leave=True,
                ncols=80,
                ascii=True,
            )
        elif self.pbar.total != total:
            self.pbar.total = total
        self.pbar.n = completed
        self.pbar.refresh()

    def set_postfix(self, **kwargs: Any) -> None:
        if self.enabled and self.pbar is not None:
            self.pbar.set_postfix(**kwargs)

    def close(self) -> None:
        if self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> ProgressTracker:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
