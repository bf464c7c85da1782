from __future__ import annotations

import sys
from typing import Any, TextIO

from tqdm import tqdm

from ..models.reference import LoadStatus
from ..models.schema_variant import SchemaVariant

"""tqdm bar over the concurrent reference loads.

Shown only when stdout is a terminal. Redirected runs (CI, ``> out.log``)
get the plain log lines and nothing else.
"""

__all__ = [
    "LoadProgress",
    "progress_enabled",
]


def progress_enabled(stream: TextIO | None = None) -> bool:
    target = stream if stream is not None else sys.stdout
    isatty = getattr(target, "isatty", None)
    return bool(isatty and isatty())


class LoadProgress:
    """Counts finished variant loads; drives a tqdm bar when interactive."""

    def __init__(self, variants: int, *, label: str = "reference") -> None:
        self.variants = variants
        self.label = label
        self.done = 0
        self.rows = 0
        self.failed: list[str] = []
        self._bar: tqdm | None = None
        if progress_enabled():
            self._bar = tqdm(total=variants, desc=label, unit="variant", leave=False, ascii=True)

    @property
    def interactive(self) -> bool:
        return self._bar is not None

    def advance(self, variant: SchemaVariant, status: LoadStatus) -> None:
        self.done += 1
        self.rows += status.row_count
        if not status.loaded:
            self.failed.append(variant.value)
        if self._bar is None:
            return
        self._bar.set_postfix_str(f"{variant.value} rows={self.rows} unavailable={len(self.failed)}")
        self._bar.update()

    def close(self) -> None:
        if self._bar is not None:
            self._bar.close()
            self._bar = None

    def __enter__(self) -> LoadProgress:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()
