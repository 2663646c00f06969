"""Mutable state of the capture loop."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class RunState:
    """Comparison baseline, duplicate run and frames of the current segment.

    Only the capture cycle and the backoff scheduler mutate this, one step at
    a time.
    """

    last_fingerprint: str | None = None
    duplicates: int = 0
    frames: list[Path] = field(default_factory=list)

    def reset(self) -> None:
        self.last_fingerprint = None
        self.duplicates = 0
        self.frames = []
