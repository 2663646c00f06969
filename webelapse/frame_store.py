"""On-disk storage for the frames of the current segment."""

from __future__ import annotations

import logging
import os
import re
import time
from pathlib import Path
from collections.abc import Iterable

from webelapse.config import ConfigurationError
from webelapse.fingerprint import DEFAULT_HASH_BITS, fingerprint_file

FRAME_PREFIX = "webelapse-"
FRAME_EXTENSION = ".png"

_LOG = logging.getLogger("webelapse.frame_store")


class RecoveryError(Exception):
    """Raised when a previous segment cannot be read back at startup."""


class FrameStore:
    """Naming, persistence and removal of frame artifacts on disk.

    The ordered list of the current segment lives in ``RunState.frames``.

    Frames are named ``<prefix><epoch-ms><extension>`` so a lexicographic sort
    of the directory listing equals capture order.
    """

    def __init__(
        self,
        directory: str | os.PathLike[str],
        *,
        prefix: str = FRAME_PREFIX,
        extension: str = FRAME_EXTENSION,
    ) -> None:
        self.directory = Path(directory)
        self.prefix = prefix
        self.extension = extension
        self._pattern = re.compile(rf"^{re.escape(prefix)}\d+{re.escape(extension)}$")
        self._last_ms = 0

    def frame_glob(self) -> str:
        return str(self.directory / f"{self.prefix}*{self.extension}")

    def is_frame(self, path: Path) -> bool:
        return bool(self._pattern.match(path.name))

    def on_disk(self) -> list[Path]:
        """Sorted frame artifacts currently present in the directory."""
        return sorted(
            entry
            for entry in self.directory.iterdir()
            if self.is_frame(entry) and entry.is_file()
        )

    def recover(self, bits: int = DEFAULT_HASH_BITS) -> tuple[list[Path], str | None]:
        """Load frames left behind by a previous, uncompiled run.

        Returns the sorted frame paths and the fingerprint of the newest one so
        the resumed run compares against it.
        """

        if not self.directory.exists():
            raise ConfigurationError(f"output directory does not exist: {self.directory}")
        if not self.directory.is_dir():
            raise ConfigurationError(f"output path is not a directory: {self.directory}")
        try:
            recovered = self.on_disk()
        except OSError as exc:
            raise RecoveryError(f"unable to read output directory {self.directory}: {exc}") from exc

        if not recovered:
            return [], None
        self._last_ms = max(self._last_ms, _timestamp_of(recovered[-1], self.prefix, self.extension))

        try:
            last_hash = fingerprint_file(recovered[-1], bits)
        except (OSError, ValueError) as exc:
            raise RecoveryError(f"unable to fingerprint recovered frame {recovered[-1]}: {exc}") from exc
        return recovered, last_hash

    def new_path(self, now_ms: int | None = None) -> Path:
        """Allocate the next frame path; timestamps never repeat or go backwards."""
        stamp = int(time.time() * 1000) if now_ms is None else int(now_ms)
        if stamp <= self._last_ms:
            stamp = self._last_ms + 1
        self._last_ms = stamp
        return self.directory / f"{self.prefix}{stamp}{self.extension}"

    def append(self, data: bytes, path: Path | None = None) -> Path:
        """Persist ``data`` atomically; the frame is visible only once complete."""

        target = path if path is not None else self.new_path()
        tmp_path = target.with_name(f".{target.name}.tmp")
        try:
            with tmp_path.open("wb") as handle:
                handle.write(data)
            os.replace(tmp_path, target)
        except OSError:
            try:
                tmp_path.unlink()
            except OSError:
                pass
            raise
        return target

    def clear(self, paths: Iterable[Path]) -> list[Path]:
        """Delete ``paths``; failures are logged and do not stop the others."""

        removed: list[Path] = []
        for path in paths:
            path = Path(path)
            try:
                path.unlink()
            except FileNotFoundError:
                removed.append(path)
            except OSError as exc:
                _LOG.warning("Failed to remove frame %s: %s", path, exc)
                continue
            else:
                removed.append(path)
        return removed


def _timestamp_of(path: Path, prefix: str, extension: str) -> int:
    return int(path.name[len(prefix): -len(extension)])
