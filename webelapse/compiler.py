"""Compile a segment's frames into a video with ffmpeg."""

from __future__ import annotations

import enum
import logging
import subprocess
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from webelapse.config import ScheduleParameters
from webelapse.ffmpeg_io import timelapse_command
from webelapse.frame_store import FrameStore

_LOG = logging.getLogger("webelapse.compiler")


class EncodingError(Exception):
    """Raised when the encoder exits unsuccessfully."""


class CompileStatus(enum.Enum):
    SKIPPED_FRAMES_ONLY = "skipped-frames-only"
    SKIPPED_EMPTY = "skipped-empty"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class CompileResult:
    status: CompileStatus
    output: Path | None = None
    frames: list[Path] = field(default_factory=list)
    error: EncodingError | None = None

    @property
    def success(self) -> bool:
        return self.status is not CompileStatus.FAILED


def output_path_for(directory: Path, encoding: str, now: datetime | None = None) -> Path:
    stamp = (now or datetime.now()).strftime("%Y-%m-%d_%H%M%S")
    return directory / f"{stamp}.{encoding}"


def run_encoder(cmd: Sequence[str], runner: Callable[..., Any] = subprocess.run) -> None:
    """Run ``cmd`` to completion, raising ``EncodingError`` on any failure."""
    try:
        runner(list(cmd), capture_output=True, text=True, check=True)
    except subprocess.CalledProcessError as exc:
        detail = (exc.stderr or exc.stdout or "").strip()
        message = f"encoder exited with status {exc.returncode}"
        if detail:
            message = f"{message}: {detail}"
        raise EncodingError(message) from exc
    except FileNotFoundError as exc:
        raise EncodingError(f"encoder not found: {cmd[0]}") from exc
    except OSError as exc:
        raise EncodingError(f"unable to run encoder: {exc}") from exc


def compile_segment(
    store: FrameStore,
    frames: Sequence[Path],
    params: ScheduleParameters,
    *,
    runner: Callable[..., Any] = subprocess.run,
    now: datetime | None = None,
) -> CompileResult:
    """Encode the segment and, on success, delete the frames that went into it.

    The encoder reads the directory-wide frame glob, so the compiled set is the
    tracked ``frames`` plus any older frames still on disk. That set is
    snapshotted before encoding and is exactly what gets deleted afterwards.
    Nothing captures while this runs.
    """

    if params.frame_rate == 0:
        _LOG.info("Frame rate is 0; keeping %d frames without compiling", len(frames))
        return CompileResult(CompileStatus.SKIPPED_FRAMES_ONLY, frames=list(frames))

    tracked = {Path(frame) for frame in frames}
    try:
        on_disk = set(store.on_disk())
    except OSError as exc:
        error = EncodingError(f"unable to list frames in {store.directory}: {exc}")
        _LOG.error("Video encoding failed: %s", error)
        return CompileResult(CompileStatus.FAILED, frames=sorted(tracked), error=error)
    compiled = sorted(on_disk | {frame for frame in tracked if frame.exists()})
    if not compiled:
        _LOG.info("No frames to compile")
        return CompileResult(CompileStatus.SKIPPED_EMPTY)
    orphans = len(on_disk - tracked)
    if orphans:
        _LOG.info("Including %d frames left over from an earlier segment", orphans)

    output = output_path_for(store.directory, params.encoding, now)
    cmd = timelapse_command(
        params.frame_rate,
        store.frame_glob(),
        str(output),
        ffmpeg_bin=params.ffmpeg_bin,
    )
    _LOG.debug("Running %s", " ".join(cmd))
    try:
        run_encoder(cmd, runner)
    except EncodingError as exc:
        _LOG.error("Video encoding failed, keeping %d frames on disk: %s", len(compiled), exc)
        return CompileResult(CompileStatus.FAILED, output=output, frames=compiled, error=exc)

    store.clear(compiled)
    _LOG.info("Wrote video %s and reset frames", output)
    return CompileResult(CompileStatus.SUCCEEDED, output=output, frames=compiled)
