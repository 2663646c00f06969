#!/usr/bin/env python3
"""
Time-lapse recorder for a web page.

- Captures a screenshot of the target URL, immediately at launch
- Drops captures whose perceptual hash matches the previous capture
- Backs off the capture interval exponentially while the page is static
- Compiles retained frames into a video after a burst of activity settles,
  or once enough frames have been collected
- Resumes frames left behind by an interrupted run
"""
from __future__ import annotations

import argparse
import logging
import subprocess
import threading
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

from webelapse.backoff import BackoffScheduler, Decision, Scheduler
from webelapse.capture import CycleOutcome, run_capture_cycle
from webelapse.compiler import CompileResult, compile_segment
from webelapse.config import (
    ConfigurationError,
    ScheduleParameters,
    active_config_path,
    apply_cli_overrides,
    build_schedule_parameters,
    get_cfg,
)
from webelapse.fingerprint import abbreviate
from webelapse.frame_store import FrameStore, RecoveryError
from webelapse.run_state import RunState
from webelapse.scheduler import ScheduledCall, TimerScheduler
from webelapse.snapshot import PlaywrightSnapshotProvider

_LOG = logging.getLogger("webelapse.recorder")

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class Recorder:
    """Runs the capture, backoff and compile loop for one output directory."""

    def __init__(
        self,
        params: ScheduleParameters,
        *,
        provider: Callable[[], bytes] | None = None,
        scheduler: Scheduler | None = None,
        runner: Callable[..., Any] = subprocess.run,
    ) -> None:
        if provider is None:
            provider = PlaywrightSnapshotProvider.from_params(params)
        self.params = params
        self.provider = provider
        self.store = FrameStore(params.output_dir)
        self.state = RunState()
        self.runner = runner
        self.backoff = BackoffScheduler(params, scheduler or TimerScheduler(), self._compile)
        self.last_outcome: CycleOutcome | None = None
        self.last_decision: Decision | None = None
        self._armed: ScheduledCall | None = None
        self._finished = threading.Event()

    @property
    def finished(self) -> bool:
        return self._finished.is_set()

    def recover(self) -> None:
        frames, last_hash = self.store.recover(self.params.hash_bits)
        self.state.frames = list(frames)
        self.state.last_fingerprint = last_hash
        if frames:
            _LOG.info(
                "Recovered %d frames from previous run, hash %s",
                len(frames),
                abbreviate(last_hash or "", 42),
            )

    def start(self) -> None:
        """Recover, then capture once before anything is scheduled.

        Errors raised here are fatal; the caller decides how to exit.
        """
        self.recover()
        self._step()

    def run_cycle(self) -> None:
        """Timer callback for every cycle after the first."""
        self._armed = None
        if self.finished:
            return
        try:
            self._step()
        except Exception:  # noqa: BLE001 - the loop must survive a bad cycle
            _LOG.exception("Capture cycle failed")
            if self.params.scheduling_enabled and not self.finished:
                self._armed = self.backoff.scheduler.call_later(self.params.interval, self.run_cycle)
            else:
                self._finished.set()

    def _step(self) -> None:
        self.last_outcome = run_capture_cycle(self.state, self.store, self.provider, self.params)
        decision = self.backoff.decide(self.state, self.run_cycle)
        self.last_decision = decision
        self._armed = decision.armed
        if decision.finished:
            self._finished.set()

    def _compile(self, frames: Sequence[Path]) -> CompileResult:
        return compile_segment(self.store, frames, self.params, runner=self.runner)

    def stop(self) -> None:
        if self._armed is not None:
            self._armed.cancel()
            self._armed = None
        self._finished.set()

    def wait(self, timeout: float | None = None) -> bool:
        return self._finished.wait(timeout)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Record a time-lapse video of a web page, skipping unchanged frames."
    )
    # Numeric options stay strings here; the config layer reports bad values.
    parser.add_argument("-o", "--output", help="Output directory (must exist)")
    parser.add_argument("-u", "--url", help="URL to record")
    parser.add_argument("-b", "--bits", help="Hash bits per row. Defaults to 12. Larger sizes are more sensitive to small image changes")
    parser.add_argument("-c", "--color", help="Media color theme to set (light or dark). Defaults to light.")
    parser.add_argument("-d", "--distance", help="Edit distance between hashes to be considered a duplicate. Defaults to 0. Use -1 to consider all frames unique")
    parser.add_argument("-e", "--encoding", help="Output file encoding. Defaults to mp4")
    parser.add_argument("-f", "--frames", help="Number of frames to use for each video. If empty, will only generate video between active times.")
    parser.add_argument("-fr", "--framerate", help="Video frame rate; 0 means no video output but keep individual frames")
    parser.add_argument("-i", "--infinite", action="store_true", help="Continue running indefinitely and keep generating further videos after the first one")
    parser.add_argument("-m", "--max", help="Maximum time to wait to schedule in seconds. Defaults to 1 day")
    parser.add_argument("-s", "--schedule", help="Capture every S seconds, with exponential backoff on static content")
    parser.add_argument("-vw", "--width", help="Browser view width")
    parser.add_argument("-vh", "--height", help="Browser view height")
    parser.add_argument("--log-level", default=None, help="Python logging level (default: INFO, DEBUG with DEV=1).")
    return parser


def configure_logging(log_level: str | None, *, dev_mode: bool = False) -> None:
    level_name = log_level or ("DEBUG" if dev_mode else "INFO")
    logging.basicConfig(
        level=getattr(logging, level_name.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
    )
    for name in ("asyncio", "playwright"):
        logging.getLogger(name).setLevel(logging.WARNING)


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    cfg = apply_cli_overrides(get_cfg(), vars(args))
    configure_logging(args.log_level, dev_mode=bool(cfg.get("logging", {}).get("dev_mode")))
    config_path = active_config_path()
    if config_path is not None:
        _LOG.info("Using config %s", config_path)
    else:
        _LOG.debug("No config file found; using defaults and command line options")

    try:
        params = build_schedule_parameters(cfg)
        recorder = Recorder(params)
        recorder.start()
    except (ConfigurationError, RecoveryError) as exc:
        _LOG.error("Execution FAILED - %s", exc)
        return 1
    except Exception as exc:  # noqa: BLE001 - startup failures end the process
        _LOG.exception("Execution FAILED - %s", exc)
        return 1

    try:
        recorder.wait()
    except KeyboardInterrupt:
        _LOG.info("Interrupted; stopping")
        recorder.stop()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
