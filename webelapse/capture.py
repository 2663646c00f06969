"""One capture attempt: snapshot, fingerprint, retain or discard."""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable

from webelapse.config import ScheduleParameters
from webelapse.fingerprint import EmptyInputError, abbreviate, distance, fingerprint
from webelapse.frame_store import FrameStore
from webelapse.run_state import RunState

_LOG = logging.getLogger("webelapse.capture")

HASH_LOG_WIDTH = 42


class CycleOutcome(enum.Enum):
    EMPTY = "empty"
    RETAINED = "retained"
    DUPLICATE = "duplicate"


def is_new_frame(last: str | None, new: str, threshold: int) -> bool:
    """Whether a capture hashing to ``new`` should be kept.

    A negative ``threshold`` treats every frame as unique.
    """
    if last is None or threshold < 0:
        return True
    return distance(last, new) > threshold


def run_capture_cycle(
    state: RunState,
    store: FrameStore,
    provider: Callable[[], bytes],
    params: ScheduleParameters,
) -> CycleOutcome:
    # Allocate the name before capturing so it reflects when the capture began.
    output = store.new_path()
    data = provider() or b""
    if not data:
        _LOG.info("Empty frame")
        return CycleOutcome.EMPTY

    try:
        new_hash = fingerprint(data, params.hash_bits)
    except EmptyInputError:
        _LOG.info("Empty frame")
        return CycleOutcome.EMPTY
    except ValueError as exc:
        _LOG.warning("Discarding undecodable frame: %s", exc)
        return CycleOutcome.EMPTY

    outcome = CycleOutcome.DUPLICATE
    if is_new_frame(state.last_fingerprint, new_hash, params.distance):
        try:
            store.append(data, output)
        except OSError as exc:
            _LOG.error("Failed to write frame %s: %s", output, exc)
            return CycleOutcome.EMPTY
        state.frames.append(output)
        state.duplicates = 0
        outcome = CycleOutcome.RETAINED
        _LOG.info("Wrote frame: %s, hash: %s", output, abbreviate(new_hash, HASH_LOG_WIDTH))
    else:
        state.duplicates += 1
        _LOG.info("Duplicate hash %s", abbreviate(new_hash, HASH_LOG_WIDTH))

    # Near-duplicates are measured against the previous capture, kept or not.
    state.last_fingerprint = new_hash
    return outcome
