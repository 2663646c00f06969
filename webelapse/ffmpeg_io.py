"""Shared helpers for building ffmpeg command lines."""

from __future__ import annotations

DEFAULT_PIXEL_FORMAT = "yuv420p"

# Drop near-duplicate frames, retime what is left, and pad to even dimensions
# so yuv420p encoders accept odd-sized screenshots.
TIMELAPSE_FILTER_CHAIN = "mpdecimate,setpts=N/FRAME_RATE/TB,pad=ceil(iw/2)*2:ceil(ih/2)*2"


def frame_sequence_input_args(frame_rate: float, input_glob: str) -> list[str]:
    """Return input arguments for reading a glob of still images.

    ``-framerate`` and ``-pattern_type`` apply to the input that follows them,
    so they must precede ``-i``.
    """

    return [
        "-framerate",
        f"{float(frame_rate):g}",
        "-pattern_type",
        "glob",
        "-i",
        input_glob,
    ]


def timelapse_command(
    frame_rate: float,
    input_glob: str,
    output_path: str,
    *,
    ffmpeg_bin: str = "ffmpeg",
    filter_chain: str = TIMELAPSE_FILTER_CHAIN,
    pixel_format: str = DEFAULT_PIXEL_FORMAT,
) -> list[str]:
    return [
        ffmpeg_bin,
        "-y",
        "-loglevel",
        "error",
        *frame_sequence_input_args(frame_rate, input_glob),
        "-vf",
        filter_chain,
        "-pix_fmt",
        pixel_format,
        output_path,
    ]
