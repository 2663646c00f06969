from __future__ import annotations

import io
from pathlib import Path

import pytest
from PIL import Image, ImageDraw

from webelapse.config import ScheduleParameters

_BOXES = {
    "left": (0, 0, 31, 63),
    "right": (32, 0, 63, 63),
    "top": (0, 0, 63, 31),
    "bottom": (0, 32, 63, 63),
    "center": (16, 16, 47, 47),
}


def render_png(pattern: str, size: int = 64) -> bytes:
    image = Image.new("L", (size, size), 0)
    if pattern in _BOXES:
        ImageDraw.Draw(image).rectangle(_BOXES[pattern], fill=255)
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def png():
    return render_png


class FakeProvider:
    """Returns queued payloads in order, then repeats the last one."""

    def __init__(self, payloads: list[bytes]):
        self.payloads = list(payloads)
        self.calls = 0

    def __call__(self) -> bytes:
        self.calls += 1
        if len(self.payloads) > 1:
            return self.payloads.pop(0)
        return self.payloads[0] if self.payloads else b""


@pytest.fixture
def fake_provider():
    return FakeProvider


@pytest.fixture
def make_params(tmp_path: Path):
    def _make(**overrides) -> ScheduleParameters:
        values = {"output_dir": tmp_path, "url": "https://example.test/"}
        values.update(overrides)
        return ScheduleParameters(**values)

    return _make
