import pytest

from webelapse.fingerprint import (
    EmptyInputError,
    abbreviate,
    distance,
    fingerprint,
    fingerprint_file,
)


def test_fingerprint_is_deterministic(png):
    data = png("left")
    assert fingerprint(data) == fingerprint(data)
    assert fingerprint(data, 8) == fingerprint(bytes(data), 8)


def test_fingerprint_length_tracks_bits(png):
    data = png("center")
    # bits * bits hash bits rendered as hex
    assert len(fingerprint(data, 8)) == 16
    assert len(fingerprint(data, 12)) == 36
    assert len(fingerprint(data, 16)) == 64


def test_different_images_have_different_fingerprints(png):
    left = fingerprint(png("left"))
    top = fingerprint(png("top"))
    assert left != top
    assert distance(left, top) > 0


def test_empty_input_raises():
    with pytest.raises(EmptyInputError):
        fingerprint(b"")


def test_garbage_input_raises_value_error():
    with pytest.raises(ValueError):
        fingerprint(b"definitely not a png")


def test_fingerprint_file_matches_bytes(tmp_path, png):
    path = tmp_path / "frame.png"
    path.write_bytes(png("bottom"))
    assert fingerprint_file(path, 10) == fingerprint(png("bottom"), 10)


@pytest.mark.parametrize(
    ("a", "b", "expected"),
    [
        ("", "", 0),
        ("abc", "abc", 0),
        ("abc", "abd", 1),
        ("abc", "", 3),
        ("kitten", "sitting", 3),
        ("ff00", "00ff", 4),
    ],
)
def test_distance(a, b, expected):
    assert distance(a, b) == expected
    assert distance(b, a) == expected


def test_abbreviate():
    assert abbreviate("abcdef", 10) == "abcdef"
    assert abbreviate("abcdef", 3) == "abc..."
