"""Perceptual fingerprints for captured frames."""

from __future__ import annotations

import io
import os

import imagehash
from PIL import Image, UnidentifiedImageError

DEFAULT_HASH_BITS = 12


class EmptyInputError(ValueError):
    """Raised when there are no bytes to fingerprint."""


def fingerprint(data: bytes, bits: int = DEFAULT_HASH_BITS) -> str:
    """Return the average-hash of ``data`` over a ``bits`` x ``bits`` grid as hex.

    Larger ``bits`` values are more sensitive to small visual changes.
    """

    if not data:
        raise EmptyInputError("cannot fingerprint empty image data")
    if bits < 2:
        raise ValueError(f"hash bits must be at least 2, got {bits}")
    try:
        with Image.open(io.BytesIO(data)) as image:
            image.load()
            return str(imagehash.average_hash(image, hash_size=bits))
    except (UnidentifiedImageError, OSError) as exc:
        raise ValueError(f"unable to decode image data: {exc}") from exc


def fingerprint_file(path: str | os.PathLike[str], bits: int = DEFAULT_HASH_BITS) -> str:
    with open(path, "rb") as handle:
        return fingerprint(handle.read(), bits)


def distance(a: str, b: str) -> int:
    """Levenshtein distance between two fingerprints."""

    if a == b:
        return 0
    if len(a) < len(b):
        a, b = b, a
    if not b:
        return len(a)
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            current.append(
                min(
                    previous[j] + 1,
                    current[j - 1] + 1,
                    previous[j - 1] + (char_a != char_b),
                )
            )
        previous = current
    return previous[-1]


def abbreviate(text: str, max_len: int) -> str:
    if len(text) <= max_len:
        return text
    return text[:max_len] + "..."
