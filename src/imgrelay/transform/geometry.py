"""Target-size policy for normalized images.

Square-like images (sides within :data:`~imgrelay.config.SQUARE_TOLERANCE`
of each other) are clamped to a ``SQUARE_SIZE`` square; everything else is
scaled so its longer side fits ``MAX_SIZE``.  Nothing is ever upscaled.

The shorter side is rounded half-up, computed on exact fractions so the
result does not depend on float representation.
"""

from __future__ import annotations

from fractions import Fraction

from imgrelay.config import MAX_SIZE, SQUARE_SIZE, SQUARE_TOLERANCE


def is_square_like(width: int, height: int) -> bool:
    return abs(width - height) < SQUARE_TOLERANCE


def _round_half_up(value: Fraction) -> int:
    return int((value + Fraction(1, 2)) // 1)


def resolve(width: int, height: int) -> tuple[int, int]:
    """Return the target ``(width, height)`` for a source of the given size.

    Raises
    ------
    ValueError
        If either dimension is not a positive integer.
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Image dimensions must be positive, got {width}x{height}")

    if is_square_like(width, height):
        if width > SQUARE_SIZE or height > SQUARE_SIZE:
            return SQUARE_SIZE, SQUARE_SIZE
        return width, height

    if max(width, height) <= MAX_SIZE:
        return width, height

    if width > height:
        return MAX_SIZE, max(1, _round_half_up(Fraction(height * MAX_SIZE, width)))
    return max(1, _round_half_up(Fraction(width * MAX_SIZE, height))), MAX_SIZE
