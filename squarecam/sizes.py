"""Preview and picture size selection.

Cameras report a list of supported sizes for the preview stream and another for
still pictures. `select_best_size` picks the widest size that shares the target
aspect family and fits under a width bound.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Sequence, Tuple

from squarecam.errors import NoQualifyingSize

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Size:
    width: int
    height: int

    def as_tuple(self) -> Tuple[int, int]:
        return (self.width, self.height)

    def __iter__(self):
        return iter((self.width, self.height))

    def __str__(self):
        return f"{self.width}x{self.height}"


def to_size(value) -> Size:
    """Accept a Size or a (width, height) pair."""
    if isinstance(value, Size):
        return value
    w, h = value
    return Size(int(w), int(h))


def to_sizes(values: Iterable) -> list:
    return [to_size(v) for v in values]


def is_desired_ratio(size: Size, aspect_numerator: int = 4, aspect_denominator: int = 3) -> bool:
    """Integer-division aspect check.

    1280x960 and 1282x961 both pass for 4:3; it accepts the family of sizes around
    the ratio rather than an exact match.
    """
    return size.width // aspect_numerator == size.height // aspect_denominator


def select_best_size(
    candidates: Sequence,
    max_width: int,
    aspect_numerator: int = 4,
    aspect_denominator: int = 3,
    on_error: Optional[Callable[[NoQualifyingSize], None]] = None,
) -> Size:
    """Return the widest candidate with the target aspect and width <= max_width.

    Ties keep the first candidate seen. When nothing qualifies a NoQualifyingSize is
    logged and handed to `on_error`, and the first candidate is returned so the
    caller can still try to proceed. An empty candidate list raises NoQualifyingSize.
    """
    sizes = to_sizes(candidates)
    aspect = (aspect_numerator, aspect_denominator)
    if not sizes:
        raise NoQualifyingSize(max_width, aspect=aspect, candidates=[])

    best = None
    for current in sizes:
        desired_ratio = is_desired_ratio(current, aspect_numerator, aspect_denominator)
        in_bounds = current.width <= max_width
        better = best is None or current.width > best.width
        if desired_ratio and in_bounds and better:
            best = current

    if best is None:
        error = NoQualifyingSize(max_width, aspect=aspect, candidates=[s.as_tuple() for s in sizes])
        logger.warning(f"{error.message}; falling back to {sizes[0]}")
        if on_error is not None:
            on_error(error)
        return sizes[0]

    logger.debug(f"Best size for max width {max_width}: {best}")
    return best
