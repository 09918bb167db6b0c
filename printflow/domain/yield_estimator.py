"""Axis-aligned grid tiling of rectangular pieces on a fixed plate.

This is a heuristic: pieces are laid out in a single orientation per plate,
in a regular grid. It is not an optimal 2D nesting and may under-count what
a mixed-orientation layout could fit.

Counts per axis are floored with a 1e-9 tolerance on the ratio, so a piece
that overshoots the plate by a rounding-error sliver (under about 1e-7 cm at
these plate sizes) still counts as fitting.
"""
from __future__ import annotations

import math
from dataclasses import dataclass

from printflow.core.errors import InfeasibleGeometry

PLATE_WIDTH_CM = 122.0
PLATE_HEIGHT_CM = 244.0

# Absorbs float noise such as 122 / 12.2 == 9.999999999999998.
_EPSILON = 1e-9


@dataclass(frozen=True)
class YieldEstimate:
    pieces_per_plate: int
    plates_needed: int
    waste_fraction: float
    rotated: bool

    @property
    def waste_percent(self) -> int:
        return round_half_up(self.waste_fraction * 100)

    @property
    def utilization_percent(self) -> int:
        return round_half_up((1 - self.waste_fraction) * 100)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _fit(span: float, piece: float) -> int:
    return int(math.floor(span / piece + _EPSILON))


def pieces_per_plate(
    piece_width: float,
    piece_height: float,
    plate_width: float = PLATE_WIDTH_CM,
    plate_height: float = PLATE_HEIGHT_CM,
) -> tuple[int, bool]:
    upright = _fit(plate_width, piece_width) * _fit(plate_height, piece_height)
    rotated = _fit(plate_width, piece_height) * _fit(plate_height, piece_width)
    if rotated > upright:
        return rotated, True
    return upright, False


def estimate_yield(
    piece_width: float,
    piece_height: float,
    plate_width: float = PLATE_WIDTH_CM,
    plate_height: float = PLATE_HEIGHT_CM,
    quantity: int = 1,
) -> YieldEstimate:
    if piece_width <= 0 or piece_height <= 0:
        raise ValueError("piece dimensions must be positive")
    if plate_width <= 0 or plate_height <= 0:
        raise ValueError("plate dimensions must be positive")
    if quantity <= 0:
        raise ValueError("quantity must be positive")

    per_plate, rotated = pieces_per_plate(piece_width, piece_height, plate_width, plate_height)
    if per_plate == 0:
        raise InfeasibleGeometry(piece_width, piece_height, plate_width, plate_height)

    plates_needed = math.ceil(quantity / per_plate)
    useful_area = per_plate * piece_width * piece_height
    waste = 1 - useful_area / (plate_width * plate_height)
    waste = min(1.0, max(0.0, waste))
    return YieldEstimate(
        pieces_per_plate=per_plate,
        plates_needed=plates_needed,
        waste_fraction=waste,
        rotated=rotated,
    )
