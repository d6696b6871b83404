"""
Polygon overlay generator.

Produces irregular, randomly placed and randomly styled polygons in normalized
canvas coordinates. A recorded video shows the polygons of the challenge it was
recorded against, so replaying it against a new challenge shows the wrong
overlay.

The RNG here is numpy's PCG64 generator, not a CSPRNG: the geometry only has to
vary between challenges, it is not a secret. Identifiers and nonces come from
processing.crypto instead.
"""

import numpy as np

from config import (
    POLYGON_MIN_SIDES, POLYGON_MAX_SIDES,
    POLYGON_CENTER_RANGE, POLYGON_RADIUS_RANGE, POLYGON_IRREGULARITY,
    POLYGON_OPACITY_RANGE, POLYGON_DURATION_RANGE_MS,
    POLYGON_DECIMALS, POLYGON_COLORS,
)
from schemas.challenge import Animation, Polygon

ANIMATIONS = list(Animation)


def generate_polygon_points(sides: int, rng: np.random.Generator) -> np.ndarray:
    """Vertices of an irregular polygon, shape (sides, 2), clamped to [0, 1] and rounded."""
    cx, cy = rng.uniform(*POLYGON_CENTER_RANGE, size=2)
    radius = rng.uniform(*POLYGON_RADIUS_RANGE)

    angles = 2 * np.pi * np.arange(sides) / sides
    radii = radius * rng.uniform(*POLYGON_IRREGULARITY, size=sides)

    xs = np.clip(cx + radii * np.cos(angles), 0.0, 1.0)
    ys = np.clip(cy + radii * np.sin(angles), 0.0, 1.0)
    return np.round(np.column_stack([xs, ys]), POLYGON_DECIMALS)


def polygon_center(points: np.ndarray) -> tuple[float, float]:
    cx, cy = np.round(points.mean(axis=0), POLYGON_DECIMALS)
    return float(cx), float(cy)


def _opacity(rng: np.random.Generator) -> float:
    # rng.random() is in [0, 1), so this lands in (low, high]
    low, high = POLYGON_OPACITY_RANGE
    return float(high - rng.random() * (high - low))


def generate_polygons(count: int, rng: np.random.Generator | None = None) -> list[Polygon]:
    """Generate `count` polygons; list index doubles as the polygon id."""
    if count < 0:
        raise ValueError(f"polygon count must be non-negative, got {count}")
    rng = rng if rng is not None else np.random.default_rng()
    min_ms, max_ms = POLYGON_DURATION_RANGE_MS

    polygons = []
    for i in range(count):
        sides = int(rng.integers(POLYGON_MIN_SIDES, POLYGON_MAX_SIDES + 1))
        points = generate_polygon_points(sides, rng)
        color = POLYGON_COLORS[int(rng.integers(len(POLYGON_COLORS)))]
        opacity = _opacity(rng)
        animation = ANIMATIONS[int(rng.integers(len(ANIMATIONS)))]
        duration = int(rng.integers(min_ms, max_ms + 1))

        polygons.append(Polygon(
            id=i,
            points=tuple((float(x), float(y)) for x, y in points),
            color=color,
            opacity=opacity,
            animation=animation,
            duration=duration,
            rotation_center=polygon_center(points) if animation == Animation.ROTATE else None,
        ))

    return polygons
