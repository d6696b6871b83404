import re

import numpy as np
import pytest
from pydantic import ValidationError

from config import POLYGON_COLORS
from processing.polygons import generate_polygon_points, generate_polygons, polygon_center
from schemas.challenge import Animation

HEX_COLOR = re.compile(r"^#[0-9A-F]{6}$")


@pytest.mark.parametrize("count", range(5, 11))
def test_polygon_invariants(count):
    polygons = generate_polygons(count)
    assert len(polygons) == count
    for i, polygon in enumerate(polygons):
        assert polygon.id == i
        assert 3 <= len(polygon.points) <= 6
        for x, y in polygon.points:
            assert 0.0 <= x <= 1.0
            assert 0.0 <= y <= 1.0
        assert 0.4 < polygon.opacity <= 0.8
        assert HEX_COLOR.match(polygon.color)
        assert polygon.color in POLYGON_COLORS
        assert polygon.animation in set(Animation)
        assert 1000 <= polygon.duration <= 3000
        assert (polygon.rotation_center is not None) == (polygon.animation == Animation.ROTATE)


def test_coordinates_rounded_to_three_decimals():
    for polygon in generate_polygons(10, np.random.default_rng(7)):
        for x, y in polygon.points:
            assert round(x, 3) == x
            assert round(y, 3) == y


def test_rotation_center_is_vertex_mean():
    rng = np.random.default_rng(0)
    rotating = [p for p in generate_polygons(200, rng) if p.animation == Animation.ROTATE]
    assert rotating
    for polygon in rotating:
        xs = [x for x, _ in polygon.points]
        ys = [y for _, y in polygon.points]
        cx, cy = polygon.rotation_center
        assert cx == pytest.approx(sum(xs) / len(xs), abs=6e-4)
        assert cy == pytest.approx(sum(ys) / len(ys), abs=6e-4)


def test_all_shapes_and_animations_occur():
    polygons = generate_polygons(400, np.random.default_rng(42))
    assert {len(p.points) for p in polygons} == {3, 4, 5, 6}
    assert {p.animation for p in polygons} == set(Animation)


def test_seeded_generator_is_reproducible():
    first = generate_polygons(7, np.random.default_rng(99))
    second = generate_polygons(7, np.random.default_rng(99))
    assert first == second


def test_points_stay_near_center():
    rng = np.random.default_rng(3)
    points = generate_polygon_points(6, rng)
    assert points.shape == (6, 2)
    cx, cy = polygon_center(points)
    # max radius 0.15 * 1.2 irregularity
    assert np.all(np.abs(points - [cx, cy]) <= 0.18 * 2)


def test_zero_and_negative_counts():
    assert generate_polygons(0) == []
    with pytest.raises(ValueError):
        generate_polygons(-1)


def test_polygons_are_immutable():
    polygon = generate_polygons(1)[0]
    with pytest.raises(ValidationError):
        polygon.color = "#000000"
