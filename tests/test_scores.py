import math

import pytest

from slamkit.scores import (
    baseline_score,
    func_point,
    min_circle_radius,
    point_diversity,
    point_visibility,
)


@pytest.mark.parametrize("n", [0, 1, 2, 5, 17])
def test_func_point_equal_counts_is_one(n):
    assert func_point(n, n) == 1.0


@pytest.mark.parametrize("n, m", [(5, 3), (9, 0), (2, 1)])
def test_func_point_above_maximum_is_one(n, m):
    assert func_point(n, m) == 1.0


def test_func_point_single_observation_below_two_is_one():
    assert func_point(1, 2) == 1.0


def test_func_point_single_observation_is_infinite():
    assert func_point(1, 4) == math.inf


@pytest.mark.parametrize("n", [2, 3, 6])
def test_func_point_grows_by_ratio(n):
    ratio = (n + 1) / (n - 1)
    for m in range(n + 1, n + 5):
        assert func_point(n, m + 1) == pytest.approx(func_point(n, m) * ratio)


def test_func_point_prefers_more_visible_points():
    assert func_point(3, 10) < func_point(2, 10)


@pytest.mark.parametrize("n, m", [(2, 7), (4, 4), (3, 9), (8, 2)])
def test_point_visibility_matches_func_point(n, m):
    assert point_visibility(n, m) == func_point(n, m)


def test_min_circle_radius_right_triangle():
    assert min_circle_radius(3, 4) == pytest.approx(2.5)


@pytest.mark.parametrize("w, h", [(32, 24), (1, 1), (0, 7), (64, 48)])
def test_min_circle_radius_covers_corners(w, h):
    r = min_circle_radius(w, h)
    assert r * 2 == pytest.approx(math.hypot(w, h))
    assert r >= max(w, h) / 2
    assert min_circle_radius(h, w) == pytest.approx(r)


def test_point_diversity_no_neighbours_is_zero():
    assert point_diversity(0, 0) == 0
    assert point_diversity(5, 0) == 0


def test_point_diversity_uses_second_count_when_first_is_zero():
    assert point_diversity(0, 7) == point_diversity(1, 7)


@pytest.mark.parametrize("n1, n2", [(1, 1), (3, 4), (10, 20), (0, 100)])
def test_point_diversity_is_ceiling_of_log(n1, n2):
    value = point_diversity(n1, n2)
    product = n1 * n2 if n1 else n2
    assert math.exp(value - 1) < product + 1 <= math.exp(value) + 1e-9


def test_point_diversity_monotone():
    values = [point_diversity(4, n) for n in range(0, 200, 10)]
    assert values == sorted(values)


def test_point_diversity_rejects_negative():
    with pytest.raises(ValueError):
        point_diversity(-1, 3)


def test_baseline_score_same_centre():
    assert baseline_score([1.0, 2.0, 3.0], [1.0, 2.0, 3.0]) == pytest.approx(10.0)


def test_baseline_score_symmetric_and_decreasing():
    a = [0.0, 0.0, 0.0]
    near = [1.0, 0.0, 0.0]
    far = [0.0, 30.0, 40.0]
    assert baseline_score(a, near) == pytest.approx(baseline_score(near, a))
    assert baseline_score(a, far) < baseline_score(a, near) < baseline_score(a, a)
    assert baseline_score(a, far) > 0


def test_baseline_score_rejects_mismatched_shapes():
    with pytest.raises(ValueError):
        baseline_score([0.0, 0.0, 0.0], [0.0, 0.0])