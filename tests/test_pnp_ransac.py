import math

import numpy as np
import pytest

from slamkit.pnp_ransac import Correspondence, PnPSolver

FX = FY = 500.0
CX = 320.0
CY = 240.0


def _rotation(ax, ay, az):
    rx = np.array([[1, 0, 0], [0, math.cos(ax), -math.sin(ax)], [0, math.sin(ax), math.cos(ax)]])
    ry = np.array([[math.cos(ay), 0, math.sin(ay)], [0, 1, 0], [-math.sin(ay), 0, math.cos(ay)]])
    rz = np.array([[math.cos(az), -math.sin(az), 0], [math.sin(az), math.cos(az), 0], [0, 0, 1]])
    return rz @ ry @ rx


def _scene(n, seed=0, outliers=()):
    rng = np.random.default_rng(seed)
    R = _rotation(0.1, -0.2, 0.05)
    t = np.array([0.1, -0.2, 0.3])
    world = rng.uniform([-2, -2, 4], [2, 2, 8], (n, 3))
    cam = world @ R.T + t
    image = np.column_stack((FX * cam[:, 0] / cam[:, 2] + CX, FY * cam[:, 1] / cam[:, 2] + CY))
    for i in outliers:
        image[i] += [60.0, -45.0]
    corr = [Correspondence(index=2 * i, world_point=tuple(world[i]), image_point=tuple(image[i]))
            for i in range(n)]
    return corr, R, t


def test_recovers_exact_pose():
    corr, R, t = _scene(20)
    result = PnPSolver(corr, 40, FX, FY, CX, CY, seed=1).find()
    assert result.success
    assert np.allclose(result.pose[:3, :3], R, atol=1e-4)
    assert np.allclose(result.pose[:3, 3], t, atol=1e-4)
    assert np.allclose(result.pose[3], [0, 0, 0, 1])
    assert result.n_inliers == 20


def test_inlier_flags_follow_match_indices():
    corr, _, _ = _scene(20)
    result = PnPSolver(corr, 40, FX, FY, CX, CY, seed=2).find()
    assert len(result.inliers) == 40
    assert all(result.inliers[0::2])
    assert not any(result.inliers[1::2])


def test_outliers_are_rejected():
    bad = {3, 7, 11}
    corr, R, _ = _scene(25, seed=5, outliers=bad)
    result = PnPSolver(corr, 50, FX, FY, CX, CY, seed=3).find()
    assert result.success
    assert np.allclose(result.pose[:3, :3], R, atol=1e-4)
    for i in range(25):
        assert result.inliers[2 * i] is (i not in bad)
    assert result.n_inliers == 22


def test_too_few_correspondences():
    corr, _, _ = _scene(5)
    result = PnPSolver(corr, 10, FX, FY, CX, CY, seed=0).find()
    assert result.pose is None
    assert result.no_more is True
    assert result.inliers == []


def test_index_out_of_range():
    corr, _, _ = _scene(6)
    with pytest.raises(ValueError):
        PnPSolver(corr, 5, FX, FY, CX, CY)


def test_single_iteration_when_all_must_be_inliers():
    corr, _, _ = _scene(10)
    solver = PnPSolver(corr, 20, FX, FY, CX, CY)
    solver.set_ransac_parameters(min_inliers=10)
    assert solver.ransac_max_iterations == 1


def test_epsilon_raised_to_inlier_ratio():
    corr, _, _ = _scene(10)
    solver = PnPSolver(corr, 20, FX, FY, CX, CY)
    solver.set_ransac_parameters(min_inliers=8, epsilon=0.4)
    assert solver.ransac_min_inliers == 8
    assert solver.ransac_epsilon == pytest.approx(8 / 10)
    assert 1 <= solver.ransac_max_iterations <= 300