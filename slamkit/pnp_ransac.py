"""RANSAC camera pose estimation around the EPnP solver."""

from __future__ import annotations

import math
import random
from dataclasses import dataclass, field

import numpy as np

from .epnp import EPnP


@dataclass(frozen=True)
class Correspondence:
    """A 3D world point matched to a 2D keypoint of a frame."""

    index: int
    world_point: tuple
    image_point: tuple
    sigma2: float = 1.0


@dataclass(frozen=True)
class PnPResult:
    """Outcome of a RANSAC run.

    ``pose`` is the 4x4 world-to-camera matrix or ``None``. ``inliers`` has one
    flag per match slot when a pose was found and is empty otherwise.
    """

    pose: np.ndarray | None
    inliers: list = field(default_factory=list)
    n_inliers: int = 0
    no_more: bool = False

    @property
    def success(self):
        return self.pose is not None


def _ransac_iterations(probability, epsilon, min_inliers, n, max_iterations):
    if min_inliers == n or n == 0:
        count = 1
    elif probability >= 1.0:
        count = max_iterations
    else:
        base = 1.0 - epsilon ** 3
        if base <= 0.0 or base >= 1.0:
            count = 1
        else:
            count = math.ceil(math.log(1.0 - probability) / math.log(base))
    return max(1, min(count, max_iterations))


def _pose_matrix(R, t):
    T = np.eye(4)
    T[:3, :3] = R
    T[:3, 3] = t
    return T


class PnPSolver:
    """Robust pose of a calibrated camera from 3D-2D correspondences."""

    def __init__(self, correspondences, n_matches, fx, fy, cx, cy, seed=None):
        correspondences = list(correspondences)
        for corr in correspondences:
            if not 0 <= corr.index < n_matches:
                raise ValueError(f"correspondence index {corr.index} outside 0..{n_matches - 1}")
        self.n_matches = int(n_matches)
        self._indices = [corr.index for corr in correspondences]
        self._world = np.array([corr.world_point for corr in correspondences], dtype=float).reshape(-1, 3)
        self._image = np.array([corr.image_point for corr in correspondences], dtype=float).reshape(-1, 2)
        self._sigma2 = np.array([corr.sigma2 for corr in correspondences], dtype=float)
        self._epnp = EPnP(fx, fy, cx, cy)
        self._rng = random.Random(seed)

        self._iterations = 0
        self._n_best = 0
        self._best_inliers = np.zeros(len(correspondences), dtype=bool)
        self._best_pose = None
        self.set_ransac_parameters()

    def set_ransac_parameters(self, probability=0.99, min_inliers=8, max_iterations=300,
                              min_set=4, epsilon=0.4, th2=5.991):
        """Configure RANSAC, adapting thresholds to the number of correspondences."""
        n = len(self._indices)
        self.ransac_probability = probability
        self.ransac_min_set = min_set

        n_min = int(n * epsilon)
        n_min = max(n_min, min_inliers, min_set)
        self.ransac_min_inliers = n_min

        if n > 0 and epsilon < n_min / n:
            epsilon = n_min / n
        self.ransac_epsilon = epsilon

        self.ransac_max_iterations = _ransac_iterations(
            probability, epsilon, n_min, n, max_iterations)
        self._max_error = self._sigma2 * th2

    def find(self):
        """Run RANSAC for the configured number of iterations."""
        return self.iterate(self.ransac_max_iterations)

    def iterate(self, n_iterations):
        """Run up to ``n_iterations`` more RANSAC iterations."""
        n = len(self._indices)
        if n < self.ransac_min_inliers:
            return PnPResult(None, [], 0, True)

        current = 0
        while self._iterations < self.ransac_max_iterations or current < n_iterations:
            current += 1
            self._iterations += 1

            solution = self._solve(self._sample(self.ransac_min_set))
            inliers = self._check_inliers(solution)
            count = int(inliers.sum())

            if count >= self.ransac_min_inliers:
                if count > self._n_best:
                    self._best_inliers = inliers
                    self._n_best = count
                    self._best_pose = _pose_matrix(*solution)

                refined = self._refine()
                if refined is not None:
                    pose, refined_inliers = refined
                    return PnPResult(pose, self._expand(refined_inliers),
                                     int(refined_inliers.sum()), False)

        if self._iterations >= self.ransac_max_iterations:
            if self._n_best >= self.ransac_min_inliers:
                return PnPResult(self._best_pose.copy(), self._expand(self._best_inliers),
                                 self._n_best, True)
            return PnPResult(None, [], 0, True)
        return PnPResult(None, [], 0, False)

    def _sample(self, size):
        available = list(range(len(self._indices)))
        chosen = []
        for _ in range(size):
            k = self._rng.randint(0, len(available) - 1)
            chosen.append(available[k])
            available[k] = available[-1]
            available.pop()
        return np.array(chosen, dtype=int)

    def _solve(self, selection):
        try:
            R, t, _ = self._epnp.compute_pose(self._world[selection], self._image[selection])
        except (np.linalg.LinAlgError, ValueError):
            return None
        return R, t

    def _check_inliers(self, solution):
        if solution is None:
            return np.zeros(len(self._indices), dtype=bool)
        R, t = solution
        with np.errstate(all="ignore"):
            pc = self._world @ R.T + t
            inv_z = 1.0 / pc[:, 2]
            ue = self._epnp.uc + self._epnp.fu * pc[:, 0] * inv_z
            ve = self._epnp.vc + self._epnp.fv * pc[:, 1] * inv_z
            error2 = (self._image[:, 0] - ue) ** 2 + (self._image[:, 1] - ve) ** 2
            return error2 < self._max_error

    def _refine(self):
        selection = np.flatnonzero(self._best_inliers)
        solution = self._solve(selection)
        inliers = self._check_inliers(solution)
        if solution is not None and int(inliers.sum()) > self.ransac_min_inliers:
            return _pose_matrix(*solution), inliers
        return None

    def _expand(self, inliers):
        flags = [False] * self.n_matches
        for index, flag in zip(self._indices, inliers):
            if flag:
                flags[index] = True
        return flags