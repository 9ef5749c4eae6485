"""RANSAC estimation of the similarity between two keyframes."""

from __future__ import annotations

import math
import random
from dataclasses import dataclass, field

import numpy as np

from .sim3 import Sim3Transform, camera_to_image, compute_sim3, project

_CHI2_THRESHOLD = 9.210


@dataclass(frozen=True)
class Sim3Match:
    """A pair of matched points, each in its own keyframe's camera frame."""

    index: int
    point1: tuple
    point2: tuple
    sigma2_1: float = 1.0
    sigma2_2: float = 1.0


@dataclass(frozen=True)
class Sim3Result:
    """Outcome of a RANSAC run; ``transform`` maps frame 2 into frame 1."""

    transform: Sim3Transform | None
    inliers: list = field(default_factory=list)
    n_inliers: int = 0
    no_more: bool = False

    @property
    def pose(self):
        """The 4x4 matrix of the transform, or ``None``."""
        return None if self.transform is None else self.transform.matrix


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


class Sim3Solver:
    """Robust Sim3 (or SE3 with fixed scale) between matched 3D points."""

    def __init__(self, matches, n_matches, K1, K2, fix_scale, seed=None):
        matches = list(matches)
        for match in matches:
            if not 0 <= match.index < n_matches:
                raise ValueError(f"match index {match.index} outside 0..{n_matches - 1}")
        self.n_matches = int(n_matches)
        self.fix_scale = bool(fix_scale)
        self._indices = [match.index for match in matches]
        self._x1 = np.array([m.point1 for m in matches], dtype=float).reshape(-1, 3)
        self._x2 = np.array([m.point2 for m in matches], dtype=float).reshape(-1, 3)
        self._max_error1 = _CHI2_THRESHOLD * np.array([m.sigma2_1 for m in matches], dtype=float)
        self._max_error2 = _CHI2_THRESHOLD * np.array([m.sigma2_2 for m in matches], dtype=float)
        self._K1 = np.asarray(K1, dtype=float)
        self._K2 = np.asarray(K2, dtype=float)
        with np.errstate(all="ignore"):
            self._p1_in_1 = camera_to_image(self._x1, self._K1)
            self._p2_in_2 = camera_to_image(self._x2, self._K2)
        self._rng = random.Random(seed)

        self._n_best = 0
        self._best = None
        self.set_ransac_parameters()

    def set_ransac_parameters(self, probability=0.99, min_inliers=6, max_iterations=300):
        """Configure RANSAC and restart the iteration count."""
        n = len(self._indices)
        self.ransac_probability = probability
        self.ransac_min_inliers = min_inliers
        epsilon = min_inliers / n if n else math.inf
        self.ransac_max_iterations = _ransac_iterations(
            probability, epsilon, min_inliers, n, max_iterations)
        self._iterations = 0

    def find(self):
        """Run RANSAC for the configured number of iterations."""
        return self.iterate(self.ransac_max_iterations)

    def iterate(self, n_iterations):
        """Run up to ``n_iterations`` more RANSAC iterations."""
        flags = [False] * self.n_matches
        n = len(self._indices)
        if n < self.ransac_min_inliers:
            return Sim3Result(None, flags, 0, True)

        current = 0
        while self._iterations < self.ransac_max_iterations and current < n_iterations:
            current += 1
            self._iterations += 1

            sample = self._sample(3)
            transform = self._compute(sample)
            if transform is None:
                continue
            inliers = self._check_inliers(transform)
            count = int(inliers.sum())

            if count >= self._n_best:
                self._n_best = count
                self._best = transform
                if count > self.ransac_min_inliers:
                    for index, flag in zip(self._indices, inliers):
                        if flag:
                            flags[index] = True
                    return Sim3Result(transform, flags, count, False)

        return Sim3Result(None, flags, 0, self._iterations >= self.ransac_max_iterations)

    def _sample(self, size):
        available = list(range(len(self._indices)))
        chosen = []
        for _ in range(size):
            k = self._rng.randint(0, len(available) - 1)
            chosen.append(available[k])
            available[k] = available[-1]
            available.pop()
        return np.array(chosen, dtype=int)

    def _compute(self, sample):
        try:
            with np.errstate(all="ignore"):
                transform = compute_sim3(self._x1[sample], self._x2[sample], self.fix_scale)
        except (ZeroDivisionError, np.linalg.LinAlgError):
            return None
        if not math.isfinite(transform.scale) or transform.scale == 0.0:
            return None
        return transform

    def _check_inliers(self, transform):
        with np.errstate(all="ignore"):
            p2_in_1 = project(self._x2, transform.matrix, self._K1)
            p1_in_2 = project(self._x1, transform.inverse_matrix, self._K2)
            err1 = np.sum((self._p1_in_1 - p2_in_1) ** 2, axis=1)
            err2 = np.sum((p1_in_2 - self._p2_in_2) ** 2, axis=1)
            return (err1 < self._max_error1) & (err2 < self._max_error2)