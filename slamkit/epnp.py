"""Efficient Perspective-n-Point (EPnP) camera pose estimation."""

from __future__ import annotations

import math

import numpy as np

# Pairs of control points, in the order used by the distance constraints.
_PAIRS = ((0, 1), (0, 2), (0, 3), (1, 2), (1, 3), (2, 3))

# Products of betas, in the column order of the 6x10 constraint matrix.
_BETA_PRODUCTS = (
    (0, 0), (0, 1), (1, 1), (0, 2), (1, 2),
    (2, 2), (0, 3), (1, 3), (2, 3), (3, 3),
)

_GAUSS_NEWTON_ITERATIONS = 5


def qr_solve(A, b):
    """Solve ``A x = b`` in the least-squares sense with Householder QR.

    Raises ``numpy.linalg.LinAlgError`` when a column has no usable pivot.
    """
    A = np.array(A, dtype=float)
    b = np.array(b, dtype=float).reshape(-1)
    if A.ndim != 2:
        raise ValueError("A must be a two-dimensional matrix")
    nr, nc = A.shape
    if b.shape[0] != nr:
        raise ValueError("b must have one entry per row of A")
    if nr < nc:
        raise ValueError("A must have at least as many rows as columns")

    a1 = np.zeros(nc)
    a2 = np.zeros(nc)
    for k in range(nc):
        # The pivot scan stops one row short of the bottom of the column.
        scanned = A[k:max(nr - 1, k + 1), k]
        eta = float(np.max(np.abs(scanned)))
        if eta == 0.0:
            raise np.linalg.LinAlgError("matrix is singular")
        A[k:, k] /= eta
        sigma = math.sqrt(float(A[k:, k] @ A[k:, k]))
        if A[k, k] < 0:
            sigma = -sigma
        A[k, k] += sigma
        a1[k] = sigma * A[k, k]
        a2[k] = -eta * sigma
        if k + 1 < nc:
            tau = (A[k:, k] @ A[k:, k + 1:]) / a1[k]
            A[k:, k + 1:] -= np.outer(A[k:, k], tau)

    for j in range(nc):
        tau = float(A[j:, j] @ b[j:]) / a1[j]
        b[j:] -= tau * A[j:, j]

    x = np.zeros(nc)
    for i in reversed(range(nc)):
        x[i] = (b[i] - A[i, i + 1:] @ x[i + 1:]) / a2[i]
    return x


def mat_to_quat(R):
    """Return the quaternion of rotation matrix ``R`` as ``(x, y, z, w)``."""
    R = np.asarray(R, dtype=float)
    tr = R[0, 0] + R[1, 1] + R[2, 2]
    if tr > 0.0:
        q = [R[1, 2] - R[2, 1], R[2, 0] - R[0, 2], R[0, 1] - R[1, 0], tr + 1.0]
        n4 = q[3]
    elif R[0, 0] > R[1, 1] and R[0, 0] > R[2, 2]:
        q = [1.0 + R[0, 0] - R[1, 1] - R[2, 2], R[1, 0] + R[0, 1],
             R[2, 0] + R[0, 2], R[1, 2] - R[2, 1]]
        n4 = q[0]
    elif R[1, 1] > R[2, 2]:
        q = [R[1, 0] + R[0, 1], 1.0 + R[1, 1] - R[0, 0] - R[2, 2],
             R[2, 1] + R[1, 2], R[2, 0] - R[0, 2]]
        n4 = q[1]
    else:
        q = [R[2, 0] + R[0, 2], R[2, 1] + R[1, 2],
             1.0 + R[2, 2] - R[0, 0] - R[1, 1], R[0, 1] - R[1, 0]]
        n4 = q[2]
    return np.array(q) * (0.5 / math.sqrt(n4))


def relative_error(R_true, t_true, R_est, t_est):
    """Return ``(rotation_error, translation_error)`` of an estimate, both relative."""
    q_true = mat_to_quat(R_true)
    q_est = mat_to_quat(R_est)
    norm_q = np.linalg.norm(q_true)
    rot_err = min(np.linalg.norm(q_true - q_est), np.linalg.norm(q_true + q_est)) / norm_q

    t_true = np.asarray(t_true, dtype=float)
    t_est = np.asarray(t_est, dtype=float)
    transl_err = np.linalg.norm(t_true - t_est) / np.linalg.norm(t_true)
    return float(rot_err), float(transl_err)


class EPnP:
    """Pose of a pinhole camera from 3D-2D correspondences."""

    def __init__(self, fu, fv, uc, vc):
        self.fu = float(fu)
        self.fv = float(fv)
        self.uc = float(uc)
        self.vc = float(vc)

    def compute_pose(self, world_points, image_points):
        """Return ``(R, t, mean_reprojection_error)`` for the correspondences."""
        pws, us = self._validate(world_points, image_points)
        with np.errstate(divide="ignore", invalid="ignore"):
            cws = self._control_points(pws)
            alphas = self._barycentric(pws, cws)
            M = self._build_m(alphas, us)
            u, _, _ = np.linalg.svd(M.T @ M)
            ut = u.T

            L = self._l_6x10(ut)
            rho = np.array([np.sum((cws[a] - cws[b]) ** 2) for a, b in _PAIRS])

            solutions = []
            for finder in (self._betas_approx_1, self._betas_approx_2, self._betas_approx_3):
                betas = self._gauss_newton(L, rho, finder(L, rho))
                solutions.append(self._r_and_t(ut, betas, alphas, pws, us))

        best = 0
        if solutions[1][2] < solutions[0][2]:
            best = 1
        if solutions[2][2] < solutions[best][2]:
            best = 2
        return solutions[best]

    def reprojection_error(self, R, t, world_points, image_points):
        """Mean pixel distance between projected world points and image points."""
        pws, us = self._validate(world_points, image_points)
        R = np.asarray(R, dtype=float)
        t = np.asarray(t, dtype=float).reshape(3)
        pc = pws @ R.T + t
        inv_z = 1.0 / pc[:, 2]
        ue = self.uc + self.fu * pc[:, 0] * inv_z
        ve = self.vc + self.fv * pc[:, 1] * inv_z
        return float(np.mean(np.hypot(us[:, 0] - ue, us[:, 1] - ve)))

    @staticmethod
    def _validate(world_points, image_points):
        pws = np.asarray(world_points, dtype=float)
        us = np.asarray(image_points, dtype=float)
        if pws.ndim != 2 or pws.shape[1] != 3:
            raise ValueError("world points must have shape (n, 3)")
        if us.ndim != 2 or us.shape[1] != 2:
            raise ValueError("image points must have shape (n, 2)")
        if pws.shape[0] != us.shape[0]:
            raise ValueError("world and image points differ in number")
        if pws.shape[0] == 0:
            raise ValueError("at least one correspondence is required")
        return pws, us

    @staticmethod
    def _control_points(pws):
        n = pws.shape[0]
        centroid = pws.mean(axis=0)
        centered = pws - centroid
        u, dc, _ = np.linalg.svd(centered.T @ centered)
        cws = np.empty((4, 3))
        cws[0] = centroid
        for i in range(1, 4):
            cws[i] = centroid + math.sqrt(dc[i - 1] / n) * u[:, i - 1]
        return cws

    @staticmethod
    def _barycentric(pws, cws):
        cc = (cws[1:] - cws[0]).T
        cc_inv = np.linalg.pinv(cc)
        alphas = np.empty((pws.shape[0], 4))
        alphas[:, 1:] = (pws - cws[0]) @ cc_inv.T
        alphas[:, 0] = 1.0 - alphas[:, 1:].sum(axis=1)
        return alphas

    def _build_m(self, alphas, us):
        n = alphas.shape[0]
        M = np.zeros((n, 2, 4, 3))
        M[:, 0, :, 0] = alphas * self.fu
        M[:, 0, :, 2] = alphas * (self.uc - us[:, 0])[:, None]
        M[:, 1, :, 1] = alphas * self.fv
        M[:, 1, :, 2] = alphas * (self.vc - us[:, 1])[:, None]
        return M.reshape(2 * n, 12)

    @staticmethod
    def _l_6x10(ut):
        v = ut[[11, 10, 9, 8]].reshape(4, 4, 3)
        dv = np.array([[v[i, a] - v[i, b] for a, b in _PAIRS] for i in range(4)])
        L = np.empty((6, 10))
        for col, (a, b) in enumerate(_BETA_PRODUCTS):
            factor = 1.0 if a == b else 2.0
            L[:, col] = factor * np.sum(dv[a] * dv[b], axis=1)
        return L

    @staticmethod
    def _betas_approx_1(L, rho):
        b4 = np.linalg.lstsq(L[:, [0, 1, 3, 6]], rho, rcond=None)[0]
        if b4[0] < 0:
            beta0 = math.sqrt(-b4[0])
            return np.array([beta0, -b4[1] / beta0, -b4[2] / beta0, -b4[3] / beta0])
        beta0 = math.sqrt(b4[0])
        return np.array([beta0, b4[1] / beta0, b4[2] / beta0, b4[3] / beta0])

    @staticmethod
    def _leading_betas(b):
        if b[0] < 0:
            beta0 = math.sqrt(-b[0])
            beta1 = math.sqrt(-b[2]) if b[2] < 0 else 0.0
        else:
            beta0 = math.sqrt(b[0])
            beta1 = math.sqrt(b[2]) if b[2] > 0 else 0.0
        if b[1] < 0:
            beta0 = -beta0
        return beta0, beta1

    def _betas_approx_2(self, L, rho):
        b3 = np.linalg.lstsq(L[:, :3], rho, rcond=None)[0]
        beta0, beta1 = self._leading_betas(b3)
        return np.array([beta0, beta1, 0.0, 0.0])

    def _betas_approx_3(self, L, rho):
        b5 = np.linalg.lstsq(L[:, :5], rho, rcond=None)[0]
        beta0, beta1 = self._leading_betas(b5)
        beta2 = b5[3] / beta0 if beta0 != 0 else math.copysign(math.inf, b5[3]) if b5[3] else math.nan
        return np.array([beta0, beta1, beta2, 0.0])

    @staticmethod
    def _gauss_newton(L, rho, betas):
        betas = np.array(betas, dtype=float)
        for _ in range(_GAUSS_NEWTON_ITERATIONS):
            b0, b1, b2, b3 = betas
            A = np.column_stack((
                2 * L[:, 0] * b0 + L[:, 1] * b1 + L[:, 3] * b2 + L[:, 6] * b3,
                L[:, 1] * b0 + 2 * L[:, 2] * b1 + L[:, 4] * b2 + L[:, 7] * b3,
                L[:, 3] * b0 + L[:, 4] * b1 + 2 * L[:, 5] * b2 + L[:, 8] * b3,
                L[:, 6] * b0 + L[:, 7] * b1 + L[:, 8] * b2 + 2 * L[:, 9] * b3,
            ))
            products = np.array([betas[a] * betas[b] for a, b in _BETA_PRODUCTS])
            residual = rho - L @ products
            try:
                betas = betas + qr_solve(A, residual)
            except np.linalg.LinAlgError:
                break
        return betas

    def _r_and_t(self, ut, betas, alphas, pws, us):
        ccs = sum(betas[i] * ut[11 - i].reshape(4, 3) for i in range(4))
        pcs = alphas @ ccs
        if pcs[0, 2] < 0.0:
            pcs = -pcs

        pc0 = pcs.mean(axis=0)
        pw0 = pws.mean(axis=0)
        abt = (pcs - pc0).T @ (pws - pw0)
        try:
            u, _, vt = np.linalg.svd(abt)
        except np.linalg.LinAlgError:
            nan3 = np.full((3, 3), math.nan)
            return nan3, np.full(3, math.nan), math.inf
        R = u @ vt
        if np.linalg.det(R) < 0:
            R[2] = -R[2]
        t = pc0 - R @ pw0
        error = self.reprojection_error(R, t, pws, us)
        if math.isnan(error):
            error = math.inf
        return R, t, error