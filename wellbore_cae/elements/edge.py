"""境界辺要素（LINE2 / LINE3）.

表面力 t の等価節点力 ∫ Nᵀ t ds と分布ばね ∫ Nᵀ C N ds を計算する。
節点順は [端点0, 端点1]（LINE3 では末尾に中点）。辺の向きは領域が左側に
なるように揃えてある前提で、外向き法線は (dy, -dx) / L となる。
"""

from __future__ import annotations

import numpy as np

from wellbore_cae.elements.common import LINE_GAUSS_3, planar_dof_indices


def _line_shape(s: np.ndarray, nnodes: int) -> tuple[np.ndarray, np.ndarray]:
    """1 次元形状関数とその微分（s ∈ [-1, 1]）."""
    if nnodes == 2:
        N = np.column_stack([0.5 * (1.0 - s), 0.5 * (1.0 + s)])
        dN = np.column_stack([np.full_like(s, -0.5), np.full_like(s, 0.5)])
    else:
        N = np.column_stack([0.5 * s * (s - 1.0), 0.5 * s * (s + 1.0), 1.0 - s * s])
        dN = np.column_stack([s - 0.5, s + 0.5, -2.0 * s])
    return N, dN


class _EdgeElement:
    nnodes: int = 2

    @property
    def ndof(self) -> int:
        return 2 * self.nnodes

    def _quadrature(self, coords: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        coords = np.asarray(coords, dtype=float)
        if coords.shape != (self.nnodes, 2):
            raise ValueError(f"coords は ({self.nnodes},2) である必要があります: {coords.shape}")
        s, w = LINE_GAUSS_3
        N, dN = _line_shape(s, self.nnodes)
        tangent = dN @ coords
        jac = np.linalg.norm(tangent, axis=1)
        if np.any(jac <= 0.0):
            raise ValueError("長さゼロの境界辺があります。")
        return N, w * jac

    def _n_matrix(self, N: np.ndarray) -> np.ndarray:
        """(npts, 2, ndof) の補間行列."""
        Nm = np.zeros((N.shape[0], 2, self.ndof), dtype=float)
        Nm[:, 0, 0::2] = N
        Nm[:, 1, 1::2] = N
        return Nm

    def traction_load(self, coords: np.ndarray, traction: np.ndarray) -> np.ndarray:
        N, wj = self._quadrature(coords)
        traction = np.asarray(traction, dtype=float)
        fe = np.zeros(self.ndof, dtype=float)
        fe[0::2] = (N * wj[:, None]).sum(axis=0) * traction[0]
        fe[1::2] = (N * wj[:, None]).sum(axis=0) * traction[1]
        return fe

    def spring_stiffness(self, coords: np.ndarray, coefficients: np.ndarray) -> np.ndarray:
        N, wj = self._quadrature(coords)
        Nm = self._n_matrix(N)
        C = np.asarray(coefficients, dtype=float)
        return np.einsum("gai,ab,gbj,g->ij", Nm, C, Nm, wj)

    def outward_normal(self, coords: np.ndarray) -> np.ndarray:
        coords = np.asarray(coords, dtype=float)
        d = coords[1] - coords[0]
        length = float(np.hypot(d[0], d[1]))
        if length == 0.0:
            raise ValueError("長さゼロの境界辺があります。")
        return np.array([d[1], -d[0]]) / length

    def dof_indices(self, node_indices: np.ndarray) -> np.ndarray:
        return planar_dof_indices(node_indices)


class Line2Edge(_EdgeElement):
    """一次境界辺."""

    nnodes = 2


class Line3Edge(_EdgeElement):
    """二次境界辺（節点順: 端点0, 端点1, 中点）."""

    nnodes = 3
