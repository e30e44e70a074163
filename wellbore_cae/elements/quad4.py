from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from wellbore_cae.elements.common import b_matrix, planar_dof_indices, subdivide_quad

if TYPE_CHECKING:
    from wellbore_cae.core.constitutive import ConstitutiveProtocol

_G = 1.0 / np.sqrt(3.0)
_GAUSS_2x2 = np.array([(-_G, -_G), (_G, -_G), (_G, _G), (-_G, _G)])


def quad4_shape_derivatives(xi: np.ndarray) -> np.ndarray:
    """自然座標に関する形状関数の微分.

    Args:
        xi: (npts, 2) 自然座標 (ξ, η)

    Returns:
        (npts, 4, 2) [dN/dξ, dN/dη]
    """
    x = xi[:, 0]
    e = xi[:, 1]
    dN = np.empty((xi.shape[0], 4, 2), dtype=float)
    dN[:, :, 0] = 0.25 * np.column_stack([-(1 - e), (1 - e), (1 + e), -(1 + e)])
    dN[:, :, 1] = 0.25 * np.column_stack([-(1 - x), -(1 + x), (1 + x), (1 - x)])
    return dN


def _quad4_b(node_xy: np.ndarray, xi: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    node_xy = np.asarray(node_xy, dtype=float)
    if node_xy.shape != (4, 2):
        raise ValueError("node_xy は (4,2) である必要があります。")
    dN = quad4_shape_derivatives(xi)
    # J[g] = [[dx/dξ, dy/dξ], [dx/dη, dy/dη]]
    J = np.einsum("gia,ib->gab", dN, node_xy)
    detJ = J[:, 0, 0] * J[:, 1, 1] - J[:, 0, 1] * J[:, 1, 0]
    if np.any(detJ <= 0.0):
        raise ValueError(f"detJ<=0（反転）の可能性。detJ={detJ.min():.3e}")
    grad_n = np.linalg.solve(J[:, None, :, :], dN[..., None])[..., 0]  # (npts, 4, 2)
    return detJ, b_matrix(grad_n)


def quad4_ke_plane(node_xy: np.ndarray, D: np.ndarray, t: float = 1.0) -> np.ndarray:
    """Q4一次要素の局所剛性マトリクスを返す（2x2 ガウス積分）。

    Args:
        node_xy: 要素節点座標 (4,2)。節点順は (-1,-1),(+1,-1),(+1,+1),(-1,+1) を仮定。
        D: 弾性マトリクス (3,3)
        t: 厚み

    Returns:
        Ke: (8,8) 局所剛性
    """
    detJ, B = _quad4_b(node_xy, _GAUSS_2x2)
    return np.einsum("gji,jk,gkl,g->il", B, D, B, detJ) * t


class Quad4PlaneElement:
    """Q4 双一次四角形要素（ElementProtocol / FieldElementProtocol 適合）."""

    ndof_per_node: int = 2
    nnodes: int = 4
    ndof: int = 8
    vtk_cell_type: int = 9  # VTK_QUAD
    vertex_natural_coords = np.array([[-1.0, -1.0], [1.0, -1.0], [1.0, 1.0], [-1.0, 1.0]])

    def local_stiffness(
        self,
        coords: np.ndarray,
        material: ConstitutiveProtocol,
        thickness: float | None = None,
    ) -> np.ndarray:
        D = material.tangent()
        return quad4_ke_plane(coords, D, 1.0 if thickness is None else thickness)

    def dof_indices(self, node_indices: np.ndarray) -> np.ndarray:
        return planar_dof_indices(node_indices)

    def shape_functions(self, xi: np.ndarray) -> np.ndarray:
        xi = np.atleast_2d(np.asarray(xi, dtype=float))
        x = xi[:, 0]
        e = xi[:, 1]
        return 0.25 * np.column_stack(
            [(1 - x) * (1 - e), (1 + x) * (1 - e), (1 + x) * (1 + e), (1 - x) * (1 + e)]
        )

    def strain_matrix(self, coords: np.ndarray, xi: np.ndarray) -> np.ndarray:
        _, B = _quad4_b(coords, np.atleast_2d(np.asarray(xi, dtype=float)))
        return B

    def subdivide(self, level: int) -> tuple[np.ndarray, np.ndarray]:
        return subdivide_quad(level)
