from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from wellbore_cae.elements.common import (
    TRIANGLE_GAUSS_3,
    area_coordinate_gradients,
    b_matrix,
    planar_dof_indices,
    subdivide_triangle,
)

if TYPE_CHECKING:
    from wellbore_cae.core.constitutive import ConstitutiveProtocol


def _area_coordinates(xi: np.ndarray) -> np.ndarray:
    """自然座標 (L2, L3) → 面積座標 (npts, 3)."""
    xi = np.atleast_2d(np.asarray(xi, dtype=float))
    return np.column_stack([1.0 - xi[:, 0] - xi[:, 1], xi[:, 0], xi[:, 1]])


def tri6_shape_functions(L: np.ndarray) -> np.ndarray:
    """TRI6 形状関数.

    Args:
        L: (npts, 3) 面積座標

    Returns:
        N: (npts, 6)
    """
    L1, L2, L3 = L[:, 0], L[:, 1], L[:, 2]
    return np.column_stack(
        [
            L1 * (2.0 * L1 - 1.0),
            L2 * (2.0 * L2 - 1.0),
            L3 * (2.0 * L3 - 1.0),
            4.0 * L1 * L2,
            4.0 * L2 * L3,
            4.0 * L3 * L1,
        ]
    )


def tri6_shape_derivatives(L: np.ndarray) -> np.ndarray:
    """面積座標に関する形状関数の微分 dN_i/dL_k.

    Returns:
        (npts, 6, 3)
    """
    npts = L.shape[0]
    L1, L2, L3 = L[:, 0], L[:, 1], L[:, 2]
    dN = np.zeros((npts, 6, 3), dtype=float)
    # N1 = L1(2L1-1), N2 = L2(2L2-1), N3 = L3(2L3-1)
    dN[:, 0, 0] = 4.0 * L1 - 1.0
    dN[:, 1, 1] = 4.0 * L2 - 1.0
    dN[:, 2, 2] = 4.0 * L3 - 1.0
    # N4 = 4 L1 L2
    dN[:, 3, 0] = 4.0 * L2
    dN[:, 3, 1] = 4.0 * L1
    # N5 = 4 L2 L3
    dN[:, 4, 1] = 4.0 * L3
    dN[:, 4, 2] = 4.0 * L2
    # N6 = 4 L3 L1
    dN[:, 5, 2] = 4.0 * L1
    dN[:, 5, 0] = 4.0 * L3
    return dN


def _tri6_b(node_xy: np.ndarray, L: np.ndarray) -> tuple[float, np.ndarray]:
    node_xy = np.asarray(node_xy, dtype=float)
    if node_xy.shape != (6, 2):
        raise ValueError("node_xy は (6,2) である必要があります。")
    # 直線辺を仮定し、面積と面積座標の勾配は頂点3点から計算する
    A, gradL = area_coordinate_gradients(node_xy[:3])
    grad_n = tri6_shape_derivatives(L) @ gradL  # (npts, 6, 2)
    return A, b_matrix(grad_n)


def tri6_ke_plane(node_xy: np.ndarray, D: np.ndarray, t: float = 1.0) -> np.ndarray:
    """TRI6（二次三角形）の局所剛性 (12x12).

    節点順:
        1,2,3 : 頂点
        4,5,6 : 各辺の中点 (1-2, 2-3, 3-1)

    Args:
        node_xy: (6,2) 要素節点座標
        D: (3,3) 弾性マトリクス
        t: 厚み

    Returns:
        Ke: (12,12)
    """
    L, w = TRIANGLE_GAUSS_3
    A, B = _tri6_b(node_xy, L)
    Ke = np.einsum("gji,jk,gkl,g->il", B, D, B, w)
    return Ke * A * t


class Tri6PlaneElement:
    """TRI6二次三角形要素（ElementProtocol / FieldElementProtocol 適合）."""

    ndof_per_node: int = 2
    nnodes: int = 6
    ndof: int = 12
    vtk_cell_type: int = 5  # 細分割後のサブセルは VTK_TRIANGLE
    vertex_natural_coords = np.array([[0.0, 0.0], [1.0, 0.0], [0.0, 1.0]])

    def local_stiffness(
        self,
        coords: np.ndarray,
        material: ConstitutiveProtocol,
        thickness: float | None = None,
    ) -> np.ndarray:
        D = material.tangent()
        return tri6_ke_plane(coords, D, 1.0 if thickness is None else thickness)

    def dof_indices(self, node_indices: np.ndarray) -> np.ndarray:
        return planar_dof_indices(node_indices)

    def shape_functions(self, xi: np.ndarray) -> np.ndarray:
        return tri6_shape_functions(_area_coordinates(xi))

    def strain_matrix(self, coords: np.ndarray, xi: np.ndarray) -> np.ndarray:
        _, B = _tri6_b(coords, _area_coordinates(xi))
        return B

    def subdivide(self, level: int) -> tuple[np.ndarray, np.ndarray]:
        return subdivide_triangle(level)
