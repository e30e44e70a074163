from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from wellbore_cae.elements.common import (
    area_coordinate_gradients,
    b_matrix,
    planar_dof_indices,
    subdivide_triangle,
)

if TYPE_CHECKING:
    from wellbore_cae.core.constitutive import ConstitutiveProtocol


def tri3_ke_plane(node_xy: np.ndarray, D: np.ndarray, t: float = 1.0) -> np.ndarray:
    """TRI3（一次三角形, 定ひずみ）の局所剛性 (6x6)。

    Args:
        node_xy: (3,2) 要素節点座標（反時計回り）
        D: 弾性マトリクス (3,3)
        t: 厚み

    Returns:
        Ke: (6,6)
    """
    node_xy = np.asarray(node_xy, dtype=float)
    if node_xy.shape != (3, 2):
        raise ValueError("node_xy は (3,2) である必要があります。")

    A, gradL = area_coordinate_gradients(node_xy)
    B = b_matrix(gradL)
    return (B.T @ D @ B) * A * t


class Tri3PlaneElement:
    """TRI3一次三角形要素（平面ひずみ/平面応力は材料の D に依存）.

    自然座標 xi = (L2, L3)。節点順は頂点 1, 2, 3（反時計回り）。
    """

    ndof_per_node: int = 2
    nnodes: int = 3
    ndof: int = 6
    vtk_cell_type: int = 5  # VTK_TRIANGLE
    vertex_natural_coords = np.array([[0.0, 0.0], [1.0, 0.0], [0.0, 1.0]])

    def local_stiffness(
        self,
        coords: np.ndarray,
        material: ConstitutiveProtocol,
        thickness: float | None = None,
    ) -> np.ndarray:
        D = material.tangent()
        return tri3_ke_plane(coords, D, 1.0 if thickness is None else thickness)

    def dof_indices(self, node_indices: np.ndarray) -> np.ndarray:
        return planar_dof_indices(node_indices)

    def shape_functions(self, xi: np.ndarray) -> np.ndarray:
        xi = np.atleast_2d(np.asarray(xi, dtype=float))
        return np.column_stack([1.0 - xi[:, 0] - xi[:, 1], xi[:, 0], xi[:, 1]])

    def strain_matrix(self, coords: np.ndarray, xi: np.ndarray) -> np.ndarray:
        xi = np.atleast_2d(np.asarray(xi, dtype=float))
        _, gradL = area_coordinate_gradients(np.asarray(coords, dtype=float))
        B = b_matrix(gradL)
        return np.broadcast_to(B, (xi.shape[0],) + B.shape).copy()

    def subdivide(self, level: int) -> tuple[np.ndarray, np.ndarray]:
        return subdivide_triangle(level)
