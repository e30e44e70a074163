"""平面要素（TRI3 / TRI6 / Q4）と境界辺要素（LINE2 / LINE3）のテスト.

- 要素剛性の対称性と剛体モード（零固有値 3 個）
- 線形変位場のパッチテスト（ひずみが厳密に再現される）
- 境界辺の等価節点力
"""

from __future__ import annotations

import numpy as np
import pytest

from wellbore_cae.core.element import (
    EdgeElementProtocol,
    ElementProtocol,
    FieldElementProtocol,
)
from wellbore_cae.elements import (
    Line2Edge,
    Line3Edge,
    Quad4PlaneElement,
    Tri3PlaneElement,
    Tri6PlaneElement,
)
from wellbore_cae.elements.common import subdivide_quad, subdivide_triangle
from wellbore_cae.materials import ElasticMaterialLaw

TRI3_XY = np.array([[0.1, 0.0], [1.2, 0.2], [0.3, 0.9]])
TRI6_XY = np.vstack(
    [
        TRI3_XY,
        0.5 * (TRI3_XY[0] + TRI3_XY[1]),
        0.5 * (TRI3_XY[1] + TRI3_XY[2]),
        0.5 * (TRI3_XY[2] + TRI3_XY[0]),
    ]
)
QUAD_XY = np.array([[0.0, 0.0], [2.0, 0.2], [1.8, 1.5], [-0.1, 1.0]])

ELEMENTS = [
    (Tri3PlaneElement(), TRI3_XY),
    (Tri6PlaneElement(), TRI6_XY),
    (Quad4PlaneElement(), QUAD_XY),
]


def _linear_field(xy: np.ndarray) -> np.ndarray:
    """u = a + G x の節点変位（ひずみ一定）."""
    G = np.array([[1.0e-3, 2.0e-4], [-5.0e-4, 3.0e-3]])
    a = np.array([0.01, -0.02])
    return (a + xy @ G.T).ravel()


@pytest.fixture
def material():
    return ElasticMaterialLaw(1, 1000.0, 0.3)


class TestProtocolCompliance:
    @pytest.mark.parametrize("element, xy", ELEMENTS)
    def test_field_elements(self, element, xy):
        assert isinstance(element, ElementProtocol)
        assert isinstance(element, FieldElementProtocol)
        assert element.ndof == element.nnodes * element.ndof_per_node

    @pytest.mark.parametrize("edge", [Line2Edge(), Line3Edge()])
    def test_edge_elements(self, edge):
        assert isinstance(edge, EdgeElementProtocol)
        assert edge.ndof == 2 * edge.nnodes

    @pytest.mark.parametrize(
        "element", [Tri3PlaneElement(), Tri6PlaneElement(), Quad4PlaneElement(), Line3Edge()]
    )
    def test_dof_indices_interleaved(self, element):
        nodes = np.array([7, 0, 3, 12, 5, 9])[: element.nnodes]
        dofs = element.dof_indices(nodes)
        assert dofs.shape == (element.ndof,)
        np.testing.assert_array_equal(dofs[0::2], 2 * nodes)
        np.testing.assert_array_equal(dofs[1::2], 2 * nodes + 1)


class TestLocalStiffness:
    @pytest.mark.parametrize("element, xy", ELEMENTS)
    def test_symmetric(self, element, xy, material):
        Ke = element.local_stiffness(xy, material)
        assert Ke.shape == (element.ndof, element.ndof)
        np.testing.assert_allclose(Ke, Ke.T, atol=1e-10)

    @pytest.mark.parametrize("element, xy", ELEMENTS)
    def test_three_rigid_body_modes(self, element, xy, material):
        eigs = np.linalg.eigvalsh(element.local_stiffness(xy, material))
        tol = 1e-9 * eigs.max()
        assert np.sum(np.abs(eigs) < tol) == 3
        assert eigs.min() > -tol

    @pytest.mark.parametrize("element, xy", ELEMENTS)
    def test_rigid_rotation_is_stress_free(self, element, xy, material):
        theta = 1.0e-3
        u = (xy @ np.array([[0.0, -theta], [theta, 0.0]]).T).ravel()
        f = element.local_stiffness(xy, material) @ u
        np.testing.assert_allclose(f, 0.0, atol=1e-10)

    def test_inverted_triangle(self, material):
        with pytest.raises(ValueError, match="反転"):
            Tri3PlaneElement().local_stiffness(TRI3_XY[::-1], material)

    def test_inverted_quad(self, material):
        with pytest.raises(ValueError, match="反転"):
            Quad4PlaneElement().local_stiffness(QUAD_XY[::-1], material)

    def test_thickness_scales_stiffness(self, material):
        el = Tri3PlaneElement()
        K1 = el.local_stiffness(TRI3_XY, material)
        K2 = el.local_stiffness(TRI3_XY, material, thickness=2.5)
        np.testing.assert_allclose(K2, 2.5 * K1)


class TestPatch:
    @pytest.mark.parametrize("element, xy", ELEMENTS)
    def test_constant_strain_reproduced(self, element, xy):
        """線形変位場に対して全評価点で同じひずみが得られる."""
        u = _linear_field(xy)
        xi, _ = element.subdivide(2)
        strain = element.strain_matrix(xy, xi) @ u
        expected = np.array([1.0e-3, 3.0e-3, 2.0e-4 - 5.0e-4])
        np.testing.assert_allclose(strain, np.tile(expected, (xi.shape[0], 1)), atol=1e-12)

    @pytest.mark.parametrize("element, xy", ELEMENTS)
    def test_partition_of_unity(self, element, xy):
        xi, _ = element.subdivide(3)
        N = element.shape_functions(xi)
        np.testing.assert_allclose(N.sum(axis=1), 1.0)
        # 頂点の自然座標では節点補間（クロネッカーのデルタ）
        Nv = element.shape_functions(element.vertex_natural_coords)
        nv = element.vertex_natural_coords.shape[0]
        np.testing.assert_allclose(Nv[:, :nv], np.eye(nv), atol=1e-14)

    @pytest.mark.parametrize("element, xy", ELEMENTS)
    def test_geometry_interpolation(self, element, xy):
        """頂点の自然座標は要素の頂点に写像される."""
        N = element.shape_functions(element.vertex_natural_coords)
        nv = element.vertex_natural_coords.shape[0]
        np.testing.assert_allclose(N @ xy, xy[:nv], atol=1e-14)


class TestSubdivision:
    @pytest.mark.parametrize("level", [0, 1, 3])
    def test_triangle_counts(self, level):
        n = level + 1
        xi, cells = subdivide_triangle(level)
        assert xi.shape == ((n + 1) * (n + 2) // 2, 2)
        assert cells.shape == (n * n, 3)

    @pytest.mark.parametrize("level", [0, 2])
    def test_quad_counts(self, level):
        n = level + 1
        xi, cells = subdivide_quad(level)
        assert xi.shape == ((n + 1) ** 2, 2)
        assert cells.shape == (n * n, 4)

    def test_negative_level(self):
        with pytest.raises(ValueError, match="細分割レベル"):
            subdivide_triangle(-1)


class TestEdgeElements:
    def test_line2_uniform_traction(self):
        xy = np.array([[0.0, 0.0], [2.0, 0.0]])
        fe = Line2Edge().traction_load(xy, np.array([0.0, -3.0]))
        np.testing.assert_allclose(fe, [0.0, -3.0, 0.0, -3.0])

    def test_line3_uniform_traction(self):
        """二次辺の等価節点力は 1/6, 1/6, 2/3 に配分される."""
        xy = np.array([[0.0, 0.0], [0.0, 3.0], [0.0, 1.5]])
        fe = Line3Edge().traction_load(xy, np.array([2.0, 0.0]))
        np.testing.assert_allclose(fe[0::2], [1.0, 1.0, 4.0])
        np.testing.assert_allclose(fe[1::2], 0.0, atol=1e-14)

    def test_outward_normal(self):
        # 辺の向き (0,0)→(1,0) で領域は左側（y > 0）にあるので、外向き法線は −y
        xy = np.array([[0.0, 0.0], [1.0, 0.0]])
        np.testing.assert_allclose(Line2Edge().outward_normal(xy), [0.0, -1.0])

    def test_spring_stiffness_total(self):
        xy = np.array([[0.0, 0.0], [4.0, 0.0]])
        C = np.array([[5.0, 0.0], [0.0, 0.0]])
        Ks = Line2Edge().spring_stiffness(xy, C)
        # 一様変位 ux=1 に対する総反力 = k * L
        u = np.array([1.0, 0.0, 1.0, 0.0])
        assert (Ks @ u)[0::2].sum() == pytest.approx(20.0)
        np.testing.assert_allclose(Ks, Ks.T)

    def test_zero_length_edge(self):
        xy = np.array([[1.0, 1.0], [1.0, 1.0]])
        with pytest.raises(ValueError, match="長さゼロ"):
            Line2Edge().traction_load(xy, np.array([1.0, 0.0]))
