"""全体剛性・境界条件の組み立てと ScipyBackend.assemble のテスト."""

from __future__ import annotations

import numpy as np
import pytest

from wellbore_cae.analysis import EquilibriumAnalysis
from wellbore_cae.assembly import assemble_boundary, assemble_stiffness
from wellbore_cae.backend import ScipyBackend
from wellbore_cae.cmesh import build_computational_mesh
from wellbore_cae.errors import AssemblyError
from wellbore_cae.mesh.geometry import ElementBlock, Geometry
from wellbore_cae.mesh.wellbore_mesh import make_wellbore_mesh
from wellbore_cae.model import ConditionKind, MaterialModel
from wellbore_cae.space import build_space


def _square_with_lines(extra_node: bool = False) -> Geometry:
    nodes = [[0.0, 0.0], [1.0, 0.0], [1.0, 1.0], [0.0, 1.0]]
    if extra_node:
        nodes.append([3.0, 3.0])
    return Geometry(
        nodes=np.array(nodes),
        blocks=[
            ElementBlock("triangle", [[0, 1, 2], [0, 2, 3]], [1, 1]),
            ElementBlock("line", [[0, 1], [1, 2], [2, 3], [3, 0]], [2, 3, 4, 5]),
        ],
    )


def _traction_only_model() -> MaterialModel:
    model = MaterialModel()
    model.register_material(1, 100.0, 0.3)
    for tag in (2, 3, 4, 5):
        model.register_boundary_condition(tag, ConditionKind.NORMAL_TRACTION, val2=[-1.0, 0.0])
    return model


class TestAssembleStiffness:
    def test_symmetric_positive_semidefinite(self, small_geometry, wellbore_model_default):
        space = build_space(small_geometry, 2)
        K = assemble_stiffness(
            space.nodes,
            space.domain_groups,
            wellbore_model_default.materials,
            show_progress=False,
        )
        Kd = K.toarray()
        assert K.shape == (space.n_dofs, space.n_dofs)
        np.testing.assert_allclose(Kd, Kd.T, atol=1e-9 * np.abs(Kd).max())
        eigs = np.linalg.eigvalsh(Kd)
        assert eigs.min() > -1e-9 * eigs.max()
        assert np.sum(np.abs(eigs) < 1e-9 * eigs.max()) == 3

    def test_thread_count_does_not_change_result(self, wellbore_model_default):
        geom = make_wellbore_mesh(1.0, 5.0, 16, 16)
        space = build_space(geom, 1)
        assert space.n_elements >= 512
        mats = wellbore_model_default.materials
        K1 = assemble_stiffness(space.nodes, space.domain_groups, mats, show_progress=False)
        K4 = assemble_stiffness(
            space.nodes, space.domain_groups, mats, n_threads=4, show_progress=False
        )
        np.testing.assert_array_equal(K1.toarray(), K4.toarray())

    def test_progress_line(self, small_geometry, wellbore_model_default, capsys):
        space = build_space(small_geometry, 1)
        assemble_stiffness(space.nodes, space.domain_groups, wellbore_model_default.materials)
        assert "[assemble] K:" in capsys.readouterr().out


class TestAssembleBoundary:
    def test_wall_pressure_resultant(self, small_geometry, wellbore_model_default):
        """坑壁の圧力 10 の合力は 1/4 円弧の射影長 × 10（x, y とも）."""
        space = build_space(small_geometry, 2)
        bd = assemble_boundary(
            space.nodes, space.boundary_groups, wellbore_model_default.boundary_conditions
        )
        assert bd.f_ext[0::2].sum() == pytest.approx(10.0)
        assert bd.f_ext[1::2].sum() == pytest.approx(10.0)
        assert bd.K_spring.nnz == 0

    def test_symmetry_planes_constrained(self, small_geometry, wellbore_model_default):
        space = build_space(small_geometry, 1)
        bd = assemble_boundary(
            space.nodes, space.boundary_groups, wellbore_model_default.boundary_conditions
        )
        x_fixed = bd.fixed_dofs[bd.fixed_dofs % 2 == 0] // 2
        y_fixed = bd.fixed_dofs[bd.fixed_dofs % 2 == 1] // 2
        np.testing.assert_allclose(space.nodes[x_fixed, 0], 0.0, atol=1e-12)
        np.testing.assert_allclose(space.nodes[y_fixed, 1], 0.0, atol=1e-12)
        np.testing.assert_array_equal(bd.fixed_values, 0.0)
        assert np.all(np.diff(bd.fixed_dofs) > 0)

    def test_later_tag_wins_on_shared_node(self):
        model = MaterialModel()
        model.register_material(1, 100.0, 0.3)
        model.register_boundary_condition(2, ConditionKind.DISPLACEMENT, val2=[1.0, 0.0])
        model.register_boundary_condition(3, ConditionKind.DISPLACEMENT, val2=[2.0, 0.5])
        model.register_boundary_condition(4, ConditionKind.TRACTION, val2=[0.0, 0.0])
        model.register_boundary_condition(5, ConditionKind.TRACTION, val2=[0.0, 0.0])
        space = build_space(_square_with_lines(), 1)
        bd = assemble_boundary(space.nodes, space.boundary_groups, model.boundary_conditions)
        values = dict(zip(bd.fixed_dofs.tolist(), bd.fixed_values.tolist(), strict=True))
        assert values[0] == 1.0  # 節点 0 ux（タグ 2 のみ）
        assert values[2] == 2.0  # 節点 1 ux（タグ 2, 3 の共有 → 3 が優先）
        assert values[5] == 0.5  # 節点 2 uy

    def test_spring_boundary(self):
        model = MaterialModel()
        model.register_material(1, 100.0, 0.3)
        model.register_boundary_condition(
            2, ConditionKind.SPRING, val1=np.diag([10.0, 10.0]), val2=[0.0, 0.0]
        )
        for tag in (3, 4, 5):
            model.register_boundary_condition(tag, ConditionKind.TRACTION)
        space = build_space(_square_with_lines(), 1)
        bd = assemble_boundary(space.nodes, space.boundary_groups, model.boundary_conditions)
        assert bd.K_spring.nnz > 0
        assert bd.fixed_dofs.size == 0
        Ks = bd.K_spring.toarray()
        np.testing.assert_allclose(Ks, Ks.T)


class TestScipyBackendAssemble:
    def test_rhs_orientation(self, small_geometry, wellbore_model_default):
        """u = 0 では r = −f_ext（自由 DOF）、拘束 DOF では r = u − ū."""
        cmesh = build_computational_mesh(small_geometry, wellbore_model_default, 1)
        backend = ScipyBackend()
        system = backend.assemble(cmesh, np.zeros(cmesh.n_dofs))
        bd = assemble_boundary(
            cmesh.nodes, cmesh.space.boundary_groups, cmesh.boundary_conditions
        )
        free = np.setdiff1d(np.arange(cmesh.n_dofs), bd.fixed_dofs)
        np.testing.assert_allclose(system.rhs[free], -bd.f_ext[free])
        np.testing.assert_allclose(system.rhs[bd.fixed_dofs], 0.0)
        np.testing.assert_array_equal(system.fixed_dofs, bd.fixed_dofs)
        Kd = system.stiffness.toarray()
        np.testing.assert_allclose(Kd[bd.fixed_dofs][:, bd.fixed_dofs], np.eye(bd.fixed_dofs.size))

    def test_matrix_key_stable(self, small_geometry, wellbore_model_default):
        cmesh = build_computational_mesh(small_geometry, wellbore_model_default, 1)
        backend = ScipyBackend()
        u = np.zeros(cmesh.n_dofs)
        k1 = backend.assemble(cmesh, u).matrix_key
        k2 = backend.assemble(cmesh, u + 1.0).matrix_key
        assert k1 == k2

    def test_residual_zero_at_fixed_dofs(self, small_geometry, wellbore_model_default):
        cmesh = build_computational_mesh(small_geometry, wellbore_model_default, 1)
        rng = np.random.default_rng(0)
        res = ScipyBackend().assemble_residual(cmesh, rng.standard_normal(cmesh.n_dofs))
        fixed = ScipyBackend().assemble(cmesh, np.zeros(cmesh.n_dofs)).fixed_dofs
        np.testing.assert_array_equal(res[fixed], 0.0)

    def test_rigid_body_modes_detected(self, small_geometry):
        cmesh = build_computational_mesh(small_geometry, _traction_only_model(), 1)
        with pytest.raises(AssemblyError, match="剛体モード"):
            ScipyBackend().assemble(cmesh, np.zeros(cmesh.n_dofs))

    def test_rigid_body_error_from_analysis_has_context(self, small_geometry):
        cmesh = build_computational_mesh(small_geometry, _traction_only_model(), 1)
        analysis = EquilibriumAnalysis(cmesh, show_progress=False)
        with pytest.raises(AssemblyError) as info:
            analysis.run()
        assert info.value.iteration == 0
        assert info.value.n_dofs == cmesh.n_dofs
        np.testing.assert_array_equal(analysis.u, 0.0)

    def test_unconnected_dof_detected(self):
        model = MaterialModel()
        model.register_material(1, 100.0, 0.3)
        for tag in (2, 3, 4, 5):
            model.register_boundary_condition(tag, ConditionKind.DISPLACEMENT)
        cmesh = build_computational_mesh(_square_with_lines(extra_node=True), model, 1)
        with pytest.raises(AssemblyError, match="接続されていない"):
            ScipyBackend().assemble(cmesh, np.zeros(cmesh.n_dofs))
