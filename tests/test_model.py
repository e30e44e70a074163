"""材料則・境界条件モデル（MaterialModel）のテスト."""

from __future__ import annotations

import numpy as np
import pytest

from wellbore_cae.core.constitutive import ConstitutiveProtocol, MaterialLawProtocol
from wellbore_cae.errors import (
    DuplicateBoundaryError,
    DuplicateRegionError,
    ModelError,
    ModelFrozenError,
    UnresolvedTagError,
)
from wellbore_cae.materials import (
    ElasticMaterialLaw,
    PlaneMode,
    constitutive_plane_strain,
    constitutive_plane_stress,
)
from wellbore_cae.model import BoundaryCondition, ConditionKind, MaterialModel


class TestElasticMaterialLaw:
    def test_protocol_compliance(self):
        law = ElasticMaterialLaw(1, 29269.0, 0.203)
        assert isinstance(law, ConstitutiveProtocol)
        assert isinstance(law, MaterialLawProtocol)

    def test_plane_strain_tangent(self):
        E, nu = 200.0, 0.25
        law = ElasticMaterialLaw(1, E, nu, "plane_strain")
        np.testing.assert_allclose(law.tangent(), constitutive_plane_strain(E, nu))
        lam = E * nu / ((1 + nu) * (1 - 2 * nu))
        mu = E / (2 * (1 + nu))
        assert law.tangent()[0, 0] == pytest.approx(lam + 2 * mu)
        assert law.tangent()[2, 2] == pytest.approx(mu)

    def test_plane_stress_tangent(self):
        law = ElasticMaterialLaw(1, 100.0, 0.3, PlaneMode.PLANE_STRESS)
        np.testing.assert_allclose(law.tangent(), constitutive_plane_stress(100.0, 0.3))

    def test_out_of_plane_stress(self):
        stress = np.array([[2.0, 4.0, 1.0]])
        strain_law = ElasticMaterialLaw(1, 100.0, 0.25, PlaneMode.PLANE_STRAIN)
        stress_law = ElasticMaterialLaw(1, 100.0, 0.25, PlaneMode.PLANE_STRESS)
        np.testing.assert_allclose(strain_law.out_of_plane_stress(stress), [1.5])
        np.testing.assert_allclose(stress_law.out_of_plane_stress(stress), [0.0])

    @pytest.mark.parametrize("E, nu", [(0.0, 0.2), (-1.0, 0.2), (100.0, 0.5), (100.0, -1.0)])
    def test_invalid_constants(self, E, nu):
        with pytest.raises(ValueError):
            ElasticMaterialLaw(1, E, nu)

    def test_tangent_read_only(self):
        law = ElasticMaterialLaw(1, 100.0, 0.3)
        with pytest.raises(ValueError):
            law.tangent()[0, 0] = 0.0


class TestConditionKind:
    def test_codes(self):
        assert ConditionKind(5) is ConditionKind.NORMAL_TRACTION
        assert ConditionKind(7) is ConditionKind.DISPLACEMENT_X
        assert ConditionKind(8) is ConditionKind.DISPLACEMENT_Y

    def test_constrained_components(self):
        assert ConditionKind.DISPLACEMENT.constrained_components == (0, 1)
        assert ConditionKind.DISPLACEMENT_X.constrained_components == (0,)
        assert ConditionKind.DISPLACEMENT_Y.constrained_components == (1,)
        assert ConditionKind.NORMAL_TRACTION.constrained_components == ()
        assert not ConditionKind.SPRING.is_essential

    def test_unknown_code(self):
        with pytest.raises(ValueError):
            ConditionKind(3)


class TestMaterialModelRegistration:
    def test_register_and_lookup(self):
        model = MaterialModel()
        law = model.register_material(1, 29269.0, 0.203)
        bc = model.register_boundary_condition(
            2, ConditionKind.NORMAL_TRACTION, val2=[-10.0, 0.0]
        )
        assert model.material(1) is law
        assert model.boundary_condition(2) is bc
        assert bc.material_tag == 1
        np.testing.assert_array_equal(bc.val2, [-10.0, 0.0])
        np.testing.assert_array_equal(bc.val1, np.zeros((2, 2)))

    def test_val2_column_vector_accepted(self):
        model = MaterialModel()
        model.register_material(1, 100.0, 0.3)
        bc = model.register_boundary_condition(2, 5, val2=np.array([[-10.0], [0.0]]))
        assert bc.kind is ConditionKind.NORMAL_TRACTION
        np.testing.assert_array_equal(bc.val2, [-10.0, 0.0])

    def test_duplicate_material(self):
        model = MaterialModel()
        model.register_material(1, 100.0, 0.3)
        with pytest.raises(DuplicateRegionError, match="登録済み") as info:
            model.register_material(1, 200.0, 0.3)
        assert info.value.tag == 1

    def test_duplicate_boundary(self):
        model = MaterialModel()
        model.register_material(1, 100.0, 0.3)
        model.register_boundary_condition(2, ConditionKind.DISPLACEMENT_X)
        with pytest.raises(DuplicateBoundaryError):
            model.register_boundary_condition(2, ConditionKind.DISPLACEMENT_Y)

    def test_tag_shared_material_then_boundary(self):
        """材料則を先に登録したタグを境界条件に使うと拒否される."""
        model = MaterialModel()
        model.register_material(1, 100.0, 0.3)
        with pytest.raises(DuplicateRegionError, match="材料則に使用"):
            model.register_boundary_condition(1, ConditionKind.DISPLACEMENT_X)

    def test_tag_shared_boundary_then_material(self):
        """境界条件を先に登録したタグを材料則に使うと拒否される."""
        model = MaterialModel()
        model.register_material(1, 100.0, 0.3)
        model.register_boundary_condition(2, ConditionKind.DISPLACEMENT_X)
        with pytest.raises(DuplicateRegionError, match="境界条件に使用"):
            model.register_material(2, 100.0, 0.3)

    def test_duplicate_errors_are_model_errors(self):
        assert issubclass(DuplicateBoundaryError, DuplicateRegionError)
        assert issubclass(DuplicateRegionError, ModelError)
        assert issubclass(ModelError, ValueError)

    def test_boundary_without_material(self):
        model = MaterialModel()
        with pytest.raises(UnresolvedTagError, match="material_tag"):
            model.register_boundary_condition(2, ConditionKind.DISPLACEMENT_X)

    def test_boundary_needs_explicit_material_when_ambiguous(self):
        model = MaterialModel()
        model.register_material(1, 100.0, 0.3)
        model.register_material(6, 200.0, 0.3)
        with pytest.raises(UnresolvedTagError):
            model.register_boundary_condition(2, ConditionKind.DISPLACEMENT_X)
        bc = model.register_boundary_condition(2, ConditionKind.DISPLACEMENT_X, material_tag=6)
        assert bc.material_tag == 6

    def test_unknown_material_tag(self):
        model = MaterialModel()
        model.register_material(1, 100.0, 0.3)
        with pytest.raises(UnresolvedTagError) as info:
            model.register_boundary_condition(2, ConditionKind.DISPLACEMENT_X, material_tag=9)
        assert info.value.tag == 9
        assert info.value.entity == "material"

    def test_lookup_unregistered(self):
        model = MaterialModel()
        with pytest.raises(UnresolvedTagError, match="領域タグ 3"):
            model.material(3)
        with pytest.raises(UnresolvedTagError, match="境界タグ 4"):
            model.boundary_condition(4)

    def test_non_finite_values_rejected(self):
        model = MaterialModel()
        model.register_material(1, 100.0, 0.3)
        with pytest.raises(ValueError, match="非有限"):
            model.register_boundary_condition(2, ConditionKind.TRACTION, val2=[np.nan, 0.0])

    def test_bad_val_shapes(self):
        with pytest.raises(ValueError, match="val1"):
            BoundaryCondition(2, ConditionKind.SPRING, 1, val1=np.zeros(3))
        with pytest.raises(ValueError, match="val2"):
            BoundaryCondition(2, ConditionKind.TRACTION, 1, val2=np.zeros(3))


class TestMaterialModelFreeze:
    def test_frozen_model_rejects_registration(self):
        model = MaterialModel()
        model.register_material(1, 100.0, 0.3)
        model.freeze()
        assert model.frozen
        with pytest.raises(ModelFrozenError):
            model.register_material(6, 100.0, 0.3)
        with pytest.raises(ModelFrozenError):
            model.register_boundary_condition(2, ConditionKind.DISPLACEMENT_X)

    def test_views_are_read_only(self):
        model = MaterialModel()
        model.register_material(1, 100.0, 0.3)
        with pytest.raises(TypeError):
            model.materials[2] = model.material(1)  # type: ignore[index]

    def test_summary_lists_registrations(self, wellbore_model_default):
        text = wellbore_model_default.summary()
        assert "E=29269" in text
        assert "NORMAL_TRACTION(5)" in text
        assert "DISPLACEMENT_Y(8)" in text
