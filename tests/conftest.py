"""共通フィクスチャ: 1/4 円環の坑井メッシュと既定モデル."""

from __future__ import annotations

import pytest

from wellbore_cae.config import BoundaryValues, MaterialConfig
from wellbore_cae.mesh.wellbore_mesh import make_wellbore_mesh, write_gmsh
from wellbore_cae.scenario import wellbore_model


@pytest.fixture
def small_geometry():
    """径方向 4 × 周方向 4 の TRI3 メッシュ（内径 1, 外径 5）."""
    return make_wellbore_mesh(1.0, 5.0, 4, 4)


@pytest.fixture
def wellbore_model_default():
    return wellbore_model(BoundaryValues(), MaterialConfig())


@pytest.fixture
def wellbore_msh(tmp_path):
    """gmsh 2.2 形式で書き出した坑井メッシュのパス."""
    geometry = make_wellbore_mesh(1.0, 5.0, 4, 6, grading=2.0)
    return write_gmsh(geometry, tmp_path / "wellbore.msh")
