"""wellbore_cae.core - 要素・構成則・バックエンドの抽象インタフェース定義・戻り値型.

Protocol 階層:
  ElementProtocol          — 線形弾性アセンブリ用（local_stiffness + dof_indices）
  FieldElementProtocol     — 後処理用（+ shape_functions, strain_matrix, subdivide）
  EdgeElementProtocol      — 境界辺（traction_load, spring_stiffness）
  ConstitutiveProtocol     — 構成則最小限（tangent のみ）
  MaterialLawProtocol      — 領域タグ付き材料則（+ stress, フィールド名）
  FiniteElementBackend     — 空間生成・組み立て・分解・フィールド評価
"""

from wellbore_cae.core.backend import FiniteElementBackend
from wellbore_cae.core.constitutive import ConstitutiveProtocol, MaterialLawProtocol
from wellbore_cae.core.element import (
    EdgeElementProtocol,
    ElementProtocol,
    FieldElementProtocol,
)
from wellbore_cae.core.results import (
    AssembledSystem,
    DirichletResult,
    FieldData,
    GraphMesh,
)

__all__ = [
    "ElementProtocol",
    "FieldElementProtocol",
    "EdgeElementProtocol",
    "ConstitutiveProtocol",
    "MaterialLawProtocol",
    "FiniteElementBackend",
    "AssembledSystem",
    "DirichletResult",
    "FieldData",
    "GraphMesh",
]
