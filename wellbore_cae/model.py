"""材料則・境界条件モデル.

領域タグ → 材料則、境界タグ → 境界条件 の明示的な対応表を保持する。
登録は計算メッシュ構築前に一度だけ行い、構築時に凍結される。

境界条件の種類（ConditionKind）:
  DISPLACEMENT     (0): 規定変位ベクトル u = val2
  TRACTION         (1): 規定表面力ベクトル t = val2
  SPRING           (2): 混合条件 t = val2 - val1 @ u
  NORMAL_TRACTION  (5): 法線方向表面力 t = val2[0] * n （n: 外向き法線、負値で圧縮）
  DISPLACEMENT_X   (7): x 方向変位のみ規定 ux = val2[0]
  DISPLACEMENT_Y   (8): y 方向変位のみ規定 uy = val2[1]

既定の境界条件は存在しない。ジオメトリ上の境界タグは全て明示的に登録する必要がある。
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import IntEnum
from types import MappingProxyType

import numpy as np

from wellbore_cae.errors import (
    DuplicateBoundaryError,
    DuplicateRegionError,
    ModelFrozenError,
    UnresolvedTagError,
)
from wellbore_cae.materials.elastic import ElasticMaterialLaw, PlaneMode


class ConditionKind(IntEnum):
    """境界条件の種類コード."""

    DISPLACEMENT = 0
    TRACTION = 1
    SPRING = 2
    NORMAL_TRACTION = 5
    DISPLACEMENT_X = 7
    DISPLACEMENT_Y = 8

    @property
    def is_essential(self) -> bool:
        """変位を規定する（Dirichlet 型の）条件なら True."""
        return self in (
            ConditionKind.DISPLACEMENT,
            ConditionKind.DISPLACEMENT_X,
            ConditionKind.DISPLACEMENT_Y,
        )

    @property
    def constrained_components(self) -> tuple[int, ...]:
        """規定される変位成分（0=x, 1=y）."""
        if self is ConditionKind.DISPLACEMENT:
            return (0, 1)
        if self is ConditionKind.DISPLACEMENT_X:
            return (0,)
        if self is ConditionKind.DISPLACEMENT_Y:
            return (1,)
        return ()


@dataclass(frozen=True, eq=False)
class BoundaryCondition:
    """境界条件.

    Attributes:
        boundary_tag: 境界タグ
        kind: 境界条件の種類
        material_tag: 付随する材料則の領域タグ
        val1: (2, 2) 係数行列（SPRING でのみ使用）
        val2: (2,) 値ベクトル
    """

    boundary_tag: int
    kind: ConditionKind
    material_tag: int
    val1: np.ndarray = field(default_factory=lambda: np.zeros((2, 2)))
    val2: np.ndarray = field(default_factory=lambda: np.zeros(2))

    def __post_init__(self) -> None:
        val1 = np.array(self.val1, dtype=float, copy=True)
        val2 = np.array(self.val2, dtype=float, copy=True).ravel()
        if val1.shape != (2, 2):
            raise ValueError(f"val1 は (2, 2) が必要: {val1.shape}")
        if val2.shape != (2,):
            raise ValueError(f"val2 は 2 成分が必要: {val2.shape}")
        if not (np.all(np.isfinite(val1)) and np.all(np.isfinite(val2))):
            raise ValueError(f"境界タグ {self.boundary_tag} の係数に非有限値があります。")
        val1.setflags(write=False)
        val2.setflags(write=False)
        object.__setattr__(self, "boundary_tag", int(self.boundary_tag))
        object.__setattr__(self, "kind", ConditionKind(self.kind))
        object.__setattr__(self, "material_tag", int(self.material_tag))
        object.__setattr__(self, "val1", val1)
        object.__setattr__(self, "val2", val2)


class MaterialModel:
    """領域タグ・境界タグをキーとする材料則/境界条件のレジストリ.

    Example:
        >>> model = MaterialModel()
        >>> model.register_material(1, 29269.0, 0.203, PlaneMode.PLANE_STRAIN)
        >>> model.register_boundary_condition(2, ConditionKind.NORMAL_TRACTION, val2=[-10.0, 0.0])
    """

    def __init__(self) -> None:
        self._materials: dict[int, ElasticMaterialLaw] = {}
        self._conditions: dict[int, BoundaryCondition] = {}
        self._frozen = False

    # ---------- 登録 ----------

    def register_material(
        self,
        region_tag: int,
        elastic_modulus: float,
        poisson_ratio: float,
        plane_mode: PlaneMode | str = PlaneMode.PLANE_STRAIN,
    ) -> ElasticMaterialLaw:
        """材料則を1つ登録する.

        Raises:
            DuplicateRegionError: 同じタグが材料則または境界条件に登録済み
            ModelFrozenError: 計算メッシュ構築後の登録
        """
        self._check_not_frozen()
        tag = int(region_tag)
        if tag in self._materials:
            raise DuplicateRegionError(f"領域タグ {tag} には材料則が登録済みです。", tag=tag)
        if tag in self._conditions:
            raise DuplicateRegionError(
                f"タグ {tag} は境界条件に使用されています（タグは領域と境界で共有不可）。", tag=tag
            )
        law = ElasticMaterialLaw(tag, elastic_modulus, poisson_ratio, plane_mode)
        self._materials[tag] = law
        return law

    def register_boundary_condition(
        self,
        boundary_tag: int,
        condition_kind: ConditionKind | int,
        val1: np.ndarray | None = None,
        val2: np.ndarray | None = None,
        *,
        material_tag: int | None = None,
    ) -> BoundaryCondition:
        """境界条件を材料則に付随させて登録する.

        Args:
            boundary_tag: 境界タグ
            condition_kind: 境界条件の種類コード
            val1: (2, 2) 係数行列（None でゼロ）
            val2: (2,) 値ベクトル（None でゼロ）。(2, 1) も可。
            material_tag: 付随させる材料則の領域タグ。材料則が1つだけなら省略可。

        Raises:
            DuplicateBoundaryError: 境界タグが登録済み
            DuplicateRegionError: タグが材料則に使用済み
            UnresolvedTagError: material_tag が未登録、または省略時に材料則が1つでない
            ModelFrozenError: 計算メッシュ構築後の登録
        """
        self._check_not_frozen()
        tag = int(boundary_tag)
        if tag in self._conditions:
            raise DuplicateBoundaryError(f"境界タグ {tag} には境界条件が登録済みです。", tag=tag)
        if tag in self._materials:
            raise DuplicateRegionError(
                f"タグ {tag} は材料則に使用されています（タグは領域と境界で共有不可）。", tag=tag
            )
        mat_tag = self._resolve_material_tag(material_tag, tag)
        bc = BoundaryCondition(
            boundary_tag=tag,
            kind=ConditionKind(condition_kind),
            material_tag=mat_tag,
            val1=np.zeros((2, 2)) if val1 is None else val1,
            val2=np.zeros(2) if val2 is None else val2,
        )
        self._conditions[tag] = bc
        return bc

    def _resolve_material_tag(self, material_tag: int | None, boundary_tag: int) -> int:
        if material_tag is None:
            if len(self._materials) != 1:
                raise UnresolvedTagError(
                    f"境界タグ {boundary_tag}: 材料則が {len(self._materials)} 個あるため "
                    "material_tag の指定が必要です。",
                    tag=boundary_tag,
                    entity="material",
                )
            return next(iter(self._materials))
        mat_tag = int(material_tag)
        if mat_tag not in self._materials:
            raise UnresolvedTagError(
                f"境界タグ {boundary_tag} の付随先の材料則 {mat_tag} が未登録です。",
                tag=mat_tag,
                entity="material",
            )
        return mat_tag

    # ---------- 参照 ----------

    @property
    def materials(self) -> Mapping[int, ElasticMaterialLaw]:
        """領域タグ → 材料則（読み取り専用ビュー）."""
        return MappingProxyType(self._materials)

    @property
    def boundary_conditions(self) -> Mapping[int, BoundaryCondition]:
        """境界タグ → 境界条件（読み取り専用ビュー）."""
        return MappingProxyType(self._conditions)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def material(self, region_tag: int) -> ElasticMaterialLaw:
        tag = int(region_tag)
        if tag not in self._materials:
            raise UnresolvedTagError(
                f"領域タグ {tag} に材料則が登録されていません。", tag=tag, entity="region"
            )
        return self._materials[tag]

    def boundary_condition(self, boundary_tag: int) -> BoundaryCondition:
        tag = int(boundary_tag)
        if tag not in self._conditions:
            raise UnresolvedTagError(
                f"境界タグ {tag} に境界条件が登録されていません。", tag=tag, entity="boundary"
            )
        return self._conditions[tag]

    def freeze(self) -> None:
        """以降の登録を禁止する（計算メッシュ構築時に呼ばれる）."""
        self._frozen = True

    def _check_not_frozen(self) -> None:
        if self._frozen:
            raise ModelFrozenError(
                "計算メッシュ構築後は材料則・境界条件を変更できません（再構築が必要）。"
            )

    def summary(self) -> str:
        lines = ["Materials:"]
        for law in self._materials.values():
            lines.append(f"  {law!r}")
        lines.append("Boundary conditions:")
        for bc in self._conditions.values():
            lines.append(
                f"  tag={bc.boundary_tag} kind={bc.kind.name}({int(bc.kind)}) "
                f"material={bc.material_tag} val2={bc.val2.tolist()}"
            )
        return "\n".join(lines)


__all__ = ["ConditionKind", "BoundaryCondition", "MaterialModel"]
