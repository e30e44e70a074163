"""計算メッシュ（ComputationalMesh）の構築.

Geometry + 材料/境界条件モデル + 近似次数 から自由度レイアウトを生成する。
タグの解決と次数の検査はバックエンドを呼ぶ前にすべて行い、
成功時にモデルを凍結する。
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

import numpy as np

from wellbore_cae.backend import ScipyBackend
from wellbore_cae.core.backend import FiniteElementBackend
from wellbore_cae.errors import InvalidOrderError, UnresolvedTagError
from wellbore_cae.materials.elastic import ElasticMaterialLaw
from wellbore_cae.mesh.geometry import Geometry
from wellbore_cae.model import BoundaryCondition, MaterialModel
from wellbore_cae.space import FunctionSpace


@dataclass(eq=False)
class ComputationalMesh:
    """計算メッシュ.

    Attributes:
        geometry: 元の離散化ジオメトリ
        model: 凍結済みの材料/境界条件モデル
        order: 近似次数
        space: 自由度レイアウト
        name: 表示名
    """

    geometry: Geometry
    model: MaterialModel
    order: int
    space: FunctionSpace
    name: str = "cmesh"

    @property
    def n_dofs(self) -> int:
        return self.space.n_dofs

    @property
    def nodes(self) -> np.ndarray:
        return self.space.nodes

    @property
    def materials(self) -> Mapping[int, ElasticMaterialLaw]:
        return self.model.materials

    @property
    def boundary_conditions(self) -> Mapping[int, BoundaryCondition]:
        return self.model.boundary_conditions

    def available_fields(self) -> tuple[tuple[str, ...], tuple[str, ...]]:
        """全材料則で計算可能な (スカラー名, ベクトル名)."""
        laws = [self.model.material(t) for t in self.geometry.region_tags]
        scalars = tuple(
            n for n in laws[0].scalar_fields if all(n in law.scalar_fields for law in laws)
        )
        vectors = tuple(
            n for n in laws[0].vector_fields if all(n in law.vector_fields for law in laws)
        )
        return scalars, vectors


def _check_order(order: object) -> int:
    if isinstance(order, bool) or not isinstance(order, (int, np.integer)):
        raise InvalidOrderError(f"近似次数は整数: {order!r}")
    if order < 1:
        raise InvalidOrderError(f"近似次数は 1 以上: {order}")
    return int(order)


def build_computational_mesh(
    geometry: Geometry,
    model: MaterialModel,
    approximation_order: int,
    *,
    backend: FiniteElementBackend | None = None,
    name: str | None = None,
) -> ComputationalMesh:
    """計算メッシュを構築する.

    Args:
        geometry: 離散化ジオメトリ
        model: 材料/境界条件モデル（構築成功時に凍結される）
        approximation_order: 近似次数（1 以上の整数）
        backend: 有限要素バックエンド（None で ScipyBackend）
        name: 表示名（None で "<geometry.name>-p<order>"）

    Returns:
        ComputationalMesh

    Raises:
        InvalidOrderError: 不正な次数、またはバックエンド未対応の次数
        UnresolvedTagError: 材料則/境界条件が登録されていないタグ（最初の1つ）
    """
    order = _check_order(approximation_order)

    for tag in geometry.region_tags:
        if tag not in model.materials:
            raise UnresolvedTagError(
                f"領域タグ {tag} に材料則が登録されていません。", tag=tag, entity="region"
            )
    for tag in geometry.boundary_tags:
        if tag not in model.boundary_conditions:
            raise UnresolvedTagError(
                f"境界タグ {tag} に境界条件が登録されていません。", tag=tag, entity="boundary"
            )

    if backend is None:
        backend = ScipyBackend()
    space = backend.build_space(geometry, order)
    model.freeze()
    return ComputationalMesh(
        geometry=geometry,
        model=model,
        order=order,
        space=space,
        name=name or f"{geometry.name}-p{order}",
    )


__all__ = ["ComputationalMesh", "build_computational_mesh"]
