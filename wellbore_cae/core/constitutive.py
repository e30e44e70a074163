"""構成則（材料則）の抽象インタフェース定義.

Protocol 定義:
  ConstitutiveProtocol   — 要素剛性の計算に必要な最小限（tangent のみ）。
  MaterialLawProtocol    — 領域タグに結び付いた材料則。応力評価と
                           計算可能なフィールド名を追加する。

将来の拡張:
  - 非線形材料: is_linear=False とし、tangent(strain) がひずみに依存する。
    平衡反復ループは is_linear が全材料で True のとき1反復で収束する。
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

import numpy as np


@runtime_checkable
class ConstitutiveProtocol(Protocol):
    """構成則の共通インタフェース.

    線形弾性の場合: tangent() は定数テンソル D を返す。応力は sigma = D @ strain。

    適合クラス例:
      - ElasticMaterialLaw   (3,3)
    """

    def tangent(self, strain: np.ndarray | None = None) -> np.ndarray:
        """弾性/接線剛性テンソルを返す.

        Args:
            strain: ひずみベクトル [εxx, εyy, γxy]。線形弾性の場合は不要（None可）。

        Returns:
            D: (3, 3) 弾性/接線剛性テンソル
        """
        ...


@runtime_checkable
class MaterialLawProtocol(ConstitutiveProtocol, Protocol):
    """領域タグに結び付いた材料則のインタフェース.

    Attributes:
        region_tag: 材料則を適用する領域タグ
        is_linear: 変位に依存しない（線形）材料なら True
        scalar_fields: 計算可能なスカラーフィールド名
        vector_fields: 計算可能なベクトルフィールド名
    """

    region_tag: int
    is_linear: bool
    scalar_fields: tuple[str, ...]
    vector_fields: tuple[str, ...]

    def stress(self, strain: np.ndarray) -> np.ndarray:
        """面内応力 [σxx, σyy, τxy] を返す.

        Args:
            strain: (..., 3) ひずみ [εxx, εyy, γxy]

        Returns:
            (..., 3) 応力
        """
        ...

    def out_of_plane_stress(self, stress: np.ndarray) -> np.ndarray:
        """面外応力 σzz を返す.

        Args:
            stress: (..., 3) 面内応力

        Returns:
            (...,) σzz
        """
        ...
