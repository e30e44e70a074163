"""要素の抽象インタフェース定義.

Protocol 階層:
  ElementProtocol        — 最小限（local_stiffness + dof_indices）。線形アセンブリで十分。
  FieldElementProtocol   — 後処理用。形状関数・ひずみ-変位行列・可視化用の細分割。
  EdgeElementProtocol    — 境界辺要素。表面力の等価節点力とばね剛性（+ dof_indices）。

すべての要素型はこのProtocolに適合する必要がある。
ランタイムチェックは runtime_checkable で補完。
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

import numpy as np

from wellbore_cae.core.constitutive import ConstitutiveProtocol


@runtime_checkable
class ElementProtocol(Protocol):
    """有限要素の共通インタフェース（線形弾性アセンブリ用）.

    Attributes:
        ndof_per_node: 1節点あたりの自由度数（平面問題=2）
        nnodes: 要素の節点数（TRI3=3, TRI6=6, Q4=4）
        ndof: 要素あたりの総自由度数（= ndof_per_node * nnodes）

    適合クラス例:
      - Tri3PlaneElement, Tri6PlaneElement, Quad4PlaneElement
    """

    ndof_per_node: int
    nnodes: int
    ndof: int

    def local_stiffness(
        self,
        coords: np.ndarray,
        material: ConstitutiveProtocol,
        thickness: float | None = None,
    ) -> np.ndarray:
        """局所剛性行列を計算する.

        Args:
            coords: 要素節点座標 (nnodes, 2)
            material: 構成則オブジェクト
            thickness: 厚み

        Returns:
            Ke: (ndof, ndof) 局所剛性行列
        """
        ...

    def dof_indices(self, node_indices: np.ndarray) -> np.ndarray:
        """グローバル節点インデックスから要素DOFインデックスを返す.

        Args:
            node_indices: (nnodes,) グローバル節点インデックス

        Returns:
            edofs: (ndof,) グローバルDOFインデックス
        """
        ...


@runtime_checkable
class FieldElementProtocol(ElementProtocol, Protocol):
    """要素内のフィールド評価に対応する要素のインタフェース.

    自然座標 xi は三角形で面積座標 (L2, L3)、四角形で (ξ, η) ∈ [-1, 1]²。

    Attributes:
        vertex_natural_coords: (nv, 2) 頂点の自然座標
    """

    vertex_natural_coords: np.ndarray

    def shape_functions(self, xi: np.ndarray) -> np.ndarray:
        """形状関数値.

        Args:
            xi: (npts, 2) 自然座標

        Returns:
            N: (npts, nnodes)
        """
        ...

    def strain_matrix(self, coords: np.ndarray, xi: np.ndarray) -> np.ndarray:
        """ひずみ-変位行列 B.

        Args:
            coords: (nnodes, 2) 要素節点座標
            xi: (npts, 2) 自然座標

        Returns:
            B: (npts, 3, ndof)
        """
        ...

    def subdivide(self, level: int) -> tuple[np.ndarray, np.ndarray]:
        """可視化用の細分割.

        Args:
            level: 細分割レベル（0 = 細分割なし）

        Returns:
            (xi, cells): サンプル点の自然座標 (npts, 2) とサブセル接続 (nsub, nv)
        """
        ...


@runtime_checkable
class EdgeElementProtocol(Protocol):
    """境界辺要素のインタフェース.

    Attributes:
        nnodes: 辺の節点数（LINE2=2, LINE3=3）
        ndof: 2 * nnodes
    """

    nnodes: int
    ndof: int

    def dof_indices(self, node_indices: np.ndarray) -> np.ndarray:
        """辺の節点インデックス (nnodes,) → DOF インデックス (ndof,)."""
        ...

    def traction_load(self, coords: np.ndarray, traction: np.ndarray) -> np.ndarray:
        """一様表面力の等価節点力 ∫ Nᵀ t ds.

        Args:
            coords: (nnodes, 2) 辺の節点座標
            traction: (2,) 表面力ベクトル

        Returns:
            fe: (ndof,)
        """
        ...

    def spring_stiffness(self, coords: np.ndarray, coefficients: np.ndarray) -> np.ndarray:
        """分布ばねの剛性 ∫ Nᵀ C N ds.

        Args:
            coords: (nnodes, 2) 辺の節点座標
            coefficients: (2, 2) ばね係数行列

        Returns:
            Ke: (ndof, ndof)
        """
        ...

    def outward_normal(self, coords: np.ndarray) -> np.ndarray:
        """外向き単位法線（領域が辺の左側にある向きを前提）."""
        ...
