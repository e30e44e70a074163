"""メソッド戻り値の型定義.

各モジュールの公開メソッドが返すデータ構造を NamedTuple で統一的に定義する。
"""

from __future__ import annotations

from typing import Any, NamedTuple

import numpy as np
import scipy.sparse as sp


class DirichletResult(NamedTuple):
    """Dirichlet 境界条件適用後の結果.

    Attributes:
        K: 拘束適用後の剛性行列 (CSR)
        f: 拘束適用後の右辺ベクトル (ndof,)
    """

    K: sp.csr_matrix
    f: np.ndarray


class AssembledSystem(NamedTuple):
    """1 反復分の組み立て結果.

    Attributes:
        stiffness: Dirichlet 行・列消去済みの剛性行列 (CSR)
        rhs: 内力 − 外力 の向きの残差 r（拘束 DOF では u − ū）
        fixed_dofs: 拘束 DOF インデックス（昇順）
        matrix_key: 行列が前回と同一かを判定するキー（変位に依存しない線形系なら不変）
    """

    stiffness: sp.csr_matrix
    rhs: np.ndarray
    fixed_dofs: np.ndarray
    matrix_key: Any


class FieldData(NamedTuple):
    """後処理フィールド（生成後は不変）.

    Attributes:
        name: フィールド名
        values: (npts,) または (npts, n_components) の読み取り専用配列
        n_components: 成分数（スカラーは 1）
    """

    name: str
    values: np.ndarray
    n_components: int


class GraphMesh(NamedTuple):
    """後処理用の細分割メッシュ.

    各計算要素が自身のサンプル点を持つ（要素間で点を共有しない）ため、
    要素境界での応力の不連続がそのまま残る。

    Attributes:
        points: (npts, 2) サンプル点座標
        cell_blocks: [(VTK セルタイプ, (ncells, nv) サブセル接続), ...]
        element_index: (npts,) サンプル点が属する計算要素の通し番号
        subdivision_level: 細分割レベル
    """

    points: np.ndarray
    cell_blocks: list[tuple[int, np.ndarray]]
    element_index: np.ndarray
    subdivision_level: int


__all__ = [
    "DirichletResult",
    "AssembledSystem",
    "FieldData",
    "GraphMesh",
]
