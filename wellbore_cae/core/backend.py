"""有限要素バックエンドの抽象インタフェース定義.

ドライバ（計算メッシュ構築・平衡反復・後処理）が必要とする操作だけを
Protocol として定義する。既定実装は wellbore_cae.backend.ScipyBackend。

  build_space        — 自由度レイアウトの生成
  assemble           — 剛性行列と残差（内力 − 外力）の組み立て
  assemble_residual  — 外力 − 内力（拘束 DOF はゼロ）
  factorize / solve  — 直接法による線形系の分解と求解
  graph_mesh         — 後処理用の細分割メッシュ
  extract_field      — 名前付きフィールドの評価
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import numpy as np
import scipy.sparse as sp

from wellbore_cae.core.results import AssembledSystem, FieldData, GraphMesh

if TYPE_CHECKING:
    from wellbore_cae.cmesh import ComputationalMesh
    from wellbore_cae.mesh.geometry import Geometry
    from wellbore_cae.solver import SolverConfig
    from wellbore_cae.space import FunctionSpace


@runtime_checkable
class FiniteElementBackend(Protocol):
    """有限要素ライブラリの共通インタフェース."""

    def build_space(self, geometry: Geometry, order: int) -> FunctionSpace:
        """連続な近似空間を生成する.

        Raises:
            InvalidOrderError: バックエンドが扱えない次数
        """
        ...

    def assemble(
        self,
        cmesh: ComputationalMesh,
        u: np.ndarray,
        *,
        n_threads: int = 0,
        show_progress: bool = False,
    ) -> AssembledSystem:
        """剛性行列と残差 r = f_int(u) − f_ext を組み立てる.

        Raises:
            AssemblyError: 不良設定の離散系
        """
        ...

    def assemble_residual(self, cmesh: ComputationalMesh, u: np.ndarray) -> np.ndarray:
        """残差 f_ext − f_int(u)（拘束 DOF はゼロ）を返す."""
        ...

    def factorize(self, K: sp.csr_matrix, config: SolverConfig) -> Any:
        """剛性行列を分解する.

        Raises:
            FactorizationError: 選択した分解法で分解できない
        """
        ...

    def solve(self, factor: Any, rhs: np.ndarray) -> np.ndarray:
        """分解済み行列で求解する."""
        ...

    def graph_mesh(self, cmesh: ComputationalMesh, subdivision_level: int = 0) -> GraphMesh:
        """後処理用の細分割メッシュを生成する."""
        ...

    def extract_field(
        self,
        cmesh: ComputationalMesh,
        u: np.ndarray,
        name: str,
        graph: GraphMesh,
    ) -> FieldData:
        """名前付きフィールドをグラフメッシュのサンプル点で評価する."""
        ...
