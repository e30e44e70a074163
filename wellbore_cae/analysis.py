"""平衡反復ループ（EquilibriumAnalysis）.

各反復:
  1. 組み立て: backend.assemble → 剛性（Dirichlet 消去済み）と残差 r = f_int(u) − f_ext
  2. 符号補正: rhs = −r（外力 − 内力）
  3. 求解: 分解（行列が前回と同一なら再利用）して du を求め、成功後に u ← u + du
  4. 残差の組み立て: backend.assemble_residual → f_ext − f_int(u)（拘束 DOF はゼロ）
  5. 収束判定: ||残差||₂ < tol なら CONVERGED。反復上限で MAX_ITERATIONS_REACHED。

線形材料では 1 反復で収束する。反復上限到達は致命的ではなく、
結果の converged フラグが False になるだけである。
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import numpy as np
import scipy.sparse as sp

from wellbore_cae.backend import ScipyBackend
from wellbore_cae.cmesh import ComputationalMesh
from wellbore_cae.core.backend import FiniteElementBackend
from wellbore_cae.errors import AssemblyError, FactorizationError
from wellbore_cae.solver import SolverConfig


class AnalysisState(Enum):
    """平衡反復の状態."""

    UNINITIALIZED = "uninitialized"
    ASSEMBLING = "assembling"
    SOLVING = "solving"
    CHECKING_CONVERGENCE = "checking_convergence"
    CONVERGED = "converged"
    MAX_ITERATIONS_REACHED = "max_iterations_reached"


@dataclass
class SolverState:
    """反復間で保持する解析状態.

    Attributes:
        u: (ndof,) 変位ベクトル（反復をまたいで持ち越すのはこれだけ）
        stiffness: 直近に組み立てた剛性行列
        residual: 直近の残差（外力 − 内力、拘束 DOF はゼロ）
    """

    u: np.ndarray
    stiffness: sp.csr_matrix | None = None
    residual: np.ndarray | None = None


@dataclass
class EquilibriumResult:
    """平衡反復の結果.

    Attributes:
        converged: 収束したかどうか
        n_iterations: 実行した反復数
        residual_norm: 最終残差の L2 ノルム
        state: 終了状態（CONVERGED / MAX_ITERATIONS_REACHED）
        residual_history: 各反復の残差ノルム
        u: (ndof,) 最終変位ベクトル
    """

    converged: bool
    n_iterations: int
    residual_norm: float
    state: AnalysisState
    residual_history: list[float] = field(default_factory=list)
    u: np.ndarray | None = None


class EquilibriumAnalysis:
    """静的平衡の反復解析.

    Args:
        cmesh: 計算メッシュ
        backend: 有限要素バックエンド（None で ScipyBackend）
        solver_config: 線形ソルバー設定（記憶形式・分解法・スレッド数）
        show_progress: 反復ログの表示

    Example:
        >>> analysis = EquilibriumAnalysis(cmesh, solver_config=SolverConfig("skyline", "ldlt"))
        >>> result = analysis.run(tol=0.01, max_iterations=1)
        >>> result.state
        <AnalysisState.CONVERGED: 'converged'>
    """

    def __init__(
        self,
        cmesh: ComputationalMesh,
        *,
        backend: FiniteElementBackend | None = None,
        solver_config: SolverConfig | None = None,
        show_progress: bool = True,
    ) -> None:
        self.cmesh = cmesh
        self.backend = backend if backend is not None else ScipyBackend()
        self.solver_config = solver_config if solver_config is not None else SolverConfig()
        self.show_progress = show_progress
        self.state = AnalysisState.UNINITIALIZED
        self.solver_state = SolverState(u=np.zeros(cmesh.n_dofs, dtype=float))
        self._factor: Any = None
        self._factor_key: Any = None

    @property
    def u(self) -> np.ndarray:
        return self.solver_state.u

    def run(
        self,
        tol: float = 0.01,
        max_iterations: int = 1,
        u0: np.ndarray | None = None,
    ) -> EquilibriumResult:
        """平衡反復を実行する.

        各 run はゼロ変位（または u0）から開始するため、同じ入力に対する
        繰り返し実行は同じ結果を返す。

        Args:
            tol: 残差 L2 ノルムの収束閾値
            max_iterations: 反復上限（1 以上）
            u0: 初期変位（None でゼロ）

        Returns:
            EquilibriumResult

        Raises:
            AssemblyError: 不良設定の離散系（iteration, n_dofs を保持）
            FactorizationError: 分解の失敗（iteration, n_dofs を保持）
            ValueError: tol / max_iterations / u0 が不正
        """
        if not tol > 0.0:
            raise ValueError(f"tol は正値: {tol}")
        if int(max_iterations) != max_iterations or max_iterations < 1:
            raise ValueError(f"max_iterations は 1 以上の整数: {max_iterations}")
        n_dofs = self.cmesh.n_dofs
        if u0 is None:
            u = np.zeros(n_dofs, dtype=float)
        else:
            u = np.array(u0, dtype=float, copy=True)
            if u.shape != (n_dofs,):
                raise ValueError(f"u0 の形状は ({n_dofs},) が必要: {u.shape}")
        self.solver_state = SolverState(u=u)
        self.state = AnalysisState.UNINITIALIZED

        history: list[float] = []
        res_norm = float("inf")
        t0 = time.time()
        iteration = 0
        for iteration in range(max_iterations):
            try:
                res_norm = self._iterate()
            except (AssemblyError, FactorizationError) as exc:
                raise exc.with_context(iteration, n_dofs) from exc
            history.append(res_norm)
            if self.show_progress:
                print(f"[equilibrium] iter {iteration + 1}: ||r|| = {res_norm:.3e} (tol {tol:g})")
            if res_norm < tol:
                self.state = AnalysisState.CONVERGED
                break
        else:
            self.state = AnalysisState.MAX_ITERATIONS_REACHED

        converged = self.state is AnalysisState.CONVERGED
        if self.show_progress:
            status = "converged" if converged else "not converged"
            print(
                f"[equilibrium] {status} after {iteration + 1} iteration(s), "
                f"n_dofs={n_dofs}, elapsed={time.time() - t0:.3f} s"
            )
        return EquilibriumResult(
            converged=converged,
            n_iterations=iteration + 1,
            residual_norm=res_norm,
            state=self.state,
            residual_history=history,
            u=self.solver_state.u.copy(),
        )

    def _iterate(self) -> float:
        st = self.solver_state

        self.state = AnalysisState.ASSEMBLING
        system = self.backend.assemble(
            self.cmesh,
            st.u,
            n_threads=self.solver_config.n_threads,
            show_progress=self.show_progress,
        )
        st.stiffness = system.stiffness
        rhs = -np.asarray(system.rhs, dtype=float)

        self.state = AnalysisState.SOLVING
        key = system.matrix_key
        if self._factor is None or key is None or key != self._factor_key:
            self._factor = None
            t0 = time.time()
            self._factor = self.backend.factorize(system.stiffness, self.solver_config)
            self._factor_key = system.matrix_key
            if self.show_progress:
                cfg = self.solver_config
                print(
                    f"[{cfg.decomposition}] {cfg.storage} factorization: "
                    f"n={system.stiffness.shape[0]}, nnz={system.stiffness.nnz}, "
                    f"{time.time() - t0:.3f} s"
                )
        elif self.show_progress:
            print(f"[{self.solver_config.decomposition}] reuse factorization")
        du = self.backend.solve(self._factor, rhs)
        if not np.all(np.isfinite(du)):
            raise FactorizationError("求解結果に非有限値があります。")
        st.u = st.u + du

        self.state = AnalysisState.CHECKING_CONVERGENCE
        st.residual = self.backend.assemble_residual(self.cmesh, st.u)
        return float(np.linalg.norm(st.residual))


__all__ = [
    "AnalysisState",
    "SolverState",
    "EquilibriumResult",
    "EquilibriumAnalysis",
]
