"""直接法ソルバーモジュール.

記憶形式（storage）と分解法（decomposition）の組み合わせ:
  - skyline + ldlt     : 対称スカイライン（プロファイル）記憶の LDLᵀ 分解（既定）
  - skyline + cholesky : 同上で D > 0 を要求（正定値でなければ失敗）
  - sparse  + ldlt     : SuperLU（対称モード・対角ピボット）で D ≠ 0 を要求
  - sparse  + cholesky : 同上で D > 0 を要求
  - sparse  + lu       : SuperLU の一般 LU 分解

スカイライン記憶は reverse Cuthill-McKee で節点順を並べ替えてプロファイルを縮める。
スカイラインでの LU は未対応（対称行列では LDLᵀ と同値）。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import numpy as np
import scipy.sparse as sp
import scipy.sparse.linalg as spla
from scipy.sparse.csgraph import reverse_cuthill_mckee

from wellbore_cae.errors import FactorizationError

STORAGES = ("skyline", "sparse")
DECOMPOSITIONS = ("ldlt", "cholesky", "lu")

# 相対ピボット閾値（|d_j| <= tol * max|diag K| で特異とみなす）
_PIVOT_RTOL = 1.0e-12


@dataclass(frozen=True)
class SolverConfig:
    """線形ソルバー設定（解析構築時に明示的に渡す）.

    Attributes:
        storage: "skyline" / "sparse"
        decomposition: "ldlt" / "cholesky" / "lu"
        n_threads: 要素剛性計算のスレッド数（0 = 逐次）
    """

    storage: str = "skyline"
    decomposition: str = "ldlt"
    n_threads: int = 0

    def __post_init__(self) -> None:
        if self.storage not in STORAGES:
            raise ValueError(f"storage は {STORAGES} のいずれか: {self.storage!r}")
        if self.decomposition not in DECOMPOSITIONS:
            raise ValueError(
                f"decomposition は {DECOMPOSITIONS} のいずれか: {self.decomposition!r}"
            )
        if self.storage == "skyline" and self.decomposition == "lu":
            raise ValueError("skyline 記憶は ldlt / cholesky のみ対応です（lu は sparse を指定）。")
        if int(self.n_threads) != self.n_threads or self.n_threads < 0:
            raise ValueError(f"n_threads は 0 以上の整数: {self.n_threads}")


# ====================================================================
# スカイライン LDLᵀ
# ====================================================================


class SkylineLDLT:
    """対称スカイライン記憶の LDLᵀ 分解.

    列 j の上三角部分を、その列の最初の非零行 m_j から対角直前まで保持する。
    """

    def __init__(
        self,
        perm: np.ndarray,
        heights: np.ndarray,
        columns: list[np.ndarray],
        d: np.ndarray,
    ) -> None:
        self.perm = perm
        self.heights = heights
        self.columns = columns
        self.d = d

    @property
    def profile_size(self) -> int:
        """格納している非対角成分の総数."""
        return int(sum(len(c) for c in self.columns))

    def solve(self, b: np.ndarray) -> np.ndarray:
        m = self.heights
        y = np.asarray(b, dtype=float)[self.perm].copy()
        n = y.shape[0]
        # L y = b
        for j in range(n):
            if len(self.columns[j]):
                y[j] -= self.columns[j] @ y[m[j] : j]
        # D z = y
        y /= self.d
        # Lᵀ x = z
        for j in range(n - 1, -1, -1):
            if len(self.columns[j]):
                y[m[j] : j] -= self.columns[j] * y[j]
        x = np.empty_like(y)
        x[self.perm] = y
        return x


def _skyline_profile(K: sp.csr_matrix) -> tuple[np.ndarray, sp.csc_matrix, np.ndarray]:
    """RCM 並べ替え後の行列と各列の最初の非零行."""
    perm = reverse_cuthill_mckee(K.tocsr(), symmetric_mode=True).astype(np.int64)
    Kp = K.tocsr()[perm][:, perm].tocsc()
    n = Kp.shape[0]
    coo = Kp.tocoo()
    upper = coo.row <= coo.col
    heights = np.arange(n, dtype=np.int64)
    np.minimum.at(heights, coo.col[upper], coo.row[upper])
    return perm, Kp, heights


def skyline_ldlt(K: sp.csr_matrix, *, positive_definite: bool = False) -> SkylineLDLT:
    """対称行列をスカイライン記憶で LDLᵀ 分解する.

    Args:
        K: 対称剛性行列
        positive_definite: True なら D > 0 を要求する（Cholesky 相当）

    Raises:
        FactorizationError: ゼロピボット、または positive_definite で D <= 0
    """
    perm, Kp, m = _skyline_profile(K)
    n = Kp.shape[0]
    diag = Kp.diagonal()
    scale = float(np.max(np.abs(diag))) if n else 0.0
    if scale == 0.0:
        raise FactorizationError("剛性行列の対角がすべてゼロです。")

    columns: list[np.ndarray] = []
    d = np.empty(n, dtype=float)
    for j in range(n):
        mj = int(m[j])
        col = np.asarray(Kp[mj : j + 1, j].toarray()).ravel()
        g = col[:-1].copy()
        # g_ij = a_ij - Σ_k l_ki g_kj
        for i in range(mj + 1, j):
            mi = int(m[i])
            k0 = max(mi, mj)
            if k0 < i:
                g[i - mj] -= columns[i][k0 - mi : i - mi] @ g[k0 - mj : i - mj]
        lcol = g / d[mj:j]
        dj = col[-1] - lcol @ g
        if positive_definite and not dj > _PIVOT_RTOL * scale:
            raise FactorizationError(
                f"正定値でない行列です（Cholesky 分解失敗）: 並べ替え後の列 {j}, d={dj:.3e}"
            )
        if abs(dj) <= _PIVOT_RTOL * scale:
            raise FactorizationError(f"特異な行列です（ゼロピボット）: 並べ替え後の列 {j}")
        columns.append(lcol)
        d[j] = dj
    return SkylineLDLT(perm, m, columns, d)


# ====================================================================
# 疎行列（SuperLU）
# ====================================================================


class SparseLU:
    """SuperLU 分解の薄いラッパ."""

    def __init__(self, lu: Any) -> None:
        self.lu = lu

    def solve(self, b: np.ndarray) -> np.ndarray:
        return self.lu.solve(np.asarray(b, dtype=float))


def sparse_factorize(K: sp.csr_matrix, decomposition: str) -> SparseLU:
    """SuperLU で分解する.

    ldlt / cholesky では対称モード（対角ピボット）で分解し、
    U の対角（= D）の符号とゼロピボットを検査する。

    Raises:
        FactorizationError: 特異、または cholesky で正定値でない
    """
    Kc = sp.csc_matrix(K)
    diag = np.abs(Kc.diagonal())
    scale = float(diag.max()) if diag.size else 0.0
    if scale == 0.0:
        raise FactorizationError("剛性行列の対角がすべてゼロです。")
    try:
        if decomposition == "lu":
            lu = spla.splu(Kc)
        else:
            lu = spla.splu(
                Kc,
                permc_spec="MMD_AT_PLUS_A",
                diag_pivot_thresh=0.0,
                options={"SymmetricMode": True},
            )
    except RuntimeError as exc:  # SuperLU は特異行列で RuntimeError を送出する
        raise FactorizationError(f"疎行列の分解に失敗しました: {exc}") from exc

    pivots = lu.U.diagonal()
    if np.any(np.abs(pivots) <= _PIVOT_RTOL * scale):
        raise FactorizationError("特異な行列です（ゼロピボット）。")
    if decomposition == "cholesky" and np.any(pivots <= 0.0):
        raise FactorizationError("正定値でない行列です（Cholesky 分解失敗）。")
    return SparseLU(lu)


# ====================================================================
# 公開 API
# ====================================================================


def factorize(K: sp.csr_matrix, config: SolverConfig) -> SkylineLDLT | SparseLU:
    """設定に従って剛性行列を分解する."""
    if config.storage == "skyline":
        return skyline_ldlt(K, positive_definite=config.decomposition == "cholesky")
    return sparse_factorize(K, config.decomposition)


__all__ = [
    "STORAGES",
    "DECOMPOSITIONS",
    "SolverConfig",
    "SkylineLDLT",
    "SparseLU",
    "skyline_ldlt",
    "sparse_factorize",
    "factorize",
]
