"""規定変位（Dirichlet 条件）の消去."""

from __future__ import annotations

import numpy as np
import scipy.sparse as sp

from wellbore_cae.core.results import DirichletResult


def apply_dirichlet(
    K: sp.csr_matrix,
    f: np.ndarray,
    fixed_dofs: np.ndarray,
    values: float | np.ndarray = 0.0,
) -> DirichletResult:
    """拘束 DOF の行・列を消去し、規定値を右辺に移す.

    平衡反復では増分 du に対して呼ばれ、values は ū − u（線形問題の
    初回反復では ū そのもの）になる。

    手順:
      1) 右辺補正 f ← f − K[:, fixed] · values（消去前の K を使う）
      2) 消去 K ← P K P + I_fixed（P = 自由 DOF で 1 の対角行列）
      3) f[fixed] ← values

    2) は対角スケーリングだけで行うため、対称性と CSR 構造が保たれる。

    Args:
        K: (n, n) CSR 剛性行列
        f: (n,) 右辺
        fixed_dofs: 拘束 DOF 番号
        values: 規定値（スカラーまたは fixed_dofs と同じ長さ）

    Returns:
        DirichletResult(K, f)。入力の K, f は変更しない。

    Raises:
        ValueError: values の長さ、または K と f のサイズが一致しない
    """
    rhs = np.asarray(f, dtype=float).copy()
    dofs = np.asarray(fixed_dofs, dtype=np.int64)
    if np.isscalar(values):
        prescribed = np.full(dofs.shape, float(values))
    else:
        prescribed = np.asarray(values, dtype=float)
        if prescribed.shape != dofs.shape:
            raise ValueError(
                f"規定値の長さ {prescribed.shape} が拘束 DOF の長さ {dofs.shape} と異なります。"
            )

    n = K.shape[0]
    if rhs.shape[0] != n:
        raise ValueError(f"右辺のサイズ {rhs.shape[0]} が剛性行列のサイズ {n} と異なります。")

    moved = prescribed != 0.0
    if np.any(moved):
        rhs -= K.tocsc()[:, dofs[moved]] @ prescribed[moved]

    keep = np.ones(n, dtype=float)
    keep[dofs] = 0.0
    P = sp.diags(keep, format="csr")
    K_elim = (P @ K @ P + sp.diags(1.0 - keep, format="csr")).tocsr()
    K_elim.eliminate_zeros()

    rhs[dofs] = prescribed
    return DirichletResult(K=K_elim, f=rhs)


__all__ = ["apply_dirichlet"]
