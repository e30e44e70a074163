"""Protocol ベース汎用アセンブリ.

領域要素群ごとの剛性と、境界辺群ごとの表面力・ばね・規定変位を組み立てる。
COO 形式で要素ごとの寄与を蓄積し、最終的に CSR 行列を生成する。

- _vectorized_coo_indices: DOF の repeat/tile を要素群単位で一括計算
- n_threads >= 2 のとき ThreadPoolExecutor で要素剛性の計算をバッチ並列化。
  各バッチは data 配列の排他的な区間に書き込むため、結果はスレッド数に依存しない。
"""

from __future__ import annotations

import time
from collections.abc import Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import NamedTuple

import numpy as np
import scipy.sparse as sp

from wellbore_cae.core.constitutive import ConstitutiveProtocol
from wellbore_cae.model import BoundaryCondition, ConditionKind
from wellbore_cae.space import BoundaryGroup, DomainGroup

# 並列化の最小要素数閾値（これ未満は逐次実行）
_PARALLEL_MIN_ELEMENTS = 512


class BoundaryContribution(NamedTuple):
    """境界条件の寄与.

    Attributes:
        K_spring: 分布ばね剛性 (CSR)
        f_ext: 外力ベクトル（表面力 + ばねの規定値）
        fixed_dofs: 拘束 DOF（昇順・重複なし）
        fixed_values: 拘束 DOF の規定変位
    """

    K_spring: sp.csr_matrix
    f_ext: np.ndarray
    fixed_dofs: np.ndarray
    fixed_values: np.ndarray


# ========== COO ベクトル化ヘルパー ==========


def _vectorized_coo_indices(conn: np.ndarray, ndof_per_node: int) -> tuple[np.ndarray, np.ndarray]:
    """要素群の COO row/col インデックスをベクトル化計算.

    Args:
        conn: (n_elem, nnodes) 接続配列
        ndof_per_node: 節点あたりの自由度数

    Returns:
        (rows, cols): それぞれ (n_elem * m * m,) の int64 配列
    """
    n_elem, nnodes = conn.shape
    m = nnodes * ndof_per_node
    dof_offsets = np.arange(ndof_per_node, dtype=np.int64)
    all_edofs = (conn[:, :, None] * ndof_per_node + dof_offsets[None, None, :]).reshape(n_elem, m)
    rows = np.repeat(all_edofs, m, axis=1).ravel()
    cols = np.tile(all_edofs, (1, m)).ravel()
    return rows, cols


def _fill_batch(
    data: np.ndarray,
    offset: int,
    element,
    coords: np.ndarray,
    material: ConstitutiveProtocol,
) -> None:
    block_nnz = element.ndof * element.ndof
    for i, xy in enumerate(coords):
        Ke = element.local_stiffness(xy, material)
        pos = offset + i * block_nnz
        data[pos : pos + block_nnz] = Ke.ravel()


# ========== 公開 API ==========


def assemble_stiffness(
    nodes_xy: np.ndarray,
    domain_groups: Sequence[DomainGroup],
    materials: Mapping[int, ConstitutiveProtocol],
    *,
    n_threads: int = 0,
    show_progress: bool = True,
) -> sp.csr_matrix:
    """領域要素群から全体剛性行列を組み立てる（COO→CSR）.

    Args:
        nodes_xy: (N, 2) 計算節点座標
        domain_groups: 領域要素群のリスト
        materials: 領域タグ → 構成則
        n_threads: 要素剛性計算のスレッド数（0, 1 = 逐次）
        show_progress: 進捗表示の有無

    Returns:
        K: CSR形式の全体剛性行列 (2N, 2N)
    """
    ndof_total = 2 * int(nodes_xy.shape[0])
    n_total = sum(len(g.connectivity) for g in domain_groups)
    nnz_total = max(sum(g.element.ndof**2 * len(g.connectivity) for g in domain_groups), 1)

    rows = np.empty(nnz_total, dtype=np.int64)
    cols = np.empty(nnz_total, dtype=np.int64)
    data = np.empty(nnz_total, dtype=np.float64)

    use_parallel = n_threads >= 2 and n_total >= _PARALLEL_MIN_ELEMENTS

    t0 = time.time()
    k = 0
    for group in domain_groups:
        conn = np.asarray(group.connectivity, dtype=np.int64)
        element = group.element
        material = materials[group.region_tag]
        block_nnz = element.ndof * element.ndof
        n_elem = len(conn)
        group_nnz = n_elem * block_nnz

        r, c = _vectorized_coo_indices(conn, element.ndof_per_node)
        rows[k : k + group_nnz] = r
        cols[k : k + group_nnz] = c

        coords = nodes_xy[conn]
        if use_parallel:
            batch_size = max(1, -(-n_elem // n_threads))
            with ThreadPoolExecutor(max_workers=n_threads) as pool:
                futures = [
                    pool.submit(
                        _fill_batch,
                        data,
                        k + start * block_nnz,
                        element,
                        coords[start : start + batch_size],
                        material,
                    )
                    for start in range(0, n_elem, batch_size)
                ]
                for fut in futures:
                    fut.result()
        else:
            _fill_batch(data, k, element, coords, material)
        k += group_nnz

    if show_progress:
        elapsed = time.time() - t0
        mode = f"{n_threads} threads" if use_parallel else "sequential"
        print(f"[assemble] K: {n_total} elements, {ndof_total} dofs ({mode}) in {elapsed:.3f} sec")

    K = sp.csr_matrix((data[:k], (rows[:k], cols[:k])), shape=(ndof_total, ndof_total))
    K.sum_duplicates()
    return K


def assemble_boundary(
    nodes_xy: np.ndarray,
    boundary_groups: Sequence[BoundaryGroup],
    conditions: Mapping[int, BoundaryCondition],
) -> BoundaryContribution:
    """境界辺群から外力・ばね剛性・規定変位を組み立てる.

    Args:
        nodes_xy: (N, 2) 計算節点座標
        boundary_groups: 境界辺群
        conditions: 境界タグ → 境界条件

    Returns:
        BoundaryContribution

    Note:
        同じ DOF を複数の境界条件が規定する場合は、境界タグの昇順で後の値が優先される。
    """
    ndof_total = 2 * int(nodes_xy.shape[0])
    f_ext = np.zeros(ndof_total, dtype=float)
    prescribed: dict[int, float] = {}

    rows: list[np.ndarray] = []
    cols: list[np.ndarray] = []
    data: list[np.ndarray] = []

    for group in sorted(boundary_groups, key=lambda g: g.boundary_tag):
        bc = conditions[group.boundary_tag]
        conn = np.asarray(group.connectivity, dtype=np.int64)
        edge = group.element

        if bc.kind.is_essential:
            nodes = np.unique(conn.ravel())
            for comp in bc.kind.constrained_components:
                for dof in (2 * nodes + comp).tolist():
                    prescribed[dof] = float(bc.val2[comp])
            continue

        coords = nodes_xy[conn]
        for xy, enodes in zip(coords, conn, strict=True):
            dofs = edge.dof_indices(enodes)
            if bc.kind is ConditionKind.NORMAL_TRACTION:
                traction = bc.val2[0] * edge.outward_normal(xy)
            else:
                traction = bc.val2
            if np.any(traction != 0.0):
                f_ext[dofs] += edge.traction_load(xy, traction)

        if bc.kind is ConditionKind.SPRING and np.any(bc.val1 != 0.0):
            r, c = _vectorized_coo_indices(conn, 2)
            rows.append(r)
            cols.append(c)
            data.append(
                np.concatenate([edge.spring_stiffness(xy, bc.val1).ravel() for xy in coords])
            )

    if data:
        K_spring = sp.csr_matrix(
            (np.concatenate(data), (np.concatenate(rows), np.concatenate(cols))),
            shape=(ndof_total, ndof_total),
        )
        K_spring.sum_duplicates()
    else:
        K_spring = sp.csr_matrix((ndof_total, ndof_total))

    fixed_dofs = np.array(sorted(prescribed), dtype=np.int64)
    fixed_values = np.array([prescribed[d] for d in fixed_dofs.tolist()], dtype=float)
    return BoundaryContribution(K_spring, f_ext, fixed_dofs, fixed_values)


__all__ = ["BoundaryContribution", "assemble_stiffness", "assemble_boundary"]
