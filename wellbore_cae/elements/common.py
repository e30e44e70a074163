"""要素間で共通の小道具（B マトリクス・DOF インデックス・可視化用細分割）."""

from __future__ import annotations

import numpy as np


def b_matrix(grad_n: np.ndarray) -> np.ndarray:
    """形状関数勾配から平面問題の B マトリクスを組む.

    Args:
        grad_n: (..., nnodes, 2) 形状関数の x, y 微分

    Returns:
        B: (..., 3, 2 * nnodes)。ひずみは [εxx, εyy, γxy]（工学せん断ひずみ）
    """
    grad_n = np.asarray(grad_n, dtype=float)
    nnodes = grad_n.shape[-2]
    B = np.zeros(grad_n.shape[:-2] + (3, 2 * nnodes), dtype=float)
    dNdx = grad_n[..., 0]
    dNdy = grad_n[..., 1]
    B[..., 0, 0::2] = dNdx  # εxx
    B[..., 1, 1::2] = dNdy  # εyy
    B[..., 2, 0::2] = dNdy  # γxy = du/dy + dv/dx
    B[..., 2, 1::2] = dNdx
    return B


def planar_dof_indices(node_indices: np.ndarray) -> np.ndarray:
    """2 自由度/節点の要素 DOF インデックス [2n, 2n+1, ...]."""
    nodes = np.asarray(node_indices, dtype=np.int64)
    return (nodes[:, None] * 2 + np.arange(2, dtype=np.int64)[None, :]).ravel()


def subdivide_triangle(level: int) -> tuple[np.ndarray, np.ndarray]:
    """三角形の自然座標を (level+1) 分割した格子点とサブ三角形.

    自然座標は頂点 1=(0,0), 2=(1,0), 3=(0,1)。

    Returns:
        (xi, cells): (npts, 2) と (nsub, 3)。nsub = (level+1)²
    """
    if level < 0:
        raise ValueError(f"細分割レベルは 0 以上: {level}")
    n = level + 1
    index: dict[tuple[int, int], int] = {}
    pts = []
    for j in range(n + 1):
        for i in range(n + 1 - j):
            index[(i, j)] = len(pts)
            pts.append((i / n, j / n))
    cells = []
    for j in range(n):
        for i in range(n - j):
            cells.append((index[(i, j)], index[(i + 1, j)], index[(i, j + 1)]))
            if i + j < n - 1:
                cells.append((index[(i + 1, j)], index[(i + 1, j + 1)], index[(i, j + 1)]))
    return np.array(pts, dtype=float), np.array(cells, dtype=np.int64)


def subdivide_quad(level: int) -> tuple[np.ndarray, np.ndarray]:
    """四角形の自然座標 [-1, 1]² を (level+1) 分割した格子点とサブ四角形.

    Returns:
        (xi, cells): (npts, 2) と (nsub, 4)。サブセルの節点順は反時計回り
    """
    if level < 0:
        raise ValueError(f"細分割レベルは 0 以上: {level}")
    n = level + 1
    s = np.linspace(-1.0, 1.0, n + 1)
    xi = np.array([(a, b) for b in s for a in s], dtype=float)
    cells = []
    for j in range(n):
        for i in range(n):
            p = j * (n + 1) + i
            cells.append((p, p + 1, p + n + 2, p + n + 1))
    return xi, np.array(cells, dtype=np.int64)


def triangle_area(node_xy: np.ndarray) -> float:
    """頂点 3 点の符号付き面積（反時計回りで正）."""
    x1, y1 = node_xy[0]
    x2, y2 = node_xy[1]
    x3, y3 = node_xy[2]
    return 0.5 * ((x2 - x1) * (y3 - y1) - (x3 - x1) * (y2 - y1))


def area_coordinate_gradients(node_xy: np.ndarray) -> tuple[float, np.ndarray]:
    """三角形の面積と面積座標 L1, L2, L3 の勾配.

    Returns:
        (A, gradL): A は面積、gradL は (3, 2)

    Raises:
        ValueError: 零面積または反転要素
    """
    A = triangle_area(node_xy)
    if A <= 0.0:
        raise ValueError(f"零面積または反転要素（A<=0）: A={A:.3e}")
    x1, y1 = node_xy[0]
    x2, y2 = node_xy[1]
    x3, y3 = node_xy[2]
    gradL = np.array(
        [
            [y2 - y3, x3 - x2],
            [y3 - y1, x1 - x3],
            [y1 - y2, x2 - x1],
        ],
        dtype=float,
    ) / (2.0 * A)
    return A, gradL


# 三角形 3 点ガウス積分（面積座標 L1, L2, L3 と重み。重みの和は 1）
TRIANGLE_GAUSS_3 = (
    np.array(
        [
            [1.0 / 6.0, 1.0 / 6.0, 4.0 / 6.0],
            [1.0 / 6.0, 4.0 / 6.0, 1.0 / 6.0],
            [4.0 / 6.0, 1.0 / 6.0, 1.0 / 6.0],
        ]
    ),
    np.array([1.0 / 3.0, 1.0 / 3.0, 1.0 / 3.0]),
)

# 1 次元 3 点ガウス積分 [-1, 1]
LINE_GAUSS_3 = (
    np.array([-np.sqrt(3.0 / 5.0), 0.0, np.sqrt(3.0 / 5.0)]),
    np.array([5.0 / 9.0, 8.0 / 9.0, 5.0 / 9.0]),
)
