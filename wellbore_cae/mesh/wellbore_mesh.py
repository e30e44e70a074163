"""1/4 円環（坑井断面）メッシュジェネレータ.

対称性を使い、第1象限の 1/4 円環 r_inner <= r <= r_outer, 0 <= θ <= π/2 を
TRI3 または Q4 の構造格子で離散化する。

== 物理タグ ==
  1: 岩盤（領域）
  2: 坑壁 r = r_inner（内圧）
  3: 遠方境界 r = r_outer（遠方応力）
  4: x = 0 の対称面（ux 固定）
  5: y = 0 の対称面（uy 固定）

== 節点順序 ==
  node_id = i * (n_theta + 1) + j
  i: 径方向インデックス (0..n_r)
  j: 周方向インデックス (0..n_theta)、θ_j = j * (π/2) / n_theta
"""

from __future__ import annotations

from pathlib import Path

import meshio
import numpy as np

from wellbore_cae.mesh.geometry import ElementBlock, Geometry

TAG_ROCK = 1
TAG_WALL = 2
TAG_FAR_FIELD = 3
TAG_X_SYMMETRY = 4
TAG_Y_SYMMETRY = 5

PHYSICAL_NAMES: dict[str, tuple[int, int]] = {
    "rock": (TAG_ROCK, 2),
    "wellbore_wall": (TAG_WALL, 1),
    "far_field": (TAG_FAR_FIELD, 1),
    "x_symmetry": (TAG_X_SYMMETRY, 1),
    "y_symmetry": (TAG_Y_SYMMETRY, 1),
}


def radial_coordinates(
    r_inner: float, r_outer: float, n_r: int, grading: float = 1.0
) -> np.ndarray:
    """径方向の節点座標.

    Args:
        grading: 最外要素幅 / 最内要素幅（1 で等間隔、>1 で坑壁側を細かく）
    """
    if grading <= 0.0:
        raise ValueError(f"grading は正値: {grading}")
    if n_r == 1 or grading == 1.0:
        return np.linspace(r_inner, r_outer, n_r + 1)
    q = grading ** (1.0 / (n_r - 1))
    widths = q ** np.arange(n_r)
    offsets = np.concatenate([[0.0], np.cumsum(widths)]) / widths.sum()
    return r_inner + (r_outer - r_inner) * offsets


def make_wellbore_mesh(
    r_inner: float,
    r_outer: float,
    n_r: int,
    n_theta: int,
    *,
    cell_type: str = "triangle",
    grading: float = 1.0,
    name: str = "wellbore",
) -> Geometry:
    """1/4 円環の構造格子メッシュを生成.

    Args:
        r_inner: 坑井半径
        r_outer: 遠方境界の半径
        n_r: 径方向要素数
        n_theta: 周方向要素数（90° あたり）
        cell_type: "triangle"（TRI3）または "quad"（Q4）
        grading: 径方向の要素幅の比（最外 / 最内）
        name: Geometry の表示名

    Returns:
        Geometry（領域タグ 1、境界タグ 2..5）
    """
    if r_inner <= 0 or r_outer <= r_inner:
        raise ValueError(f"0 < r_inner < r_outer が必要: r_inner={r_inner}, r_outer={r_outer}")
    if n_r < 1 or n_theta < 1:
        raise ValueError(f"n_r, n_theta は 1 以上: n_r={n_r}, n_theta={n_theta}")
    if cell_type not in ("triangle", "quad"):
        raise ValueError(f"cell_type は 'triangle' または 'quad': {cell_type!r}")

    r_vals = radial_coordinates(r_inner, r_outer, n_r, grading)
    theta_vals = np.linspace(0.0, 0.5 * np.pi, n_theta + 1)
    rr, tt = np.meshgrid(r_vals, theta_vals, indexing="ij")
    nodes = np.column_stack([(rr * np.cos(tt)).ravel(), (rr * np.sin(tt)).ravel()])
    # 対称面上の座標を厳密にゼロにする
    nodes[np.arange(n_r + 1) * (n_theta + 1) + n_theta, 0] = 0.0

    def nid(i: np.ndarray | int, j: np.ndarray | int) -> np.ndarray:
        return np.asarray(i) * (n_theta + 1) + np.asarray(j)

    ii, jj = np.meshgrid(np.arange(n_r), np.arange(n_theta), indexing="ij")
    ii = ii.ravel()
    jj = jj.ravel()
    n00, n10, n11, n01 = nid(ii, jj), nid(ii + 1, jj), nid(ii + 1, jj + 1), nid(ii, jj + 1)

    if cell_type == "quad":
        domain = np.column_stack([n00, n10, n11, n01])
    else:
        # 対角線の向きを市松状に交互にする
        alt = (ii + jj) % 2 == 1
        t1 = np.column_stack([n00, n10, n11])
        t2 = np.column_stack([n00, n11, n01])
        t1[alt] = np.column_stack([n00, n10, n01])[alt]
        t2[alt] = np.column_stack([n10, n11, n01])[alt]
        domain = np.stack([t1, t2], axis=1).reshape(-1, 3)

    j = np.arange(n_theta)
    i = np.arange(n_r)
    wall = np.column_stack([nid(0, j), nid(0, j + 1)])
    far = np.column_stack([nid(n_r, j), nid(n_r, j + 1)])
    x_sym = np.column_stack([nid(i, n_theta), nid(i + 1, n_theta)])
    y_sym = np.column_stack([nid(i, 0), nid(i + 1, 0)])
    lines = np.vstack([wall, far, x_sym, y_sym])
    line_tags = np.concatenate(
        [
            np.full(n_theta, TAG_WALL),
            np.full(n_theta, TAG_FAR_FIELD),
            np.full(n_r, TAG_X_SYMMETRY),
            np.full(n_r, TAG_Y_SYMMETRY),
        ]
    )
    blocks = [
        ElementBlock(cell_type, domain, np.full(domain.shape[0], TAG_ROCK)),
        ElementBlock("line", lines, line_tags),
    ]
    return Geometry(nodes=nodes, blocks=blocks, dimension=2, name=name)


def to_meshio(geometry: Geometry) -> meshio.Mesh:
    """Geometry を meshio.Mesh（gmsh の物理タグ付き）に変換する."""
    points = np.column_stack([geometry.nodes, np.zeros(geometry.n_nodes)])
    cells = [(b.cell_type, np.asarray(b.connectivity)) for b in geometry.blocks]
    tags = [np.asarray(b.tags) for b in geometry.blocks]
    field_data = {
        name: np.array(value)
        for name, value in PHYSICAL_NAMES.items()
        if value[0] in geometry.region_tags + geometry.boundary_tags
    }
    return meshio.Mesh(
        points,
        cells,
        cell_data={"gmsh:physical": tags, "gmsh:geometrical": tags},
        field_data=field_data,
    )


def write_gmsh(geometry: Geometry, path: str | Path, *, binary: bool = False) -> Path:
    """Geometry を gmsh 2.2 形式 (.msh) で書き出す."""
    path = Path(path)
    meshio.write(path, to_meshio(geometry), file_format="gmsh22", binary=binary)
    return path


__all__ = [
    "TAG_ROCK",
    "TAG_WALL",
    "TAG_FAR_FIELD",
    "TAG_X_SYMMETRY",
    "TAG_Y_SYMMETRY",
    "PHYSICAL_NAMES",
    "radial_coordinates",
    "make_wellbore_mesh",
    "to_meshio",
    "write_gmsh",
]
