"""gmsh .msh ファイルから Geometry を読み込む.

ファイル形式の解釈は meshio に委譲し、ここでは以下のみを行う:
  - 物理タグ（gmsh:physical）を領域タグ/境界タグとして取り出す
  - 高次の幾何セル（triangle6, quad8, quad9, line3）を頂点のみに縮約
  - 参照されない節点（高次セルの中間節点など）を除去して詰め直す
  - 単位換算係数 scale を座標に掛ける

制限事項:
  - xy 平面上の 2 次元メッシュのみ（3 次元セルは GeometryLoadError）
  - 同一セルタイプのブロックは 1 つにまとめる
"""

from __future__ import annotations

from pathlib import Path

import meshio
import numpy as np

from wellbore_cae.errors import GeometryLoadError
from wellbore_cae.mesh.geometry import ElementBlock, Geometry

# meshio セルタイプ → (縮約後のセルタイプ, 頂点数)
_REDUCTION: dict[str, tuple[str, int]] = {
    "line": ("line", 2),
    "line3": ("line", 2),
    "triangle": ("triangle", 3),
    "triangle6": ("triangle", 3),
    "quad": ("quad", 4),
    "quad8": ("quad", 4),
    "quad9": ("quad", 4),
}

# 無視するセルタイプ（物理点など）
_IGNORED = {"vertex"}

_PHYSICAL_KEY = "gmsh:physical"


def load_geometry(
    path: str | Path,
    *,
    scale: float = 1.0,
    name: str | None = None,
    file_format: str | None = None,
) -> Geometry:
    """離散化ジオメトリファイルを読み込む.

    Args:
        path: .msh ファイルのパス（meshio が読める形式なら可）
        scale: 座標に掛ける単位換算係数（ファイル単位 → モデル単位）
        name: 表示名（None の場合はファイル名の stem）
        file_format: meshio に渡す形式名（None で拡張子から自動判定）

    Returns:
        Geometry

    Raises:
        GeometryLoadError: ファイルが存在しない・解釈できない・領域要素がゼロ・
            未対応の次元
        ValueError: scale が正でない
    """
    if not scale > 0.0:
        raise ValueError(f"scale は正値: {scale}")

    path = Path(path)
    if not path.is_file():
        raise GeometryLoadError(f"ファイルが見つかりません: {path}", path=str(path))

    try:
        mesh = meshio.read(path, file_format=file_format)
    except (Exception, SystemExit) as exc:
        # meshio はリーダーごとに異なる例外を送出し、全リーダーが失敗すると sys.exit する
        raise GeometryLoadError(
            f"ジオメトリファイルを解釈できません: {path} ({exc})", path=str(path)
        ) from exc

    return geometry_from_meshio(mesh, scale=scale, name=name or path.stem, path=str(path))


def geometry_from_meshio(
    mesh: meshio.Mesh,
    *,
    scale: float = 1.0,
    name: str = "geometry",
    path: str | None = None,
) -> Geometry:
    """meshio.Mesh から Geometry を構築する.

    Args:
        mesh: meshio のメッシュ
        scale: 座標の単位換算係数
        name: 表示名
        path: エラーメッセージ用のファイルパス

    Returns:
        Geometry
    """
    points = np.asarray(mesh.points, dtype=float)
    if points.ndim != 2 or points.shape[0] == 0:
        raise GeometryLoadError("節点がありません。", path=path)
    if points.shape[1] == 3 and np.ptp(points[:, 2]) > 0.0:
        raise GeometryLoadError("xy 平面上にない節点があります（2 次元メッシュのみ対応）。", path=path)

    physical = mesh.cell_data.get(_PHYSICAL_KEY)

    conn_by_type: dict[str, list[np.ndarray]] = {}
    tags_by_type: dict[str, list[np.ndarray]] = {}
    for i, cell_block in enumerate(mesh.cells):
        ctype = cell_block.type
        if ctype in _IGNORED:
            continue
        if ctype not in _REDUCTION:
            raise GeometryLoadError(
                f"未対応のセルタイプ: {ctype}（対応: {sorted(_REDUCTION)}）", path=path
            )
        reduced, nv = _REDUCTION[ctype]
        data = np.asarray(cell_block.data, dtype=np.int64)
        if data.shape[0] == 0:
            continue
        if physical is not None:
            tags = np.asarray(physical[i], dtype=np.int64).ravel()
        else:
            tags = np.zeros(data.shape[0], dtype=np.int64)
        conn_by_type.setdefault(reduced, []).append(data[:, :nv])
        tags_by_type.setdefault(reduced, []).append(tags)

    if not any(t in conn_by_type for t in ("triangle", "quad")):
        raise GeometryLoadError("領域要素（三角形・四角形）がゼロです。", path=path)

    # 参照される節点のみを残して詰め直す
    used = np.unique(np.concatenate([c.ravel() for cs in conn_by_type.values() for c in cs]))
    if used.max() >= points.shape[0]:
        raise GeometryLoadError("接続配列に存在しない節点番号があります。", path=path)
    old_to_new = np.full(points.shape[0], -1, dtype=np.int64)
    old_to_new[used] = np.arange(used.size)

    blocks: list[ElementBlock] = []
    for ctype in ("triangle", "quad", "line"):
        if ctype not in conn_by_type:
            continue
        conn = old_to_new[np.concatenate(conn_by_type[ctype])]
        tags = np.concatenate(tags_by_type[ctype])
        blocks.append(ElementBlock(ctype, conn, tags))

    nodes = points[used, :2] * float(scale)
    return Geometry(nodes=nodes, blocks=blocks, dimension=2, name=name)


__all__ = ["load_geometry", "geometry_from_meshio"]
