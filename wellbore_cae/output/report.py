"""診断用のジオメトリ・計算メッシュ出力.

いずれもベストエフォートで、書き込みに失敗しても解析は中断しない
（OSError はメッセージを表示して False を返す）。
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import numpy as np

from wellbore_cae.mesh.geometry import Geometry
from wellbore_cae.output.export_vtk import VTK_CELL_TYPES, write_vtu

if TYPE_CHECKING:
    from wellbore_cae.cmesh import ComputationalMesh


def _format_geometry(geometry: Geometry) -> str:
    lower, upper = geometry.bounding_box() if geometry.n_nodes else (np.zeros(2), np.zeros(2))
    lines = [
        f"Geometry: {geometry.name}",
        f"dimension: {geometry.dimension}",
        f"nodes: {geometry.n_nodes}",
        f"elements: {geometry.n_elements}",
        f"boundary elements: {geometry.n_boundary_elements}",
        f"region tags: {geometry.region_tags}",
        f"boundary tags: {geometry.boundary_tags}",
        f"bounding box: [{lower[0]:.6g}, {lower[1]:.6g}] - [{upper[0]:.6g}, {upper[1]:.6g}]",
        "",
        "# nodes: index x y",
    ]
    lines.extend(f"{i} {x:.10g} {y:.10g}" for i, (x, y) in enumerate(geometry.nodes.tolist()))
    for block in geometry.blocks:
        lines.append("")
        lines.append(f"# {block.cell_type} ({len(block)}): index tag nodes...")
        rows = zip(block.tags.tolist(), block.connectivity.tolist(), strict=True)
        for i, (tag, row) in enumerate(rows):
            lines.append(f"{i} {tag} " + " ".join(str(n) for n in row))
    return "\n".join(lines) + "\n"


def write_geometry_text(geometry: Geometry, path: str | Path) -> bool:
    """ジオメトリをテキストで書き出す.

    Returns:
        書き出しに成功したら True
    """
    try:
        Path(path).write_text(_format_geometry(geometry), encoding="utf-8")
    except OSError as exc:
        print(f"[report] ジオメトリのテキスト出力に失敗しました: {path} ({exc})")
        return False
    return True


def write_geometry_vtk(geometry: Geometry, path: str | Path) -> bool:
    """ジオメトリを VTU で書き出す（CellData: tag, dimension）.

    Returns:
        書き出しに成功したら True
    """
    blocks = [(VTK_CELL_TYPES[b.cell_type], b.connectivity) for b in geometry.blocks]
    tags = np.concatenate([b.tags for b in geometry.blocks]) if geometry.blocks else np.zeros(0)
    dims = (
        np.concatenate([np.full(len(b), b.dimension, dtype=np.int64) for b in geometry.blocks])
        if geometry.blocks
        else np.zeros(0, dtype=np.int64)
    )
    try:
        write_vtu(
            path,
            geometry.nodes,
            blocks,
            cell_data={"tag": tags.astype(np.int64), "dimension": dims},
        )
    except OSError as exc:
        print(f"[report] ジオメトリの VTK 出力に失敗しました: {path} ({exc})")
        return False
    return True


def _format_cmesh(cmesh: ComputationalMesh) -> str:
    space = cmesh.space
    lines = [
        f"Computational mesh: {cmesh.name}",
        f"approximation order: {cmesh.order}",
        f"nodes: {space.n_nodes} (vertex {space.n_vertex_nodes}, "
        f"mid-edge {space.n_nodes - space.n_vertex_nodes})",
        f"dofs: {space.n_dofs}",
        f"elements: {space.n_elements}",
        "",
        cmesh.model.summary(),
    ]
    for group in space.domain_groups:
        lines.append("")
        lines.append(
            f"# domain {type(group.element).__name__} region={group.region_tag} "
            f"({len(group.connectivity)}): nodes..."
        )
        lines.extend(" ".join(str(n) for n in row) for row in group.connectivity.tolist())
    for group in space.boundary_groups:
        lines.append("")
        lines.append(
            f"# boundary {type(group.element).__name__} tag={group.boundary_tag} "
            f"({len(group.connectivity)}): nodes..."
        )
        lines.extend(" ".join(str(n) for n in row) for row in group.connectivity.tolist())
    return "\n".join(lines) + "\n"


def write_cmesh_text(cmesh: ComputationalMesh, path: str | Path) -> bool:
    """計算メッシュ（自由度レイアウトと登録内容）をテキストで書き出す.

    Returns:
        書き出しに成功したら True
    """
    try:
        Path(path).write_text(_format_cmesh(cmesh), encoding="utf-8")
    except OSError as exc:
        print(f"[report] 計算メッシュのテキスト出力に失敗しました: {path} ({exc})")
        return False
    return True


def report_geometry(
    geometry: Geometry,
    text_path: str | Path | None = None,
    vtk_path: str | Path | None = None,
    *,
    show_progress: bool = True,
) -> bool:
    """ジオメトリの概要を表示し、指定があればテキスト/VTU を書き出す.

    Returns:
        すべての書き出しに成功したら True
    """
    if show_progress:
        print(
            f"[geometry] {geometry.name}: {geometry.n_nodes} nodes, "
            f"{geometry.n_elements} elements, {geometry.n_boundary_elements} boundary elements, "
            f"regions={geometry.region_tags}, boundaries={geometry.boundary_tags}"
        )
    ok = True
    if text_path is not None:
        ok = write_geometry_text(geometry, text_path) and ok
    if vtk_path is not None:
        ok = write_geometry_vtk(geometry, vtk_path) and ok
    return ok


__all__ = [
    "write_geometry_text",
    "write_geometry_vtk",
    "write_cmesh_text",
    "report_geometry",
]
