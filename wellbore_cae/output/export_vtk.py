"""VTK XML Unstructured Grid (.vtu) ライター.

後処理フィールド（PointData）と、ジオメトリ診断のタグ（CellData）を
同じ関数で書き出す。ParaView / meshio で読める最小構成:

    VTKFile(type=UnstructuredGrid)
      Piece
        Points        Float64 × 3
        Cells         connectivity / offsets / types
        PointData     任意個（2 成分ベクトルは z=0 を補って 3 成分）
        CellData      任意個

DataArray のエンコーディングは ascii（既定）と binary（UInt32 の
バイト長ヘッダ + 生データを Base64 化したもの）の 2 種類。
"""

from __future__ import annotations

import base64
from collections.abc import Mapping, Sequence
from pathlib import Path
from xml.etree import ElementTree as ET

import numpy as np

VTK_LINE = 3
VTK_TRIANGLE = 5
VTK_QUAD = 9

# Geometry のセルタイプ名 → VTK セル番号
VTK_CELL_TYPES: dict[str, int] = {
    "line": VTK_LINE,
    "triangle": VTK_TRIANGLE,
    "quad": VTK_QUAD,
}

# DataArray の type 属性 → リトルエンディアンの numpy dtype
_NUMPY_DTYPES: dict[str, np.dtype] = {
    "Float64": np.dtype("<f8"),
    "Int32": np.dtype("<i4"),
    "UInt8": np.dtype("<u1"),
}


def write_vtu(
    filepath: str | Path,
    points: np.ndarray,
    cell_blocks: Sequence[tuple[int, np.ndarray]],
    *,
    point_data: Mapping[str, np.ndarray] | None = None,
    cell_data: Mapping[str, np.ndarray] | None = None,
    binary: bool = False,
) -> Path:
    """.vtu を書き出す（既存ファイルは上書き）.

    Args:
        filepath: 出力先
        points: (N, 2) または (N, 3) 座標
        cell_blocks: [(VTK セル番号, (nc, nv) 接続), ...]
        point_data: 名前 → (N,) / (N, ncomp)
        cell_data: 名前 → (ncells,) / (ncells, ncomp)
        binary: Base64 で書き出す

    Returns:
        書き出したパス

    Raises:
        ValueError: PointData / CellData の行数が点数・セル数と異なる
    """
    filepath = Path(filepath)
    points = np.asarray(points, dtype=np.float64)
    n_points = points.shape[0]
    xyz = np.zeros((n_points, 3))
    xyz[:, : points.shape[1]] = points

    connectivity, offsets, types = _flatten_cells(cell_blocks)
    n_cells = types.shape[0]

    root = ET.Element(
        "VTKFile", type="UnstructuredGrid", version="0.1", byte_order="LittleEndian"
    )
    piece = ET.SubElement(
        ET.SubElement(root, "UnstructuredGrid"),
        "Piece",
        NumberOfPoints=str(n_points),
        NumberOfCells=str(n_cells),
    )
    _data_array(ET.SubElement(piece, "Points"), "Points", xyz, "Float64", binary)
    cells = ET.SubElement(piece, "Cells")
    _data_array(cells, "connectivity", connectivity, "Int32", binary)
    _data_array(cells, "offsets", offsets, "Int32", binary)
    _data_array(cells, "types", types, "UInt8", binary)

    for section, data, count in (
        ("PointData", point_data, n_points),
        ("CellData", cell_data, n_cells),
    ):
        if not data:
            continue
        parent = ET.SubElement(piece, section)
        for name, values in data.items():
            arr = np.asarray(values)
            if arr.shape[0] != count:
                raise ValueError(
                    f"{section} {name!r} の行数 {arr.shape[0]} が点数/セル数 {count} と"
                    "一致しません。"
                )
            if section == "PointData" and arr.ndim == 2 and arr.shape[1] == 2:
                arr = np.column_stack([arr, np.zeros(count)])
            vtk_type = "Int32" if arr.dtype.kind in "iub" else "Float64"
            _data_array(parent, name, arr, vtk_type, binary)

    tree = ET.ElementTree(root)
    ET.indent(tree, space="  ")
    tree.write(filepath, encoding="unicode", xml_declaration=True)
    return filepath


def _data_array(
    parent: ET.Element, name: str, values: np.ndarray, vtk_type: str, binary: bool
) -> None:
    arr = np.asarray(values)
    n_components = 1 if arr.ndim == 1 else int(arr.shape[1])
    flat = arr.reshape(-1).astype(_NUMPY_DTYPES[vtk_type])
    element = ET.SubElement(
        parent,
        "DataArray",
        type=vtk_type,
        Name=name,
        NumberOfComponents=str(n_components),
        format="binary" if binary else "ascii",
    )
    if binary:
        payload = flat.tobytes()
        size = np.uint32(len(payload)).astype("<u4").tobytes()
        element.text = base64.b64encode(size + payload).decode("ascii")
    elif vtk_type == "Float64":
        element.text = " ".join(f"{v:.10g}" for v in flat.tolist())
    else:
        element.text = " ".join(str(v) for v in flat.tolist())


def _flatten_cells(
    cell_blocks: Sequence[tuple[int, np.ndarray]],
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """セルブロックを VTK の (connectivity, offsets, types) に平坦化する."""
    connectivity: list[np.ndarray] = []
    sizes: list[np.ndarray] = []
    types: list[np.ndarray] = []
    for vtk_type, conn in cell_blocks:
        conn = np.asarray(conn, dtype=np.int64)
        connectivity.append(conn.reshape(-1))
        sizes.append(np.full(conn.shape[0], conn.shape[1], dtype=np.int64))
        types.append(np.full(conn.shape[0], vtk_type, dtype=np.uint8))
    if not types:
        return np.zeros(0, np.int32), np.zeros(0, np.int32), np.zeros(0, np.uint8)
    return (
        np.concatenate(connectivity).astype(np.int32),
        np.cumsum(np.concatenate(sizes)).astype(np.int32),
        np.concatenate(types),
    )


__all__ = ["write_vtu", "VTK_LINE", "VTK_TRIANGLE", "VTK_QUAD", "VTK_CELL_TYPES"]
