"""後処理: 名前付きフィールドの評価と VTU 出力.

要求されたフィールド名はすべて先に材料則と照合し、不明な名前があれば
出力ファイルに触れる前に UnknownFieldError を送出する。
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from pathlib import Path

import numpy as np

from wellbore_cae.backend import ScipyBackend
from wellbore_cae.cmesh import ComputationalMesh
from wellbore_cae.core.backend import FiniteElementBackend
from wellbore_cae.core.results import FieldData, GraphMesh
from wellbore_cae.errors import UnknownFieldError
from wellbore_cae.output.export_vtk import write_vtu


def _displacement(cmesh: ComputationalMesh, state: object) -> np.ndarray:
    u = getattr(state, "u", state)
    if u is None:
        raise ValueError("変位が未計算です（解析を実行してから出力してください）。")
    u = np.asarray(u, dtype=float)
    if u.shape != (cmesh.n_dofs,):
        raise ValueError(f"変位ベクトルの形状が計算メッシュと一致しません: {u.shape}")
    return u


def _cell_element_ids(graph: GraphMesh) -> np.ndarray:
    """サブセルごとの計算要素番号（サブセルの点はすべて同じ要素に属する）."""
    if not graph.cell_blocks:
        return np.zeros(0, dtype=np.int64)
    return np.concatenate([graph.element_index[cells[:, 0]] for _, cells in graph.cell_blocks])


def validate_field_names(
    cmesh: ComputationalMesh,
    scalar_names: Sequence[str],
    vector_names: Sequence[str],
) -> None:
    """要求されたフィールド名が計算可能か検査する.

    Raises:
        UnknownFieldError: 計算できない名前（最初の1つ）
    """
    scalars, vectors = cmesh.available_fields()
    for name in scalar_names:
        if name not in scalars:
            raise UnknownFieldError(
                f"スカラーフィールド {name!r} は計算できません（対応: {list(scalars)}）。",
                name=name,
                available=scalars,
            )
    for name in vector_names:
        if name not in vectors:
            raise UnknownFieldError(
                f"ベクトルフィールド {name!r} は計算できません（対応: {list(vectors)}）。",
                name=name,
                available=vectors,
            )


def export_fields(
    cmesh: ComputationalMesh,
    state: object,
    scalar_names: Sequence[str],
    vector_names: Sequence[str],
    output_path: str | Path,
    *,
    dimension: int | None = None,
    subdivision_level: int = 0,
    backend: FiniteElementBackend | None = None,
    binary: bool = False,
    show_progress: bool = True,
) -> dict[str, FieldData]:
    """フィールドを評価して VTU に書き出す（既存ファイルは上書き）.

    PointData に要求フィールドを、CellData "ElementId" にサブセルが属する
    計算要素の通し番号を書き出す。

    Args:
        cmesh: 計算メッシュ
        state: 変位を持つオブジェクト（SolverState / EquilibriumResult）または変位ベクトル
        scalar_names: スカラーフィールド名（例: "SigmaX", "SigmaY", "SigmaZ"）
        vector_names: ベクトルフィールド名（例: "Displacement"）
        output_path: 出力 .vtu パス
        dimension: 出力次元（None で計算メッシュの次元。2 以外は未対応）
        subdivision_level: 要素の細分割レベル（0 = 細分割なし）
        backend: 有限要素バックエンド（None で ScipyBackend）
        binary: Base64 バイナリ形式で出力
        show_progress: 出力ログの表示

    Returns:
        名前 → FieldData

    Raises:
        UnknownFieldError: 計算できないフィールド名
        ValueError: 未対応の次元、不正な細分割レベル、変位の形状不一致
    """
    scalar_names = list(scalar_names)
    vector_names = list(vector_names)
    validate_field_names(cmesh, scalar_names, vector_names)
    dim = cmesh.geometry.dimension if dimension is None else int(dimension)
    if dim != cmesh.geometry.dimension:
        raise ValueError(
            f"出力次元 {dim} は未対応です（計算メッシュは {cmesh.geometry.dimension} 次元）。"
        )
    u = _displacement(cmesh, state)

    t0 = time.time()
    backend = backend if backend is not None else ScipyBackend()
    graph = backend.graph_mesh(cmesh, subdivision_level)
    fields: dict[str, FieldData] = {}
    for name in scalar_names + vector_names:
        fields[name] = backend.extract_field(cmesh, u, name, graph)

    output_path = Path(output_path)
    write_vtu(
        output_path,
        graph.points,
        graph.cell_blocks,
        point_data={name: f.values for name, f in fields.items()},
        cell_data={"ElementId": _cell_element_ids(graph)},
        binary=binary,
    )
    if show_progress:
        print(
            f"[postprocess] {len(fields)} field(s), {graph.points.shape[0]} points "
            f"(subdivision {graph.subdivision_level}) -> {output_path} "
            f"in {time.time() - t0:.3f} sec"
        )
    return fields


__all__ = ["export_fields", "validate_field_names"]
