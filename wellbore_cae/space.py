"""近似空間（自由度レイアウト）の生成.

Geometry から連続（適合）な H1 近似空間を作る:
  - order 1: 頂点節点のみ（TRI3 / Q4、境界は LINE2）
  - order 2: 幾何辺ごとに中点節点を1つ追加し隣接要素で共有（TRI6、境界は LINE3）

節点番号は頂点が先（Geometry の順序のまま）、中点節点はその後ろに並ぶ。
自由度番号は 2 * 節点番号 + 成分（0=x, 1=y）。

領域要素は反時計回りに、境界辺は領域が左側になる向きに揃える。
"""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from wellbore_cae.elements import (
    Line2Edge,
    Line3Edge,
    Quad4PlaneElement,
    Tri3PlaneElement,
    Tri6PlaneElement,
)
from wellbore_cae.elements.common import triangle_area
from wellbore_cae.errors import InvalidOrderError
from wellbore_cae.mesh.geometry import Geometry

MAX_ORDER = 2

# 反時計回りへの並べ替え（時計回りで与えられた場合）
_REVERSE = {
    "triangle": np.array([0, 2, 1]),
    "quad": np.array([0, 3, 2, 1]),
}


@dataclass(frozen=True, eq=False)
class DomainGroup:
    """同一要素型・同一領域タグの領域要素群.

    Attributes:
        element: 要素オブジェクト（FieldElementProtocol 適合）
        connectivity: (Ne, nnodes) 計算節点インデックス
        region_tag: 領域タグ
    """

    element: object
    connectivity: np.ndarray
    region_tag: int


@dataclass(frozen=True, eq=False)
class BoundaryGroup:
    """同一境界タグの境界辺群（領域が左側になる向き）."""

    element: object
    connectivity: np.ndarray
    boundary_tag: int


@dataclass(eq=False)
class FunctionSpace:
    """自由度レイアウト.

    Attributes:
        order: 近似次数
        nodes: (Nn, 2) 計算節点座標（頂点 + 中点）
        n_vertex_nodes: 頂点節点数（= Geometry の節点数）
        domain_groups: 領域要素群
        boundary_groups: 境界辺群
    """

    order: int
    nodes: np.ndarray
    n_vertex_nodes: int
    domain_groups: list[DomainGroup] = field(default_factory=list)
    boundary_groups: list[BoundaryGroup] = field(default_factory=list)

    @property
    def n_nodes(self) -> int:
        return int(self.nodes.shape[0])

    @property
    def n_dofs(self) -> int:
        return 2 * self.n_nodes

    @property
    def n_elements(self) -> int:
        return sum(len(g.connectivity) for g in self.domain_groups)


def _counter_clockwise(nodes: np.ndarray, cell_type: str, conn: np.ndarray) -> np.ndarray:
    """時計回りの要素を反時計回りに並べ替える."""
    xy = nodes[conn[:, :3]]
    area = np.array([triangle_area(p) for p in xy]) if len(conn) else np.zeros(0)
    if np.any(area == 0.0):
        raise ValueError("零面積の領域要素があります。")
    conn = conn.copy()
    flip = area < 0.0
    conn[flip] = conn[flip][:, _REVERSE[cell_type]]
    return conn


def _directed_edges(conn: np.ndarray) -> np.ndarray:
    """反時計回り要素の有向辺 (Ne * nv, 2)."""
    return np.stack([conn, np.roll(conn, -1, axis=1)], axis=2).reshape(-1, 2)


def build_space(geometry: Geometry, order: int) -> FunctionSpace:
    """Geometry から近似空間を生成する.

    Args:
        geometry: 離散化ジオメトリ
        order: 近似次数（1 または 2）

    Returns:
        FunctionSpace

    Raises:
        InvalidOrderError: 未対応の次数（order > 2、四角形要素で order 2）
        ValueError: 領域要素のどの辺とも一致しない境界要素、零面積要素
    """
    if order < 1 or order > MAX_ORDER:
        raise InvalidOrderError(
            f"近似次数 {order} には未対応です"
            f"（ScipyBackend が対応する次数は 1..{MAX_ORDER} のみ）。"
        )

    nodes = geometry.nodes
    oriented: list[tuple[str, np.ndarray, np.ndarray]] = []
    for block in geometry.domain_blocks:
        if order == 2 and block.cell_type == "quad":
            raise InvalidOrderError(
                "ScipyBackend の四角形要素（Q4）は近似次数 1 のみ対応です"
                "（2 次の四角形要素は未実装、三角形メッシュを使用してください）。"
            )
        conn = _counter_clockwise(nodes, block.cell_type, np.asarray(block.connectivity))
        oriented.append((block.cell_type, conn, block.tags))

    # 有向辺 → 向き判定用の集合
    directed: set[tuple[int, int]] = set()
    for _, conn, _ in oriented:
        directed.update(map(tuple, _directed_edges(conn).tolist()))

    boundary_conn: list[tuple[np.ndarray, np.ndarray]] = []
    for block in geometry.boundary_blocks:
        conn = np.array(block.connectivity, dtype=np.int64, copy=True)
        for k, (a, b) in enumerate(conn.tolist()):
            if (a, b) in directed:
                continue
            if (b, a) in directed:
                conn[k] = (b, a)
                continue
            raise ValueError(f"境界要素 ({a}, {b}) がどの領域要素の辺とも一致しません。")
        boundary_conn.append((conn, block.tags))

    all_nodes = nodes
    n_vertex = geometry.n_nodes
    mid_lookup = None
    if order == 2:
        all_nodes, mid_lookup = _insert_mid_edge_nodes(nodes, [c for _, c, _ in oriented])

    domain_groups: list[DomainGroup] = []
    for cell_type, conn, tags in oriented:
        if cell_type == "quad":
            element = Quad4PlaneElement()
            full = conn
        elif order == 1:
            element = Tri3PlaneElement()
            full = conn
        else:
            element = Tri6PlaneElement()
            full = np.hstack([conn, mid_lookup(_directed_edges(conn)).reshape(-1, 3)])
        for tag in np.unique(tags):
            c = np.ascontiguousarray(full[tags == tag])
            c.setflags(write=False)
            domain_groups.append(DomainGroup(element, c, int(tag)))

    boundary_groups: list[BoundaryGroup] = []
    edge = Line2Edge() if order == 1 else Line3Edge()
    for conn, tags in boundary_conn:
        full = conn if order == 1 else np.hstack([conn, mid_lookup(conn)[:, None]])
        for tag in np.unique(tags):
            c = np.ascontiguousarray(full[tags == tag])
            c.setflags(write=False)
            boundary_groups.append(BoundaryGroup(edge, c, int(tag)))

    all_nodes = np.array(all_nodes, dtype=float, copy=True)
    all_nodes.setflags(write=False)
    return FunctionSpace(
        order=order,
        nodes=all_nodes,
        n_vertex_nodes=n_vertex,
        domain_groups=domain_groups,
        boundary_groups=boundary_groups,
    )


def _insert_mid_edge_nodes(nodes: np.ndarray, conns: list[np.ndarray]):
    """幾何辺ごとに中点節点を1つ追加する.

    Returns:
        (all_nodes, lookup): lookup(edges (M, 2)) → (M,) 中点節点インデックス
    """
    edges = np.concatenate([_directed_edges(c) for c in conns])
    keys = np.sort(edges, axis=1)
    unique_edges = np.unique(keys, axis=0)
    n_vertex = nodes.shape[0]
    mids = 0.5 * (nodes[unique_edges[:, 0]] + nodes[unique_edges[:, 1]])
    all_nodes = np.vstack([nodes, mids])
    index = {(int(a), int(b)): n_vertex + k for k, (a, b) in enumerate(unique_edges.tolist())}

    def lookup(pairs: np.ndarray) -> np.ndarray:
        s = np.sort(np.asarray(pairs, dtype=np.int64), axis=1)
        return np.array([index[(int(a), int(b))] for a, b in s.tolist()], dtype=np.int64)

    return all_nodes, lookup


__all__ = ["MAX_ORDER", "DomainGroup", "BoundaryGroup", "FunctionSpace", "build_space"]
