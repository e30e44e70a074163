"""幾何メッシュ（Geometry）データモデル.

節点座標と、タグ付き要素ブロックの集合を保持する。
最上位次元のブロックは領域要素（領域タグ = 材料則のキー）、
1つ下の次元のブロックは境界要素（境界タグ = 境界条件のキー）として扱う。

読み込み後は不変。変更できるのは表示名（name）のみ。
"""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

# 対応セルタイプ → (位相次元, 頂点数)
CELL_TYPES: dict[str, tuple[int, int]] = {
    "line": (1, 2),
    "triangle": (2, 3),
    "quad": (2, 4),
}


@dataclass(frozen=True, eq=False)
class ElementBlock:
    """同一セルタイプの要素ブロック.

    Attributes:
        cell_type: "line" / "triangle" / "quad"
        connectivity: (Ne, nv) 節点インデックス（0始まり）
        tags: (Ne,) 物理タグ（領域タグまたは境界タグ）
    """

    cell_type: str
    connectivity: np.ndarray
    tags: np.ndarray

    def __post_init__(self) -> None:
        if self.cell_type not in CELL_TYPES:
            raise ValueError(f"未対応のセルタイプ: {self.cell_type}（対応: {list(CELL_TYPES)}）")
        conn = np.array(self.connectivity, dtype=np.int64, copy=True)
        tags = np.array(self.tags, dtype=np.int64, copy=True).ravel()
        nv = CELL_TYPES[self.cell_type][1]
        if conn.ndim != 2 or conn.shape[1] != nv:
            raise ValueError(f"{self.cell_type} の接続配列は (Ne, {nv}) が必要: {conn.shape}")
        if tags.shape[0] != conn.shape[0]:
            raise ValueError("tags と connectivity の要素数が一致していません。")
        conn.setflags(write=False)
        tags.setflags(write=False)
        object.__setattr__(self, "connectivity", conn)
        object.__setattr__(self, "tags", tags)

    @property
    def dimension(self) -> int:
        """セルの位相次元."""
        return CELL_TYPES[self.cell_type][0]

    def __len__(self) -> int:
        return int(self.connectivity.shape[0])


@dataclass
class Geometry:
    """離散化ジオメトリ.

    Attributes:
        nodes: (N, 2) 節点座標（モデル単位）
        blocks: 要素ブロックのリスト
        dimension: 位相次元（領域要素の次元）
        name: 表示名
    """

    nodes: np.ndarray
    blocks: list[ElementBlock] = field(default_factory=list)
    dimension: int = 2
    name: str = "geometry"

    def __post_init__(self) -> None:
        nodes = np.array(self.nodes, dtype=float, copy=True)
        if nodes.ndim != 2 or nodes.shape[1] != 2:
            raise ValueError(f"nodes は (N, 2) が必要: {nodes.shape}")
        nodes.setflags(write=False)
        self.nodes = nodes
        self.blocks = list(self.blocks)
        n_nodes = nodes.shape[0]
        for block in self.blocks:
            if len(block) and (block.connectivity.min() < 0 or block.connectivity.max() >= n_nodes):
                raise ValueError(f"{block.cell_type} ブロックに範囲外の節点インデックスがあります。")

    @property
    def n_nodes(self) -> int:
        return int(self.nodes.shape[0])

    @property
    def domain_blocks(self) -> list[ElementBlock]:
        """領域要素ブロック（位相次元 = dimension）."""
        return [b for b in self.blocks if b.dimension == self.dimension]

    @property
    def boundary_blocks(self) -> list[ElementBlock]:
        """境界要素ブロック（位相次元 = dimension - 1）."""
        return [b for b in self.blocks if b.dimension == self.dimension - 1]

    @property
    def n_elements(self) -> int:
        """領域要素数."""
        return sum(len(b) for b in self.domain_blocks)

    @property
    def n_boundary_elements(self) -> int:
        return sum(len(b) for b in self.boundary_blocks)

    @property
    def region_tags(self) -> list[int]:
        """領域タグ（昇順・重複なし）."""
        return _unique_tags(self.domain_blocks)

    @property
    def boundary_tags(self) -> list[int]:
        """境界タグ（昇順・重複なし）."""
        return _unique_tags(self.boundary_blocks)

    def bounding_box(self) -> tuple[np.ndarray, np.ndarray]:
        """(最小座標, 最大座標) を返す."""
        return self.nodes.min(axis=0), self.nodes.max(axis=0)


def _unique_tags(blocks: list[ElementBlock]) -> list[int]:
    if not blocks:
        return []
    tags = np.unique(np.concatenate([b.tags for b in blocks]))
    return [int(t) for t in tags]


__all__ = ["CELL_TYPES", "ElementBlock", "Geometry"]
