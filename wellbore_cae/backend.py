"""既定の有限要素バックエンド（numpy / scipy.sparse）.

FiniteElementBackend Protocol の実装。
  - build_space: wellbore_cae.space.build_space（TRI3/TRI6/Q4）
  - assemble: 剛性 + 境界ばね、外力、Dirichlet 行・列消去
  - factorize / solve: wellbore_cae.solver（スカイライン LDLᵀ / SuperLU）
  - graph_mesh / extract_field: 要素ごとの細分割点での変位・応力評価

線形材料のみのモデルでは、剛性・外力・拘束を計算メッシュごとにキャッシュする。
"""

from __future__ import annotations

import weakref
from typing import TYPE_CHECKING, Any

import numpy as np
import scipy.sparse as sp

from wellbore_cae.assembly import BoundaryContribution, assemble_boundary, assemble_stiffness
from wellbore_cae.bc import apply_dirichlet
from wellbore_cae.core.results import AssembledSystem, FieldData, GraphMesh
from wellbore_cae.errors import AssemblyError, UnknownFieldError
from wellbore_cae.materials.elastic import von_mises_plane
from wellbore_cae.solver import SolverConfig, factorize
from wellbore_cae.space import FunctionSpace, build_space

if TYPE_CHECKING:
    from wellbore_cae.cmesh import ComputationalMesh
    from wellbore_cae.mesh.geometry import Geometry


class _LinearSystem:
    """変位に依存しない組み立て結果（キャッシュ用）."""

    def __init__(self, K: sp.csr_matrix, boundary: BoundaryContribution) -> None:
        self.K = K
        self.boundary = boundary


class ScipyBackend:
    """numpy / scipy による FiniteElementBackend 実装.

    Args:
        show_progress: 組み立て・分解の進捗表示
    """

    def __init__(self, *, show_progress: bool = False) -> None:
        self.show_progress = show_progress
        self._systems: weakref.WeakKeyDictionary = weakref.WeakKeyDictionary()
        self._field_cache: tuple[Any, np.ndarray, dict[str, np.ndarray]] | None = None

    # ---------- 空間 ----------

    def build_space(self, geometry: Geometry, order: int) -> FunctionSpace:
        return build_space(geometry, order)

    # ---------- 組み立て ----------

    def _system(
        self, cmesh: ComputationalMesh, *, n_threads: int = 0, show_progress: bool = False
    ) -> _LinearSystem:
        cached = self._systems.get(cmesh)
        if cached is not None:
            return cached
        space = cmesh.space
        K = assemble_stiffness(
            space.nodes,
            space.domain_groups,
            cmesh.materials,
            n_threads=n_threads,
            show_progress=show_progress or self.show_progress,
        )
        boundary = assemble_boundary(space.nodes, space.boundary_groups, cmesh.boundary_conditions)
        system = _LinearSystem((K + boundary.K_spring).tocsr(), boundary)
        if all(law.is_linear for law in cmesh.materials.values()):
            self._systems[cmesh] = system
        return system

    def assemble(
        self,
        cmesh: ComputationalMesh,
        u: np.ndarray,
        *,
        n_threads: int = 0,
        show_progress: bool = False,
    ) -> AssembledSystem:
        system = self._system(cmesh, n_threads=n_threads, show_progress=show_progress)
        K = system.K
        bd = system.boundary
        u = np.asarray(u, dtype=float)

        if not np.all(np.isfinite(K.data)):
            raise AssemblyError("剛性行列に非有限値があります。")
        if not np.all(np.isfinite(bd.f_ext)):
            raise AssemblyError("外力ベクトルに非有限値があります。")
        _check_connected(K, bd.fixed_dofs)
        _check_rigid_body_modes(cmesh.space.nodes, bd)

        # r = f_int(u) - f_ext、Dirichlet 補正は du = ū - u を規定する
        r = K @ u - bd.f_ext
        Kbc, neg_r = apply_dirichlet(K, -r, bd.fixed_dofs, bd.fixed_values - u[bd.fixed_dofs])
        key = ("linear", cmesh.n_dofs, bd.fixed_dofs.tobytes())
        return AssembledSystem(
            stiffness=Kbc, rhs=-neg_r, fixed_dofs=bd.fixed_dofs, matrix_key=key
        )

    def assemble_residual(self, cmesh: ComputationalMesh, u: np.ndarray) -> np.ndarray:
        system = self._system(cmesh)
        residual = system.boundary.f_ext - system.K @ np.asarray(u, dtype=float)
        residual[system.boundary.fixed_dofs] = 0.0
        return residual

    # ---------- 線形ソルバー ----------

    def factorize(self, K: sp.csr_matrix, config: SolverConfig) -> Any:
        return factorize(K, config)

    def solve(self, factor: Any, rhs: np.ndarray) -> np.ndarray:
        return factor.solve(rhs)

    # ---------- 後処理 ----------

    def graph_mesh(self, cmesh: ComputationalMesh, subdivision_level: int = 0) -> GraphMesh:
        if int(subdivision_level) != subdivision_level or subdivision_level < 0:
            raise ValueError(f"subdivision_level は 0 以上の整数: {subdivision_level}")
        level = int(subdivision_level)
        points, owner = [], []
        blocks: list[tuple[int, np.ndarray]] = []
        n_points = 0
        n_elem = 0
        for group in cmesh.space.domain_groups:
            element = group.element
            xi, sub = element.subdivide(level)
            N = element.shape_functions(xi)
            coords = cmesh.space.nodes[group.connectivity]  # (Ne, nnodes, 2)
            ne = coords.shape[0]
            npts = xi.shape[0]
            points.append(np.einsum("pn,enk->epk", N, coords).reshape(-1, 2))
            offsets = n_points + npts * np.arange(ne, dtype=np.int64)
            cells = (sub[None, :, :] + offsets[:, None, None]).reshape(-1, sub.shape[1])
            if blocks and blocks[-1][0] == element.vtk_cell_type:
                blocks[-1] = (element.vtk_cell_type, np.vstack([blocks[-1][1], cells]))
            else:
                blocks.append((element.vtk_cell_type, cells))
            owner.append(np.repeat(n_elem + np.arange(ne, dtype=np.int64), npts))
            n_points += ne * npts
            n_elem += ne
        return GraphMesh(
            points=np.concatenate(points),
            cell_blocks=blocks,
            element_index=np.concatenate(owner),
            subdivision_level=level,
        )

    def extract_field(
        self,
        cmesh: ComputationalMesh,
        u: np.ndarray,
        name: str,
        graph: GraphMesh,
    ) -> FieldData:
        fields = self._evaluate(cmesh, np.asarray(u, dtype=float), graph)
        if name not in fields:
            raise UnknownFieldError(
                f"フィールド {name!r} は計算できません。", name=name, available=tuple(fields)
            )
        values = fields[name].copy()
        values.setflags(write=False)
        n_components = 1 if values.ndim == 1 else int(values.shape[1])
        return FieldData(name=name, values=values, n_components=n_components)

    def _evaluate(
        self, cmesh: ComputationalMesh, u: np.ndarray, graph: GraphMesh
    ) -> dict[str, np.ndarray]:
        cache = self._field_cache
        if cache is not None and cache[0] is graph and np.array_equal(cache[1], u):
            return cache[2]

        disp, stress, sigma_z = [], [], []
        level = graph.subdivision_level
        for group in cmesh.space.domain_groups:
            element = group.element
            law = cmesh.model.material(group.region_tag)
            xi, _ = element.subdivide(level)
            N = element.shape_functions(xi)
            conn = group.connectivity
            coords = cmesh.space.nodes[conn]
            for xy, enodes in zip(coords, conn, strict=True):
                uel = u[element.dof_indices(enodes)]
                disp.append(N @ uel.reshape(-1, 2))
                B = element.strain_matrix(xy, xi)  # (npts, 3, ndof)
                s = law.stress(B @ uel)
                stress.append(s)
                sigma_z.append(law.out_of_plane_stress(s))

        d = np.concatenate(disp)
        s = np.concatenate(stress)
        sz = np.concatenate(sigma_z)
        fields = {
            "SigmaX": s[:, 0],
            "SigmaY": s[:, 1],
            "SigmaZ": sz,
            "TauXY": s[:, 2],
            "VonMises": von_mises_plane(s, sz),
            "DisplacementX": d[:, 0],
            "DisplacementY": d[:, 1],
            "Displacement": d,
            "Stress": s,
        }
        self._field_cache = (graph, u.copy(), fields)
        return fields


def _check_connected(K: sp.csr_matrix, fixed_dofs: np.ndarray) -> None:
    """どの要素にも属さない自由 DOF（対角ゼロ）を検出する."""
    diag = K.diagonal()
    free = np.ones(K.shape[0], dtype=bool)
    free[fixed_dofs] = False
    orphan = np.flatnonzero(free & (diag == 0.0))
    if orphan.size:
        raise AssemblyError(
            f"どの要素にも接続されていない自由度があります: {orphan[:10].tolist()}"
        )


def _check_rigid_body_modes(nodes: np.ndarray, bd: BoundaryContribution) -> None:
    """剛体モード（並進2 + 回転1）が拘束またはばねで抑えられているか検査する."""
    n_nodes = nodes.shape[0]
    center = nodes.mean(axis=0)
    length = float(np.max(np.ptp(nodes, axis=0))) or 1.0
    R = np.zeros((2 * n_nodes, 3), dtype=float)
    R[0::2, 0] = 1.0
    R[1::2, 1] = 1.0
    R[0::2, 2] = -(nodes[:, 1] - center[1]) / length
    R[1::2, 2] = (nodes[:, 0] - center[0]) / length

    blocks = [R[bd.fixed_dofs]]
    if bd.K_spring.nnz:
        Ks = R.T @ (bd.K_spring @ R)
        scale = float(np.max(np.abs(Ks)))
        if scale > 0.0:
            blocks.append(Ks / scale)
    M = np.vstack(blocks) if blocks else np.zeros((0, 3))
    rank = np.linalg.matrix_rank(M) if M.shape[0] else 0
    if rank < 3:
        raise AssemblyError(
            f"剛体モードが拘束されていません（拘束ランク {rank}/3）。"
            "変位境界条件またはばね境界を確認してください。"
        )


__all__ = ["ScipyBackend"]
