"""坑井断面シナリオ: 設定からの一括実行.

手順:
  1. ジオメトリ読み込み（gmsh .msh、座標に scale を掛ける）
  2. ジオメトリの診断出力（テキスト / VTU、ベストエフォート）
  3. 材料則・境界条件の登録
       領域タグ 1: 線形弾性（既定 E=29269, ν=0.203, 平面ひずみ）
       境界タグ 2: 坑壁の法線表面力（既定 −10）
       境界タグ 3: 遠方境界の法線表面力（既定 0）
       境界タグ 4: ux 固定
       境界タグ 5: uy 固定
  4. 計算メッシュ構築（既定は 2 次）
  5. 平衡反復
  6. フィールド出力（"<problem_name>.vtu"）
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from pathlib import Path

from wellbore_cae.analysis import EquilibriumAnalysis, EquilibriumResult
from wellbore_cae.cmesh import ComputationalMesh, build_computational_mesh
from wellbore_cae.config import BoundaryValues, MaterialConfig, RunConfig
from wellbore_cae.core.backend import FiniteElementBackend
from wellbore_cae.core.results import FieldData
from wellbore_cae.io.gmsh_reader import load_geometry
from wellbore_cae.mesh.geometry import Geometry
from wellbore_cae.model import ConditionKind, MaterialModel
from wellbore_cae.output.postprocess import export_fields, validate_field_names
from wellbore_cae.output.report import report_geometry, write_cmesh_text


def wellbore_model(
    boundary: BoundaryValues | None = None,
    material: MaterialConfig | None = None,
) -> MaterialModel:
    """坑井断面の材料則・境界条件モデルを作る."""
    boundary = boundary if boundary is not None else BoundaryValues()
    material = material if material is not None else MaterialConfig()
    scale = boundary.unit_scale

    model = MaterialModel()
    model.register_material(
        material.region_tag,
        material.elastic_modulus * scale,
        material.poisson_ratio,
        material.plane_mode,
    )
    model.register_boundary_condition(
        boundary.wall_tag,
        ConditionKind.NORMAL_TRACTION,
        val2=[boundary.wall_traction * scale, 0.0],
    )
    model.register_boundary_condition(
        boundary.far_field_tag,
        ConditionKind.NORMAL_TRACTION,
        val2=[boundary.far_field_traction * scale, 0.0],
    )
    model.register_boundary_condition(boundary.x_symmetry_tag, ConditionKind.DISPLACEMENT_X)
    model.register_boundary_condition(boundary.y_symmetry_tag, ConditionKind.DISPLACEMENT_Y)
    return model


@dataclass
class ScenarioResult:
    """シナリオ実行の結果.

    Attributes:
        geometry: 読み込んだジオメトリ
        cmesh: 計算メッシュ
        result: 平衡反復の結果
        fields: 出力したフィールド
        outputs: 書き出したファイル（診断出力の失敗分は含まない）
        elapsed: 全体の実行時間 [s]
    """

    geometry: Geometry
    cmesh: ComputationalMesh
    result: EquilibriumResult
    fields: dict[str, FieldData] = field(default_factory=dict)
    outputs: list[Path] = field(default_factory=list)
    elapsed: float = 0.0


def run_scenario(
    config: RunConfig | None = None,
    *,
    backend: FiniteElementBackend | None = None,
) -> ScenarioResult:
    """設定に従って読み込みから出力までを実行する.

    Raises:
        GeometryLoadError: メッシュの読み込み失敗
        ModelError / InvalidOrderError: モデル・計算メッシュの構築失敗
        UnknownFieldError: 出力フィールド名が不正（求解前に検査する）
        AssemblyError / FactorizationError: 求解の失敗
    """
    config = config if config is not None else RunConfig()
    out = config.output
    verbose = config.show_progress
    t0 = time.time()

    geometry = load_geometry(config.mesh_file, scale=config.scale)
    Path(out.directory).mkdir(parents=True, exist_ok=True)
    outputs: list[Path] = []

    text_path = out.path(out.geometry_text)
    vtk_path = out.path(out.geometry_vtk)
    report_geometry(geometry, text_path, vtk_path, show_progress=verbose)
    outputs.extend(p for p in (text_path, vtk_path) if p is not None and p.exists())

    model = wellbore_model(config.boundary, config.material)
    cmesh = build_computational_mesh(
        geometry, model, config.approximation_order, backend=backend, name=out.problem_name
    )
    if verbose:
        print(
            f"[cmesh] {cmesh.name}: order {cmesh.order}, {cmesh.space.n_nodes} nodes, "
            f"{cmesh.n_dofs} dofs"
        )
    cmesh_path = out.path(out.cmesh_text)
    if cmesh_path is not None and write_cmesh_text(cmesh, cmesh_path):
        outputs.append(cmesh_path)

    validate_field_names(cmesh, out.scalar_fields, out.vector_fields)

    analysis = EquilibriumAnalysis(
        cmesh, backend=backend, solver_config=config.solver, show_progress=verbose
    )
    result = analysis.run(tol=config.tolerance, max_iterations=config.max_iterations)

    result_path = out.path(out.result_file)
    fields = export_fields(
        cmesh,
        result,
        out.scalar_fields,
        out.vector_fields,
        result_path,
        subdivision_level=out.subdivision_level,
        backend=backend,
        binary=out.binary,
        show_progress=verbose,
    )
    outputs.append(result_path)
    return ScenarioResult(
        geometry=geometry,
        cmesh=cmesh,
        result=result,
        fields=fields,
        outputs=outputs,
        elapsed=time.time() - t0,
    )


__all__ = ["wellbore_model", "ScenarioResult", "run_scenario"]
