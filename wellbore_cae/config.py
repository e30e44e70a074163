"""実行設定（RunConfig）と YAML 読み込み.

設定はすべて dataclass で表し、__post_init__ で値を検査する。
YAML の各セクションはそれぞれの dataclass のフィールド名と一致する必要があり、
未知のキーは ValueError とする（綴り間違いを黙って無視しない）。

YAML の例::

    mesh_file: wellbore.msh
    approximation_order: 2
    tolerance: 0.01
    max_iterations: 1
    scale: 1.0
    solver:
      storage: skyline
      decomposition: ldlt
      n_threads: 0
    material:
      elastic_modulus: 29269.0
      poisson_ratio: 0.203
      plane_mode: plane_strain
    boundary:
      wall_traction: -10.0
      far_field_traction: 0.0
    output:
      problem_name: Wellbore
      scalar_fields: [SigmaX, SigmaY, SigmaZ]
      vector_fields: [Displacement]
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from wellbore_cae.materials.elastic import PlaneMode
from wellbore_cae.solver import SolverConfig


def _check_tag(name: str, value: int) -> int:
    if isinstance(value, bool) or int(value) != value or value < 0:
        raise ValueError(f"{name} は 0 以上の整数: {value!r}")
    return int(value)


@dataclass(frozen=True)
class MaterialConfig:
    """岩盤の材料定数.

    Attributes:
        region_tag: 材料則を割り当てる領域タグ
        elastic_modulus: ヤング率
        poisson_ratio: ポアソン比
        plane_mode: "plane_strain" / "plane_stress"
    """

    region_tag: int = 1
    elastic_modulus: float = 29269.0
    poisson_ratio: float = 0.203
    plane_mode: str = PlaneMode.PLANE_STRAIN.value

    def __post_init__(self) -> None:
        _check_tag("region_tag", self.region_tag)
        if not self.elastic_modulus > 0.0:
            raise ValueError(f"elastic_modulus は正値: {self.elastic_modulus}")
        if not -1.0 < self.poisson_ratio < 0.5:
            raise ValueError(f"poisson_ratio は (-1, 0.5) の範囲: {self.poisson_ratio}")
        object.__setattr__(self, "plane_mode", PlaneMode(self.plane_mode).value)


@dataclass(frozen=True)
class BoundaryValues:
    """物理境界ごとのタグと境界値.

    坑壁・遠方境界には法線方向表面力（負値で圧縮）、対称面にはローラー
    （法線方向の変位ゼロ）を与える。

    Attributes:
        wall_tag: 坑壁の境界タグ
        wall_traction: 坑壁の法線表面力
        far_field_tag: 遠方境界のタグ
        far_field_traction: 遠方境界の法線表面力
        x_symmetry_tag: x = 0 対称面のタグ（ux 固定）
        y_symmetry_tag: y = 0 対称面のタグ（uy 固定）
        unit_scale: 応力系の値（ヤング率・表面力）に掛ける単位換算係数
    """

    wall_tag: int = 2
    wall_traction: float = -10.0
    far_field_tag: int = 3
    far_field_traction: float = 0.0
    x_symmetry_tag: int = 4
    y_symmetry_tag: int = 5
    unit_scale: float = 1.0

    def __post_init__(self) -> None:
        tags = [
            _check_tag(name, getattr(self, name))
            for name in ("wall_tag", "far_field_tag", "x_symmetry_tag", "y_symmetry_tag")
        ]
        if len(set(tags)) != len(tags):
            raise ValueError(f"境界タグが重複しています: {tags}")
        if not self.unit_scale > 0.0:
            raise ValueError(f"unit_scale は正値: {self.unit_scale}")

    @property
    def tags(self) -> tuple[int, int, int, int]:
        return (self.wall_tag, self.far_field_tag, self.x_symmetry_tag, self.y_symmetry_tag)


@dataclass(frozen=True)
class OutputConfig:
    """出力ファイル名とフィールド名.

    Attributes:
        directory: 出力ディレクトリ
        problem_name: 問題名（結果ファイルは "<problem_name>.vtu"）
        geometry_text: ジオメトリのテキスト出力（None で出力しない）
        geometry_vtk: ジオメトリの VTU 出力（None で出力しない）
        cmesh_text: 計算メッシュのテキスト出力（None で出力しない）
        scalar_fields: 出力するスカラーフィールド名
        vector_fields: 出力するベクトルフィールド名
        subdivision_level: 後処理メッシュの細分割レベル
        binary: VTU を Base64 バイナリで出力
    """

    directory: str = "."
    problem_name: str = "Wellbore"
    geometry_text: str | None = "geometry.txt"
    geometry_vtk: str | None = "geometry.vtu"
    cmesh_text: str | None = None
    scalar_fields: tuple[str, ...] = ("SigmaX", "SigmaY", "SigmaZ")
    vector_fields: tuple[str, ...] = ("Displacement",)
    subdivision_level: int = 0
    binary: bool = False

    def __post_init__(self) -> None:
        if not self.problem_name:
            raise ValueError("problem_name が空です。")
        if isinstance(self.scalar_fields, str) or isinstance(self.vector_fields, str):
            raise ValueError("scalar_fields / vector_fields は名前のリストで指定してください。")
        object.__setattr__(self, "scalar_fields", tuple(str(n) for n in self.scalar_fields))
        object.__setattr__(self, "vector_fields", tuple(str(n) for n in self.vector_fields))
        _check_tag("subdivision_level", self.subdivision_level)

    @property
    def result_file(self) -> str:
        return f"{self.problem_name}.vtu"

    def path(self, filename: str | None) -> Path | None:
        """出力ディレクトリを前置したパス（None はそのまま）."""
        if filename is None:
            return None
        return Path(self.directory) / filename


@dataclass(frozen=True)
class RunConfig:
    """1 回の解析の実行パラメータ.

    Attributes:
        mesh_file: gmsh .msh ファイル
        approximation_order: 近似次数
        tolerance: 残差ノルムの収束閾値
        max_iterations: 平衡反復の上限
        scale: 座標の単位換算係数
        solver: 線形ソルバー設定
        material: 材料定数
        boundary: 境界値
        output: 出力設定
        show_progress: 進捗表示
    """

    mesh_file: str = "wellbore.msh"
    approximation_order: int = 2
    tolerance: float = 0.01
    max_iterations: int = 1
    scale: float = 1.0
    solver: SolverConfig = field(default_factory=SolverConfig)
    material: MaterialConfig = field(default_factory=MaterialConfig)
    boundary: BoundaryValues = field(default_factory=BoundaryValues)
    output: OutputConfig = field(default_factory=OutputConfig)
    show_progress: bool = True

    def __post_init__(self) -> None:
        if not self.tolerance > 0.0:
            raise ValueError(f"tolerance は正値: {self.tolerance}")
        if int(self.max_iterations) != self.max_iterations or self.max_iterations < 1:
            raise ValueError(f"max_iterations は 1 以上の整数: {self.max_iterations}")
        if not self.scale > 0.0:
            raise ValueError(f"scale は正値: {self.scale}")
        if self.material.region_tag in self.boundary.tags:
            raise ValueError(
                f"領域タグ {self.material.region_tag} が境界タグ "
                f"{self.boundary.tags} と重複しています。"
            )


# ========== 辞書 / YAML からの構築 ==========

_SECTIONS: dict[str, type] = {
    "solver": SolverConfig,
    "material": MaterialConfig,
    "boundary": BoundaryValues,
    "output": OutputConfig,
}


def _build(cls: type, data: Any, where: str) -> Any:
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError(f"{where}: マッピングが必要です（{type(data).__name__}）。")
    names = {f.name for f in dataclasses.fields(cls)}
    unknown = sorted(set(data) - names)
    if unknown:
        raise ValueError(f"{where}: 未知のキー {unknown}（有効なキー: {sorted(names)}）")
    return cls(**data)


def config_from_dict(data: dict[str, Any] | None) -> RunConfig:
    """辞書から RunConfig を作る.

    Raises:
        ValueError: 未知のキー、型の不一致、値の範囲外
    """
    data = dict(data or {})
    if not all(isinstance(k, str) for k in data):
        raise ValueError("設定のキーは文字列が必要です。")
    try:
        sections = {
            name: _build(cls, data.pop(name, None), name) for name, cls in _SECTIONS.items()
        }
        return _build(RunConfig, {**data, **sections}, "config")
    except TypeError as exc:
        raise ValueError(f"設定の型が不正です: {exc}") from exc


def load_config(path: str | Path) -> RunConfig:
    """YAML ファイルから RunConfig を読み込む.

    mesh_file と output.directory が相対パスの場合は設定ファイルの
    ディレクトリを基準に解決する。

    Raises:
        FileNotFoundError: 設定ファイルが存在しない
        ValueError: YAML の構文エラー、未知のキー、不正な値
    """
    path = Path(path)
    with open(path, encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ValueError(f"設定ファイル {path} の YAML が不正です: {exc}") from exc
    if data is not None and not isinstance(data, dict):
        raise ValueError(f"設定ファイル {path} の最上位はマッピングが必要です。")
    config = config_from_dict(data)

    base = path.parent
    mesh_file = Path(config.mesh_file)
    directory = Path(config.output.directory)
    return dataclasses.replace(
        config,
        mesh_file=str(mesh_file if mesh_file.is_absolute() else base / mesh_file),
        output=dataclasses.replace(
            config.output,
            directory=str(directory if directory.is_absolute() else base / directory),
        ),
    )


__all__ = [
    "MaterialConfig",
    "BoundaryValues",
    "OutputConfig",
    "RunConfig",
    "config_from_dict",
    "load_config",
]
