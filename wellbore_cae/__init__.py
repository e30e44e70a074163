"""wellbore_cae: 坑井断面の平面弾性有限要素解析ドライバ.

流れ:
  load_geometry → MaterialModel → build_computational_mesh
  → EquilibriumAnalysis.run → export_fields
"""

from wellbore_cae.analysis import (
    AnalysisState,
    EquilibriumAnalysis,
    EquilibriumResult,
    SolverState,
)
from wellbore_cae.cmesh import ComputationalMesh, build_computational_mesh
from wellbore_cae.config import RunConfig, load_config
from wellbore_cae.io.gmsh_reader import load_geometry
from wellbore_cae.model import ConditionKind, MaterialModel
from wellbore_cae.output.postprocess import export_fields
from wellbore_cae.scenario import run_scenario, wellbore_model
from wellbore_cae.solver import SolverConfig

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "AnalysisState",
    "EquilibriumAnalysis",
    "EquilibriumResult",
    "SolverState",
    "ComputationalMesh",
    "build_computational_mesh",
    "RunConfig",
    "load_config",
    "load_geometry",
    "ConditionKind",
    "MaterialModel",
    "export_fields",
    "run_scenario",
    "wellbore_model",
    "SolverConfig",
]
