"""wellbore-cae コマンドラインインターフェース.

サブコマンド:
  run   設定ファイル（YAML）に従って解析を実行する
  mesh  1/4 円環の構造格子メッシュを gmsh 2.2 形式で書き出す

終了コード:
  0  正常終了（反復上限に達して未収束の場合も 0、"not converged" を表示）
  1  設定・モデル・求解・出力のエラー（stderr に診断を表示）
"""

from __future__ import annotations

import argparse
import dataclasses
import sys
from collections.abc import Sequence

from wellbore_cae import __version__
from wellbore_cae.config import RunConfig, load_config
from wellbore_cae.errors import WellboreCaeError
from wellbore_cae.mesh.wellbore_mesh import make_wellbore_mesh, write_gmsh
from wellbore_cae.scenario import run_scenario


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wellbore-cae",
        description="坑井断面の平面弾性有限要素解析",
    )
    parser.add_argument("--version", action="version", version=f"wellbore-cae {__version__}")
    sub = parser.add_subparsers(dest="command")

    run = sub.add_parser("run", help="解析を実行する")
    run.add_argument("config", nargs="?", help="YAML 設定ファイル（省略時は既定値）")
    run.add_argument("--mesh", help="gmsh .msh ファイル（設定を上書き）")
    run.add_argument("--order", type=int, help="近似次数（設定を上書き）")
    run.add_argument("--output-dir", help="出力ディレクトリ（設定を上書き）")
    run.add_argument("--quiet", action="store_true", help="進捗表示を抑制する")

    mesh = sub.add_parser("mesh", help="1/4 円環メッシュを書き出す")
    mesh.add_argument("output", help="出力 .msh パス")
    mesh.add_argument("--r-inner", type=float, default=1.0, help="坑井半径")
    mesh.add_argument("--r-outer", type=float, default=10.0, help="遠方境界の半径")
    mesh.add_argument("--n-r", type=int, default=16, help="径方向要素数")
    mesh.add_argument("--n-theta", type=int, default=16, help="周方向要素数")
    mesh.add_argument("--cell", choices=["triangle", "quad"], default="triangle")
    mesh.add_argument("--grading", type=float, default=1.0, help="最外 / 最内の要素幅の比")
    mesh.add_argument("--binary", action="store_true", help="バイナリ形式で書き出す")
    return parser


def _run_config(args: argparse.Namespace) -> RunConfig:
    config = load_config(args.config) if args.config else RunConfig()
    overrides: dict = {}
    if args.mesh is not None:
        overrides["mesh_file"] = args.mesh
    if args.order is not None:
        overrides["approximation_order"] = args.order
    if args.quiet:
        overrides["show_progress"] = False
    if args.output_dir is not None:
        overrides["output"] = dataclasses.replace(config.output, directory=args.output_dir)
    return dataclasses.replace(config, **overrides) if overrides else config


def _do_run(args: argparse.Namespace) -> int:
    config = _run_config(args)
    scenario = run_scenario(config)
    result = scenario.result
    status = "converged" if result.converged else "not converged"
    print(
        f"{scenario.cmesh.name}: {status} "
        f"(iterations={result.n_iterations}, ||r||={result.residual_norm:.3e}, "
        f"dofs={scenario.cmesh.n_dofs}, {scenario.elapsed:.2f} s)"
    )
    for path in scenario.outputs:
        print(f"  -> {path}")
    return 0


def _do_mesh(args: argparse.Namespace) -> int:
    geometry = make_wellbore_mesh(
        args.r_inner,
        args.r_outer,
        args.n_r,
        args.n_theta,
        cell_type=args.cell,
        grading=args.grading,
    )
    path = write_gmsh(geometry, args.output, binary=args.binary)
    print(
        f"[mesh] {geometry.n_nodes} nodes, {geometry.n_elements} elements, "
        f"{geometry.n_boundary_elements} boundary elements -> {path}"
    )
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 1
    handler = _do_run if args.command == "run" else _do_mesh
    try:
        return handler(args)
    except (WellboreCaeError, ValueError, OSError) as exc:
        print(f"error: {type(exc).__name__}: {exc}", file=sys.stderr)
        return 1


__all__ = ["main"]
