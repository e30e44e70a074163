"""ジオメトリファイルの読み込み."""

from wellbore_cae.io.gmsh_reader import geometry_from_meshio, load_geometry

__all__ = ["load_geometry", "geometry_from_meshio"]
