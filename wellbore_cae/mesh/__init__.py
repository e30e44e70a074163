"""幾何メッシュのデータモデルと坑井断面メッシュジェネレータ."""

from wellbore_cae.mesh.geometry import CELL_TYPES, ElementBlock, Geometry
from wellbore_cae.mesh.wellbore_mesh import make_wellbore_mesh, write_gmsh

__all__ = ["CELL_TYPES", "ElementBlock", "Geometry", "make_wellbore_mesh", "write_gmsh"]
