"""出力モジュール.

- export_fields: 後処理フィールドの評価と VTU 出力
- write_vtu: VTK XML Unstructured Grid の書き出し
- report_geometry / write_geometry_text / write_geometry_vtk / write_cmesh_text:
  診断用出力（ベストエフォート）
"""

from wellbore_cae.output.export_vtk import write_vtu
from wellbore_cae.output.postprocess import export_fields, validate_field_names
from wellbore_cae.output.report import (
    report_geometry,
    write_cmesh_text,
    write_geometry_text,
    write_geometry_vtk,
)

__all__ = [
    "export_fields",
    "validate_field_names",
    "write_vtu",
    "report_geometry",
    "write_geometry_text",
    "write_geometry_vtk",
    "write_cmesh_text",
]
