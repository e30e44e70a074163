from wellbore_cae.materials.elastic import (
    ElasticMaterialLaw,
    PlaneMode,
    constitutive_plane_strain,
    constitutive_plane_stress,
    von_mises_plane,
)

__all__ = [
    "ElasticMaterialLaw",
    "PlaneMode",
    "constitutive_plane_strain",
    "constitutive_plane_stress",
    "von_mises_plane",
]
