"""平面要素と境界辺要素."""

from wellbore_cae.elements.edge import Line2Edge, Line3Edge
from wellbore_cae.elements.quad4 import Quad4PlaneElement
from wellbore_cae.elements.tri3 import Tri3PlaneElement
from wellbore_cae.elements.tri6 import Tri6PlaneElement

__all__ = [
    "Tri3PlaneElement",
    "Tri6PlaneElement",
    "Quad4PlaneElement",
    "Line2Edge",
    "Line3Edge",
]
