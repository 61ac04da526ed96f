from .analysis.doubly import DoublyReinforcedBeam
from .analysis.polygon import PolygonSection, RebarLayer
from .analysis.singly import SinglyReinforcedBeam
from .constants import NSCP_2015, DesignCode
from .errors import ConvergenceError, InvalidInputError, SectionValidationError
from .tool import TOOL

__all__ = [
    "TOOL",
    "DesignCode",
    "NSCP_2015",
    "SinglyReinforcedBeam",
    "DoublyReinforcedBeam",
    "PolygonSection",
    "RebarLayer",
    "InvalidInputError",
    "SectionValidationError",
    "ConvergenceError",
]
