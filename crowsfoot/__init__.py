"""
crowsfoot - compile declarative Crow's-Foot ER text into positioned diagrams.

The pipeline is parse -> analyze -> layout -> refine, with serialize as the
inverse for graphs extracted from a rendered canvas.
"""

from .models import (
    # Enums
    Multiplicity,
    LineStyle,
    # Core models
    Attribute,
    Entity,
    Relationship,
    Diagram,
    PositionMap,
    CARDINALITIES,
)

from .errors import (
    ERDiagramError,
    ERSyntaxError,
    EmptyInputError,
    LayoutEngineFailure,
    SerializationError,
)
from .parser import parse
from .analysis import analyze, ConnectivityAnalysis, TopologyPattern, LayoutStrategy
from .layout import layout
from .refine import refine
from .serializer import serialize, serialize_diagram, normalize_multiplicity, CanvasGraph
from .validation import validate_diagram, ValidationIssue, IssueSeverity
from .generator import generate, layout_diagram, GenerationResult

__version__ = "0.1.0"

__all__ = [
    # Enums
    "Multiplicity",
    "LineStyle",
    "TopologyPattern",
    "LayoutStrategy",
    # Models
    "Attribute",
    "Entity",
    "Relationship",
    "Diagram",
    "PositionMap",
    "CARDINALITIES",
    # Errors
    "ERDiagramError",
    "ERSyntaxError",
    "EmptyInputError",
    "LayoutEngineFailure",
    "SerializationError",
    # Pipeline
    "parse",
    "analyze",
    "ConnectivityAnalysis",
    "layout",
    "refine",
    "generate",
    "layout_diagram",
    "GenerationResult",
    # Serialization
    "serialize",
    "serialize_diagram",
    "normalize_multiplicity",
    "CanvasGraph",
    # Validation
    "validate_diagram",
    "ValidationIssue",
    "IssueSeverity",
]
