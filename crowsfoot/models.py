"""
Core data models for ER diagrams.

These models define the canonical schema handed to renderers:
- Entities with an ordered list of attributes and a nominal size
- Relationships between entities, typed by a Crow's-Foot cardinality symbol
- The diagram itself, with an optional title

Field Naming Convention:
- Relationships use `source` and `target`
- For compatibility with canvas exports, `from`/`to` are accepted on input
- Entity `x`/`y` hold the centre of the entity once layout has run
"""

from enum import Enum
from typing import Optional, Any
from pydantic import BaseModel, Field, field_validator, model_validator


# Nominal entity size, not negotiated by layout
DEFAULT_ENTITY_WIDTH = 120
DEFAULT_ENTITY_HEIGHT = 80

# entity name -> (x, y) centre coordinates
PositionMap = dict[str, tuple[float, float]]


class Multiplicity(str, Enum):
    """How many instances take part on one end of a relationship."""
    ONE = "one"
    ZERO_OR_ONE = "zero-or-one"
    ONE_OR_MANY = "one-or-many"
    ZERO_OR_MANY = "zero-or-many"


class LineStyle(str, Enum):
    """Line styles for relationships."""
    SOLID = "solid"
    DASHED = "dashed"


# Left half of a symbol describes the source end, right half the target end
_SOURCE_ENDS = {
    "||": Multiplicity.ONE,
    "|o": Multiplicity.ZERO_OR_ONE,
    "}|": Multiplicity.ONE_OR_MANY,
    "}o": Multiplicity.ZERO_OR_MANY,
}
_TARGET_ENDS = {
    "||": Multiplicity.ONE,
    "o|": Multiplicity.ZERO_OR_ONE,
    "|{": Multiplicity.ONE_OR_MANY,
    "o{": Multiplicity.ZERO_OR_MANY,
}

# symbol -> (source multiplicity, target multiplicity, line style)
CARDINALITIES: dict[str, tuple[Multiplicity, Multiplicity, LineStyle]] = {
    f"{left}--{right}": (source, target, LineStyle.SOLID)
    for left, source in _SOURCE_ENDS.items()
    for right, target in _TARGET_ENDS.items()
}

# (source, target) -> symbol
SYMBOLS_BY_MULTIPLICITY: dict[tuple[Multiplicity, Multiplicity], str] = {
    (source, target): symbol
    for symbol, (source, target, _) in CARDINALITIES.items()
}


def is_cardinality(symbol: str) -> bool:
    """Check whether a token is one of the sixteen recognized symbols."""
    return symbol in CARDINALITIES


class Attribute(BaseModel):
    """A single attribute declared on an entity."""
    name: str
    data_type: str = "string"
    primary_key: bool = False
    required: bool = False
    multivalued: bool = False
    derived: bool = False
    composite: bool = False

    @model_validator(mode='before')
    @classmethod
    def convert_legacy_fields(cls, data: Any) -> Any:
        """Accept the camelCase flag names used by canvas exports."""
        if isinstance(data, dict):
            aliases = {
                "type": "data_type",
                "dataType": "data_type",
                "isPrimaryKey": "primary_key",
                "pk": "primary_key",
                "isRequired": "required",
                "isMultivalued": "multivalued",
                "isDerived": "derived",
                "isComposite": "composite",
            }
            for old, new in aliases.items():
                if old in data and new not in data:
                    data[new] = data.pop(old)
        return data


class Entity(BaseModel):
    """An entity in the diagram."""
    name: str
    attributes: list[Attribute] = Field(default_factory=list)
    weak: bool = False  # existence depends on an owning entity
    x: Optional[float] = None
    y: Optional[float] = None
    width: float = DEFAULT_ENTITY_WIDTH
    height: float = DEFAULT_ENTITY_HEIGHT

    @property
    def has_position(self) -> bool:
        return self.x is not None and self.y is not None

    def center(self) -> tuple[float, float]:
        """Get the center point of the entity."""
        if not self.has_position:
            raise ValueError(f"Entity {self.name} has not been positioned")
        return (self.x, self.y)

    def bounds(self) -> tuple[float, float, float, float]:
        """Get the bounding box (x, y, right, bottom)."""
        cx, cy = self.center()
        return (
            cx - self.width / 2,
            cy - self.height / 2,
            cx + self.width / 2,
            cy + self.height / 2,
        )

    def get_attribute(self, name: str) -> Optional[Attribute]:
        for attribute in self.attributes:
            if attribute.name == name:
                return attribute
        return None


class Relationship(BaseModel):
    """
    A relationship between two entities.

    Uses `source` and `target` as canonical field names.
    Accepts `from`/`to` on input.
    """
    source: str
    target: str
    cardinality: str
    label: Optional[str] = None
    line: Optional[int] = None  # 1-based source line, when parsed from text

    @model_validator(mode='before')
    @classmethod
    def convert_legacy_fields(cls, data: Any) -> Any:
        """Convert 'from'/'to' fields to 'source'/'target'."""
        if isinstance(data, dict):
            if 'from' in data and 'source' not in data:
                data['source'] = data.pop('from')
            if 'to' in data and 'target' not in data:
                data['target'] = data.pop('to')
        return data

    @field_validator('cardinality')
    @classmethod
    def check_cardinality(cls, value: str) -> str:
        if value not in CARDINALITIES:
            raise ValueError(f"Unknown cardinality symbol: {value}")
        return value

    @property
    def source_multiplicity(self) -> Multiplicity:
        return CARDINALITIES[self.cardinality][0]

    @property
    def target_multiplicity(self) -> Multiplicity:
        return CARDINALITIES[self.cardinality][1]

    @property
    def identifying(self) -> bool:
        """Solid-line relationships are identifying."""
        return CARDINALITIES[self.cardinality][2] == LineStyle.SOLID

    def key(self) -> tuple[str, str, str, Optional[str]]:
        """Content identity used when comparing relationship sets."""
        return (self.source, self.target, self.cardinality, self.label)

    def to_json_dict(self) -> dict:
        """Convert to JSON-serializable dict."""
        result = {
            "source": self.source,
            "target": self.target,
            "cardinality": self.cardinality,
            "source_multiplicity": self.source_multiplicity.value,
            "target_multiplicity": self.target_multiplicity.value,
            "identifying": self.identifying,
        }
        # Only include optional fields if they're set
        if self.label:
            result["label"] = self.label
        if self.line is not None:
            result["line"] = self.line
        return result


class Diagram(BaseModel):
    """
    The complete ER diagram.
    Built fresh by every parse; layout fills in entity positions.
    """
    title: Optional[str] = None
    entities: list[Entity] = Field(default_factory=list)
    relationships: list[Relationship] = Field(default_factory=list)

    def to_json_dict(self) -> dict:
        """Convert to JSON-serializable dict with proper field names."""
        return {
            "title": self.title,
            "entities": [e.model_dump() for e in self.entities],
            "relationships": [r.to_json_dict() for r in self.relationships],
        }

    @classmethod
    def from_json_dict(cls, data: dict) -> "Diagram":
        """Create a Diagram from a JSON dict."""
        return cls(
            title=data.get('title'),
            entities=[Entity(**e) for e in data.get('entities', [])],
            # Derived keys written by to_json_dict are ignored on input
            relationships=[Relationship(**r) for r in data.get('relationships', [])],
        )

    def get_entity(self, name: str) -> Optional[Entity]:
        """Get an entity by name (O(n))."""
        for entity in self.entities:
            if entity.name == name:
                return entity
        return None

    def entity_names(self) -> list[str]:
        return [e.name for e in self.entities]

    def positions(self) -> PositionMap:
        """Current positions of every positioned entity."""
        return {e.name: (e.x, e.y) for e in self.entities if e.has_position}

    def apply_positions(self, positions: PositionMap) -> "Diagram":
        """Write a position map onto the entities (in-place)."""
        for entity in self.entities:
            if entity.name in positions:
                entity.x, entity.y = positions[entity.name]
        return self
