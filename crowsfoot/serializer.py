"""
Serializer - rebuild declarative ER text from a diagram.

The input is usually a graph extracted from a rendered canvas: elements
tagged as entities or attributes, and connections carrying free-form
per-end multiplicity strings. Those strings are normalized to the four
multiplicity classes before choosing one of the sixteen symbols; anything
unrecognized becomes zero-or-many, so serialization never fails on odd
values.
"""

import re
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, model_validator

from .config.logging import get_logger
from .errors import SerializationError
from .models import SYMBOLS_BY_MULTIPLICITY, Diagram, Multiplicity

logger = get_logger(__name__)

DEFAULT_TITLE = "ER Diagram"

WEAK_ENTITY_TYPES = ("weakentity", "weak-entity", "weak_entity")

_NAME_RE = re.compile(r"^\w+(?:-\w+)*$")

# Lower-cased synonyms for each multiplicity class
MULTIPLICITY_SYNONYMS: dict[Multiplicity, set[str]] = {
    Multiplicity.ONE: {
        "1", "1..1", "one", "exactly-one", "exactly one", "only-one", "one-and-only-one",
        "||", "mandatory-one",
    },
    Multiplicity.ZERO_OR_ONE: {
        "0..1", "0,1", "?", "optional", "zero-or-one", "zero or one", "|o", "o|",
    },
    Multiplicity.ONE_OR_MANY: {
        "1..n", "1..*", "1..m", "+", "1+", "one-or-many", "one or many", "one-or-more",
        "many-required", "}|", "|{",
    },
    Multiplicity.ZERO_OR_MANY: {
        "0..n", "0..*", "0..m", "*", "n", "m", "many", "zero-or-many", "zero or many",
        "zero-or-more", "}o", "o{",
    },
}

_LOOKUP: dict[str, Multiplicity] = {
    synonym: multiplicity
    for multiplicity, synonyms in MULTIPLICITY_SYNONYMS.items()
    for synonym in synonyms
}


def normalize_multiplicity(value: Any) -> Multiplicity:
    """
    Map an externally stored multiplicity string to its class.

    Args:
        value: Raw value such as "1", "0..*", "optional" or None

    Returns:
        The matching Multiplicity; ZERO_OR_MANY when unrecognized
    """
    if isinstance(value, Multiplicity):
        return value
    if value is None:
        return Multiplicity.ZERO_OR_MANY
    key = str(value).strip().lower()
    if key in _LOOKUP:
        return _LOOKUP[key]
    try:
        return Multiplicity(key)
    except ValueError:
        logger.debug("Unrecognized multiplicity %r, using zero-or-many", value)
        return Multiplicity.ZERO_OR_MANY


def symbol_for(source: Any, target: Any) -> str:
    """Crow's-Foot symbol for a (source, target) multiplicity pair."""
    return SYMBOLS_BY_MULTIPLICITY[(normalize_multiplicity(source), normalize_multiplicity(target))]


# --- Canvas graph ---

class CanvasElement(BaseModel):
    """An entity or attribute shape extracted from the canvas."""
    id: str
    er_type: str = "Entity"
    name: str = ""
    parent: Optional[str] = None  # owning entity id, for attributes
    data_type: str = "string"
    primary_key: bool = False
    required: bool = False
    multivalued: bool = False
    derived: bool = False
    composite: bool = False
    weak: bool = False

    @model_validator(mode='before')
    @classmethod
    def convert_legacy_fields(cls, data: Any) -> Any:
        """Accept the camelCase names canvas exports use."""
        if isinstance(data, dict):
            aliases = {
                "erType": "er_type",
                "dataType": "data_type",
                "isPrimaryKey": "primary_key",
                "isRequired": "required",
                "isMultivalued": "multivalued",
                "isDerived": "derived",
                "isComposite": "composite",
                "isWeak": "weak",
            }
            for old, new in aliases.items():
                if old in data and new not in data:
                    data[new] = data.pop(old)
            if str(data.get("er_type", "")).lower() in WEAK_ENTITY_TYPES:
                data.setdefault("weak", True)
        return data

    @property
    def is_entity(self) -> bool:
        return self.er_type.lower() == "entity" or self.er_type.lower() in WEAK_ENTITY_TYPES

    @property
    def is_attribute(self) -> bool:
        return self.er_type.lower() == "attribute"


class CanvasConnection(BaseModel):
    """A connection between two canvas elements."""
    source: str
    target: str
    name: Optional[str] = None
    cardinality_source: Optional[str] = "1"
    cardinality_target: Optional[str] = "1"

    @model_validator(mode='before')
    @classmethod
    def convert_legacy_fields(cls, data: Any) -> Any:
        """Convert 'from'/'to' and camelCase fields."""
        if isinstance(data, dict):
            aliases = {
                "from": "source",
                "to": "target",
                "cardinalitySource": "cardinality_source",
                "cardinalityTarget": "cardinality_target",
                "label": "name",
            }
            for old, new in aliases.items():
                if old in data and new not in data:
                    data[new] = data.pop(old)
        return data


class CanvasGraph(BaseModel):
    """What the canvas-extraction side hands over for serialization."""
    title: Optional[str] = None
    elements: list[CanvasElement] = Field(default_factory=list)
    connections: list[CanvasConnection] = Field(default_factory=list)


def _clean_name(text: str) -> str:
    # The parser reads word characters joined by single hyphens
    if _NAME_RE.match(text):
        return text
    name = re.sub(r"[^\w-]+", "_", text)
    name = re.sub(r"-{2,}", "-", name)
    return name.strip("-_")


def _entity_name(element: CanvasElement) -> str:
    return _clean_name(element.name) or _clean_name(element.id) or "ENTITY"


def _attribute_value(attribute: dict) -> Any:
    """Compact YAML value for an attribute: a type string, or a mapping when flagged."""
    flags = {k: True for k in ("primary_key", "required", "multivalued", "derived", "composite") if attribute.get(k)}
    if not flags:
        return attribute.get("data_type", "string")
    return {"type": attribute.get("data_type", "string"), **flags}


def _entity_value(attributes: list[dict], weak: bool) -> Optional[dict]:
    value: dict[str, Any] = {"weak": True} if weak else {}
    if attributes:
        value["attributes"] = {a["name"]: _attribute_value(a) for a in attributes}
    return value or None


def _render(
    title: str,
    lines: list[str],
    entities: dict[str, list[dict]],
    related: set[str],
    weak: set[str]
) -> str:
    # The plain text block only works when every entity appears in a relationship
    if not any(entities.values()) and not weak and all(name in related for name in entities):
        block = "\n".join(f"  {line}" for line in lines)
        text = yaml.safe_dump({"title": title}, allow_unicode=True, sort_keys=False)
        return f"{text}erDiagram: |\n{block}\n"

    document = {
        "erDiagram": {
            "title": title,
            "entities": {
                name: _entity_value(attributes, name in weak)
                for name, attributes in entities.items()
            },
            "relationships": lines,
        }
    }
    return yaml.safe_dump(document, allow_unicode=True, sort_keys=False, default_flow_style=False)


def _relationship_line(source: str, symbol: str, target: str, label: Optional[str]) -> str:
    line = f"{source} {symbol} {target}"
    if label:
        label = " ".join(str(label).split())
        line = f"{line} : {label}"
    return line


def serialize(graph: CanvasGraph | dict) -> str:
    """
    Rebuild declarative text from a canvas graph.

    Connections between two entities become relationship lines; connections
    from an attribute to an entity attach the attribute to that entity.
    Entities that take part in no relationship are kept in an `entities`
    block so they survive a round trip.

    Args:
        graph: CanvasGraph (or its dict form)

    Returns:
        YAML text accepted by the parser

    Raises:
        SerializationError: If the graph holds no entities
    """
    if isinstance(graph, dict):
        graph = CanvasGraph(**graph)

    by_id = {e.id: e for e in graph.elements}
    entities = [e for e in graph.elements if e.is_entity]
    if not entities:
        raise SerializationError("No ER entities found to serialize")

    attributes: dict[str, list[dict]] = {_entity_name(e): [] for e in entities}
    lines: list[str] = []
    related: set[str] = set()

    def attach(attribute: CanvasElement, owner: CanvasElement):
        attributes[_entity_name(owner)].append(
            attribute.model_dump(include={
                "name", "data_type", "primary_key", "required",
                "multivalued", "derived", "composite",
            })
        )

    attached: set[str] = set()
    for element in graph.elements:
        if element.is_attribute and element.parent in by_id and by_id[element.parent].is_entity:
            attach(element, by_id[element.parent])
            attached.add(element.id)

    for connection in graph.connections:
        source = by_id.get(connection.source)
        target = by_id.get(connection.target)
        if source is None or target is None:
            logger.debug("Skipping connection with unknown endpoint: %s", connection)
            continue
        if source.is_entity and target.is_entity:
            symbol = symbol_for(connection.cardinality_source, connection.cardinality_target)
            lines.append(_relationship_line(
                _entity_name(source), symbol, _entity_name(target), connection.name
            ))
            related.update((_entity_name(source), _entity_name(target)))
        elif source.is_attribute and target.is_entity and source.id not in attached:
            attach(source, target)
            attached.add(source.id)
        elif target.is_attribute and source.is_entity and target.id not in attached:
            attach(target, source)
            attached.add(target.id)

    weak = {_entity_name(e) for e in entities if e.weak}
    logger.debug("Serialized %d entities and %d relationships", len(entities), len(lines))
    return _render(graph.title or DEFAULT_TITLE, lines, attributes, related, weak)


def serialize_diagram(diagram: Diagram) -> str:
    """
    Serialize an in-memory Diagram.

    Args:
        diagram: Diagram to serialize

    Returns:
        YAML text accepted by the parser

    Raises:
        SerializationError: If the diagram has no entities
    """
    if not diagram.entities:
        raise SerializationError("No ER entities found to serialize")

    lines = [
        _relationship_line(r.source, r.cardinality, r.target, r.label)
        for r in diagram.relationships
    ]
    attributes = {
        e.name: [a.model_dump() for a in e.attributes]
        for e in diagram.entities
    }
    related = {r.source for r in diagram.relationships} | {r.target for r in diagram.relationships}
    weak = {e.name for e in diagram.entities if e.weak}
    return _render(diagram.title or DEFAULT_TITLE, lines, attributes, related, weak)
