"""
Parser - turns declarative ER text into an unpositioned Diagram.

Accepted document shapes:

    title: Shop                     erDiagram:
    erDiagram: |                      title: Shop
      CUSTOMER ||--o{ ORDER : places  entities:
                                        CUSTOMER:
    title: Shop                           attributes: {id: int}
    CUSTOMER ||--o{ ORDER : places    relationships:
                                        - CUSTOMER ||--o{ ORDER : places

Text that is not a YAML mapping (for example lines without labels, or a
bare `erDiagram` header) is read line by line with the same tokenizer.
Every relationship keeps the 1-based line it came from.
"""

from typing import Iterable, Iterator, Optional

import yaml
from yaml.nodes import MappingNode, Node, ScalarNode, SequenceNode

from .config.logging import get_logger
from .errors import ERSyntaxError
from .models import Attribute, Diagram, Entity, Relationship
from .tokenizer import (
    ATTRIBUTE_FLAGS,
    HEADER_KEYS,
    TITLE_KEYS,
    AttributeLine,
    BlankLine,
    BlockEndLine,
    EntityLine,
    KeyLine,
    RelationshipLine,
    classify_line,
)

logger = get_logger(__name__)

INVALID_FORMAT = "Invalid format: use relationship lines directly or erDiagram as the main key"


class _DiagramBuilder:
    """Collects entities in first-seen order and relationships in declaration order."""

    def __init__(self):
        self.title: Optional[str] = None
        self.entities: dict[str, Entity] = {}
        self.relationships: list[Relationship] = []

    def entity(self, name: str) -> Entity:
        if name not in self.entities:
            self.entities[name] = Entity(name=name)
        return self.entities[name]

    def add_attribute(self, entity_name: str, attribute: Attribute):
        self.entity(entity_name).attributes.append(attribute)

    def add_relationship(self, line: RelationshipLine):
        self.entity(line.source)
        self.entity(line.target)
        self.relationships.append(Relationship(
            source=line.source,
            target=line.target,
            cardinality=line.cardinality,
            label=line.label,
            line=line.line,
        ))

    def build(self) -> Diagram:
        return Diagram(
            title=self.title,
            entities=list(self.entities.values()),
            relationships=self.relationships,
        )


def parse(text: str) -> Diagram:
    """
    Parse declarative ER text into a Diagram without positions.

    Args:
        text: Source text (YAML document or plain relationship lines)

    Returns:
        A fresh Diagram; empty text yields an empty Diagram

    Raises:
        ERSyntaxError: With the 1-based line of the offending input
    """
    if not text or not text.strip():
        return Diagram()

    lines = text.splitlines()
    try:
        root = yaml.compose(text, Loader=yaml.SafeLoader)
    except yaml.YAMLError as e:
        # Not YAML at all: read it as plain relationship lines
        logger.debug("Falling back to line syntax: %s", e)
        return _parse_lines(lines)

    builder = _DiagramBuilder()
    if isinstance(root, MappingNode):
        _parse_document(root, lines, builder)
    elif isinstance(root, SequenceNode):
        _add_relationship_lines(root, lines, builder)
    else:
        # A lone scalar or only comments
        return _parse_lines(lines)

    diagram = builder.build()
    logger.debug(
        "Parsed %d entities and %d relationships",
        len(diagram.entities), len(diagram.relationships)
    )
    return diagram


# --- Plain line syntax ---

def _parse_lines(lines: list[str]) -> Diagram:
    builder = _DiagramBuilder()
    _read_lines(((raw, offset + 1) for offset, raw in enumerate(lines)), builder)
    return builder.build()


def _read_lines(numbered: Iterable[tuple[str, int]], builder: _DiagramBuilder):
    """Classify (text, line) pairs one by one, tracking `Entity {` attribute blocks."""
    block: Optional[str] = None
    block_line = 0

    for raw, line_no in numbered:
        parsed = classify_line(raw, line_no, in_block=block is not None)

        if isinstance(parsed, BlankLine):
            continue
        if isinstance(parsed, RelationshipLine):
            if block is not None:
                raise ERSyntaxError(f"Relationship inside attribute block of {block}", line_no)
            builder.add_relationship(parsed)
        elif isinstance(parsed, AttributeLine):
            if block is None:
                raise ERSyntaxError(f"Attribute outside of an entity block: {raw.strip()}", line_no)
            builder.add_attribute(block, Attribute(**parsed.to_attribute_dict()))
        elif isinstance(parsed, EntityLine):
            if parsed.name.lower() in HEADER_KEYS:
                continue
            builder.entity(parsed.name)
            if parsed.opens_block:
                block, block_line = parsed.name, line_no
        elif isinstance(parsed, BlockEndLine):
            if block is None:
                raise ERSyntaxError("Unexpected '}'", line_no)
            block = None
        elif isinstance(parsed, KeyLine):
            key = parsed.key.lower()
            if key in TITLE_KEYS:
                builder.title = parsed.value
            elif key not in HEADER_KEYS:
                raise ERSyntaxError(f"Unrecognized line: {raw.strip()}", line_no)

    if block is not None:
        raise ERSyntaxError(f"Attribute block of {block} is never closed", block_line)


# --- YAML documents ---

def _line_of(node: Node) -> int:
    return node.start_mark.line + 1


def _scalar(node: Node) -> Optional[str]:
    """Plain value of a scalar node; None for nulls and non-scalars."""
    if not isinstance(node, ScalarNode) or node.tag.endswith(":null"):
        return None
    return node.value


def _block_lines(node: ScalarNode, source: list[str]) -> Iterator[tuple[str, int]]:
    """Yield (line text, 1-based source line) for every line of a text block."""
    parts = node.value.split("\n")
    if node.style == "|":
        # Literal block: content starts on the line after the indicator
        first = node.start_mark.line + 2
        for offset, part in enumerate(parts):
            yield part, first + offset
        return

    # Other styles fold lines, so find each line in the source instead
    search_from = node.start_mark.line
    for part in parts:
        line_no = _line_of(node)
        stripped = part.strip()
        if stripped:
            for index in range(search_from, len(source)):
                if stripped in source[index]:
                    line_no = index + 1
                    search_from = index
                    break
        yield part, line_no


def _relationship_items(node: Node, source: list[str]) -> Iterator[tuple[str, int]]:
    """Yield relationship line texts from a scalar, sequence or mapping node."""
    if isinstance(node, ScalarNode):
        if _scalar(node) is not None:
            yield from _block_lines(node, source)
    elif isinstance(node, SequenceNode):
        for item in node.value:
            yield from _relationship_items(item, source)
    elif isinstance(node, MappingNode):
        # YAML reads `A ||--o{ B : owns` as the pair {"A ||--o{ B": "owns"}
        for key_node, value_node in node.value:
            key = _scalar(key_node)
            if key is None:
                raise ERSyntaxError(INVALID_FORMAT, _line_of(key_node))
            value = _scalar(value_node)
            if value is None and not isinstance(value_node, ScalarNode):
                raise ERSyntaxError(f"Unexpected structure under '{key}'", _line_of(value_node))
            yield (f"{key}: {value}" if value is not None else key), _line_of(key_node)


def _add_relationship_lines(node: Node, source: list[str], builder: _DiagramBuilder):
    if isinstance(node, ScalarNode):
        # A text block reads exactly like plain lines, attribute blocks included
        if _scalar(node) is not None:
            _read_lines(_block_lines(node, source), builder)
        return

    for text, line_no in _relationship_items(node, source):
        parsed = classify_line(text, line_no)
        if isinstance(parsed, RelationshipLine):
            builder.add_relationship(parsed)
        elif isinstance(parsed, BlankLine):
            continue
        elif isinstance(parsed, EntityLine) and parsed.name.lower() in HEADER_KEYS:
            continue
        elif isinstance(parsed, EntityLine) and not parsed.opens_block:
            builder.entity(parsed.name)
        else:
            raise ERSyntaxError(f"Expected a relationship line: {text.strip()}", line_no)


def _attribute_from_node(name: str, node: Node) -> Attribute:
    if isinstance(node, MappingNode):
        data = {"name": name}
        for key_node, value_node in node.value:
            key = _scalar(key_node)
            value = _scalar(value_node)
            if key is None or value is None:
                continue
            if value_node.tag.endswith(":bool"):
                data[key] = value.lower() in ("true", "yes", "on")
            else:
                data[key] = value
        try:
            return Attribute(**data)
        except ValueError as e:
            raise ERSyntaxError(f"Invalid attribute '{name}': {e}", _line_of(node))

    # `id: int PK` or `id: int`
    parts = (_scalar(node) or "string").split()
    line = AttributeLine(_line_of(node), name, parts[0], [p.upper() for p in parts[1:]])
    bad = [f for f in line.flags if f not in ATTRIBUTE_FLAGS]
    if bad:
        raise ERSyntaxError(f"Unknown attribute flag '{bad[0]}'", line.line)
    return Attribute(**line.to_attribute_dict())


def _add_attributes(entity_name: str, node: Node, builder: _DiagramBuilder):
    if isinstance(node, MappingNode):
        for key_node, value_node in node.value:
            attr_name = _scalar(key_node)
            if attr_name is None:
                raise ERSyntaxError("Attribute name must be text", _line_of(key_node))
            builder.add_attribute(entity_name, _attribute_from_node(attr_name, value_node))
    elif isinstance(node, SequenceNode):
        for item in node.value:
            if isinstance(item, MappingNode) and any(_scalar(k) == "name" for k, _ in item.value):
                name = next(_scalar(v) for k, v in item.value if _scalar(k) == "name")
                builder.add_attribute(entity_name, _attribute_from_node(name, item))
            elif isinstance(item, ScalarNode) and _scalar(item):
                parsed = classify_line(_scalar(item), _line_of(item), in_block=True)
                if not isinstance(parsed, AttributeLine):
                    raise ERSyntaxError(f"Invalid attribute of {entity_name}", _line_of(item))
                builder.add_attribute(entity_name, Attribute(**parsed.to_attribute_dict()))
            else:
                raise ERSyntaxError(f"Invalid attribute of {entity_name}", _line_of(item))
    elif _scalar(node) is not None:
        raise ERSyntaxError(f"Attributes of {entity_name} must be a mapping or list", _line_of(node))


def _add_entities(node: Node, builder: _DiagramBuilder):
    if isinstance(node, SequenceNode):
        for item in node.value:
            name = _scalar(item)
            if name is None:
                raise ERSyntaxError("Entity names must be text", _line_of(item))
            builder.entity(name)
        return
    if not isinstance(node, MappingNode):
        raise ERSyntaxError("'entities' must be a mapping of entity names", _line_of(node))

    for key_node, value_node in node.value:
        name = _scalar(key_node)
        if name is None:
            raise ERSyntaxError("Entity names must be text", _line_of(key_node))
        entity = builder.entity(name)
        if isinstance(value_node, MappingNode):
            options = {_scalar(k): v for k, v in value_node.value}
            weak = options.get("weak")
            if weak is not None and weak.tag.endswith(":bool"):
                entity.weak = weak.value.lower() in ("true", "yes", "on")
            elif "attributes" not in options:
                # Without `attributes` or `weak` the mapping itself lists the attributes
                _add_attributes(name, value_node, builder)
                continue
            if "attributes" in options:
                _add_attributes(name, options["attributes"], builder)
        elif isinstance(value_node, SequenceNode):
            _add_attributes(name, value_node, builder)


def _parse_structured(node: MappingNode, source: list[str], builder: _DiagramBuilder):
    """`erDiagram` as a mapping with entities and relationships."""
    sections = {(_scalar(k) or "").lower(): (k, v) for k, v in node.value}
    for key in TITLE_KEYS:
        if key in sections:
            builder.title = _scalar(sections[key][1])
    if "entities" in sections:
        _add_entities(sections["entities"][1], builder)
    if "relationships" in sections:
        _add_relationship_lines(sections["relationships"][1], source, builder)

    known = set(TITLE_KEYS) | {"entities", "relationships"}
    for key, (key_node, _) in sections.items():
        if key not in known:
            raise ERSyntaxError(f"Unknown key '{_scalar(key_node)}' under erDiagram", _line_of(key_node))


def _parse_document(root: MappingNode, source: list[str], builder: _DiagramBuilder):
    relationship_pairs: list[tuple[Node, Node]] = []
    recognized = False

    # entities before relationships, whatever their order in the file
    pairs = sorted(root.value, key=lambda pair: (_scalar(pair[0]) or "").lower() != "entities")

    for key_node, value_node in pairs:
        key = _scalar(key_node)
        lowered = (key or "").lower()
        if lowered in TITLE_KEYS:
            builder.title = _scalar(value_node)
        elif lowered in HEADER_KEYS:
            recognized = True
            if isinstance(value_node, MappingNode):
                _parse_structured(value_node, source, builder)
            else:
                _add_relationship_lines(value_node, source, builder)
        elif lowered == "entities":
            recognized = True
            _add_entities(value_node, builder)
        elif lowered == "relationships":
            recognized = True
            _add_relationship_lines(value_node, source, builder)
        else:
            relationship_pairs.append((key_node, value_node))

    for key_node, value_node in relationship_pairs:
        key = _scalar(key_node) or ""
        if not isinstance(value_node, ScalarNode):
            raise ERSyntaxError(f"Unexpected structure under '{key}'", _line_of(key_node))
        value = _scalar(value_node)
        text = f"{key}: {value}" if value is not None else key
        parsed = classify_line(text, _line_of(key_node))
        if not isinstance(parsed, RelationshipLine):
            if recognized:
                raise ERSyntaxError(f"Unknown top-level key '{key}'", _line_of(key_node))
            raise ERSyntaxError(INVALID_FORMAT, 1)
        recognized = True
        builder.add_relationship(parsed)

    if not recognized:
        raise ERSyntaxError(INVALID_FORMAT, 1)
