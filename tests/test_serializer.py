"""Tests for serialization back to declarative text."""

import pytest

from crowsfoot.errors import SerializationError
from crowsfoot.models import Multiplicity
from crowsfoot.parser import parse
from crowsfoot.serializer import (
    CanvasGraph,
    normalize_multiplicity,
    serialize,
    serialize_diagram,
    symbol_for,
)


@pytest.mark.parametrize("raw,expected", [
    ("1", Multiplicity.ONE),
    ("exactly-one", Multiplicity.ONE),
    ("  ONE ", Multiplicity.ONE),
    ("0..1", Multiplicity.ZERO_OR_ONE),
    ("?", Multiplicity.ZERO_OR_ONE),
    ("optional", Multiplicity.ZERO_OR_ONE),
    ("1..*", Multiplicity.ONE_OR_MANY),
    ("1..N", Multiplicity.ONE_OR_MANY),
    ("one-or-many", Multiplicity.ONE_OR_MANY),
    ("0..*", Multiplicity.ZERO_OR_MANY),
    ("*", Multiplicity.ZERO_OR_MANY),
    ("many", Multiplicity.ZERO_OR_MANY),
])
def test_normalize_synonyms(raw, expected):
    assert normalize_multiplicity(raw) == expected


@pytest.mark.parametrize("raw", ["lots", "", None, "2..5"])
def test_unrecognized_multiplicity_is_zero_or_many(raw):
    assert normalize_multiplicity(raw) == Multiplicity.ZERO_OR_MANY


def test_symbol_for_pairs():
    assert symbol_for("1", "0..N") == "||--o{"
    assert symbol_for("0..1", "1..*") == "|o--|{"
    assert symbol_for("N", "1") == "}o--||"
    assert symbol_for("many", "?") == "}o--o|"


def _canvas():
    return {
        "title": "Shop",
        "elements": [
            {"id": "e1", "erType": "Entity", "name": "CUSTOMER"},
            {"id": "e2", "erType": "Entity", "name": "ORDER"},
            {"id": "e3", "erType": "Entity", "name": "COUPON"},
            {"id": "a1", "erType": "Attribute", "name": "id", "dataType": "int", "isPrimaryKey": True, "parent": "e1"},
            {"id": "a2", "erType": "Attribute", "name": "total", "dataType": "decimal"},
        ],
        "connections": [
            {"from": "e1", "to": "e2", "cardinalitySource": "1", "cardinalityTarget": "0..N", "label": "places"},
            {"from": "a2", "to": "e2"},
            {"from": "e1", "to": "missing"},
        ],
    }


def test_serialize_canvas_graph():
    diagram = parse(serialize(_canvas()))

    assert diagram.title == "Shop"
    assert diagram.entity_names() == ["CUSTOMER", "ORDER", "COUPON"]
    assert [r.key() for r in diagram.relationships] == [("CUSTOMER", "ORDER", "||--o{", "places")]

    customer_id = diagram.get_entity("CUSTOMER").get_attribute("id")
    assert customer_id.data_type == "int"
    assert customer_id.primary_key is True
    assert diagram.get_entity("ORDER").get_attribute("total").data_type == "decimal"
    assert diagram.get_entity("COUPON").attributes == []


def test_serialize_accepts_model_instance():
    text = serialize(CanvasGraph(**_canvas()))
    assert "CUSTOMER ||--o{ ORDER : places" in text


def test_relationships_only_use_text_block():
    graph = {
        "elements": [
            {"id": "a", "erType": "Entity", "name": "A"},
            {"id": "b", "erType": "Entity", "name": "B"},
        ],
        "connections": [{"source": "a", "target": "b", "cardinality_source": "one", "cardinality_target": "weird"}],
    }
    text = serialize(graph)

    assert text.startswith("title: ER Diagram\n")
    assert "erDiagram: |\n  A ||--o{ B\n" in text
    assert parse(text).relationships[0].line == 3


def test_multi_word_entity_names_become_single_tokens():
    graph = {"elements": [{"id": "x", "erType": "Entity", "name": "Line Item"}]}
    assert parse(serialize(graph)).entity_names() == ["Line_Item"]


@pytest.mark.parametrize("name,expected", [
    ("Order/Item", "Order_Item"),
    ("Cliente (PF)", "Cliente_PF"),
    ("line--item", "line-item"),
    ("Ünïcode Näme", "Ünïcode_Näme"),
])
def test_entity_names_are_cleaned_for_the_parser(name, expected):
    graph = {
        "elements": [
            {"id": "x", "erType": "Entity", "name": name},
            {"id": "y", "erType": "Entity", "name": "Other"},
        ],
        "connections": [{"from": "x", "to": "y", "label": "links"}],
    }
    diagram = parse(serialize(graph))

    assert diagram.entity_names() == [expected, "Other"]
    assert [r.key() for r in diagram.relationships] == [(expected, "Other", "||--||", "links")]


def test_unusable_entity_name_falls_back_to_id():
    graph = {"elements": [{"id": "ent-7", "erType": "Entity", "name": "()"}]}
    assert parse(serialize(graph)).entity_names() == ["ent-7"]


def test_weak_entities_survive_serialization():
    graph = {
        "elements": [
            {"id": "o", "erType": "Entity", "name": "ORDER"},
            {"id": "l", "erType": "WeakEntity", "name": "LINE_ITEM"},
            {"id": "s", "erType": "Entity", "name": "SHIPMENT", "isWeak": True},
        ],
        "connections": [
            {"from": "o", "to": "l", "cardinalityTarget": "1..*", "isParentChild": True},
            {"from": "o", "to": "s", "cardinalityTarget": "0..*"},
        ],
    }
    diagram = parse(serialize(graph))

    assert [(e.name, e.weak) for e in diagram.entities] == [
        ("ORDER", False), ("LINE_ITEM", True), ("SHIPMENT", True),
    ]
    assert all(r.identifying for r in diagram.relationships)


def test_no_entities_raises():
    with pytest.raises(SerializationError):
        serialize({"elements": [{"id": "a1", "erType": "Attribute", "name": "id"}]})
    with pytest.raises(SerializationError):
        serialize({"elements": [], "connections": []})


@pytest.mark.parametrize("text", [
    'title: "T"\nA ||--o{ B : owns',
    "erDiagram\n  CUSTOMER {\n    id int PK\n    email string NN\n  }\n"
    "  CUSTOMER ||--o{ ORDER : places\n  ORDER }|--|{ PRODUCT : lists\n  AUDIT\n",
    "A ||--o| B : has one\nB }o--|| C\nC |o--o{ A : loops back",
    "erDiagram:\n  entities:\n    A: {weak: true}\n  relationships:\n    - B ||--|{ A : owns\n",
])
def test_diagram_survives_a_round_trip(text):
    first = parse(text)
    restored = parse(serialize_diagram(first))

    assert restored.entity_names() == first.entity_names()
    assert [r.key() for r in restored.relationships] == [r.key() for r in first.relationships]
    for entity in first.entities:
        assert restored.get_entity(entity.name).attributes == entity.attributes
        assert restored.get_entity(entity.name).weak == entity.weak
