"""Tests for diagram validation."""

from crowsfoot.models import Attribute, Diagram, Entity, Relationship
from crowsfoot.parser import parse
from crowsfoot.validation import IssueSeverity, validate_diagram, validation_summary


def _messages(issues, severity):
    return [i.message for i in issues if i.severity == severity]


def test_clean_diagram_has_no_issues():
    issues = validate_diagram(parse("A ||--o{ B : owns"))
    assert issues == []
    assert validation_summary(issues)["valid"] is True


def test_empty_diagram_is_informational():
    issues = validate_diagram(Diagram())
    assert [i.severity for i in issues] == [IssueSeverity.INFO]


def test_isolated_entities_warn():
    issues = validate_diagram(parse("A ||--o{ B : owns\nLONER"))
    warnings = _messages(issues, IssueSeverity.WARNING)
    assert len(warnings) == 1
    assert "LONER" in warnings[0]


def test_missing_endpoint_is_an_error():
    diagram = Diagram(
        entities=[Entity(name="A")],
        relationships=[Relationship(source="A", target="GHOST", cardinality="||--||", line=3)],
    )
    issues = validate_diagram(diagram)

    errors = [i for i in issues if i.severity == IssueSeverity.ERROR]
    assert len(errors) == 1
    assert errors[0].line == 3
    assert validation_summary(issues)["valid"] is False


def test_duplicate_attributes_and_missing_key():
    diagram = Diagram(entities=[Entity(
        name="A",
        attributes=[Attribute(name="email"), Attribute(name="email")],
    )])
    issues = validate_diagram(diagram)

    assert any("email" in m for m in _messages(issues, IssueSeverity.ERROR))
    assert any("primary key" in m for m in _messages(issues, IssueSeverity.INFO))


def test_self_and_duplicate_relationships():
    issues = validate_diagram(parse("A ||--o{ A : parent\nA ||--o{ B : x\nA ||--o{ B : y"))

    assert any("Self relationship" in m for m in _messages(issues, IssueSeverity.INFO))
    assert any("Duplicate relationship" in m for m in _messages(issues, IssueSeverity.WARNING))


def test_summary_counts():
    issues = validate_diagram(parse("A ||--o{ A : parent\nA ||--o{ B : x\nA ||--o{ B : y\nC"))
    summary = validation_summary(issues)

    assert summary["total"] == len(issues)
    assert summary["warnings"] == 2
    assert summary["info"] == 1
    assert summary["errors"] == 0


def test_issue_to_dict():
    issue = validate_diagram(parse("A ||--o{ A : parent"))[0]
    assert issue.to_dict() == {
        "type": "info",
        "message": "Self relationship (entity relates to itself)",
        "entity": "A",
        "line": 1,
    }
