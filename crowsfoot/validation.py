"""
Diagram validation - check ER diagrams for structural issues.

Parsing only rejects text it cannot read; validation reports things that
parse fine but are probably mistakes.
"""

from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from .models import CARDINALITIES

if TYPE_CHECKING:
    from .models import Diagram


class IssueSeverity(str, Enum):
    """Severity levels for validation issues."""
    ERROR = "error"      # Invalid state, must be fixed
    WARNING = "warning"  # Potential problem, should review
    INFO = "info"        # Informational, may be intentional


@dataclass
class ValidationIssue:
    """A single validation issue found in a diagram."""
    severity: IssueSeverity
    message: str
    entity: str | None = None
    line: int | None = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        result = {
            "type": self.severity.value,
            "message": self.message
        }
        if self.entity:
            result["entity"] = self.entity
        if self.line is not None:
            result["line"] = self.line
        return result


def validate_diagram(diagram: "Diagram") -> list[ValidationIssue]:
    """
    Validate a diagram and return a list of issues.

    Checks for:
    - Empty diagram - INFO
    - Duplicate entity names - ERROR
    - Relationships referencing missing entities - ERROR
    - Unknown cardinality symbols - ERROR
    - Duplicate attribute names within an entity - ERROR
    - Isolated entities (no relationships) - WARNING
    - Duplicate relationships (same pair and symbol) - WARNING
    - Self relationships - INFO
    - Entities with attributes but no primary key - INFO

    Args:
        diagram: The diagram to validate

    Returns:
        List of ValidationIssue objects
    """
    issues: list[ValidationIssue] = []

    if not diagram.entities:
        issues.append(ValidationIssue(
            severity=IssueSeverity.INFO,
            message="Diagram has no entities"
        ))
        return issues

    names = Counter(e.name for e in diagram.entities)
    for name, count in names.items():
        if count > 1:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Entity declared {count} times",
                entity=name
            ))

    for rel in diagram.relationships:
        for end in (rel.source, rel.target):
            if end not in names:
                issues.append(ValidationIssue(
                    severity=IssueSeverity.ERROR,
                    message=f"Relationship references non-existent entity: {end}",
                    line=rel.line
                ))
        if rel.cardinality not in CARDINALITIES:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Unknown cardinality symbol: {rel.cardinality}",
                line=rel.line
            ))

    for entity in diagram.entities:
        attribute_names = Counter(a.name for a in entity.attributes)
        for attr_name, count in attribute_names.items():
            if count > 1:
                issues.append(ValidationIssue(
                    severity=IssueSeverity.ERROR,
                    message=f"Duplicate attribute '{attr_name}'",
                    entity=entity.name
                ))

    # Isolated entities
    connected: set[str] = set()
    for rel in diagram.relationships:
        connected.add(rel.source)
        connected.add(rel.target)
    isolated = [e.name for e in diagram.entities if e.name not in connected]
    if isolated and diagram.relationships:
        issues.append(ValidationIssue(
            severity=IssueSeverity.WARNING,
            message=f"Isolated entities (no relationships): {', '.join(isolated)}"
        ))

    seen: set[tuple[str, str, str]] = set()
    for rel in diagram.relationships:
        if rel.source == rel.target:
            issues.append(ValidationIssue(
                severity=IssueSeverity.INFO,
                message="Self relationship (entity relates to itself)",
                entity=rel.source,
                line=rel.line
            ))
        key = (rel.source, rel.target, rel.cardinality)
        if key in seen:
            issues.append(ValidationIssue(
                severity=IssueSeverity.WARNING,
                message=f"Duplicate relationship from {rel.source} to {rel.target}",
                line=rel.line
            ))
        else:
            seen.add(key)

    for entity in diagram.entities:
        if entity.attributes and not any(a.primary_key for a in entity.attributes):
            issues.append(ValidationIssue(
                severity=IssueSeverity.INFO,
                message="Entity has attributes but no primary key",
                entity=entity.name
            ))

    return issues


def validation_summary(issues: list[ValidationIssue]) -> dict:
    """
    Create a summary of validation issues.

    Args:
        issues: List of validation issues

    Returns:
        Dictionary with counts by severity
    """
    errors = len([i for i in issues if i.severity == IssueSeverity.ERROR])
    return {
        "total": len(issues),
        "errors": errors,
        "warnings": len([i for i in issues if i.severity == IssueSeverity.WARNING]),
        "info": len([i for i in issues if i.severity == IssueSeverity.INFO]),
        "valid": errors == 0
    }
