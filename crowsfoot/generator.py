"""
Diagram generation - the full text-to-positioned-diagram pipeline.

    text -> parse -> analyze -> layout -> refine -> positioned Diagram

Each call builds fresh structures and keeps no state between calls.
"""

from dataclasses import dataclass

from .analysis import ConnectivityAnalysis, LayoutStrategy, analyze
from .config.logging import get_logger
from .config.settings import Settings, get_settings
from .errors import EmptyInputError
from .layout import layout
from .models import Diagram, PositionMap
from .parser import parse
from .refine import refine

logger = get_logger(__name__)


@dataclass
class GenerationResult:
    """A positioned diagram plus how it was laid out."""
    diagram: Diagram
    analysis: ConnectivityAnalysis
    strategy: LayoutStrategy
    positions: PositionMap

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "diagram": self.diagram.to_json_dict(),
            "pattern": self.analysis.pattern.value,
            "strategy": self.strategy.value,
        }


def layout_diagram(
    diagram: Diagram,
    strategy: LayoutStrategy | str | None = None,
    settings: Settings | None = None
) -> GenerationResult:
    """
    Analyze, lay out and refine an already parsed diagram.

    Args:
        diagram: Diagram to position (entities are updated in-place)
        strategy: Override for the recommended strategy
        settings: Layout settings (global settings if None)

    Returns:
        GenerationResult with every entity positioned
    """
    settings = settings or get_settings()
    analysis = analyze(diagram)
    chosen = LayoutStrategy(strategy) if strategy else analysis.recommended_strategy

    raw = layout(diagram, analysis, chosen, settings)
    positions = refine(raw, diagram, settings)

    for entity in diagram.entities:
        entity.width = settings.entity_width
        entity.height = settings.entity_height
    diagram.apply_positions(positions)

    return GenerationResult(
        diagram=diagram,
        analysis=analysis,
        strategy=chosen,
        positions=positions,
    )


def generate(
    text: str,
    strategy: LayoutStrategy | str | None = None,
    settings: Settings | None = None
) -> GenerationResult:
    """
    Compile declarative ER text into a positioned diagram.

    Args:
        text: Source text
        strategy: Override for the recommended strategy
        settings: Layout settings (global settings if None)

    Returns:
        GenerationResult with the positioned diagram

    Raises:
        EmptyInputError: If the text is empty or whitespace only
        ERSyntaxError: If the text cannot be parsed
    """
    if not text or not text.strip():
        raise EmptyInputError()

    diagram = parse(text)
    result = layout_diagram(diagram, strategy, settings)
    logger.info(
        "Generated %d entities, %d relationships (%s via %s)",
        len(diagram.entities), len(diagram.relationships),
        result.analysis.pattern.value, result.strategy.value
    )
    return result
