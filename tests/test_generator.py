"""Tests for the full generation pipeline."""

import math

import pytest

from crowsfoot.analysis import LayoutStrategy, TopologyPattern
from crowsfoot.config.settings import Settings
from crowsfoot.errors import EmptyInputError, ERSyntaxError
from crowsfoot.generator import generate

STAR = "H ||--o{ A : a\nH ||--o{ B : b\nH ||--o{ C : c\nH ||--o{ D : d"
SHOP = (
    "title: Shop\n"
    "erDiagram: |\n"
    "  CUSTOMER ||--o{ ORDER : places\n"
    "  ORDER ||--|{ LINE-ITEM : contains\n"
    "  PRODUCT ||--o{ LINE-ITEM : listed\n"
    "  CUSTOMER ||--o{ ADDRESS : lives\n"
    "  CUSTOMER ||--o{ REVIEW : writes\n"
    "  PRODUCT ||--o{ REVIEW : about\n"
    "  WAREHOUSE ||--|{ STOCK : holds\n"
)


@pytest.fixture
def settings():
    return Settings()


def _positions(result):
    return {e.name: (e.x, e.y) for e in result.diagram.entities}


@pytest.mark.parametrize("text", ["", "   ", "\n\t\n"])
def test_empty_input(text, settings):
    with pytest.raises(EmptyInputError):
        generate(text, settings=settings)


def test_syntax_errors_propagate(settings):
    with pytest.raises(ERSyntaxError) as exc:
        generate('title: "T"\nA XX--XX B : owns', settings=settings)
    assert exc.value.line == 2


def test_star_keeps_hub_centred(settings):
    result = generate(STAR, settings=settings)

    assert result.analysis.pattern == TopologyPattern.CENTRALIZED
    assert result.strategy == LayoutStrategy.CUSTOM_RADIAL
    positions = _positions(result)
    assert positions["H"] == (500, 350)
    distances = [math.dist(positions["H"], positions[n]) for n in "ABCD"]
    assert max(distances) - min(distances) < 1e-6


def test_isolated_entities_fill_a_grid(settings):
    result = generate("A\nB\nC\nD\nE", settings=settings)

    assert result.strategy == LayoutStrategy.GRID_FALLBACK
    positions = _positions(result)
    assert positions["A"][1] == positions["B"][1] == positions["C"][1]
    assert positions["A"][0] < positions["B"][0] < positions["C"][0]
    assert positions["D"][1] > positions["A"][1]


@pytest.mark.parametrize("strategy", [None] + list(LayoutStrategy))
def test_positions_are_spaced_and_in_bounds(strategy, settings):
    result = generate(SHOP, strategy=strategy, settings=settings)

    positions = list(_positions(result).values())
    assert len(positions) == 8
    for x, y in positions:
        assert math.isfinite(x) and math.isfinite(y)
        assert x >= settings.margin and y >= settings.margin
    for i, a in enumerate(positions):
        for b in positions[i + 1:]:
            assert math.dist(a, b) >= settings.min_distance - 1e-6


def test_generation_is_deterministic(settings):
    first = generate(SHOP, settings=settings)
    second = generate(SHOP, settings=settings)

    assert first.strategy == second.strategy
    assert _positions(first) == _positions(second)


def test_strategy_override(settings):
    result = generate(STAR, strategy="chain-sequential", settings=settings)
    assert result.strategy == LayoutStrategy.CHAIN_SEQUENTIAL


def test_entities_get_nominal_size(settings):
    result = generate(STAR, settings=settings)
    assert all((e.width, e.height) == (120, 80) for e in result.diagram.entities)


def test_result_dict(settings):
    data = generate(STAR, settings=settings).to_dict()

    assert data["pattern"] == "centralized"
    assert data["strategy"] == "custom-radial"
    assert {e["name"] for e in data["diagram"]["entities"]} == set("HABCD")
    assert all(e["x"] is not None for e in data["diagram"]["entities"])
