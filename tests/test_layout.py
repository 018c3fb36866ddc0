"""Tests for the layout strategies."""

import math

import pytest

from crowsfoot.analysis import LayoutStrategy, TopologyPattern, analyze
from crowsfoot.config.settings import Settings
from crowsfoot.layout import (
    chain_layout,
    find_backbone,
    force_layout,
    grid_layout,
    layered_layout,
    layout,
    radial_layout,
)
from crowsfoot.parser import parse

STAR = "H ||--o{ A : a\nH ||--o{ B : b\nH ||--o{ C : c\nH ||--o{ D : d"
PATH = "A ||--o{ B : r1\nB ||--o{ C : r2\nC ||--o{ D : r3\nD ||--o{ E : r4"
MIXED = (
    "CUSTOMER ||--o{ ORDER : places\n"
    "ORDER ||--|{ LINE-ITEM : contains\n"
    "PRODUCT ||--o{ LINE-ITEM : listed\n"
    "CUSTOMER ||--o{ ADDRESS : lives\n"
    "CUSTOMER ||--o{ REVIEW : writes\n"
    "PRODUCT ||--o{ REVIEW : about\n"
    "WAREHOUSE ||--|{ STOCK : holds\n"
    "AUDIT-LOG\n"
)


@pytest.fixture
def settings():
    return Settings()


def _prepared(text):
    diagram = parse(text)
    return diagram, analyze(diagram)


@pytest.mark.parametrize("strategy", list(LayoutStrategy))
def test_every_strategy_places_every_entity(strategy, settings):
    diagram, analysis = _prepared(MIXED)

    positions = layout(diagram, analysis, strategy, settings)

    assert set(positions) == set(diagram.entity_names())
    for x, y in positions.values():
        assert math.isfinite(x) and math.isfinite(y)


@pytest.mark.parametrize("strategy", list(LayoutStrategy))
def test_layout_is_deterministic(strategy, settings):
    first = layout(*_prepared(MIXED), strategy, settings)
    second = layout(*_prepared(MIXED), strategy, settings)
    assert first == second


def test_radial_star_puts_hub_in_the_middle(settings):
    diagram, analysis = _prepared(STAR)

    positions = radial_layout(diagram, analysis, settings)

    assert positions["H"] == (500, 350)
    distances = [math.dist(positions["H"], positions[n]) for n in "ABCD"]
    assert distances == pytest.approx([225.0] * 4)


def test_grid_is_row_major(settings):
    diagram, analysis = _prepared("A\nB\nC\nD\nE")

    positions = grid_layout(diagram, analysis, settings)

    assert positions == {
        "A": (300, 200), "B": (500, 200), "C": (700, 200),
        "D": (300, 350), "E": (500, 350),
    }


def test_grid_puts_most_connected_first(settings):
    diagram, analysis = _prepared(STAR)
    positions = grid_layout(diagram, analysis, settings, columns=2)
    assert positions["H"] == (300, 200)


def test_backbone_and_branches(settings):
    diagram, analysis = _prepared(PATH + "\nC ||--o{ F : branch")

    assert find_backbone(analysis) == ["A", "B", "C", "D", "E"]

    positions = chain_layout(diagram, analysis, settings)
    assert [positions[n] for n in "ABCDE"] == [(400 + i * 200, 300) for i in range(5)]
    assert positions["F"] == (positions["C"][0], 300 + 180)


def test_chain_layout_puts_unreachable_entities_in_a_column(settings):
    diagram, analysis = _prepared("A ||--o{ B : x\nB ||--o{ C : y\nLONER\nOTHER")

    positions = chain_layout(diagram, analysis, settings)

    assert positions["LONER"][0] == positions["OTHER"][0]
    assert positions["LONER"][0] > max(positions[n][0] for n in "ABC")


def test_force_layout_separates_entities(settings):
    diagram, analysis = _prepared(MIXED)

    positions = force_layout(diagram, analysis, settings)

    points = list(positions.values())
    for i, a in enumerate(points):
        for b in points[i + 1:]:
            assert a != b


def test_force_layout_single_entity(settings):
    diagram, analysis = _prepared("SOLO")
    assert force_layout(diagram, analysis, settings) == {"SOLO": (600, 400)}


def test_layered_star_puts_leaves_below_the_hub(settings):
    diagram, analysis = _prepared(STAR)

    positions = layered_layout(diagram, analysis, settings)

    leaf_rows = {positions[n][1] for n in "ABCD"}
    assert len(leaf_rows) == 1
    assert leaf_rows.pop() > positions["H"][1]


def test_layered_path_runs_left_to_right(settings):
    diagram, analysis = _prepared(PATH)
    analysis.pattern = TopologyPattern.LINEAR

    positions = layered_layout(diagram, analysis, settings)

    xs = [positions[n][0] for n in "ABCDE"]
    assert xs == sorted(xs)
    assert len({positions[n][1] for n in "ABCDE"}) == 1


def test_layered_engine_failure_falls_back_to_grid(settings, monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("engine down")

    monkeypatch.setattr("networkx.bfs_layers", broken)
    diagram, analysis = _prepared(STAR)

    positions = layered_layout(diagram, analysis, settings)

    assert positions == grid_layout(diagram, analysis, settings)


def test_unknown_strategy_name(settings):
    diagram, analysis = _prepared(STAR)
    with pytest.raises(ValueError):
        layout(diagram, analysis, "spiral", settings)


def test_seed_changes_force_layout():
    diagram, analysis = _prepared(MIXED)
    a = force_layout(diagram, analysis, Settings(layout_seed=1))
    b = force_layout(diagram, analysis, Settings(layout_seed=2))
    assert a != b
