"""
Layout strategies for ER diagrams.

Every strategy takes the diagram plus its connectivity analysis and returns
a position map (entity name -> centre). Strategies never raise and always
place every entity:
- Radial: hubs at the centre, chains and clusters around them
- Chain: a left-to-right backbone with branches hanging below
- Force: fixed-iteration force-directed placement from a seeded circle
- Layered: networkx-backed layering with crossing reduction, grid on failure
- Grid: degree-sorted row-major grid

Randomness always comes from random.Random(settings.layout_seed).
"""

import math
import random
from typing import TYPE_CHECKING, Callable, Optional

import networkx as nx

from .analysis import LayoutStrategy, TopologyPattern
from .config.logging import get_logger
from .config.settings import Settings, get_settings
from .errors import LayoutEngineFailure
from .models import PositionMap

if TYPE_CHECKING:
    from .analysis import ConnectivityAnalysis
    from .models import Diagram

logger = get_logger(__name__)


# Radial layout parameters
RADIAL_CENTER_SMALL = (500, 350)   # diagrams with at most 5 entities
RADIAL_CENTER_LARGE = (600, 400)
SMALL_DIAGRAM_ENTITIES = 5
SATELLITE_RADIUS = 180
CLUSTER_ZONE_MARGIN = 200
ISOLATED_SPACING = 150

# Fallback placement near relationship partners
FALLBACK_ATTEMPTS = 8
FALLBACK_BASE_OFFSET = 250
FALLBACK_OFFSET_STEP = 15
FALLBACK_COLLISION_DISTANCE = 170

# Chain layout parameters
CHAIN_START_X = 400
CHAIN_START_Y = 300
BACKBONE_SPACING = 200
BRANCH_SPACING = 180
REMAINDER_GAP = 150

# Grid layout parameters
GRID_COLUMN_FACTOR = 1.2

# Layered layout: pattern -> (direction, node gap, layer gap)
LAYERED_OPTIONS = {
    TopologyPattern.CENTRALIZED: ("down", 180, 200),
    TopologyPattern.LINEAR: ("right", 170, 220),
    TopologyPattern.DISTRIBUTED: ("down", 160, 180),
    TopologyPattern.MIXED: ("down", 170, 200),
}
LAYERED_START_X = 300
LAYERED_START_Y = 200


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _distance(a: tuple[float, float], b: tuple[float, float]) -> float:
    return math.hypot(a[0] - b[0], a[1] - b[1])


def _round(point: tuple[float, float]) -> tuple[float, float]:
    return (float(round(point[0])), float(round(point[1])))


def _nearest_distance(point: tuple[float, float], positions: PositionMap) -> float:
    if not positions:
        return math.inf
    return min(_distance(point, other) for other in positions.values())


def _place_near_partners(
    name: str,
    analysis: "ConnectivityAnalysis",
    positions: PositionMap,
    center: tuple[float, float],
    rng: random.Random
) -> tuple[float, float]:
    """
    Find a free spot near the centroid of an entity's positioned partners.

    Candidate angles are tried in turn at growing offsets. If every candidate
    collides, the one farthest from its nearest neighbor is used.
    """
    partners = [positions[n] for n in analysis.graph.neighbor_names(name) if n in positions]
    if partners:
        base = (
            sum(p[0] for p in partners) / len(partners),
            sum(p[1] for p in partners) / len(partners),
        )
    else:
        base = center

    best: Optional[tuple[float, float]] = None
    best_clearance = -1.0
    for attempt in range(FALLBACK_ATTEMPTS):
        angle = attempt * math.pi / 4 + rng.uniform(-0.1, 0.1)
        offset = FALLBACK_BASE_OFFSET + attempt * FALLBACK_OFFSET_STEP
        candidate = _round((base[0] + offset * math.cos(angle), base[1] + offset * math.sin(angle)))
        clearance = _nearest_distance(candidate, positions)
        if clearance >= FALLBACK_COLLISION_DISTANCE:
            return candidate
        if clearance > best_clearance:
            best, best_clearance = candidate, clearance
    return best


def _fill_missing(
    diagram: "Diagram",
    analysis: "ConnectivityAnalysis",
    positions: PositionMap,
    center: tuple[float, float],
    rng: random.Random
) -> PositionMap:
    for name in diagram.entity_names():
        point = positions.get(name)
        if point is None or not all(math.isfinite(c) for c in point):
            positions.pop(name, None)
            positions[name] = _place_near_partners(name, analysis, positions, center, rng)
    return positions


# --- Grid ---

def grid_layout(
    diagram: "Diagram",
    analysis: "ConnectivityAnalysis",
    settings: Optional[Settings] = None,
    columns: int | None = None
) -> PositionMap:
    """
    Arrange entities in a grid, most connected first.

    Args:
        diagram: Diagram to arrange
        analysis: Its connectivity analysis (degrees decide the order)
        settings: Cell size and origin (global settings if None)
        columns: Number of columns (auto-calculated if None)

    Returns:
        Position map with one cell per entity, row-major
    """
    settings = settings or get_settings()
    names = diagram.entity_names()
    if not names:
        return {}

    # sorted() is stable, so equal degrees keep entity order
    ordered = sorted(names, key=analysis.degree, reverse=True)

    if columns is None:
        columns = max(1, math.ceil(math.sqrt(len(ordered) * GRID_COLUMN_FACTOR)))

    positions: PositionMap = {}
    for i, name in enumerate(ordered):
        row = i // columns
        col = i % columns
        positions[name] = (
            settings.grid_start_x + col * settings.grid_cell_width,
            settings.grid_start_y + row * settings.grid_cell_height,
        )
    return positions


# --- Radial ---

def _radial_options(entity_count: int) -> dict:
    small = entity_count <= SMALL_DIAGRAM_ENTITIES
    center = RADIAL_CENTER_SMALL if small else RADIAL_CENTER_LARGE
    return {
        "center": (float(center[0]), float(center[1])),
        "hub_radius": _clamp(150 + 15 * entity_count, 200, 400),
        "chain_spacing": _clamp(200 + 5 * entity_count, 180, 250),
    }


def _ring_angles(count: int, occupied: list[float]) -> list[float]:
    """Evenly spaced angles, rotated away from directions already in use."""
    step = 2 * math.pi / count
    if not occupied:
        return [i * step for i in range(count)]

    best_offset, best_gap = 0.0, -1.0
    for k in range(8):
        offset = k * step / 8
        gap = min(
            abs((offset + i * step - taken + math.pi) % (2 * math.pi) - math.pi)
            for i in range(count)
            for taken in occupied
        )
        if gap > best_gap + 1e-9:
            best_offset, best_gap = offset, gap
    return [best_offset + i * step for i in range(count)]


def radial_layout(
    diagram: "Diagram",
    analysis: "ConnectivityAnalysis",
    settings: Optional[Settings] = None
) -> PositionMap:
    """
    Place the main hub at the canvas centre and grow the diagram around it.

    Order of placement:
    1. Highest-degree hub at the centre
    2. Other hubs on the hub ring, facing their positioned neighbors
    3. Chains touching a hub, extended outward in one of four directions
    4. Single-connection satellites, evenly spaced around their hub
    5. Free-standing chains in rows below the hub ring
    6. Clusters with no placed member in peripheral zones
    7. Isolated entities on a grid to the right
    8. Anything left near the centroid of its relationship partners

    Args:
        diagram: Diagram to arrange
        analysis: Its connectivity analysis
        settings: Layout settings (global settings if None)

    Returns:
        Position map covering every entity
    """
    settings = settings or get_settings()
    rng = random.Random(settings.layout_seed)
    names = diagram.entity_names()
    if not names:
        return {}

    options = _radial_options(len(names))
    cx, cy = options["center"]
    hub_radius = options["hub_radius"]
    chain_spacing = options["chain_spacing"]
    graph = analysis.graph
    positions: PositionMap = {}

    # 1. Primary hub
    if analysis.hubs:
        positions[analysis.hubs[0].entity] = (cx, cy)

    # 2. Secondary hubs on the hub ring
    secondary = analysis.hubs[1:]
    for index, hub in enumerate(secondary):
        uniform = index * 2 * math.pi / len(secondary)
        placed = [positions[n] for n in hub.neighbors if n in positions and positions[n] != (cx, cy)]
        angle = uniform
        if placed:
            mx = sum(p[0] for p in placed) / len(placed)
            my = sum(p[1] for p in placed) / len(placed)
            if abs(mx - cx) > 1e-6 or abs(my - cy) > 1e-6:
                angle = math.atan2(my - cy, mx - cx)

        candidate = _round((cx + hub_radius * math.cos(angle), cy + hub_radius * math.sin(angle)))
        if _nearest_distance(candidate, positions) < settings.min_distance:
            # Rotate around the ring until the spot is free
            step = 2 * math.pi / max(len(secondary), 8)
            for turn in range(1, 2 * max(len(secondary), 8)):
                alt = _round((
                    cx + hub_radius * math.cos(uniform + turn * step / 2),
                    cy + hub_radius * math.sin(uniform + turn * step / 2),
                ))
                if _nearest_distance(alt, positions) >= settings.min_distance:
                    candidate = alt
                    break
        positions[hub.entity] = candidate

    # 3. Chains touching a hub
    hub_names = {h.entity for h in analysis.hubs}
    free_chains = []
    for chain_index, chain in enumerate(analysis.chains):
        anchor = None
        for member in chain.entities:
            if member in hub_names and member in positions:
                anchor = member
                break
            touching = [n for n in graph.neighbor_names(member) if n in hub_names and n in positions]
            if touching:
                anchor = touching[0]
                break
        if anchor is None:
            free_chains.append(chain)
            continue

        ax, ay = positions[anchor]
        angle = chain_index * math.pi / 2
        step = 0
        for member in chain.entities:
            if member in positions:
                continue
            distance = hub_radius + 50 + step * chain_spacing
            positions[member] = _round((ax + distance * math.cos(angle), ay + distance * math.sin(angle)))
            step += 1

    # 4. Satellites: unplaced single-connection neighbors of each hub
    for hub in analysis.hubs:
        if hub.entity not in positions:
            continue
        hx, hy = positions[hub.entity]
        satellites = [
            n for n in hub.neighbors
            if n not in positions and analysis.degree(n) == 1
        ]
        if not satellites:
            continue
        occupied = [
            math.atan2(positions[n][1] - hy, positions[n][0] - hx)
            for n in hub.neighbors if n in positions
        ]
        radius = hub_radius if hub.entity == analysis.hubs[0].entity else SATELLITE_RADIUS
        for name, angle in zip(satellites, _ring_angles(len(satellites), occupied)):
            positions[name] = _round((hx + radius * math.cos(angle), hy + radius * math.sin(angle)))

    # 5. Free-standing chains
    for row, chain in enumerate(free_chains):
        y = cy + hub_radius + 100 + row * settings.grid_cell_height
        step = 0
        for member in chain.entities:
            if member in positions:
                continue
            positions[member] = (cx - 200 + step * chain_spacing, y)
            step += 1

    # 6. Clusters with nothing placed yet
    zone_distance = hub_radius + CLUSTER_ZONE_MARGIN
    zones = [
        (cx + zone_distance, cy),
        (cx - zone_distance, cy),
        (cx, cy + zone_distance),
        (cx, cy - zone_distance),
    ]
    cluster_index = 0
    for cluster in analysis.clusters:
        if any(m in positions for m in cluster.entities):
            continue
        zx, zy = zones[cluster_index % len(zones)]
        cluster_index += 1
        count = cluster.size
        # Large enough that neighbors on the circle do not collide
        radius = max(80, 15 * count, settings.min_distance / (2 * math.sin(math.pi / count)))
        for i, member in enumerate(cluster.entities):
            angle = i * 2 * math.pi / count
            positions[member] = _round((zx + radius * math.cos(angle), zy + radius * math.sin(angle)))

    # 7. Isolated entities
    isolated = [n for n in analysis.isolated if n not in positions]
    if isolated:
        cols = math.ceil(math.sqrt(len(isolated)))
        for i, name in enumerate(isolated):
            row, col = divmod(i, cols)
            positions[name] = (
                cx + hub_radius + 300 + col * ISOLATED_SPACING,
                cy - 100 + row * ISOLATED_SPACING,
            )

    # 8. Anything left over
    return _fill_missing(diagram, analysis, positions, (cx, cy), rng)


# --- Chain / sequential ---

def _bfs_farthest(graph, start: int) -> tuple[int, dict[int, Optional[int]]]:
    """Iterative BFS; returns the farthest node (first found on ties) and parents."""
    parents: dict[int, Optional[int]] = {start: None}
    queue = [start]
    farthest = start
    head = 0
    while head < len(queue):
        current = queue[head]
        head += 1
        farthest = current
        for neighbor in graph.neighbors[current]:
            if neighbor not in parents:
                parents[neighbor] = current
                queue.append(neighbor)
    return farthest, parents


def find_backbone(analysis: "ConnectivityAnalysis") -> list[str]:
    """
    Longest path found by BFS from every endpoint (degree <= 1, or every
    entity when there are no endpoints). Ties keep the earliest start.
    """
    graph = analysis.graph
    count = len(graph.names)
    starts = [i for i in range(count) if graph.degree(i) == 1]
    if not starts:
        starts = [i for i in range(count) if graph.degree(i) > 0]

    best: list[int] = []
    for start in starts:
        end, parents = _bfs_farthest(graph, start)
        path = []
        node: Optional[int] = end
        while node is not None:
            path.append(node)
            node = parents[node]
        if len(path) > len(best):
            best = list(reversed(path))
    return [graph.names[i] for i in best]


def chain_layout(
    diagram: "Diagram",
    analysis: "ConnectivityAnalysis",
    settings: Optional[Settings] = None
) -> PositionMap:
    """
    Lay the dominant path out left-to-right and hang branches below it.

    Branch entities hang perpendicular to the backbone, alternating below
    and above their backbone entity. Everything unreachable from the
    backbone goes into a column to the right.

    Args:
        diagram: Diagram to arrange
        analysis: Its connectivity analysis
        settings: Layout settings (global settings if None)

    Returns:
        Position map covering every entity
    """
    settings = settings or get_settings()
    rng = random.Random(settings.layout_seed)
    names = diagram.entity_names()
    if not names:
        return {}

    graph = analysis.graph
    backbone = find_backbone(analysis)
    positions: PositionMap = {}

    for i, name in enumerate(backbone):
        positions[name] = (CHAIN_START_X + i * BACKBONE_SPACING, CHAIN_START_Y)

    # Branches: walk outward from each backbone entity
    for anchor in backbone:
        ax, ay = positions[anchor]
        branch_index = 0
        for start in graph.neighbor_names(anchor):
            if start in positions:
                continue
            direction = 1 if branch_index % 2 == 0 else -1
            shift = (branch_index // 2) * BACKBONE_SPACING / 2
            depth = 1
            current: Optional[str] = start
            while current is not None:
                positions[current] = (ax + shift, ay + direction * depth * BRANCH_SPACING)
                depth += 1
                unplaced = [n for n in graph.neighbor_names(current) if n not in positions]
                current = unplaced[0] if len(unplaced) == 1 else None
            branch_index += 1

    remaining = [n for n in names if n not in positions]
    column_x = CHAIN_START_X + len(backbone) * BACKBONE_SPACING + REMAINDER_GAP
    for i, name in enumerate(remaining):
        positions[name] = (column_x, CHAIN_START_Y + i * settings.grid_cell_height)

    return _fill_missing(diagram, analysis, positions, (CHAIN_START_X, CHAIN_START_Y), rng)


# --- Force-directed ---

def force_layout(
    diagram: "Diagram",
    analysis: "ConnectivityAnalysis",
    settings: Optional[Settings] = None
) -> PositionMap:
    """
    Arrange entities using a fixed number of force-directed iterations.

    Simulates two forces:
    - All entities repel each other (inverse square)
    - Related entities attract each other (springs with a rest length)

    There is no convergence check: the iteration count and the seeded
    initial circle fully determine the result.

    Args:
        diagram: Diagram to arrange
        analysis: Its connectivity analysis (supplies the edges)
        settings: Force parameters and seed (global settings if None)

    Returns:
        Position map covering every entity
    """
    settings = settings or get_settings()
    rng = random.Random(settings.layout_seed)
    names = diagram.entity_names()
    if not names:
        return {}

    center_x, center_y = settings.force_center_x, settings.force_center_y
    if len(names) == 1:
        return {names[0]: (center_x, center_y)}

    # Jittered circle as the starting point
    xs: list[float] = []
    ys: list[float] = []
    for i in range(len(names)):
        angle = 2 * math.pi * i / len(names)
        radius = settings.force_radius * (0.8 + 0.4 * rng.random())
        xs.append(center_x + radius * math.cos(angle))
        ys.append(center_y + radius * math.sin(angle))

    index = {name: i for i, name in enumerate(names)}
    graph = analysis.graph
    edges = [
        (index[graph.names[a]], index[graph.names[b]])
        for a, b in sorted(graph.edges)
    ]

    for _ in range(settings.force_iterations):
        fx = [0.0] * len(names)
        fy = [0.0] * len(names)

        # Repulsion between all entity pairs
        for i in range(len(names)):
            for j in range(i + 1, len(names)):
                dx = xs[i] - xs[j]
                dy = ys[i] - ys[j]
                dist = math.hypot(dx, dy)
                if dist < 1e-6:
                    # Coincident entities: separate along a fixed direction
                    dx, dy, dist = 1.0, 0.0, 1.0
                dist = max(dist, 1.0)
                force = settings.force_repulsion / (dist * dist)
                fx[i] += force * dx / dist
                fy[i] += force * dy / dist
                fx[j] -= force * dx / dist
                fy[j] -= force * dy / dist

        # Attraction along relationships
        for a, b in edges:
            dx = xs[b] - xs[a]
            dy = ys[b] - ys[a]
            dist = max(math.hypot(dx, dy), 1.0)
            force = settings.force_attraction * (dist - settings.force_spring_length)
            fx[a] += force * dx / dist
            fy[a] += force * dy / dist
            fx[b] -= force * dx / dist
            fy[b] -= force * dy / dist

        # Apply forces with damping, capped per step
        for i in range(len(names)):
            step_x = fx[i] * settings.force_damping
            step_y = fy[i] * settings.force_damping
            length = math.hypot(step_x, step_y)
            if length > settings.force_max_step:
                step_x *= settings.force_max_step / length
                step_y *= settings.force_max_step / length
            xs[i] += step_x
            ys[i] += step_y

    positions = {name: _round((xs[i], ys[i])) for i, name in enumerate(names)}
    return _fill_missing(diagram, analysis, positions, (center_x, center_y), rng)


# --- Layered ---

def _barycenter(graph: nx.Graph, name: str, rank: dict[str, float]) -> float:
    above = [rank[n] for n in graph.neighbors(name) if n in rank]
    return sum(above) / len(above) if above else math.inf


def _networkx_layered(
    diagram: "Diagram",
    analysis: "ConnectivityAnalysis",
    settings: Settings
) -> PositionMap:
    """Layer by BFS distance from root entities, order layers by barycenter."""
    direction, node_gap, layer_gap = LAYERED_OPTIONS.get(
        analysis.pattern, LAYERED_OPTIONS[TopologyPattern.MIXED]
    )
    if direction == "down":
        along = node_gap + settings.entity_width     # spacing inside a layer
        across = layer_gap + settings.entity_height  # spacing between layers
    else:
        along = node_gap + settings.entity_height
        across = layer_gap + settings.entity_width

    try:
        directed = nx.DiGraph()
        directed.add_nodes_from(diagram.entity_names())
        for rel in diagram.relationships:
            if rel.source != rel.target:
                directed.add_edge(rel.source, rel.target)
        undirected = directed.to_undirected()
        order = {name: i for i, name in enumerate(diagram.entity_names())}

        positions: PositionMap = {}
        offset = 0.0
        components = sorted(nx.connected_components(undirected), key=lambda c: min(order[n] for n in c))
        for component in components:
            members = sorted(component, key=order.get)
            roots = [n for n in members if directed.in_degree(n) == 0]
            if not roots:
                roots = [max(members, key=lambda n: (undirected.degree(n), -order[n]))]
            layers = [sorted(layer, key=order.get) for layer in nx.bfs_layers(undirected, roots)]

            # One downward sweep of barycenter ordering
            rank: dict[str, float] = {n: i for i, n in enumerate(layers[0])}
            for layer_index in range(1, len(layers)):
                layers[layer_index].sort(
                    key=lambda n: (_barycenter(undirected, n, rank), order[n])
                )
                for i, name in enumerate(layers[layer_index]):
                    rank[name] = i

            width = max(len(layer) for layer in layers)
            for layer_index, layer in enumerate(layers):
                start = offset + (width - len(layer)) * along / 2
                for i, name in enumerate(layer):
                    a = start + i * along
                    b = layer_index * across
                    if direction == "down":
                        positions[name] = (LAYERED_START_X + a, LAYERED_START_Y + b)
                    else:
                        positions[name] = (LAYERED_START_X + b, LAYERED_START_Y + a)
            offset += width * along
    except Exception as e:
        raise LayoutEngineFailure(f"networkx layering failed: {e}") from e

    if len(positions) != len(order):
        raise LayoutEngineFailure("networkx layering left entities unplaced")
    return positions


def layered_layout(
    diagram: "Diagram",
    analysis: "ConnectivityAnalysis",
    settings: Optional[Settings] = None
) -> PositionMap:
    """
    Layered placement with direction and spacing tuned by the pattern.

    Falls back to the grid layout when the layered engine fails; the
    failure is logged and never reaches the caller.
    """
    settings = settings or get_settings()
    if not diagram.entities:
        return {}
    try:
        return _networkx_layered(diagram, analysis, settings)
    except LayoutEngineFailure as e:
        logger.warning("Layered layout failed, falling back to grid: %s", e)
        return grid_layout(diagram, analysis, settings)


STRATEGIES: dict[LayoutStrategy, Callable[..., PositionMap]] = {
    LayoutStrategy.CUSTOM_RADIAL: radial_layout,
    LayoutStrategy.CHAIN_SEQUENTIAL: chain_layout,
    LayoutStrategy.ADAPTIVE_FORCE: force_layout,
    LayoutStrategy.ELK_LAYERED: layered_layout,
    LayoutStrategy.GRID_FALLBACK: grid_layout,
}


def layout(
    diagram: "Diagram",
    analysis: "ConnectivityAnalysis",
    strategy: LayoutStrategy | str | None = None,
    settings: Optional[Settings] = None
) -> PositionMap:
    """
    Position every entity with the recommended (or requested) strategy.

    Args:
        diagram: Diagram to arrange
        analysis: Its connectivity analysis
        strategy: Override for the analysis' recommendation
        settings: Layout settings (global settings if None)

    Returns:
        Position map with exactly one finite position per entity

    Raises:
        ValueError: If `strategy` names no known strategy
    """
    settings = settings or get_settings()
    chosen = LayoutStrategy(strategy) if strategy else analysis.recommended_strategy
    logger.info(
        "Layout of %d entities: pattern=%s strategy=%s",
        len(diagram.entities), analysis.pattern.value, chosen.value
    )
    positions = STRATEGIES[chosen](diagram, analysis, settings)
    rng = random.Random(settings.layout_seed)
    center = (settings.force_center_x, settings.force_center_y)
    return _fill_missing(diagram, analysis, positions, center, rng)
