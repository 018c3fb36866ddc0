"""
Connectivity analysis - classify the shape of an ER diagram's graph.

Builds an undirected graph over integer entity indices and derives:
- Hubs: entities with two or more neighbors
- Chains: paths of low-degree entities
- Clusters: groups reachable through entities of degree two or more
- Isolated: entities with no relationships

From their coverage it picks a topology pattern and the layout strategy
that suits it. All traversals are iterative with explicit visited sets.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import Diagram


# Coverage thresholds for the topology pattern
CENTRALIZED_THRESHOLD = 0.6
LINEAR_THRESHOLD = 0.6
DISTRIBUTED_THRESHOLD = 0.5

# Entity-count limits for strategy selection
GRID_MAX_ENTITIES = 3
FORCE_MAX_DISTRIBUTED = 15
FORCE_MAX_MIXED = 10

MIN_CHAIN_LENGTH = 3
MIN_CLUSTER_SIZE = 3


class TopologyPattern(str, Enum):
    """Overall connectivity shape of a diagram."""
    CENTRALIZED = "centralized"
    LINEAR = "linear"
    DISTRIBUTED = "distributed"
    MIXED = "mixed"


class LayoutStrategy(str, Enum):
    """Placement strategies, selected one per diagram."""
    CUSTOM_RADIAL = "custom-radial"
    CHAIN_SEQUENTIAL = "chain-sequential"
    ADAPTIVE_FORCE = "adaptive-force"
    ELK_LAYERED = "elk-layered"
    GRID_FALLBACK = "grid-fallback"


@dataclass
class ConnectivityGraph:
    """Undirected adjacency over stable entity indices."""
    names: list[str] = field(default_factory=list)
    index: dict[str, int] = field(default_factory=dict)
    neighbors: list[list[int]] = field(default_factory=list)
    edges: set[tuple[int, int]] = field(default_factory=set)  # (low, high)

    def degree(self, i: int) -> int:
        return len(self.neighbors[i])

    def neighbor_names(self, name: str) -> list[str]:
        return [self.names[n] for n in self.neighbors[self.index[name]]]


@dataclass
class Hub:
    """An entity with at least two distinct neighbors."""
    entity: str
    degree: int
    neighbors: list[str] = field(default_factory=list)


@dataclass
class Chain:
    """A path of entities with at most two connections each."""
    entities: list[str] = field(default_factory=list)
    is_linear: bool = False

    @property
    def length(self) -> int:
        return len(self.entities)


@dataclass
class Cluster:
    """A group of entities connected through degree-2+ members."""
    entities: list[str] = field(default_factory=list)
    density: float = 0.0

    @property
    def size(self) -> int:
        return len(self.entities)


@dataclass
class ConnectivityAnalysis:
    """Complete classification of a diagram's connectivity."""
    entity_count: int
    relationship_count: int
    hubs: list[Hub]
    chains: list[Chain]
    clusters: list[Cluster]
    isolated: list[str]
    pattern: TopologyPattern
    recommended_strategy: LayoutStrategy
    coverage: dict[str, float]
    graph: ConnectivityGraph

    def degree(self, name: str) -> int:
        return self.graph.degree(self.graph.index[name])

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "entity_count": self.entity_count,
            "relationship_count": self.relationship_count,
            "hubs": [
                {"entity": h.entity, "degree": h.degree, "neighbors": h.neighbors}
                for h in self.hubs
            ],
            "chains": [
                {"entities": c.entities, "is_linear": c.is_linear}
                for c in self.chains
            ],
            "clusters": [
                {"entities": c.entities, "density": round(c.density, 4)}
                for c in self.clusters
            ],
            "isolated": self.isolated,
            "pattern": self.pattern.value,
            "recommended_strategy": self.recommended_strategy.value,
            "coverage": {k: round(v, 4) for k, v in self.coverage.items()},
        }


def build_graph(diagram: "Diagram") -> ConnectivityGraph:
    """
    Build the undirected connectivity graph of a diagram.

    Each relationship contributes an edge in both directions. Repeated
    relationships between the same pair count once; self-relationships
    add no degree.

    Args:
        diagram: The diagram to analyze

    Returns:
        ConnectivityGraph indexed in entity order
    """
    graph = ConnectivityGraph()
    for entity in diagram.entities:
        if entity.name in graph.index:
            continue
        graph.index[entity.name] = len(graph.names)
        graph.names.append(entity.name)
        graph.neighbors.append([])

    for rel in diagram.relationships:
        a = graph.index.get(rel.source)
        b = graph.index.get(rel.target)
        if a is None or b is None or a == b:
            continue
        edge = (min(a, b), max(a, b))
        if edge in graph.edges:
            continue
        graph.edges.add(edge)
        graph.neighbors[a].append(b)
        graph.neighbors[b].append(a)

    return graph


def find_hubs(graph: ConnectivityGraph) -> list[Hub]:
    """Entities with degree >= 2, highest degree first (ties keep entity order)."""
    hubs = [
        Hub(
            entity=graph.names[i],
            degree=graph.degree(i),
            neighbors=[graph.names[n] for n in graph.neighbors[i]],
        )
        for i in range(len(graph.names))
        if graph.degree(i) >= 2
    ]
    hubs.sort(key=lambda h: h.degree, reverse=True)
    return hubs


def _is_linear(graph: ConnectivityGraph, members: list[int]) -> bool:
    last = len(members) - 1
    for position, i in enumerate(members):
        if position in (0, last):
            if graph.degree(i) > 1:
                return False
        elif graph.degree(i) != 2:
            return False
    return True


def find_chains(graph: ConnectivityGraph) -> list[Chain]:
    """
    Find chains by greedy extension from entities of degree 1 or 2.

    A chain grows while its tail has exactly one unvisited neighbor and that
    neighbor has at most two connections. Entities stay visited once tried,
    so every entity belongs to at most one chain.

    Args:
        graph: Connectivity graph

    Returns:
        Chains with at least three members
    """
    visited: set[int] = set()
    chains: list[Chain] = []

    for start in range(len(graph.names)):
        if start in visited or graph.degree(start) not in (1, 2):
            continue

        members = [start]
        visited.add(start)
        current = start
        while True:
            unvisited = [n for n in graph.neighbors[current] if n not in visited]
            if len(unvisited) != 1 or graph.degree(unvisited[0]) > 2:
                break
            current = unvisited[0]
            members.append(current)
            visited.add(current)

        if len(members) >= MIN_CHAIN_LENGTH:
            chains.append(Chain(
                entities=[graph.names[i] for i in members],
                is_linear=_is_linear(graph, members),
            ))

    return chains


def find_clusters(graph: ConnectivityGraph) -> list[Cluster]:
    """
    Group entities by expanding only through neighbors of degree >= 2.

    Args:
        graph: Connectivity graph

    Returns:
        Clusters with at least three members, with their edge density
    """
    visited: set[int] = set()
    clusters: list[Cluster] = []

    for start in range(len(graph.names)):
        if start in visited:
            continue

        # DFS with an explicit stack
        members: list[int] = []
        stack = [start]
        while stack:
            current = stack.pop()
            if current in visited:
                continue
            visited.add(current)
            members.append(current)
            for neighbor in graph.neighbors[current]:
                if neighbor not in visited and graph.degree(neighbor) >= 2:
                    stack.append(neighbor)

        if len(members) >= MIN_CLUSTER_SIZE:
            member_set = set(members)
            internal = sum(1 for a, b in graph.edges if a in member_set and b in member_set)
            possible = len(members) * (len(members) - 1) / 2
            clusters.append(Cluster(
                entities=[graph.names[i] for i in members],
                density=internal / possible,
            ))

    return clusters


def classify_pattern(
    entity_count: int,
    hubs: list[Hub],
    chains: list[Chain],
    clusters: list[Cluster]
) -> tuple[TopologyPattern, dict[str, float]]:
    """
    Derive the topology pattern from hub, chain and cluster coverage.

    Hub coverage counts each entity once, whether it is a hub or a hub's
    neighbor.

    Returns:
        (pattern, coverage ratios keyed by "hubs", "chains", "clusters")
    """
    if entity_count == 0:
        return TopologyPattern.MIXED, {"hubs": 0.0, "chains": 0.0, "clusters": 0.0}

    hub_covered: set[str] = set()
    for hub in hubs:
        hub_covered.add(hub.entity)
        hub_covered.update(hub.neighbors)

    coverage = {
        "hubs": len(hub_covered) / entity_count,
        "chains": sum(c.length for c in chains) / entity_count,
        "clusters": sum(c.size for c in clusters) / entity_count,
    }

    if coverage["hubs"] > CENTRALIZED_THRESHOLD:
        pattern = TopologyPattern.CENTRALIZED
    elif coverage["chains"] > LINEAR_THRESHOLD:
        pattern = TopologyPattern.LINEAR
    elif coverage["clusters"] > DISTRIBUTED_THRESHOLD:
        pattern = TopologyPattern.DISTRIBUTED
    else:
        pattern = TopologyPattern.MIXED
    return pattern, coverage


def recommend_strategy(
    pattern: TopologyPattern,
    entity_count: int,
    relationship_count: int
) -> LayoutStrategy:
    """Pick the layout strategy for a pattern and diagram size."""
    # Without relationships there is no structure to exploit
    if entity_count <= GRID_MAX_ENTITIES or relationship_count == 0:
        return LayoutStrategy.GRID_FALLBACK

    if pattern == TopologyPattern.CENTRALIZED:
        return LayoutStrategy.CUSTOM_RADIAL
    if pattern == TopologyPattern.LINEAR:
        return LayoutStrategy.ELK_LAYERED
    if pattern == TopologyPattern.DISTRIBUTED:
        if entity_count <= FORCE_MAX_DISTRIBUTED:
            return LayoutStrategy.ADAPTIVE_FORCE
        return LayoutStrategy.ELK_LAYERED
    if entity_count <= FORCE_MAX_MIXED:
        return LayoutStrategy.ADAPTIVE_FORCE
    return LayoutStrategy.ELK_LAYERED


def analyze(diagram: "Diagram") -> ConnectivityAnalysis:
    """
    Classify a diagram's connectivity and recommend a layout strategy.

    Never fails: an empty diagram yields empty categories and the
    `mixed` pattern.

    Args:
        diagram: The diagram to analyze

    Returns:
        ConnectivityAnalysis with every category filled in
    """
    graph = build_graph(diagram)
    entity_count = len(graph.names)

    hubs = find_hubs(graph)
    chains = find_chains(graph)
    clusters = find_clusters(graph)
    isolated = [graph.names[i] for i in range(entity_count) if graph.degree(i) == 0]

    pattern, coverage = classify_pattern(entity_count, hubs, chains, clusters)
    strategy = recommend_strategy(pattern, entity_count, len(graph.edges))

    return ConnectivityAnalysis(
        entity_count=entity_count,
        relationship_count=len(diagram.relationships),
        hubs=hubs,
        chains=chains,
        clusters=clusters,
        isolated=isolated,
        pattern=pattern,
        recommended_strategy=strategy,
        coverage=coverage,
        graph=graph,
    )
