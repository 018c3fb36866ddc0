"""
Position post-processing - make a raw layout readable.

Passes run once each, in this order:
1. Collision: push apart entities closer than the minimum distance
2. Proximity: pull related entities that ended up far apart
3. Line overlap: move entities off relationship lines they do not belong to
4. Bounds: keep every coordinate at or above the margin

Passes 2 and 3 only apply a move when it keeps the moved entity clear of
every other entity, so the spacing from pass 1 survives to the end.
"""

import math
from typing import TYPE_CHECKING, Optional

from .config.logging import get_logger
from .config.settings import Settings, get_settings
from .models import PositionMap

if TYPE_CHECKING:
    from .models import Diagram

logger = get_logger(__name__)

Point = tuple[float, float]


def _is_clear(
    name: str,
    point: Point,
    positions: PositionMap,
    min_distance: float,
    ignore: tuple[str, ...] = ()
) -> bool:
    for other, (ox, oy) in positions.items():
        if other == name or other in ignore:
            continue
        if math.hypot(point[0] - ox, point[1] - oy) < min_distance - 1e-6:
            return False
    return True


def resolve_collisions(
    positions: PositionMap,
    min_distance: float,
    max_sweeps: int = 100
) -> int:
    """
    Push overlapping entities apart (in-place).

    Each pair closer than `min_distance` moves apart symmetrically by half
    the deficit along the line joining their centres. Sweeps repeat until a
    sweep moves nothing or `max_sweeps` is reached.

    Args:
        positions: Position map to correct
        min_distance: Minimum centre-to-centre distance
        max_sweeps: Upper bound on full pair sweeps

    Returns:
        Number of pair corrections applied
    """
    names = list(positions)
    corrections = 0
    for _ in range(max_sweeps):
        moved = False
        for i, a in enumerate(names):
            for b in names[i + 1:]:
                ax, ay = positions[a]
                bx, by = positions[b]
                dx = bx - ax
                dy = by - ay
                dist = math.hypot(dx, dy)
                if dist >= min_distance - 1e-6:
                    continue
                if dist < 1e-9:
                    # Coincident centres: separate along a direction fixed by pair order
                    angle = (i * 0.618033988749895 % 1.0) * 2 * math.pi
                else:
                    angle = math.atan2(dy, dx)
                # A slight overshoot keeps float error from leaving a pair just short
                push = (min_distance - dist) / 2 + 1e-3
                positions[a] = (ax - push * math.cos(angle), ay - push * math.sin(angle))
                positions[b] = (bx + push * math.cos(angle), by + push * math.sin(angle))
                corrections += 1
                moved = True
        if not moved:
            break
    return corrections


def tighten_relationships(
    positions: PositionMap,
    diagram: "Diagram",
    threshold: float,
    pull: float,
    min_distance: float
) -> int:
    """
    Pull both ends of long relationships toward their midpoint (in-place).

    Returns:
        Number of relationships tightened
    """
    tightened = 0
    for rel in diagram.relationships:
        if rel.source == rel.target or rel.source not in positions or rel.target not in positions:
            continue
        sx, sy = positions[rel.source]
        tx, ty = positions[rel.target]
        if math.hypot(tx - sx, ty - sy) <= threshold:
            continue

        mx, my = (sx + tx) / 2, (sy + ty) / 2
        new_source = (sx + (mx - sx) * pull, sy + (my - sy) * pull)
        new_target = (tx + (mx - tx) * pull, ty + (my - ty) * pull)
        pair = (rel.source, rel.target)
        if (_is_clear(rel.source, new_source, positions, min_distance, ignore=pair)
                and _is_clear(rel.target, new_target, positions, min_distance, ignore=pair)):
            positions[rel.source] = new_source
            positions[rel.target] = new_target
            tightened += 1
    return tightened


def point_segment_distance(point: Point, start: Point, end: Point) -> tuple[float, Point]:
    """
    Distance from a point to a line segment.

    Returns:
        (distance, closest point on the segment)
    """
    px, py = point
    sx, sy = start
    ex, ey = end
    dx, dy = ex - sx, ey - sy
    length_sq = dx * dx + dy * dy
    if length_sq == 0:
        return math.hypot(px - sx, py - sy), start
    t = max(0.0, min(1.0, ((px - sx) * dx + (py - sy) * dy) / length_sq))
    closest = (sx + t * dx, sy + t * dy)
    return math.hypot(px - closest[0], py - closest[1]), closest


def clear_lines(
    positions: PositionMap,
    diagram: "Diagram",
    buffer: float,
    min_distance: float
) -> int:
    """
    Move entities off relationship lines they are not part of (in-place).

    An entity within `buffer` of a segment moves perpendicular to it by the
    deficit, on the side it already lies on.

    Returns:
        Number of entities moved
    """
    moved = 0
    for rel in diagram.relationships:
        if rel.source == rel.target or rel.source not in positions or rel.target not in positions:
            continue
        start = positions[rel.source]
        end = positions[rel.target]
        dx, dy = end[0] - start[0], end[1] - start[1]
        length = math.hypot(dx, dy)
        if length == 0:
            continue
        normal = (-dy / length, dx / length)

        for name, point in list(positions.items()):
            if name in (rel.source, rel.target):
                continue
            distance, _ = point_segment_distance(point, start, end)
            if distance >= buffer:
                continue
            # Stay on the current side of the line
            side = (point[0] - start[0]) * normal[0] + (point[1] - start[1]) * normal[1]
            sign = -1.0 if side < 0 else 1.0
            deficit = buffer - distance
            candidate = (point[0] + sign * normal[0] * deficit, point[1] + sign * normal[1] * deficit)
            if _is_clear(name, candidate, positions, min_distance):
                positions[name] = candidate
                moved += 1
    return moved


def enforce_bounds(positions: PositionMap, margin: float) -> bool:
    """
    Shift the whole map so no coordinate is below `margin` (in-place).

    Returns:
        True if the map was shifted
    """
    if not positions:
        return False
    shift_x = max(0.0, margin - min(x for x, _ in positions.values()))
    shift_y = max(0.0, margin - min(y for _, y in positions.values()))
    if shift_x == 0 and shift_y == 0:
        return False
    for name, (x, y) in positions.items():
        positions[name] = (x + shift_x, y + shift_y)
    return True


def refine(
    positions: PositionMap,
    diagram: "Diagram",
    settings: Optional[Settings] = None
) -> PositionMap:
    """
    Run all post-processing passes once, in order.

    Args:
        positions: Raw position map from a layout strategy
        diagram: The diagram the positions belong to
        settings: Distances and factors (global settings if None)

    Returns:
        A corrected copy of the position map
    """
    settings = settings or get_settings()
    result: PositionMap = dict(positions)

    collisions = resolve_collisions(result, settings.min_distance, settings.collision_sweeps)
    tightened = tighten_relationships(
        result, diagram,
        settings.proximity_threshold, settings.proximity_pull, settings.min_distance
    )
    cleared = clear_lines(result, diagram, settings.line_buffer, settings.min_distance)
    shifted = enforce_bounds(result, settings.margin)

    logger.debug(
        "Refined %d positions: %d collisions, %d tightened, %d cleared, shifted=%s",
        len(result), collisions, tightened, cleared, shifted
    )
    return result
