"""
2D positions for the dependency flow chart.

Rows come from the task levels, slots within a row from the level grouping
order. A short repulsion pass then pushes centers that ended up too close
apart. Positions are cosmetic: they never feed back into levels and are
recomputed from scratch for every graph snapshot.
"""

import math
from dataclasses import dataclass
from typing import Hashable

from app.services.levels import group_by_level


@dataclass(frozen=True)
class LayoutConfig:
    node_width: float = 200
    node_height: float = 80
    horizontal_spacing: float = 250
    vertical_spacing: float = 120
    margin_top: float = 50
    margin_left: float = 50
    canvas_width: float = 1200
    # Relaxation pass
    iterations: int = 10
    repulsion: float = 50
    damping: float = 0.1


@dataclass
class Position:
    x: float
    y: float


def initial_positions(
    node_ids_by_level: dict[int, list[Hashable]],
    config: LayoutConfig,
) -> dict[Hashable, Position]:
    """Rows by level, each row centered on the canvas."""
    positions: dict[Hashable, Position] = {}
    step = config.node_width + config.horizontal_spacing

    for level, node_ids in sorted(node_ids_by_level.items()):
        y = config.margin_top + level * config.vertical_spacing
        total_width = len(node_ids) * config.node_width + (len(node_ids) - 1) * config.horizontal_spacing
        start_x = max(config.margin_left, (config.canvas_width - total_width) / 2)
        for index, node_id in enumerate(node_ids):
            positions[node_id] = Position(x=start_x + index * step, y=y)

    return positions


def relax_positions(positions: dict[Hashable, Position], config: LayoutConfig) -> dict[Hashable, Position]:
    """
    Damped pairwise repulsion between centers closer than horizontal_spacing.

    Updates ``positions`` in place, in its iteration order. Neighbours are
    looked up in a grid with cells of the repulsion radius, rebuilt at the
    start of every round. Coordinates never drop below the margins (or 0).
    """
    radius = config.horizontal_spacing
    min_x = max(0.0, config.margin_left)
    min_y = max(0.0, config.margin_top)
    order = list(positions)
    rank = {node_id: index for index, node_id in enumerate(order)}

    for _ in range(config.iterations):
        grid: dict[tuple[int, int], list[Hashable]] = {}
        cells = {}
        for node_id in order:
            position = positions[node_id]
            cell = (math.floor(position.x / radius), math.floor(position.y / radius))
            cells[node_id] = cell
            grid.setdefault(cell, []).append(node_id)

        for node_id in order:
            position = positions[node_id]
            delta_x = delta_y = 0.0
            cx, cy = cells[node_id]

            for gx in (cx - 1, cx, cx + 1):
                for gy in (cy - 1, cy, cy + 1):
                    for other_id in grid.get((gx, gy), ()):
                        if other_id == node_id:
                            continue
                        other = positions[other_id]
                        dx = position.x - other.x
                        dy = position.y - other.y
                        distance = math.hypot(dx, dy)
                        if distance >= radius:
                            continue
                        if distance == 0:
                            # Coincident centers: later nodes move right, earlier ones left
                            unit_x = 1.0 if rank[node_id] > rank[other_id] else -1.0
                            unit_y = 0.0
                            force = config.repulsion
                        else:
                            unit_x, unit_y = dx / distance, dy / distance
                            force = config.repulsion / distance
                        delta_x += unit_x * force
                        delta_y += unit_y * force

            position.x = max(min_x, position.x + delta_x * config.damping)
            position.y = max(min_y, position.y + delta_y * config.damping)

    return positions


def compute_positions(
    levels: dict[Hashable, int],
    node_ids_by_level: dict[int, list[Hashable]] | None = None,
    config: LayoutConfig | None = None,
) -> dict[Hashable, Position]:
    """task id -> Position for every task in ``levels``."""
    config = config or LayoutConfig()
    if node_ids_by_level is None:
        node_ids_by_level = group_by_level(levels)
    return relax_positions(initial_positions(node_ids_by_level, config), config)
