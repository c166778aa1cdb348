# backend/infrasync/reconstruct/layout.py

import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from infrasync.graph.model import NETWORK_H, NETWORK_W, NODE_H, NODE_W

MARGIN = 40
GAP = 60
CELL_PAD = 24
HEADER = 32
COLUMNS = 3


@dataclass
class Placement:
    center: Tuple[float, float]
    size: Tuple[float, float]


@dataclass
class LayoutPlan:
    """Network keys in display order, their children, then free nodes."""
    networks: List[str] = field(default_factory=list)
    children: Dict[str, List[str]] = field(default_factory=dict)
    free: List[str] = field(default_factory=list)


def network_size(child_count: int) -> Tuple[float, float]:
    cols = min(COLUMNS, max(child_count, 1))
    rows = max(1, math.ceil(child_count / cols))
    w = max(NETWORK_W, cols * NODE_W + (cols + 1) * CELL_PAD)
    h = max(NETWORK_H, HEADER + rows * NODE_H + (rows + 1) * CELL_PAD)
    return (w, h)


def apply_layout(plan: LayoutPlan) -> Dict[str, Placement]:
    """
    Networks side by side in one row, their children in a grid inside,
    every other node in a row underneath.
    """
    placements: Dict[str, Placement] = {}
    x = MARGIN
    tallest: Optional[float] = None

    for key in plan.networks:
        children = plan.children.get(key, [])
        w, h = network_size(len(children))
        placements[key] = Placement(center=(x + w / 2, MARGIN + h / 2), size=(w, h))

        cols = min(COLUMNS, max(len(children), 1))
        for i, child in enumerate(children):
            row, col = divmod(i, cols)
            cx = x + CELL_PAD + col * (NODE_W + CELL_PAD) + NODE_W / 2
            cy = MARGIN + HEADER + CELL_PAD + row * (NODE_H + CELL_PAD) + NODE_H / 2
            placements[child] = Placement(center=(cx, cy), size=(NODE_W, NODE_H))

        x += w + GAP
        tallest = h if tallest is None else max(tallest, h)

    y = MARGIN if tallest is None else MARGIN + tallest + GAP
    for i, key in enumerate(plan.free):
        cx = MARGIN + i * (NODE_W + GAP) + NODE_W / 2
        placements[key] = Placement(center=(cx, y + NODE_H / 2), size=(NODE_W, NODE_H))

    return placements
