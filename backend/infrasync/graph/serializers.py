"""
Graph JSON exchanged with the editor:

    {
      "nodes": [{"id", "kind", "label", "x", "y", "w"?, "h"?, "parentId"?, "resourceName"?}],
      "edges": [{"id"?, "source": {"node", "side"}, "target": {"node", "side"}, "style"}]
    }

Networks are placed by their top-left corner (`x`/`y`) and size, service
nodes by their center, the point containment is tested against.
`parentId` is written for the editor's benefit but ignored on load:
containment is recomputed from geometry.
"""

import logging
import math
from typing import Any, Dict

from infrasync.graph.model import (
    DEFAULT_LABELS,
    NETWORK_H,
    NETWORK_W,
    NODE_H,
    NODE_W,
    EdgeStyle,
    GraphModel,
    Node,
    NodeKind,
    Port,
    PortSide,
    Rect,
    new_id,
)

logger = logging.getLogger(__name__)


def _number(value, default: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return number if math.isfinite(number) else default


def graph_to_dict(graph: GraphModel) -> Dict[str, Any]:
    nodes = []
    for node in graph.nodes:
        x, y = (node.rect.x, node.rect.y) if node.is_network else node.center
        item = {
            "id": node.id,
            "kind": node.kind.value,
            "label": node.label,
            "x": x,
            "y": y,
            "w": node.rect.w,
            "h": node.rect.h,
            "parentId": graph.parent_of(node.id),
        }
        if node.resource_name:
            item["resourceName"] = node.resource_name
        nodes.append(item)

    edges = [
        {
            "id": edge.id,
            "source": {"node": edge.source.node, "side": edge.source.side.value},
            "target": {"node": edge.target.node, "side": edge.target.side.value},
            "style": edge.style.value,
        }
        for edge in graph.edges
    ]

    return {"nodes": nodes, "edges": edges}


def graph_from_dict(data: Dict[str, Any]) -> GraphModel:
    """
    Build a GraphModel from editor JSON.

    Unknown node kinds raise ValueError; edges pointing at missing
    nodes are dropped with a warning.
    """
    graph = GraphModel()

    for item in data.get("nodes") or []:
        kind = NodeKind.parse(item.get("kind") or item.get("label"))
        is_network = kind is NodeKind.NETWORK
        x = _number(item.get("x"), 0.0)
        y = _number(item.get("y"), 0.0)
        rect = Rect(
            x=x,
            y=y,
            w=_number(item.get("w"), NETWORK_W if is_network else NODE_W),
            h=_number(item.get("h"), NETWORK_H if is_network else NODE_H),
        )
        if not is_network:
            rect = rect.centered_at((x, y))
        graph.place_node(
            Node(
                id=str(item.get("id") or new_id(kind.value)),
                kind=kind,
                label=str(item.get("label") or DEFAULT_LABELS[kind]),
                rect=rect,
                resource_name=item.get("resourceName"),
            )
        )

    for item in data.get("edges") or []:
        source = item.get("source") or {}
        target = item.get("target") or {}
        if source.get("node") not in graph or target.get("node") not in graph:
            logger.warning("[GRAPH] dropping edge with unknown endpoint: %s", item)
            continue
        graph.add_edge(
            Port(str(source["node"]), PortSide(source.get("side", "right"))),
            Port(str(target["node"]), PortSide(target.get("side", "left"))),
            style=EdgeStyle(item.get("style", "solid")),
            edge_id=item.get("id"),
        )

    return graph
