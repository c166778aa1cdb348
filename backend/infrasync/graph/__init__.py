# Graph module
# The editable topology and the indexes derived from it

from infrasync.graph.model import (
    GraphModel,
    GraphSnapshot,
    Node,
    NodeKind,
    Edge,
    EdgeStyle,
    Port,
    PortSide,
    Rect,
    compute_containment,
)
from infrasync.graph.adjacency import AdjacencyIndex
from infrasync.graph.serializers import graph_to_dict, graph_from_dict

__all__ = [
    "GraphModel",
    "GraphSnapshot",
    "Node",
    "NodeKind",
    "Edge",
    "EdgeStyle",
    "Port",
    "PortSide",
    "Rect",
    "compute_containment",
    "AdjacencyIndex",
    "graph_to_dict",
    "graph_from_dict",
]
