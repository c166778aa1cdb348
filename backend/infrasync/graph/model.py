"""
GraphModel - the editable visual topology.

Nodes and edges are keyed by stable opaque ids; edge endpoints store ids,
never positions, so deleting a node only has to drop its incident edges.

Containment (which Network a node sits in) is never stored by the caller:
it is recomputed from geometry after every committed mutation. Interactive
drags update geometry on every pointer move and recompute containment once,
on release.
"""

import logging
import math
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)


class NodeKind(Enum):
    NETWORK = "network"
    COMPUTE = "compute"
    CONTAINER_PLATFORM = "container_platform"
    KV_STORE = "kv_store"
    CATALOG_CRAWLER = "catalog_crawler"
    OBJECT_STORE = "object_store"

    @classmethod
    def parse(cls, value) -> "NodeKind":
        """Accept enum values, enum names and the editor's palette labels."""
        if isinstance(value, cls):
            return value
        key = str(value or "").strip().lower().replace("-", "_").replace(" ", "_")
        if key in KIND_ALIASES:
            return KIND_ALIASES[key]
        for kind in cls:
            if key in (kind.value, kind.name.lower()):
                return kind
        raise ValueError(f"unknown node kind: {value!r}")


KIND_ALIASES = {
    "vpc": NodeKind.NETWORK,
    "ec2": NodeKind.COMPUTE,
    "instance": NodeKind.COMPUTE,
    "ecs": NodeKind.CONTAINER_PLATFORM,
    "fargate": NodeKind.CONTAINER_PLATFORM,
    "dynamodb": NodeKind.KV_STORE,
    "glue": NodeKind.CATALOG_CRAWLER,
    "crawler": NodeKind.CATALOG_CRAWLER,
    "s3": NodeKind.OBJECT_STORE,
    "bucket": NodeKind.OBJECT_STORE,
}

DEFAULT_LABELS = {
    NodeKind.NETWORK: "VPC",
    NodeKind.COMPUTE: "EC2",
    NodeKind.CONTAINER_PLATFORM: "ECS",
    NodeKind.KV_STORE: "DynamoDB",
    NodeKind.CATALOG_CRAWLER: "Glue",
    NodeKind.OBJECT_STORE: "S3",
}


class PortSide(Enum):
    TOP = "top"
    RIGHT = "right"
    BOTTOM = "bottom"
    LEFT = "left"


class EdgeStyle(Enum):
    SOLID = "solid"
    DASHED = "dashed"


NODE_W = 108
NODE_H = 96
NETWORK_W = 400
NETWORK_H = 240
NETWORK_MIN_W = 200
NETWORK_MIN_H = 140


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    w: float
    h: float

    @property
    def center(self) -> Tuple[float, float]:
        return (self.x + self.w / 2, self.y + self.h / 2)

    def contains(self, px: float, py: float) -> bool:
        # NaN compares false everywhere, so malformed geometry contains nothing
        return self.x <= px <= self.x + self.w and self.y <= py <= self.y + self.h

    def centered_at(self, position: Tuple[float, float]) -> "Rect":
        cx, cy = position
        return Rect(cx - self.w / 2, cy - self.h / 2, self.w, self.h)

    def clamped(self, min_w: float, min_h: float) -> "Rect":
        w = self.w if math.isfinite(self.w) else min_w
        h = self.h if math.isfinite(self.h) else min_h
        return Rect(self.x, self.y, max(min_w, w), max(min_h, h))


@dataclass
class Node:
    id: str
    kind: NodeKind
    label: str
    rect: Rect
    # Pins the base instance name used by synthesis (set by reconstruction)
    resource_name: Optional[str] = None

    @property
    def center(self) -> Tuple[float, float]:
        return self.rect.center

    @property
    def is_network(self) -> bool:
        return self.kind is NodeKind.NETWORK


@dataclass(frozen=True)
class Port:
    node: str
    side: PortSide = PortSide.RIGHT


@dataclass
class Edge:
    id: str
    source: Port
    target: Port
    style: EdgeStyle = EdgeStyle.SOLID

    def touches(self, node_id: str) -> bool:
        return self.source.node == node_id or self.target.node == node_id

    def other(self, node_id: str) -> Optional[str]:
        if self.source.node == node_id:
            return self.target.node
        if self.target.node == node_id:
            return self.source.node
        return None


@dataclass(frozen=True)
class GraphSnapshot:
    """Immutable copy of a GraphModel handed to one synthesis pass."""
    nodes: Tuple[Node, ...]
    edges: Tuple[Edge, ...]
    parents: Mapping[str, Optional[str]] = field(default_factory=dict)

    def node(self, node_id: str) -> Optional[Node]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def nodes_of(self, kind: NodeKind) -> List[Node]:
        return [n for n in self.nodes if n.kind is kind]


def compute_containment(nodes: Iterable[Node]) -> Dict[str, Optional[str]]:
    """
    Parent assignment as a pure function of geometry.

    A non-network node belongs to the top-most (latest in z-order) Network
    whose rectangle contains its center. Networks have no parent.
    """
    ordered = list(nodes)
    networks = [n for n in ordered if n.is_network]
    parents: Dict[str, Optional[str]] = {}

    for node in ordered:
        parent = None
        if not node.is_network:
            cx, cy = node.center
            for network in reversed(networks):
                if network.rect.contains(cx, cy):
                    parent = network.id
                    break
        parents[node.id] = parent

    return parents


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:8]}"


@dataclass
class _Interaction:
    mode: str  # move | resize
    node_id: str


class GraphModel:
    """
    In-memory topology: nodes, edges and derived containment.

    Usage:
        graph = GraphModel()
        vpc = graph.add_node(NodeKind.NETWORK, (300, 200))
        ec2 = graph.add_node(NodeKind.COMPUTE, (300, 200))
        graph.parent_of(ec2)  # -> vpc
    """

    def __init__(self):
        # dict order doubles as z-order (last drawn is top-most)
        self._nodes: Dict[str, Node] = {}
        self._edges: Dict[str, Edge] = {}
        self._parents: Dict[str, Optional[str]] = {}
        self._interaction: Optional[_Interaction] = None
        self.version = 0

    # ---------- queries ----------

    @property
    def nodes(self) -> List[Node]:
        return list(self._nodes.values())

    @property
    def edges(self) -> List[Edge]:
        return list(self._edges.values())

    def node(self, node_id: str) -> Optional[Node]:
        return self._nodes.get(node_id)

    def __contains__(self, node_id: str) -> bool:
        return node_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def parent_of(self, node_id: str) -> Optional[str]:
        return self._parents.get(node_id)

    def children_of(self, network_id: str) -> List[str]:
        return [nid for nid, parent in self._parents.items() if parent == network_id]

    def edges_of(self, node_id: str) -> List[Edge]:
        return [e for e in self._edges.values() if e.touches(node_id)]

    @property
    def interacting(self) -> bool:
        return self._interaction is not None

    def snapshot(self) -> GraphSnapshot:
        return GraphSnapshot(
            nodes=tuple(replace(n) for n in self._nodes.values()),
            edges=tuple(replace(e) for e in self._edges.values()),
            parents=MappingProxyType(dict(self._parents)),
        )

    # ---------- structural mutations ----------

    def add_node(
        self,
        kind,
        position: Tuple[float, float],
        label: Optional[str] = None,
        size: Optional[Tuple[float, float]] = None,
        node_id: Optional[str] = None,
        resource_name: Optional[str] = None,
    ) -> str:
        """Drop a node centered on `position` and return its id."""
        self._finish_interaction()
        kind = NodeKind.parse(kind)

        if size is None:
            size = (NETWORK_W, NETWORK_H) if kind is NodeKind.NETWORK else (NODE_W, NODE_H)
        w, h = size
        rect = Rect(0, 0, w, h).centered_at(position)
        if kind is NodeKind.NETWORK:
            rect = rect.clamped(NETWORK_MIN_W, NETWORK_MIN_H)

        node_id = node_id or new_id(kind.value)
        if node_id in self._nodes:
            raise ValueError(f"duplicate node id: {node_id}")

        self._nodes[node_id] = Node(
            id=node_id,
            kind=kind,
            label=label if label is not None else DEFAULT_LABELS[kind],
            rect=rect,
            resource_name=resource_name,
        )
        self._commit()
        return node_id

    def place_node(self, node: Node) -> str:
        """Insert a fully built node (used when loading saved graphs)."""
        self._finish_interaction()
        if node.id in self._nodes:
            raise ValueError(f"duplicate node id: {node.id}")
        self._nodes[node.id] = node
        self._commit()
        return node.id

    def remove_node(self, node_id: str) -> bool:
        """Delete a node and every incident edge. Silent when absent."""
        if node_id not in self._nodes:
            return False
        self._finish_interaction()

        del self._nodes[node_id]
        for edge_id in [e.id for e in self._edges.values() if e.touches(node_id)]:
            del self._edges[edge_id]

        self._commit()
        return True

    def add_edge(self, source, target, style=EdgeStyle.SOLID, edge_id: Optional[str] = None) -> str:
        source = self._as_port(source, PortSide.RIGHT)
        target = self._as_port(target, PortSide.LEFT)
        for port in (source, target):
            if port.node not in self._nodes:
                raise KeyError(f"unknown node: {port.node}")

        edge_id = edge_id or new_id("edge")
        if edge_id in self._edges:
            raise ValueError(f"duplicate edge id: {edge_id}")

        self._edges[edge_id] = Edge(
            id=edge_id,
            source=source,
            target=target,
            style=EdgeStyle(style) if not isinstance(style, EdgeStyle) else style,
        )
        self._commit()
        return edge_id

    def remove_edge(self, edge_id: str) -> bool:
        if edge_id not in self._edges:
            return False
        del self._edges[edge_id]
        self._commit()
        return True

    def relabel(self, node_id: str, label: str) -> bool:
        node = self._nodes.get(node_id)
        if node is None:
            return False
        node.label = label
        self._commit()
        return True

    def clear(self) -> None:
        self._interaction = None
        self._nodes.clear()
        self._edges.clear()
        self._commit()

    # ---------- committed geometry ----------

    def move_node(self, node_id: str, position: Tuple[float, float]) -> bool:
        """Move a node's center and re-evaluate containment once."""
        if not self.begin_move(node_id):
            return False
        self.drag_to(position)
        self.release()
        return True

    def resize(self, network_id: str, rect: Rect) -> bool:
        """Resize a Network; children stay put and containment is re-evaluated once."""
        if not self.begin_resize(network_id):
            return False
        self.resize_to(rect)
        self.release()
        return True

    # ---------- interactive geometry ----------

    def begin_move(self, node_id: str) -> bool:
        node = self._nodes.get(node_id)
        if node is None:
            return False
        self._finish_interaction()
        if node.is_network:
            self._bring_to_front(node_id)
        self._interaction = _Interaction(mode="move", node_id=node_id)
        return True

    def begin_resize(self, network_id: str) -> bool:
        node = self._nodes.get(network_id)
        if node is None or not node.is_network:
            return False
        self._finish_interaction()
        self._bring_to_front(network_id)
        self._interaction = _Interaction(mode="resize", node_id=network_id)
        return True

    def drag_to(self, position: Tuple[float, float]) -> None:
        """Pointer move during a drag: geometry only, containment untouched."""
        if not self._interaction or self._interaction.mode != "move":
            return
        node = self._nodes[self._interaction.node_id]
        node.rect = node.rect.centered_at(position)

    def resize_to(self, rect: Rect) -> None:
        """Pointer move during a resize: children are not moved."""
        if not self._interaction or self._interaction.mode != "resize":
            return
        node = self._nodes[self._interaction.node_id]
        node.rect = rect.clamped(NETWORK_MIN_W, NETWORK_MIN_H)

    def release(self) -> bool:
        """Pointer release: recompute containment. Returns False when idle."""
        if self._interaction is None:
            return False
        self._interaction = None
        self._commit()
        return True

    # ---------- internals ----------

    def _finish_interaction(self) -> None:
        if self._interaction is not None:
            self.release()

    def _bring_to_front(self, node_id: str) -> None:
        self._nodes[node_id] = self._nodes.pop(node_id)

    def _commit(self) -> None:
        previous = self._parents
        self._parents = compute_containment(self._nodes.values())
        self.version += 1

        changed = [
            nid for nid, parent in self._parents.items()
            if previous.get(nid) != parent
        ]
        if changed:
            logger.debug("[GRAPH] containment changed for %s", changed)

    @staticmethod
    def _as_port(value, default_side: PortSide) -> Port:
        if isinstance(value, Port):
            return value
        if isinstance(value, tuple):
            node, side = value
            return Port(node, PortSide(side) if not isinstance(side, PortSide) else side)
        return Port(str(value), default_side)
