from dataclasses import dataclass, field
from typing import Dict, List, Optional

from infrasync.graph.model import GraphSnapshot, Node, NodeKind


@dataclass
class AdjacencyIndex:
    """
    Undirected neighbor relation: edges union containment.

    Derived from a GraphSnapshot and rebuilt for every synthesis pass.
    Neighbor order is insertion order (edges in edge order, then the
    containment pairs in node order), which makes "first neighbor of a
    kind" deterministic for a fixed edge list.
    """
    snapshot: GraphSnapshot
    _neighbors: Dict[str, Dict[str, None]] = field(default_factory=dict)
    _edge_neighbors: Dict[str, Dict[str, None]] = field(default_factory=dict)

    @classmethod
    def build(cls, snapshot: GraphSnapshot) -> "AdjacencyIndex":
        index = cls(snapshot=snapshot)
        node_ids = {n.id for n in snapshot.nodes}

        for node in snapshot.nodes:
            index._neighbors[node.id] = {}
            index._edge_neighbors[node.id] = {}

        for edge in snapshot.edges:
            a, b = edge.source.node, edge.target.node
            # Edges pointing at deleted nodes are skipped, self-loops add nothing
            if a not in node_ids or b not in node_ids or a == b:
                continue
            index._link(index._edge_neighbors, a, b)
            index._link(index._neighbors, a, b)

        for node in snapshot.nodes:
            parent = snapshot.parents.get(node.id)
            if parent and parent in node_ids:
                index._link(index._neighbors, node.id, parent)

        return index

    @staticmethod
    def _link(table: Dict[str, Dict[str, None]], a: str, b: str) -> None:
        table[a][b] = None
        table[b][a] = None

    def neighbors(self, node_id: str) -> List[Node]:
        return [
            self.snapshot.node(nid)
            for nid in self._neighbors.get(node_id, {})
        ]

    def neighbors_of_kind(self, node_id: str, kind: NodeKind) -> List[Node]:
        return [n for n in self.neighbors(node_id) if n.kind is kind]

    def first_neighbor(self, node_id: str, kind: NodeKind) -> Optional[Node]:
        """Tie-break: first eligible neighbor in iteration order."""
        found = self.neighbors_of_kind(node_id, kind)
        return found[0] if found else None

    def edge_neighbors_of_kind(self, node_id: str, kind: NodeKind) -> List[Node]:
        """Neighbors reached through an explicit edge only (not containment)."""
        return [
            n for n in (self.snapshot.node(nid) for nid in self._edge_neighbors.get(node_id, {}))
            if n.kind is kind
        ]
