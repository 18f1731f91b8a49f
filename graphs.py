"""Graph inputs and vertex weights for the kernel solver.

A `Graph` is an ordered vertex list plus an edge list. The vertex order fixes
the variable order of every model built from the graph, so it is kept exactly
as supplied.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Hashable, List, Sequence, Tuple

from errors import InvalidGraph

Vertex = Hashable
Edge = Tuple[Vertex, Vertex]


@dataclass(frozen=True)
class Graph:
    """Undirected simple graph with a fixed vertex order."""

    vertices: Tuple[Vertex, ...]
    edges: Tuple[Edge, ...]
    name: str = "graph"
    _position: Dict[Vertex, int] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        object.__setattr__(self, "vertices", tuple(self.vertices))
        object.__setattr__(self, "edges", tuple(tuple(e) for e in self.edges))
        self.validate()
        self._position.update({v: i for i, v in enumerate(self.vertices)})

    def validate(self) -> None:
        """Raise InvalidGraph unless vertices are unique and edges are simple."""
        seen_vertices = set()
        for v in self.vertices:
            if v in seen_vertices:
                raise InvalidGraph(f"duplicate vertex {v!r}")
            seen_vertices.add(v)

        seen_edges = set()
        for edge in self.edges:
            if len(edge) != 2:
                raise InvalidGraph(f"edge {edge!r} is not a pair")
            u, v = edge
            if u == v:
                raise InvalidGraph(f"self-loop on vertex {u!r}")
            for endpoint in (u, v):
                if endpoint not in seen_vertices:
                    raise InvalidGraph(
                        f"edge {edge!r} has endpoint {endpoint!r} outside the vertex list"
                    )
            key = frozenset((u, v))
            if key in seen_edges:
                raise InvalidGraph(f"duplicate edge {edge!r}")
            seen_edges.add(key)

    def position(self, v: Vertex) -> int:
        return self._position[v]

    def neighbours(self) -> Dict[Vertex, List[Vertex]]:
        """Adjacency lists, each sorted by vertex position."""
        adj: Dict[Vertex, List[Vertex]] = {v: [] for v in self.vertices}
        for u, v in self.edges:
            adj[u].append(v)
            adj[v].append(u)
        for v in adj:
            adj[v].sort(key=self.position)
        return adj


def cycle_graph(n: int) -> Graph:
    """Cycle C_n on vertices 1..n with edges (1,2), (2,3), ..., (n-1,n), (1,n)."""
    if n < 3:
        raise InvalidGraph(f"a cycle needs at least 3 vertices, got {n}")
    edges: List[Edge] = [(i, i + 1) for i in range(1, n)]
    edges.append((1, n))
    return Graph(vertices=tuple(range(1, n + 1)), edges=tuple(edges), name=f"C_{n}")


def path_graph(n: int) -> Graph:
    """Path P_n on vertices 1..n."""
    if n < 1:
        raise InvalidGraph(f"a path needs at least 1 vertex, got {n}")
    edges = tuple((i, i + 1) for i in range(1, n))
    return Graph(vertices=tuple(range(1, n + 1)), edges=edges, name=f"P_{n}")


def empty_graph(n: int) -> Graph:
    """n isolated vertices 1..n."""
    return Graph(vertices=tuple(range(1, n + 1)), edges=(), name=f"E_{n}")


def thue_morse_weight(index: int) -> int:
    """(-1) ** (number of 1 bits in index)."""
    return -1 if bin(index).count("1") % 2 else 1


def thue_morse_weights(vertices: Sequence[Vertex]) -> Dict[Vertex, int]:
    """Thue-Morse weights keyed by vertex, using the 1-based position in `vertices`."""
    return {v: thue_morse_weight(i) for i, v in enumerate(vertices, start=1)}
