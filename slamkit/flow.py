"""Minimum-cost maximum-flow network used to pick map points and keyframe pairs.

Vertex ``0`` is the source and the last vertex is the sink. Vertices
``1 .. map_point_count`` stand for map points and the following
``covis_keyframe_count`` vertices for covisible keyframe pairs.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

_DEFAULT_FLOW_LIMIT = 2**31 - 1


@dataclass
class Edge:
    """A residual edge; ``rev`` is the index of its twin in ``adjacency[to]``."""

    to: int
    capacity: int
    cost: float
    rev: int


class FlowGraph:
    """Residual network solved by repeated Bellman-Ford shortest paths."""

    def __init__(self, map_point_count, covis_keyframe_count):
        if map_point_count < 0 or covis_keyframe_count < 0:
            raise ValueError("vertex counts must not be negative")
        self.map_point_count = int(map_point_count)
        self.covis_keyframe_count = int(covis_keyframe_count)
        self.adjacency = [[] for _ in range(self.map_point_count + self.covis_keyframe_count + 2)]
        # Vertices of every augmenting path, each listed from the sink backwards.
        self.selected = []

    def __len__(self):
        return len(self.adjacency)

    @property
    def sink(self):
        """Index of the last vertex."""
        return len(self.adjacency) - 1

    def _check_vertex(self, vertex):
        if not 0 <= vertex < len(self.adjacency):
            raise IndexError(f"vertex {vertex} outside 0..{len(self.adjacency) - 1}")

    def add_edge(self, source, target, capacity, cost):
        """Add an edge and its zero-capacity reverse twin."""
        self._check_vertex(source)
        self._check_vertex(target)
        if capacity < 0:
            raise ValueError("capacity must not be negative")
        forward = Edge(target, capacity, cost, len(self.adjacency[target]))
        self.adjacency[source].append(forward)
        backward = Edge(source, 0, -cost, len(self.adjacency[source]) - 1)
        self.adjacency[target].append(backward)

    def _shortest_path(self, source):
        n = len(self.adjacency)
        dist = [math.inf] * n
        prev_vertex = [0] * n
        prev_edge = [0] * n
        dist[source] = 0
        for _ in range(n):
            changed = False
            for u, edges in enumerate(self.adjacency):
                if dist[u] == math.inf:
                    continue
                for index, edge in enumerate(edges):
                    if edge.capacity > 0 and dist[edge.to] > dist[u] + edge.cost:
                        dist[edge.to] = dist[u] + edge.cost
                        prev_vertex[edge.to] = u
                        prev_edge[edge.to] = index
                        changed = True
            if not changed:
                break
        return dist, prev_vertex, prev_edge

    def min_cost_max_flow(self, source, sink, flow_limit=_DEFAULT_FLOW_LIMIT):
        """Push up to ``flow_limit`` units from ``source`` to ``sink``.

        Returns ``(flow, cost)``. The vertices of each augmenting path are
        appended to ``selected``.
        """
        self._check_vertex(source)
        self._check_vertex(sink)
        if source == sink:
            raise ValueError("source and sink must differ")

        flow = 0
        cost = 0
        while flow < flow_limit:
            dist, prev_vertex, prev_edge = self._shortest_path(source)
            if dist[sink] == math.inf:
                break

            path = []
            v = sink
            while v != source:
                path.append(v)
                v = prev_vertex[v]

            pushed = flow_limit - flow
            for v in path:
                pushed = min(pushed, self.adjacency[prev_vertex[v]][prev_edge[v]].capacity)
            if pushed <= 0:
                break

            flow += pushed
            cost += pushed * dist[sink]
            for v in path:
                edge = self.adjacency[prev_vertex[v]][prev_edge[v]]
                edge.capacity -= pushed
                self.adjacency[v][edge.rev].capacity += pushed
            self.selected.extend(path)

        return flow, cost