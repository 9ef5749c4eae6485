"""Choice of map points and keyframes for a sparse local bundle adjustment.

Each candidate map point becomes a vertex fed from the source. A point that
has a non-zero density score for a keyframe pair is linked to that pair's
keyframe vertex, which drains into the sink at a cost built from the pair's
baseline and the point's depth penalty. A minimum-cost flow through this
network picks the points and keyframes to optimise.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from itertools import combinations

from .flow import FlowGraph
from .scores import point_visibility

_SPARSITY_FACTOR = 0.55
_DEFAULT_FLOW_LIMIT = 10000


@dataclass(frozen=True)
class PointCandidate:
    """A map point offered to the selection.

    ``diversity`` maps a keyframe pair ``(i, j)`` with ``i < j`` to the point's
    density score for that pair; ``baselines`` gives the same pairs' baseline
    costs. ``depth_penalty`` is the point's penalty in the current keyframe.
    """

    observations: int
    found: int
    depth_penalty: float = 0.0
    diversity: dict = field(default_factory=dict)
    baselines: dict = field(default_factory=dict)

    def __post_init__(self):
        if self.observations < 0:
            raise ValueError("observations must not be negative")
        if self.found < 0:
            raise ValueError("found count must not be negative")
        for a, b in self.diversity:
            if not a < b:
                raise ValueError(f"keyframe pair {(a, b)} must be ordered")


@dataclass(frozen=True)
class Selection:
    """Map point and keyframe indices picked by the flow, with its totals."""

    map_points: list
    keyframes: list
    flow: int
    cost: float


def average_sparsity(values):
    """Reduced mean of the non-zero sparsity values, used as a density threshold."""
    nonzero = [v for v in values if v != 0]
    if not nonzero:
        raise ValueError("no non-zero sparsity values")
    return sum(nonzero) / len(nonzero) * _SPARSITY_FACTOR


def _as_cost(value):
    value = float(value)
    return int(value) if math.isfinite(value) else value


def _check_pairs(point, n_keyframes):
    for a, b in point.diversity:
        if a < 0 or b >= n_keyframes:
            raise ValueError(f"keyframe pair {(a, b)} outside 0..{n_keyframes - 1}")


def build_selection_graph(points, n_keyframes):
    """Build the flow network for ``points`` over ``n_keyframes`` covisible keyframes."""
    points = list(points)
    if n_keyframes < 0:
        raise ValueError("number of keyframes must not be negative")
    for point in points:
        _check_pairs(point, n_keyframes)

    max_visibility = max((p.observations for p in points), default=0)
    n_pairs = n_keyframes * (n_keyframes - 1) // 2
    n_points = len(points)
    graph = FlowGraph(n_points, n_pairs)

    for i, point in enumerate(points):
        visibility = point_visibility(point.observations, max_visibility)
        graph.add_edge(0, i + 1, point.found // 2 + 1, _as_cost(visibility))
        for pair in combinations(range(n_keyframes), 2):
            diversity = point.diversity.get(pair, 0)
            if diversity == 0:
                continue
            keyframe_vertex = n_points + pair[0] + 1
            graph.add_edge(i + 1, keyframe_vertex, 1, _as_cost(diversity))
            try:
                baseline = point.baselines[pair]
            except KeyError:
                raise ValueError(f"no baseline given for keyframe pair {pair}") from None
            graph.add_edge(keyframe_vertex, graph.sink, 1,
                           _as_cost(baseline + point.depth_penalty))
    return graph


def select_local_map(points, n_keyframes, flow_limit=_DEFAULT_FLOW_LIMIT):
    """Solve the selection network and return the chosen points and keyframes."""
    points = list(points)
    graph = build_selection_graph(points, n_keyframes)
    flow, cost = graph.min_cost_max_flow(0, graph.sink, flow_limit)

    n_points = len(points)
    chosen_points = {}
    chosen_keyframes = set()
    for vertex in graph.selected:
        if vertex == 0 or vertex == graph.sink:
            continue
        if vertex <= n_points:
            chosen_points[vertex - 1] = None
        else:
            keyframe = vertex - n_points - 1
            if 0 <= keyframe < n_keyframes:
                chosen_keyframes.add(keyframe)
    return Selection(
        map_points=list(chosen_points),
        keyframes=sorted(chosen_keyframes),
        flow=flow,
        cost=cost,
    )