import pytest

from slamkit.flow import Edge, FlowGraph


def _add(graph, source, target, capacity, cost):
    position = len(graph.adjacency[source])
    graph.add_edge(source, target, capacity, cost)
    return source, position


def _flow_on(graph, handle):
    source, position = handle
    edge = graph.adjacency[source][position]
    return graph.adjacency[edge.to][edge.rev].capacity


def test_graph_size_includes_source_and_sink():
    graph = FlowGraph(3, 4)
    assert len(graph) == 3 + 4 + 2
    assert graph.sink == len(graph) - 1


def test_add_edge_creates_reverse_twin():
    graph = FlowGraph(1, 0)
    graph.add_edge(0, 1, 5, 7)
    forward = graph.adjacency[0][0]
    backward = graph.adjacency[1][forward.rev]
    assert forward == Edge(1, 5, 7, 0)
    assert backward.to == 0
    assert backward.capacity == 0
    assert backward.cost == -7
    assert graph.adjacency[0][backward.rev] is forward


def test_add_edge_rejects_unknown_vertex():
    graph = FlowGraph(1, 1)
    with pytest.raises(IndexError):
        graph.add_edge(0, 10, 1, 1)


def test_add_edge_rejects_negative_capacity():
    graph = FlowGraph(1, 1)
    with pytest.raises(ValueError):
        graph.add_edge(0, 1, -1, 1)


def test_single_edge_flow():
    graph = FlowGraph(0, 0)
    graph.add_edge(0, 1, 5, 1)
    assert graph.min_cost_max_flow(0, 1) == (5, 5)
    assert graph.adjacency[0][0].capacity == 0


def test_unreachable_sink_gives_no_flow():
    graph = FlowGraph(2, 0)
    graph.add_edge(0, 1, 3, 2)
    assert graph.min_cost_max_flow(0, graph.sink) == (0, 0)
    assert graph.selected == []


def test_prefers_cheaper_path_under_limit():
    graph = FlowGraph(2, 0)
    sink = graph.sink
    graph.add_edge(0, 1, 1, 5)
    graph.add_edge(1, sink, 1, 0)
    graph.add_edge(0, 2, 1, 2)
    graph.add_edge(2, sink, 1, 0)
    assert graph.min_cost_max_flow(0, sink, 1) == (1, 2)
    assert graph.selected == [sink, 2]


def test_flow_limit_is_respected():
    graph = FlowGraph(1, 0)
    graph.add_edge(0, 1, 10, 1)
    graph.add_edge(1, graph.sink, 10, 1)
    flow, cost = graph.min_cost_max_flow(0, graph.sink, 4)
    assert flow == 4
    assert cost == flow * 2


def test_conservation_and_capacity_invariants():
    graph = FlowGraph(3, 2)
    sink = graph.sink
    handles = [
        _add(graph, 0, 1, 2, 1),
        _add(graph, 0, 2, 3, 2),
        _add(graph, 0, 3, 1, 0),
        _add(graph, 1, 4, 1, 3),
        _add(graph, 1, 5, 1, 1),
        _add(graph, 2, 4, 2, 1),
        _add(graph, 3, 5, 1, 4),
        _add(graph, 4, sink, 2, 1),
        _add(graph, 5, sink, 2, 2),
    ]
    flow, cost = graph.min_cost_max_flow(0, sink)

    for edges in graph.adjacency:
        assert all(edge.capacity >= 0 for edge in edges)

    flows = {handle: _flow_on(graph, handle) for handle in handles}
    out_of_source = sum(f for (u, _), f in flows.items() if u == 0)
    into_sink = sum(f for (u, p), f in flows.items() if graph.adjacency[u][p].to == sink)
    assert out_of_source == flow == into_sink
    assert flow <= 4

    for vertex in range(1, sink):
        inflow = sum(f for (u, p), f in flows.items() if graph.adjacency[u][p].to == vertex)
        outflow = sum(f for (u, _), f in flows.items() if u == vertex)
        assert inflow == outflow

    total = sum(f * graph.adjacency[u][p].cost for (u, p), f in flows.items())
    assert total == cost


def test_selected_paths_end_before_source():
    graph = FlowGraph(1, 1)
    sink = graph.sink
    graph.add_edge(0, 1, 1, 1)
    graph.add_edge(1, 2, 1, 1)
    graph.add_edge(2, sink, 1, 1)
    graph.min_cost_max_flow(0, sink)
    assert graph.selected == [sink, 2, 1]


def test_same_source_and_sink_rejected():
    graph = FlowGraph(1, 1)
    with pytest.raises(ValueError):
        graph.min_cost_max_flow(0, 0)