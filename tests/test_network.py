"""Tests for the social-graph statistics (Kahn longest path, cycle marker)."""

import pandas as pd

from referral_analytics.network import analyze_network, build_graph, longest_paths


def _edges(*triples):
    return pd.DataFrame(list(triples), columns=["source", "target", "value"])


def test_chain_longest_path():
    summary = analyze_network(_edges(("A", "B", 1), ("B", "C", 1)))
    assert summary.node_count == 3
    assert summary.edge_count == 2
    assert summary.max_out_degree == 1
    assert summary.longest_path == 2
    assert summary.has_cycle is False


def test_cycle_makes_path_undefined():
    summary = analyze_network(_edges(("A", "B", 1), ("B", "C", 1), ("C", "A", 1)))
    assert summary.longest_path is None
    assert summary.has_cycle is True
    assert summary.node_count == 3
    assert summary.edge_count == 3


def test_threshold_filters_edges_but_weight_not_length():
    edges = _edges(("A", "B", 5), ("B", "C", 1), ("A", "D", 9))
    summary = analyze_network(edges, min_value=2)
    assert summary.edge_count == 2
    assert summary.node_count == 3
    assert summary.max_out_degree == 2
    assert summary.longest_path == 1


def test_cycle_below_threshold_is_ignored():
    edges = _edges(("A", "B", 3), ("B", "A", 1))
    assert analyze_network(edges, min_value=2).longest_path == 1


def test_distances_follow_topological_order():
    graph = build_graph(_edges(("A", "B", 1), ("A", "C", 1), ("C", "B", 1)))
    result = longest_paths(graph)
    assert result.order[0] == "A"
    assert result.distances == {"A": 0, "C": 1, "B": 2}


def test_empty_edge_list():
    summary = analyze_network(_edges())
    assert summary == (0, 0, 0, 0, False)


def test_custom_columns(dataset):
    edges = dataset.referral.visit_edges
    summary = analyze_network(edges, source="referrer_id", target="user_id")
    assert summary.node_count == 5
    assert summary.edge_count == 3
    assert summary.max_out_degree == 2
    assert summary.longest_path == 1
