# -*- coding: utf-8 -*-

"""
Social-graph statistics over a weighted directed edge list.

Edges below the minimum value are dropped; the rest form a networkx DiGraph.
Longest path (in edges) comes from dynamic programming over a Kahn
topological order. If the order does not reach every node the graph has a
cycle and the depth is reported as undefined (None); node, edge and
out-degree counts are still returned.
"""

import logging
from collections import deque
from typing import NamedTuple

import networkx as nx
import pandas as pd

logger = logging.getLogger(__name__)


class PathResult(NamedTuple):
    order: list                 # topological order reached by Kahn's algorithm
    distances: dict | None      # node -> longest incoming path length; None on a cycle
    has_cycle: bool


class NetworkSummary(NamedTuple):
    node_count: int
    edge_count: int
    max_out_degree: int
    longest_path: int | None
    has_cycle: bool


def build_graph(edges: pd.DataFrame, min_value=1, source: str = "source",
                target: str = "target", value: str = "value") -> nx.DiGraph:
    """DiGraph over edges whose value is at least min_value."""
    if edges.empty:
        return nx.DiGraph()
    kept = edges[pd.to_numeric(edges[value], errors="coerce") >= min_value]
    kept = kept.dropna(subset=[source, target])
    if kept.empty:
        return nx.DiGraph()
    return nx.from_pandas_edgelist(
        kept, source=source, target=target,
        edge_attr=[value],
        create_using=nx.DiGraph(),
    )


def longest_paths(graph: nx.DiGraph) -> PathResult:
    """Kahn's algorithm; each node's distance = max(predecessor distance) + 1."""
    in_degree = dict(graph.in_degree())
    queue = deque(node for node, deg in in_degree.items() if deg == 0)
    distances = {node: 0 for node in queue}
    order = []

    while queue:
        node = queue.popleft()
        order.append(node)
        for succ in graph.successors(node):
            distances[succ] = max(distances.get(succ, 0), distances[node] + 1)
            in_degree[succ] -= 1
            if in_degree[succ] == 0:
                queue.append(succ)

    if len(order) < graph.number_of_nodes():
        return PathResult(order=order, distances=None, has_cycle=True)
    return PathResult(order=order, distances=distances, has_cycle=False)


def analyze_network(edges: pd.DataFrame, min_value=1, source: str = "source",
                    target: str = "target", value: str = "value") -> NetworkSummary:
    """Node/edge/out-degree counts and DAG depth for a weighted edge list."""
    graph = build_graph(edges, min_value=min_value, source=source, target=target, value=value)
    result = longest_paths(graph)
    if result.has_cycle:
        logger.info(f"Cycle detected among {graph.number_of_nodes():,} nodes; longest path undefined")
        longest = None
    else:
        longest = max(result.distances.values(), default=0)

    return NetworkSummary(
        node_count=graph.number_of_nodes(),
        edge_count=graph.number_of_edges(),
        max_out_degree=max((deg for _, deg in graph.out_degree()), default=0),
        longest_path=longest,
        has_cycle=result.has_cycle,
    )
