"""Workspace dependency graph, cycle detection and stage planning.

Edges point from a dependency to its dependent (``a -> b`` means *b*
declares *a*), so a traversal from the sources yields build order.
"""

from __future__ import annotations

from collections.abc import Iterable

import networkx as nx
import structlog

from monox.workspace.models import Package

log = structlog.get_logger("monox.graph")


def link_workspace_dependencies(packages: list[Package]) -> None:
    """Set each package's ``workspace_dependencies`` to its in-workspace deps."""
    names = {p.name for p in packages}
    for package in packages:
        package.workspace_dependencies = set(package.dependencies) & names


def build_graph(packages: list[Package]) -> tuple[nx.DiGraph, dict[str, Package]]:
    """Build the dependency graph; returns ``(graph, name -> package)``."""
    link_workspace_dependencies(packages)
    node_index = {p.name: p for p in packages}

    graph = nx.DiGraph()
    graph.add_nodes_from(node_index)
    for package in packages:
        for dep in package.workspace_dependencies:
            graph.add_edge(dep, package.name)
    return graph, node_index


def detect_cycles(graph: nx.DiGraph) -> list[list[str]]:
    """Strongly connected components with two or more members, sorted."""
    cycles = [sorted(scc) for scc in nx.strongly_connected_components(graph) if len(scc) > 1]
    return sorted(cycles)


def self_dependencies(graph: nx.DiGraph) -> list[str]:
    """Packages that list themselves as a dependency."""
    return sorted(u for u, _ in nx.selfloop_edges(graph))


def plan_stages(packages: Iterable[Package]) -> list[list[Package]]:
    """Group *packages* into build stages.

    Each stage holds the unplaced packages whose workspace dependencies are
    all placed already (dependencies outside *packages* count as placed).
    Stages are sorted by name. Returns ``[]`` if a pass places nothing,
    which only happens when the packages contain a cycle.
    """
    by_name = {p.name: p for p in packages}
    unplaced = set(by_name)
    stages: list[list[Package]] = []

    while unplaced:
        ready = sorted(
            name
            for name in unplaced
            if all(
                dep == name or dep not in unplaced
                for dep in by_name[name].workspace_dependencies
            )
        )
        if not ready:
            log.warning("graph.unplaceable_packages", remaining=sorted(unplaced))
            return []
        unplaced.difference_update(ready)
        stages.append([by_name[name] for name in ready])

    return stages


def dependency_closure(graph: nx.DiGraph, targets: Iterable[str]) -> set[str]:
    """*targets* plus everything they transitively depend on."""
    closure: set[str] = set()
    for target in targets:
        closure.add(target)
        closure |= nx.ancestors(graph, target)
    return closure


def restrict_stages(stages: list[list[Package]], names: set[str]) -> list[list[Package]]:
    """Keep only packages in *names*; stages left empty are dropped."""
    restricted = [[p for p in stage if p.name in names] for stage in stages]
    return [stage for stage in restricted if stage]
