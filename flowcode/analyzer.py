"""
flowcode: Graph Analyzer
========================
Static analysis over a FlowGraph.  Every check returns findings instead of
raising so that one pass can explain everything wrong with a flow.

Public API
----------
    validate_structure(graph)              → ConversionReport   (fatal findings)
    detect_cycles(graph)                   → list of node-id paths, e.g. [A, B, A]
    resolve_converters(graph, registry)    → (Coverage, unsupported types)
    check_required_inputs(graph, registry) → list[Finding]      (fatal findings)
    check_versions(graph, registry)        → list[Finding]
    classify_complexity(graph)             → Complexity
    graph_stats(graph)                     → GraphStats
    analyze(graph, registry)               → ConversionReport   (all of the above)
"""

from __future__ import annotations

from collections import deque
from logging import getLogger
from typing import Dict, Iterator, List, Optional, Set, Tuple

from .ir import Edge, FlowGraph, IRNode
from .registry import ConverterRegistry, version_supported
from .report import (
    Complexity,
    ConversionReport,
    Coverage,
    Finding,
    FindingKind,
    GraphStats,
    Severity,
)

logger = getLogger(__name__)


def _structural(message: str, node_id: Optional[str] = None, edge_id: Optional[str] = None) -> Finding:
    return Finding(FindingKind.STRUCTURAL, Severity.ERROR, message, node_id=node_id, edge_id=edge_id)


# ── Structure ────────────────────────────────────────────────────────────────

def _check_endpoint(
    graph: FlowGraph,
    edge: Edge,
    node_id: str,
    anchor_id: str,
    end: str,
) -> List[Finding]:
    """Validate one end of an edge.  end is "source" or "target"."""
    node = graph.get_node(node_id)
    if node is None:
        return [_structural(f"{end} node '{node_id}' does not exist", edge_id=edge.id)]

    if end == "source":
        wanted, other = node.output_anchor(anchor_id), node.input_anchor(anchor_id)
        wrong = "input"
    else:
        wanted, other = node.input_anchor(anchor_id), node.output_anchor(anchor_id)
        wrong = "output"

    if wanted is not None:
        return []
    if other is not None:
        return [_structural(
            f"{end} anchor '{anchor_id}' on node '{node_id}' is an {wrong} anchor",
            edge_id=edge.id,
        )]
    return [_structural(
        f"{end} anchor '{anchor_id}' is not declared on node '{node_id}'",
        edge_id=edge.id,
    )]


def validate_structure(graph: FlowGraph) -> ConversionReport:
    """
    Check duplicate ids, edge endpoint resolution, anchor direction and arity.

    Every finding is fatal: a graph failing here is never lowered.
    """
    report = ConversionReport()

    for node_id in graph.duplicate_node_ids:
        report.add(_structural(f"duplicate node id '{node_id}'", node_id=node_id))

    for edge in graph.edges:
        report.extend(_check_endpoint(graph, edge, edge.source_node_id, edge.source_anchor_id, "source"))
        report.extend(_check_endpoint(graph, edge, edge.target_node_id, edge.target_anchor_id, "target"))

    for node in graph.nodes.values():
        for anchor in node.inputs:
            if anchor.list:
                continue
            incoming = graph.get_incoming(node.id, anchor.id)
            if len(incoming) > 1:
                report.add(_structural(
                    f"input '{anchor.name}' accepts one connection but has {len(incoming)} "
                    f"({', '.join(e.id for e in incoming)})",
                    node_id=node.id,
                ))

    if report.findings:
        logger.info("structural validation failed with %d error(s)", len(report.findings))
    return report


# ── Cycles ───────────────────────────────────────────────────────────────────

def adjacency(graph: FlowGraph) -> Dict[str, List[str]]:
    """source → targets over resolvable edges, de-duplicated, in edge order."""
    adj: Dict[str, List[str]] = {nid: [] for nid in graph.nodes}
    for edge in graph.resolvable_edges():
        targets = adj[edge.source_node_id]
        if edge.target_node_id not in targets:
            targets.append(edge.target_node_id)
    return adj


_WHITE, _GREY, _BLACK = 0, 1, 2


def detect_cycles(graph: FlowGraph) -> List[List[str]]:
    """
    Find directed cycles with an iterative three-colour DFS.

    Roots are visited in document order.  Each back edge yields one cycle:
    the path from the repeated node back to itself, e.g. [A, B, A].
    Identical paths are reported once.
    """
    adj    = adjacency(graph)
    colour = {nid: _WHITE for nid in adj}
    cycles: List[List[str]]   = []
    seen: Set[Tuple[str, ...]] = set()

    for root in adj:
        if colour[root] != _WHITE:
            continue
        colour[root] = _GREY
        path: List[str] = [root]
        stack: List[Tuple[str, Iterator[str]]] = [(root, iter(adj[root]))]

        while stack:
            node_id, children = stack[-1]
            child = next(children, None)
            if child is None:
                colour[node_id] = _BLACK
                stack.pop()
                path.pop()
                continue
            if colour[child] == _WHITE:
                colour[child] = _GREY
                path.append(child)
                stack.append((child, iter(adj[child])))
            elif colour[child] == _GREY:
                cycle = path[path.index(child):] + [child]
                key = tuple(cycle)
                if key not in seen:
                    seen.add(key)
                    cycles.append(cycle)

    return cycles


def cycle_findings(cycles: List[List[str]]) -> List[Finding]:
    return [
        Finding(
            FindingKind.CYCLE,
            Severity.WARNING,
            f"cycle detected: {' -> '.join(cycle)}; members are emitted in document order",
            node_id=cycle[0],
        )
        for cycle in cycles
    ]


# ── Converter coverage ───────────────────────────────────────────────────────

def resolve_converters(
    graph: FlowGraph,
    registry: ConverterRegistry,
) -> Tuple[Coverage, List[str]]:
    """Split node types into supported and unsupported, in document order."""
    coverage = Coverage(total_nodes=graph.node_count)
    for node in graph.nodes.values():
        if registry.has_converter(node.type):
            coverage.supported_nodes += 1
            if node.type not in coverage.supported_types:
                coverage.supported_types.append(node.type)
        elif node.type not in coverage.unsupported_types:
            coverage.unsupported_types.append(node.type)
    return coverage, list(coverage.unsupported_types)


def coverage_findings(graph: FlowGraph, unsupported: List[str]) -> List[Finding]:
    """One warning per distinct unsupported type, naming the affected nodes."""
    findings: List[Finding] = []
    for node_type in unsupported:
        ids = [n.id for n in graph.nodes.values() if n.type == node_type]
        findings.append(Finding(
            FindingKind.COVERAGE,
            Severity.WARNING,
            f"no converter registered for node type '{node_type}' "
            f"(skipped: {', '.join(ids)})",
            node_id=ids[0] if ids else None,
            node_type=node_type,
        ))
    return findings


# ── Required inputs ──────────────────────────────────────────────────────────

def check_required_inputs(graph: FlowGraph, registry: ConverterRegistry) -> List[Finding]:
    findings: List[Finding] = []
    for node in graph.nodes.values():
        if not registry.has_converter(node.type):
            continue
        for anchor in node.inputs:
            if anchor.required and not graph.get_incoming(node.id, anchor.id):
                findings.append(Finding(
                    FindingKind.MISSING_INPUT,
                    Severity.ERROR,
                    f"required input '{anchor.name}' is not connected",
                    node_id=node.id,
                    node_type=node.type,
                ))
    return findings


# ── Versions / deprecation ───────────────────────────────────────────────────

def check_versions(graph: FlowGraph, registry: ConverterRegistry) -> List[Finding]:
    findings: List[Finding]   = []
    deprecated_seen: Set[str] = set()

    for node in graph.nodes.values():
        conv = registry.lookup(node.type)
        if conv is None:
            continue

        if conv.is_deprecated() and node.type not in deprecated_seen:
            deprecated_seen.add(node.type)
            replacement = conv.replacement_type()
            hint = f"; use '{replacement}' instead" if replacement else ""
            findings.append(Finding(
                FindingKind.DEPRECATION,
                Severity.WARNING,
                f"node type '{node.type}' is deprecated{hint}",
                node_id=node.id,
                node_type=node.type,
                replacement=replacement,
            ))

        if not version_supported(conv, node.version):
            findings.append(Finding(
                FindingKind.VERSION,
                Severity.INFO,
                f"version {node.version} is not in the supported list "
                f"{conv.supported_versions()}; converting anyway",
                node_id=node.id,
                node_type=node.type,
            ))
    return findings


# ── Metrics ──────────────────────────────────────────────────────────────────

def classify_complexity(graph: FlowGraph) -> Complexity:
    size = graph.node_count + graph.edge_count
    if size <= 5:
        return Complexity.SIMPLE
    if size <= 15:
        return Complexity.MODERATE
    return Complexity.COMPLEX


def _histogram(values: List[str]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for v in values:
        counts[v] = counts.get(v, 0) + 1
    return counts


def graph_stats(graph: FlowGraph) -> GraphStats:
    adj = adjacency(graph)
    indegree: Dict[str, int] = {nid: 0 for nid in adj}
    for targets in adj.values():
        for t in targets:
            indegree[t] += 1

    entry    = [nid for nid in adj if indegree[nid] == 0]
    exits    = [nid for nid in adj if not adj[nid]]
    isolated = [nid for nid in entry if not adj[nid]]

    # Longest path over the acyclic part; cycle members never reach indegree 0.
    depth: Dict[str, int] = {nid: 0 for nid in entry}
    remaining = dict(indegree)
    queue = deque(entry)
    while queue:
        nid = queue.popleft()
        for t in adj[nid]:
            depth[t] = max(depth.get(t, 0), depth[nid] + 1)
            remaining[t] -= 1
            if remaining[t] == 0:
                queue.append(t)

    return GraphStats(
        node_count=graph.node_count,
        edge_count=graph.edge_count,
        type_counts=_histogram([n.type for n in graph.nodes.values()]),
        category_counts=_histogram([n.category or "uncategorised" for n in graph.nodes.values()]),
        entry_points=entry,
        exit_points=exits,
        isolated=isolated if graph.node_count > 1 else [],
        max_depth=max(depth.values(), default=0),
    )


# ── Full pass ────────────────────────────────────────────────────────────────

def analyze(graph: FlowGraph, registry: ConverterRegistry) -> ConversionReport:
    """Run every check and collect the results into one report."""
    report = validate_structure(graph)

    report.cycles = detect_cycles(graph)
    report.extend(cycle_findings(report.cycles))

    coverage, unsupported = resolve_converters(graph, registry)
    report.coverage = coverage
    report.extend(coverage_findings(graph, unsupported))

    report.extend(check_required_inputs(graph, registry))
    report.extend(check_versions(graph, registry))

    report.complexity = classify_complexity(graph)
    report.stats = graph_stats(graph)
    for node_id in report.stats.isolated:
        report.add(Finding(
            FindingKind.ISOLATED,
            Severity.INFO,
            "node has no connections",
            node_id=node_id,
        ))

    logger.info(
        "analysed %r: %d nodes, %d edges, coverage %.0f%%, %d finding(s)",
        graph.name, graph.node_count, graph.edge_count,
        coverage.ratio * 100, len(report.findings),
    )
    return report


__all__ = [
    "adjacency",
    "analyze",
    "check_required_inputs",
    "check_versions",
    "classify_complexity",
    "coverage_findings",
    "cycle_findings",
    "detect_cycles",
    "graph_stats",
    "resolve_converters",
    "validate_structure",
]
