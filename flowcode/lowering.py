"""
flowcode: Lowering Engine
=========================
Turns a validated FlowGraph into CodeFragments by dispatching every node to
its converter, in emission order.

Emission order
--------------
Nodes are grouped into strongly connected components (iterative Tarjan).
The component DAG is sorted topologically (Kahn), always releasing the
ready component with the smallest document index first.  A cyclic
component (more than one node, or a self-loop) is emitted in document
order and its members are recorded as fallback nodes.

Identifiers
-----------
Every node gets one identifier derived from its id (see
targets.safe_identifier), de-duplicated with numeric suffixes in document
order.  Names the generated module already uses (targets.reserved_names)
get a suffix too.  If a converter imports a symbol that equals a node
identifier, that identifier is reserved and the graph is lowered again.
A node's secondary outputs are addressed as `<identifier>_<anchor>`.

Bindings
--------
For each node, input anchor name → identifiers of the connected source
outputs, ordered by the sources' document position.  Sources without a
converter produce no code, so references to them are dropped with a
warning.

Public API
----------
    strongly_connected_components(graph) → list of node-id lists
    emission_order(graph)                → (order, fallback node ids)
    assign_identifiers(graph, python, reserved) → {node id: identifier}
    lower(graph, registry, context, report, max_workers=None) → LoweringResult
"""

from __future__ import annotations

import heapq
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from logging import getLogger
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .analyzer import adjacency
from .context import GenerationContext, NodeBinding
from .errors import ConversionError
from .fragments import CodeFragment
from .ir import FlowGraph, IRNode
from .registry import ConverterRegistry
from .report import ConversionReport, Finding, FindingKind, Severity
from .targets import bound_names, output_identifier, reserved_names, safe_identifier

logger = getLogger(__name__)


# ── Result ───────────────────────────────────────────────────────────────────

@dataclass
class LoweringResult:
    fragments: List[CodeFragment]   = field(default_factory=list)
    # packages reported by converter dependencies(), in first-seen order
    packages: List[str]             = field(default_factory=list)
    order: List[str]                = field(default_factory=list)
    identifiers: Dict[str, str]     = field(default_factory=dict)


@dataclass
class _NodeOutcome:
    fragments: List[CodeFragment] = field(default_factory=list)
    packages: List[str]           = field(default_factory=list)
    findings: List[Finding]       = field(default_factory=list)


# ── Emission order ───────────────────────────────────────────────────────────

def strongly_connected_components(graph: FlowGraph) -> List[List[str]]:
    """Tarjan's algorithm without recursion; components in discovery order."""
    adj = adjacency(graph)
    index: Dict[str, int]   = {}
    low: Dict[str, int]     = {}
    on_stack: Set[str]      = set()
    stack: List[str]        = []
    components: List[List[str]] = []
    counter = 0

    for root in graph.nodes:
        if root in index:
            continue
        work: List[Tuple[str, int]] = [(root, 0)]
        while work:
            node_id, child = work.pop()
            if child == 0:
                index[node_id] = low[node_id] = counter
                counter += 1
                stack.append(node_id)
                on_stack.add(node_id)

            neighbours = adj.get(node_id, [])
            descended = False
            while child < len(neighbours):
                nxt = neighbours[child]
                child += 1
                if nxt not in index:
                    work.append((node_id, child))
                    work.append((nxt, 0))
                    descended = True
                    break
                if nxt in on_stack:
                    low[node_id] = min(low[node_id], index[nxt])
            if descended:
                continue

            if low[node_id] == index[node_id]:
                component: List[str] = []
                while True:
                    member = stack.pop()
                    on_stack.discard(member)
                    component.append(member)
                    if member == node_id:
                        break
                components.append(component)

            if work:
                parent = work[-1][0]
                low[parent] = min(low[parent], low[node_id])
    return components


def emission_order(graph: FlowGraph) -> Tuple[List[str], List[str]]:
    """
    Topological order over the component DAG.

    Returns (order, fallback) where fallback lists the members of cyclic
    components in document order.
    """
    adj = adjacency(graph)
    components = [sorted(c, key=graph.index_of) for c in strongly_connected_components(graph)]
    owner = {nid: i for i, comp in enumerate(components) for nid in comp}

    successors: Dict[int, Set[int]] = {i: set() for i in range(len(components))}
    indegree = [0] * len(components)
    for src, targets in adj.items():
        for dst in targets:
            a, b = owner[src], owner[dst]
            if a != b and b not in successors[a]:
                successors[a].add(b)
                indegree[b] += 1

    def key(i: int) -> int:
        return graph.index_of(components[i][0])

    ready = [(key(i), i) for i, deg in enumerate(indegree) if deg == 0]
    heapq.heapify(ready)
    order: List[str] = []
    fallback: List[str] = []
    while ready:
        _, i = heapq.heappop(ready)
        comp = components[i]
        order.extend(comp)
        if len(comp) > 1 or comp[0] in adj.get(comp[0], []):
            fallback.extend(comp)
        for j in successors[i]:
            indegree[j] -= 1
            if indegree[j] == 0:
                heapq.heappush(ready, (key(j), j))

    fallback.sort(key=graph.index_of)
    return order, fallback


# ── Identifiers and bindings ─────────────────────────────────────────────────

def assign_identifiers(
    graph: FlowGraph,
    python: bool = False,
    reserved: Iterable[str] = (),
) -> Dict[str, str]:
    """
    One identifier per node, in document order.  Names the generated module
    already uses (dialect globals, generated locals, `reserved`) are skipped
    the same way as duplicates.
    """
    taken: Set[str] = set(reserved_names(python)) | set(reserved)
    used: Set[str] = set()
    out: Dict[str, str] = {}
    for node_id in graph.nodes:
        base = safe_identifier(node_id, python=python)
        name, n = base, 2
        while name in used or name in taken:
            name = f"{base}_{n}"
            n += 1
        used.add(name)
        out[node_id] = name
    return out


def import_collisions(identifiers: Dict[str, str], fragments: Sequence[CodeFragment], python: bool = False) -> Set[str]:
    """Node identifiers that an imported symbol would shadow or be shadowed by."""
    imported = bound_names(
        (spec for frag in fragments if frag.is_import for spec in frag.import_specs),
        python=python,
    )
    return imported & set(identifiers.values())


def _source_reference(source: IRNode, ident: str, anchor_id: str, python: bool) -> str:
    anchor = source.output_anchor(anchor_id)
    if anchor is None:
        return ident
    return output_identifier(ident, [a.name for a in source.outputs], anchor.name, python=python)


def build_bindings(
    graph: FlowGraph,
    identifiers: Dict[str, str],
    registry: ConverterRegistry,
    python: bool = False,
) -> Tuple[Dict[str, NodeBinding], List[Finding]]:
    bindings: Dict[str, NodeBinding] = {}
    findings: List[Finding] = []
    for node in graph.nodes.values():
        wired: Dict[str, List[Tuple[int, str, IRNode]]] = {}
        for edge in graph.get_all_incoming(node.id):
            source = graph.get_node(edge.source_node_id)
            if source is None:
                continue
            anchor = node.input_anchor(edge.target_anchor_id)
            name = anchor.name if anchor is not None else edge.target_anchor_id
            if not registry.has_converter(source.type):
                findings.append(Finding(
                    FindingKind.LOWERING,
                    Severity.WARNING,
                    f"input '{name}' dropped: source '{source.id}' ({source.type}) has no converter",
                    node_id=node.id,
                    edge_id=edge.id,
                ))
                continue
            ref = _source_reference(source, identifiers[source.id], edge.source_anchor_id, python)
            wired.setdefault(name, []).append((graph.index_of(source.id), ref, source))

        inputs: Dict[str, Tuple[str, ...]] = {}
        sources: Dict[str, Tuple[IRNode, ...]] = {}
        for name, refs in wired.items():
            refs.sort(key=lambda r: r[0])
            inputs[name] = tuple(ref for _, ref, _ in refs)
            sources[name] = tuple(src for _, _, src in refs)
        bindings[node.id] = NodeBinding(node.id, identifiers[node.id], inputs, sources)
    return bindings, findings


# ── Per-node lowering ────────────────────────────────────────────────────────

def _lower_node(
    node: IRNode,
    registry: ConverterRegistry,
    context: GenerationContext,
    emission_index: int,
) -> _NodeOutcome:
    outcome = _NodeOutcome()
    converter = registry.lookup(node.type)
    if converter is None:
        return outcome

    def fail(message: str) -> _NodeOutcome:
        logger.warning("lowering %s (%s) failed: %s", node.id, node.type, message)
        outcome.findings.append(Finding(
            FindingKind.LOWERING, Severity.ERROR, message, node_id=node.id, node_type=node.type,
        ))
        return outcome

    try:
        if not converter.can_convert(node):
            return fail(f"converter for '{node.type}' refused the node")
        fragments = converter.convert(node, context)
        packages  = converter.dependencies(node, context)
    except ConversionError as exc:
        return fail(str(exc))
    except Exception as exc:
        return fail(f"{type(exc).__name__}: {exc}")

    if not isinstance(fragments, (list, tuple)) or not all(isinstance(f, CodeFragment) for f in fragments):
        return fail(f"converter for '{node.type}' did not return code fragments")

    outcome.fragments = [replace(f, emission_index=emission_index) for f in fragments]
    outcome.packages  = [str(p) for p in packages or ()]
    return outcome


def _lower_nodes(
    graph: FlowGraph,
    registry: ConverterRegistry,
    context: GenerationContext,
    order: Sequence[str],
    bindings: Dict[str, NodeBinding],
    max_workers: Optional[int],
) -> List[_NodeOutcome]:
    jobs = [
        (graph.nodes[nid], context.for_node(bindings[nid]), i)
        for i, nid in enumerate(order)
    ]
    if max_workers and max_workers > 1 and len(jobs) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            return list(pool.map(lambda job: _lower_node(job[0], registry, job[1], job[2]), jobs))
    return [_lower_node(node, registry, ctx, i) for node, ctx, i in jobs]


def ordering_findings(graph: FlowGraph, fragments: Sequence[CodeFragment]) -> List[Finding]:
    """Edges whose source is emitted in a later priority bucket than its target."""
    earliest: Dict[str, int] = {}
    for frag in fragments:
        if frag.is_import or frag.source_node_id is None:
            continue
        current = earliest.get(frag.source_node_id)
        if current is None or frag.priority < current:
            earliest[frag.source_node_id] = frag.priority

    findings: List[Finding] = []
    for edge in graph.resolvable_edges():
        src = earliest.get(edge.source_node_id)
        dst = earliest.get(edge.target_node_id)
        if src is not None and dst is not None and src > dst:
            findings.append(Finding(
                FindingKind.ORDERING,
                Severity.WARNING,
                f"'{edge.source_node_id}' (priority {src}) is emitted after "
                f"its consumer '{edge.target_node_id}' (priority {dst})",
                node_id=edge.target_node_id,
                edge_id=edge.id,
            ))
    return findings


def lower(
    graph: FlowGraph,
    registry: ConverterRegistry,
    context: GenerationContext,
    report: ConversionReport,
    max_workers: Optional[int] = None,
) -> LoweringResult:
    """
    Lower every supported node.  Findings are appended to `report`; output
    is the same whether or not a thread pool is used.
    """
    order, fallback = emission_order(graph)
    report.emission_order = list(order)
    report.fallback_nodes = list(fallback)
    if fallback:
        report.add(Finding(
            FindingKind.ORDERING,
            Severity.WARNING,
            f"no topological order for {', '.join(fallback)}; emitted in document order",
            node_id=fallback[0],
        ))

    python = context.is_python
    reserved: Set[str] = set()
    while True:
        identifiers = assign_identifiers(graph, python=python, reserved=reserved)
        bindings, binding_findings = build_bindings(graph, identifiers, registry, python=python)
        outcomes = _lower_nodes(graph, registry, context, order, bindings, max_workers)
        clashes = import_collisions(
            identifiers, [f for outcome in outcomes for f in outcome.fragments], python=python,
        )
        if not clashes:
            break
        # imported symbols win; the clashing nodes are renamed and lowered again
        logger.debug("identifiers shadowed by imports: %s", ", ".join(sorted(clashes)))
        reserved |= clashes

    report.extend(binding_findings)
    result = LoweringResult(order=order, identifiers=identifiers)
    for outcome in outcomes:
        result.fragments.extend(outcome.fragments)
        report.extend(outcome.findings)
        for pkg in outcome.packages:
            if pkg not in result.packages:
                result.packages.append(pkg)

    report.extend(ordering_findings(graph, result.fragments))
    logger.debug(
        "lowered %d node(s) into %d fragment(s)", len(order), len(result.fragments)
    )
    return result


__all__ = [
    "LoweringResult",
    "assign_identifiers",
    "build_bindings",
    "emission_order",
    "import_collisions",
    "lower",
    "ordering_findings",
    "strongly_connected_components",
]
