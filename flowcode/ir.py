"""
flowcode: Intermediate Representation
=====================================
FlowGraph is an immutable structural snapshot of a visual flow document.

It is the data model shared between every phase of the compiler:

    flow document  →  [build_graph]  →  FlowGraph
                                            ↓
                                      [analyzer]  →  ConversionReport
                                            ↓
                                      [lowering]  →  CodeFragment list
                                            ↓
                                      [emitter]   →  source text + packages

Design goals:
  - No knowledge of converters or target languages.
  - Construction never fails: odd documents are represented faithfully so
    that the analyzer can explain what is wrong with them.
  - Document node order is preserved; it is the tie-break for every later
    deterministic sort.

Two document shapes are understood by build_graph():

  canonical
      node  {id, type, category, label, version, position,
             parameters: [{name, value, type}] | {name: value},
             inputs: [anchor], outputs: [anchor]}
      anchor {id, name, type, required, list}
      edge  {id, source, sourceHandle, target, targetHandle}

  Flowise export
      node  {id, position, data: {name, label, category, version,
             inputParams, inputAnchors, outputAnchors, inputs}}
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from logging import getLogger
from typing import Any, Dict, Iterable, List, Optional, Tuple

logger = getLogger(__name__)


# ── Parameters ───────────────────────────────────────────────────────────────

class ParamStatus(Enum):
    PRESENT   = "present"
    DEFAULTED = "defaulted"
    MISSING   = "missing"


_TRUTHY = frozenset({"true", "1", "yes", "on"})


@dataclass(frozen=True)
class ParamValue:
    """Result of IRNode.param(): a value plus how it was obtained."""
    status: ParamStatus
    value: Any = None

    @property
    def present(self) -> bool:
        return self.status is ParamStatus.PRESENT

    @property
    def missing(self) -> bool:
        return self.status is ParamStatus.MISSING

    def as_str(self, fallback: str = "") -> str:
        if self.value is None:
            return fallback
        return str(self.value)

    def as_int(self, fallback: int = 0) -> int:
        if isinstance(self.value, bool):
            return int(self.value)
        try:
            return int(float(self.value))
        except (TypeError, ValueError):
            return fallback

    def as_float(self, fallback: float = 0.0) -> float:
        if isinstance(self.value, bool):
            return float(self.value)
        try:
            return float(self.value)
        except (TypeError, ValueError):
            return fallback

    def as_bool(self, fallback: bool = False) -> bool:
        if self.value is None:
            return fallback
        if isinstance(self.value, bool):
            return self.value
        if isinstance(self.value, (int, float)):
            return self.value != 0
        return str(self.value).strip().lower() in _TRUTHY

    def as_list(self) -> List[Any]:
        if self.value is None:
            return []
        if isinstance(self.value, (list, tuple)):
            return list(self.value)
        if isinstance(self.value, str):
            return [part.strip() for part in self.value.split(",") if part.strip()]
        return [self.value]


_NO_DEFAULT = object()


@dataclass(frozen=True)
class Parameter:
    name: str
    value: Any           = None
    declared_type: str   = "string"


# ── Anchor ───────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Anchor:
    id: str
    name: str
    data_type: str   = "any"     # type name or "A | B" union, a hint only
    required: bool   = False     # meaningful on inputs only
    list: bool       = False     # accepts more than one incoming edge

    @property
    def types(self) -> Tuple[str, ...]:
        return tuple(t.strip() for t in self.data_type.split("|") if t.strip())


# ── Node ─────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class IRNode:
    id: str
    type: str
    category: str                    = ""
    label: str                       = ""
    parameters: Tuple[Parameter, ...] = ()
    inputs: Tuple[Anchor, ...]        = ()
    outputs: Tuple[Anchor, ...]       = ()
    version: Optional[str]            = None

    # Carried for round-tripping only; code generation never reads it.
    position: Optional[Tuple[float, float]] = field(default=None, compare=False)

    def param(self, name: str, default: Any = _NO_DEFAULT) -> ParamValue:
        """
        Look up a parameter by name.

        None and "" count as absent.  An absent parameter resolves to
        DEFAULTED when a default is supplied, otherwise MISSING.
        """
        for p in self.parameters:
            if p.name == name and p.value is not None and p.value != "":
                return ParamValue(ParamStatus.PRESENT, p.value)
        if default is _NO_DEFAULT:
            return ParamValue(ParamStatus.MISSING)
        return ParamValue(ParamStatus.DEFAULTED, default)

    def param_names(self) -> List[str]:
        return [p.name for p in self.parameters]

    def input_anchor(self, anchor_id: str) -> Optional[Anchor]:
        for a in self.inputs:
            if a.id == anchor_id:
                return a
        return None

    def output_anchor(self, anchor_id: str) -> Optional[Anchor]:
        for a in self.outputs:
            if a.id == anchor_id:
                return a
        return None

    def input_named(self, name: str) -> Optional[Anchor]:
        for a in self.inputs:
            if a.name == name:
                return a
        return None


# ── Edge ─────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Edge:
    id: str
    source_node_id: str
    source_anchor_id: str
    target_node_id: str
    target_anchor_id: str


# ── Graph ────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class FlowGraph:
    name: str
    nodes: Dict[str, IRNode]            = field(default_factory=dict)
    edges: Tuple[Edge, ...]             = ()
    # Ids that appeared more than once in the document; only the first
    # occurrence is kept in `nodes`.
    duplicate_node_ids: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "_order", {nid: i for i, nid in enumerate(self.nodes)}
        )

    def get_node(self, node_id: str) -> Optional[IRNode]:
        return self.nodes.get(node_id)

    def index_of(self, node_id: str) -> int:
        """Document position of a node; unknown ids sort last."""
        return self._order.get(node_id, len(self._order))

    def get_incoming(self, node_id: str, anchor_id: str) -> List[Edge]:
        return [
            e for e in self.edges
            if e.target_node_id == node_id and e.target_anchor_id == anchor_id
        ]

    def get_all_incoming(self, node_id: str) -> List[Edge]:
        return [e for e in self.edges if e.target_node_id == node_id]

    def get_all_outgoing(self, node_id: str) -> List[Edge]:
        return [e for e in self.edges if e.source_node_id == node_id]

    def resolvable_edges(self) -> List[Edge]:
        """Edges whose two endpoint nodes both exist."""
        return [
            e for e in self.edges
            if e.source_node_id in self.nodes and e.target_node_id in self.nodes
        ]

    @property
    def node_count(self) -> int:
        return len(self.nodes)

    @property
    def edge_count(self) -> int:
        return len(self.edges)


# ── Document → IR ────────────────────────────────────────────────────────────

def _as_list(value: Any) -> List[Any]:
    return list(value) if isinstance(value, (list, tuple)) else []


def _position(raw: Dict[str, Any]) -> Optional[Tuple[float, float]]:
    pos = raw.get("position")
    if isinstance(pos, dict):
        try:
            return (float(pos.get("x", 0)), float(pos.get("y", 0)))
        except (TypeError, ValueError):
            return None
    return None


def _parse_anchor(raw: Any, fallback_id: str) -> Optional[Anchor]:
    if isinstance(raw, str):
        return Anchor(id=raw, name=raw)
    if not isinstance(raw, dict):
        return None
    anchor_id = str(raw.get("id") or raw.get("name") or fallback_id)
    if "required" in raw:
        required = bool(raw["required"])
    else:
        # Flowise marks optional anchors instead of required ones.
        required = raw.get("optional") is False
    return Anchor(
        id=anchor_id,
        name=str(raw.get("name") or anchor_id),
        data_type=str(raw.get("type") or raw.get("data_type") or "any"),
        required=required,
        list=bool(raw.get("list", False)),
    )


def _parse_anchors(raws: Iterable[Any], node_id: str, direction: str) -> Tuple[Anchor, ...]:
    anchors: List[Anchor] = []
    for i, raw in enumerate(raws):
        anchor = _parse_anchor(raw, f"{node_id}-{direction}-{i}")
        if anchor is None:
            logger.warning("node %s: skipping malformed %s anchor #%d", node_id, direction, i)
            continue
        anchors.append(anchor)
    return tuple(anchors)


def _parse_parameters(raw: Any) -> Tuple[Parameter, ...]:
    if isinstance(raw, dict):
        return tuple(
            Parameter(name=str(k), value=v, declared_type=_infer_type(v))
            for k, v in raw.items()
        )
    params: List[Parameter] = []
    for item in _as_list(raw):
        if not isinstance(item, dict) or "name" not in item:
            continue
        params.append(Parameter(
            name=str(item["name"]),
            value=item.get("value", item.get("default")),
            declared_type=str(item.get("type") or _infer_type(item.get("value"))),
        ))
    return tuple(params)


def _infer_type(value: Any) -> str:
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, dict):
        return "json"
    return "string"


def _is_flowise_node(raw: Dict[str, Any]) -> bool:
    data = raw.get("data")
    return isinstance(data, dict) and "name" in data


def _parse_flowise_node(raw: Dict[str, Any], node_id: str) -> IRNode:
    data   = raw["data"]
    values = data.get("inputs") if isinstance(data.get("inputs"), dict) else {}

    params: List[Parameter] = []
    for p in _as_list(data.get("inputParams")):
        if not isinstance(p, dict) or "name" not in p:
            continue
        name = str(p["name"])
        params.append(Parameter(
            name=name,
            value=values.get(name, p.get("default")),
            declared_type=str(p.get("type") or "string"),
        ))

    outputs: List[Any] = []
    for out in _as_list(data.get("outputAnchors")):
        # "options" anchors bundle several alternative outputs.
        if isinstance(out, dict) and out.get("type") == "options":
            outputs.extend(_as_list(out.get("options")))
        else:
            outputs.append(out)

    return IRNode(
        id=node_id,
        type=str(data.get("name") or ""),
        category=str(data.get("category") or ""),
        label=str(data.get("label") or node_id),
        parameters=tuple(params),
        inputs=_parse_anchors(_as_list(data.get("inputAnchors")), node_id, "input"),
        outputs=_parse_anchors(outputs, node_id, "output"),
        version=None if data.get("version") is None else str(data.get("version")),
        position=_position(raw),
    )


def _parse_canonical_node(raw: Dict[str, Any], node_id: str) -> IRNode:
    return IRNode(
        id=node_id,
        type=str(raw.get("type") or ""),
        category=str(raw.get("category") or ""),
        label=str(raw.get("label") or node_id),
        parameters=_parse_parameters(raw.get("parameters")),
        inputs=_parse_anchors(_as_list(raw.get("inputs")), node_id, "input"),
        outputs=_parse_anchors(_as_list(raw.get("outputs")), node_id, "output"),
        version=None if raw.get("version") is None else str(raw.get("version")),
        position=_position(raw),
    )


def _parse_node(raw: Dict[str, Any], index: int) -> IRNode:
    node_id = raw.get("id")
    if not isinstance(node_id, str) or not node_id:
        node_id = f"node_{index}"
        logger.warning("nodes[%d]: missing id, using %r", index, node_id)
    if _is_flowise_node(raw):
        return _parse_flowise_node(raw, node_id)
    return _parse_canonical_node(raw, node_id)


def _parse_edge(raw: Dict[str, Any], index: int) -> Edge:
    source        = str(raw.get("source") or "")
    target        = str(raw.get("target") or "")
    source_anchor = str(raw.get("sourceHandle") or raw.get("sourceAnchor") or "")
    target_anchor = str(raw.get("targetHandle") or raw.get("targetAnchor") or "")
    edge_id = raw.get("id")
    if not isinstance(edge_id, str) or not edge_id:
        edge_id = f"edge_{index}"
    return Edge(
        id=edge_id,
        source_node_id=source,
        source_anchor_id=source_anchor,
        target_node_id=target,
        target_anchor_id=target_anchor,
    )


def build_graph(document: Dict[str, Any], name: Optional[str] = None) -> FlowGraph:
    """
    Build a FlowGraph from a parsed flow document.

    Never raises on odd content: non-object entries are skipped with a
    warning, missing optional fields get defaults and duplicate node ids
    are recorded on the graph for the analyzer to report.
    """
    if not isinstance(document, dict):
        document = {}

    nodes: Dict[str, IRNode] = {}
    duplicates: List[str]    = []

    for i, raw in enumerate(_as_list(document.get("nodes"))):
        if not isinstance(raw, dict):
            logger.warning("nodes[%d]: not an object, skipped", i)
            continue
        node = _parse_node(raw, i)
        if node.id in nodes:
            if node.id not in duplicates:
                duplicates.append(node.id)
            continue
        nodes[node.id] = node

    edges: List[Edge] = []
    for i, raw in enumerate(_as_list(document.get("edges"))):
        if not isinstance(raw, dict):
            logger.warning("edges[%d]: not an object, skipped", i)
            continue
        edges.append(_parse_edge(raw, i))

    graph_name = name or document.get("name") or document.get("graph_name") or "flow"
    logger.debug("built graph %r: %d nodes, %d edges", graph_name, len(nodes), len(edges))
    return FlowGraph(
        name=str(graph_name),
        nodes=nodes,
        edges=tuple(edges),
        duplicate_node_ids=tuple(duplicates),
    )


__all__ = [
    "Anchor",
    "Edge",
    "FlowGraph",
    "IRNode",
    "ParamStatus",
    "ParamValue",
    "Parameter",
    "build_graph",
]
