"""
flowcode: Conversion Report
===========================
The ConversionReport accumulates every finding produced while a flow is
analysed and lowered.  It is the only channel through which non-fatal
problems reach the caller.

Finding kinds
-------------
  structural     fatal    broken references, anchor direction, arity, duplicate ids
  missing_input  fatal    required input with no incoming edge
  coverage       warning  node type with no registered converter
  cycle          warning  directed cycle; members fall back to document order
  ordering       warning  an edge points backwards across priority buckets, or
                          cyclic nodes fell back to document order
  lowering       error    a converter failed on one node (non-fatal); warning
                          when an input from an unsupported node is dropped
  deprecation    warning  converter for the node type is deprecated
  version        info     node version outside the converter's supported list
  isolated       info     node with no edges at all

Only the fatal kinds stop the pipeline.  Success means "structural validity
held", not "zero findings".
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional


class Severity(Enum):
    ERROR   = "error"
    WARNING = "warning"
    INFO    = "info"


class FindingKind(Enum):
    STRUCTURAL    = "structural"
    MISSING_INPUT = "missing_input"
    COVERAGE      = "coverage"
    CYCLE         = "cycle"
    ORDERING      = "ordering"
    LOWERING      = "lowering"
    DEPRECATION   = "deprecation"
    VERSION       = "version"
    ISOLATED      = "isolated"


FATAL_KINDS = frozenset({FindingKind.STRUCTURAL, FindingKind.MISSING_INPUT})


class Complexity(Enum):
    SIMPLE   = "simple"
    MODERATE = "moderate"
    COMPLEX  = "complex"


# ── Finding ──────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Finding:
    kind: FindingKind
    severity: Severity
    message: str
    node_id: Optional[str]     = None
    edge_id: Optional[str]     = None
    node_type: Optional[str]   = None
    replacement: Optional[str] = None

    @property
    def fatal(self) -> bool:
        return self.kind in FATAL_KINDS

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "kind":     self.kind.value,
            "severity": self.severity.value,
            "message":  self.message,
        }
        for key in ("node_id", "edge_id", "node_type", "replacement"):
            value = getattr(self, key)
            if value is not None:
                out[key] = value
        return out

    def __str__(self) -> str:
        where = self.node_id or self.edge_id
        prefix = f"[{self.kind.value}]"
        return f"{prefix} {where}: {self.message}" if where else f"{prefix} {self.message}"


# ── Coverage ─────────────────────────────────────────────────────────────────

@dataclass
class Coverage:
    total_nodes: int                = 0
    supported_nodes: int            = 0
    supported_types: List[str]      = field(default_factory=list)
    unsupported_types: List[str]    = field(default_factory=list)

    @property
    def ratio(self) -> float:
        """Supported nodes over all nodes; an empty graph is fully covered."""
        if self.total_nodes == 0:
            return 1.0
        return self.supported_nodes / self.total_nodes

    @property
    def type_ratio(self) -> float:
        total = len(self.supported_types) + len(self.unsupported_types)
        if total == 0:
            return 1.0
        return len(self.supported_types) / total

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_nodes":       self.total_nodes,
            "supported_nodes":   self.supported_nodes,
            "ratio":             round(self.ratio, 4),
            "type_ratio":        round(self.type_ratio, 4),
            "supported_types":   list(self.supported_types),
            "unsupported_types": list(self.unsupported_types),
        }


# ── Graph statistics ─────────────────────────────────────────────────────────

@dataclass
class GraphStats:
    node_count: int                  = 0
    edge_count: int                  = 0
    type_counts: Dict[str, int]      = field(default_factory=dict)
    category_counts: Dict[str, int]  = field(default_factory=dict)
    entry_points: List[str]          = field(default_factory=list)
    exit_points: List[str]           = field(default_factory=list)
    isolated: List[str]              = field(default_factory=list)
    max_depth: int                   = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "node_count":      self.node_count,
            "edge_count":      self.edge_count,
            "type_counts":     dict(self.type_counts),
            "category_counts": dict(self.category_counts),
            "entry_points":    list(self.entry_points),
            "exit_points":     list(self.exit_points),
            "isolated":        list(self.isolated),
            "max_depth":       self.max_depth,
        }


# ── Report ───────────────────────────────────────────────────────────────────

@dataclass
class ConversionReport:
    findings: List[Finding]          = field(default_factory=list)
    coverage: Coverage               = field(default_factory=Coverage)
    complexity: Optional[Complexity] = None
    cycles: List[List[str]]          = field(default_factory=list)
    stats: Optional[GraphStats]      = None

    # Filled in by the lowering engine.
    emission_order: List[str]        = field(default_factory=list)
    fallback_nodes: List[str]        = field(default_factory=list)

    def add(self, finding: Finding) -> None:
        self.findings.append(finding)

    def extend(self, findings: Iterable[Finding]) -> None:
        self.findings.extend(findings)

    def of_kind(self, kind: FindingKind) -> List[Finding]:
        return [f for f in self.findings if f.kind is kind]

    @property
    def errors(self) -> List[Finding]:
        return [f for f in self.findings if f.severity is Severity.ERROR]

    @property
    def warnings(self) -> List[Finding]:
        return [f for f in self.findings if f.severity is Severity.WARNING]

    @property
    def infos(self) -> List[Finding]:
        return [f for f in self.findings if f.severity is Severity.INFO]

    @property
    def fatal_errors(self) -> List[Finding]:
        return [f for f in self.findings if f.fatal]

    @property
    def is_fatal(self) -> bool:
        return any(f.fatal for f in self.findings)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success":        not self.is_fatal,
            "errors":         [f.to_dict() for f in self.errors],
            "warnings":       [f.to_dict() for f in self.warnings],
            "info":           [f.to_dict() for f in self.infos],
            "coverage":       self.coverage.to_dict(),
            "complexity":     self.complexity.value if self.complexity else None,
            "cycles":         [list(c) for c in self.cycles],
            "emission_order": list(self.emission_order),
            "fallback_nodes": list(self.fallback_nodes),
            "stats":          self.stats.to_dict() if self.stats else None,
        }


__all__ = [
    "Complexity",
    "ConversionReport",
    "Coverage",
    "FATAL_KINDS",
    "Finding",
    "FindingKind",
    "GraphStats",
    "Severity",
]
