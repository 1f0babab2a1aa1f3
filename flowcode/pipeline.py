"""
flowcode: Conversion Pipeline
=============================
    document  →  [build_graph]  →  FlowGraph
    FlowGraph →  [analyze]      →  ConversionReport
    FlowGraph →  [lower]        →  CodeFragments       (skipped when fatal)
    fragments →  [emit]         →  source + package manifest

Public API
----------
    from flowcode import convert_flow

    result = convert_flow("flow.json", GenerationContext(target="python"))
    if result.source is not None:
        print(result.source)
    for finding in result.report.findings:
        print(finding)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import Any, Dict, List, Optional, Union

from .analyzer import analyze
from .context import GenerationContext
from .converters import default_registry
from .document import Source, document_name, load_document
from .emitter import emit
from .ir import FlowGraph, build_graph
from .lowering import lower
from .prelude import prelude_fragments, tail_fragments
from .registry import ConverterRegistry
from .report import ConversionReport
from .testgen import generate_tests

logger = getLogger(__name__)


@dataclass
class ConversionResult:
    # None when the report holds a fatal finding
    source: Optional[str]
    packages: List[str]         = field(default_factory=list)
    report: ConversionReport    = field(default_factory=ConversionReport)
    test_source: Optional[str]  = None
    graph_name: str             = "flow"

    @property
    def success(self) -> bool:
        return not self.report.is_fatal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success":     self.success,
            "graph_name":  self.graph_name,
            "source":      self.source,
            "packages":    list(self.packages),
            "test_source": self.test_source,
            "report":      self.report.to_dict(),
        }


def load_graph(source: Union[Source, FlowGraph], name: Optional[str] = None) -> FlowGraph:
    if isinstance(source, FlowGraph):
        return source
    document = load_document(source)
    return build_graph(document, name=name or document_name(document))


def validate_flow(
    source: Union[Source, FlowGraph],
    registry: Optional[ConverterRegistry] = None,
) -> ConversionReport:
    """Analysis only; nothing is lowered."""
    graph = load_graph(source)
    return analyze(graph, registry or default_registry())


def convert_flow(
    source: Union[Source, FlowGraph],
    context: Optional[GenerationContext] = None,
    registry: Optional[ConverterRegistry] = None,
    max_workers: Optional[int] = None,
) -> ConversionResult:
    """
    Convert a flow document into one source module.

    Raises DocumentError only when the document itself cannot be read;
    every problem inside the graph is reported on the result instead.
    """
    context  = context or GenerationContext()
    registry = registry or default_registry()
    graph    = load_graph(source)

    report = analyze(graph, registry)
    if report.is_fatal:
        logger.info("conversion of %r stopped: %d fatal finding(s)", graph.name, len(report.fatal_errors))
        return ConversionResult(source=None, report=report, graph_name=graph.name)

    lowered   = lower(graph, registry, context, report, max_workers=max_workers)
    fragments = [*prelude_fragments(context), *lowered.fragments]
    fragments.extend(tail_fragments(context, fragments))

    emitted = emit(fragments, context, graph_name=graph.name, extra_packages=lowered.packages)
    tests   = generate_tests(context, fragments) if context.include_tests else None

    logger.info(
        "converted %r to %s: %d fragment(s), %d package(s), %d finding(s)",
        graph.name, context.target.value, len(fragments), len(emitted.packages), len(report.findings),
    )
    return ConversionResult(
        source=emitted.source,
        packages=emitted.packages,
        report=report,
        test_source=tests,
        graph_name=graph.name,
    )


__all__ = ["ConversionResult", "convert_flow", "load_graph", "validate_flow"]
