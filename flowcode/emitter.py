"""
flowcode: Source Emitter
========================
Merges CodeFragments into one module.  The emitter never edits fragment
content; it only partitions, de-duplicates, orders and joins.

Output structure
----------------
    <header comment>                    include_docs only
    <import block>                      merged ImportSpecs, sorted by module
    <body fragments>                    sorted by (priority, emission index)

Body fragments are separated by one blank line (two for Python).
Cross-cutting fragments carry no emission index and sort first inside
their bucket; ties keep the order the fragments were handed in.

The dependency manifest is the sorted union of every fragment's
required_packages plus any packages the caller adds.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import Dict, Iterable, List, Sequence, Tuple

from .context import GenerationContext
from .fragments import CodeFragment, ImportSpec

logger = getLogger(__name__)


@dataclass
class EmitResult:
    source: str
    packages: List[str] = field(default_factory=list)


# ── Imports ──────────────────────────────────────────────────────────────────

def merge_imports(fragments: Iterable[CodeFragment]) -> List[ImportSpec]:
    """
    One ImportSpec per module, symbols de-duplicated and sorted.

    Modules come back sorted lexicographically with relative modules last.
    """
    merged: Dict[str, List[str]] = {}
    for frag in fragments:
        for spec in frag.import_specs:
            symbols = merged.setdefault(spec.module, [])
            for sym in spec.symbols:
                if sym not in symbols:
                    symbols.append(sym)
    modules = sorted(merged, key=lambda m: (m.startswith("."), m))
    return [ImportSpec(m, tuple(sorted(merged[m]))) for m in modules]


# ── Body ─────────────────────────────────────────────────────────────────────

def order_body(fragments: Sequence[CodeFragment]) -> List[CodeFragment]:
    indexed = list(enumerate(f for f in fragments if not f.is_import))

    def key(item: Tuple[int, CodeFragment]) -> Tuple[int, int, int]:
        seq, frag = item
        position = -1 if frag.emission_index is None else frag.emission_index
        return (int(frag.priority), position, seq)

    return [frag for _, frag in sorted(indexed, key=key)]


def collect_packages(fragments: Iterable[CodeFragment], extra: Iterable[str] = ()) -> List[str]:
    packages = {p for frag in fragments for p in frag.required_packages}
    packages.update(extra)
    return sorted(p for p in packages if p)


def _header(context: GenerationContext, graph_name: str) -> List[str]:
    lines = [
        f"Generated by flowcode from flow: {graph_name}",
        f"Target: {context.target.value}",
        "Re-run the converter to regenerate; edits here will be overwritten.",
    ]
    if context.is_python:
        return ['"""', *lines, '"""']
    return ["/**", *(f" * {line}" for line in lines), " */"]


# ── Entry point ──────────────────────────────────────────────────────────────

def emit(
    fragments: Sequence[CodeFragment],
    context: GenerationContext,
    graph_name: str = "flow",
    extra_packages: Iterable[str] = (),
) -> EmitResult:
    dialect = context.dialect
    gap     = ["", ""] if context.is_python else [""]

    sections: List[List[str]] = []
    if context.include_docs:
        sections.append(_header(context, graph_name))

    imports = dialect.render_imports(merge_imports(f for f in fragments if f.is_import))
    if imports:
        sections.append(imports)

    body = [f for f in order_body(fragments) if f.content.strip()]
    for frag in body:
        sections.append(frag.content.rstrip("\n").split("\n"))

    lines: List[str] = []
    for i, section in enumerate(sections):
        if i:
            lines.extend(gap)
        lines.extend(section)

    packages = collect_packages(fragments, extra_packages)
    logger.debug(
        "emitted %d import line(s), %d body fragment(s), %d package(s)",
        len(imports), len(body), len(packages),
    )
    return EmitResult(source="\n".join(lines) + "\n", packages=packages)


__all__ = [
    "EmitResult",
    "collect_packages",
    "emit",
    "merge_imports",
    "order_body",
]
