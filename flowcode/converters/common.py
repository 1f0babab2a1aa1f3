"""
Shared converter building blocks
================================
Free functions every converter may call, plus ComponentConverter: a
table-driven converter for the many node types whose lowering is
"import one class, construct it from parameters and wired inputs".

A ComponentConverter is described by data:

    ComponentConverter(
        node_type="chatOpenAI",
        category="llm",
        priority=Priority.MODEL,
        js=Construct("@langchain/openai", "ChatOpenAI", "@langchain/openai", options=(...)),
        py=Construct("langchain_openai", "ChatOpenAI", "langchain-openai", options=(...)),
    )

A missing `py` (or `js`) construct means the target is not supported and
convert() raises UnsupportedTargetError.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from ..context import GenerationContext
from ..errors import UnsupportedTargetError
from ..fragments import CodeFragment, FragmentKind, ImportSpec, Priority, import_fragment
from ..ir import IRNode
from ..targets import Dialect, EnvRef, Expr, contains_env, function_name


# ── Option / wiring tables ────────────────────────────────────────────────────

@dataclass(frozen=True)
class Option:
    """Maps a node parameter onto a constructor option."""
    param: str
    key: str
    kind: str              = "str"    # str | int | float | bool | list | json
    default: Any           = None     # None → omitted when the parameter is absent
    env: Optional[str]     = None     # secret: always read from this variable


@dataclass(frozen=True)
class Wire:
    """Maps an input anchor onto a constructor option."""
    anchor: str
    key: str
    many: bool     = False
    required: bool = False


@dataclass(frozen=True)
class Construct:
    module: str
    class_name: str
    package: str
    options: Tuple[Option, ...]         = ()
    wires: Tuple[Wire, ...]             = ()
    args: Tuple[Option, ...]            = ()    # positional constructor arguments
    extra_packages: Tuple[str, ...]     = ()


# ── Free helpers ──────────────────────────────────────────────────────────────

def coerce(node: IRNode, opt: Option) -> Any:
    if opt.env is not None:
        return EnvRef(opt.env)
    pv = node.param(opt.param, opt.default) if opt.default is not None else node.param(opt.param)
    if pv.missing:
        return None
    if opt.kind == "int":
        return pv.as_int()
    if opt.kind == "float":
        return pv.as_float()
    if opt.kind == "bool":
        return pv.as_bool()
    if opt.kind == "list":
        return pv.as_list()
    if opt.kind == "json":
        return pv.value
    return pv.as_str()


def build_options(
    node: IRNode,
    context: GenerationContext,
    options: Sequence[Option],
    wires: Sequence[Wire] = (),
) -> Dict[str, Any]:
    """Resolve option tables into an ordered {key: value} mapping."""
    out: Dict[str, Any] = {}
    for w in wires:
        if w.many:
            refs = context.references(w.anchor)
            if refs:
                out[w.key] = Expr("[" + ", ".join(refs) + "]")
        else:
            ref = context.reference(w.anchor, required=w.required)
            if ref is not None:
                out[w.key] = Expr(ref)
    for opt in options:
        value = coerce(node, opt)
        if value is not None:
            out[opt.key] = value
    return out


def first_reference(context: GenerationContext, *anchors: str) -> Optional[str]:
    """First identifier wired into any of the named anchors."""
    for anchor in anchors:
        ref = context.reference(anchor, required=False)
        if ref is not None:
            return ref
    return None


def require_reference(context: GenerationContext, *anchors: str) -> str:
    ref = first_reference(context, *anchors)
    if ref is None:
        return context.reference(anchors[0], required=True)  # raises
    return ref


def env_specs(dialect: Dialect, values: Iterable[Any]) -> Tuple[ImportSpec, ...]:
    return dialect.env_imports() if any(contains_env(v) for v in values) else ()


def run_function_name(context: GenerationContext) -> str:
    return function_name("run", context.identifier, python=context.is_python)


def tracing_config(dialect: Dialect) -> str:
    """Second argument for invoke()/ainvoke() when tracing is on."""
    if dialect.python:
        return ', config={"callbacks": [langfuse_handler]}'
    return ", { callbacks: [langfuseHandler] }"


def node_fragments(
    node: IRNode,
    specs: Sequence[ImportSpec],
    packages: Sequence[str],
    body: str,
    priority: int,
    exported: Sequence[str] = (),
    kind: FragmentKind = FragmentKind.INITIALIZATION,
    suffix: str = "init",
) -> List[CodeFragment]:
    """The usual pair: one import fragment plus one body fragment."""
    frags: List[CodeFragment] = []
    if specs:
        frags.append(import_fragment(f"{node.id}:import", specs, packages, node.id))
    frags.append(CodeFragment(
        id=f"{node.id}:{suffix}",
        kind=kind,
        content=body,
        required_packages=tuple(packages),
        source_node_id=node.id,
        priority=priority,
        exported_names=tuple(exported),
    ))
    return frags


def execution_fragment(node: IRNode, name: str, lines: Sequence[str], packages: Sequence[str] = ()) -> CodeFragment:
    return CodeFragment(
        id=f"{node.id}:run",
        kind=FragmentKind.EXECUTION,
        content="\n".join(lines),
        required_packages=tuple(packages),
        source_node_id=node.id,
        priority=Priority.EXECUTION,
        exported_names=(name,),
    )


# ── Table-driven converter ────────────────────────────────────────────────────

@dataclass(frozen=True)
class ConverterInfo:
    """Version/deprecation metadata shared by the hand-written converters."""
    versions: Tuple[str, ...]   = ("*",)
    deprecated: bool            = False
    replacement: Optional[str]  = None


class InfoMixin:
    """Protocol metadata methods for converters carrying an `info` attribute."""

    info: ConverterInfo

    def supported_versions(self) -> List[str]:
        return list(self.info.versions)

    def is_deprecated(self) -> bool:
        return self.info.deprecated

    def replacement_type(self) -> Optional[str]:
        return self.info.replacement


@dataclass(frozen=True)
class ComponentConverter(InfoMixin):
    node_type: str
    category: str
    priority: int
    js: Optional[Construct]      = None
    py: Optional[Construct]      = None
    info: ConverterInfo          = field(default_factory=ConverterInfo)

    def can_convert(self, node: IRNode) -> bool:
        return bool(node.type)

    def construct(self, context: GenerationContext) -> Construct:
        spec = self.py if context.is_python else self.js
        if spec is None:
            raise UnsupportedTargetError(
                f"'{self.node_type}' has no {context.target.value} rendering"
            )
        return spec

    def convert(self, node: IRNode, context: GenerationContext) -> List[CodeFragment]:
        spec    = self.construct(context)
        dialect = context.dialect
        options = build_options(node, context, spec.options, spec.wires)
        args    = [coerce(node, a) for a in spec.args]
        expr    = dialect.new(spec.class_name, options, *[dialect.literal(a) for a in args])
        body    = dialect.declare(context.identifier, expr)
        specs   = (
            (ImportSpec(spec.module, (spec.class_name,)),)
            + env_specs(dialect, [*options.values(), *args])
        )
        return node_fragments(
            node, specs, self.dependencies(node, context), body, self.priority,
            exported=(context.identifier,),
        )

    def dependencies(self, node: IRNode, context: GenerationContext) -> List[str]:
        spec = self.construct(context)
        return [spec.package, *spec.extra_packages]


__all__ = [
    "ComponentConverter",
    "Construct",
    "ConverterInfo",
    "InfoMixin",
    "Option",
    "Wire",
    "build_options",
    "coerce",
    "env_specs",
    "execution_fragment",
    "first_reference",
    "node_fragments",
    "require_reference",
    "run_function_name",
    "tracing_config",
]
