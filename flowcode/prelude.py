"""
flowcode: Cross-cutting Fragments
=================================
Fragments that belong to the generated module as a whole rather than to
any one node:

  CONFIGURATION  environment loading, environment passthrough, tracing handler
  EXPORTS        `module.exports` (CommonJS) or the `__main__` entry point

None of these carry a source node id, so the emitter places them first
inside their bucket, in the order they are returned here.
"""

from __future__ import annotations

import re
from typing import List, Sequence

from .context import GenerationContext
from .fragments import CodeFragment, FragmentKind, ImportSpec, Priority, import_fragment
from .targets import EnvRef

_JS_IDENT = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")

LANGFUSE_DEFAULT_HOST = "https://cloud.langfuse.com"
SAMPLE_MESSAGE        = "Hello!"


def _fragment(fragment_id: str, content: str, packages: Sequence[str] = (),
              priority: int = Priority.CONFIGURATION, exported: Sequence[str] = ()) -> CodeFragment:
    return CodeFragment(
        id=fragment_id,
        kind=FragmentKind.INITIALIZATION,
        content=content,
        required_packages=tuple(packages),
        priority=priority,
        exported_names=tuple(exported),
    )


# ── Configuration bucket ─────────────────────────────────────────────────────

def dotenv_fragments(context: GenerationContext) -> List[CodeFragment]:
    if context.is_python:
        return [
            import_fragment("prelude:dotenv:import", [ImportSpec("dotenv", ("load_dotenv",))], ["python-dotenv"]),
            _fragment("prelude:dotenv", "load_dotenv()", ["python-dotenv"]),
        ]
    # the side-effect import does the loading
    return [import_fragment("prelude:dotenv:import", [ImportSpec("dotenv/config")], ["dotenv"])]


def environment_fragments(context: GenerationContext) -> List[CodeFragment]:
    """Default values for environment variables; real variables win."""
    if not context.environment:
        return []
    dialect = context.dialect
    lines: List[str] = []
    for key, value in sorted(context.environment.items()):
        if dialect.python:
            lines.append(f"os.environ.setdefault({dialect.quote(key)}, {dialect.quote(value)})")
        else:
            target = f"process.env.{key}" if _JS_IDENT.match(key) else f"process.env[{dialect.quote(key)}]"
            lines.append(dialect.statement(f"{target} ??= {dialect.quote(value)}"))

    frags = [_fragment("prelude:env", "\n".join(lines))]
    if dialect.python:
        frags.insert(0, import_fragment("prelude:env:import", dialect.env_imports()))
    return frags


def tracing_fragments(context: GenerationContext) -> List[CodeFragment]:
    if not context.include_tracing:
        return []
    dialect = context.dialect
    if dialect.python:
        options = {
            "public_key": EnvRef("LANGFUSE_PUBLIC_KEY"),
            "secret_key": EnvRef("LANGFUSE_SECRET_KEY"),
            "host":       EnvRef("LANGFUSE_HOST", LANGFUSE_DEFAULT_HOST),
        }
        name, module, package = "langfuse_handler", "langfuse.callback", "langfuse"
        specs = [ImportSpec(module, ("CallbackHandler",)), *dialect.env_imports()]
    else:
        options = {
            "publicKey": EnvRef("LANGFUSE_PUBLIC_KEY"),
            "secretKey": EnvRef("LANGFUSE_SECRET_KEY"),
            "baseUrl":   EnvRef("LANGFUSE_BASEURL", LANGFUSE_DEFAULT_HOST),
        }
        name, module, package = "langfuseHandler", "langfuse-langchain", "langfuse-langchain"
        specs = [ImportSpec(module, ("CallbackHandler",))]

    return [
        import_fragment("prelude:tracing:import", specs, [package]),
        _fragment("prelude:tracing", dialect.declare(name, dialect.new("CallbackHandler", options)), [package]),
    ]


def prelude_fragments(context: GenerationContext) -> List[CodeFragment]:
    return [
        *dotenv_fragments(context),
        *environment_fragments(context),
        *tracing_fragments(context),
    ]


# ── Module tail ──────────────────────────────────────────────────────────────

def run_functions(fragments: Sequence[CodeFragment]) -> List[str]:
    """Exported run functions, in emission order."""
    runs = [f for f in fragments if f.id.endswith(":run") and f.exported_names]
    runs.sort(key=lambda f: -1 if f.emission_index is None else f.emission_index)
    return [f.exported_names[0] for f in runs]


def exported_names(fragments: Sequence[CodeFragment]) -> List[str]:
    names: List[str] = []
    ordered = sorted(
        (f for f in fragments if not f.is_import),
        key=lambda f: (f.priority, -1 if f.emission_index is None else f.emission_index),
    )
    for frag in ordered:
        for name in frag.exported_names:
            if name not in names:
                names.append(name)
    return names


def tail_fragments(context: GenerationContext, fragments: Sequence[CodeFragment]) -> List[CodeFragment]:
    dialect = context.dialect
    if dialect.python:
        runs = run_functions(fragments)
        if not runs:
            return []
        w = dialect.writer()
        w.writeln('if __name__ == "__main__":')
        w.push().writeln(f"print(asyncio.run({runs[0]}({dialect.quote(SAMPLE_MESSAGE)})))").pop()
        return [
            import_fragment("prelude:main:import", [ImportSpec("asyncio")]),
            _fragment("prelude:main", w.result(), priority=Priority.EXPORTS),
        ]

    if dialect.esm:
        return []
    names = exported_names(fragments)
    if not names:
        return []
    w = dialect.writer()
    w.writeln("module.exports = {")
    w.push().extend(f"{n}," for n in names).pop()
    w.writeln(dialect.statement("}"))
    return [_fragment("prelude:exports", w.result(), priority=Priority.EXPORTS)]


__all__ = [
    "dotenv_fragments",
    "environment_fragments",
    "exported_names",
    "prelude_fragments",
    "run_functions",
    "tail_fragments",
    "tracing_fragments",
]
