"""
flowcode: Smoke-test Generation
===============================
Builds a small test module for the generated code: vitest for TS/JS,
pytest for Python.  The tests only check that every exported run function
exists and is callable; they never call a model.
"""

from __future__ import annotations

from typing import List, Sequence

from .context import GenerationContext
from .fragments import CodeFragment, ImportSpec
from .prelude import run_functions
from .targets import safe_identifier


def module_name(context: GenerationContext) -> str:
    """Import name of the generated module (file stem without extension)."""
    return safe_identifier(context.project_name, python=context.is_python)


def testing_packages(context: GenerationContext) -> List[str]:
    return ["pytest"] if context.is_python else ["vitest"]


def _python_tests(context: GenerationContext, module: str, runs: Sequence[str]) -> List[str]:
    dialect = context.dialect
    w = dialect.writer()
    if not runs:
        w.writeln("import importlib")
        w.blank()
        w.blank()
        w.writeln("def test_module_imports():")
        w.push().writeln(f"assert importlib.import_module({dialect.quote(module)}) is not None").pop()
        return w.lines()

    w.writeln("import inspect")
    w.blank()
    w.extend(dialect.render_imports([ImportSpec(module, tuple(runs))]))
    for name in runs:
        w.blank()
        w.blank()
        w.writeln(f"def test_{name}_is_async():")
        w.push().writeln(f"assert inspect.iscoroutinefunction({name})").pop()
    return w.lines()


def _js_tests(context: GenerationContext, module: str, runs: Sequence[str]) -> List[str]:
    dialect = context.dialect
    q = dialect.quote
    relative = f"./{module}"
    w = dialect.writer()
    specs = [ImportSpec("vitest", ("describe", "expect", "it"))]
    specs.append(ImportSpec(relative, tuple(runs)) if runs else ImportSpec(relative, (f"*:{module}",)))
    w.extend(dialect.render_imports(specs))
    w.blank()
    w.writeln(f"describe({q(module)}, () => {{")
    w.push()
    if not runs:
        w.writeln(f"it({q('loads')}, () => {{")
        w.push().writeln(dialect.statement(f"expect({module}).toBeDefined()")).pop()
        w.writeln(dialect.statement("})"))
    for i, name in enumerate(runs):
        if i:
            w.blank()
        w.writeln(f"it({q(f'exports {name}')}, () => {{")
        w.push().writeln(dialect.statement(f"expect(typeof {name}).toBe({q('function')})")).pop()
        w.writeln(dialect.statement("})"))
    w.pop()
    w.writeln(dialect.statement("})"))
    return w.lines()


def generate_tests(context: GenerationContext, fragments: Sequence[CodeFragment]) -> str:
    module = module_name(context)
    runs   = run_functions(fragments)
    if context.is_python:
        lines = _python_tests(context, module, runs)
    else:
        lines = _js_tests(context, module, runs)
    return "\n".join(lines) + "\n"


__all__ = ["generate_tests", "module_name", "testing_packages"]
