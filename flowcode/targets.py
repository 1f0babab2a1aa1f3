"""
flowcode: Target Dialects
=========================
Everything that depends on the output language lives here, so converters
describe *what* to construct and the Dialect decides *how it is spelled*.

  Dialect(context)
      literal(value)            → language literal (quote style aware)
      env(name, default)        → environment lookup expression
      new(cls, options)         → constructor call, multi-line with options
      call(func, options)       → function call with an options object / kwargs
      declare(name, expr)       → `const x = …;` / `x = …`
      function(name, params, …) → async function block
      render_imports(specs)     → import block lines

  CodeWriter
      Indented line accumulator shared by the dialect and the emitter.

Expressions that must not be quoted are wrapped in Expr; environment lookups
in EnvRef.
"""

from __future__ import annotations

import builtins
import keyword
import re
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Sequence, Set, Tuple, TYPE_CHECKING

from .fragments import ImportSpec

if TYPE_CHECKING:
    from .context import GenerationContext


# ── Code writer ───────────────────────────────────────────────────────────────

class CodeWriter:
    """Simple indented string accumulator."""

    def __init__(self, indent: int = 0, unit: str = "    "):
        self._lines: List[str] = []
        self._indent = indent
        self._unit = unit

    def writeln(self, line: str = "") -> "CodeWriter":
        if "\n" in line:
            for part in line.split("\n"):
                self.writeln(part)
        elif line:
            self._lines.append(self._unit * self._indent + line)
        else:
            self._lines.append("")
        return self

    def blank(self) -> "CodeWriter":
        return self.writeln()

    def push(self) -> "CodeWriter":
        self._indent += 1
        return self

    def pop(self) -> "CodeWriter":
        self._indent = max(0, self._indent - 1)
        return self

    def extend(self, lines: Iterable[str]) -> "CodeWriter":
        for line in lines:
            self.writeln(line)
        return self

    def lines(self) -> List[str]:
        return self._lines

    def result(self) -> str:
        return "\n".join(self._lines)


# ── Expression wrappers ───────────────────────────────────────────────────────

@dataclass(frozen=True)
class Expr:
    """Raw target-language expression, emitted verbatim."""
    text: str


@dataclass(frozen=True)
class EnvRef:
    """Environment variable lookup, optionally with a fallback literal."""
    name: str
    default: Optional[str] = None


def contains_env(value: Any) -> bool:
    if isinstance(value, EnvRef):
        return True
    if isinstance(value, dict):
        return any(contains_env(v) for v in value.values())
    if isinstance(value, (list, tuple)):
        return any(contains_env(v) for v in value)
    return False


# ── Identifiers ───────────────────────────────────────────────────────────────

_JS_RESERVED = frozenset({
    "await", "break", "case", "catch", "class", "const", "continue", "debugger",
    "default", "delete", "do", "else", "enum", "export", "extends", "false",
    "finally", "for", "function", "if", "import", "in", "instanceof", "let",
    "new", "null", "return", "super", "switch", "this", "throw", "true", "try",
    "typeof", "var", "void", "while", "with", "yield",
})

_IDENT_RE = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")

# Locals of generated run, build and load functions.
_GENERATED_LOCALS = frozenset({
    "agent", "docs", "documents", "executor", "expression", "input",
    "message", "prompt", "result", "tools",
})

_JS_GLOBALS = frozenset({
    "Array", "CallbackHandler", "Error", "JSON", "Math", "Object", "Promise",
    "String", "arguments", "console", "eval", "exports", "globalThis",
    "langfuseHandler", "module", "process", "require", "undefined",
})

_PY_GLOBALS = frozenset(dir(builtins)) | {
    "asyncio", "hub", "langfuse_handler", "load_dotenv", "os",
}


def reserved_names(python: bool = False) -> FrozenSet[str]:
    """Names the generated module binds or relies on besides node identifiers."""
    return _GENERATED_LOCALS | (_PY_GLOBALS if python else _JS_GLOBALS)


def bound_names(specs: Iterable[ImportSpec], python: bool = False) -> Set[str]:
    """Module-level names an import block binds."""
    names: Set[str] = set()
    for spec in specs:
        if python and not spec.symbols:
            names.add(spec.module.split(".")[0])
        for sym in spec.symbols:
            names.add(sym.split(":", 1)[1] if ":" in sym else sym)
    return names


def _camel_to_snake(name: str) -> str:
    name = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1_\2", name)
    name = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", name)
    return name.lower()


def safe_identifier(raw: str, python: bool = False) -> str:
    """Turn an arbitrary node id into a valid identifier for the target."""
    if python:
        raw = _camel_to_snake(raw)
    name = re.sub(r"[^A-Za-z0-9_]", "_", raw).strip("_") or "node"
    name = re.sub(r"_+", "_", name)
    if name[0].isdigit():
        name = f"n_{name}"
    reserved = keyword.iskeyword(name) if python else name in _JS_RESERVED
    if reserved:
        name = f"{name}_"
    return name


def function_name(prefix: str, identifier: str, python: bool = False) -> str:
    """runLlmChain_0 for JS targets, run_llm_chain_0 for Python."""
    if python:
        return f"{prefix}_{identifier}"
    return prefix + identifier[:1].upper() + identifier[1:]


def output_identifier(base: str, anchor_names: Sequence[str], anchor_name: str, python: bool = False) -> str:
    """
    Identifier under which a node exposes one of its outputs.

    The first output anchor is the node identifier itself; any other output
    anchor is `<identifier>_<anchor name>`.
    """
    if not anchor_names or anchor_name not in anchor_names or anchor_names[0] == anchor_name:
        return base
    return f"{base}_{safe_identifier(anchor_name, python=python)}"


# ── Dialect ───────────────────────────────────────────────────────────────────

_LONG_IMPORT = 80


class Dialect:
    def __init__(self, context: "GenerationContext"):
        self.context = context
        self.python  = context.is_python
        self.ts      = context.is_typescript
        self.esm     = context.uses_esm
        style        = context.code_style
        self._quote  = '"' if self.python or style.quotes.value == "double" else "'"
        self._semi   = "" if self.python or not style.semicolons else ";"
        self._comma  = "," if style.trailing_commas else ""
        self.unit    = " " * context.indent_size

    def writer(self, indent: int = 0) -> CodeWriter:
        return CodeWriter(indent=indent, unit=self.unit)

    # ── Literals ─────────────────────────────────────────────────────────

    def quote(self, text: str) -> str:
        q = self._quote
        escaped = (
            text.replace("\\", "\\\\")
                .replace(q, "\\" + q)
                .replace("\n", "\\n")
                .replace("\r", "\\r")
                .replace("\t", "\\t")
        )
        return f"{q}{escaped}{q}"

    def env(self, name: str, default: Optional[str] = None) -> str:
        if self.python:
            if default is None:
                return f"os.getenv({self.quote(name)})"
            return f"os.getenv({self.quote(name)}, {self.quote(default)})"
        if default is None:
            return f"process.env.{name}"
        return f"process.env.{name} ?? {self.quote(default)}"

    def _key(self, key: str) -> str:
        if self.python:
            return self.quote(key)
        return key if _IDENT_RE.match(key) else self.quote(key)

    def literal(self, value: Any) -> str:
        if isinstance(value, Expr):
            return value.text
        if isinstance(value, EnvRef):
            return self.env(value.name, value.default)
        if value is None:
            return "None" if self.python else "undefined"
        if isinstance(value, bool):
            if self.python:
                return "True" if value else "False"
            return "true" if value else "false"
        if isinstance(value, (int, float)):
            return repr(value)
        if isinstance(value, str):
            return self.quote(value)
        if isinstance(value, (list, tuple)):
            return "[" + ", ".join(self.literal(v) for v in value) + "]"
        if isinstance(value, dict):
            if not value:
                return "{}"
            sep = ": "
            body = ", ".join(f"{self._key(str(k))}{sep}{self.literal(v)}" for k, v in value.items())
            return "{" + body + "}" if self.python else "{ " + body + " }"
        return self.quote(str(value))

    def array(self, identifiers: Sequence[str]) -> str:
        return "[" + ", ".join(identifiers) + "]"

    # ── Statements ───────────────────────────────────────────────────────

    def statement(self, text: str) -> str:
        return f"{text}{self._semi}"

    def comment(self, text: str) -> str:
        return f"# {text}" if self.python else f"// {text}"

    def declare(self, name: str, expr: str, exported: bool = False) -> str:
        if self.python:
            return f"{name} = {expr}"
        prefix = "export const" if exported and self.esm else "const"
        return self.statement(f"{prefix} {name} = {expr}")

    def _options(self, options: Dict[str, Any], opener: str, closer: str) -> str:
        lines = [opener]
        items = list(options.items())
        for i, (key, value) in enumerate(items):
            last = i == len(items) - 1
            comma = self._comma if last else ","
            if self.python:
                lines.append(f"{self.unit}{key}={self.literal(value)}{comma}")
            else:
                lines.append(f"{self.unit}{self._key(key)}: {self.literal(value)}{comma}")
        lines.append(closer)
        return "\n".join(lines)

    def new(
        self,
        class_name: str,
        options: Optional[Dict[str, Any]] = None,
        *args: str,
    ) -> str:
        """
        Constructor expression.

        args are already-rendered positional arguments; options become an
        object literal (JS) or keyword arguments (Python).
        """
        options = {k: v for k, v in (options or {}).items() if v is not None}
        head = class_name if self.python else f"new {class_name}"
        return self.call(head, options, *args)

    def call(self, func: str, options: Optional[Dict[str, Any]] = None, *args: str) -> str:
        """Function call taking either positional arguments or one options object."""
        options = {k: v for k, v in (options or {}).items() if v is not None}
        if not options:
            return f"{func}({', '.join(args)})"
        lead = ", ".join(args)
        if self.python:
            opener = f"{func}({lead}," if lead else f"{func}("
            return self._options(options, opener, ")")
        opener = f"{func}({lead}, {{" if lead else f"{func}({{"
        return self._options(options, opener, "})")

    def function(
        self,
        name: str,
        params: Sequence[Tuple[str, str]],
        body: Sequence[str],
        returns: Optional[str] = None,
        exported: bool = True,
        is_async: bool = True,
    ) -> List[str]:
        """
        Render a function definition.

        params is a sequence of (name, type) pairs; types are written for
        TypeScript and Python, dropped for JavaScript.  returns names the
        TypeScript return type; Python uses the same name mapped to a builtin.
        """
        w = self.writer()
        if self.python:
            sig = ", ".join(f"{p}: {_PY_TYPES.get(t, t)}" for p, t in params)
            ret = f" -> {_PY_TYPES.get(returns, returns)}" if returns else ""
            w.writeln(f"{'async ' if is_async else ''}def {name}({sig}){ret}:")
            w.push()
            w.extend(body or ["pass"])
            w.pop()
            return w.lines()

        if self.ts:
            sig = ", ".join(f"{p}: {t}" for p, t in params)
            ret = ""
            if returns:
                ret = f": Promise<{returns}>" if is_async else f": {returns}"
        else:
            sig = ", ".join(p for p, _ in params)
            ret = ""
        prefix = "export " if exported and self.esm else ""
        w.writeln(f"{prefix}{'async ' if is_async else ''}function {name}({sig}){ret} {{")
        w.push()
        w.extend(body)
        w.pop()
        w.writeln("}")
        return w.lines()

    def env_imports(self) -> Tuple[ImportSpec, ...]:
        return (ImportSpec("os"),) if self.python else ()

    # ── Imports ──────────────────────────────────────────────────────────

    def render_imports(self, specs: Iterable[ImportSpec]) -> List[str]:
        """
        Render merged import specs.

        Modules are sorted lexicographically with relative modules last;
        symbols within a module are sorted and de-duplicated.
        """
        grouped: "OrderedDict[str, List[str]]" = OrderedDict()
        for spec in sorted(specs, key=lambda s: (s.is_relative, s.module)):
            symbols = grouped.setdefault(spec.module, [])
            for sym in spec.symbols:
                if sym not in symbols:
                    symbols.append(sym)

        lines: List[str] = []
        for module, symbols in grouped.items():
            lines.extend(self._render_import(module, sorted(symbols)))
        return lines

    def _render_import(self, module: str, symbols: List[str]) -> List[str]:
        default = [s.split(":", 1)[1] for s in symbols if s.startswith("default:")]
        star    = [s.split(":", 1)[1] for s in symbols if s.startswith("*:")]
        named   = [s for s in symbols if ":" not in s]

        if self.python:
            return self._python_import(module, named, star)

        q = self._quote
        out: List[str] = []
        if not symbols:
            side = f"import {q}{module}{q}" if self.esm else f"require({q}{module}{q})"
            return [self.statement(side)]

        for alias in star:
            if self.esm:
                out.append(self.statement(f"import * as {alias} from {q}{module}{q}"))
            else:
                out.append(self.statement(f"const {alias} = require({q}{module}{q})"))

        if self.esm:
            head = ", ".join(default)
            if named:
                one_line = "{ " + ", ".join(named) + " }"
                text = f"import {head + ', ' if head else ''}{one_line} from {q}{module}{q}"
                if len(text) > _LONG_IMPORT:
                    out.append(f"import {head + ', ' if head else ''}{{")
                    out.extend(self._multiline(named))
                    out.append(self.statement(f"}} from {q}{module}{q}"))
                else:
                    out.append(self.statement(text))
            elif head:
                out.append(self.statement(f"import {head} from {q}{module}{q}"))
            return out

        for alias in default:
            out.append(self.statement(f"const {alias} = require({q}{module}{q})"))
        if named:
            text = "const { " + ", ".join(named) + f" }} = require({q}{module}{q})"
            if len(text) > _LONG_IMPORT:
                out.append("const {")
                out.extend(self._multiline(named))
                out.append(self.statement(f"}} = require({q}{module}{q})"))
            else:
                out.append(self.statement(text))
        return out

    def _python_import(self, module: str, named: List[str], star: List[str]) -> List[str]:
        out: List[str] = []
        if not named and not star:
            return [f"import {module}"]
        for alias in star:
            out.append(f"import {module} as {alias}")
        if named:
            text = f"from {module} import {', '.join(named)}"
            if len(text) > _LONG_IMPORT:
                out.append(f"from {module} import (")
                out.extend(self._multiline(named))
                out.append(")")
            else:
                out.append(text)
        return out

    def _multiline(self, names: List[str]) -> List[str]:
        lines = []
        for i, name in enumerate(names):
            last = i == len(names) - 1
            lines.append(f"{self.unit}{name}{self._comma if last else ','}")
        return lines


_PY_TYPES = {
    "string":  "str",
    "number":  "float",
    "boolean": "bool",
    "unknown": "object",
    "void":    "None",
    "Document[]": "list",
}


__all__ = [
    "CodeWriter",
    "Dialect",
    "EnvRef",
    "Expr",
    "bound_names",
    "contains_env",
    "function_name",
    "output_identifier",
    "reserved_names",
    "safe_identifier",
]
