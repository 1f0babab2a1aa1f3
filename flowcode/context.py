"""
flowcode: Generation Context
============================
GenerationContext is the immutable configuration threaded through every
converter call: target language, module style, feature toggles, a
passthrough environment map and code-style preferences.

The caller builds one per conversion run.  The lowering engine derives a
per-node view with for_node(); deriving copies, it never mutates.

Environment configuration
-------------------------
GenerationContext.from_env() reads a .env file (python-dotenv) and the
process environment:

    FLOWCODE_TARGET            typescript | javascript | python
    FLOWCODE_MODULE_STYLE      esm | cjs
    FLOWCODE_TRACING           true/false
    FLOWCODE_INCLUDE_TESTS     true/false
    FLOWCODE_INCLUDE_DOCS      true/false
    FLOWCODE_INDENT            integer
    FLOWCODE_QUOTES            single | double
    FLOWCODE_SEMICOLONS        true/false
    FLOWCODE_TRAILING_COMMAS   true/false
    FLOWCODE_PROJECT           project name used in headers and manifests
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple, TYPE_CHECKING

from dotenv import load_dotenv

from .errors import ConfigurationError, ConversionError

if TYPE_CHECKING:
    from .ir import IRNode
    from .targets import Dialect


class TargetLanguage(Enum):
    TYPESCRIPT = "typescript"
    JAVASCRIPT = "javascript"
    PYTHON     = "python"

    @property
    def is_js(self) -> bool:
        return self is not TargetLanguage.PYTHON


class ModuleStyle(Enum):
    ESM = "esm"
    CJS = "cjs"


class QuoteStyle(Enum):
    SINGLE = "single"
    DOUBLE = "double"


@dataclass(frozen=True)
class CodeStyle:
    indent_size: Optional[int] = None   # None → 4 for Python, 2 otherwise
    quotes: QuoteStyle         = QuoteStyle.SINGLE
    semicolons: bool           = True
    trailing_commas: bool      = True


# ── Per-node binding ─────────────────────────────────────────────────────────

@dataclass(frozen=True)
class NodeBinding:
    """The identifiers a single node is lowered with."""
    node_id: str
    identifier: str
    # anchor name → identifiers of the connected source nodes, in document order
    inputs: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)
    # anchor name → the source nodes themselves, aligned with `inputs`
    sources: Mapping[str, Tuple["IRNode", ...]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "inputs", MappingProxyType(dict(self.inputs)))
        object.__setattr__(self, "sources", MappingProxyType(dict(self.sources)))


# ── Context ──────────────────────────────────────────────────────────────────

def _frozen_env(env: Optional[Mapping[str, str]]) -> Mapping[str, str]:
    return MappingProxyType({str(k): str(v) for k, v in (env or {}).items()})


def _choice(environ: Mapping[str, str], key: str, enum_cls: Any, default: Enum) -> Any:
    raw = environ.get(key)
    if not raw:
        return default
    try:
        return enum_cls(raw.strip().lower())
    except ValueError as exc:
        allowed = " | ".join(m.value for m in enum_cls)
        raise ConfigurationError(f"{key}={raw!r} is not one of {allowed}") from exc


@dataclass(frozen=True)
class GenerationContext:
    target: TargetLanguage          = TargetLanguage.TYPESCRIPT
    module_style: ModuleStyle       = ModuleStyle.ESM
    include_tracing: bool           = False
    include_tests: bool             = False
    include_docs: bool              = True
    environment: Mapping[str, str]  = field(default_factory=dict)
    code_style: CodeStyle           = field(default_factory=CodeStyle)
    project_name: str               = "flow"
    binding: Optional[NodeBinding]  = None

    def __post_init__(self) -> None:
        if isinstance(self.target, str):
            object.__setattr__(self, "target", TargetLanguage(self.target))
        if isinstance(self.module_style, str):
            object.__setattr__(self, "module_style", ModuleStyle(self.module_style))
        object.__setattr__(self, "environment", _frozen_env(self.environment))

    # ── Derived views ────────────────────────────────────────────────────

    def for_node(self, binding: NodeBinding) -> "GenerationContext":
        return replace(self, binding=binding)

    @property
    def dialect(self) -> "Dialect":
        from .targets import Dialect
        return Dialect(self)

    @property
    def indent_size(self) -> int:
        if self.code_style.indent_size is not None:
            return self.code_style.indent_size
        return 4 if self.target is TargetLanguage.PYTHON else 2

    @property
    def is_python(self) -> bool:
        return self.target is TargetLanguage.PYTHON

    @property
    def is_typescript(self) -> bool:
        return self.target is TargetLanguage.TYPESCRIPT

    @property
    def uses_esm(self) -> bool:
        return self.target.is_js and self.module_style is ModuleStyle.ESM

    # ── Binding access (converters) ──────────────────────────────────────

    def _require_binding(self) -> NodeBinding:
        if self.binding is None:
            raise ConversionError("context has no node binding")
        return self.binding

    @property
    def identifier(self) -> str:
        return self._require_binding().identifier

    def references(self, anchor_name: str) -> Tuple[str, ...]:
        """Identifiers wired into an input anchor, in document order."""
        return tuple(self._require_binding().inputs.get(anchor_name, ()))

    def reference(self, anchor_name: str, required: bool = True) -> Optional[str]:
        refs = self.references(anchor_name)
        if refs:
            return refs[0]
        if required:
            binding = self._require_binding()
            raise ConversionError(
                f"input '{anchor_name}' is not connected", node_id=binding.node_id
            )
        return None

    def source_nodes(self, anchor_name: str) -> Tuple["IRNode", ...]:
        """Nodes wired into an input anchor, aligned with references()."""
        return tuple(self._require_binding().sources.get(anchor_name, ()))

    # ── Serialisation / configuration ────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target":          self.target.value,
            "module_style":    self.module_style.value,
            "include_tracing": self.include_tracing,
            "include_tests":   self.include_tests,
            "include_docs":    self.include_docs,
            "environment":     dict(self.environment),
            "indent_size":     self.indent_size,
            "quotes":          self.code_style.quotes.value,
            "semicolons":      self.code_style.semicolons,
            "trailing_commas": self.code_style.trailing_commas,
            "project_name":    self.project_name,
        }

    @classmethod
    def from_env(
        cls,
        env_file: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None,
        **overrides: Any,
    ) -> "GenerationContext":
        """
        Build a context from FLOWCODE_* variables.

        Keyword overrides win over the environment; None overrides are ignored
        so CLI flags that were not given fall through.
        """
        if environ is None:
            load_dotenv(env_file)
            environ = os.environ

        def flag(key: str, default: bool) -> bool:
            raw = environ.get(key)
            if raw is None or raw == "":
                return default
            return raw.strip().lower() in ("1", "true", "yes", "on")

        indent = environ.get("FLOWCODE_INDENT")
        style = CodeStyle(
            indent_size=int(indent) if indent and indent.isdigit() else None,
            quotes=_choice(environ, "FLOWCODE_QUOTES", QuoteStyle, QuoteStyle.SINGLE),
            semicolons=flag("FLOWCODE_SEMICOLONS", True),
            trailing_commas=flag("FLOWCODE_TRAILING_COMMAS", True),
        )

        values: Dict[str, Any] = {
            "target":          _choice(environ, "FLOWCODE_TARGET", TargetLanguage, TargetLanguage.TYPESCRIPT),
            "module_style":    _choice(environ, "FLOWCODE_MODULE_STYLE", ModuleStyle, ModuleStyle.ESM),
            "include_tracing": flag("FLOWCODE_TRACING", False),
            "include_tests":   flag("FLOWCODE_INCLUDE_TESTS", False),
            "include_docs":    flag("FLOWCODE_INCLUDE_DOCS", True),
            "code_style":      style,
            "project_name":    environ.get("FLOWCODE_PROJECT") or "flow",
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


__all__ = [
    "CodeStyle",
    "GenerationContext",
    "ModuleStyle",
    "NodeBinding",
    "QuoteStyle",
    "TargetLanguage",
]
