"""
flowcode: Code Fragments
========================
A CodeFragment is one unit of generated output plus the metadata the
emitter needs to place it: its kind, its priority bucket, the imports it
relies on and the packages it pulls in.

Priority buckets
----------------
Body fragments are ordered by bucket first, then by the emission index of
the node that produced them.  Cross-cutting fragments (no source node) sort
first inside their bucket.

    IMPORT         0
    CONFIGURATION  100   env loading, passthrough, tracing handler
    CACHE          150
    MODEL          200   LLMs, chat models, embeddings
    DATA           300   document loaders, text splitters
    STORE          400   vector stores, retrievers, memory
    UTILITY        500   tools, prompts, output parsers
    CHAIN          600
    AGENT          700
    EXECUTION      800   exported run functions
    EXPORTS        900   CommonJS exports, Python entry point
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Iterable, Optional, Tuple


class FragmentKind(Enum):
    IMPORT         = "import"
    DECLARATION    = "declaration"
    INITIALIZATION = "initialization"
    EXECUTION      = "execution"


class Priority(IntEnum):
    IMPORT        = 0
    CONFIGURATION = 100
    CACHE         = 150
    MODEL         = 200
    DATA          = 300
    STORE         = 400
    UTILITY       = 500
    CHAIN         = 600
    AGENT         = 700
    EXECUTION     = 800
    EXPORTS       = 900


@dataclass(frozen=True)
class ImportSpec:
    """
    One module import.

    `symbols` empty means a side-effect import (`import "dotenv/config"`).
    A symbol of the form "*" or "default:<name>" is rendered by the target
    dialect as a namespace or default import.
    """
    module: str
    symbols: Tuple[str, ...] = ()

    @property
    def is_relative(self) -> bool:
        return self.module.startswith(".")


@dataclass(frozen=True)
class CodeFragment:
    id: str
    kind: FragmentKind
    content: str                          = ""
    required_packages: Tuple[str, ...]    = ()
    source_node_id: Optional[str]         = None
    priority: int                         = Priority.UTILITY
    exported_names: Tuple[str, ...]       = ()
    import_specs: Tuple[ImportSpec, ...]  = ()
    # Position of the source node in emission order; set by the lowering
    # engine, None for cross-cutting fragments.
    emission_index: Optional[int]         = None

    @property
    def is_import(self) -> bool:
        return self.kind is FragmentKind.IMPORT


def import_fragment(
    fragment_id: str,
    specs: Iterable[ImportSpec],
    packages: Iterable[str] = (),
    source_node_id: Optional[str] = None,
) -> CodeFragment:
    return CodeFragment(
        id=fragment_id,
        kind=FragmentKind.IMPORT,
        required_packages=tuple(packages),
        source_node_id=source_node_id,
        priority=Priority.IMPORT,
        import_specs=tuple(specs),
    )


__all__ = [
    "CodeFragment",
    "FragmentKind",
    "ImportSpec",
    "Priority",
    "import_fragment",
]
