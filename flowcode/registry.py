"""
flowcode: Converter Registry
============================
A flat dispatch table from node-type identifier to a Converter, plus an
alias table.  The registry knows nothing about node families; it only
stores and looks up.

Converter protocol
------------------
Any object exposing the following satisfies Converter:

    node_type: str                       primary type identifier
    category: str                        coarse family (llm, agent, tool, …)
    can_convert(node) -> bool
    convert(node, context) -> list[CodeFragment]
    dependencies(node, context) -> list[str]
    supported_versions() -> list[str]    "*" means any version
    is_deprecated() -> bool
    replacement_type() -> str | None

A converter may also expose `node_types` (a tuple) to claim several type
identifiers at once.

Lifecycle
---------
    registry = ConverterRegistry.build(converters, aliases)

build() validates everything up front and raises RegistryError on a
duplicate type, an alias that shadows a type, or an alias whose target is
unknown.  The result is read-only; extend() returns a new registry.
"""

from __future__ import annotations

from logging import getLogger
from types import MappingProxyType
from typing import (
    Any,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Protocol,
    Tuple,
    Union,
    runtime_checkable,
)

from .context import GenerationContext
from .errors import RegistryError
from .fragments import CodeFragment
from .ir import IRNode

logger = getLogger(__name__)


@runtime_checkable
class Converter(Protocol):
    node_type: str
    category: str

    def can_convert(self, node: IRNode) -> bool: ...

    def convert(self, node: IRNode, context: GenerationContext) -> List[CodeFragment]: ...

    def dependencies(self, node: IRNode, context: GenerationContext) -> List[str]: ...

    def supported_versions(self) -> List[str]: ...

    def is_deprecated(self) -> bool: ...

    def replacement_type(self) -> Optional[str]: ...


AliasSource = Union[Mapping[str, str], Iterable[Tuple[str, str]]]


def claimed_types(converter: Converter) -> Tuple[str, ...]:
    types = getattr(converter, "node_types", None)
    if types:
        return tuple(types)
    return (converter.node_type,)


def version_supported(converter: Converter, version: Optional[str]) -> bool:
    if version is None:
        return True
    versions = converter.supported_versions()
    return "*" in versions or version in versions


class ConverterRegistry:
    """Immutable node-type → Converter lookup with alias resolution."""

    def __init__(self, converters: Mapping[str, Converter], aliases: Mapping[str, str]):
        self._converters: Mapping[str, Converter] = MappingProxyType(dict(converters))
        self._aliases: Mapping[str, str]          = MappingProxyType(dict(aliases))

    # ── Construction ─────────────────────────────────────────────────────

    @classmethod
    def build(
        cls,
        converters: Iterable[Converter],
        aliases: Optional[AliasSource] = None,
    ) -> "ConverterRegistry":
        table: Dict[str, Converter] = {}
        for conv in converters:
            if not isinstance(conv, Converter):
                raise RegistryError(f"{conv!r} does not implement the Converter protocol")
            for node_type in claimed_types(conv):
                if node_type in table:
                    raise RegistryError(f"duplicate converter for node type '{node_type}'")
                table[node_type] = conv

        pairs = aliases.items() if isinstance(aliases, Mapping) else (aliases or ())
        alias_table: Dict[str, str] = {}
        for alias, target in pairs:
            if alias in table:
                raise RegistryError(f"alias '{alias}' shadows a registered node type")
            if alias in alias_table:
                raise RegistryError(f"duplicate alias '{alias}'")
            if target not in table:
                raise RegistryError(f"alias '{alias}' targets unknown node type '{target}'")
            alias_table[alias] = target

        logger.debug("registry built: %d types, %d aliases", len(table), len(alias_table))
        return cls(table, alias_table)

    def extend(
        self,
        converters: Iterable[Converter] = (),
        aliases: Optional[AliasSource] = None,
    ) -> "ConverterRegistry":
        """Return a new registry with extra converters and aliases."""
        seen: List[Converter] = []
        for conv in self._converters.values():
            if not any(conv is s for s in seen):
                seen.append(conv)
        extra = aliases.items() if isinstance(aliases, Mapping) else (aliases or ())
        return ConverterRegistry.build(
            [*seen, *converters],
            [*self._aliases.items(), *extra],
        )

    # ── Lookup ───────────────────────────────────────────────────────────

    def resolve_type(self, node_type: str) -> Optional[str]:
        if node_type in self._converters:
            return node_type
        return self._aliases.get(node_type)

    def lookup(self, node_type: str) -> Optional[Converter]:
        """Exact type match first, then the alias table."""
        resolved = self.resolve_type(node_type)
        if resolved is None:
            return None
        return self._converters[resolved]

    def has_converter(self, node_type: str) -> bool:
        return self.resolve_type(node_type) is not None

    def __contains__(self, node_type: object) -> bool:
        return isinstance(node_type, str) and self.has_converter(node_type)

    def __len__(self) -> int:
        return len(self._converters)

    def types(self) -> List[str]:
        return sorted(self._converters)

    def aliases(self) -> Dict[str, str]:
        return dict(self._aliases)

    # ── Introspection ────────────────────────────────────────────────────

    def describe(self) -> List[Dict[str, Any]]:
        by_target: Dict[str, List[str]] = {}
        for alias, target in self._aliases.items():
            by_target.setdefault(target, []).append(alias)

        out: List[Dict[str, Any]] = []
        for node_type in self.types():
            conv = self._converters[node_type]
            out.append({
                "type":        node_type,
                "category":    conv.category,
                "aliases":     sorted(by_target.get(node_type, [])),
                "versions":    list(conv.supported_versions()),
                "deprecated":  conv.is_deprecated(),
                "replacement": conv.replacement_type(),
            })
        return out

    def statistics(self) -> Dict[str, Any]:
        categories: Dict[str, int] = {}
        for conv in self._converters.values():
            categories[conv.category] = categories.get(conv.category, 0) + 1
        return {
            "total_converters": len(self._converters),
            "total_aliases":    len(self._aliases),
            "categories":       dict(sorted(categories.items())),
            "deprecated":       sorted(
                t for t, c in self._converters.items() if c.is_deprecated()
            ),
        }


__all__ = [
    "Converter",
    "ConverterRegistry",
    "claimed_types",
    "version_supported",
]
