"""
flowcode
========
Compiles LLM flow graphs (Flowise-style JSON documents) into standalone
TypeScript, JavaScript or Python source built on LangChain.

Pipeline:
    document   →  [ir.build_graph]     →  FlowGraph
    FlowGraph  →  [analyzer.analyze]   →  ConversionReport
    FlowGraph  →  [lowering.lower]     →  CodeFragments
    fragments  →  [emitter.emit]       →  source str + package manifest

Public API
----------
    from flowcode import GenerationContext, convert_flow

    result = convert_flow("flow.json", GenerationContext(target="python"))
    if result.success:
        with open("flow.py", "w") as f:
            f.write(result.source)
"""

from __future__ import annotations

from .analyzer import analyze
from .context import CodeStyle, GenerationContext, ModuleStyle, QuoteStyle, TargetLanguage
from .converters import default_registry
from .document import load_document
from .errors import (
    ConversionError,
    DocumentError,
    FlowcodeError,
    RegistryError,
    UnsupportedTargetError,
)
from .fragments import CodeFragment, FragmentKind, ImportSpec, Priority
from .ir import FlowGraph, build_graph
from .pipeline import ConversionResult, convert_flow, validate_flow
from .registry import Converter, ConverterRegistry
from .report import ConversionReport, Finding, FindingKind, Severity

__version__ = "0.1.0"

__all__ = [
    "CodeFragment",
    "CodeStyle",
    "ConversionError",
    "ConversionReport",
    "ConversionResult",
    "Converter",
    "ConverterRegistry",
    "DocumentError",
    "Finding",
    "FindingKind",
    "FlowGraph",
    "FlowcodeError",
    "FragmentKind",
    "GenerationContext",
    "ImportSpec",
    "ModuleStyle",
    "Priority",
    "QuoteStyle",
    "RegistryError",
    "Severity",
    "TargetLanguage",
    "UnsupportedTargetError",
    "analyze",
    "build_graph",
    "convert_flow",
    "default_registry",
    "load_document",
    "validate_flow",
]
