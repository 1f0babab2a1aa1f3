"""Output-parser converters."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Dict, List

from ..context import GenerationContext
from ..errors import ConversionError
from ..fragments import CodeFragment, ImportSpec, Priority
from ..ir import IRNode
from .common import ComponentConverter, Construct, ConverterInfo, InfoMixin, Option, node_fragments

DEFAULT_FIELDS = [{"property": "answer", "description": "answer to the user's question"}]


def _fields(node: IRNode) -> List[Dict[str, str]]:
    raw = node.param("jsonStructure", DEFAULT_FIELDS).value
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ConversionError(f"jsonStructure is not valid JSON: {exc}", node_id=node.id) from exc
    if not isinstance(raw, list):
        raise ConversionError("jsonStructure must be a list of fields", node_id=node.id)

    fields = []
    for entry in raw:
        if not isinstance(entry, dict) or not entry.get("property"):
            raise ConversionError("every jsonStructure entry needs a 'property'", node_id=node.id)
        fields.append({"property": str(entry["property"]), "description": str(entry.get("description", ""))})
    return fields


@dataclass(frozen=True)
class StructuredOutputParserConverter(InfoMixin):
    node_type: str      = "structuredOutputParser"
    category: str       = "output_parser"
    info: ConverterInfo = field(default_factory=ConverterInfo)

    def can_convert(self, node: IRNode) -> bool:
        return True

    def convert(self, node: IRNode, context: GenerationContext) -> List[CodeFragment]:
        dialect = context.dialect
        fields  = _fields(node)
        if dialect.python:
            w = dialect.writer()
            w.writeln("StructuredOutputParser.from_response_schemas([")
            w.push()
            for f in fields:
                w.writeln(
                    f"ResponseSchema(name={dialect.quote(f['property'])}, "
                    f"description={dialect.quote(f['description'])}),"
                )
            w.pop()
            w.writeln("])")
            expr  = w.result()
            specs = [ImportSpec("langchain.output_parsers", ("ResponseSchema", "StructuredOutputParser"))]
        else:
            names = {f["property"]: f["description"] for f in fields}
            expr  = f"StructuredOutputParser.fromNamesAndDescriptions({dialect.literal(names)})"
            specs = [ImportSpec("@langchain/core/output_parsers", ("StructuredOutputParser",))]
        return node_fragments(
            node, specs, self.dependencies(node, context),
            dialect.declare(context.identifier, expr), Priority.UTILITY,
            exported=(context.identifier,),
        )

    def dependencies(self, node: IRNode, context: GenerationContext) -> List[str]:
        return ["langchain"] if context.is_python else ["@langchain/core"]


CONVERTERS = [
    StructuredOutputParserConverter(),
    ComponentConverter(
        node_type="csvOutputParser",
        category="output_parser",
        priority=Priority.UTILITY,
        js=Construct("@langchain/core/output_parsers", "CommaSeparatedListOutputParser", "@langchain/core"),
        py=Construct("langchain_core.output_parsers", "CommaSeparatedListOutputParser", "langchain-core"),
    ),
    ComponentConverter(
        node_type="customListOutputParser",
        category="output_parser",
        priority=Priority.UTILITY,
        js=Construct(
            "@langchain/core/output_parsers", "CustomListOutputParser", "@langchain/core",
            options=(
                Option("length", "length", "int"),
                Option("separator", "separator", default=","),
            ),
        ),
    ),
]
