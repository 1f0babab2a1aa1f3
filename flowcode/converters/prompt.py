"""Prompt-template converters."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List

from ..context import GenerationContext
from ..fragments import CodeFragment, ImportSpec, Priority
from ..ir import IRNode
from .common import (
    ComponentConverter,
    Construct,
    ConverterInfo,
    InfoMixin,
    Option,
    Wire,
    node_fragments,
)

DEFAULT_TEMPLATE = "{input}"
DEFAULT_SYSTEM   = "You are a helpful assistant."

# parameters of the prompt nodes that hold template text
_TEMPLATE_PARAMS = ("template", "systemMessagePrompt", "humanMessagePrompt")

_VARIABLE_RE = re.compile(r"(?<!\{)\{([A-Za-z_][A-Za-z0-9_]*)\}(?!\})")


def template_variables(template: str) -> List[str]:
    """Placeholders of an f-string style template, first-seen order; `{{x}}` is literal."""
    found: List[str] = []
    for name in _VARIABLE_RE.findall(template):
        if name not in found:
            found.append(name)
    return found


def prompt_variables(node: IRNode) -> List[str]:
    """Input variables of a prompt node, read off whichever template parameters it sets."""
    found: List[str] = []
    for param in _TEMPLATE_PARAMS:
        value = node.param(param)
        if not value.present:
            continue
        for name in template_variables(value.as_str()):
            if name not in found:
                found.append(name)
    return found


def _core(context: GenerationContext) -> tuple:
    if context.is_python:
        return "langchain_core.prompts", "langchain-core"
    return "@langchain/core/prompts", "@langchain/core"


@dataclass(frozen=True)
class PromptTemplateConverter(InfoMixin):
    node_type: str      = "promptTemplate"
    category: str       = "prompt"
    info: ConverterInfo = field(default_factory=ConverterInfo)

    def can_convert(self, node: IRNode) -> bool:
        return True

    def convert(self, node: IRNode, context: GenerationContext) -> List[CodeFragment]:
        dialect = context.dialect
        module, package = _core(context)
        template = node.param("template", DEFAULT_TEMPLATE).as_str(DEFAULT_TEMPLATE)
        factory = "from_template" if context.is_python else "fromTemplate"
        expr = f"PromptTemplate.{factory}({dialect.literal(template)})"
        return node_fragments(
            node,
            [ImportSpec(module, ("PromptTemplate",))],
            [package],
            dialect.declare(context.identifier, expr),
            Priority.UTILITY,
            exported=(context.identifier,),
        )

    def dependencies(self, node: IRNode, context: GenerationContext) -> List[str]:
        return [_core(context)[1]]


@dataclass(frozen=True)
class ChatPromptTemplateConverter(InfoMixin):
    node_type: str      = "chatPromptTemplate"
    category: str       = "prompt"
    info: ConverterInfo = field(default_factory=ConverterInfo)

    def can_convert(self, node: IRNode) -> bool:
        return True

    def convert(self, node: IRNode, context: GenerationContext) -> List[CodeFragment]:
        dialect = context.dialect
        module, package = _core(context)
        system = node.param("systemMessagePrompt", DEFAULT_SYSTEM).as_str()
        human  = node.param("humanMessagePrompt", DEFAULT_TEMPLATE).as_str()

        w = dialect.writer()
        factory = "from_messages" if context.is_python else "fromMessages"
        w.writeln(f"ChatPromptTemplate.{factory}([")
        w.push()
        w.writeln(f"[{dialect.quote('system')}, {dialect.literal(system)}],")
        w.writeln(f"[{dialect.quote('human')}, {dialect.literal(human)}],")
        w.pop()
        w.writeln("])")
        return node_fragments(
            node,
            [ImportSpec(module, ("ChatPromptTemplate",))],
            [package],
            dialect.declare(context.identifier, w.result()),
            Priority.UTILITY,
            exported=(context.identifier,),
        )

    def dependencies(self, node: IRNode, context: GenerationContext) -> List[str]:
        return [_core(context)[1]]


FEW_SHOT = ComponentConverter(
    node_type="fewShotPromptTemplate",
    category="prompt",
    priority=Priority.UTILITY,
    js=Construct(
        "@langchain/core/prompts", "FewShotPromptTemplate", "@langchain/core",
        options=(
            Option("examples", "examples", "json", default=[]),
            Option("prefix", "prefix"),
            Option("suffix", "suffix", default=DEFAULT_TEMPLATE),
            Option("exampleSeparator", "exampleSeparator", default="\n\n"),
            Option("inputVariables", "inputVariables", "list", default=["input"]),
        ),
        wires=(Wire("examplePrompt", "examplePrompt", required=True),),
    ),
    py=Construct(
        "langchain_core.prompts", "FewShotPromptTemplate", "langchain-core",
        options=(
            Option("examples", "examples", "json", default=[]),
            Option("prefix", "prefix"),
            Option("suffix", "suffix", default=DEFAULT_TEMPLATE),
            Option("exampleSeparator", "example_separator", default="\n\n"),
            Option("inputVariables", "input_variables", "list", default=["input"]),
        ),
        wires=(Wire("examplePrompt", "example_prompt", required=True),),
    ),
)


CONVERTERS = [PromptTemplateConverter(), ChatPromptTemplateConverter(), FEW_SHOT]
