"""
Chain converters
================
Every chain lowers to two body fragments:

  CHAIN      the chain object itself
  EXECUTION  an exported `run<Name>(message)` function invoking it

The invoke payload and the result field differ per chain type; both are
described by ChainShape.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional

from ..context import GenerationContext
from ..fragments import CodeFragment, ImportSpec, Priority
from ..ir import IRNode
from ..targets import Dialect, Expr
from .common import (
    ConverterInfo,
    InfoMixin,
    execution_fragment,
    first_reference,
    node_fragments,
    require_reference,
    run_function_name,
    tracing_config,
)
from .prompt import prompt_variables

MODEL_ANCHORS = ("model", "llm")


@dataclass(frozen=True)
class ChainShape:
    payload_key: str                  # key the user message is sent under
    js_result: str                    # JS expression over `result`
    py_result: str                    # Python expression over `result`


def run_function(
    node: IRNode,
    context: GenerationContext,
    target: str,
    shape: ChainShape,
    payload_extra: Optional[Dict[str, object]] = None,
) -> CodeFragment:
    """Exported async function that invokes `target` with the user message."""
    dialect = context.dialect
    name = run_function_name(context)
    payload: Dict[str, object] = {shape.payload_key: Expr("message")}
    payload.update(payload_extra or {})
    cfg = tracing_config(dialect) if context.include_tracing else ""

    if dialect.python:
        body = [
            f"result = await {target}.ainvoke({dialect.literal(payload)}{cfg})",
            f"return {shape.py_result}",
        ]
    else:
        body = [
            dialect.statement(f"const result = await {target}.invoke({dialect.literal(payload)}{cfg})"),
            dialect.statement(f"return {shape.js_result}"),
        ]
    lines = dialect.function(name, [("message", "string")], body, returns="string")
    return execution_fragment(node, name, lines)


def _packages(context: GenerationContext, *extra: str) -> List[str]:
    if context.is_python:
        return ["langchain", "langchain-core", *extra]
    return ["langchain", "@langchain/core", *extra]


# ── LLM chain (prompt | model | parser) ──────────────────────────────────────

_STRING_RESULT = ChainShape(
    payload_key="input",
    js_result="typeof result === 'string' ? result : JSON.stringify(result)",
    py_result="result if isinstance(result, str) else str(result)",
)


def _payload_key(context: GenerationContext) -> str:
    """The wired prompt's input variable when it has exactly one, else `input`."""
    variables = [v for src in context.source_nodes("prompt") for v in prompt_variables(src)]
    return variables[0] if len(variables) == 1 else "input"


@dataclass(frozen=True)
class LLMChainConverter(InfoMixin):
    node_type: str      = "llmChain"
    category: str       = "chain"
    info: ConverterInfo = field(default_factory=ConverterInfo)

    def can_convert(self, node: IRNode) -> bool:
        return True

    def convert(self, node: IRNode, context: GenerationContext) -> List[CodeFragment]:
        dialect = context.dialect
        model   = require_reference(context, *MODEL_ANCHORS)
        prompt  = require_reference(context, "prompt")
        parser  = first_reference(context, "outputParser")
        ident   = context.identifier

        specs: List[ImportSpec] = []
        if parser is None:
            if dialect.python:
                parser = "StrOutputParser()"
                specs.append(ImportSpec("langchain_core.output_parsers", ("StrOutputParser",)))
            else:
                parser = "new StringOutputParser()"
                specs.append(ImportSpec("@langchain/core/output_parsers", ("StringOutputParser",)))

        if dialect.python:
            expr = f"{prompt} | {model} | {parser}"
        else:
            expr = f"{prompt}.pipe({model}).pipe({parser})"

        packages = ["langchain-core"] if dialect.python else ["@langchain/core"]
        frags = node_fragments(
            node, specs, packages, dialect.declare(ident, expr), Priority.CHAIN,
            exported=(ident,),
        )
        shape = replace(_STRING_RESULT, payload_key=_payload_key(context))
        frags.append(run_function(node, context, ident, shape))
        return frags

    def dependencies(self, node: IRNode, context: GenerationContext) -> List[str]:
        return ["langchain-core"] if context.is_python else ["@langchain/core"]


# ── Conversation chain ───────────────────────────────────────────────────────

_CONVERSATION = ChainShape(
    payload_key="input",
    js_result="result.response",
    py_result='result["response"]',
)


@dataclass(frozen=True)
class ConversationChainConverter(InfoMixin):
    node_type: str      = "conversationChain"
    category: str       = "chain"
    info: ConverterInfo = field(default_factory=ConverterInfo)

    def can_convert(self, node: IRNode) -> bool:
        return True

    def convert(self, node: IRNode, context: GenerationContext) -> List[CodeFragment]:
        dialect = context.dialect
        options: Dict[str, object] = {"llm": Expr(require_reference(context, *MODEL_ANCHORS))}
        memory = first_reference(context, "memory")
        prompt = first_reference(context, "chatPromptTemplate", "prompt")
        if memory:
            options["memory"] = Expr(memory)
        if prompt:
            options["prompt"] = Expr(prompt)

        module = "langchain.chains" if dialect.python else "langchain/chains"
        ident  = context.identifier
        body   = dialect.declare(ident, dialect.new("ConversationChain", options))
        frags  = node_fragments(
            node, [ImportSpec(module, ("ConversationChain",))], _packages(context),
            body, Priority.CHAIN, exported=(ident,),
        )
        frags.append(run_function(node, context, ident, _CONVERSATION))
        return frags

    def dependencies(self, node: IRNode, context: GenerationContext) -> List[str]:
        return _packages(context)


# ── Retrieval QA chains ──────────────────────────────────────────────────────

_RETRIEVAL_QA = ChainShape(
    payload_key="query",
    js_result="result.text",
    py_result='result["result"]',
)

_CONVERSATIONAL_QA = ChainShape(
    payload_key="question",
    js_result="result.text",
    py_result='result["answer"]',
)

RETRIEVER_ANCHORS = ("vectorStoreRetriever", "retriever")


def _retrieval_expr(dialect: Dialect, cls: str, model: str, retriever: str, memory: Optional[str]) -> str:
    if dialect.python:
        factory = "from_chain_type" if cls == "RetrievalQA" else "from_llm"
        options: Dict[str, object] = {"llm": Expr(model), "retriever": Expr(retriever)}
        if memory:
            options["memory"] = Expr(memory)
        return dialect.call(f"{cls}.{factory}", options)
    extra = {"memory": Expr(memory)} if memory else {}
    return dialect.call(f"{cls}.fromLLM", extra, model, retriever)


@dataclass(frozen=True)
class RetrievalQAChainConverter(InfoMixin):
    node_type: str      = "retrievalQAChain"
    category: str       = "chain"
    conversational: bool = False
    info: ConverterInfo = field(default_factory=ConverterInfo)

    def can_convert(self, node: IRNode) -> bool:
        return True

    def _class(self, context: GenerationContext) -> str:
        if self.conversational:
            return "ConversationalRetrievalChain" if context.is_python else "ConversationalRetrievalQAChain"
        return "RetrievalQA" if context.is_python else "RetrievalQAChain"

    def convert(self, node: IRNode, context: GenerationContext) -> List[CodeFragment]:
        dialect   = context.dialect
        model     = require_reference(context, *MODEL_ANCHORS)
        retriever = require_reference(context, *RETRIEVER_ANCHORS)
        memory    = first_reference(context, "memory") if self.conversational else None
        cls       = self._class(context)
        module    = "langchain.chains" if dialect.python else "langchain/chains"
        ident     = context.identifier

        body  = dialect.declare(ident, _retrieval_expr(dialect, cls, model, retriever, memory))
        frags = node_fragments(
            node, [ImportSpec(module, (cls,))], _packages(context),
            body, Priority.CHAIN, exported=(ident,),
        )

        shape = _CONVERSATIONAL_QA if self.conversational else _RETRIEVAL_QA
        extra = {"chat_history": []} if self.conversational and memory is None else None
        frags.append(run_function(node, context, ident, shape, extra))
        return frags

    def dependencies(self, node: IRNode, context: GenerationContext) -> List[str]:
        return _packages(context)


CONVERTERS = [
    LLMChainConverter(),
    ConversationChainConverter(),
    RetrievalQAChainConverter(),
    RetrievalQAChainConverter(node_type="conversationalRetrievalQAChain", conversational=True),
]
