"""
Agent converters
================
Agent construction is asynchronous in LangChain.js (hub prompts, agent
factories), so every agent lowers to a lazily-initialised executor:

  DECLARATION `let <id>Executor` cache
  AGENT       `build<Id>()` async factory
  EXECUTION   `run<Id>(message)` awaiting the factory, then invoking

Python follows the same shape with a module-level cache and `build_<id>()`.

Tool references are passed in document order of the tool nodes, which the
lowering engine guarantees for list anchors.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..context import GenerationContext
from ..fragments import CodeFragment, FragmentKind, ImportSpec, Priority
from ..ir import IRNode
from ..targets import CodeWriter, Dialect, Expr, function_name
from .chain import MODEL_ANCHORS
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

DEFAULT_SYSTEM = "You are a helpful AI assistant."


@dataclass(frozen=True)
class AgentFlavor:
    js_factory: str
    py_factory: str
    hub_prompt: Optional[str] = None   # pulled from the LangChain hub instead of built inline


def _cache_name(context: GenerationContext) -> str:
    if context.is_python:
        return f"_{context.identifier}_executor"
    return f"{context.identifier}Executor"


def _chat_prompt_lines(dialect: Dialect, system: str, with_memory: bool) -> List[str]:
    w = dialect.writer()
    factory = "from_messages" if dialect.python else "fromMessages"
    w.writeln(f"ChatPromptTemplate.{factory}([")
    w.push()
    w.writeln(f"[{dialect.quote('system')}, {dialect.literal(system)}],")
    if with_memory:
        if dialect.python:
            w.writeln('MessagesPlaceholder("chat_history", optional=True),')
        else:
            w.writeln(f"new MessagesPlaceholder({dialect.quote('chat_history')}),")
    w.writeln(f"[{dialect.quote('human')}, {dialect.quote('{input}')}],")
    if dialect.python:
        w.writeln('MessagesPlaceholder("agent_scratchpad"),')
    else:
        w.writeln(f"new MessagesPlaceholder({dialect.quote('agent_scratchpad')}),")
    w.pop()
    w.writeln("])")
    return w.lines()


@dataclass(frozen=True)
class AgentConverter(InfoMixin):
    node_type: str
    flavor: AgentFlavor
    category: str       = "agent"
    info: ConverterInfo = field(default_factory=ConverterInfo)

    def can_convert(self, node: IRNode) -> bool:
        return True

    # ── Shared pieces ────────────────────────────────────────────────────

    def _imports(self, context: GenerationContext, memory: bool) -> List[ImportSpec]:
        f = self.flavor
        if context.is_python:
            specs = [ImportSpec("langchain.agents", tuple(sorted({"AgentExecutor", f.py_factory})))]
            if f.hub_prompt:
                specs.append(ImportSpec("langchain", ("hub",)))
            else:
                specs.append(ImportSpec("langchain_core.prompts", ("ChatPromptTemplate", "MessagesPlaceholder")))
            return specs
        specs = [ImportSpec("langchain/agents", tuple(sorted({"AgentExecutor", f.js_factory})))]
        if f.hub_prompt:
            specs.append(ImportSpec("langchain/hub", ("pull",)))
        else:
            specs.append(ImportSpec("@langchain/core/prompts", ("ChatPromptTemplate", "MessagesPlaceholder")))
        return specs

    def _executor_options(self, node: IRNode, memory: Optional[str]) -> Dict[str, object]:
        options: Dict[str, object] = {
            "agent": Expr("agent"),
            "tools": Expr("tools"),
        }
        if memory:
            options["memory"] = Expr(memory)
        options["maxIterations"]           = node.param("maxIterations", 15).as_int(15)
        options["verbose"]                 = node.param("verbose", False).as_bool()
        options["returnIntermediateSteps"] = node.param("returnIntermediateSteps", False).as_bool()
        return options

    # ── Rendering ────────────────────────────────────────────────────────

    def _declaration(self, node: IRNode, context: GenerationContext) -> CodeFragment:
        dialect = context.dialect
        cache   = _cache_name(context)
        builder = function_name("build", context.identifier, python=dialect.python)
        if dialect.python:
            decl = f"{cache} = None"
        elif dialect.ts:
            decl = dialect.statement(f"let {cache}: AgentExecutor | undefined")
        else:
            decl = dialect.statement(f"let {cache}")
        return CodeFragment(
            id=f"{node.id}:cache",
            kind=FragmentKind.DECLARATION,
            content=f"{dialect.comment(f'Set by {builder}() on first use.')}\n{decl}",
            source_node_id=node.id,
            priority=Priority.AGENT,
        )

    def _render_js(self, node: IRNode, context: GenerationContext, model: str,
                   tools: List[str], memory: Optional[str]) -> str:
        dialect = context.dialect
        ident   = context.identifier
        cache   = _cache_name(context)
        builder = function_name("build", ident)
        system  = node.param("systemMessage", DEFAULT_SYSTEM).as_str()

        body = dialect.writer()
        body.writeln(dialect.statement(f"if ({cache}) return {cache}"))
        body.writeln(dialect.statement(f"const tools = {dialect.array(tools)}"))
        if self.flavor.hub_prompt:
            generic = "<ChatPromptTemplate>" if dialect.ts else ""
            body.writeln(dialect.statement(
                f"const prompt = await pull{generic}({dialect.quote(self.flavor.hub_prompt)})"
            ))
        else:
            prompt = _chat_prompt_lines(dialect, system, memory is not None)
            prompt[0] = f"const prompt = {prompt[0]}"
            prompt[-1] = dialect.statement(prompt[-1])
            body.extend(prompt)
        body.writeln(dialect.statement(
            f"const agent = await {self.flavor.js_factory}({{ llm: {model}, tools, prompt }})"
        ))
        executor = dialect.new("AgentExecutor", self._executor_options(node, memory))
        body.writeln(dialect.statement(f"{cache} = {executor}"))
        body.writeln(dialect.statement(f"return {cache}"))

        return "\n".join(dialect.function(builder, [], body.lines(), returns="AgentExecutor", exported=False))

    def _render_py(self, node: IRNode, context: GenerationContext, model: str,
                   tools: List[str], memory: Optional[str]) -> str:
        dialect = context.dialect
        ident   = context.identifier
        cache   = _cache_name(context)
        builder = function_name("build", ident, python=True)
        system  = node.param("systemMessage", DEFAULT_SYSTEM).as_str()

        options = self._executor_options(node, memory)
        py_opts = {
            "agent":                     options["agent"],
            "tools":                     options["tools"],
            "memory":                    options.get("memory"),
            "max_iterations":            options["maxIterations"],
            "verbose":                   options["verbose"],
            "return_intermediate_steps": options["returnIntermediateSteps"],
        }

        body = CodeWriter(unit=dialect.unit)
        body.writeln(f"global {cache}")
        body.writeln(f"if {cache} is None:")
        body.push()
        body.writeln(f"tools = {dialect.array(tools)}")
        if self.flavor.hub_prompt:
            body.writeln(f"prompt = hub.pull({dialect.quote(self.flavor.hub_prompt)})")
        else:
            prompt = _chat_prompt_lines(dialect, system, memory is not None)
            prompt[0] = f"prompt = {prompt[0]}"
            body.extend(prompt)
        body.writeln(f"agent = {self.flavor.py_factory}({model}, tools, prompt)")
        executor = dialect.new("AgentExecutor", py_opts).splitlines()
        executor[0] = f"{cache} = {executor[0]}"
        body.extend(executor)
        body.pop()
        body.writeln(f"return {cache}")

        return "\n".join(dialect.function(builder, [], body.lines(), returns="AgentExecutor"))

    def _run(self, node: IRNode, context: GenerationContext) -> CodeFragment:
        dialect = context.dialect
        ident   = context.identifier
        name    = run_function_name(context)
        builder = function_name("build", ident, python=dialect.python)
        cfg     = tracing_config(dialect) if context.include_tracing else ""
        payload = dialect.literal({"input": Expr("message")})
        if dialect.python:
            body = [
                f"executor = await {builder}()",
                f"result = await executor.ainvoke({payload}{cfg})",
                'return result["output"]',
            ]
        else:
            body = [
                dialect.statement(f"const executor = await {builder}()"),
                dialect.statement(f"const result = await executor.invoke({payload}{cfg})"),
                dialect.statement("return result.output"),
            ]
        lines = dialect.function(name, [("message", "string")], body, returns="string")
        return execution_fragment(node, name, lines)

    # ── Converter protocol ───────────────────────────────────────────────

    def convert(self, node: IRNode, context: GenerationContext) -> List[CodeFragment]:
        model  = require_reference(context, *MODEL_ANCHORS)
        tools  = list(context.references("tools"))
        memory = first_reference(context, "memory")

        if context.is_python:
            content = self._render_py(node, context, model, tools, memory)
        else:
            content = self._render_js(node, context, model, tools, memory)

        frags = node_fragments(
            node,
            self._imports(context, memory is not None),
            self.dependencies(node, context),
            content,
            Priority.AGENT,
            exported=(function_name("build", context.identifier, python=context.is_python),),
        )
        frags.insert(len(frags) - 1, self._declaration(node, context))
        frags.append(self._run(node, context))
        return frags

    def dependencies(self, node: IRNode, context: GenerationContext) -> List[str]:
        if context.is_python:
            return ["langchain", "langchain-core"]
        return ["langchain", "@langchain/core"]


_TOOL_CALLING = AgentFlavor("createToolCallingAgent", "create_tool_calling_agent")

CONVERTERS = [
    AgentConverter("toolAgent", _TOOL_CALLING),
    AgentConverter("agentExecutor", _TOOL_CALLING),
    AgentConverter("openAIToolAgent", AgentFlavor("createOpenAIToolsAgent", "create_openai_tools_agent")),
    AgentConverter(
        "openAIFunctionAgent",
        AgentFlavor("createOpenAIFunctionsAgent", "create_openai_functions_agent"),
    ),
    AgentConverter(
        "structuredChatAgent",
        AgentFlavor(
            "createStructuredChatAgent", "create_structured_chat_agent",
            hub_prompt="hwchase17/structured-chat-agent",
        ),
    ),
    AgentConverter(
        "conversationalAgent",
        _TOOL_CALLING,
        info=ConverterInfo(versions=("1.0", "2.0"), deprecated=True, replacement="toolAgent"),
    ),
    AgentConverter(
        "mrklAgentChat",
        AgentFlavor("createReactAgent", "create_react_agent", hub_prompt="hwchase17/react"),
        info=ConverterInfo(versions=("1.0", "2.0"), deprecated=True, replacement="toolAgent"),
    ),
]
