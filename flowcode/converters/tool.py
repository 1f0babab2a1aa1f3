"""
Tool converters
===============
Most tools are plain constructions handled by ComponentConverter.  The
hand-written converters cover tools whose Python rendering is a decorated
function or a wrapper object, and tools that embed user code.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ..context import GenerationContext
from ..errors import UnsupportedTargetError
from ..fragments import CodeFragment, ImportSpec, Priority
from ..ir import IRNode
from ..targets import Expr
from .common import (
    ComponentConverter,
    Construct,
    ConverterInfo,
    InfoMixin,
    Option,
    build_options,
    node_fragments,
    require_reference,
)


# ── Calculator ───────────────────────────────────────────────────────────────

_CALCULATOR_DOC = '"""Evaluate a simple Python maths expression e.g. \'2 + 3 * 4\'."""'


@dataclass(frozen=True)
class CalculatorConverter(InfoMixin):
    node_type: str      = "calculator"
    category: str       = "tool"
    info: ConverterInfo = field(default_factory=ConverterInfo)

    def can_convert(self, node: IRNode) -> bool:
        return True

    def convert(self, node: IRNode, context: GenerationContext) -> List[CodeFragment]:
        dialect = context.dialect
        ident   = context.identifier
        if not dialect.python:
            return node_fragments(
                node,
                [ImportSpec("@langchain/community/tools/calculator", ("Calculator",))],
                self.dependencies(node, context),
                dialect.declare(ident, dialect.new("Calculator")),
                Priority.UTILITY,
                exported=(ident,),
            )

        w = dialect.writer()
        w.writeln('@tool("calculator")')
        w.writeln(f"def {ident}(expression: str) -> str:")
        w.push()
        w.writeln(_CALCULATOR_DOC)
        w.writeln("try:")
        w.push().writeln('return str(eval(expression, {"__builtins__": {}}, {}))').pop()
        w.writeln("except Exception as exc:")
        w.push().writeln('return f"Error: {exc}"').pop()
        w.pop()
        return node_fragments(
            node,
            [ImportSpec("langchain_core.tools", ("tool",))],
            self.dependencies(node, context),
            w.result(),
            Priority.UTILITY,
            exported=(ident,),
        )

    def dependencies(self, node: IRNode, context: GenerationContext) -> List[str]:
        return ["langchain-core"] if context.is_python else ["@langchain/community"]


# ── Custom (user code) tool ──────────────────────────────────────────────────

@dataclass(frozen=True)
class CustomToolConverter(InfoMixin):
    node_type: str      = "customTool"
    category: str       = "tool"
    info: ConverterInfo = field(default_factory=ConverterInfo)

    def can_convert(self, node: IRNode) -> bool:
        return True

    def convert(self, node: IRNode, context: GenerationContext) -> List[CodeFragment]:
        if context.is_python:
            raise UnsupportedTargetError(
                "customTool embeds JavaScript source and cannot be rendered as Python",
                node_id=node.id,
            )
        dialect = context.dialect
        name = node.param("toolName", node.id).as_str()
        desc = node.param("toolDesc", f"Custom tool {name}").as_str()
        code = node.param("func", "return input;").as_str()
        arg  = "input: string" if dialect.ts else "input"

        w = dialect.writer()
        w.writeln("new DynamicTool({")
        w.push()
        w.writeln(f"name: {dialect.literal(name)},")
        w.writeln(f"description: {dialect.literal(desc)},")
        w.writeln(f"func: async ({arg}) => {{")
        w.push()
        w.extend(line.rstrip() for line in code.strip().splitlines())
        w.pop()
        w.writeln("},")
        w.pop()
        w.writeln("})")
        return node_fragments(
            node,
            [ImportSpec("@langchain/core/tools", ("DynamicTool",))],
            self.dependencies(node, context),
            dialect.declare(context.identifier, w.result()),
            Priority.UTILITY,
            exported=(context.identifier,),
        )

    def dependencies(self, node: IRNode, context: GenerationContext) -> List[str]:
        return ["@langchain/core"]


# ── Retriever tool ───────────────────────────────────────────────────────────

@dataclass(frozen=True)
class RetrieverToolConverter(InfoMixin):
    node_type: str      = "retrieverTool"
    category: str       = "tool"
    info: ConverterInfo = field(default_factory=ConverterInfo)

    def can_convert(self, node: IRNode) -> bool:
        return True

    def convert(self, node: IRNode, context: GenerationContext) -> List[CodeFragment]:
        dialect   = context.dialect
        retriever = require_reference(context, "retriever")
        options = {
            "name":        node.param("name", "search_documents").as_str(),
            "description": node.param("description", "Search the indexed documents.").as_str(),
        }
        if dialect.python:
            func, module = "create_retriever_tool", "langchain.tools.retriever"
        else:
            func, module = "createRetrieverTool", "langchain/tools/retriever"
        expr = dialect.call(func, options, retriever)
        return node_fragments(
            node,
            [ImportSpec(module, (func,))],
            self.dependencies(node, context),
            dialect.declare(context.identifier, expr),
            Priority.UTILITY,
            exported=(context.identifier,),
        )

    def dependencies(self, node: IRNode, context: GenerationContext) -> List[str]:
        return ["langchain"]


# ── Wrapped tools (Python renders a wrapper object first) ────────────────────

@dataclass(frozen=True)
class PyWrapper:
    module: str
    class_name: str
    keyword: str                              # kwarg the wrapper is passed as
    options: Tuple[Option, ...]               = ()
    fixed: Tuple[Tuple[str, object], ...]     = ()


@dataclass(frozen=True)
class WrappedToolConverter(InfoMixin):
    """
    JS: one construction.  Python: `<id>_wrapper = Wrapper(...)` followed by
    `<id> = Tool(<keyword>=<id>_wrapper, ...)`.
    """
    node_type: str
    js: Construct
    py_module: str
    py_class: str
    py_package: str
    wrapper: PyWrapper
    category: str       = "tool"
    extra_py_packages: Tuple[str, ...] = ()
    info: ConverterInfo = field(default_factory=ConverterInfo)

    def can_convert(self, node: IRNode) -> bool:
        return True

    def convert(self, node: IRNode, context: GenerationContext) -> List[CodeFragment]:
        if not context.is_python:
            return ComponentConverter(
                self.node_type, self.category, Priority.UTILITY, js=self.js,
            ).convert(node, context)

        dialect = context.dialect
        ident   = context.identifier
        wrapper = f"{ident}_wrapper"
        w_opts  = build_options(node, context, self.wrapper.options)
        outer: Dict[str, object] = {self.wrapper.keyword: Expr(wrapper)}
        outer.update(dict(self.wrapper.fixed))

        body = "\n".join([
            dialect.declare(wrapper, dialect.new(self.wrapper.class_name, w_opts)),
            dialect.declare(ident, dialect.new(self.py_class, outer)),
        ])
        specs = [
            ImportSpec(self.py_module, (self.py_class,)),
            ImportSpec(self.wrapper.module, (self.wrapper.class_name,)),
        ]
        return node_fragments(
            node, specs, self.dependencies(node, context), body, Priority.UTILITY,
            exported=(ident,),
        )

    def dependencies(self, node: IRNode, context: GenerationContext) -> List[str]:
        if context.is_python:
            return [self.py_package, *self.extra_py_packages]
        return [self.js.package, *self.js.extra_packages]


# ── Catalogue ────────────────────────────────────────────────────────────────

def _tool(node_type: str, js: Optional[Construct], py: Optional[Construct] = None) -> ComponentConverter:
    return ComponentConverter(node_type, "tool", Priority.UTILITY, js=js, py=py)


CONVERTERS = [
    CalculatorConverter(),
    CustomToolConverter(),
    RetrieverToolConverter(),

    _tool(
        "serpAPI",
        Construct(
            "@langchain/community/tools/serpapi", "SerpAPI", "@langchain/community",
            args=(Option("serpApiKey", "apiKey", env="SERPAPI_API_KEY"),),
        ),
    ),
    _tool(
        "tavilySearch",
        Construct(
            "@langchain/community/tools/tavily_search", "TavilySearchResults", "@langchain/community",
            options=(
                Option("maxResults", "maxResults", "int", default=5),
                Option("tavilyApiKey", "apiKey", env="TAVILY_API_KEY"),
            ),
        ),
        Construct(
            "langchain_community.tools.tavily_search", "TavilySearchResults", "langchain-community",
            options=(Option("maxResults", "max_results", "int", default=5),),
        ),
    ),
    _tool(
        "duckDuckGoSearch",
        Construct(
            "@langchain/community/tools/duckduckgo_search", "DuckDuckGoSearch", "@langchain/community",
            options=(Option("maxResults", "maxResults", "int"),),
            extra_packages=("duck-duck-scrape",),
        ),
        Construct(
            "langchain_community.tools", "DuckDuckGoSearchRun", "langchain-community",
            extra_packages=("duckduckgo-search",),
        ),
    ),

    WrappedToolConverter(
        node_type="wikipedia",
        js=Construct(
            "@langchain/community/tools/wikipedia_query_run", "WikipediaQueryRun", "@langchain/community",
            options=(
                Option("topKResults", "topKResults", "int", default=3),
                Option("maxDocContentLength", "maxDocContentLength", "int", default=4000),
            ),
        ),
        py_module="langchain_community.tools",
        py_class="WikipediaQueryRun",
        py_package="langchain-community",
        wrapper=PyWrapper(
            "langchain_community.utilities", "WikipediaAPIWrapper", "api_wrapper",
            options=(
                Option("topKResults", "top_k_results", "int", default=3),
                Option("maxDocContentLength", "doc_content_chars_max", "int", default=4000),
            ),
        ),
        extra_py_packages=("wikipedia",),
    ),
    WrappedToolConverter(
        node_type="requestsGet",
        js=Construct(
            "langchain/tools", "RequestsGetTool", "langchain",
            args=(Option("headers", "headers", "json", default={}),),
        ),
        py_module="langchain_community.tools.requests.tool",
        py_class="RequestsGetTool",
        py_package="langchain-community",
        wrapper=PyWrapper(
            "langchain_community.utilities.requests", "TextRequestsWrapper", "requests_wrapper",
            options=(Option("headers", "headers", "json", default={}),),
            fixed=(("allow_dangerous_requests", True),),
        ),
    ),
]
