"""
Document-loader converters
==========================
A loader lowers to its construction plus a `load<Id>()` helper that loads
the documents and, when a text splitter is wired into `textSplitter`,
splits them.  Vector stores call the helper by that naming convention.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import List

from ..context import GenerationContext
from ..fragments import CodeFragment, ImportSpec, Priority
from ..ir import IRNode
from ..targets import function_name
from .common import ComponentConverter, Construct, ConverterInfo, InfoMixin, Option


@dataclass(frozen=True)
class LoaderConverter(InfoMixin):
    node_type: str
    js: Construct
    py: Construct
    category: str       = "document_loader"
    info: ConverterInfo = field(default_factory=ConverterInfo)

    def can_convert(self, node: IRNode) -> bool:
        return True

    def _component(self) -> ComponentConverter:
        return ComponentConverter(self.node_type, self.category, Priority.DATA, js=self.js, py=self.py)

    def _load_function(self, context: GenerationContext) -> List[str]:
        dialect  = context.dialect
        ident    = context.identifier
        splitter = context.reference("textSplitter", required=False)
        name     = function_name("load", ident, python=dialect.python)

        if dialect.python:
            body = [f"docs = await {ident}.aload()"]
            body.append(f"return {splitter}.split_documents(docs)" if splitter else "return docs")
        else:
            body = [dialect.statement(f"const docs = await {ident}.load()")]
            body.append(dialect.statement(f"return {splitter}.splitDocuments(docs)" if splitter else "return docs"))
        return dialect.function(name, [], body, returns="Document[]")

    def convert(self, node: IRNode, context: GenerationContext) -> List[CodeFragment]:
        frags = self._component().convert(node, context)
        name  = function_name("load", context.identifier, python=context.is_python)
        body  = frags[-1]
        gap   = ["", ""] if context.is_python else [""]
        frags[-1] = replace(
            body,
            content="\n".join([body.content, *gap, *self._load_function(context)]),
            exported_names=(*body.exported_names, name),
        )
        if context.is_typescript:
            frags[0] = replace(
                frags[0],
                import_specs=(*frags[0].import_specs, ImportSpec("@langchain/core/documents", ("Document",))),
            )
        return frags

    def dependencies(self, node: IRNode, context: GenerationContext) -> List[str]:
        deps = self._component().dependencies(node, context)
        return [*deps, "@langchain/core"] if context.is_typescript else deps


_FILE_PATH_JS = (Option("filePath", "filePath", default="data/input.txt"),)
_FILE_PATH_PY = (Option("filePath", "file_path", default="data/input.txt"),)

CONVERTERS = [
    LoaderConverter(
        node_type="pdfFile",
        js=Construct("@langchain/community/document_loaders/fs/pdf", "PDFLoader", "@langchain/community",
                     args=(Option("filePath", "filePath", default="data/input.pdf"),),
                     extra_packages=("pdf-parse",)),
        py=Construct("langchain_community.document_loaders", "PyPDFLoader", "langchain-community",
                     args=(Option("filePath", "file_path", default="data/input.pdf"),),
                     extra_packages=("pypdf",)),
    ),
    LoaderConverter(
        node_type="textFile",
        js=Construct("langchain/document_loaders/fs/text", "TextLoader", "langchain", args=_FILE_PATH_JS),
        py=Construct("langchain_community.document_loaders", "TextLoader", "langchain-community",
                     args=_FILE_PATH_PY),
    ),
    LoaderConverter(
        node_type="csvFile",
        js=Construct("@langchain/community/document_loaders/fs/csv", "CSVLoader", "@langchain/community",
                     args=(Option("filePath", "filePath", default="data/input.csv"),),
                     extra_packages=("d3-dsv",)),
        py=Construct("langchain_community.document_loaders", "CSVLoader", "langchain-community",
                     args=(Option("filePath", "file_path", default="data/input.csv"),)),
    ),
    LoaderConverter(
        node_type="cheerioWebScraper",
        js=Construct("@langchain/community/document_loaders/web/cheerio", "CheerioWebBaseLoader",
                     "@langchain/community", args=(Option("url", "url", default="https://example.com"),),
                     extra_packages=("cheerio",)),
        py=Construct("langchain_community.document_loaders", "WebBaseLoader", "langchain-community",
                     args=(Option("url", "web_path", default="https://example.com"),),
                     extra_packages=("beautifulsoup4",)),
    ),
]
