"""Text-splitter converters."""

from __future__ import annotations

from typing import List

from ..fragments import Priority
from .common import ComponentConverter, Construct, Option


def _chunking(js: bool) -> tuple:
    if js:
        return (
            Option("chunkSize", "chunkSize", "int", default=1000),
            Option("chunkOverlap", "chunkOverlap", "int", default=200),
        )
    return (
        Option("chunkSize", "chunk_size", "int", default=1000),
        Option("chunkOverlap", "chunk_overlap", "int", default=200),
    )


def _splitter(node_type: str, class_name: str, js_extra=(), py_extra=(), py_packages=()) -> ComponentConverter:
    return ComponentConverter(
        node_type=node_type,
        category="text_splitter",
        priority=Priority.DATA,
        js=Construct("@langchain/textsplitters", class_name, "@langchain/textsplitters",
                     options=(*_chunking(js=True), *js_extra)),
        py=Construct("langchain_text_splitters", class_name, "langchain-text-splitters",
                     options=(*_chunking(js=False), *py_extra), extra_packages=py_packages),
    )


CONVERTERS: List[ComponentConverter] = [
    _splitter("recursiveCharacterTextSplitter", "RecursiveCharacterTextSplitter"),
    _splitter(
        "characterTextSplitter", "CharacterTextSplitter",
        js_extra=(Option("separator", "separator"),),
        py_extra=(Option("separator", "separator"),),
    ),
    _splitter(
        "tokenTextSplitter", "TokenTextSplitter",
        js_extra=(Option("encodingName", "encodingName", default="gpt2"),),
        py_extra=(Option("encodingName", "encoding_name", default="gpt2"),),
        py_packages=("tiktoken",),
    ),
    _splitter("markdownTextSplitter", "MarkdownTextSplitter"),
]
