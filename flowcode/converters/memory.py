"""Conversation-memory converters."""

from __future__ import annotations

from typing import List

from ..fragments import Priority
from .common import ComponentConverter, Construct, Option, Wire


def _memory(node_type: str, js_class: str, py_class: str, *extra_opts, wires=()) -> ComponentConverter:
    js_opts = (Option("memoryKey", "memoryKey", default="chat_history"),
               Option("returnMessages", "returnMessages", "bool", default=True),
               *[o for o, _ in extra_opts])
    py_opts = (Option("memoryKey", "memory_key", default="chat_history"),
               Option("returnMessages", "return_messages", "bool", default=True),
               *[o for _, o in extra_opts])
    return ComponentConverter(
        node_type=node_type,
        category="memory",
        priority=Priority.STORE,
        js=Construct("langchain/memory", js_class, "langchain",
                     options=js_opts, wires=tuple(w for w, _ in wires)),
        py=Construct("langchain.memory", py_class, "langchain",
                     options=py_opts, wires=tuple(w for _, w in wires)),
    )


CONVERTERS: List[ComponentConverter] = [
    _memory("bufferMemory", "BufferMemory", "ConversationBufferMemory"),
    _memory(
        "bufferWindowMemory", "BufferWindowMemory", "ConversationBufferWindowMemory",
        (Option("k", "k", "int", default=5), Option("k", "k", "int", default=5)),
    ),
    _memory(
        "conversationSummaryMemory", "ConversationSummaryMemory", "ConversationSummaryMemory",
        wires=((Wire("model", "llm", required=True), Wire("model", "llm", required=True)),),
    ),
]
