"""
flowcode: Built-in Converters
=============================
One module per node family.  Each exposes a CONVERTERS list; this package
collects them together with the alias table into the default registry.

Public API
----------
    from flowcode.converters import default_registry

    registry = default_registry()
    registry.lookup("chatOpenAI")
    registry.lookup("gpt")          # alias of chatOpenAI
"""

from __future__ import annotations

from functools import lru_cache
from typing import Dict, List

from ..registry import Converter, ConverterRegistry
from . import (
    agent,
    cache,
    chain,
    document_loader,
    embeddings,
    llm,
    memory,
    output_parser,
    prompt,
    text_splitter,
    tool,
    vectorstore,
)

ALL_CONVERTERS: List[Converter] = [
    *llm.CONVERTERS,
    *embeddings.CONVERTERS,
    *cache.CONVERTERS,
    *prompt.CONVERTERS,
    *chain.CONVERTERS,
    *memory.CONVERTERS,
    *tool.CONVERTERS,
    *agent.CONVERTERS,
    *vectorstore.CONVERTERS,
    *document_loader.CONVERTERS,
    *text_splitter.CONVERTERS,
    *output_parser.CONVERTERS,
]

# Shorthand names accepted in hand-written documents.
ALIASES: Dict[str, str] = {
    "openai":            "openAI",
    "gpt":               "chatOpenAI",
    "claude":            "chatAnthropic",
    "azure":             "azureChatOpenAI",
    "prompt":            "promptTemplate",
    "chatPrompt":        "chatPromptTemplate",
    "fewShot":           "fewShotPromptTemplate",
    "llm_chain":         "llmChain",
    "conversation_chain": "conversationChain",
    "qa_chain":          "retrievalQAChain",
    "buffer":            "bufferMemory",
    "window":            "bufferWindowMemory",
    "calc":              "calculator",
    "search":            "serpAPI",
    "custom":            "customTool",
    "vectorstore":       "memoryVectorStore",
    "vector":            "memoryVectorStore",
    "embeddings":        "openAIEmbeddings",
    "openaiEmbeddings":  "openAIEmbeddings",
    "chromaVectorStore": "chroma",
    "faissVectorStore":  "faiss",
    "pineconeVectorStore": "pinecone",
    "tavilyAPI":         "tavilySearch",
}


@lru_cache(maxsize=None)
def default_registry() -> ConverterRegistry:
    return ConverterRegistry.build(ALL_CONVERTERS, ALIASES)


__all__ = ["ALIASES", "ALL_CONVERTERS", "default_registry"]
