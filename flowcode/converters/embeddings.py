"""Embedding-model converters."""

from __future__ import annotations

from typing import List

from ..fragments import Priority
from .common import ComponentConverter, Construct, Option

CONVERTERS: List[ComponentConverter] = [
    ComponentConverter(
        node_type="openAIEmbeddings",
        category="embeddings",
        priority=Priority.MODEL,
        js=Construct(
            "@langchain/openai", "OpenAIEmbeddings", "@langchain/openai",
            options=(
                Option("modelName", "model", default="text-embedding-3-small"),
                Option("dimensions", "dimensions", "int"),
                Option("batchSize", "batchSize", "int"),
                Option("openAIApiKey", "apiKey", env="OPENAI_API_KEY"),
            ),
        ),
        py=Construct(
            "langchain_openai", "OpenAIEmbeddings", "langchain-openai",
            options=(
                Option("modelName", "model", default="text-embedding-3-small"),
                Option("dimensions", "dimensions", "int"),
                Option("batchSize", "chunk_size", "int"),
                Option("openAIApiKey", "api_key", env="OPENAI_API_KEY"),
            ),
        ),
    ),

    ComponentConverter(
        node_type="cohereEmbeddings",
        category="embeddings",
        priority=Priority.MODEL,
        js=Construct(
            "@langchain/cohere", "CohereEmbeddings", "@langchain/cohere",
            options=(
                Option("modelName", "model", default="embed-english-v3.0"),
                Option("cohereApiKey", "apiKey", env="COHERE_API_KEY"),
            ),
        ),
        py=Construct(
            "langchain_cohere", "CohereEmbeddings", "langchain-cohere",
            options=(
                Option("modelName", "model", default="embed-english-v3.0"),
                Option("cohereApiKey", "cohere_api_key", env="COHERE_API_KEY"),
            ),
        ),
    ),

    ComponentConverter(
        node_type="ollamaEmbeddings",
        category="embeddings",
        priority=Priority.MODEL,
        js=Construct(
            "@langchain/ollama", "OllamaEmbeddings", "@langchain/ollama",
            options=(
                Option("modelName", "model", default="nomic-embed-text"),
                Option("baseUrl", "baseUrl", default="http://localhost:11434"),
            ),
        ),
        py=Construct(
            "langchain_ollama", "OllamaEmbeddings", "langchain-ollama",
            options=(
                Option("modelName", "model", default="nomic-embed-text"),
                Option("baseUrl", "base_url", default="http://localhost:11434"),
            ),
        ),
    ),
]
