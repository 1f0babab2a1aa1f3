"""LLM and chat-model converters."""

from __future__ import annotations

from typing import List

from ..fragments import Priority
from .common import ComponentConverter, Construct, Option, Wire

_CACHE = (Wire("cache", "cache"),)


def _openai_options(default_model: str, js: bool) -> tuple:
    if js:
        return (
            Option("modelName", "model", default=default_model),
            Option("temperature", "temperature", "float", default=0.7),
            Option("maxTokens", "maxTokens", "int"),
            Option("topP", "topP", "float"),
            Option("streaming", "streaming", "bool"),
            Option("openAIApiKey", "apiKey", env="OPENAI_API_KEY"),
        )
    return (
        Option("modelName", "model", default=default_model),
        Option("temperature", "temperature", "float", default=0.7),
        Option("maxTokens", "max_tokens", "int"),
        Option("topP", "top_p", "float"),
        Option("streaming", "streaming", "bool"),
        Option("openAIApiKey", "api_key", env="OPENAI_API_KEY"),
    )


def _openai(node_type: str, class_name: str, default_model: str) -> ComponentConverter:
    return ComponentConverter(
        node_type=node_type,
        category="llm",
        priority=Priority.MODEL,
        js=Construct("@langchain/openai", class_name, "@langchain/openai",
                     options=_openai_options(default_model, js=True), wires=_CACHE),
        py=Construct("langchain_openai", class_name, "langchain-openai",
                     options=_openai_options(default_model, js=False), wires=_CACHE),
    )


CONVERTERS: List[ComponentConverter] = [
    _openai("openAI", "OpenAI", "gpt-3.5-turbo-instruct"),
    _openai("chatOpenAI", "ChatOpenAI", "gpt-4o-mini"),

    ComponentConverter(
        node_type="azureChatOpenAI",
        category="llm",
        priority=Priority.MODEL,
        js=Construct(
            "@langchain/openai", "AzureChatOpenAI", "@langchain/openai",
            options=(
                Option("deploymentName", "azureOpenAIApiDeploymentName"),
                Option("instanceName", "azureOpenAIApiInstanceName"),
                Option("apiVersion", "azureOpenAIApiVersion", default="2024-02-01"),
                Option("temperature", "temperature", "float", default=0.7),
                Option("maxTokens", "maxTokens", "int"),
                Option("azureOpenAIApiKey", "azureOpenAIApiKey", env="AZURE_OPENAI_API_KEY"),
            ),
            wires=_CACHE,
        ),
        py=Construct(
            "langchain_openai", "AzureChatOpenAI", "langchain-openai",
            options=(
                Option("deploymentName", "azure_deployment"),
                Option("apiVersion", "api_version", default="2024-02-01"),
                Option("temperature", "temperature", "float", default=0.7),
                Option("maxTokens", "max_tokens", "int"),
                Option("azureOpenAIApiKey", "api_key", env="AZURE_OPENAI_API_KEY"),
                Option("azureEndpoint", "azure_endpoint", env="AZURE_OPENAI_ENDPOINT"),
            ),
            wires=_CACHE,
        ),
    ),

    ComponentConverter(
        node_type="chatAnthropic",
        category="llm",
        priority=Priority.MODEL,
        js=Construct(
            "@langchain/anthropic", "ChatAnthropic", "@langchain/anthropic",
            options=(
                Option("modelName", "model", default="claude-3-5-sonnet-latest"),
                Option("temperature", "temperature", "float", default=0.7),
                Option("maxTokensToSample", "maxTokens", "int"),
                Option("anthropicApiKey", "apiKey", env="ANTHROPIC_API_KEY"),
            ),
            wires=_CACHE,
        ),
        py=Construct(
            "langchain_anthropic", "ChatAnthropic", "langchain-anthropic",
            options=(
                Option("modelName", "model", default="claude-3-5-sonnet-latest"),
                Option("temperature", "temperature", "float", default=0.7),
                Option("maxTokensToSample", "max_tokens", "int"),
                Option("anthropicApiKey", "api_key", env="ANTHROPIC_API_KEY"),
            ),
            wires=_CACHE,
        ),
    ),

    ComponentConverter(
        node_type="chatOllama",
        category="llm",
        priority=Priority.MODEL,
        js=Construct(
            "@langchain/ollama", "ChatOllama", "@langchain/ollama",
            options=(
                Option("modelName", "model", default="llama3"),
                Option("baseUrl", "baseUrl", default="http://localhost:11434"),
                Option("temperature", "temperature", "float", default=0.7),
            ),
            wires=_CACHE,
        ),
        py=Construct(
            "langchain_ollama", "ChatOllama", "langchain-ollama",
            options=(
                Option("modelName", "model", default="llama3"),
                Option("baseUrl", "base_url", default="http://localhost:11434"),
                Option("temperature", "temperature", "float", default=0.7),
            ),
            wires=_CACHE,
        ),
    ),

    ComponentConverter(
        node_type="chatGoogleGenerativeAI",
        category="llm",
        priority=Priority.MODEL,
        js=Construct(
            "@langchain/google-genai", "ChatGoogleGenerativeAI", "@langchain/google-genai",
            options=(
                Option("modelName", "model", default="gemini-1.5-flash"),
                Option("temperature", "temperature", "float", default=0.7),
                Option("maxOutputTokens", "maxOutputTokens", "int"),
                Option("googleApiKey", "apiKey", env="GOOGLE_API_KEY"),
            ),
            wires=_CACHE,
        ),
        py=Construct(
            "langchain_google_genai", "ChatGoogleGenerativeAI", "langchain-google-genai",
            options=(
                Option("modelName", "model", default="gemini-1.5-flash"),
                Option("temperature", "temperature", "float", default=0.7),
                Option("maxOutputTokens", "max_output_tokens", "int"),
                Option("googleApiKey", "google_api_key", env="GOOGLE_API_KEY"),
            ),
            wires=_CACHE,
        ),
    ),
]
