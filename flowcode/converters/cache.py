"""LLM response-cache converters."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List

from ..context import GenerationContext
from ..fragments import CodeFragment, ImportSpec, Priority
from ..ir import IRNode
from ..targets import EnvRef, Expr
from .common import ComponentConverter, Construct, ConverterInfo, InfoMixin, node_fragments


@dataclass(frozen=True)
class RedisCacheConverter(InfoMixin):
    """Redis-backed cache; the connection URL is always read from REDIS_URL."""
    node_type: str      = "redisCache"
    category: str       = "cache"
    info: ConverterInfo = field(default_factory=ConverterInfo)

    def can_convert(self, node: IRNode) -> bool:
        return True

    def convert(self, node: IRNode, context: GenerationContext) -> List[CodeFragment]:
        dialect = context.dialect
        url     = dialect.literal(EnvRef("REDIS_URL"))
        ttl     = node.param("ttl")
        options: Dict[str, Any] = {"ttl": ttl.as_int()} if ttl.present else {}

        if dialect.python:
            client = f"Redis.from_url({url})"
            expr   = dialect.call("RedisCache", {"redis_": Expr(client), **options})
            specs  = [
                ImportSpec("langchain_community.cache", ("RedisCache",)),
                ImportSpec("redis", ("Redis",)),
                *dialect.env_imports(),
            ]
        else:
            client = f"new Redis({url})"
            expr   = dialect.new("RedisCache", options, client)
            specs  = [
                ImportSpec("@langchain/community/caches/ioredis", ("RedisCache",)),
                ImportSpec("ioredis", ("Redis",)),
            ]
        return node_fragments(
            node, specs, self.dependencies(node, context),
            dialect.declare(context.identifier, expr), Priority.CACHE,
            exported=(context.identifier,),
        )

    def dependencies(self, node: IRNode, context: GenerationContext) -> List[str]:
        if context.is_python:
            return ["langchain-community", "redis"]
        return ["@langchain/community", "ioredis"]


CONVERTERS = [
    ComponentConverter(
        node_type="inMemoryCache",
        category="cache",
        priority=Priority.CACHE,
        js=Construct("@langchain/core/caches", "InMemoryCache", "@langchain/core"),
        py=Construct("langchain_core.caches", "InMemoryCache", "langchain-core"),
    ),
    RedisCacheConverter(),
]
