"""
Vector-store converters
=======================
A vector store node exposes two outputs, the store itself and a retriever
over it.  Each output gets its own identifier (see
targets.output_identifier) so downstream nodes wired to either anchor
reference the right object.

When document loaders are wired into the `document` anchor an exported
`ingest<Id>()` function is emitted that loads every source and adds the
documents to the store.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ..context import GenerationContext
from ..fragments import CodeFragment, FragmentKind, ImportSpec, Priority
from ..ir import IRNode
from ..targets import Expr, function_name, output_identifier
from .common import ConverterInfo, InfoMixin, Option, build_options, env_specs, node_fragments, require_reference


@dataclass(frozen=True)
class StoreSpec:
    module: str
    class_name: str
    packages: Tuple[str, ...]
    options: Tuple[Option, ...]           = ()
    embeddings_key: Optional[str]         = None   # None → first positional argument
    factory: Optional[str]                = None   # classmethod used instead of the constructor
    extra_imports: Tuple[ImportSpec, ...] = ()
    # option key → expression template over the resolved option value
    wrap: Tuple[Tuple[str, str], ...]     = ()


def _names(node: IRNode, ident: str, python: bool) -> Tuple[str, str]:
    """(store identifier, retriever identifier) for this node's outputs."""
    names     = [a.name for a in node.outputs]
    retriever = next((n for n in names if "retriever" in n.lower()), None)
    store     = next((n for n in names if n != retriever and "store" in n.lower()), None)

    retriever_id = output_identifier(ident, names, retriever, python) if retriever else f"{ident}_retriever"
    if store:
        store_id = output_identifier(ident, names, store, python)
    elif retriever_id == ident:
        store_id = f"{ident}_store"
    else:
        store_id = ident
    return store_id, retriever_id


@dataclass(frozen=True)
class VectorStoreConverter(InfoMixin):
    node_type: str
    js: StoreSpec
    py: StoreSpec
    category: str       = "vectorstore"
    info: ConverterInfo = field(default_factory=ConverterInfo)

    def can_convert(self, node: IRNode) -> bool:
        return True

    def _spec(self, context: GenerationContext) -> StoreSpec:
        return self.py if context.is_python else self.js

    def _construct(self, node: IRNode, context: GenerationContext, embeddings: str) -> Tuple[str, Dict[str, Any]]:
        dialect = context.dialect
        spec    = self._spec(context)
        options = build_options(node, context, spec.options)
        for key, template in spec.wrap:
            if key in options:
                options[key] = Expr(template.format(dialect.literal(options[key])))

        if spec.factory:
            head = f"{spec.class_name}.{spec.factory}"
            if spec.embeddings_key:
                options = {spec.embeddings_key: Expr(embeddings), **options}
                return dialect.call(head, options), options
            return dialect.call(head, options, embeddings), options
        if spec.embeddings_key:
            options = {spec.embeddings_key: Expr(embeddings), **options}
            return dialect.new(spec.class_name, options), options
        return dialect.new(spec.class_name, options, embeddings), options

    def _retriever(self, context: GenerationContext, store: str, k: int) -> str:
        if context.is_python:
            return f'{store}.as_retriever(search_kwargs={{"k": {k}}})'
        return f"{store}.asRetriever({k})"

    def _ingest(self, node: IRNode, context: GenerationContext, store: str) -> Optional[CodeFragment]:
        sources = context.references("document")
        if not sources:
            return None
        dialect = context.dialect
        name    = function_name("ingest", context.identifier, python=dialect.python)
        loads   = ", ".join(
            f"*(await {function_name('load', s, python=True)}())" if dialect.python
            else f"...(await {function_name('load', s)}())"
            for s in sources
        )
        if dialect.python:
            body = [f"documents = [{loads}]", f"await {store}.aadd_documents(documents)"]
        else:
            body = [
                dialect.statement(f"const documents = [{loads}]"),
                dialect.statement(f"await {store}.addDocuments(documents)"),
            ]
        return CodeFragment(
            id=f"{node.id}:ingest",
            kind=FragmentKind.EXECUTION,
            content="\n".join(dialect.function(name, [], body, returns="void")),
            source_node_id=node.id,
            priority=Priority.EXECUTION,
            exported_names=(name,),
        )

    def convert(self, node: IRNode, context: GenerationContext) -> List[CodeFragment]:
        dialect    = context.dialect
        spec       = self._spec(context)
        embeddings = require_reference(context, "embeddings")
        store, retriever = _names(node, context.identifier, dialect.python)
        k = node.param("topK", 4).as_int(4)

        expr, options = self._construct(node, context, embeddings)
        body = "\n".join([
            dialect.declare(store, expr),
            dialect.declare(retriever, self._retriever(context, store, k)),
        ])
        specs = [ImportSpec(spec.module, (spec.class_name,)), *spec.extra_imports]
        specs.extend(env_specs(dialect, options.values()))

        frags = node_fragments(
            node, specs, list(spec.packages), body, Priority.STORE,
            exported=(store, retriever),
        )
        ingest = self._ingest(node, context, store)
        if ingest is not None:
            frags.append(ingest)
        return frags

    def dependencies(self, node: IRNode, context: GenerationContext) -> List[str]:
        return list(self._spec(context).packages)


CONVERTERS = [
    VectorStoreConverter(
        node_type="memoryVectorStore",
        js=StoreSpec("langchain/vectorstores/memory", "MemoryVectorStore", ("langchain",)),
        py=StoreSpec("langchain_core.vectorstores", "InMemoryVectorStore", ("langchain-core",),
                     embeddings_key="embedding"),
    ),
    VectorStoreConverter(
        node_type="pinecone",
        js=StoreSpec(
            "@langchain/pinecone", "PineconeStore",
            ("@langchain/pinecone", "@pinecone-database/pinecone"),
            options=(
                Option("pineconeIndex", "pineconeIndex", default="langchain"),
                Option("pineconeNamespace", "namespace"),
            ),
            extra_imports=(ImportSpec("@pinecone-database/pinecone", ("Pinecone",)),),
            wrap=(("pineconeIndex", "new Pinecone().index({})"),),
        ),
        py=StoreSpec(
            "langchain_pinecone", "PineconeVectorStore", ("langchain-pinecone",),
            options=(
                Option("pineconeIndex", "index_name", default="langchain"),
                Option("pineconeNamespace", "namespace"),
            ),
            embeddings_key="embedding",
        ),
    ),
    VectorStoreConverter(
        node_type="chroma",
        js=StoreSpec(
            "@langchain/community/vectorstores/chroma", "Chroma",
            ("@langchain/community", "chromadb"),
            options=(
                Option("collectionName", "collectionName", default="langchain"),
                Option("chromaURL", "url"),
            ),
        ),
        py=StoreSpec(
            "langchain_chroma", "Chroma", ("langchain-chroma",),
            options=(
                Option("collectionName", "collection_name", default="langchain"),
                Option("persistDirectory", "persist_directory"),
            ),
            embeddings_key="embedding_function",
        ),
    ),
    VectorStoreConverter(
        node_type="faiss",
        js=StoreSpec(
            "@langchain/community/vectorstores/faiss", "FaissStore",
            ("@langchain/community", "faiss-node"),
        ),
        py=StoreSpec(
            "langchain_community.vectorstores", "FAISS", ("langchain-community", "faiss-cpu"),
            options=(
                Option("basePath", "folder_path", default="faiss_index"),
                Option("allowDangerousDeserialization", "allow_dangerous_deserialization",
                       "bool", default=True),
            ),
            embeddings_key="embeddings",
            factory="load_local",
        ),
    ),
]
