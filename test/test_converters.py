import pytest

from flowcode.context import GenerationContext, NodeBinding
from flowcode.converters import default_registry
from flowcode.converters.prompt import prompt_variables, template_variables
from flowcode.errors import ConversionError, UnsupportedTargetError
from flowcode.fragments import FragmentKind, ImportSpec, Priority
from flowcode.ir import build_graph
from flowcode.targets import safe_identifier

from flowdocs import document, node


def _convert(node_type, target="typescript", inputs=None, outputs=("output",), tracing=False, sources=None,
             **params):
    """Run one built-in converter on a single node with the given bound inputs."""
    raw = node(f"{node_type}_0", node_type, outputs=outputs, **params)
    n = build_graph(document([raw])).get_node(raw["id"])
    ctx = GenerationContext(target=target, include_tracing=tracing)
    ident = safe_identifier(n.id, python=ctx.is_python)
    ctx = ctx.for_node(NodeBinding(n.id, ident, inputs or {}, sources or {}))
    return default_registry().lookup(node_type).convert(n, ctx)


def _prompt_node(node_type, **params):
    raw = node("p", node_type, **params)
    return build_graph(document([raw])).get_node("p")


def _body(frags):
    return "\n".join(f.content for f in frags if not f.is_import)


def _imports(frags):
    return [spec for f in frags for spec in f.import_specs]


class TestModelConverters:

    def test_chat_openai_typescript(self):
        frags = _convert("chatOpenAI", modelName="gpt-4o", temperature=0.2)
        assert _body(frags) == (
            "const chatOpenAI_0 = new ChatOpenAI({\n"
            "  model: 'gpt-4o',\n"
            "  temperature: 0.2,\n"
            "  apiKey: process.env.OPENAI_API_KEY,\n"
            "});"
        )
        assert _imports(frags) == [ImportSpec("@langchain/openai", ("ChatOpenAI",))]
        assert frags[-1].priority == Priority.MODEL
        assert frags[-1].exported_names == ("chatOpenAI_0",)

    def test_chat_openai_python(self):
        frags = _convert("chatOpenAI", target="python")
        assert _body(frags) == (
            "chat_open_ai_0 = ChatOpenAI(\n"
            '    model="gpt-4o-mini",\n'
            "    temperature=0.7,\n"
            '    api_key=os.getenv("OPENAI_API_KEY"),\n'
            ")"
        )
        assert ImportSpec("os") in _imports(frags)
        assert frags[0].required_packages == ("langchain-openai",)

    def test_cache_wire(self):
        frags = _convert("chatOpenAI", inputs={"cache": ("inMemoryCache_0",)})
        assert "  cache: inMemoryCache_0,\n" in _body(frags)

    def test_anthropic_reads_key_from_environment(self):
        body = _body(_convert("chatAnthropic", anthropicApiKey="sk-secret"))
        assert "process.env.ANTHROPIC_API_KEY" in body
        assert "sk-secret" not in body

    def test_embeddings(self):
        body = _body(_convert("openAIEmbeddings", target="python", batchSize=64))
        assert "chunk_size=64," in body
        assert 'model="text-embedding-3-small",' in body


class TestPromptConverters:

    def test_prompt_template(self):
        frags = _convert("promptTemplate", template="Answer: {input}")
        assert _body(frags) == "const promptTemplate_0 = PromptTemplate.fromTemplate('Answer: {input}');"
        assert frags[-1].priority == Priority.UTILITY

    def test_prompt_template_python(self):
        body = _body(_convert("promptTemplate", target="python"))
        assert body == 'prompt_template_0 = PromptTemplate.from_template("{input}")'

    def test_chat_prompt_template(self):
        body = _body(_convert("chatPromptTemplate", systemMessagePrompt="Be terse."))
        assert body == (
            "const chatPromptTemplate_0 = ChatPromptTemplate.fromMessages([\n"
            "  ['system', 'Be terse.'],\n"
            "  ['human', '{input}'],\n"
            "]);"
        )

    def test_few_shot_needs_example_prompt(self):
        with pytest.raises(ConversionError, match="examplePrompt"):
            _convert("fewShotPromptTemplate")

    def test_template_variables(self):
        assert template_variables("Answer the following question: {question}") == ["question"]
        assert template_variables("{a} then {b} then {a}") == ["a", "b"]
        assert template_variables("JSON like {{\"key\": 1}} and {{literal}}") == []

    def test_prompt_variables(self):
        chat = _prompt_node("chatPromptTemplate", systemMessagePrompt="You speak {language}.",
                            humanMessagePrompt="{text}")
        assert prompt_variables(chat) == ["language", "text"]
        assert prompt_variables(_prompt_node("promptTemplate")) == []


class TestChainConverters:

    def test_llm_chain_typescript(self):
        frags = _convert("llmChain", inputs={"model": ("chatOpenAI_0",), "prompt": ("promptTemplate_0",)})
        chain, run = [f for f in frags if not f.is_import]
        assert chain.content == (
            "const llmChain_0 = promptTemplate_0.pipe(chatOpenAI_0).pipe(new StringOutputParser());"
        )
        assert chain.priority == Priority.CHAIN
        assert run.kind is FragmentKind.EXECUTION
        assert run.priority == Priority.EXECUTION
        assert run.exported_names == ("runLlmChain_0",)
        assert run.content == (
            "export async function runLlmChain_0(message: string): Promise<string> {\n"
            "  const result = await llmChain_0.invoke({ input: message });\n"
            "  return typeof result === 'string' ? result : JSON.stringify(result);\n"
            "}"
        )
        assert ImportSpec("@langchain/core/output_parsers", ("StringOutputParser",)) in _imports(frags)

    def test_llm_chain_python(self):
        frags = _convert(
            "llmChain", target="python",
            inputs={"model": ("chat_open_ai_0",), "prompt": ("prompt_template_0",)},
        )
        body = _body(frags)
        assert "llm_chain_0 = prompt_template_0 | chat_open_ai_0 | StrOutputParser()" in body
        assert "async def run_llm_chain_0(message: str) -> str:" in body
        assert '    result = await llm_chain_0.ainvoke({"input": message})' in body

    def test_llm_chain_uses_the_prompt_variable(self):
        """Test the run function sends the message under the prompt's only variable."""
        prompt = _prompt_node("promptTemplate", template="Answer the following question: {question}")
        inputs = {"model": ("m",), "prompt": ("p",)}
        frags = _convert("llmChain", inputs=inputs, sources={"prompt": (prompt,)})
        assert "  const result = await llmChain_0.invoke({ question: message });" in _body(frags)
        frags = _convert("llmChain", target="python", inputs=inputs, sources={"prompt": (prompt,)})
        assert '    result = await llm_chain_0.ainvoke({"question": message})' in _body(frags)

    def test_llm_chain_with_several_prompt_variables(self):
        prompt = _prompt_node("promptTemplate", template="{context}\n\n{question}")
        frags = _convert("llmChain", inputs={"model": ("m",), "prompt": ("p",)}, sources={"prompt": (prompt,)})
        assert "invoke({ input: message })" in _body(frags)

    def test_llm_chain_with_parser(self):
        frags = _convert("llmChain", inputs={
            "model": ("m",), "prompt": ("p",), "outputParser": ("parser",),
        })
        assert "p.pipe(m).pipe(parser);" in _body(frags)
        assert _imports(frags) == []

    def test_llm_chain_accepts_llm_anchor(self):
        assert "p.pipe(m)" in _body(_convert("llmChain", inputs={"llm": ("m",), "prompt": ("p",)}))

    def test_tracing_callbacks(self):
        inputs = {"model": ("m",), "prompt": ("p",)}
        assert "invoke({ input: message }, { callbacks: [langfuseHandler] });" in _body(
            _convert("llmChain", inputs=inputs, tracing=True)
        )
        assert 'config={"callbacks": [langfuse_handler]}' in _body(
            _convert("llmChain", target="python", inputs=inputs, tracing=True)
        )

    def test_conversation_chain(self):
        body = _body(_convert("conversationChain", inputs={"model": ("m",), "memory": ("mem",)}))
        assert "const conversationChain_0 = new ConversationChain({\n  llm: m,\n  memory: mem,\n});" in body
        assert "return result.response;" in body

    def test_retrieval_qa(self):
        inputs = {"model": ("m",), "vectorStoreRetriever": ("r",)}
        js = _body(_convert("retrievalQAChain", inputs=inputs))
        assert "const retrievalQAChain_0 = RetrievalQAChain.fromLLM(m, r);" in js
        assert "invoke({ query: message })" in js
        py = _body(_convert("retrievalQAChain", target="python", inputs=inputs))
        assert "RetrievalQA.from_chain_type(\n    llm=m,\n    retriever=r,\n)" in py
        assert 'return result["result"]' in py

    def test_conversational_retrieval_without_memory(self):
        body = _body(_convert("conversationalRetrievalQAChain", inputs={"model": ("m",), "retriever": ("r",)}))
        assert "ConversationalRetrievalQAChain.fromLLM(m, r)" in body
        assert "{ question: message, chat_history: [] }" in body


class TestMemoryConverters:

    def test_buffer_memory(self):
        body = _body(_convert("bufferMemory"))
        assert body == (
            "const bufferMemory_0 = new BufferMemory({\n"
            "  memoryKey: 'chat_history',\n"
            "  returnMessages: true,\n"
            "});"
        )

    def test_window_memory_python(self):
        body = _body(_convert("bufferWindowMemory", target="python", k=3))
        assert body.startswith("buffer_window_memory_0 = ConversationBufferWindowMemory(")
        assert "    k=3," in body

    def test_summary_memory_needs_model(self):
        with pytest.raises(ConversionError):
            _convert("conversationSummaryMemory")


class TestToolConverters:

    def test_calculator(self):
        assert _body(_convert("calculator")) == "const calculator_0 = new Calculator();"

    def test_calculator_python_is_a_tool_function(self):
        body = _body(_convert("calculator", target="python"))
        assert body.startswith('@tool("calculator")\ndef calculator_0(expression: str) -> str:')

    def test_custom_tool(self):
        body = _body(_convert("customTool", toolName="echo", toolDesc="Echo input", func="return input;"))
        assert "const customTool_0 = new DynamicTool({" in body
        assert "  name: 'echo'," in body
        assert "  func: async (input: string) => {\n    return input;\n  }," in body

    def test_custom_tool_python_is_unsupported(self):
        with pytest.raises(UnsupportedTargetError):
            _convert("customTool", target="python")

    def test_serpapi_key_is_positional(self):
        assert _body(_convert("serpAPI")) == "const serpAPI_0 = new SerpAPI(process.env.SERPAPI_API_KEY);"

    def test_serpapi_python_is_unsupported(self):
        with pytest.raises(UnsupportedTargetError, match="no python rendering"):
            _convert("serpAPI", target="python")

    def test_tavily(self):
        body = _body(_convert("tavilySearch", maxResults=3))
        assert "  maxResults: 3,\n  apiKey: process.env.TAVILY_API_KEY,\n" in body

    def test_wikipedia_python_wrapper(self):
        frags = _convert("wikipedia", target="python")
        body = _body(frags)
        assert body.startswith("wikipedia_0_wrapper = WikipediaAPIWrapper(")
        assert "wikipedia_0 = WikipediaQueryRun(\n    api_wrapper=wikipedia_0_wrapper,\n)" in body
        assert ImportSpec("langchain_community.utilities", ("WikipediaAPIWrapper",)) in _imports(frags)

    def test_retriever_tool(self):
        body = _body(_convert("retrieverTool", inputs={"retriever": ("r",)}))
        assert body.startswith("const retrieverTool_0 = createRetrieverTool(r, {")


class TestAgentConverters:

    INPUTS = {"model": ("chatOpenAI_0",), "tools": ("calculator_0", "tavilySearch_0")}

    def test_tool_agent_typescript(self):
        frags = _convert("toolAgent", inputs=self.INPUTS, systemMessage="Be brief.")
        cache, agent, run = [f for f in frags if not f.is_import]
        assert cache.kind is FragmentKind.DECLARATION
        assert cache.priority == Priority.AGENT
        assert cache.content == (
            "// Set by buildToolAgent_0() on first use.\n"
            "let toolAgent_0Executor: AgentExecutor | undefined;"
        )
        assert agent.kind is FragmentKind.INITIALIZATION
        assert agent.priority == Priority.AGENT
        assert agent.content.startswith(
            "async function buildToolAgent_0(): Promise<AgentExecutor> {\n"
            "  if (toolAgent_0Executor) return toolAgent_0Executor;\n"
            "  const tools = [calculator_0, tavilySearch_0];\n"
        )
        assert "  const agent = await createToolCallingAgent({ llm: chatOpenAI_0, tools, prompt });" in agent.content
        assert "    maxIterations: 15," in agent.content
        assert run.content == (
            "export async function runToolAgent_0(message: string): Promise<string> {\n"
            "  const executor = await buildToolAgent_0();\n"
            "  const result = await executor.invoke({ input: message });\n"
            "  return result.output;\n"
            "}"
        )

    def test_tool_agent_python(self):
        inputs = {"model": ("chat_open_ai_0",), "tools": ("calculator_0",)}
        body = _body(_convert("toolAgent", target="python", inputs=inputs))
        assert body.startswith(
            "# Set by build_tool_agent_0() on first use.\n"
            "_tool_agent_0_executor = None\n"
            "async def build_tool_agent_0() -> AgentExecutor:"
        )
        assert "        agent = create_tool_calling_agent(chat_open_ai_0, tools, prompt)" in body
        assert "            max_iterations=15," in body
        assert 'return result["output"]' in body

    def test_hub_prompt_agent(self):
        frags = _convert("structuredChatAgent", inputs=self.INPUTS)
        assert "await pull<ChatPromptTemplate>('hwchase17/structured-chat-agent');" in _body(frags)
        assert ImportSpec("langchain/hub", ("pull",)) in _imports(frags)

    def test_memory_adds_placeholder(self):
        inputs = dict(self.INPUTS, memory=("bufferMemory_0",))
        body = _body(_convert("toolAgent", inputs=inputs))
        assert "new MessagesPlaceholder('chat_history')," in body
        assert "    memory: bufferMemory_0," in body


class TestDataConverters:

    def test_text_loader_with_splitter(self):
        frags = _convert("textFile", inputs={"textSplitter": ("splitter_0",)}, filePath="docs/faq.txt")
        assert _body(frags) == (
            "const textFile_0 = new TextLoader('docs/faq.txt');\n"
            "\n"
            "export async function loadTextFile_0(): Promise<Document[]> {\n"
            "  const docs = await textFile_0.load();\n"
            "  return splitter_0.splitDocuments(docs);\n"
            "}"
        )
        assert frags[-1].exported_names == ("textFile_0", "loadTextFile_0")
        assert ImportSpec("@langchain/core/documents", ("Document",)) in _imports(frags)

    def test_pdf_loader_python(self):
        frags = _convert("pdfFile", target="python")
        assert _body(frags) == (
            'pdf_file_0 = PyPDFLoader("data/input.pdf")\n'
            "\n"
            "\n"
            "async def load_pdf_file_0() -> list:\n"
            "    docs = await pdf_file_0.aload()\n"
            "    return docs"
        )
        registry = default_registry()
        deps = registry.lookup("pdfFile").dependencies(None, GenerationContext(target="python"))
        assert deps == ["langchain-community", "pypdf"]

    def test_text_splitter(self):
        frags = _convert("recursiveCharacterTextSplitter", chunkSize=500)
        assert _body(frags) == (
            "const recursiveCharacterTextSplitter_0 = new RecursiveCharacterTextSplitter({\n"
            "  chunkSize: 500,\n"
            "  chunkOverlap: 200,\n"
            "});"
        )
        assert frags[-1].priority == Priority.DATA

    def test_memory_vector_store_outputs(self):
        frags = _convert(
            "memoryVectorStore", inputs={"embeddings": ("emb",)},
            outputs=["retriever", "vectorStore"], topK=2,
        )
        body = _body(frags)
        assert body == (
            "const memoryVectorStore_0_vectorStore = new MemoryVectorStore(emb);\n"
            "const memoryVectorStore_0 = memoryVectorStore_0_vectorStore.asRetriever(2);"
        )
        assert frags[-1].exported_names == ("memoryVectorStore_0_vectorStore", "memoryVectorStore_0")

    def test_vector_store_single_output(self):
        body = _body(_convert("memoryVectorStore", target="python", inputs={"embeddings": ("emb",)}))
        assert "memory_vector_store_0 = InMemoryVectorStore(\n    embedding=emb,\n)" in body
        assert 'memory_vector_store_0_retriever = memory_vector_store_0.as_retriever(search_kwargs={"k": 4})' in body

    def test_vector_store_ingest(self):
        frags = _convert("memoryVectorStore", inputs={"embeddings": ("emb",), "document": ("textFile_0", "pdfFile_0")})
        ingest = frags[-1]
        assert ingest.id == "memoryVectorStore_0:ingest"
        assert ingest.exported_names == ("ingestMemoryVectorStore_0",)
        assert "const documents = [...(await loadTextFile_0()), ...(await loadPdfFile_0())];" in ingest.content

    def test_faiss_python_load_local(self):
        body = _body(_convert("faiss", target="python", inputs={"embeddings": ("emb",)}))
        assert body.startswith("faiss_0 = FAISS.load_local(\n    embeddings=emb,\n    folder_path=\"faiss_index\",")

    def test_vector_store_needs_embeddings(self):
        with pytest.raises(ConversionError, match="embeddings"):
            _convert("chroma")


class TestParserAndCacheConverters:

    FIELDS = [
        {"property": "answer", "description": "the answer"},
        {"property": "source", "description": "where it came from"},
    ]

    def test_structured_parser_typescript(self):
        body = _body(_convert("structuredOutputParser", jsonStructure=self.FIELDS))
        assert body == (
            "const structuredOutputParser_0 = StructuredOutputParser.fromNamesAndDescriptions("
            "{ answer: 'the answer', source: 'where it came from' });"
        )

    def test_structured_parser_python(self):
        body = _body(_convert("structuredOutputParser", target="python", jsonStructure=self.FIELDS))
        assert body == (
            "structured_output_parser_0 = StructuredOutputParser.from_response_schemas([\n"
            '    ResponseSchema(name="answer", description="the answer"),\n'
            '    ResponseSchema(name="source", description="where it came from"),\n'
            "])"
        )

    def test_structured_parser_accepts_json_text(self):
        body = _body(_convert("structuredOutputParser", jsonStructure='[{"property": "x"}]'))
        assert "{ x: '' }" in body

    def test_structured_parser_rejects_bad_json(self):
        with pytest.raises(ConversionError, match="not valid JSON"):
            _convert("structuredOutputParser", jsonStructure="[{")

    def test_custom_list_parser_is_js_only(self):
        assert "new CustomListOutputParser({\n  separator: ',',\n})" in _body(_convert("customListOutputParser"))
        with pytest.raises(UnsupportedTargetError):
            _convert("customListOutputParser", target="python")

    def test_redis_cache(self):
        assert _body(_convert("redisCache", ttl=60)) == (
            "const redisCache_0 = new RedisCache(new Redis(process.env.REDIS_URL), {\n"
            "  ttl: 60,\n"
            "});"
        )
        assert _body(_convert("redisCache", target="python")) == (
            "redis_cache_0 = RedisCache(\n"
            '    redis_=Redis.from_url(os.getenv("REDIS_URL")),\n'
            ")"
        )

    def test_in_memory_cache(self):
        frags = _convert("inMemoryCache")
        assert _body(frags) == "const inMemoryCache_0 = new InMemoryCache();"
        assert frags[-1].priority == Priority.CACHE


class TestBuiltinCatalogue:

    @pytest.mark.parametrize("target", ["typescript", "javascript", "python"])
    def test_every_converter_declares_dependencies(self, target):
        """Test each converter either renders for the target or says it cannot."""
        registry = default_registry()
        ctx = GenerationContext(target=target)
        for node_type in registry.types():
            conv = registry.lookup(node_type)
            try:
                deps = conv.dependencies(None, ctx)
            except UnsupportedTargetError:
                continue
            assert deps, node_type
            assert all(isinstance(d, str) and d for d in deps), node_type
