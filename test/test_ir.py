import pytest

from flowcode.ir import ParamStatus, build_graph

from flowdocs import anchor, document, edge, llm_chain_flow, node


class TestBuildGraph:

    def test_canonical_document(self):
        """Test nodes, anchors and edges are read from the canonical shape."""
        graph = build_graph(llm_chain_flow())
        assert graph.name == "qa-chain"
        assert list(graph.nodes) == ["chatOpenAI_0", "promptTemplate_0", "llmChain_0"]
        assert graph.node_count == 3
        assert graph.edge_count == 2

        chain = graph.get_node("llmChain_0")
        model = chain.input_anchor("model")
        assert model.required is True
        assert model.list is False
        assert chain.input_named("outputParser").required is False

    def test_document_order_is_kept(self):
        """Test index_of follows document order and unknown ids sort last."""
        graph = build_graph(llm_chain_flow())
        assert graph.index_of("chatOpenAI_0") == 0
        assert graph.index_of("llmChain_0") == 2
        assert graph.index_of("nope") == 3

    def test_incoming_edges(self):
        graph = build_graph(llm_chain_flow())
        assert [e.source_node_id for e in graph.get_incoming("llmChain_0", "model")] == ["chatOpenAI_0"]
        assert len(graph.get_all_incoming("llmChain_0")) == 2
        assert graph.get_all_incoming("chatOpenAI_0") == []
        assert [e.target_node_id for e in graph.get_all_outgoing("chatOpenAI_0")] == ["llmChain_0"]

    def test_duplicate_ids_keep_first(self):
        """Test a repeated node id is recorded rather than raised."""
        doc = document([node("a", "calculator"), node("a", "promptTemplate")])
        graph = build_graph(doc)
        assert graph.node_count == 1
        assert graph.get_node("a").type == "calculator"
        assert graph.duplicate_node_ids == ("a",)

    def test_odd_entries_are_skipped(self):
        """Test non-object entries never make construction fail."""
        graph = build_graph({"nodes": [node("a", "calculator"), "junk", 7], "edges": [None]})
        assert list(graph.nodes) == ["a"]
        assert graph.edges == ()

    def test_missing_ids_are_generated(self):
        graph = build_graph({"nodes": [{"type": "calculator"}], "edges": [{"source": "x", "target": "y"}]})
        assert list(graph.nodes) == ["node_0"]
        assert graph.edges[0].id == "edge_0"

    def test_name_fallbacks(self):
        assert build_graph({"nodes": []}).name == "flow"
        assert build_graph({"graph_name": "g"}).name == "g"
        assert build_graph({"name": "doc"}, name="override").name == "override"

    def test_edge_anchor_aliases(self):
        """Test sourceAnchor/targetAnchor are accepted as well as handles."""
        doc = document([node("a", "x"), node("b", "y", inputs=["in"])])
        doc["edges"] = [{"id": "e", "source": "a", "sourceAnchor": "output", "target": "b", "targetAnchor": "in"}]
        e = build_graph(doc).edges[0]
        assert (e.source_anchor_id, e.target_anchor_id) == ("output", "in")

    def test_resolvable_edges(self):
        doc = document([node("a", "x")], [edge("a", "ghost", "in")])
        graph = build_graph(doc)
        assert graph.edge_count == 1
        assert graph.resolvable_edges() == []

    def test_graph_is_immutable(self):
        graph = build_graph(llm_chain_flow())
        with pytest.raises(Exception):
            graph.name = "other"


class TestFlowiseShape:

    @pytest.fixture
    def flowise_doc(self):
        return {
            "nodes": [
                {
                    "id": "chatOpenAI_0",
                    "position": {"x": 10, "y": 20},
                    "data": {
                        "name": "chatOpenAI",
                        "label": "ChatOpenAI",
                        "category": "Chat Models",
                        "version": 6,
                        "inputParams": [
                            {"name": "modelName", "type": "options", "default": "gpt-4o"},
                            {"name": "temperature", "type": "number"},
                        ],
                        "inputAnchors": [{"id": "chatOpenAI_0-input-cache-BaseCache", "name": "cache",
                                          "type": "BaseCache", "optional": True}],
                        "outputAnchors": [{"id": "chatOpenAI_0-output-chatOpenAI-ChatOpenAI",
                                           "name": "chatOpenAI", "type": "ChatOpenAI | BaseChatModel"}],
                        "inputs": {"temperature": 0.3},
                    },
                },
                {
                    "id": "memoryVectorStore_0",
                    "data": {
                        "name": "memoryVectorStore",
                        "inputAnchors": [{"id": "emb", "name": "embeddings", "type": "Embeddings"}],
                        "outputAnchors": [{
                            "name": "output",
                            "type": "options",
                            "options": [
                                {"id": "mvs-retriever", "name": "retriever", "type": "BaseRetriever"},
                                {"id": "mvs-store", "name": "vectorStore", "type": "VectorStore"},
                            ],
                        }],
                    },
                },
            ],
            "edges": [],
        }

    def test_flowise_node(self, flowise_doc):
        """Test data.name/inputParams/inputs are mapped onto an IRNode."""
        n = build_graph(flowise_doc).get_node("chatOpenAI_0")
        assert n.type == "chatOpenAI"
        assert n.category == "Chat Models"
        assert n.version == "6"
        assert n.position == (10.0, 20.0)
        assert n.param("temperature").value == 0.3
        assert n.param("modelName").value == "gpt-4o"
        assert n.outputs[0].types == ("ChatOpenAI", "BaseChatModel")
        assert n.inputs[0].required is False

    def test_options_outputs_are_flattened(self, flowise_doc):
        n = build_graph(flowise_doc).get_node("memoryVectorStore_0")
        assert [a.name for a in n.outputs] == ["retriever", "vectorStore"]
        assert n.output_anchor("mvs-store").name == "vectorStore"


class TestParameters:

    @pytest.fixture
    def n(self):
        doc = document([node("n", "x", temperature="0.5", count=3, enabled="yes", empty="", tags="a, b,")])
        return build_graph(doc).get_node("n")

    def test_present_and_missing(self, n):
        assert n.param("count").status is ParamStatus.PRESENT
        assert n.param("nope").missing
        assert n.param("nope", 1).status is ParamStatus.DEFAULTED

    def test_empty_string_counts_as_absent(self, n):
        assert n.param("empty").missing
        assert n.param("empty", "x").as_str() == "x"

    def test_coercions(self, n):
        assert n.param("temperature").as_float() == 0.5
        assert n.param("temperature").as_int() == 0
        assert n.param("enabled").as_bool() is True
        assert n.param("tags").as_list() == ["a", "b"]
        assert n.param("nope").as_int(7) == 7

    def test_list_parameters(self):
        doc = document([])
        doc["nodes"] = [{"id": "n", "type": "x", "parameters": [{"name": "k", "value": 2, "type": "number"}]}]
        n = build_graph(doc).get_node("n")
        assert n.param_names() == ["k"]
        assert n.parameters[0].declared_type == "number"
        assert n.param("k").as_int() == 2

    def test_anchor_defaults(self):
        n = build_graph(document([node("n", "x", inputs=[anchor("tools", many=True)])])).get_node("n")
        assert n.inputs[0].list is True
        assert n.outputs[0].data_type == "any"
