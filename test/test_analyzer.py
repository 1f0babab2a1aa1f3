import pytest

from flowcode.analyzer import (
    analyze,
    check_required_inputs,
    check_versions,
    classify_complexity,
    detect_cycles,
    graph_stats,
    resolve_converters,
    validate_structure,
)
from flowcode.converters import default_registry
from flowcode.ir import build_graph
from flowcode.registry import ConverterRegistry
from flowcode.report import Complexity, FindingKind, Severity

from flowdocs import StubConverter, agent_flow, anchor, document, edge, llm_chain_flow, node


def _stub_registry(*types, **kwargs):
    return ConverterRegistry.build([StubConverter(t, **kwargs) for t in types])


def _cycle_doc():
    """A → B → C → A, all wired through the same `in` anchor."""
    return document(
        [node(n, "stub", inputs=["in"]) for n in ("A", "B", "C")],
        [edge("A", "B", "in"), edge("B", "C", "in"), edge("C", "A", "in")],
    )


class TestValidateStructure:

    def test_clean_graph(self):
        assert validate_structure(build_graph(llm_chain_flow())).findings == []

    def test_unknown_node_reference(self):
        doc = document([node("a", "stub", inputs=["in"])], [edge("ghost", "a", "in", edge_id="e1")])
        report = validate_structure(build_graph(doc))
        assert len(report.findings) == 1
        finding = report.findings[0]
        assert finding.kind is FindingKind.STRUCTURAL
        assert finding.edge_id == "e1"
        assert "source node 'ghost' does not exist" in finding.message
        assert report.is_fatal

    def test_undeclared_anchor(self):
        doc = document([node("a", "stub"), node("b", "stub", inputs=["in"])], [edge("a", "b", "other")])
        report = validate_structure(build_graph(doc))
        assert ["target anchor 'other' is not declared on node 'b'"] == [f.message for f in report.findings]

    def test_anchor_direction(self):
        """Test an edge from an input anchor is reported as a direction error."""
        doc = document(
            [node("a", "stub", inputs=["in"]), node("b", "stub", inputs=["in"])],
            [edge("a", "b", "in", source_anchor="in")],
        )
        report = validate_structure(build_graph(doc))
        assert "source anchor 'in' on node 'a' is an input anchor" in report.findings[0].message

    def test_arity(self):
        """Test a single-valued anchor with two incoming edges is fatal."""
        doc = document(
            [node("a", "stub"), node("b", "stub"), node("c", "stub", inputs=["in"])],
            [edge("a", "c", "in"), edge("b", "c", "in")],
        )
        report = validate_structure(build_graph(doc))
        assert len(report.findings) == 1
        assert report.findings[0].node_id == "c"
        assert "accepts one connection but has 2" in report.findings[0].message

    def test_list_anchor_accepts_many(self):
        assert validate_structure(build_graph(agent_flow())).findings == []

    def test_duplicate_ids(self):
        report = validate_structure(build_graph(document([node("a", "stub"), node("a", "stub")])))
        assert [f.message for f in report.findings] == ["duplicate node id 'a'"]


class TestCycles:

    def test_three_cycle(self):
        assert detect_cycles(build_graph(_cycle_doc())) == [["A", "B", "C", "A"]]

    def test_mutual_pair(self):
        doc = document(
            [node("A", "stub", inputs=["in"]), node("B", "stub", inputs=["in"])],
            [edge("A", "B", "in"), edge("B", "A", "in")],
        )
        assert detect_cycles(build_graph(doc)) == [["A", "B", "A"]]

    def test_self_loop(self):
        doc = document([node("A", "stub", inputs=["in"])], [edge("A", "A", "in")])
        assert detect_cycles(build_graph(doc)) == [["A", "A"]]

    def test_acyclic(self):
        assert detect_cycles(build_graph(agent_flow())) == []

    def test_cycle_is_a_warning_not_fatal(self):
        report = analyze(build_graph(_cycle_doc()), _stub_registry("stub"))
        cycles = report.of_kind(FindingKind.CYCLE)
        assert len(cycles) == 1
        assert cycles[0].severity is Severity.WARNING
        assert "A -> B -> C -> A" in cycles[0].message
        assert not report.is_fatal


class TestCoverage:

    def test_all_supported(self):
        coverage, unsupported = resolve_converters(build_graph(llm_chain_flow()), default_registry())
        assert coverage.ratio == 1.0
        assert unsupported == []
        assert coverage.supported_types == ["chatOpenAI", "promptTemplate", "llmChain"]

    def test_unsupported_types_warn_once(self):
        """Test two nodes of one unknown type produce a single coverage warning."""
        doc = document([node("a", "mystery"), node("b", "mystery"), node("c", "calculator")])
        report = analyze(build_graph(doc), default_registry())
        coverage = report.of_kind(FindingKind.COVERAGE)
        assert len(coverage) == 1
        assert coverage[0].node_type == "mystery"
        assert "a, b" in coverage[0].message
        assert report.coverage.supported_nodes == 1
        assert report.coverage.ratio == pytest.approx(1 / 3)
        assert not report.is_fatal

    def test_empty_graph_is_fully_covered(self):
        report = analyze(build_graph(document([])), default_registry())
        assert report.coverage.ratio == 1.0
        assert report.findings == []

    def test_aliases_count_as_supported(self):
        coverage, _ = resolve_converters(build_graph(document([node("a", "gpt")])), default_registry())
        assert coverage.supported_nodes == 1


class TestRequiredInputs:

    def test_missing_required_input_is_fatal(self):
        doc = llm_chain_flow()
        doc["edges"] = doc["edges"][:1]
        findings = check_required_inputs(build_graph(doc), default_registry())
        assert len(findings) == 1
        assert findings[0].kind is FindingKind.MISSING_INPUT
        assert findings[0].node_id == "llmChain_0"
        assert findings[0].fatal

    def test_unsupported_nodes_are_not_checked(self):
        doc = document([node("a", "mystery", inputs=[anchor("x", required=True)])])
        assert check_required_inputs(build_graph(doc), default_registry()) == []


class TestVersions:

    def test_deprecated_type_warns_once(self):
        doc = document([node("a", "old"), node("b", "old")])
        registry = _stub_registry("old", deprecated=True, replacement="new")
        findings = check_versions(build_graph(doc), registry)
        assert len(findings) == 1
        assert findings[0].kind is FindingKind.DEPRECATION
        assert findings[0].replacement == "new"
        assert "use 'new' instead" in findings[0].message

    def test_version_outside_supported_list_is_info(self):
        doc = document([node("a", "stub", version="3.0"), node("b", "stub", version="1.0"), node("c", "stub")])
        findings = check_versions(build_graph(doc), _stub_registry("stub", versions=("1.0", "2.0")))
        assert [(f.kind, f.severity, f.node_id) for f in findings] == [(FindingKind.VERSION, Severity.INFO, "a")]

    def test_wildcard_accepts_any_version(self):
        doc = document([node("a", "stub", version="99")])
        assert check_versions(build_graph(doc), _stub_registry("stub")) == []

    def test_builtin_deprecated_agent(self):
        doc = document([node("a", "mrklAgentChat")])
        findings = check_versions(build_graph(doc), default_registry())
        assert findings[0].replacement == "toolAgent"


class TestMetrics:

    def test_complexity_thresholds(self):
        assert classify_complexity(build_graph(llm_chain_flow())) is Complexity.SIMPLE
        assert classify_complexity(build_graph(agent_flow())) is Complexity.MODERATE
        big = document([node(f"n{i}", "stub") for i in range(16)])
        assert classify_complexity(build_graph(big)) is Complexity.COMPLEX

    def test_stats(self):
        stats = graph_stats(build_graph(llm_chain_flow()))
        assert stats.entry_points == ["chatOpenAI_0", "promptTemplate_0"]
        assert stats.exit_points == ["llmChain_0"]
        assert stats.max_depth == 1
        assert stats.isolated == []
        assert stats.type_counts == {"chatOpenAI": 1, "promptTemplate": 1, "llmChain": 1}

    def test_isolated_nodes_are_info(self):
        doc = llm_chain_flow()
        doc["nodes"].append(node("calculator_0", "calculator"))
        report = analyze(build_graph(doc), default_registry())
        isolated = report.of_kind(FindingKind.ISOLATED)
        assert [f.node_id for f in isolated] == ["calculator_0"]
        assert isolated[0].severity is Severity.INFO


class TestAnalyze:

    def test_clean_flow(self):
        report = analyze(build_graph(llm_chain_flow()), default_registry())
        assert report.findings == []
        assert report.complexity is Complexity.SIMPLE
        assert report.to_dict()["success"] is True

    def test_report_dict(self):
        doc = document([node("a", "mystery")])
        data = analyze(build_graph(doc), default_registry()).to_dict()
        assert data["success"] is True
        assert data["warnings"][0]["kind"] == "coverage"
        assert data["coverage"]["unsupported_types"] == ["mystery"]
        assert data["stats"]["node_count"] == 1
