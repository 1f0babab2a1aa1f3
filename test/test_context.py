import pytest

from flowcode.context import (
    CodeStyle,
    GenerationContext,
    ModuleStyle,
    NodeBinding,
    QuoteStyle,
    TargetLanguage,
)
from flowcode.errors import ConfigurationError, ConversionError


class TestGenerationContext:

    def test_defaults(self):
        ctx = GenerationContext()
        assert ctx.target is TargetLanguage.TYPESCRIPT
        assert ctx.module_style is ModuleStyle.ESM
        assert ctx.indent_size == 2
        assert ctx.uses_esm
        assert ctx.include_docs and not ctx.include_tracing and not ctx.include_tests

    def test_string_enums_are_converted(self):
        ctx = GenerationContext(target="python", module_style="cjs")
        assert ctx.is_python
        assert ctx.indent_size == 4
        assert not ctx.uses_esm

    def test_explicit_indent(self):
        assert GenerationContext(target="python", code_style=CodeStyle(indent_size=2)).indent_size == 2

    def test_environment_is_read_only(self):
        ctx = GenerationContext(environment={"A": 1})
        assert ctx.environment["A"] == "1"
        with pytest.raises(TypeError):
            ctx.environment["B"] = "2"

    def test_for_node_copies(self):
        """Test deriving a per-node view leaves the original untouched."""
        ctx = GenerationContext()
        derived = ctx.for_node(NodeBinding("n", "n_ident", {"model": ("m",)}))
        assert derived.identifier == "n_ident"
        assert ctx.binding is None
        assert derived.target is ctx.target

    def test_references(self):
        ctx = GenerationContext().for_node(NodeBinding("n", "n", {"tools": ("a", "b")}))
        assert ctx.references("tools") == ("a", "b")
        assert ctx.references("memory") == ()
        assert ctx.reference("tools") == "a"
        assert ctx.reference("memory", required=False) is None

    def test_missing_required_reference(self):
        ctx = GenerationContext().for_node(NodeBinding("llmChain_0", "llmChain_0"))
        with pytest.raises(ConversionError, match="input 'model' is not connected") as info:
            ctx.reference("model")
        assert info.value.node_id == "llmChain_0"

    def test_identifier_without_binding(self):
        with pytest.raises(ConversionError):
            GenerationContext().identifier

    def test_to_dict(self):
        data = GenerationContext(target="python", project_name="demo").to_dict()
        assert data["target"] == "python"
        assert data["indent_size"] == 4
        assert data["project_name"] == "demo"
        assert data["quotes"] == "single"


class TestFromEnv:

    def test_environment_values(self):
        ctx = GenerationContext.from_env(environ={
            "FLOWCODE_TARGET": "python",
            "FLOWCODE_MODULE_STYLE": "cjs",
            "FLOWCODE_TRACING": "true",
            "FLOWCODE_INDENT": "3",
            "FLOWCODE_QUOTES": "double",
            "FLOWCODE_SEMICOLONS": "no",
            "FLOWCODE_PROJECT": "demo",
        })
        assert ctx.target is TargetLanguage.PYTHON
        assert ctx.module_style is ModuleStyle.CJS
        assert ctx.include_tracing is True
        assert ctx.indent_size == 3
        assert ctx.code_style.quotes is QuoteStyle.DOUBLE
        assert ctx.code_style.semicolons is False
        assert ctx.project_name == "demo"

    def test_overrides_win_and_none_falls_through(self):
        ctx = GenerationContext.from_env(
            environ={"FLOWCODE_TARGET": "python", "FLOWCODE_PROJECT": "env"},
            target=None,
            project_name="cli",
            include_tests=True,
        )
        assert ctx.target is TargetLanguage.PYTHON
        assert ctx.project_name == "cli"
        assert ctx.include_tests is True

    def test_empty_environment_gives_defaults(self):
        assert GenerationContext.from_env(environ={}).to_dict() == GenerationContext().to_dict()

    def test_dotenv_file(self, tmp_path, monkeypatch):
        """Test FLOWCODE_* values are picked up from a .env file."""
        # set then delete so monkeypatch restores the variables after the test
        for key in ("FLOWCODE_TARGET", "FLOWCODE_PROJECT"):
            monkeypatch.setenv(key, "")
            monkeypatch.delenv(key)
        env_file = tmp_path / ".env"
        env_file.write_text("FLOWCODE_TARGET=javascript\nFLOWCODE_PROJECT=from_file\n", encoding="utf-8")

        ctx = GenerationContext.from_env(env_file=str(env_file))
        assert ctx.target is TargetLanguage.JAVASCRIPT
        assert ctx.project_name == "from_file"

    @pytest.mark.parametrize("key", ["FLOWCODE_TARGET", "FLOWCODE_MODULE_STYLE", "FLOWCODE_QUOTES"])
    def test_unknown_choice(self, key):
        with pytest.raises(ConfigurationError, match=f"{key}='cobol' is not one of"):
            GenerationContext.from_env(environ={key: "cobol"})

    def test_choices_ignore_case(self):
        ctx = GenerationContext.from_env(environ={"FLOWCODE_TARGET": " Python "})
        assert ctx.target is TargetLanguage.PYTHON
