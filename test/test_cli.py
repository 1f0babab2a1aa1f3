import json

import pytest

from flowcode.cli import main

from flowdocs import anchor, document, llm_chain_flow, node


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ("FLOWCODE_TARGET", "FLOWCODE_MODULE_STYLE", "FLOWCODE_PROJECT", "FLOWCODE_INCLUDE_TESTS"):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def flow_file(tmp_path):
    path = tmp_path / "qa.json"
    path.write_text(json.dumps(llm_chain_flow()), encoding="utf-8")
    return path


class TestConvert:

    def test_writes_typescript(self, flow_file, tmp_path, capsys):
        out = tmp_path / "out"
        assert main(["convert", str(flow_file), "--out", str(out)]) == 0
        source = (out / "qa_chain.ts").read_text(encoding="utf-8")
        assert "export async function runLlmChain_0" in source
        stdout = capsys.readouterr().out
        assert "coverage   : 3/3 nodes" in stdout
        assert "npm install @langchain/core @langchain/openai dotenv" in stdout

    def test_writes_python_with_requirements_and_tests(self, flow_file, tmp_path):
        out = tmp_path / "out"
        code = main(["convert", str(flow_file), "--target", "python", "--tests", "--out", str(out)])
        assert code == 0
        assert "async def run_llm_chain_0" in (out / "qa_chain.py").read_text(encoding="utf-8")
        assert "from qa_chain import run_llm_chain_0" in (out / "test_qa_chain.py").read_text(encoding="utf-8")
        assert (out / "requirements.txt").read_text(encoding="utf-8") == (
            "langchain-core\nlangchain-openai\npython-dotenv\n"
        )

    def test_typescript_test_file_name(self, flow_file, tmp_path):
        out = tmp_path / "out"
        assert main(["convert", str(flow_file), "--tests", "--name", "bot", "--out", str(out)]) == 0
        assert sorted(p.name for p in out.iterdir()) == ["bot.test.ts", "bot.ts"]

    def test_print(self, flow_file, capsys):
        assert main(["convert", str(flow_file), "--print", "--no-docs"]) == 0
        captured = capsys.readouterr()
        assert captured.out.startswith("import { StringOutputParser }")
        assert "coverage" in captured.err
        assert "coverage" not in captured.out

    def test_env_values(self, flow_file, capsys):
        assert main(["convert", str(flow_file), "--print", "--env", "REGION=eu", "--env", "EMPTY="]) == 0
        out = capsys.readouterr().out
        assert "process.env.REGION ??= 'eu';" in out
        assert "process.env.EMPTY ??= '';" in out

    def test_bad_env_value(self, flow_file, tmp_path, capsys):
        code = main(["convert", str(flow_file), "--env", "NOEQUALS", "--out", str(tmp_path / "out")])
        assert code == 2
        assert "KEY=VALUE" in capsys.readouterr().err
        assert not (tmp_path / "out").exists()

    def test_fatal_flow(self, tmp_path, capsys):
        path = tmp_path / "broken.json"
        doc = document([node("llmChain_0", "llmChain", inputs=[anchor("model", required=True)])], name="broken")
        path.write_text(json.dumps(doc), encoding="utf-8")
        out = tmp_path / "out"
        assert main(["convert", str(path), "--out", str(out)]) == 1
        assert "required input 'model' is not connected" in capsys.readouterr().err
        assert not out.exists()

    def test_missing_file(self, tmp_path, capsys):
        assert main(["convert", str(tmp_path / "nope.json")]) == 1
        assert "file not found" in capsys.readouterr().err

    def test_bad_environment_setting(self, flow_file, tmp_path, monkeypatch, capsys):
        monkeypatch.setenv("FLOWCODE_TARGET", "cobol")
        out = tmp_path / "out"
        assert main(["convert", str(flow_file), "--out", str(out)]) == 2
        assert "[error] FLOWCODE_TARGET='cobol' is not one of" in capsys.readouterr().err
        assert not out.exists()


class TestValidate:

    def test_json_report(self, flow_file, capsys):
        assert main(["validate", str(flow_file), "--json"]) == 0
        report = json.loads(capsys.readouterr().out)
        assert report["success"] is True
        assert report["coverage"]["supported_nodes"] == 3

    def test_text_report(self, flow_file, capsys):
        assert main(["validate", str(flow_file)]) == 0
        assert "[flowcode] complexity" in capsys.readouterr().out

    def test_missing_file(self, tmp_path):
        assert main(["validate", str(tmp_path / "nope.json")]) == 1

    def test_file_that_is_not_utf8(self, tmp_path, capsys):
        path = tmp_path / "bad.json"
        path.write_bytes(b"\xff\xfe")
        assert main(["validate", str(path)]) == 1
        assert "not UTF-8 text" in capsys.readouterr().err

    def test_directory(self, tmp_path, capsys):
        assert main(["validate", str(tmp_path)]) == 1
        assert "cannot read file" in capsys.readouterr().err


class TestConverters:

    def test_listing(self, capsys):
        assert main(["converters"]) == 0
        out = capsys.readouterr().out
        assert "chatOpenAI" in out
        assert "deprecated → toolAgent" in out

    def test_json(self, capsys):
        assert main(["converters", "--json"]) == 0
        data = json.loads(capsys.readouterr().out)
        types = [row["type"] for row in data["converters"]]
        assert "llmChain" in types
        assert data["statistics"]["total_converters"] == len(types)
