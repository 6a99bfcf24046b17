"""
CLI tests through typer's CliRunner against a file-backed store in tmp_path.
"""

import pytest
from typer.testing import CliRunner

from rag_chat.cli import app

runner = CliRunner()


@pytest.fixture
def cli_env(clean_env, tmp_path):
    clean_env.setenv("RAG_STORE_FILE", str(tmp_path / "kb.json"))
    clean_env.setenv("RAG_SEED_DEFAULTS", "false")
    clean_env.setenv("LOG_LEVEL", "WARNING")
    return clean_env


def _add(title, content):
    result = runner.invoke(app, ["add", "--title", title, "--content", content])
    assert result.exit_code == 0, result.output
    return result.output.strip().splitlines()[-1]


class TestCli:
    def test_version(self, cli_env):
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert "rag-chat 0.1.0" in result.output

    def test_health(self, cli_env):
        result = runner.invoke(app, ["health"])
        assert result.exit_code == 0
        assert "OK" in result.output

    def test_add_list_show(self, cli_env):
        doc_id = _add("Python Notes", "Python is a programming language.")

        listed = runner.invoke(app, ["list"])
        assert doc_id in listed.output
        assert "Python Notes" in listed.output

        shown = runner.invoke(app, ["show", doc_id])
        assert shown.exit_code == 0
        assert "Python is a programming language." in shown.output

    def test_list_by_source(self, cli_env):
        _add("Manual", "manual content")

        result = runner.invoke(app, ["list", "--source", "upload"])

        assert result.exit_code == 0
        assert "Knowledge base is empty." in result.output

    def test_add_rejects_empty_content(self, cli_env):
        result = runner.invoke(app, ["add", "--title", "T", "--content", "   "])
        assert result.exit_code == 1

    def test_search(self, cli_env):
        _add("Python Notes", "Python is a programming language.")
        _add("Cooking", "Boil the pasta.")

        result = runner.invoke(app, ["search", "python language"])

        assert result.exit_code == 0
        assert "Rank: 1" in result.output
        assert "Python Notes" in result.output
        assert "Cooking" not in result.output

    def test_search_without_results(self, cli_env):
        result = runner.invoke(app, ["search", "anything"])
        assert "No results found." in result.output

    def test_update_and_remove(self, cli_env):
        doc_id = _add("Old", "old content")

        assert runner.invoke(app, ["update", doc_id, "--title", "New"]).exit_code == 0
        assert "New" in runner.invoke(app, ["show", doc_id]).output

        assert runner.invoke(app, ["remove", doc_id]).exit_code == 0
        assert runner.invoke(app, ["remove", doc_id]).exit_code == 1
        assert runner.invoke(app, ["show", doc_id]).exit_code == 1

    def test_stats_and_clear(self, cli_env):
        _add("A", "12345")
        _add("B", "123")

        stats = runner.invoke(app, ["stats"])
        assert "Documents: 2" in stats.output
        assert "Content characters: 8" in stats.output

        assert runner.invoke(app, ["clear", "--yes"]).exit_code == 0
        assert "Documents: 0" in runner.invoke(app, ["stats"]).output

    def test_add_file(self, cli_env, tmp_path):
        path = tmp_path / "notes.md"
        path.write_text("# Notes\n\nSome markdown.", encoding="utf-8")

        result = runner.invoke(app, ["add-file", str(path)])

        assert result.exit_code == 0, result.output
        assert "notes.md" in runner.invoke(app, ["list", "--source", "upload"]).output

    def test_add_unsupported_file(self, cli_env, tmp_path):
        path = tmp_path / "photo.png"
        path.write_bytes(b"\x89PNG")

        result = runner.invoke(app, ["add-file", str(path)])

        assert result.exit_code == 1
        assert "Unsupported file type" in result.output

    def test_seeds_default_knowledge(self, cli_env):
        cli_env.setenv("RAG_SEED_DEFAULTS", "true")

        result = runner.invoke(app, ["search", "Was ist RAG?"])

        assert "RAG (Retrieval-Augmented Generation)" in result.output

    def test_ask_without_api_key(self, cli_env):
        result = runner.invoke(app, ["ask", "hello"])

        assert result.exit_code == 1
        assert "MISTRAL_API_KEY" in result.output

    def test_embedding_scorer_without_api_key(self, cli_env):
        cli_env.setenv("RAG_SCORER", "embedding")

        result = runner.invoke(app, ["search", "anything"])

        assert result.exit_code == 1
        assert "MISTRAL_API_KEY" in result.output
