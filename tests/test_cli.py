"""Tests for CLI functionality."""

from pathlib import Path

import pytest
from click.testing import CliRunner

from conftest import FakeInvoker, failing
from review_relay.cli import main
from review_relay.config import parse_env_content
from review_relay.models import Backend


@pytest.fixture
def gemini(mocker) -> FakeInvoker:
    """Replace every real backend call with scripted invokers."""
    invoker = FakeInvoker("CLI review text")
    mocker.patch.dict("review_relay.backends.DEFAULT_INVOKERS", {
        Backend.GEMINI: invoker,
        Backend.CLAUDE: FakeInvoker(failing(Backend.CLAUDE, "unexpected call")),
        Backend.OPENROUTER: FakeInvoker(failing(Backend.OPENROUTER, "unexpected call")),
    })
    return invoker


@pytest.fixture
def in_repo(sample_python_project: Path, home_dir: Path, monkeypatch) -> Path:
    """Run the CLI from inside the sample repository with an isolated home."""
    monkeypatch.setenv("HOME", str(home_dir))
    monkeypatch.chdir(sample_python_project)
    return sample_python_project


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


class TestReviewCommands:
    """Test the review commands."""

    def test_review_changes(self, runner, in_repo, gemini, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "g-key")
        (in_repo / "src" / "utils.py").write_text("CHANGED = True\n")

        result = runner.invoke(main, ["review"])

        assert result.exit_code == 0, result.output
        assert "CLI review text" in result.output
        assert "CHANGED = True" in gemini.prompts[0]

    def test_default_command_is_review(self, runner, in_repo, gemini, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "g-key")
        (in_repo / "src" / "utils.py").write_text("CHANGED = True\n")

        result = runner.invoke(main, [])

        assert result.exit_code == 0, result.output
        assert gemini.calls == 1

    def test_review_without_changes(self, runner, in_repo, gemini, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "g-key")

        result = runner.invoke(main, ["review"])

        assert result.exit_code == 0
        assert "No changes found" in result.output
        assert gemini.calls == 0

    def test_review_output_file(self, runner, in_repo, gemini, monkeypatch, tmp_path):
        monkeypatch.setenv("GEMINI_API_KEY", "g-key")
        (in_repo / "src" / "utils.py").write_text("CHANGED = True\n")
        output_file = tmp_path / "review.md"

        result = runner.invoke(main, ["review", "-o", str(output_file)])

        assert result.exit_code == 0, result.output
        assert output_file.read_text() == "CLI review text"

    def test_commit(self, runner, in_repo, gemini, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "g-key")

        result = runner.invoke(main, ["commit"])

        assert result.exit_code == 0, result.output
        assert "Add sample Python project" in gemini.prompts[0]

    def test_commit_invalid_hash_fails(self, runner, in_repo, gemini, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "g-key")

        result = runner.invoke(main, ["commit", "zzz"])

        assert result.exit_code == 1
        assert "Invalid commit hash" in result.output

    def test_files(self, runner, in_repo, gemini, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "g-key")

        result = runner.invoke(main, ["files", "src/main.py", "src/utils.py"])

        assert result.exit_code == 0, result.output
        assert "## File: src/utils.py" in gemini.prompts[0]

    def test_all_services_failing(self, runner, in_repo, gemini):
        (in_repo / "src" / "utils.py").write_text("CHANGED = True\n")

        result = runner.invoke(main, ["review"])

        assert result.exit_code == 1
        assert "All AI services failed" in result.output

    def test_unknown_service_rejected(self, runner, in_repo, gemini):
        result = runner.invoke(main, ["review", "--service", "gpt"])
        assert result.exit_code == 2


class TestConfigCommands:
    """Test status and configure."""

    def test_status(self, runner, in_repo, gemini, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "g-key")

        result = runner.invoke(main, ["status"])

        assert result.exit_code == 0, result.output
        assert "gemini" in result.output
        assert "Auto switch: on" in result.output
        assert "g-key" not in result.output

    def test_configure_writes_project_env(self, runner, in_repo, gemini):
        result = runner.invoke(main, ["configure", "claude", "--api-key", "c-key", "--timeout", "45"])

        assert result.exit_code == 0, result.output
        values = parse_env_content((in_repo / ".env").read_text())
        assert values["AI_SERVICE"] == "claude"
        assert values["CLAUDE_API_KEY"] == "c-key"
        assert values["AI_TIMEOUT"] == "45"

    def test_configure_global(self, runner, in_repo, gemini, home_dir):
        result = runner.invoke(main, ["configure", "openrouter", "--scope", "global", "--language", "fr-FR"])

        assert result.exit_code == 0, result.output
        values = parse_env_content((home_dir / ".review-relay" / "env").read_text())
        assert values == {"AI_SERVICE": "openrouter", "AI_LANGUAGE": "fr-FR"}

    def test_configure_rejects_bad_timeout(self, runner, in_repo, gemini):
        result = runner.invoke(main, ["configure", "gemini", "--timeout", "0"])
        assert result.exit_code == 2
