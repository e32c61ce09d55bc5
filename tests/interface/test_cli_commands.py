"""Tests for CLI commands: help, add, import, due, study, stats, config, serve."""

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from typer.testing import CliRunner

from phrasal.interface.cli import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def cli_env(tmp_path, monkeypatch):
    """Point the CLI at a throwaway database with content generation off."""
    monkeypatch.setenv("PHRASAL_DATABASE_URL", f"sqlite:///{tmp_path / 'cli.db'}")
    monkeypatch.setenv("PHRASAL_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.delenv("PHRASAL_LLM_API_KEY", raising=False)
    monkeypatch.delenv("PHRASAL_USER_ID", raising=False)
    return tmp_path


# --- Help ---


def test_cli_help():
    """Test that help text is displayed correctly."""
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "Spaced-repetition study sessions" in result.stdout
    assert "study" in result.stdout
    assert "import" in result.stdout
    assert "config" in result.stdout


# --- Phrases ---


def test_add_then_due():
    result = runner.invoke(app, ["add", "hola mundo", "--translation", "hello world"])
    assert result.exit_code == 0
    assert "Added phrase_" in result.stdout

    result = runner.invoke(app, ["due"])
    assert result.exit_code == 0
    assert "Due phrases: 1" in result.stdout
    assert "[new] hola mundo  (hello world)" in result.stdout


def test_due_json_output():
    runner.invoke(app, ["add", "uno"])
    runner.invoke(app, ["add", "dos"])

    result = runner.invoke(app, ["due", "--json"])

    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert [d["text"] for d in data] == ["uno", "dos"]
    assert data[0]["next_review_at"] is None


def test_due_empty():
    result = runner.invoke(app, ["due", "--user", "nobody"])
    assert result.exit_code == 0
    assert "Nothing due." in result.stdout


def test_import_command(cli_env):
    path = cli_env / "phrases.yaml"
    path.write_text("- hola\n- text: adiós\n  translation: goodbye\n", encoding="utf-8")

    result = runner.invoke(app, ["import", str(path)])

    assert result.exit_code == 0
    assert "Imported 2 phrases." in result.stdout


def test_import_bad_file(cli_env):
    path = cli_env / "bad.yaml"
    path.write_text("not: [a list", encoding="utf-8")

    result = runner.invoke(app, ["import", str(path)])

    assert result.exit_code == 1
    assert "Invalid YAML" in result.output


# --- Study ---


def test_study_single_phrase():
    runner.invoke(app, ["add", "hola mundo", "--translation", "hello world"])

    result = runner.invoke(app, ["study", "--no-narrative"], input="\n3\n")

    assert result.exit_code == 0, result.output
    assert "hola mundo" in result.stdout
    assert "-> hello world" in result.stdout
    assert "Session complete" in result.stdout
    assert "Reviewed: 1/1" in result.stdout
    assert "Average grade: 3.00" in result.stdout

    # Graded phrase is no longer due
    result = runner.invoke(app, ["due"])
    assert "Nothing due." in result.stdout


def test_study_skip_and_end_drill():
    runner.invoke(app, ["add", "uno"])
    runner.invoke(app, ["add", "dos"])

    # skip "uno", then end the drill on "dos"
    result = runner.invoke(app, ["study", "--no-narrative"], input="\ns\n\nq\n")

    assert result.exit_code == 0, result.output
    assert "Reviewed: 0/2" in result.stdout


def test_study_without_content_skips_narrative():
    runner.invoke(app, ["add", "uno"])

    result = runner.invoke(app, ["study"], input="\n4\n")

    assert result.exit_code == 0, result.output
    assert "Generating review story..." in result.stdout
    assert "Reviewed: 1/1" in result.stdout


def test_study_nothing_due():
    result = runner.invoke(app, ["study"])
    assert result.exit_code == 1
    assert "No phrases available for study" in result.output


# --- Stats ---


def test_stats_json_after_study():
    runner.invoke(app, ["add", "uno"])
    runner.invoke(app, ["study", "--no-narrative"], input="\n1\n")

    result = runner.invoke(app, ["stats", "--json"])

    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["total_reviews"] == 1
    assert data["total_phrases"] == 1
    assert data["retention_rate"] == 0.0


def test_stats_text():
    result = runner.invoke(app, ["stats"])
    assert result.exit_code == 0
    assert "Phrases: 0" in result.stdout
    assert "Retention: 0.0%" in result.stdout


# --- Config ---


@patch("phrasal.interface.cli.resolve_config")
def test_config_show_command(mock_resolve_config):
    """Test config show command displays JSON."""
    mock_config = MagicMock()
    mock_config.model_dump.return_value = {
        "log_dir": Path("/tmp/logs"),
        "user_id": "default",
        "llm_api_key": "sk-secret",
    }
    mock_resolve_config.return_value = mock_config

    result = runner.invoke(app, ["config", "show"])

    assert result.exit_code == 0
    output_data = json.loads(result.stdout)
    assert output_data["log_dir"] == str(Path("/tmp/logs"))
    assert output_data["user_id"] == "default"
    assert output_data["llm_api_key"] == "***"


# --- Server ---


@patch("uvicorn.run")
def test_serve_command(mock_run):
    result = runner.invoke(app, ["serve", "--port", "9001"])

    assert result.exit_code == 0
    mock_run.assert_called_once_with(
        "phrasal.server:app", host="127.0.0.1", port=9001, reload=False
    )


# --- Logs ---


@patch("subprocess.run")
def test_logs_command_creates_dir(mock_run, cli_env, monkeypatch):
    monkeypatch.setattr("sys.platform", "linux")
    log_dir = cli_env / "logs"

    result = runner.invoke(app, ["logs"])

    assert result.exit_code == 0
    assert log_dir.exists()
    mock_run.assert_called_once_with(["xdg-open", str(log_dir)])
