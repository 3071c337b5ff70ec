"""Tests for CLI commands."""

from datetime import datetime
from pathlib import Path
from tempfile import TemporaryDirectory

import httpx
import pytest
import respx
import yaml
from httpx import Response
from typer.testing import CliRunner

from dwight.chat.types import ChatMessage
from dwight.cli.app import app
from dwight.storage.conversations import ConversationStore
from dwight.storage.schema import Conversation

runner = CliRunner()

HOST = "http://localhost:11434"


@pytest.fixture
def workspace():
    """Config file whose storage points into a temporary directory."""
    with TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        config_path = root / "dwight.yaml"
        config_path.write_text(
            yaml.dump(
                {
                    "ollama": {"host": HOST},
                    "storage": {
                        "conversations_dir": str(root / "conversations"),
                        "exports_dir": str(root / "exports"),
                    },
                    "profiles": [
                        {"name": "General Assistant", "model": "llama3.2:3b"},
                        {"name": "Coder", "model": "qwen2.5-coder:7b", "temperature": 0.2},
                    ],
                    "current_profile": 1,
                }
            )
        )
        yield root, str(config_path)


def _save_conversation(root: Path, conv_id: str, title: str) -> None:
    now = datetime(2026, 10, 18, 9, 0, 0)
    ConversationStore(root / "conversations").save(
        Conversation(
            id=conv_id,
            title=title,
            model="llama3.2:3b",
            profile_name="General Assistant",
            created=now,
            last_modified=now,
            messages=[
                ChatMessage(role="user", content=title),
                ChatMessage(role="assistant", content="Sure.", prompt_tokens=3, total_tokens=5),
            ],
        )
    )


def test_version_command():
    """Test version command."""
    result = runner.invoke(app, ["version"])

    assert result.exit_code == 0
    assert "dwight version" in result.stdout


def test_help_command():
    """Test help output."""
    result = runner.invoke(app, ["--help"])

    assert result.exit_code == 0
    assert "chat" in result.stdout
    assert "conversations" in result.stdout
    assert "models" in result.stdout


def test_chat_help():
    result = runner.invoke(app, ["chat", "--help"])

    assert result.exit_code == 0
    assert "--no-stream" in result.stdout
    assert "--profile" in result.stdout


def test_profiles_command(workspace):
    _, config_path = workspace

    result = runner.invoke(app, ["profiles", "list", "--config", config_path])

    assert result.exit_code == 0
    assert "General Assistant" in result.stdout
    assert "qwen2.5-coder:7b" in result.stdout


def _reload(config_path: str) -> dict:
    return yaml.safe_load(Path(config_path).read_text())


def test_profiles_add_writes_config(workspace):
    _, config_path = workspace

    result = runner.invoke(
        app,
        [
            "profiles",
            "add",
            "Writer",
            "mistral:7b",
            "--system-prompt",
            "You edit prose.",
            "--temperature",
            "0.4",
            "--config",
            config_path,
        ],
    )

    assert result.exit_code == 0
    assert "Added profile 2" in result.stdout
    saved = _reload(config_path)
    assert [p["name"] for p in saved["profiles"]] == ["General Assistant", "Coder", "Writer"]
    assert saved["profiles"][2]["model"] == "mistral:7b"
    assert saved["profiles"][2]["system_prompt"] == "You edit prose."
    assert saved["profiles"][2]["temperature"] == 0.4
    assert saved["current_profile"] == 1


def test_profiles_add_rejects_bad_temperature(workspace):
    _, config_path = workspace

    result = runner.invoke(
        app,
        ["profiles", "add", "Hot", "llama3.2", "--temperature", "1.5", "--config", config_path],
    )

    assert "Invalid profile" in result.stdout
    assert len(_reload(config_path)["profiles"]) == 2


def test_profiles_add_rejects_duplicate_name(workspace):
    _, config_path = workspace

    result = runner.invoke(app, ["profiles", "add", "Coder", "codellama:7b", "--config", config_path])

    assert "already exists" in result.stdout
    assert _reload(config_path)["profiles"][1]["model"] == "qwen2.5-coder:7b"


def test_profiles_use_sets_default(workspace):
    _, config_path = workspace

    result = runner.invoke(app, ["profiles", "use", "0", "--config", config_path])

    assert result.exit_code == 0
    assert "General Assistant" in result.stdout
    assert _reload(config_path)["current_profile"] == 0


def test_profiles_use_unknown_index(workspace):
    _, config_path = workspace

    result = runner.invoke(app, ["profiles", "use", "5", "--config", config_path])

    assert "No profile with index 5" in result.stdout
    assert _reload(config_path)["current_profile"] == 1


def test_profiles_rm_keeps_current_profile(workspace):
    _, config_path = workspace

    result = runner.invoke(app, ["profiles", "rm", "0", "--yes", "--config", config_path])

    assert result.exit_code == 0
    assert "Deleted profile" in result.stdout
    saved = _reload(config_path)
    assert [p["name"] for p in saved["profiles"]] == ["Coder"]
    assert saved["current_profile"] == 0


def test_profiles_rm_refuses_last_profile(workspace):
    _, config_path = workspace
    runner.invoke(app, ["profiles", "rm", "1", "--yes", "--config", config_path])

    result = runner.invoke(app, ["profiles", "rm", "0", "--yes", "--config", config_path])

    assert "Cannot remove the only profile" in result.stdout
    assert [p["name"] for p in _reload(config_path)["profiles"]] == ["General Assistant"]


def test_profiles_rm_declined(workspace):
    _, config_path = workspace

    result = runner.invoke(app, ["profiles", "rm", "0", "--config", config_path], input="n\n")

    assert result.exit_code == 0
    assert len(_reload(config_path)["profiles"]) == 2


@respx.mock
def test_chat_prompt_uses_configured_user_name(workspace):
    _, config_path = workspace
    config = _reload(config_path)
    config["chat"] = {"user_name": "Dwight"}
    Path(config_path).write_text(yaml.dump(config))
    respx.get(f"{HOST}/api/tags").mock(
        return_value=Response(200, json={"models": [{"name": "qwen2.5-coder:7b"}]})
    )

    result = runner.invoke(app, ["chat", "--config", config_path], input="/exit\n")

    assert result.exit_code == 0
    assert "Dwight" in result.stdout
    assert "Goodbye" in result.stdout


def test_chat_rejects_unknown_profile(workspace):
    _, config_path = workspace

    result = runner.invoke(app, ["chat", "--config", config_path, "--profile", "7"])

    assert result.exit_code == 0
    assert "No profile with index 7" in result.stdout


def test_invalid_config_reported():
    with TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "bad.yaml"
        config_path.write_text("ollama: [unclosed")

        result = runner.invoke(app, ["profiles", "list", "--config", str(config_path)])

    assert "Failed to load config" in result.stdout


def test_conversations_list_empty(workspace):
    _, config_path = workspace

    result = runner.invoke(app, ["conversations", "list", "--config", config_path])

    assert result.exit_code == 0
    assert "No conversations found" in result.stdout


def test_conversations_list_and_search(workspace):
    root, config_path = workspace
    _save_conversation(root, "conv_1", "Python decorators")
    _save_conversation(root, "conv_2", "Dinner ideas")

    listed = runner.invoke(app, ["conversations", "list", "--config", config_path])
    assert "conv_1" in listed.stdout
    assert "conv_2" in listed.stdout

    found = runner.invoke(app, ["conversations", "search", "python", "--config", config_path])
    assert "conv_1" in found.stdout
    assert "conv_2" not in found.stdout


def test_conversations_show(workspace):
    root, config_path = workspace
    _save_conversation(root, "conv_1", "Python decorators")

    result = runner.invoke(app, ["conversations", "show", "conv_1", "--config", config_path])

    assert result.exit_code == 0
    assert "Python decorators" in result.stdout


def test_conversations_export(workspace):
    root, config_path = workspace
    _save_conversation(root, "conv_1", "Python decorators")

    result = runner.invoke(
        app,
        ["conversations", "export", "conv_1", "--format", "text", "--config", config_path],
    )

    assert result.exit_code == 0
    exported = list((root / "exports").glob("*.txt"))
    assert len(exported) == 1
    assert exported[0].name.startswith("Python_decorators_")
    assert "ASSISTANT" in exported[0].read_text()


def test_conversations_export_unknown_format(workspace):
    root, config_path = workspace
    _save_conversation(root, "conv_1", "Python decorators")

    result = runner.invoke(
        app,
        ["conversations", "export", "conv_1", "--format", "pdf", "--config", config_path],
    )

    assert "Unknown export format" in result.stdout
    assert not (root / "exports").exists()


def test_conversations_delete(workspace):
    root, config_path = workspace
    _save_conversation(root, "conv_1", "Python decorators")

    result = runner.invoke(
        app, ["conversations", "delete", "conv_1", "--yes", "--config", config_path]
    )

    assert result.exit_code == 0
    assert "Deleted" in result.stdout
    assert ConversationStore(root / "conversations").list() == []


def test_conversations_delete_missing(workspace):
    _, config_path = workspace

    result = runner.invoke(
        app, ["conversations", "delete", "conv_nope", "--yes", "--config", config_path]
    )

    assert "not found" in result.stdout


@respx.mock
def test_models_list(workspace):
    _, config_path = workspace
    respx.get(f"{HOST}/api/tags").mock(
        return_value=Response(
            200,
            json={"models": [{"name": "llama3.2:3b", "size": 2019393189, "modified_at": "2026-10-01T10:00:00Z"}]},
        )
    )

    result = runner.invoke(app, ["models", "list", "--config", config_path])

    assert result.exit_code == 0
    assert "llama3.2:3b" in result.stdout
    assert "1.9GB" in result.stdout


@respx.mock
def test_models_rm(workspace):
    _, config_path = workspace
    respx.delete(f"{HOST}/api/delete").mock(return_value=Response(200))

    result = runner.invoke(app, ["models", "rm", "llama3.2:3b", "--config", config_path])

    assert result.exit_code == 0
    assert "Removed llama3.2:3b" in result.stdout


@respx.mock
def test_models_library(workspace):
    _, config_path = workspace
    respx.get(f"{HOST}/api/tags").mock(
        return_value=Response(200, json={"models": [{"name": "llava:7b"}]})
    )

    result = runner.invoke(app, ["models", "library", "--tag", "vision", "--config", config_path])

    assert result.exit_code == 0
    assert "Model Library" in result.stdout
    assert "llava:7b" in result.stdout
    assert "✓" in result.stdout
    assert "dwight models pull" in result.stdout


@respx.mock
def test_models_library_backend_down(workspace):
    _, config_path = workspace
    respx.get(f"{HOST}/api/tags").mock(side_effect=httpx.ConnectError("refused"))

    result = runner.invoke(app, ["models", "library", "--config", config_path])

    assert result.exit_code == 0
    assert "install status unknown" in result.stdout
    assert "Model Library" in result.stdout


def test_models_library_unknown_tag(workspace):
    _, config_path = workspace

    result = runner.invoke(app, ["models", "library", "--tag", "audio", "--config", config_path])

    assert "No library models tagged 'audio'" in result.stdout


@respx.mock
def test_models_pull_already_installed(workspace):
    _, config_path = workspace
    respx.get(f"{HOST}/api/tags").mock(
        return_value=Response(200, json={"models": [{"name": "llama3.2:3b"}]})
    )

    result = runner.invoke(app, ["models", "pull", "llama3.2", "--config", config_path])

    assert result.exit_code == 0
    assert "already installed" in result.stdout
