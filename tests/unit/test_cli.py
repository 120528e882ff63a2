import pytest
import yaml

from chatvault.presentation.cli.main import create_parser, run_cli


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    for name in ("CHATVAULT_CONFIG", "CHATVAULT_DB_URL", "LLM_PROVIDER", "LLM_BASE_URL", "LLM_MODEL"):
        monkeypatch.delenv(name, raising=False)
    # keep the global log sinks pytest installed
    monkeypatch.setattr("chatvault.infrastructure.logging.configure_logging", lambda level="INFO": None)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "chatvault.yaml"
    path.write_text(yaml.safe_dump({
        "database": {"url": f"sqlite:///{tmp_path / 'cli.db'}"},
        # nothing listens on the discard port
        "llm": {"provider": "ollama", "model": "llama3", "base_url": "http://127.0.0.1:9"},
        "embeddings": {"enabled": False},
        "logging": {"level": "WARNING"},
    }))
    return str(path)


def test_parser_commands():
    parser = create_parser()
    args = parser.parse_args(["ingest", "window.txt", "--app", "Claude", "--title", "Trip"])
    assert (args.command, args.file, args.app, args.title) == ("ingest", "window.txt", "Claude", "Trip")

    args = parser.parse_args(["-c", "x.yaml", "reprocess", "--clean"])
    assert args.config == "x.yaml" and args.clean is True

    args = parser.parse_args(["serve"])
    assert (args.host, args.port) == ("127.0.0.1", 8000)

    with pytest.raises(SystemExit):
        parser.parse_args(["ingest", "window.txt"])


def test_no_command_prints_help(capsys):
    assert run_cli([]) == 0
    assert "usage" in capsys.readouterr().out.lower()


def test_rebuild_fts_needs_no_model(config_file, capsys):
    assert run_cli(["--config", config_file, "rebuild-fts"]) == 0
    out = capsys.readouterr().out
    assert "rebuilt memory_fts" in out
    assert "rebuilt fact_fts" in out


def test_unreachable_model_exits_with_2(config_file, capsys):
    assert run_cli(["--config", config_file, "ask", "where do I live?"]) == 2
    assert "Model unavailable" in capsys.readouterr().err
