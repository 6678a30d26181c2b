"""CLI integration tests for elevator.cli.main.

All tests patch filesystem, stdin/stdout, and elevate_text so that the logic
in *cli.py* can be exercised without touching disk or calling the model.
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from types import SimpleNamespace

import pytest

import elevator.cli as cli
from elevator.config import ElevatorConfig


# ---------------------------------------------------------------------------
# Fixtures & helpers
# ---------------------------------------------------------------------------

def _dummy_report() -> object:
    return SimpleNamespace(status="ok")


def _patch_elevate(monkeypatch, output: str = "ELEVATED", holder: dict | None = None):
    """Patch ``cli.elevate_text`` to return deterministic output."""

    async def _fake_elevate(text: str, cfg: ElevatorConfig):  # noqa: D401
        if holder is not None:
            holder["text"] = text
            holder["cfg"] = cfg
        return output, _dummy_report()

    monkeypatch.setattr(cli, "elevate_text", _fake_elevate)
    monkeypatch.setattr(cli, "asdict", lambda rep: {"dummy": True})


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------

def test_stdin_to_stdout(monkeypatch, capsys):
    """No args → read from STDIN, write to STDOUT."""
    monkeypatch.setattr(sys, "stdin", SimpleNamespace(read=lambda: "RAW"))
    holder: dict = {}
    _patch_elevate(monkeypatch, output="DONE", holder=holder)

    asyncio.run(cli.main([]))

    captured = capsys.readouterr()
    assert captured.out == "DONE"
    assert captured.err == ""
    assert holder["text"] == "RAW"


def test_file_input_file_output(monkeypatch):
    """Reads from input path and writes to output path."""
    input_path = Path("input.md")
    output_path = Path("output.md")

    def fake_read_text(self, encoding="utf-8"):
        assert self == input_path
        return "RAW"

    writes: dict[str, str] = {}

    def fake_write_text(self, data: str, encoding="utf-8"):
        assert self == output_path
        writes["data"] = data

    monkeypatch.setattr(Path, "read_text", fake_read_text)
    monkeypatch.setattr(Path, "write_text", fake_write_text)
    _patch_elevate(monkeypatch, output="DONE")

    asyncio.run(cli.main([str(input_path), "-o", str(output_path)]))

    assert writes["data"] == "DONE"


def test_input_missing_exits(monkeypatch, capsys):
    """Missing input file triggers exit 1."""

    def fake_read_text(self, encoding="utf-8"):
        raise FileNotFoundError()

    monkeypatch.setattr(Path, "read_text", fake_read_text)

    with pytest.raises(SystemExit) as exc:
        asyncio.run(cli.main(["missing.md"]))

    assert exc.value.code == 1
    assert "input file not found" in capsys.readouterr().err.lower()


def test_config_load(monkeypatch):
    """Valid TOML config overrides defaults; unknown keys are ignored."""
    toml_text = """
max_concurrency = 2
temperature = 0.1
strategy = "concise"
not_a_field = "ignored"
"""
    monkeypatch.setattr(Path, "read_text", lambda self, encoding="utf-8": toml_text)
    monkeypatch.setattr(sys, "stdin", SimpleNamespace(read=lambda: "RAW"))
    holder: dict = {}
    _patch_elevate(monkeypatch, holder=holder)

    asyncio.run(cli.main(["--config", "cfg.toml"]))

    cfg = holder["cfg"]
    assert cfg.max_concurrency == 2
    assert cfg.temperature == 0.1
    assert cfg.strategy == "concise"
    assert not hasattr(cfg, "not_a_field")


def test_strategy_and_no_quotes_flags(monkeypatch):
    monkeypatch.setattr(sys, "stdin", SimpleNamespace(read=lambda: "RAW"))
    holder: dict = {}
    _patch_elevate(monkeypatch, holder=holder)

    asyncio.run(cli.main(["--strategy", "educational", "--no-quotes"]))

    assert holder["cfg"].strategy == "educational"
    assert holder["cfg"].elevate_quotes is False


def test_unknown_strategy_in_config_exits(monkeypatch, capsys):
    monkeypatch.setattr(Path, "read_text", lambda self, encoding="utf-8": 'strategy = "poetic"\n')
    monkeypatch.setattr(sys, "stdin", SimpleNamespace(read=lambda: "RAW"))
    _patch_elevate(monkeypatch)

    with pytest.raises(SystemExit) as exc:
        asyncio.run(cli.main(["--config", "cfg.toml"]))

    assert exc.value.code == 1
    assert "failed to load config" in capsys.readouterr().err


def test_json_report(monkeypatch, capsys):
    """--json prints JSON representation of report to stderr."""
    monkeypatch.setattr(sys, "stdin", SimpleNamespace(read=lambda: "RAW"))
    _patch_elevate(monkeypatch, output="DONE")
    monkeypatch.setattr(cli, "asdict", lambda rep: {"foo": 42})

    asyncio.run(cli.main(["--json"]))

    captured = capsys.readouterr()
    assert captured.out == "DONE"
    assert "{\n  \"foo\"" in captured.err


def test_output_write_error(monkeypatch, capsys):
    """Write exceptions surface as exit 1."""
    monkeypatch.setattr(Path, "read_text", lambda self, encoding="utf-8": "RAW")

    def fake_write_text(self, data: str, encoding="utf-8"):
        raise IOError("disk full")

    monkeypatch.setattr(Path, "write_text", fake_write_text)
    _patch_elevate(monkeypatch)

    with pytest.raises(SystemExit) as exc:
        asyncio.run(cli.main(["input.md", "-o", "out.md"]))

    assert exc.value.code == 1
    assert "cannot write output" in capsys.readouterr().err.lower()


def test_end_to_end_with_stub_model(monkeypatch, capsys):
    """Real pipeline, stubbed model: code survives, prose is rewritten."""
    import elevator.core as core

    class _UpperClient:
        def __init__(self, config):
            pass

        async def __aenter__(self):
            return self

        async def __aexit__(self, *exc):
            return False

        async def elevate(self, text):
            return text.upper()

    monkeypatch.setattr(core, "ModelClient", _UpperClient)
    monkeypatch.setattr(sys, "stdin", SimpleNamespace(read=lambda: "call `f()` now\n"))

    asyncio.run(cli.main([]))

    assert capsys.readouterr().out == "CALL `f()` NOW\n"
