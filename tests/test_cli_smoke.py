"""Smoke tests for the CLI entry point."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from config import settings
from core.service import build_service
from main import build_parser, main, run_command


@pytest.fixture
def memory_config_path(tmp_path: Path) -> Path:
    config = settings.load_app_config()
    config.store.backend = "memory"
    config.site.timezone = "UTC"
    config.cache_purge.enabled = False
    config.deletion.enabled = True
    target = tmp_path / "config.json"
    settings.save_app_config(config, target)
    return target


@pytest.fixture(autouse=True)
def _quiet_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("main.setup_logging", lambda *_args, **_kwargs: None)


def test_run_command_saves_and_renders(app_config, tmp_path: Path, caplog, capsys) -> None:
    service = build_service(app_config)
    content = tmp_path / "post.json"
    content.write_text(
        json.dumps(
            [
                {
                    "blockName": "h-b/scheduled-container",
                    "attrs": {"end": "2000-01-01T00:00:00Z", "showPlaceholder": True, "placeholderText": "gone"},
                    "innerBlocks": [{"blockName": "core/paragraph", "innerHTML": "<p>old</p>"}],
                }
            ]
        ),
        encoding="utf-8",
    )
    parser = build_parser()
    caplog.set_level(logging.INFO, logger="scb.cli")

    assert run_command(service, parser.parse_args(["save", "12", str(content)])) == 0
    assert "Saved subject 12" in caplog.text

    assert run_command(service, parser.parse_args(["render", "12"])) == 0
    assert "gone" in capsys.readouterr().out

    assert run_command(service, parser.parse_args(["render", "12", "--role", "editor"])) == 0
    assert "<p>old</p>" in capsys.readouterr().out


def test_main_runs_commands_against_config(memory_config_path: Path) -> None:
    settings.get_app_config.cache_clear()
    try:
        assert main(["--config", str(memory_config_path), "run-due"]) == 0
        assert main(["--config", str(memory_config_path), "deactivate"]) == 0
    finally:
        settings.get_app_config.cache_clear()


def test_main_reports_config_errors(tmp_path: Path) -> None:
    broken = tmp_path / "config.json"
    broken.write_text("{", encoding="utf-8")
    settings.get_app_config.cache_clear()
    try:
        assert main(["--config", str(broken), "run-due"]) == 1
    finally:
        settings.get_app_config.cache_clear()
