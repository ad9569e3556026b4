"""Tests for the command-line interface."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from designscout.cli import create_parser, main


@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Run from an empty directory so no config or .env file is picked up."""
    monkeypatch.chdir(tmp_path)


class TestParser:
    """Tests for argument parsing."""

    def test_search_arguments(self) -> None:
        args = create_parser().parse_args(
            ["search", "banking", "login", "-r", "apps", "-r", "screens", "-p", "web", "-n", "3"]
        )

        assert args.keywords == ["banking", "login"]
        assert args.routes == ["apps", "screens"]
        assert args.platform == "web"
        assert args.per_keyword == 3
        assert args.layout == "per-route"

    def test_invalid_route_rejected(self) -> None:
        with pytest.raises(SystemExit):
            create_parser().parse_args(["search", "banking", "--route", "widgets"])


class TestCommands:
    """Tests for command execution."""

    def test_no_command_prints_help(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main([]) == 1
        assert "usage:" in capsys.readouterr().out

    def test_keywords(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["keywords", "banking app with biometric login"]) == 0

        output = json.loads(capsys.readouterr().out)
        assert output == {"keywords": ["login", "banking", "biometric"], "route": "apps"}

    def test_config_masks_secrets(
        self, capsys: pytest.CaptureFixture[str], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("DESIGNSCOUT_EMAIL", "designer@example.com")
        monkeypatch.setenv("DESIGNSCOUT_PASSWORD", "hunter22")

        assert main(["config"]) == 0

        out = capsys.readouterr().out
        assert "hunter22" not in out
        assert "designer@example.com" not in out
        assert json.loads(out)["credentials"]["secret"] == "**********"

    def test_search_without_credentials(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Test a missing login is reported as a configuration error."""
        assert main(["search", "banking"]) == 1
        assert "Configuration error" in capsys.readouterr().err

    def test_missing_config_file(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["--config", "nope.yaml", "config"]) == 1
        assert "not found" in capsys.readouterr().err
