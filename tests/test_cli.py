"""Tests for the termflow command line."""

import asyncio

import pytest

from termflow import main, run
from termflow.cli import parse_args
from termflow.config import Config, QueueConfig, RendererConfig
from termflow.output import FakeStream


class TestParseArgs:
    def test_defaults(self):
        args = parse_args([])

        assert args.path is None
        assert args.title is None
        assert args.max_lines is None
        assert not args.no_rate_limit
        assert not args.health
        assert args.health_port is None

    def test_options(self):
        args = parse_args(
            ["notes.txt", "--title", "Notes", "--max-lines", "50", "--chunk-size", "10", "-v"]
        )

        assert args.path == "notes.txt"
        assert args.title == "Notes"
        assert args.max_lines == 50
        assert args.chunk_size == 10
        assert args.verbose

    @pytest.mark.parametrize("value", ["0", "-3", "many"])
    def test_rejects_non_positive_numbers(self, value):
        with pytest.raises(SystemExit):
            parse_args(["--max-lines", value])


def test_missing_path_fails(monkeypatch, tmp_path):
    monkeypatch.setattr("sys.argv", ["termflow", str(tmp_path / "missing.txt")])
    assert main() == 1


def test_directory_path_fails(monkeypatch, tmp_path):
    monkeypatch.setattr("sys.argv", ["termflow", str(tmp_path)])
    assert main() == 1


def test_run_renders_file_content(monkeypatch):
    stdout = FakeStream()
    monkeypatch.setattr("sys.stdout", stdout)
    config = Config(
        queue=QueueConfig(smooth_scrolling=False, rate_limiting=False),
        renderer=RendererConfig(chunk_size=3, chunk_delay_ms=0),
        health_check_interval_ms=0,
        install_signal_handlers=False,
    )
    args = parse_args(["--title", "Demo", "--max-lines", "4"])
    content = "\n".join(f"row{i}" for i in range(6))

    assert asyncio.run(run(args, content, config)) == 0

    output = stdout.getvalue()
    assert output.startswith("Demo\nTotal lines: 6\n\nrow0\n")
    assert "row4" not in output
    assert "2 more lines hidden (showing 4/6)" in output
