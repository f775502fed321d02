# tests/test_cli.py
from __future__ import annotations

from click.testing import CliRunner

from BOARDVOTE.cli import cli


def test_init_seed_and_missing_results(tmp_path):
    url = f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}"
    runner = CliRunner()

    r = runner.invoke(cli, ["--database-url", url, "init-db"], obj={})
    assert r.exit_code == 0, r.output
    assert "Tables created" in r.output

    r = runner.invoke(cli, ["--database-url", url, "seed-positions", "Presidente", "Tesoureiro"], obj={})
    assert r.exit_code == 0, r.output
    assert "Presidente" in r.output
    assert "Tesoureiro" in r.output

    r = runner.invoke(cli, ["--database-url", url, "results", "1"], obj={})
    assert r.exit_code == 1
    assert "not_found" in r.output
