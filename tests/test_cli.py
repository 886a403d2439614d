"""Tests for the command-line interface."""

import logging

import pytest
from click.testing import CliRunner

from bangumoe import config
from bangumoe.cli import main


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(config, "_SETTINGS_SINGLETON", None)
    path = tmp_path / "config.yaml"
    path.write_text("api:\n  backend: memory\n  latency: 0\nlog_level: WARNING\n")
    # setup_logging replaces the root handlers with one bound to the runner's stdout
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield str(path)
    root.handlers[:] = handlers
    root.setLevel(level)


def invoke(config_file, *args, **kwargs):
    return CliRunner().invoke(main, ["--config", config_file, *args], **kwargs)


def test_collections_lists_demo_entries(config_file):
    result = invoke(config_file, "collections")

    assert result.exit_code == 0
    assert "[101] My Hero Academia (watching, 12 eps) rating: 9/10" in result.output
    assert "[103] Attack on Titan: The Final Season (wish, 16 eps) rating: -" in result.output


def test_collections_filter(config_file):
    result = invoke(config_file, "collections", "--rating", "8")

    assert result.exit_code == 0
    assert "[102] Demon Slayer" in result.output
    assert "[101]" not in result.output


def test_collections_empty_filter(config_file):
    result = invoke(config_file, "collections", "--type", "wish", "--rating", "5")

    assert result.exit_code == 0
    assert "No collection entries" in result.output


def test_add(config_file):
    result = invoke(config_file, "add", "--anime-id", "42", "--type", "dropped", "--rating", "2")

    assert result.exit_code == 0
    assert "[104] Anime #42 (dropped" in result.output
    assert "[success] Collection added" in result.output


def test_add_invalid_rating_fails(config_file):
    result = invoke(config_file, "add", "--anime-id", "42", "--rating", "11")

    assert result.exit_code == 1
    assert "Rating must be between 1 and 10" in result.output


def test_edit(config_file):
    result = invoke(config_file, "edit", "102", "--comment", "Rewatched")

    assert result.exit_code == 0
    assert "Rewatched" in result.output
    assert "[success] Collection updated" in result.output


def test_edit_unknown_entry(config_file):
    result = invoke(config_file, "edit", "999", "--rating", "5")

    assert result.exit_code == 1
    assert "not in the current list" in result.output


def test_delete_asks_for_confirmation(config_file):
    aborted = invoke(config_file, "delete", "101", input="n\n")
    assert aborted.exit_code == 1
    assert "Collection deleted" not in aborted.output

    result = invoke(config_file, "delete", "101", "--yes")
    assert result.exit_code == 0
    assert "[success] Collection deleted" in result.output


def test_bangumi_status(config_file):
    result = invoke(config_file, "bangumi", "status")

    assert result.exit_code == 0
    assert "Bound to Bangumi user 12345" in result.output


def test_bangumi_bind_when_bound_fails(config_file):
    result = invoke(config_file, "bangumi", "bind")

    assert result.exit_code == 1
    assert "Cannot bind while Bangumi binding is bound" in result.output


def test_bangumi_sync(config_file):
    result = invoke(config_file, "bangumi", "sync")

    assert result.exit_code == 0
    assert "=== Sync Results ===" in result.output
    assert "Total collections: 3" in result.output


def test_bangumi_unbind(config_file):
    result = invoke(config_file, "bangumi", "unbind", "--yes")

    assert result.exit_code == 0
    assert "[success] Bangumi account unbound" in result.output
