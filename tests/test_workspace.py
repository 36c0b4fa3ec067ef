"""Tests for the workspace file layout."""

from __future__ import annotations

import pytest

from utils.workspace import (
    PROMPT_FILE,
    SUMMARY_LOG,
    is_valid_workspace_id,
    iteration_log_path,
    prepare_workspace,
    read_iteration_log,
    workspace_path,
    write_iteration_log,
)


@pytest.mark.parametrize("value", ["t1", "abc-DEF_123", "-", "_"])
def test_valid_workspace_ids(value):
    assert is_valid_workspace_id(value)


@pytest.mark.parametrize("value", ["", "../etc", "a/b", "a b", "t1\n", "é"])
def test_invalid_workspace_ids(value):
    assert not is_valid_workspace_id(value)


def test_workspace_path_rejects_traversal(tmp_path):
    with pytest.raises(ValueError):
        workspace_path(tmp_path, "../escape")
    assert workspace_path(tmp_path, "t1") == tmp_path / "t1"


def test_prepare_workspace_writes_prompt(tmp_path):
    ws = tmp_path / "nested" / "t1"
    prepare_workspace(ws, "Refactor the parser\nthen stop.")
    assert (ws / PROMPT_FILE).read_text(encoding="utf-8") == "Refactor the parser\nthen stop."


def test_prepare_workspace_keeps_existing_files(tmp_path):
    ws = tmp_path / "t1"
    ws.mkdir()
    (ws / "notes.md").write_text("progress so far")
    prepare_workspace(ws, "new prompt")
    assert (ws / "notes.md").read_text() == "progress so far"
    assert (ws / PROMPT_FILE).read_text() == "new prompt"


def test_iteration_log_names_are_zero_padded(tmp_path):
    assert iteration_log_path(tmp_path, 0).name == "iter_000.log"
    assert iteration_log_path(tmp_path, 12).name == "iter_012.log"
    assert iteration_log_path(tmp_path, 1234).name == "iter_1234.log"


def test_write_iteration_log_and_summary(tmp_path):
    write_iteration_log(tmp_path, 0, 3, "first")
    write_iteration_log(tmp_path, 1, 3, "second")

    assert (tmp_path / "iter_000.log").read_text() == "first"
    assert (tmp_path / "iter_001.log").read_text() == "second"
    summary = (tmp_path / SUMMARY_LOG).read_text()
    assert summary == (
        "\n\n=== Iteration 1 / 3 ===\nfirst\n"
        "\n\n=== Iteration 2 / 3 ===\nsecond\n"
    )


def test_read_iteration_log(tmp_path):
    write_iteration_log(tmp_path, 0, 1, "héllo ✓")
    assert read_iteration_log(tmp_path, 0) == "héllo ✓".encode("utf-8")
    assert read_iteration_log(tmp_path, 1) is None
    assert read_iteration_log(tmp_path, -1) is None
