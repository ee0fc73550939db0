"""Tests for atomic file writes."""
import os

import pytest

from vdbook.fileutil import atomic_open, atomic_write


def test_atomic_write_creates_file(tmp_path):
    path = str(tmp_path / "out.txt")

    atomic_write(path, "one\r\ntwo\n")

    with open(path, "rb") as in_file:
        assert in_file.read() == b"one\r\ntwo\n"
    assert os.listdir(str(tmp_path)) == ["out.txt"]


def test_atomic_write_replaces(tmp_path):
    path = tmp_path / "out.txt"
    path.write_text("old", encoding="utf-8")

    atomic_write(str(path), "new")

    assert path.read_text(encoding="utf-8") == "new"


def test_create_only_refuses_existing_file(tmp_path):
    path = tmp_path / "out.txt"
    path.write_text("old", encoding="utf-8")

    with pytest.raises(FileExistsError):
        atomic_write(str(path), "new", overwrite=False)

    assert path.read_text(encoding="utf-8") == "old"
    assert os.listdir(str(tmp_path)) == ["out.txt"]


def test_failure_leaves_destination_untouched(tmp_path):
    path = tmp_path / "out.txt"
    path.write_text("old", encoding="utf-8")

    with pytest.raises(RuntimeError):
        with atomic_open(str(path)) as out_file:
            out_file.write("partial")
            raise RuntimeError("interrupted")

    assert path.read_text(encoding="utf-8") == "old"
    assert os.listdir(str(tmp_path)) == ["out.txt"]
