"""Tests for item metadata building."""

from __future__ import annotations

from datetime import UTC
from typing import TYPE_CHECKING

import pytest

from cubby.fs.metadata import build_item, item_id, stat_item
from cubby.fs.types import ItemKind

if TYPE_CHECKING:
    from pathlib import Path


class TestItemId:
    def test_owner_and_path(self):
        assert item_id("alice", "/Documents/a.txt") == "alice:/Documents/a.txt"

    def test_normalized(self):
        assert item_id("alice", "Documents//a.txt") == "alice:/Documents/a.txt"


class TestBuildItem:
    def test_file(self, tmp_path: Path):
        f = tmp_path / "report.pdf"
        f.write_bytes(b"%PDF-1.4")
        item = build_item("alice", "/Documents/report.pdf", f.stat())

        assert item.id == "alice:/Documents/report.pdf"
        assert item.name == "report.pdf"
        assert item.kind is ItemKind.FILE
        assert item.logical_path == "/Documents/report.pdf"
        assert item.owner_id == "alice"
        assert item.size == 8
        assert item.mime_type == "application/pdf"
        assert item.created_at is not None
        assert item.created_at.tzinfo is UTC
        assert item.updated_at is not None

    def test_folder_has_no_size(self, tmp_path: Path):
        d = tmp_path / "Images"
        d.mkdir()
        item = build_item("alice", "/Images", d.stat())

        assert item.kind is ItemKind.FOLDER
        assert item.is_folder is True
        assert item.size is None
        assert item.mime_type is None

    def test_updated_at_tracks_mtime(self, tmp_path: Path):
        f = tmp_path / "a.txt"
        f.write_text("x")
        st = f.stat()
        item = build_item("alice", "/a.txt", st)
        assert item.updated_at.timestamp() == pytest.approx(st.st_mtime, abs=1e-5)


class TestStatItem:
    def test_reads_current_state(self, tmp_path: Path):
        f = tmp_path / "a.txt"
        f.write_text("one")
        assert stat_item("alice", "/a.txt", f).size == 3
        f.write_text("three")
        assert stat_item("alice", "/a.txt", f).size == 5


class TestToDict:
    def test_json_friendly(self, tmp_path: Path):
        f = tmp_path / "a.txt"
        f.write_text("hi")
        data = stat_item("alice", "/a.txt", f).to_dict()

        assert data["kind"] == "file"
        assert data["logical_path"] == "/a.txt"
        assert data["size"] == 2
        assert isinstance(data["created_at"], str)
        assert isinstance(data["updated_at"], str)
