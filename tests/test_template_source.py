"""Tests for template lookup and the scratch space."""

from pathlib import Path

import pytest

from app.render.errors import TemplateNotFound
from app.render.scratch import ScratchSpace
from app.render.template_source import copy_template


class TestCopyTemplate:

    def test_file_path(self, squares_template, tmp_path):
        destination = tmp_path / "copy.xlsx"
        assert copy_template(squares_template, destination) == destination
        assert destination.read_bytes() == squares_template.read_bytes()

    def test_bundled_resource(self, tmp_path, bundled_squares_path):
        destination = copy_template("squares.xlsx", tmp_path / "copy.xlsx", package="app.templates")
        assert destination.read_bytes() == bundled_squares_path.read_bytes()

    def test_explicit_package_prefix(self, tmp_path, bundled_squares_path):
        destination = copy_template("app.templates:squares.xlsx", tmp_path / "copy.xlsx")
        assert destination.read_bytes() == bundled_squares_path.read_bytes()

    def test_file_wins_over_resource(self, tmp_path, squares_template, monkeypatch):
        monkeypatch.chdir(squares_template.parent)
        destination = copy_template("squares.xlsx", tmp_path / "copy.xlsx", package="app.templates")
        assert destination.read_bytes() == squares_template.read_bytes()

    def test_missing_resource(self, tmp_path):
        with pytest.raises(TemplateNotFound):
            copy_template("nope.xlsx", tmp_path / "copy.xlsx", package="app.templates")
        assert not (tmp_path / "copy.xlsx").exists()

    def test_missing_without_package(self, tmp_path):
        with pytest.raises(TemplateNotFound) as exc_info:
            copy_template(tmp_path / "nope.xlsx", tmp_path / "copy.xlsx")
        assert "no template package" in exc_info.value.detail

    def test_unknown_package(self, tmp_path):
        with pytest.raises(TemplateNotFound):
            copy_template("no_such_pkg_xyz:report.xlsx", tmp_path / "copy.xlsx")


class TestScratchSpace:

    def test_context_removes_directory(self, tmp_path):
        with ScratchSpace(tmp_path / "scratch") as scratch:
            directory = scratch.directory
            scratch.path("excel-template.xlsx").write_bytes(b"x")
            assert directory.parent == tmp_path / "scratch"
            assert directory.name.startswith("excel-render-")
        assert not directory.exists()
        assert not scratch.is_open

    def test_removed_on_error(self, tmp_path):
        with pytest.raises(RuntimeError):
            with ScratchSpace(tmp_path) as scratch:
                directory = scratch.directory
                raise RuntimeError("boom")
        assert not directory.exists()

    def test_not_open(self):
        scratch = ScratchSpace()
        with pytest.raises(RuntimeError):
            scratch.path("x")
        scratch.close()

    def test_open_is_idempotent(self, tmp_path):
        scratch = ScratchSpace(tmp_path).open()
        directory = scratch.directory
        assert scratch.open().directory == directory
        scratch.close()
        assert list(Path(tmp_path).iterdir()) == []
