"""Tests for replacement request normalization."""

import pytest

from app.render.cells import CellValue
from app.render.errors import InvalidReplacements, UnsupportedValueType
from app.render.replacements import Replacements


class TestConstructors:

    def test_single_sheet_targets_index_zero(self):
        rows = {1: [["a"]]}
        assert Replacements.single_sheet(rows) == Replacements.by_sheet({0: rows})

    def test_by_sheet_converts_rows(self):
        request = Replacements.by_sheet({"Squares": {2: [[1, 1], [2, 4]]}})
        assert request.sheets["Squares"][2] == (
            (CellValue.number(1), CellValue.number(1)),
            (CellValue.number(2), CellValue.number(4)),
        )

    def test_empty_row_list_is_kept(self):
        request = Replacements.single_sheet({3: []})
        assert request.sheets[0][3] == ()

    def test_rejects_bad_row_keys(self):
        with pytest.raises(InvalidReplacements):
            Replacements.single_sheet({"2": [[1]]})
        with pytest.raises(InvalidReplacements):
            Replacements.single_sheet({-1: [[1]]})

    def test_rejects_non_list_rows(self):
        with pytest.raises(InvalidReplacements) as exc_info:
            Replacements.single_sheet({0: "abc"})
        assert exc_info.value.row == 0

    def test_rejects_bad_selectors(self):
        with pytest.raises(InvalidReplacements):
            Replacements.by_sheet({1.5: {0: [[1]]}})

    def test_unsupported_value_is_located(self):
        with pytest.raises(UnsupportedValueType) as exc_info:
            Replacements.by_sheet({"Data": {4: [[1], [2, object()]]}})
        error = exc_info.value
        assert (error.sheet, error.row, error.column) == ("Data", 4, 1)
        assert "sheet 'Data', row 4, column 1" in str(error)


class TestCoerce:

    def test_passes_requests_through(self):
        request = Replacements.single_sheet({0: [[1]]})
        assert Replacements.coerce(request) is request

    @pytest.mark.parametrize("value", [None, {}])
    def test_empty(self, value):
        assert not Replacements.coerce(value)

    def test_bare_row_map_is_single_sheet(self):
        rows = {0: [[None, 5]], 2: []}
        assert Replacements.coerce(rows) == Replacements.single_sheet(rows)

    def test_nested_mapping_is_sheet_keyed(self):
        mapping = {"Squares": {2: [[1, 1]]}, 1: {0: [["x"]]}}
        assert Replacements.coerce(mapping) == Replacements.by_sheet(mapping)

    def test_rejects_non_mapping(self):
        with pytest.raises(InvalidReplacements):
            Replacements.coerce([[1, 2]])


class TestLookup:

    def test_name_wins_over_index(self):
        request = Replacements.by_sheet({"Second": {0: [["by name"]]}, 1: {0: [["by index"]]}})
        assert request.rows_for("Second", 1)[0][0][0] == CellValue.string("by name")

    def test_falls_back_to_index(self):
        request = Replacements.by_sheet({1: {0: [["x"]]}})
        assert request.rows_for("Second", 1) is not None
        assert request.rows_for("First", 0) is None

    def test_unmatched_selectors(self):
        request = Replacements.by_sheet({"Missing": {0: [[1]]}, 7: {0: [[1]]}, "First": {}, 1: {}})
        assert request.unmatched(["First", "Second"]) == ["Missing", 7]
