"""Tests for gridcalc bulk editing helpers."""

from __future__ import annotations

import pytest

from gridcalc import CellError, Grid, copy_cell, find_replace, parse_range, remove_duplicates
from gridcalc._utils import Address


class TestCopyCell:
    def test_copies_formula_verbatim(self) -> None:
        grid = Grid()
        grid["B1"] = "3"
        grid["A1"] = "=B1*2"
        copy_cell(grid, "A1", "A2:A4")
        for ref in ("A2", "A3", "A4"):
            assert grid[ref].raw_input == "=B1*2"
            assert grid[ref].value == 6

    def test_one_pass(self) -> None:
        grid = Grid()
        grid["A1"] = "7"
        before = grid.generation
        result = copy_cell(grid, "A1", ["B1", "C1", (0, 3)])
        assert grid.generation == before + 1
        assert result.changed == {Address(0, 1), Address(0, 2), Address(0, 3)}

    def test_source_in_targets_is_skipped(self) -> None:
        grid = Grid()
        grid["A1"] = "x"
        result = copy_cell(grid, "A1", "A1:A2")
        assert Address(0, 0) not in result.evaluated
        assert grid["A2"].value == "x"

    def test_copied_cells_recalculate(self) -> None:
        grid = Grid()
        grid["A1"] = "=B1+1"
        copy_cell(grid, "A1", "C1")
        grid["B1"] = "4"
        assert grid["C1"].value == 5

    def test_copy_empty_clears(self) -> None:
        grid = Grid()
        grid["B1"] = "5"
        copy_cell(grid, "A1", "B1")
        assert grid["B1"].value is None


class TestFindReplace:
    def test_replaces_in_text_literals(self) -> None:
        grid = Grid()
        grid["A1"] = "apple pie"
        grid["A2"] = "=UPPER(A1)"
        grid["A3"] = "42"
        grid["A4"] = "pineapple"
        grid["B1"] = "apple"
        count = find_replace(grid, "A1:A4", "apple", "pear")
        assert count == 2
        assert grid["A1"].raw_input == "pear pie"
        assert grid["A4"].raw_input == "pinepear"
        assert grid["B1"].raw_input == "apple"

    def test_formulas_untouched(self) -> None:
        grid = Grid()
        grid["A1"] = "apple"
        grid["A2"] = '=UPPER(A1)'
        find_replace(grid, "A1:A2", "A1", "B1")
        assert grid["A2"].raw_input == "=UPPER(A1)"

    def test_dependents_recalculate(self) -> None:
        grid = Grid()
        grid["A1"] = "apple pie"
        grid["A2"] = "=UPPER(A1)"
        find_replace(grid, "A1", "apple", "pear")
        assert grid["A2"].value == "PEAR PIE"

    def test_numbers_untouched(self) -> None:
        grid = Grid()
        grid["A1"] = "123"
        assert find_replace(grid, "A1", "2", "9") == 0
        assert grid["A1"].value == 123

    def test_literal_match_not_regex(self) -> None:
        grid = Grid()
        grid["A1"] = "a.b"
        grid["A2"] = "axb"
        assert find_replace(grid, parse_range("A1:A2"), ".", "-") == 1
        assert grid["A1"].raw_input == "a-b"
        assert grid["A2"].raw_input == "axb"

    def test_replacement_can_make_number(self) -> None:
        grid = Grid()
        grid["A1"] = "n12"
        grid["B1"] = "=A1*2"
        assert grid["B1"].value is CellError.VALUE
        find_replace(grid, "A1", "n", "")
        assert grid["A1"].value == 12
        assert grid["B1"].value == 24

    def test_empty_find_rejected(self) -> None:
        with pytest.raises(ValueError):
            find_replace(Grid(), "A1:A2", "", "x")


class TestRemoveDuplicates:
    def test_keeps_first_occurrence(self) -> None:
        grid = Grid.from_rows([
            ["a", 1],
            ["b", 2],
            ["a", 1],
            [None, None],
            ["b", 2],
            ["c", 3],
        ])
        cleared = remove_duplicates(grid, "A1:B6")
        assert cleared == [2, 4]
        assert grid["A3"].raw_input == ""
        assert grid["B5"].raw_input == ""
        assert grid["A1"].value == "a"
        assert grid["A6"].value == "c"

    def test_only_range_columns_compared(self) -> None:
        grid = Grid.from_rows([["a", "x"], ["a", "y"]])
        assert remove_duplicates(grid, "A1:A2") == [1]
        assert grid["A2"].raw_input == ""
        assert grid["B2"].value == "y"

    def test_compares_values_not_text(self) -> None:
        grid = Grid.from_rows([[2], ["=1+1"], ["2.0"]])
        assert remove_duplicates(grid, "A1:A3") == [1, 2]

    def test_text_and_number_differ(self) -> None:
        grid = Grid.from_rows([[1], ["=UPPER(A1)"]])
        assert grid["A2"].value == "1"
        assert remove_duplicates(grid, "A1:A2") == []

    def test_dependents_see_cleared_rows(self) -> None:
        grid = Grid.from_rows([[5], [5], [None, "=SUM(A1:A2)"]])
        assert grid["B3"].value == 10
        remove_duplicates(grid, "A1:A2")
        assert grid["B3"].value == 5

    def test_no_duplicates(self) -> None:
        grid = Grid.from_rows([["a"], ["b"]])
        before = grid.generation
        assert remove_duplicates(grid, "A1:A2") == []
        assert grid.generation == before
