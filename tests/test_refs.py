"""Tests for gridcalc A1 reference helpers."""

from __future__ import annotations

import pytest

from gridcalc._utils import (
    Address,
    CellRange,
    InvalidReferenceError,
    a1_to_rowcol,
    column_to_index,
    expand_range,
    index_to_column,
    parse_address,
    parse_range,
    rowcol_to_a1,
    to_address,
)


class TestColumns:
    @pytest.mark.parametrize(
        ("label", "index"),
        [("A", 0), ("B", 1), ("Z", 25), ("AA", 26), ("AZ", 51), ("BA", 52), ("ZZ", 701), ("AAA", 702)],
    )
    def test_label_index_pairs(self, label: str, index: int) -> None:
        assert column_to_index(label) == index
        assert index_to_column(index) == label

    def test_lowercase_label(self) -> None:
        assert column_to_index("ab") == 27

    @pytest.mark.parametrize("label", ["", "A1", "-", "É"])
    def test_bad_label(self, label: str) -> None:
        with pytest.raises(InvalidReferenceError):
            column_to_index(label)

    def test_negative_index(self) -> None:
        with pytest.raises(InvalidReferenceError):
            index_to_column(-1)


class TestAddresses:
    def test_parse(self) -> None:
        assert parse_address("B3") == Address(2, 1)

    def test_render(self) -> None:
        assert str(Address(2, 1)) == "B3"
        assert Address(9, 27).a1 == "AB10"

    def test_rowcol_helpers(self) -> None:
        assert a1_to_rowcol("C5") == (4, 2)
        assert rowcol_to_a1(4, 2) == "C5"

    @pytest.mark.parametrize("text", ["", "A", "1", "A0", "1A", "A1B", "A-1"])
    def test_malformed(self, text: str) -> None:
        with pytest.raises(InvalidReferenceError):
            parse_address(text)

    def test_invalid_reference_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            parse_address("nope")

    def test_row_major_ordering(self) -> None:
        cells = [Address(1, 0), Address(0, 5), Address(0, 1)]
        assert sorted(cells) == [Address(0, 1), Address(0, 5), Address(1, 0)]

    def test_to_address_accepts_tuples(self) -> None:
        assert to_address((3, 4)) == Address(3, 4)
        assert to_address("E4") == Address(3, 4)

    def test_to_address_rejects_negative(self) -> None:
        with pytest.raises(InvalidReferenceError):
            to_address((-1, 0))


class TestRanges:
    def test_parse_normalizes(self) -> None:
        assert parse_range("C3:A1") == CellRange(Address(0, 0), Address(2, 2))

    def test_mixed_corners(self) -> None:
        assert parse_range("A3:C1") == CellRange(Address(0, 0), Address(2, 2))

    def test_shape(self) -> None:
        rng = parse_range("B2:D5")
        assert (rng.n_rows, rng.n_cols) == (4, 3)

    def test_contains(self) -> None:
        rng = parse_range("B2:D5")
        assert Address(1, 1) in rng
        assert Address(4, 3) in rng
        assert Address(0, 1) not in rng

    def test_str(self) -> None:
        assert str(parse_range("D5:B2")) == "B2:D5"

    def test_bad_range(self) -> None:
        with pytest.raises(InvalidReferenceError):
            parse_range("A1")
        with pytest.raises(InvalidReferenceError):
            parse_range("A1:B2:C3")

    def test_expand_column(self) -> None:
        assert expand_range(parse_range("A1:A3")) == [Address(0, 0), Address(1, 0), Address(2, 0)]

    def test_expand_row_major(self) -> None:
        cells = [str(a) for a in expand_range(parse_range("A1:B2"))]
        assert cells == ["A1", "B1", "A2", "B2"]

    def test_expand_single(self) -> None:
        assert expand_range(parse_range("C7:C7")) == [Address(6, 2)]
