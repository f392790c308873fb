"""Tests for gridcalc.calc function registry and builtins."""

from __future__ import annotations

import pytest
from gridcalc.calc._functions import (
    FUNCTION_CATALOG,
    FUNCTION_WHITELIST,
    CellError,
    FunctionRegistry,
    RangeValue,
    _BUILTINS,
    describe_function,
    first_error,
    format_number,
    is_error,
    is_supported,
    parse_number,
    to_number,
    to_text,
)


class TestWhitelist:
    def test_whitelist_has_8_functions(self) -> None:
        assert len(FUNCTION_WHITELIST) == 8

    def test_categories(self) -> None:
        assert set(FUNCTION_WHITELIST.values()) == {"math", "text"}

    def test_is_supported_case_insensitive(self) -> None:
        assert is_supported("sum")
        assert is_supported("Trim")
        assert not is_supported("VLOOKUP")
        assert not is_supported("IF")

    def test_catalog_matches_whitelist(self) -> None:
        assert set(FUNCTION_CATALOG) == set(FUNCTION_WHITELIST)
        for name, info in FUNCTION_CATALOG.items():
            assert info.category == FUNCTION_WHITELIST[name]
            assert info.syntax.startswith(f"={name}(")

    def test_describe_function(self) -> None:
        info = describe_function("average")
        assert info.name == "AVERAGE"
        assert "average" in info.description

    def test_describe_unknown(self) -> None:
        with pytest.raises(KeyError):
            describe_function("PMT")


class TestFunctionRegistry:
    def test_builtins_registered(self) -> None:
        reg = FunctionRegistry()
        for name in FUNCTION_WHITELIST:
            assert callable(reg.get(name))
        assert reg.get("IF") is None

    def test_case_insensitive_lookup(self) -> None:
        reg = FunctionRegistry()
        assert reg.get("sum") is reg.get("SUM")

    def test_missing_is_none(self) -> None:
        assert FunctionRegistry().get("NOPE") is None


class TestCellError:
    def test_singletons(self) -> None:
        assert CellError.of("#ref!") is CellError.REF

    def test_compares_to_code(self) -> None:
        assert CellError.DIV0 == "#DIV/0!"
        assert CellError.CIRCULAR == "#circ!"
        assert CellError.VALUE != CellError.REF

    def test_str(self) -> None:
        assert str(CellError.PARSE) == "#PARSE!"

    def test_helpers(self) -> None:
        assert is_error(CellError.REF)
        assert not is_error("#REF!")
        assert first_error(1, None, CellError.VALUE, CellError.REF) is CellError.VALUE
        assert first_error(1, "x") is None


class TestCoercion:
    def test_parse_number(self) -> None:
        assert parse_number("42") == 42
        assert isinstance(parse_number("42"), int)
        assert parse_number(" 2.5 ") == 2.5
        assert parse_number("1e3") == 1000.0
        assert parse_number("abc") is None
        assert parse_number("") is None
        assert parse_number("nan") is None
        assert parse_number("inf") is None

    @pytest.mark.parametrize(
        "text, expected",
        [
            (".5", 0.5),
            ("+5", 5),
            ("1.", 1.0),
            ("-2E-1", -0.2),
        ],
    )
    def test_parse_number_forms(self, text: str, expected: float) -> None:
        assert parse_number(text) == expected

    @pytest.mark.parametrize(
        "text",
        ["1_000", "\u0661\u0662", "0x10", "1e400", "1" * 400, "--1", "1e", "."],
    )
    def test_parse_number_rejects(self, text: str) -> None:
        assert parse_number(text) is None

    def test_plain_integer_stays_int(self) -> None:
        assert isinstance(parse_number("+5"), int)
        assert isinstance(parse_number("1."), float)

    def test_to_number(self) -> None:
        assert to_number(None) == 0
        assert to_number(3) == 3
        assert to_number("4.5") == 4.5
        assert to_number("four") is None

    def test_to_text(self) -> None:
        assert to_text(None) == ""
        assert to_text(6.0) == "6"
        assert to_text(2.5) == "2.5"
        assert to_text("hi") == "hi"
        assert to_text(CellError.REF) == "#REF!"

    def test_format_number(self) -> None:
        assert format_number(10) == "10"
        assert format_number(10.0) == "10"
        assert format_number(0.1) == "0.1"


class TestAggregates:
    def test_sum(self) -> None:
        assert _BUILTINS["SUM"]([1, 2, 3]) == 6.0

    def test_sum_range(self) -> None:
        rng = RangeValue(values=[1, 2, None, 4], n_rows=2, n_cols=2)
        assert _BUILTINS["SUM"]([rng, 10]) == 17.0

    def test_skip_empty_and_text(self) -> None:
        assert _BUILTINS["SUM"]([1, None, "text", 3]) == 4.0

    def test_numeric_text_counted(self) -> None:
        assert _BUILTINS["SUM"](["2", 3]) == 5.0

    def test_error_wins_over_skip(self) -> None:
        rng = RangeValue(values=[1, "x", CellError.DIV0, CellError.REF], n_rows=4, n_cols=1)
        assert _BUILTINS["SUM"]([rng]) is CellError.DIV0
        assert _BUILTINS["COUNT"]([rng]) is CellError.DIV0

    def test_average(self) -> None:
        assert _BUILTINS["AVERAGE"]([2, 4, "x", None]) == 3.0

    def test_average_of_nothing_numeric_is_zero(self) -> None:
        assert _BUILTINS["AVERAGE"]([RangeValue(values=["a", None], n_rows=2, n_cols=1)]) == 0.0

    def test_max_min(self) -> None:
        assert _BUILTINS["MAX"]([3, -1, 7]) == 7.0
        assert _BUILTINS["MIN"]([3, -1, 7]) == -1.0

    def test_max_min_empty_is_zero(self) -> None:
        assert _BUILTINS["MAX"]([None]) == 0.0
        assert _BUILTINS["MIN"](["a"]) == 0.0

    def test_count(self) -> None:
        assert _BUILTINS["COUNT"]([1, "2", "two", None, 3.5]) == 3

    def test_sum_is_exact_for_decimals(self) -> None:
        assert _BUILTINS["SUM"]([0.1] * 10) == 1.0


class TestTextFunctions:
    def test_trim(self) -> None:
        assert _BUILTINS["TRIM"](["  hi  "]) == "hi"

    def test_trim_keeps_inner_spacing(self) -> None:
        assert _BUILTINS["TRIM"](["  a  b "]) == "a  b"

    def test_upper_lower(self) -> None:
        assert _BUILTINS["UPPER"](["MiXed"]) == "MIXED"
        assert _BUILTINS["LOWER"](["MiXed"]) == "mixed"

    def test_empty_is_empty_text(self) -> None:
        assert _BUILTINS["UPPER"]([None]) == ""

    def test_number_coerced_to_text(self) -> None:
        assert _BUILTINS["LOWER"]([6.0]) == "6"

    def test_error_propagates(self) -> None:
        assert _BUILTINS["TRIM"]([CellError.VALUE]) is CellError.VALUE

    def test_idempotent(self) -> None:
        upper = _BUILTINS["UPPER"]
        assert upper([upper(["abc"])]) == upper(["abc"])

    def test_arity(self) -> None:
        with pytest.raises(ValueError, match="exactly 1 argument"):
            _BUILTINS["UPPER"](["a", "b"])

    def test_range_rejected(self) -> None:
        with pytest.raises(ValueError):
            _BUILTINS["TRIM"]([RangeValue(values=["a"], n_rows=1, n_cols=1)])


class TestRangeValue:
    def test_row_major_iteration(self) -> None:
        rng = RangeValue(values=[1, 2, 3, 4, 5, 6], n_rows=2, n_cols=3)
        assert len(rng) == 6
        assert list(rng) == [1, 2, 3, 4, 5, 6]


class TestAggregateOverflow:
    def test_sum_overflow_raises(self) -> None:
        with pytest.raises(OverflowError):
            _BUILTINS["SUM"]([1e308, 1e308])

    def test_huge_int_raises(self) -> None:
        with pytest.raises(OverflowError):
            _BUILTINS["MAX"]([10**400])
