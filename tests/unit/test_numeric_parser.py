"""
Unit tests for NumericLiteralParser service.
"""
import pytest

from tabledesk.services.numeric_parser import MAX_SAFE_INTEGER, NumericLiteralParser


class TestNumericLiteralParser:
    """Tests for NumericLiteralParser.parse and coerce."""

    @pytest.fixture
    def parser(self) -> NumericLiteralParser:
        """Create parser instance."""
        return NumericLiteralParser()

    def test_parse_integer(self, parser: NumericLiteralParser):
        """Plain integers become int."""
        result = parser.parse("1234")
        assert result.value == 1234
        assert isinstance(result.value, int)
        assert result.is_numeric is True

    def test_parse_decimal(self, parser: NumericLiteralParser):
        """Decimals become float."""
        assert parser.coerce("2.5") == 2.5

    def test_parse_negative(self, parser: NumericLiteralParser):
        assert parser.coerce("-3") == -3

    @pytest.mark.parametrize("raw,expected", [
        (".5", 0.5),
        ("5.", 5),
        ("1e3", 1000),
        ("2.5E-4", 0.00025),
        ("  42  ", 42),
    ])
    def test_parse_literal_forms(self, parser: NumericLiteralParser, raw, expected):
        """Every literal form of the grammar is typed."""
        assert parser.coerce(raw) == expected

    @pytest.mark.parametrize("raw", ["007", "-01", "00.5"])
    def test_leading_zero_stays_text(self, parser: NumericLiteralParser, raw):
        """Identifiers with leading zeros keep their digits."""
        result = parser.parse(raw)
        assert result.value == raw
        assert result.is_numeric is False

    @pytest.mark.parametrize("raw", ["1,234", "$12", "12%", "abc", "1.2.3", "", "-", "."])
    def test_non_literals_stay_text(self, parser: NumericLiteralParser, raw):
        assert parser.coerce(raw) == raw

    def test_zero_is_numeric(self, parser: NumericLiteralParser):
        assert parser.coerce("0") == 0
        assert parser.coerce("0.5") == 0.5

    def test_unsafe_integer_stays_text(self, parser: NumericLiteralParser):
        """Integers beyond exact float range are not typed."""
        raw = str(MAX_SAFE_INTEGER + 2)
        assert parser.coerce(raw) == raw

    def test_none_is_empty(self, parser: NumericLiteralParser):
        assert parser.coerce(None) == ""


class TestNumericFormatting:
    """Tests for canonical number rendering."""

    @pytest.fixture
    def parser(self) -> NumericLiteralParser:
        return NumericLiteralParser()

    @pytest.mark.parametrize("value,expected", [
        (2.0, "2"),
        (10, "10"),
        (0.1, "0.1"),
        (-3.25, "-3.25"),
        (1.5e-5, "0.000015"),
        (1e-7, "1e-7"),
        (1e21, "1e+21"),
    ])
    def test_format_numbers(self, parser: NumericLiteralParser, value, expected):
        assert parser.format(value) == expected

    def test_format_passes_text_through(self, parser: NumericLiteralParser):
        assert parser.format("007") == "007"

    def test_format_none_is_empty(self, parser: NumericLiteralParser):
        assert parser.format(None) == ""

    def test_format_non_finite_is_empty(self, parser: NumericLiteralParser):
        assert parser.format(float("nan")) == ""
        assert parser.format(float("inf")) == ""
