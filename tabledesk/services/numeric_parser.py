"""
Numeric literal parser for cell type inference.

Decides whether a raw cell string is a plain numeric literal and renders
numbers back to canonical decimal text:
- Integers and decimals: 12, -3.5, .5, 5.
- Exponent notation: 1e3, 2.5E-4
- Surrounding whitespace is ignored

Values that would lose information as numbers stay text: literals with a
redundant leading zero (007) and integers beyond the exactly representable
range.
"""
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Union

import structlog

logger = structlog.get_logger(__name__)

Number = Union[int, float]

MAX_SAFE_INTEGER = 2 ** 53 - 1


@dataclass
class ParsedLiteral:
    """Result of parsing a raw cell string."""

    value: Union[Number, str]
    raw_value: str
    is_numeric: bool = False


class NumericLiteralParser:
    """
    Parser for numeric literals found in extracted tabular text.

    Only plain literals are recognized; currency symbols, thousand separators
    and unit suffixes are left as text since cell semantics are not validated.
    """

    FLOAT_PATTERN = re.compile(r"^\s*-?(\d+\.?|\.\d+|\d+\.\d+)([eE][-+]?\d+)?\s*$")
    LEADING_ZERO_PATTERN = re.compile(r"^\s*-?0\d")

    # JS-style switch points between plain and exponent rendering
    PLAIN_MIN = 1e-6
    PLAIN_MAX = 1e21

    def is_numeric_literal(self, value_str: str) -> bool:
        """Check whether ``value_str`` would be typed as a number."""
        return self.parse(value_str).is_numeric

    def parse(self, value_str: str) -> ParsedLiteral:
        """
        Parse a raw string into a number when it is a numeric literal.

        Args:
            value_str: The raw cell text.

        Returns:
            ParsedLiteral holding a number, or the untouched text.
        """
        if value_str is None:
            return ParsedLiteral(value="", raw_value="")

        if not self.FLOAT_PATTERN.match(value_str):
            return ParsedLiteral(value=value_str, raw_value=value_str)

        if self.LEADING_ZERO_PATTERN.match(value_str):
            return ParsedLiteral(value=value_str, raw_value=value_str)

        try:
            number = float(value_str)
        except ValueError as e:
            logger.warning("numeric_literal_rejected", value=value_str, error=str(e))
            return ParsedLiteral(value=value_str, raw_value=value_str)

        if number.is_integer():
            if abs(number) > MAX_SAFE_INTEGER:
                return ParsedLiteral(value=value_str, raw_value=value_str)
            return ParsedLiteral(value=int(number), raw_value=value_str, is_numeric=True)

        return ParsedLiteral(value=number, raw_value=value_str, is_numeric=True)

    def coerce(self, value_str: Optional[str]) -> Union[Number, str]:
        """Return the typed value for a raw cell string."""
        return self.parse(value_str).value

    def format(self, value: Union[Number, str, None]) -> str:
        """
        Render a cell value as text.

        Numbers use canonical decimal text (2.0 -> "2", 1e-7 -> "1e-7");
        strings pass through and None becomes empty.
        """
        if value is None:
            return ""
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, int):
            return str(value)
        if isinstance(value, float):
            return self._format_float(value)
        return str(value)

    def _format_float(self, value: float) -> str:
        if value != value or value in (float("inf"), float("-inf")):
            return ""
        if value.is_integer() and abs(value) < self.PLAIN_MAX:
            return str(int(value))

        text = repr(value)
        if "e" not in text:
            return text

        magnitude = abs(value)
        if self.PLAIN_MIN <= magnitude < self.PLAIN_MAX:
            return format(Decimal(text), "f")

        mantissa, exponent = text.split("e")
        exp = int(exponent)
        sign = "+" if exp > 0 else "-"
        return f"{mantissa}e{sign}{abs(exp)}"


# Singleton instance
_parser_instance: Optional[NumericLiteralParser] = None


def get_numeric_parser() -> NumericLiteralParser:
    """Get singleton NumericLiteralParser instance."""
    global _parser_instance
    if _parser_instance is None:
        _parser_instance = NumericLiteralParser()
    return _parser_instance
