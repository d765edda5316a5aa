"""
Delimiter inference.

Picks the field separator that yields the most self-consistent table. Each
candidate is scored on a sample of the text:

    score = 10 * field_count + consistent_rows

where a row is consistent when its field count matches the header. Ragged
rows are the usual sign of a wrong delimiter. A candidate that finds one
field or fewer is disqualified. The result depends only on the input text.
"""

import csv
from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence

import structlog

from tabledesk.config import get_settings
from tabledesk.editor_engine.codec import DEFAULT_DELIMITER, read_records
from tabledesk.exceptions import FormatAmbiguityError, ParseError

logger = structlog.get_logger(__name__)

CANDIDATE_DELIMITERS = (",", ";", "\t", "|")

# Characters the generic fallback sniffer may pick (includes ASCII record/unit separators)
SNIFF_DELIMITERS = ",\t|;\x1e\x1f"

DEFAULT_SAMPLE_ROWS = 50
DISQUALIFIED = -1


@dataclass
class DelimiterInference:
    """Outcome of delimiter inference."""
    delimiter: str
    score: int
    method: str  # "scored", "sniffed", "default"
    scores: Dict[str, int] = field(default_factory=dict)

    @property
    def ambiguous(self) -> bool:
        """True when no structure was found and the default was used."""
        return self.method == "default"

    def raise_if_ambiguous(self) -> None:
        if self.ambiguous:
            raise FormatAmbiguityError(fallback=self.delimiter)


class DelimiterInferencer:
    """Chooses the delimiter for raw tabular text."""

    def __init__(
        self,
        candidates: Sequence[str] = CANDIDATE_DELIMITERS,
        sample_rows: int = DEFAULT_SAMPLE_ROWS,
    ):
        self.candidates = tuple(candidates)
        self.sample_rows = sample_rows

    def infer(self, raw_text: str) -> str:
        """Return the best delimiter for ``raw_text``."""
        return self.infer_with_report(raw_text).delimiter

    def infer_with_report(self, raw_text: str) -> DelimiterInference:
        """
        Score every candidate and return the winner with its evidence.

        Args:
            raw_text: The full tabular text.

        Returns:
            DelimiterInference; ``ambiguous`` is set when falling back to comma.
        """
        scores: Dict[str, int] = {}
        best_delimiter = DEFAULT_DELIMITER
        best_score = DISQUALIFIED

        for candidate in self.candidates:
            score = self.score(raw_text, candidate)
            scores[candidate] = score
            # Strictly greater keeps the earlier candidate on ties
            if score > best_score:
                best_delimiter, best_score = candidate, score

        if best_score >= 0:
            logger.debug("delimiter_inferred", delimiter=best_delimiter, score=best_score)
            return DelimiterInference(best_delimiter, best_score, "scored", scores)

        sniffed = self._sniff(raw_text)
        if sniffed is not None:
            logger.info("delimiter_sniffed", delimiter=sniffed)
            return DelimiterInference(sniffed, DISQUALIFIED, "sniffed", scores)

        logger.warning("delimiter_ambiguous", fallback=DEFAULT_DELIMITER)
        return DelimiterInference(DEFAULT_DELIMITER, DISQUALIFIED, "default", scores)

    def score(self, raw_text: str, delimiter: str) -> int:
        """Score one candidate; -1 when it yields no real columns."""
        try:
            fields, records, _ = read_records(raw_text, delimiter, limit=self.sample_rows)
        except (ParseError, csv.Error) as e:
            logger.debug("delimiter_candidate_failed", delimiter=delimiter, error=str(e))
            return DISQUALIFIED

        field_count = len(fields)
        if field_count <= 1:
            return DISQUALIFIED

        consistent_rows = sum(1 for record in records if len(record) == field_count)
        return field_count * 10 + consistent_rows

    def _sniff(self, raw_text: str) -> Optional[str]:
        sample = "\n".join((raw_text or "").splitlines()[: self.sample_rows + 1])
        if not sample.strip():
            return None
        try:
            dialect = csv.Sniffer().sniff(sample, delimiters=SNIFF_DELIMITERS)
        except csv.Error:
            return None

        try:
            fields, _, _ = read_records(raw_text, dialect.delimiter, limit=self.sample_rows)
        except ParseError:
            return None
        return dialect.delimiter if len(fields) > 1 else None


# Singleton instance
_inferencer_instance: Optional[DelimiterInferencer] = None


def get_delimiter_inferencer() -> DelimiterInferencer:
    """Get singleton DelimiterInferencer instance."""
    global _inferencer_instance
    if _inferencer_instance is None:
        _inferencer_instance = DelimiterInferencer(sample_rows=get_settings().inference_sample_rows)
    return _inferencer_instance
