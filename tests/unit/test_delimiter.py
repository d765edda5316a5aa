"""
Unit tests for delimiter inference.
"""
import pytest

from tabledesk.editor_engine.delimiter import DISQUALIFIED, DelimiterInferencer
from tabledesk.exceptions import FormatAmbiguityError


class TestDelimiterScoring:
    """Tests for per-candidate scoring."""

    @pytest.fixture
    def inferencer(self) -> DelimiterInferencer:
        return DelimiterInferencer()

    def test_score_counts_fields_and_consistent_rows(self, inferencer: DelimiterInferencer):
        """score = 10 * fields + consistent rows."""
        text = "a;b;c\n1;2;3\n4;5;6"
        assert inferencer.score(text, ";") == 32

    def test_ragged_rows_lower_score(self, inferencer: DelimiterInferencer):
        text = "a;b;c\n1;2;3\n4;5"
        assert inferencer.score(text, ";") == 31

    def test_single_field_disqualifies(self, inferencer: DelimiterInferencer):
        assert inferencer.score("a;b;c\n1;2;3", ",") == DISQUALIFIED

    def test_sample_limit_caps_rows(self):
        inferencer = DelimiterInferencer(sample_rows=2)
        text = "a,b\n" + "\n".join("1,2" for _ in range(10))
        assert inferencer.score(text, ",") == 22


class TestDelimiterInference:
    """Tests for choosing the winning delimiter."""

    @pytest.fixture
    def inferencer(self) -> DelimiterInferencer:
        return DelimiterInferencer()

    def test_semicolon_table(self, inferencer: DelimiterInferencer):
        assert inferencer.infer("a;b;c\n1;2;3\n4;5;6") == ";"

    def test_tab_table(self, inferencer: DelimiterInferencer):
        assert inferencer.infer("a\tb\n1\t2") == "\t"

    def test_pipe_table(self, inferencer: DelimiterInferencer):
        assert inferencer.infer("a|b|c\n1|2|3") == "|"

    def test_comma_wins_over_embedded_semicolons(self, inferencer: DelimiterInferencer):
        """Quoted delimiters do not split fields."""
        text = 'name,note,total\n"x","a;b",1\n"y","c;d",2'
        assert inferencer.infer(text) == ","

    def test_tie_keeps_declaration_order(self, inferencer: DelimiterInferencer):
        """Equal scores keep the earlier candidate (comma before semicolon)."""
        text = "a,b;c\n1,2;3"
        report = inferencer.infer_with_report(text)
        assert report.scores[","] == report.scores[";"]
        assert report.delimiter == ","

    def test_deterministic(self, inferencer: DelimiterInferencer):
        text = "a|b\n1|2\n3|4"
        assert inferencer.infer(text) == inferencer.infer(text)

    def test_single_column_falls_back_to_comma(self, inferencer: DelimiterInferencer):
        report = inferencer.infer_with_report("header\nvalue\nother")
        assert report.delimiter == ","
        assert report.ambiguous is True
        assert report.method == "default"

    def test_empty_text_is_ambiguous(self, inferencer: DelimiterInferencer):
        report = inferencer.infer_with_report("")
        assert report.delimiter == ","
        assert report.ambiguous is True

    def test_scored_report_is_not_ambiguous(self, inferencer: DelimiterInferencer):
        report = inferencer.infer_with_report("a,b\n1,2")
        assert report.method == "scored"
        assert report.ambiguous is False
        assert report.score == 21

    def test_ambiguous_report_raises(self, inferencer: DelimiterInferencer):
        report = inferencer.infer_with_report("only\none\ncolumn")
        with pytest.raises(FormatAmbiguityError) as exc_info:
            report.raise_if_ambiguous()
        assert exc_info.value.details == {"fallback": ","}

    def test_confident_report_does_not_raise(self, inferencer: DelimiterInferencer):
        inferencer.infer_with_report("a;b\n1;2").raise_if_ambiguous()
