"""Tests for defensive parsing of model output."""

import pytest

from design_review.agents.parsing import parse_model_output, truncate
from design_review.errors import VerdictParseError
from design_review.workflow.state import FinalVerdict, SynthesisResult, Verdict, VerdictType


class TestParseVerdict:
    """Tests for verdict parsing."""

    def test_json_wrapped_in_prose(self):
        """Test that prose and code fences around the object are ignored."""
        raw = (
            "Here is my assessment:\n```json\n"
            '{"verdict": "WARNING", "findings": ["claims wording"], '
            '"recommendations": ["rephrase"], "missingInfo": ["intended use"], '
            '"referencedSections": ["## Labeling"]}\n```\nThanks.'
        )
        verdict = parse_model_output(raw, Verdict, "test")

        assert verdict.verdict == VerdictType.WARNING
        assert verdict.findings == ["claims wording"]
        assert verdict.missing_info == ["intended use"]
        assert verdict.referenced_sections == ["## Labeling"]

    def test_optional_lists_default_empty(self):
        """Test that missingInfo and referencedSections are optional."""
        verdict = parse_model_output('{"verdict": "PASS", "findings": [], "recommendations": []}', Verdict, "test")
        assert verdict.missing_info == []
        assert verdict.referenced_sections == []

    def test_null_lists_coerced(self):
        """Test that null list fields become empty lists."""
        raw = '{"verdict": "PASS", "findings": null, "recommendations": [], "missingInfo": null}'
        assert parse_model_output(raw, Verdict, "test").findings == []

    def test_verdict_case_normalized(self):
        """Test that lower-case verdict values are accepted."""
        raw = '{"verdict": "needs_info", "findings": [], "recommendations": []}'
        assert parse_model_output(raw, Verdict, "test").verdict == VerdictType.NEEDS_INFO

    @pytest.mark.parametrize("raw", [
        "no json here",
        "} backwards {",
        '{"verdict": "PASS", "findings": [',
        '{"verdict": "MAYBE", "findings": [], "recommendations": []}',
        '{"verdict": "PASS", "findings": "not a list", "recommendations": []}',
        '{"verdict": "PASS", "findings": [1, 2], "recommendations": []}',
        '{"findings": [], "recommendations": []}',
        "",
    ])
    def test_unusable_output_raises(self, raw):
        """Test that every failure stage raises VerdictParseError."""
        with pytest.raises(VerdictParseError):
            parse_model_output(raw, Verdict, "test")

    def test_error_reports_context(self):
        """Test that the parse error names its context."""
        with pytest.raises(VerdictParseError) as exc_info:
            parse_model_output("nothing", Verdict, "REGULATORY review")
        assert exc_info.value.context == "REGULATORY review"
        assert "REGULATORY review" in exc_info.value.message


class TestParseSynthesis:
    """Tests for synthesis parsing."""

    def test_valid_synthesis(self):
        """Test a complete synthesis answer."""
        raw = (
            '{"finalVerdict": "NEEDS_REVIEW", "summary": "Label wording needs work", '
            '"requiredDocuments": ["Risk analysis report"], "nextSteps": ["Revise label"]}'
        )
        result = parse_model_output(raw, SynthesisResult, "synthesis")

        assert result.final_verdict == FinalVerdict.NEEDS_REVIEW
        assert result.blockers == []
        assert result.required_documents == ["Risk analysis report"]

    def test_missing_summary_rejected(self):
        """Test that a synthesis without a summary is invalid."""
        raw = '{"finalVerdict": "APPROVED", "requiredDocuments": [], "nextSteps": []}'
        with pytest.raises(VerdictParseError):
            parse_model_output(raw, SynthesisResult, "synthesis")


class TestTruncate:
    """Tests for log truncation."""

    def test_short_text_unchanged(self):
        assert truncate("abc", limit=10) == "abc"

    def test_long_text_truncated(self):
        text = truncate("x" * 3000)
        assert text.startswith("x" * 2048)
        assert text.endswith("(952 more chars)")
