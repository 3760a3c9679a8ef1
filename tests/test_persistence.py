"""Tests for review history persistence."""

import json
from datetime import datetime

import pytest

from design_review.storage.persistence import ReviewPersistence
from design_review.workflow.state import (
    ExpertRole,
    FinalVerdict,
    ReviewMessage,
    ReviewPhase,
    ReviewState,
    SynthesisResult,
    Verdict,
    VerdictType,
)


@pytest.fixture
def sink(tmp_path):
    return ReviewPersistence(storage_dir=str(tmp_path / "runs"))


@pytest.fixture
def blocked_review():
    regulatory = Verdict(
        verdict=VerdictType.BLOCK,
        findings=["Diagnosis claim changes the device class"],
        recommendations=["Drop the claim"],
        missing_info=["Intended use statement"],
    )
    state = ReviewState(
        request_id="req-1",
        description="Add an arrhythmia diagnosis screen",
        phase=ReviewPhase.BLOCKED,
        regulatory_verdict=regulatory,
        final_verdict=FinalVerdict.REJECTED,
        missing_info=["Intended use statement"],
        created_at=datetime(2026, 3, 2, 9, 30),
        updated_at=datetime(2026, 3, 2, 9, 31),
        messages=[
            ReviewMessage(agent_id="coordinator", role=ExpertRole.COORDINATOR, content="received"),
            ReviewMessage(
                agent_id="regulatory_reviewer",
                role=ExpertRole.REGULATORY,
                content="Verdict: BLOCK",
                verdict=VerdictType.BLOCK,
            ),
        ],
    )
    synthesis = SynthesisResult(
        final_verdict=FinalVerdict.REJECTED,
        summary="Blocked by regulatory review",
        required_documents=[],
        next_steps=["Drop the claim"],
        blockers=["Diagnosis claim changes the device class"],
    )
    return state, synthesis


class TestSaveReview:
    """Tests for full review records."""

    def test_record_contents(self, sink, blocked_review):
        """Test that the saved record carries state, synthesis and audit rows."""
        state, synthesis = blocked_review
        path = sink.save_review(state, synthesis)

        with open(path, encoding="utf-8") as f:
            record = json.load(f)

        assert record["state"]["requestId"] == "req-1"
        assert record["state"]["regulatoryVerdict"]["verdict"] == "BLOCK"
        assert record["state"]["qualityVerdict"] is None
        assert record["synthesis"]["finalVerdict"] == "REJECTED"
        assert record["_metadata"]["version"] == "1.0"
        assert [row["role"] for row in record["audit"]] == ["COORDINATOR", "REGULATORY"]
        assert record["audit"][1]["verdict"] == "BLOCK"
        assert record["audit"][0]["verdict"] is None

    def test_load_roundtrip_validates(self, sink, blocked_review):
        """Test that a saved state validates back into a ReviewState."""
        state, synthesis = blocked_review
        record = sink.load_review(sink.save_review(state, synthesis))

        restored = ReviewState.model_validate(record["state"])
        assert restored == state

    def test_list_reviews(self, sink, blocked_review, tmp_path):
        """Test listing saved reviews, skipping unreadable files."""
        state, synthesis = blocked_review
        sink.save_review(state, synthesis)
        (tmp_path / "runs" / "broken.json").write_text("{not json", encoding="utf-8")

        reviews = sink.list_reviews()

        assert len(reviews) == 1
        assert reviews[0]["request_id"] == "req-1"
        assert reviews[0]["phase"] == "BLOCKED"
        assert reviews[0]["final_verdict"] == "REJECTED"


class TestSaveSummary:
    """Tests for markdown summaries."""

    def test_summary_sections(self, sink, blocked_review):
        state, synthesis = blocked_review
        path = sink.save_summary(state, synthesis)

        with open(path, encoding="utf-8") as f:
            text = f.read()

        assert text.startswith("# Design Change Review")
        assert "- **Regulatory**: BLOCK" in text
        assert "- **Quality**: skipped" in text
        assert "### Blockers" in text
        assert "### Required documents" not in text
        assert "## Missing information (1)" in text
