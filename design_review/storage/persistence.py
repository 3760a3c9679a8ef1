"""Review history on disk: full records, audit rows and summaries."""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from config.settings import settings
from design_review.workflow.state import ReviewState, SynthesisResult

logger = logging.getLogger(__name__)

RECORD_VERSION = "1.0"


class ReviewPersistence:
    """Persistence sink for completed reviews."""

    def __init__(self, storage_dir: Optional[str] = None):
        """
        Initialize the sink.

        Args:
            storage_dir: Directory for review records (uses settings if not provided)
        """
        self.storage_dir = Path(storage_dir or settings.review_storage_dir)
        self.storage_dir.mkdir(parents=True, exist_ok=True)

    def audit_rows(self, state: ReviewState) -> List[Dict[str, Any]]:
        """One row per review message, in log order."""
        return [
            {
                "request_id": state.request_id,
                "role": message.role.value,
                "agent_id": message.agent_id,
                "verdict": message.verdict.value if message.verdict else None,
                "content": message.content,
                "timestamp": message.timestamp.isoformat(),
            }
            for message in state.messages
        ]

    def save_review(self, state: ReviewState, synthesis: Optional[SynthesisResult]) -> str:
        """
        Save the complete review record.

        Returns:
            Path to saved file
        """
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        filepath = self.storage_dir / f"{state.request_id}_{timestamp}.json"

        record = {
            "state": state.model_dump(mode="json", by_alias=True),
            "synthesis": synthesis.model_dump(mode="json", by_alias=True) if synthesis else None,
            "audit": self.audit_rows(state),
            "_metadata": {
                "saved_at": datetime.now().isoformat(),
                "version": RECORD_VERSION,
            },
        }

        with open(filepath, "w", encoding="utf-8") as f:
            json.dump(record, f, indent=2, ensure_ascii=False)

        logger.info("Review %s saved to %s", state.request_id, filepath)
        return str(filepath)

    def save_summary(self, state: ReviewState, synthesis: Optional[SynthesisResult]) -> str:
        """
        Save a human-readable summary.

        Returns:
            Path to summary file
        """
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        filepath = self.storage_dir / f"{state.request_id}_{timestamp}_summary.md"

        lines = [
            "# Design Change Review",
            "",
            f"**Request ID**: {state.request_id}",
            f"**Created**: {state.created_at.isoformat()}",
            f"**Phase**: {state.phase.value}",
            f"**Final verdict**: {state.final_verdict.value if state.final_verdict else 'n/a'}",
            "",
            "## Description",
            "",
            state.description,
            "",
        ]

        reviews = [
            ("Regulatory", state.regulatory_verdict),
            ("Quality", state.quality_verdict),
            ("Engineering", state.engineering_verdict),
        ]
        lines.append("## Reviews")
        lines.append("")
        for label, verdict in reviews:
            if verdict is None:
                lines.append(f"- **{label}**: skipped")
                continue
            lines.append(f"- **{label}**: {verdict.verdict.value}")
            for finding in verdict.findings:
                lines.append(f"  - {finding}")
        lines.append("")

        if synthesis:
            lines.append("## Decision")
            lines.append("")
            lines.append(synthesis.summary)
            lines.append("")
            for title, items in (
                ("Required documents", synthesis.required_documents),
                ("Next steps", synthesis.next_steps),
                ("Blockers", synthesis.blockers),
            ):
                if items:
                    lines.append(f"### {title}")
                    lines.append("")
                    lines.extend(f"- {item}" for item in items)
                    lines.append("")

        if state.missing_info:
            lines.append(f"## Missing information ({len(state.missing_info)})")
            lines.append("")
            lines.extend(f"- {item}" for item in state.missing_info)
            lines.append("")

        with open(filepath, "w", encoding="utf-8") as f:
            f.write("\n".join(lines))

        return str(filepath)

    def load_review(self, path: str) -> Dict[str, Any]:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)

    def list_reviews(self) -> List[Dict[str, Any]]:
        """Summaries of saved reviews, newest first."""
        reviews = []
        for filepath in self.storage_dir.glob("*.json"):
            try:
                record = self.load_review(str(filepath))
            except (OSError, json.JSONDecodeError) as e:
                logger.warning("Skipping unreadable review record %s: %s", filepath, e)
                continue

            state = record.get("state", {})
            reviews.append({
                "request_id": state.get("requestId"),
                "phase": state.get("phase"),
                "final_verdict": state.get("finalVerdict"),
                "created_at": state.get("createdAt"),
                "path": str(filepath),
            })

        reviews.sort(key=lambda r: r["created_at"] or "", reverse=True)
        return reviews
