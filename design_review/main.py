"""Command line entry point for Design Review Copilot.

Usage:
    python -m design_review.main ingest <directory>     (dry run: checks the documents)
    python -m design_review.main review "<description>" [--docs <directory>]

The retrieval store lives in memory, so ``review`` ingests the procedure
directory given with ``--docs`` before running the review.
"""

import argparse
import logging
import sys
from typing import List, Optional

from design_review.errors import AgentInfrastructureError, format_error
from design_review.ingest.ingestor import DocumentIngestor, IngestionResult
from design_review.logging_setup import setup_logging
from design_review.storage.vector_store import RetrievalStore
from design_review.workflow.orchestrator import ReviewOrchestrator

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="design-review",
        description="Review proposed design changes against procedure documents",
    )
    parser.add_argument("--log-level", default=None, help="Console log level (default from settings)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    ingest = subparsers.add_parser(
        "ingest",
        help="Dry run: check that a directory of procedure documents chunks and indexes cleanly",
        description="The index lives in memory and is discarded when the command exits; "
                    "use `review --docs` to review against the documents.",
    )
    ingest.add_argument("directory", help="Directory containing .md/.txt documents")

    review = subparsers.add_parser("review", help="Review a design change")
    review.add_argument("description", help="Description of the proposed change")
    review.add_argument("--docs", default=None, help="Procedure directory to ingest first")

    return parser


def print_ingestion(results: List[IngestionResult]) -> None:
    print(f"\n{'='*60}")
    print("Ingestion")
    print(f"{'='*60}")
    for result in results:
        print(f"  {result}")
    failed = [r for r in results if not r.succeeded]
    print(f"\n{len(results) - len(failed)} documents indexed, {len(failed)} failed")


def run_ingest_check(store: RetrievalStore, directory: str) -> List[IngestionResult]:
    results = run_ingest(store, directory)
    print("Dry run: the in-memory index is discarded on exit. Pass --docs to `review` to use it.")
    return results


def run_ingest(store: RetrievalStore, directory: str) -> List[IngestionResult]:
    results = DocumentIngestor(store=store).ingest_directory(directory)
    print_ingestion(results)
    return results


def run_review(store: RetrievalStore, description: str) -> int:
    orchestrator = ReviewOrchestrator(store=store)
    try:
        outcome = orchestrator.process_design_change(description)
    except AgentInfrastructureError as e:
        print(f"\n✗ Review failed: {format_error(e)}")
        return 2
    finally:
        orchestrator.close()

    state, synthesis = outcome.state, outcome.synthesis
    print(f"\n{'='*60}")
    print(f"Review {state.request_id}")
    print(f"{'='*60}")
    for message in state.messages:
        print(f"\n[{message.role.value}]")
        print(message.content)

    print(f"\nPhase: {state.phase.value}")
    if synthesis:
        print(f"Final verdict: {synthesis.final_verdict.value}")
        print(f"Summary: {synthesis.summary}")
        for title, items in (
            ("Required documents", synthesis.required_documents),
            ("Next steps", synthesis.next_steps),
            ("Blockers", synthesis.blockers),
        ):
            if items:
                print(f"\n{title}:")
                for item in items:
                    print(f"  - {item}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(level=args.log_level)

    store = RetrievalStore()
    store.initialize()
    try:
        if args.command == "ingest":
            results = run_ingest_check(store, args.directory)
            return 1 if any(not r.succeeded for r in results) else 0

        if args.docs:
            run_ingest(store, args.docs)
        return run_review(store, args.description)
    except FileNotFoundError as e:
        print(f"\n✗ {e}")
        return 1
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
