"""Tests for procedure question answering."""

import pytest

from design_review.agents.procedure_agent import NO_DOCUMENTS_ANSWER, ProcedureAgent
from design_review.errors import ProcedureQueryError
from design_review.storage.vector_store import RetrievalStore


class TestQueryProcedure:
    """Tests for ProcedureAgent.query_procedure."""

    def test_empty_store_skips_model(self, store, make_llm):
        """Test that no model call is made without documents."""
        llm = make_llm()
        answer = ProcedureAgent(store, llm=llm).query_procedure("How do I change a label?")

        assert answer.answer == NO_DOCUMENTS_ANSWER
        assert answer.sources == []
        assert llm.calls == []

    def test_uninitialized_store_skips_model(self, embedder, make_llm):
        store = RetrievalStore(embedder=embedder, max_capacity=10, target_watermark=8)
        llm = make_llm()

        assert ProcedureAgent(store, llm=llm).query_procedure("q").answer == NO_DOCUMENTS_ANSWER
        assert llm.calls == []

    def test_answer_with_sources(self, store, make_chunk, make_llm):
        """Test that context reaches the prompt and sources are distinct."""
        store.add_chunks([
            make_chunk("label label review", source_id="labeling.md", index=0, header="## Labeling"),
            make_chunk("label approval", source_id="labeling.md", index=1),
            make_chunk("label training", source_id="training.md"),
            make_chunk("battery audit", source_id="battery.md"),
        ])
        llm = make_llm(["Follow section 4.2 of the labeling SOP."])

        answer = ProcedureAgent(store, llm=llm, top_k=3).query_procedure("label")

        assert answer.answer == "Follow section 4.2 of the labeling SOP."
        assert answer.sources == ["labeling.md", "training.md"]
        call = llm.calls[0]
        assert call["user"] == "label"
        assert "[## Labeling] (source: labeling.md)" in call["system"]
        assert "battery audit" not in call["system"]

    def test_model_failure(self, store, make_chunk, make_llm):
        """Test that model errors surface as ProcedureQueryError."""
        store.add_chunks([make_chunk("risk file")])
        llm = make_llm([RuntimeError("backend down")])

        with pytest.raises(ProcedureQueryError) as exc_info:
            ProcedureAgent(store, llm=llm).query_procedure("risk?")
        assert exc_info.value.question == "risk?"
        assert isinstance(exc_info.value.original_error, RuntimeError)


class TestClose:

    def test_closes_own_client(self, store):
        agent = ProcedureAgent(store)
        agent.close()

        with pytest.raises(RuntimeError):
            agent.llm.invoke("system", "user")

    def test_injected_client_left_open(self, store):
        """Test that close() leaves a caller's client alone."""
        class ClosableLLM:
            closed = False

            def close(self):
                self.closed = True

        llm = ClosableLLM()
        ProcedureAgent(store, llm=llm).close()
        assert not llm.closed
