"""Question answering over the loaded procedure documents."""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from config.settings import settings
from design_review.agents.llm_client import LLMClient
from design_review.errors import ProcedureQueryError
from design_review.storage.vector_store import RetrievalStore, format_context

logger = logging.getLogger(__name__)

NO_DOCUMENTS_ANSWER = "No procedure documents are loaded. Ingest documents first."

PROCEDURE_PROMPT = """You are an expert on the procedures (SOPs) of a medical device quality management system.
Answer the user's question based on the procedure excerpts below.

[Procedure excerpts]
{context}

Guidelines:
1. Base your answer strictly on the excerpts provided.
2. Do not guess about anything the excerpts do not cover.
3. Cite the relevant clause numbers or section headers.
4. If the answer involves a procedure, list the steps in order."""


@dataclass
class ProcedureAnswer:
    """Answer to a procedure question with the documents it drew on."""
    answer: str
    sources: List[str] = field(default_factory=list)


class ProcedureAgent:
    """Answers free-form questions from retrieved procedure passages."""

    def __init__(
        self,
        store: RetrievalStore,
        llm: Optional[LLMClient] = None,
        top_k: Optional[int] = None
    ):
        self.store = store
        self._owns_llm = llm is None
        self.llm = llm or LLMClient()
        self.top_k = top_k or settings.procedure_top_k

    def query_procedure(self, question: str) -> ProcedureAnswer:
        """
        Answer a question about the procedures.

        Args:
            question: Free-form question

        Returns:
            The model's answer and the distinct source ids, in rank order

        Raises:
            ProcedureQueryError: If the model call fails
        """
        if not self.store.is_initialized or self.store.count == 0:
            return ProcedureAnswer(answer=NO_DOCUMENTS_ANSWER)

        results = self.store.search(question, self.top_k)
        system_prompt = PROCEDURE_PROMPT.format(context=format_context(results))

        try:
            answer = self.llm.invoke(system_prompt, question)
        except Exception as e:
            logger.error("Procedure query failed: %s", e)
            raise ProcedureQueryError(question, original_error=e) from e

        sources = list(dict.fromkeys(result.source_id for result in results))
        logger.info("Procedure query answered from %d sources", len(sources))
        return ProcedureAnswer(answer=answer, sources=sources)

    def close(self) -> None:
        """Shut down the model client if this agent created it."""
        if self._owns_llm:
            self.llm.close()
