"""Chat model wrapper with a per-call time budget."""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Optional

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage

from config.settings import settings
from design_review.errors import AgentInfrastructureError, ReviewTimeoutError

logger = logging.getLogger(__name__)


class LLMClient:
    """
    Generation function used by reviewers and synthesis.

    Sends a system and a user message to a LangChain chat model and returns
    the raw text. Each call gets its own worker thread, so its budget starts
    when the call is dispatched and is never spent waiting behind other
    calls. The default model also carries the budget as its HTTP timeout,
    so an abandoned request does not hold its thread indefinitely.
    """

    def __init__(
        self,
        chat_model: Optional[BaseChatModel] = None,
        temperature: Optional[float] = None,
        timeout_ms: Optional[int] = None
    ):
        """
        Initialize the client.

        Args:
            chat_model: LangChain chat model (ChatOllama from settings if not provided)
            temperature: Sampling temperature for the default model
            timeout_ms: Default per-call timeout (uses settings if not provided)
        """
        self.timeout_ms = timeout_ms or settings.llm_timeout_ms
        if chat_model is None:
            from langchain_ollama import ChatOllama

            chat_model = ChatOllama(
                base_url=settings.ollama_base_url,
                model=settings.ollama_model,
                temperature=settings.ollama_temperature if temperature is None else temperature,
                num_predict=settings.ollama_num_predict,
                client_kwargs={"timeout": self.timeout_ms / 1000},
            )
        self.chat_model = chat_model

        # One single-worker executor per in-flight call
        self._active = set()
        self._lock = threading.Lock()
        self._closed = False

    def invoke(self, system_prompt: str, user_prompt: str, timeout_ms: Optional[int] = None) -> str:
        """
        Run one model call.

        Args:
            system_prompt: Instructions for the model
            user_prompt: The request itself
            timeout_ms: Time budget for this call (client default if not provided)

        Returns:
            Raw model output text

        Raises:
            ReviewTimeoutError: If the call exceeds its budget
            AgentInfrastructureError: If the backend cannot be reached
            RuntimeError: If the client was closed
        """
        timeout_ms = timeout_ms or self.timeout_ms
        messages = [SystemMessage(content=system_prompt), HumanMessage(content=user_prompt)]

        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="llm-call")
        with self._lock:
            if self._closed:
                executor.shutdown(wait=False)
                raise RuntimeError("LLMClient is closed")
            self._active.add(executor)

        try:
            future = executor.submit(self.chat_model.invoke, messages)
            response = future.result(timeout=timeout_ms / 1000)
        except FutureTimeoutError:
            logger.warning("Model call timed out after %dms", timeout_ms)
            raise ReviewTimeoutError("chat", timeout_ms)
        except ConnectionError as e:
            raise AgentInfrastructureError(str(e) or e.__class__.__name__, original_error=e) from e
        finally:
            with self._lock:
                self._active.discard(executor)
            # An abandoned call finishes on its own thread; nothing waits for it
            executor.shutdown(wait=False)

        return self._content_to_text(response)

    @property
    def in_flight(self) -> int:
        with self._lock:
            return len(self._active)

    def close(self) -> None:
        """Refuse new calls and release the workers of calls still running."""
        with self._lock:
            self._closed = True
            active, self._active = list(self._active), set()
        for executor in active:
            executor.shutdown(wait=False, cancel_futures=True)

    @staticmethod
    def _content_to_text(response: Any) -> str:
        content = response.content if hasattr(response, "content") else response
        if isinstance(content, str):
            return content
        if isinstance(content, list):
            parts = []
            for block in content:
                if isinstance(block, str):
                    parts.append(block)
                elif isinstance(block, dict) and "text" in block:
                    parts.append(str(block["text"]))
            return "".join(parts)
        return str(content)
