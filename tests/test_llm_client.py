"""Tests for the chat model wrapper."""

import threading

import pytest
from langchain_core.language_models import FakeListChatModel
from langchain_core.messages import AIMessage

from design_review.agents.llm_client import LLMClient
from design_review.errors import AgentInfrastructureError, ReviewTimeoutError

from conftest import SlowChatModel


class UnreachableChatModel:
    def invoke(self, messages):
        raise ConnectionError("Failed to connect to Ollama")


class BlockContentChatModel:
    def invoke(self, messages):
        return AIMessage(content=[{"type": "text", "text": "{\"a\": "}, "1}"])


class TestLLMClient:
    """Tests for LLMClient."""

    def test_returns_model_text(self):
        """Test that the model's text is returned."""
        client = LLMClient(chat_model=FakeListChatModel(responses=["{\"verdict\": \"PASS\"}"]))
        assert client.invoke("system", "user") == "{\"verdict\": \"PASS\"}"
        client.close()

    def test_timeout(self, slow_chat_model):
        """Test that a slow call raises ReviewTimeoutError."""
        client = LLMClient(chat_model=slow_chat_model, timeout_ms=50)

        with pytest.raises(ReviewTimeoutError) as exc_info:
            client.invoke("system", "user")
        assert exc_info.value.timeout_ms == 50
        client.close()

    def test_per_call_timeout_overrides_default(self, slow_chat_model):
        """Test that the timeout argument wins over the client default."""
        client = LLMClient(chat_model=slow_chat_model, timeout_ms=60000)

        with pytest.raises(ReviewTimeoutError):
            client.invoke("system", "user", timeout_ms=20)
        client.close()

    def test_unreachable_backend(self):
        """Test that connection failures become AgentInfrastructureError."""
        client = LLMClient(chat_model=UnreachableChatModel())

        with pytest.raises(AgentInfrastructureError):
            client.invoke("system", "user")
        client.close()

    def test_content_blocks_flattened(self):
        """Test that list content is joined into text."""
        client = LLMClient(chat_model=BlockContentChatModel())
        assert client.invoke("system", "user") == "{\"a\": 1}"
        client.close()

    def test_concurrent_calls_do_not_share_budget(self):
        """Test that calls beyond any pool size each get their full budget."""
        client = LLMClient(chat_model=SlowChatModel(delay=0.3), timeout_ms=2000)
        outcomes = []
        lock = threading.Lock()

        def call():
            try:
                text = client.invoke("system", "user")
            except ReviewTimeoutError:
                text = "timeout"
            with lock:
                outcomes.append(text)

        threads = [threading.Thread(target=call) for _ in range(12)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert outcomes == ["too late"] * 12
        assert client.in_flight == 0
        client.close()

    def test_timed_out_call_does_not_block_next(self):
        """Test that an abandoned call leaves later calls unaffected."""
        client = LLMClient(chat_model=SlowChatModel(delay=0.3), timeout_ms=2000)

        with pytest.raises(ReviewTimeoutError):
            client.invoke("system", "user", timeout_ms=20)
        assert client.invoke("system", "user") == "too late"
        client.close()

    def test_closed_client_refuses_calls(self):
        client = LLMClient(chat_model=FakeListChatModel(responses=["ok"]))
        client.close()

        with pytest.raises(RuntimeError):
            client.invoke("system", "user")
