"""Tests for protocol interfaces."""

from typing import Any

import pytest

from ai_code_tutor.adapters.llm.groq import GroqAdapter
from ai_code_tutor.adapters.sandbox.piston import PistonAdapter
from ai_code_tutor.adapters.storage.file import JsonFileStore
from ai_code_tutor.adapters.storage.memory import MemoryStore
from ai_code_tutor.config.schema import GroqConfig, SandboxConfig
from ai_code_tutor.core.tiers import LocalSimulationTier
from ai_code_tutor.interfaces.llm import ChatMessage, LLMProvider
from ai_code_tutor.interfaces.sandbox import (
    SandboxProvider,
    SandboxRequest,
    SandboxResponse,
    StageResult,
)
from ai_code_tutor.interfaces.storage import KeyValueStore
from ai_code_tutor.models.compilation import Classification


class MockLLMProvider:
    """Mock implementation of LLMProvider for testing protocol compliance."""

    async def complete(
        self,
        messages: list[ChatMessage],
        json_mode: bool = True,
    ) -> dict[str, Any] | str:
        """Echo the last user message."""
        if json_mode:
            return {"echo": messages[-1]["content"]}
        return messages[-1]["content"]

    @property
    def model_name(self) -> str:
        """Return model name."""
        return "test-model"


class MockSandboxProvider:
    """Mock implementation of SandboxProvider for testing protocol compliance."""

    async def execute(self, request: SandboxRequest) -> SandboxResponse:
        """Pretend the program printed its stdin."""
        return SandboxResponse(
            compile=StageResult(output="", code=0),
            run=StageResult(output=request.stdin, code=0),
        )

    @property
    def timeout(self) -> float:
        return 5.0


def protocol_members(protocol: type) -> set[str]:
    return {name for name in vars(protocol) if not name.startswith("_")}


class TestLLMProviderProtocol:
    """Test LLMProvider protocol compliance."""

    @pytest.mark.parametrize(
        "provider",
        [MockLLMProvider(), GroqAdapter(GroqConfig(api_key="gsk_test"))],
        ids=["mock", "groq"],
    )
    def test_implements_protocol(self, provider: Any) -> None:
        """Test providers expose every protocol member."""
        for member in protocol_members(LLMProvider):
            assert hasattr(provider, member), member

    @pytest.mark.asyncio
    async def test_json_and_text_modes(self) -> None:
        """Test both response modes of the contract."""
        provider: LLMProvider = MockLLMProvider()
        messages: list[ChatMessage] = [{"role": "user", "content": "hi"}]

        assert await provider.complete(messages) == {"echo": "hi"}
        assert await provider.complete(messages, json_mode=False) == "hi"
        assert provider.model_name == "test-model"


class TestSandboxProviderProtocol:
    """Test SandboxProvider protocol compliance."""

    @pytest.mark.parametrize(
        "provider",
        [MockSandboxProvider(), PistonAdapter(SandboxConfig())],
        ids=["mock", "piston"],
    )
    def test_implements_protocol(self, provider: Any) -> None:
        """Test providers expose every protocol member."""
        for member in protocol_members(SandboxProvider):
            assert hasattr(provider, member), member

    @pytest.mark.asyncio
    async def test_execute(self) -> None:
        """Test the request and response shapes."""
        provider: SandboxProvider = MockSandboxProvider()
        request = SandboxRequest(
            language="java",
            version="15.0.2",
            file_name="Main.java",
            content="class Main {}",
            stdin="42",
        )

        response = await provider.execute(request)

        assert response.compile.code == 0
        assert response.run.output == "42"

    def test_compile_stage_optional(self) -> None:
        """Test interpreted languages have no compile stage."""
        assert SandboxResponse(run=StageResult(output="", code=0)).compile is None


class TestKeyValueStoreProtocol:
    """Test KeyValueStore protocol compliance."""

    @pytest.mark.parametrize("factory", [MemoryStore, lambda: JsonFileStore("unused.json")])
    def test_implements_protocol(self, factory: Any) -> None:
        """Test stores expose every protocol member."""
        store = factory()
        for member in protocol_members(KeyValueStore):
            assert hasattr(store, member), member

    def test_missing_key_is_none(self) -> None:
        store: KeyValueStore = MemoryStore()
        assert store.get("missing") is None


class TestExecutionTierProtocol:
    """Test the tier contract on the terminal tier."""

    @pytest.mark.asyncio
    async def test_local_tier_attempt(self, make_request, hello_world: str) -> None:
        """Test the tier has a name and answers with a result."""
        tier = LocalSimulationTier()

        result = await tier.attempt(make_request(hello_world))

        assert tier.name == "local-simulation"
        assert result.classification == Classification.DEGRADED
        assert result.output_text == "Hello, World!"
