"""
Pytest configuration and shared fixtures for Subtitle Translator tests.
"""
import sys
from pathlib import Path
from typing import Callable, List, Optional

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from core.formatting import detect_formatter
from core.models import Entry
from core.recovery import RetryPolicy
from core.translator import EngineConfig
from providers.base import BackendConfig, BaseTranslationBackend, ProviderType


# ============================================================================
# Stub backends
# ============================================================================

class StubBackend(BaseTranslationBackend):
    """
    Scriptable backend.

    `responder(content, prompt, backend)` returns the raw response or raises.
    Every call is recorded in `calls` as (content, prompt, api_key).
    """

    def __init__(
        self,
        config: Optional[BackendConfig] = None,
        responder: Optional[Callable] = None,
        name: ProviderType = ProviderType.OPENAI,
        retry_policy: RetryPolicy = RetryPolicy.MISMATCH_RETRY,
        calls: Optional[list] = None,
    ):
        super().__init__(config or BackendConfig(api_key="key-0", model="stub"))
        self.responder = responder or echo_response
        self._name = name
        self.retry_policy = retry_policy
        self.calls = calls if calls is not None else []

    @property
    def provider_type(self) -> ProviderType:
        return self._name

    async def translate(self, content, source_hint, target_language, prompt):
        self.calls.append((content, prompt, self.config.api_key))
        result = self.responder(content, prompt, self)
        if hasattr(result, "__await__"):
            result = await result
        return result

    def with_credential(self, credential):
        # Clones share the responder and the call log
        if credential is None or credential.value == self.config.api_key:
            return self
        clone = StubBackend(
            BackendConfig(api_key=credential.value, model=self.config.model),
            responder=self.responder,
            name=self._name,
            retry_policy=self.retry_policy,
            calls=self.calls,
        )
        return clone


def echo_response(content: str, prompt: str, backend) -> str:
    """Return the entries section unchanged, in the request's own format"""
    formatter = detect_formatter(content)
    entries = formatter.parse(content)
    return formatter.render([(e.index + 1, e.text, e.timecode) for e in entries])


def upper_response(content: str, prompt: str, backend) -> str:
    """'Translate' by upper-casing every entry"""
    formatter = detect_formatter(content)
    entries = formatter.parse(content)
    return formatter.render([(e.index + 1, e.text.upper(), e.timecode) for e in entries])


def make_entries(count: int, prefix: str = "Line") -> List[Entry]:
    return [
        Entry(
            id=i,
            timecode=f"00:00:{i % 60:02d},000 --> 00:00:{i % 60:02d},900",
            text=f"{prefix} {i}",
        )
        for i in range(1, count + 1)
    ]


# ============================================================================
# Fixtures: Sample Data
# ============================================================================

@pytest.fixture
def sample_srt() -> str:
    """Small SRT document with a multi-line entry."""
    return (
        "1\n"
        "00:00:01,000 --> 00:00:02,500\n"
        "Hello there.\n"
        "\n"
        "2\n"
        "00:00:03,000 --> 00:00:05,000\n"
        "How are you?\n"
        "I'm fine.\n"
        "\n"
        "3\n"
        "00:00:06,000 --> 00:00:07,000\n"
        "- Goodbye!\n"
    )


@pytest.fixture
def entries_factory():
    """Build N entries with ids 1..N."""
    return make_entries


@pytest.fixture
def fast_config() -> EngineConfig:
    """Engine config without real sleeps."""
    return EngineConfig(retry_delay=0, mismatch_retry_delay=0)


@pytest.fixture
def stub_backend_cls():
    """The scriptable StubBackend class."""
    return StubBackend


@pytest.fixture
def responders():
    """Ready-made responder functions."""
    return {"echo": echo_response, "upper": upper_response}


@pytest.fixture
def echo_backend() -> StubBackend:
    return StubBackend(responder=echo_response)


@pytest.fixture
def upper_backend() -> StubBackend:
    return StubBackend(responder=upper_response)


# ============================================================================
# Session-level Setup
# ============================================================================

def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers."""
    for item in items:
        # Auto-add 'unit' marker to test files in tests/unit/
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        # Auto-add 'integration' marker to test files in tests/integration/
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
