"""
Shared test fixtures for span suppression tests.
"""

from typing import Generator

import pytest
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import (
    InMemorySpanExporter,
)

from spansuppressionlib.suppression.span_suppression_config import (
    ENV_VAR_DEBUG,
    ENV_VAR_SUPPRESSION_BY_TYPE,
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(ENV_VAR_SUPPRESSION_BY_TYPE, raising=False)
    monkeypatch.delenv(ENV_VAR_DEBUG, raising=False)


@pytest.fixture(scope="function")
def span_exporter() -> InMemorySpanExporter:
    return InMemorySpanExporter()


@pytest.fixture(scope="function")
def tracer_provider(
    span_exporter: InMemorySpanExporter,
) -> Generator[TracerProvider, None, None]:
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(span_exporter))
    yield provider
    provider.shutdown()
