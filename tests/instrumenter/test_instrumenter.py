"""End-to-end tests for Instrumenter and InstrumenterBuilder with an SDK tracer."""

from dataclasses import dataclass
from typing import Optional

import pytest
from opentelemetry.context import _SUPPRESS_INSTRUMENTATION_KEY, Context, set_value
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export.in_memory_span_exporter import (
    InMemorySpanExporter,
)
from opentelemetry.trace import SpanKind, StatusCode
from opentelemetry.util.types import AttributeValue

from spansuppressionlib.instrumenter.attributes_extractor import (
    AttributesExtractor,
    DbAttributesExtractor,
    HttpAttributesExtractor,
    RpcAttributesExtractor,
)
from spansuppressionlib.instrumenter.instrumenter import Instrumenter
from spansuppressionlib.instrumenter.instrumenter_builder import InstrumenterBuilder
from spansuppressionlib.suppression.ancestor_span import find_ancestor_span
from spansuppressionlib.suppression.instrumentation_category import (
    HTTP,
    RPC,
    CategoryRegistry,
)
from spansuppressionlib.suppression.span_suppression_config import (
    ENV_VAR_SUPPRESSION_BY_TYPE,
    SpanSuppressionConfig,
)


@dataclass
class Request:
    name: str
    kind: SpanKind = SpanKind.CLIENT


class UrlExtractor(HttpAttributesExtractor[Request, str]):
    def on_start(self, attributes: dict[str, AttributeValue], request: Request) -> None:
        attributes["url.full"] = f"https://example.com/{request.name}"

    def on_end(
        self,
        attributes: dict[str, AttributeValue],
        request: Request,
        response: Optional[str],
        error: Optional[BaseException],
    ) -> None:
        if response is not None:
            attributes["http.response.body"] = response


class RpcMethodExtractor(RpcAttributesExtractor[Request, str]):
    def on_start(self, attributes: dict[str, AttributeValue], request: Request) -> None:
        attributes["rpc.method"] = request.name


class QueryExtractor(DbAttributesExtractor[Request, str]):
    def on_start(self, attributes: dict[str, AttributeValue], request: Request) -> None:
        attributes["db.query.text"] = request.name


class BrokenExtractor(AttributesExtractor[Request, str]):
    def on_start(self, attributes: dict[str, AttributeValue], request: Request) -> None:
        raise RuntimeError("boom")


def _builder(
    tracer_provider: TracerProvider, name: str, enabled: bool = True
) -> InstrumenterBuilder[Request, str]:
    return InstrumenterBuilder[Request, str](
        name,
        lambda request: request.name,
        tracer_provider=tracer_provider,
        config=SpanSuppressionConfig(
            suppression_by_type_enabled=enabled, debug_logging=True
        ),
    )


def _client(
    tracer_provider: TracerProvider,
    name: str,
    *extractors: AttributesExtractor[Request, str],
    enabled: bool = True,
) -> Instrumenter[Request, str]:
    return (
        _builder(tracer_provider, name, enabled)
        .add_attributes_extractors(extractors)
        .new_client_instrumenter()
    )


def test_start_and_end_records_span(
    tracer_provider: TracerProvider, span_exporter: InMemorySpanExporter
) -> None:
    instrumenter = _client(tracer_provider, "test.http", UrlExtractor())
    request = Request("users")

    assert instrumenter.should_start(Context(), request)
    context = instrumenter.start(Context(), request)
    instrumenter.end(context, request, response="ok")

    spans = span_exporter.get_finished_spans()
    assert len(spans) == 1
    assert spans[0].name == "users"
    assert spans[0].kind is SpanKind.CLIENT
    assert spans[0].attributes is not None
    assert spans[0].attributes["url.full"] == "https://example.com/users"
    assert spans[0].attributes["http.response.body"] == "ok"


def test_nested_same_category_is_suppressed(
    tracer_provider: TracerProvider, span_exporter: InMemorySpanExporter
) -> None:
    """An HTTP client wrapping another HTTP client produces one span."""
    outer = _client(tracer_provider, "test.outer", UrlExtractor())
    inner = _client(tracer_provider, "test.inner", UrlExtractor())

    with outer.instrument(Request("outer")) as outer_context:
        assert outer_context is not None
        with inner.instrument(Request("inner")) as inner_context:
            assert inner_context is None

    assert [span.name for span in span_exporter.get_finished_spans()] == ["outer"]


def test_nested_different_category_is_not_suppressed(
    tracer_provider: TracerProvider, span_exporter: InMemorySpanExporter
) -> None:
    rpc = _client(tracer_provider, "test.rpc", RpcMethodExtractor())
    http = _client(tracer_provider, "test.http", UrlExtractor())

    with rpc.instrument(Request("GetUser")):
        with http.instrument(Request("users")) as http_context:
            assert http_context is not None
            assert find_ancestor_span(RPC, SpanKind.CLIENT, http_context) is not None
            assert find_ancestor_span(HTTP, SpanKind.CLIENT, http_context) is not None

    spans = span_exporter.get_finished_spans()
    assert sorted(span.name for span in spans) == ["GetUser", "users"]
    http_span = next(span for span in spans if span.name == "users")
    rpc_span = next(span for span in spans if span.name == "GetUser")
    assert http_span.parent is not None
    assert http_span.parent.span_id == rpc_span.context.span_id


def test_composite_instrumenter_needs_every_category(
    tracer_provider: TracerProvider,
) -> None:
    composite = _client(tracer_provider, "test.grpc-web", UrlExtractor(), RpcMethodExtractor())
    http = _client(tracer_provider, "test.http", UrlExtractor())
    rpc = _client(tracer_provider, "test.rpc", RpcMethodExtractor())

    http_context = http.start(Context(), Request("a"))
    assert composite.should_start(http_context, Request("b"))

    both_context = rpc.start(http_context, Request("c"))
    assert not composite.should_start(both_context, Request("d"))


def test_disabled_flag_suppresses_any_nested_client(
    tracer_provider: TracerProvider, span_exporter: InMemorySpanExporter
) -> None:
    db = _client(tracer_provider, "test.db", QueryExtractor(), enabled=False)
    http = _client(tracer_provider, "test.http", UrlExtractor(), enabled=False)

    with db.instrument(Request("select 1")):
        with http.instrument(Request("users")) as http_context:
            assert http_context is None

    assert [span.name for span in span_exporter.get_finished_spans()] == ["select 1"]


def test_disabled_flag_keeps_ancestor_lookup_by_category(
    tracer_provider: TracerProvider,
) -> None:
    http = _client(tracer_provider, "test.http", UrlExtractor(), enabled=False)

    with http.instrument(Request("users")) as context:
        assert context is not None
        assert find_ancestor_span(HTTP, SpanKind.CLIENT, context) is not None
        assert find_ancestor_span(RPC, SpanKind.CLIENT, context) is None


def test_flag_read_from_environment(
    monkeypatch: pytest.MonkeyPatch, tracer_provider: TracerProvider
) -> None:
    monkeypatch.setenv(ENV_VAR_SUPPRESSION_BY_TYPE, "true")
    builder = InstrumenterBuilder[Request, str](
        "test.env", lambda request: request.name, tracer_provider=tracer_provider
    ).add_attributes_extractor(UrlExtractor())

    assert builder.build_span_suppression_strategy().categories == (HTTP,)

    builder.enable_instrumentation_category_suppression(False)
    assert builder.build_span_suppression_strategy().is_coarse


def test_uncategorized_instrumenter_is_never_suppressed(
    tracer_provider: TracerProvider, span_exporter: InMemorySpanExporter
) -> None:
    """User instrumentation without a categorized extractor nests freely."""
    user = _client(tracer_provider, "test.user")

    with user.instrument(Request("first")):
        with user.instrument(Request("second")) as nested:
            assert nested is not None

    assert len(span_exporter.get_finished_spans()) == 2


def test_explicit_category_without_extractor(tracer_provider: TracerProvider) -> None:
    custom = CategoryRegistry.get_or_create("graphql")
    first = (
        _builder(tracer_provider, "test.graphql.a")
        .set_instrumentation_categories(custom)
        .new_client_instrumenter()
    )
    second = (
        _builder(tracer_provider, "test.graphql.b")
        .set_instrumentation_categories(custom)
        .new_client_instrumenter()
    )

    context = first.start(Context(), Request("query"))

    assert not second.should_start(context, Request("query"))


def test_server_suppresses_nested_server_not_consumer(
    tracer_provider: TracerProvider,
) -> None:
    server = _builder(tracer_provider, "test.server").new_server_instrumenter()
    consumer = _builder(tracer_provider, "test.consumer").new_consumer_instrumenter()

    context = server.start(Context(), Request("GET /"))

    assert not server.should_start(context, Request("GET /"))
    assert consumer.should_start(context, Request("message"))


def test_internal_spans_are_never_suppressed(
    tracer_provider: TracerProvider, span_exporter: InMemorySpanExporter
) -> None:
    internal = _builder(tracer_provider, "test.internal").new_instrumenter()

    with internal.instrument(Request("a")):
        with internal.instrument(Request("b")) as nested:
            assert nested is not None

    assert {span.kind for span in span_exporter.get_finished_spans()} == {
        SpanKind.INTERNAL
    }


def test_span_kind_extractor_per_request(tracer_provider: TracerProvider) -> None:
    instrumenter = _builder(tracer_provider, "test.mixed").new_instrumenter(
        lambda request: request.kind
    )

    context = instrumenter.start(Context(), Request("in", SpanKind.SERVER))

    assert not instrumenter.should_start(context, Request("in", SpanKind.SERVER))
    assert instrumenter.should_start(context, Request("out", SpanKind.CLIENT))


def test_global_suppress_instrumentation_flag(tracer_provider: TracerProvider) -> None:
    instrumenter = _client(tracer_provider, "test.http", UrlExtractor())
    context = set_value(_SUPPRESS_INSTRUMENTATION_KEY, True, Context())

    assert not instrumenter.should_start(context, Request("users"))


def test_broken_extractor_does_not_break_span(
    tracer_provider: TracerProvider,
    span_exporter: InMemorySpanExporter,
    caplog: pytest.LogCaptureFixture,
) -> None:
    instrumenter = _client(tracer_provider, "test.broken", BrokenExtractor(), UrlExtractor())

    with instrumenter.instrument(Request("users")):
        pass

    spans = span_exporter.get_finished_spans()
    assert len(spans) == 1
    assert spans[0].attributes is not None
    assert spans[0].attributes["url.full"] == "https://example.com/users"
    assert "BrokenExtractor" in caplog.text


def test_error_is_recorded_and_reraised(
    tracer_provider: TracerProvider, span_exporter: InMemorySpanExporter
) -> None:
    instrumenter = _client(tracer_provider, "test.http", UrlExtractor())

    with pytest.raises(ValueError):
        with instrumenter.instrument(Request("users")):
            raise ValueError("bad request")

    spans = span_exporter.get_finished_spans()
    assert len(spans) == 1
    assert spans[0].status.status_code is StatusCode.ERROR
    assert spans[0].events[0].name == "exception"


def test_builder_rejects_invalid_parts(tracer_provider: TracerProvider) -> None:
    with pytest.raises(ValueError):
        InstrumenterBuilder("test.invalid", "not callable")  # type: ignore[arg-type]

    with pytest.raises(ValueError):
        _builder(tracer_provider, "test.invalid").add_attributes_extractor(
            object()  # type: ignore[arg-type]
        )
