"""
Nested instrumentation example.

An HTTP client library built on top of another instrumented HTTP transport
produces a single CLIENT span, while an RPC call wrapping both keeps its own
span. Run with:

    OTEL_INSTRUMENTATION_EXPERIMENTAL_SPAN_SUPPRESSION_BY_TYPE=true \
        python examples/nested_http_client_example.py
"""

import logging
from dataclasses import dataclass
from typing import Optional

from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import ConsoleSpanExporter, SimpleSpanProcessor
from opentelemetry.util.types import AttributeValue

from spansuppressionlib.instrumenter.attributes_extractor import (
    HttpAttributesExtractor,
    RpcAttributesExtractor,
)
from spansuppressionlib.instrumenter.instrumenter import Instrumenter
from spansuppressionlib.instrumenter.instrumenter_builder import InstrumenterBuilder

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@dataclass
class HttpRequest:
    method: str
    url: str


@dataclass
class RpcRequest:
    service: str
    method: str


class HttpClientAttributes(HttpAttributesExtractor[HttpRequest, int]):
    def on_start(self, attributes: dict[str, AttributeValue], request: HttpRequest) -> None:
        attributes["http.request.method"] = request.method
        attributes["url.full"] = request.url

    def on_end(
        self,
        attributes: dict[str, AttributeValue],
        request: HttpRequest,
        response: Optional[int],
        error: Optional[BaseException],
    ) -> None:
        if response is not None:
            attributes["http.response.status_code"] = response


class RpcClientAttributes(RpcAttributesExtractor[RpcRequest, None]):
    def on_start(self, attributes: dict[str, AttributeValue], request: RpcRequest) -> None:
        attributes["rpc.service"] = request.service
        attributes["rpc.method"] = request.method


def create_http_instrumenter(
    name: str, tracer_provider: TracerProvider
) -> Instrumenter[HttpRequest, int]:
    return (
        InstrumenterBuilder[HttpRequest, int](
            name,
            lambda request: request.method,
            tracer_provider=tracer_provider,
        )
        .add_attributes_extractor(HttpClientAttributes())
        .new_client_instrumenter()
    )


def main() -> None:
    tracer_provider = TracerProvider()
    tracer_provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))

    rpc_instrumenter = (
        InstrumenterBuilder[RpcRequest, None](
            "example.rpc",
            lambda request: f"{request.service}/{request.method}",
            tracer_provider=tracer_provider,
        )
        .add_attributes_extractor(RpcClientAttributes())
        .new_client_instrumenter()
    )
    library_instrumenter = create_http_instrumenter("example.http-library", tracer_provider)
    transport_instrumenter = create_http_instrumenter(
        "example.http-transport", tracer_provider
    )

    request = HttpRequest("GET", "https://example.com/users/1")
    with rpc_instrumenter.instrument(RpcRequest("UserService", "GetUser")):
        with library_instrumenter.instrument(request) as library_context:
            with transport_instrumenter.instrument(request) as transport_context:
                logger.info(
                    "library span started: %s, transport span started: %s",
                    library_context is not None,
                    transport_context is not None,
                )

    tracer_provider.shutdown()


if __name__ == "__main__":
    main()
