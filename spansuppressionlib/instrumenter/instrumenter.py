"""Instrumenter: starts and ends spans for one instrumented operation.

Every span-start attempt consults the suppression strategy first. A
suppressed call creates no span and the caller keeps propagating the
unchanged parent context.
"""

import logging
from contextlib import contextmanager
from typing import Callable, Generator, Optional, Sequence

from opentelemetry import trace
from opentelemetry.context import (
    _SUPPRESS_INSTRUMENTATION_KEY,
    Context,
    attach,
    detach,
    get_current,
    get_value,
)
from opentelemetry.trace import SpanKind, Status, StatusCode, Tracer
from opentelemetry.util.types import AttributeValue

from spansuppressionlib.instrumenter.attributes_extractor import AttributesExtractor
from spansuppressionlib.suppression.protocols import SpanSuppressor
from spansuppressionlib.suppression.span_suppression_config import (
    SpanSuppressionConfig,
)
from spansuppressionlib.utilities.logger.log_levels import SRC_LOG_LEVELS

logger = logging.getLogger(__name__)
logger.setLevel(SRC_LOG_LEVELS["INSTRUMENTER"])

type SpanNameExtractor[REQUEST] = Callable[[REQUEST], str]
type SpanKindExtractor[REQUEST] = Callable[[REQUEST], SpanKind]


class Instrumenter[REQUEST, RESPONSE]:
    """
    Creates spans for requests, suppressing the ones an ancestor already covers.

    Instances are created by InstrumenterBuilder and are immutable.

    Usage:
        if instrumenter.should_start(parent_context, request):
            context = instrumenter.start(parent_context, request)
            ...
            instrumenter.end(context, request, response, error)
    """

    def __init__(
        self,
        instrumentation_name: str,
        tracer: Tracer,
        span_name_extractor: SpanNameExtractor[REQUEST],
        span_kind_extractor: SpanKindExtractor[REQUEST],
        attributes_extractors: Sequence[AttributesExtractor[REQUEST, RESPONSE]],
        suppression_strategy: SpanSuppressor,
        config: SpanSuppressionConfig,
    ) -> None:
        self._instrumentation_name = instrumentation_name
        self._tracer = tracer
        self._span_name_extractor = span_name_extractor
        self._span_kind_extractor = span_kind_extractor
        self._attributes_extractors = tuple(attributes_extractors)
        self._suppression_strategy = suppression_strategy
        self._config = config

    @property
    def instrumentation_name(self) -> str:
        return self._instrumentation_name

    @property
    def suppression_strategy(self) -> SpanSuppressor:
        return self._suppression_strategy

    def should_start(self, parent_context: Optional[Context], request: REQUEST) -> bool:
        """
        Determine if a span should be started for this request.

        Args:
            parent_context: Context of the caller, None for the current context
            request: The instrumented request

        Returns:
            False if instrumentation is suppressed or an equivalent ancestor
            span exists
        """
        if parent_context is None:
            parent_context = get_current()

        if get_value(_SUPPRESS_INSTRUMENTATION_KEY, parent_context):
            return False

        span_kind = self._span_kind_extractor(request)
        if self._suppression_strategy.should_suppress(span_kind, parent_context):
            if self._config.debug_logging:
                logger.debug(
                    "Suppressed %s span of %s: equivalent ancestor span exists",
                    span_kind.name,
                    self._instrumentation_name,
                )
            return False

        return True

    def start(self, parent_context: Optional[Context], request: REQUEST) -> Context:
        """
        Start a span and return the context to propagate to callees.

        Call only after should_start returned True.

        Args:
            parent_context: Context of the caller, None for the current context
            request: The instrumented request

        Returns:
            Child context carrying the new span and its suppression marker
        """
        if parent_context is None:
            parent_context = get_current()

        span_kind = self._span_kind_extractor(request)
        attributes: dict[str, AttributeValue] = {}
        for extractor in self._attributes_extractors:
            try:
                extractor.on_start(attributes, request)
            except Exception:
                # Fail-safe: a broken extractor must not break the instrumented call
                logger.exception(
                    "Error in attributes extractor %s on start",
                    type(extractor).__name__,
                )

        span = self._tracer.start_span(
            self._span_name_extractor(request),
            context=parent_context,
            kind=span_kind,
            attributes=attributes,
        )
        context = trace.set_span_in_context(span, parent_context)
        return self._suppression_strategy.store_in_context(span_kind, context, span)

    def end(
        self,
        context: Context,
        request: REQUEST,
        response: Optional[RESPONSE] = None,
        error: Optional[BaseException] = None,
    ) -> None:
        """
        End the span started in ``context``.

        Args:
            context: Context returned by start()
            request: The instrumented request
            response: Response, if any
            error: Exception raised by the instrumented call, if any
        """
        span = trace.get_current_span(context)

        attributes: dict[str, AttributeValue] = {}
        for extractor in self._attributes_extractors:
            try:
                extractor.on_end(attributes, request, response, error)
            except Exception:
                logger.exception(
                    "Error in attributes extractor %s on end",
                    type(extractor).__name__,
                )
        if attributes:
            span.set_attributes(attributes)

        if error is not None:
            span.record_exception(error)
            span.set_status(Status(StatusCode.ERROR, f"{type(error).__name__}: {error}"))

        span.end()

    @contextmanager
    def instrument(
        self, request: REQUEST, parent_context: Optional[Context] = None
    ) -> Generator[Optional[Context], None, None]:
        """
        Run a block inside a span for ``request``, unless it is suppressed.

        The span context is attached as the current context for the duration
        of the block so nested instrumenters see it.

        Yields:
            The span context, or None if the span was suppressed
        """
        if not self.should_start(parent_context, request):
            yield None
            return

        context = self.start(parent_context, request)
        token = attach(context)
        try:
            yield context
        except BaseException as e:
            self.end(context, request, error=e)
            raise
        else:
            self.end(context, request)
        finally:
            detach(token)
