import logging
from typing import Iterable, Optional

from opentelemetry import trace
from opentelemetry.trace import SpanKind, TracerProvider

from spansuppressionlib.instrumenter.attributes_extractor import AttributesExtractor
from spansuppressionlib.instrumenter.instrumenter import (
    Instrumenter,
    SpanKindExtractor,
    SpanNameExtractor,
)
from spansuppressionlib.suppression.instrumentation_category import (
    InstrumentationCategory,
)
from spansuppressionlib.suppression.span_suppression_config import (
    SpanSuppressionConfig,
)
from spansuppressionlib.suppression.span_suppression_strategy import (
    SpanSuppressionStrategy,
)
from spansuppressionlib.suppression.strategy_selection import (
    select_span_suppression_strategy,
)
from spansuppressionlib.utilities.logger.log_levels import SRC_LOG_LEVELS

logger = logging.getLogger(__name__)
logger.setLevel(SRC_LOG_LEVELS["INSTRUMENTER"])


def _always(span_kind: SpanKind) -> SpanKindExtractor[object]:
    def extract(request: object) -> SpanKind:
        return span_kind

    return extract


class InstrumenterBuilder[REQUEST, RESPONSE]:
    """
    Collects the parts of an instrumenter and builds it.

    The suppression configuration is read once, when the builder is created,
    unless one is passed in. The suppression strategy is selected from the
    registered attribute extractors when an instrumenter is built.
    """

    def __init__(
        self,
        instrumentation_name: str,
        span_name_extractor: SpanNameExtractor[REQUEST],
        tracer_provider: Optional[TracerProvider] = None,
        config: Optional[SpanSuppressionConfig] = None,
    ) -> None:
        if not callable(span_name_extractor):
            raise ValueError(
                f"Span name extractor for {instrumentation_name} must be callable"
            )

        self._instrumentation_name = instrumentation_name
        self._span_name_extractor = span_name_extractor
        self._tracer_provider = tracer_provider
        self._config = config or SpanSuppressionConfig.from_environment()
        self._attributes_extractors: list[AttributesExtractor[REQUEST, RESPONSE]] = []
        self._categories: list[InstrumentationCategory] = []

    def add_attributes_extractor(
        self, attributes_extractor: AttributesExtractor[REQUEST, RESPONSE]
    ) -> "InstrumenterBuilder[REQUEST, RESPONSE]":
        """Adds an extractor of attributes from requests and responses."""
        if not isinstance(attributes_extractor, AttributesExtractor):
            raise ValueError(
                f"{attributes_extractor!r} is not an AttributesExtractor"
            )
        self._attributes_extractors.append(attributes_extractor)
        return self

    def add_attributes_extractors(
        self, attributes_extractors: Iterable[AttributesExtractor[REQUEST, RESPONSE]]
    ) -> "InstrumenterBuilder[REQUEST, RESPONSE]":
        for attributes_extractor in attributes_extractors:
            self.add_attributes_extractor(attributes_extractor)
        return self

    def set_instrumentation_categories(
        self, *categories: InstrumentationCategory
    ) -> "InstrumenterBuilder[REQUEST, RESPONSE]":
        """
        Declares categories in addition to those of the attribute extractors.

        Used by instrumentations that have no categorized extractor but know
        what kind of call they wrap.
        """
        self._categories = list(categories)
        return self

    def enable_instrumentation_category_suppression(
        self, enabled: bool
    ) -> "InstrumenterBuilder[REQUEST, RESPONSE]":
        """
        Overrides the configured suppression mode for this builder.

        When enabled, CLIENT and PRODUCER spans are suppressed only by an
        ancestor of the same category(ies). When disabled they are suppressed
        by any outgoing ancestor. SERVER and CONSUMER spans are always
        suppressed by an ancestor of the same kind; INTERNAL spans never are.
        """
        self._config = SpanSuppressionConfig(
            suppression_by_type_enabled=enabled,
            debug_logging=self._config.debug_logging,
        )
        return self

    def build_span_suppression_strategy(self) -> SpanSuppressionStrategy:
        return select_span_suppression_strategy(
            self._attributes_extractors, self._config, self._categories
        )

    def new_client_instrumenter(self) -> Instrumenter[REQUEST, RESPONSE]:
        return self.new_instrumenter(_always(SpanKind.CLIENT))

    def new_server_instrumenter(self) -> Instrumenter[REQUEST, RESPONSE]:
        return self.new_instrumenter(_always(SpanKind.SERVER))

    def new_producer_instrumenter(self) -> Instrumenter[REQUEST, RESPONSE]:
        return self.new_instrumenter(_always(SpanKind.PRODUCER))

    def new_consumer_instrumenter(self) -> Instrumenter[REQUEST, RESPONSE]:
        return self.new_instrumenter(_always(SpanKind.CONSUMER))

    def new_instrumenter(
        self, span_kind_extractor: Optional[SpanKindExtractor[REQUEST]] = None
    ) -> Instrumenter[REQUEST, RESPONSE]:
        """
        Returns a new Instrumenter whose span kind is decided per request.

        Args:
            span_kind_extractor: Callable returning the span kind for a
                request; INTERNAL for every request if None
        """
        if span_kind_extractor is None:
            span_kind_extractor = _always(SpanKind.INTERNAL)

        suppression_strategy = self.build_span_suppression_strategy()
        logger.info(
            "Building instrumenter '%s' with %r",
            self._instrumentation_name,
            suppression_strategy,
        )

        return Instrumenter(
            instrumentation_name=self._instrumentation_name,
            tracer=trace.get_tracer(
                self._instrumentation_name, tracer_provider=self._tracer_provider
            ),
            span_name_extractor=self._span_name_extractor,
            span_kind_extractor=span_kind_extractor,
            attributes_extractors=self._attributes_extractors,
            suppression_strategy=suppression_strategy,
            config=self._config,
        )
