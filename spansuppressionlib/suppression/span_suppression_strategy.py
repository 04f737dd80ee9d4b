"""Suppression decisions for nested spans.

A SpanSuppressionStrategy is built once per instrumenter and never changes.
It answers two questions for every span-start attempt:
- should_suppress: does an ancestor already carry an equivalent span?
- store_in_context: record the started span for the benefit of descendants

Rules, per role of the span about to start:
- INTERNAL: never suppressed, never recorded
- SERVER / CONSUMER: suppressed by an ancestor of the same role, whatever
  its category; SERVER and CONSUMER never suppress each other
- CLIENT / PRODUCER: suppressed only when an ancestor carries a marker for
  every category of this strategy. With no categories (coarse mode) a
  single category-blind slot is used. GENERIC never matches.

Recorded outgoing spans are written to the category-blind slot and to the
slot of every category of the instrumenter, whatever the mode, so ancestor
lookups by category and category-blind lookups both work.
"""

import logging
from typing import Iterable, Optional, Sequence

from opentelemetry.context import Context, get_current
from opentelemetry.trace import Span, SpanKind

from spansuppressionlib.suppression import span_key
from spansuppressionlib.suppression.instrumentation_category import (
    GENERIC,
    NONE,
    InstrumentationCategory,
)
from spansuppressionlib.suppression.span_key import SpanKey
from spansuppressionlib.suppression.span_role import SpanRole
from spansuppressionlib.utilities.logger.log_levels import SRC_LOG_LEVELS

logger = logging.getLogger(__name__)
logger.setLevel(SRC_LOG_LEVELS["SUPPRESSION"])


def _relevant_categories(
    categories: Iterable[InstrumentationCategory],
) -> list[InstrumentationCategory]:
    """Drop the sentinels and duplicates, keeping first-seen order."""
    relevant: list[InstrumentationCategory] = []
    for category in categories:
        if category.is_generic or category.is_none or category in relevant:
            continue
        relevant.append(category)
    return relevant


class SpanSuppressionStrategy:
    """
    Immutable suppression strategy for one instrumenter.

    Implicitly implements the SpanSuppressor protocol through structural
    subtyping. Use the coarse(), generic() and for_categories() factories.
    """

    __slots__ = (
        "_categories",
        "_outgoing_span_keys",
        "_recorded_categories",
        "_recorded_span_keys",
    )

    def __init__(
        self,
        categories: Sequence[InstrumentationCategory],
        outgoing_span_keys: Sequence[SpanKey],
        recorded_categories: Optional[Sequence[InstrumentationCategory]] = None,
        recorded_span_keys: Optional[Sequence[SpanKey]] = None,
    ) -> None:
        """
        Args:
            categories: Categories that decide suppression, sentinels excluded
            outgoing_span_keys: Slots checked for CLIENT/PRODUCER spans
            recorded_categories: Categories marked when an outgoing span is
                recorded; defaults to ``categories``
            recorded_span_keys: Slots written for CLIENT/PRODUCER spans;
                defaults to ``outgoing_span_keys``
        """
        self._categories: tuple[InstrumentationCategory, ...] = tuple(categories)
        self._outgoing_span_keys: tuple[SpanKey, ...] = tuple(outgoing_span_keys)
        self._recorded_categories: tuple[InstrumentationCategory, ...] = tuple(
            categories if recorded_categories is None else recorded_categories
        )
        self._recorded_span_keys: tuple[SpanKey, ...] = tuple(
            outgoing_span_keys if recorded_span_keys is None else recorded_span_keys
        )

    @classmethod
    def coarse(
        cls, categories: Iterable[InstrumentationCategory] = ()
    ) -> "SpanSuppressionStrategy":
        """
        Category-blind strategy: any outgoing span suppresses any other.

        Args:
            categories: Categories of the instrumented call; they do not
                affect suppression but are still marked on recorded spans
        """
        recorded = _relevant_categories(categories)
        return cls(
            categories=(),
            outgoing_span_keys=(span_key.OUTGOING,),
            recorded_categories=recorded,
            recorded_span_keys=[span_key.OUTGOING]
            + [category.outgoing_span_key for category in recorded],
        )

    @classmethod
    def generic(cls) -> "SpanSuppressionStrategy":
        """Strategy for uncategorized spans: outgoing spans are never suppressed."""
        return cls(
            categories=(),
            outgoing_span_keys=(GENERIC.outgoing_span_key,),
            recorded_categories=(),
            recorded_span_keys=(),
        )

    @classmethod
    def for_categories(
        cls, categories: Iterable[InstrumentationCategory]
    ) -> "SpanSuppressionStrategy":
        """
        Build a strategy from the categories an instrumenter belongs to.

        Duplicates are collapsed keeping first-seen order and GENERIC is
        dropped. An empty input, or one containing NONE, yields the coarse
        strategy; an input made only of GENERIC yields the generic strategy.

        Args:
            categories: Categories of the instrumented call

        Returns:
            The strategy
        """
        requested = list(categories)
        relevant = _relevant_categories(requested)

        if not requested or NONE in requested:
            return cls.coarse(relevant)

        if not relevant:
            logger.debug(
                "Only GENERIC requested, outgoing spans will never be suppressed"
            )
            return cls.generic()

        category_keys = [category.outgoing_span_key for category in relevant]
        return cls(
            categories=relevant,
            outgoing_span_keys=category_keys,
            recorded_categories=relevant,
            recorded_span_keys=category_keys + [span_key.OUTGOING],
        )

    @property
    def categories(self) -> tuple[InstrumentationCategory, ...]:
        """Categories that decide suppression of outgoing spans."""
        return self._categories

    @property
    def recorded_categories(self) -> tuple[InstrumentationCategory, ...]:
        """Categories marked in the context when an outgoing span is recorded."""
        return self._recorded_categories

    @property
    def is_coarse(self) -> bool:
        return not self._categories and self._outgoing_span_keys == (
            span_key.OUTGOING,
        )

    def should_suppress(
        self, role: SpanRole | SpanKind, parent_context: Optional[Context] = None
    ) -> bool:
        role = SpanRole.of(role)
        if parent_context is None:
            parent_context = get_current()

        if role is SpanRole.SERVER:
            return span_key.SERVER.has_matching_span(parent_context)
        if role is SpanRole.CONSUMER:
            return span_key.CONSUMER.has_matching_span(parent_context)
        if role.is_outgoing:
            return all(
                key.has_matching_span(parent_context)
                for key in self._outgoing_span_keys
            )
        return False

    def store_in_context(
        self, role: SpanRole | SpanKind, context: Optional[Context], span: Span
    ) -> Context:
        role = SpanRole.of(role)
        if context is None:
            context = get_current()

        if role is SpanRole.SERVER:
            return span_key.SERVER.store_in_context(context, span)
        if role is SpanRole.CONSUMER:
            return span_key.CONSUMER.store_in_context(context, span)
        if role.is_outgoing:
            for key in self._recorded_span_keys:
                context = key.store_in_context(context, span)
            return context
        return context

    record = store_in_context

    def __repr__(self) -> str:
        return (
            f"SpanSuppressionStrategy(categories={[c.name for c in self._categories]}, "
            f"outgoing_span_keys={list(self._outgoing_span_keys)}, "
            f"recorded_span_keys={list(self._recorded_span_keys)})"
        )
