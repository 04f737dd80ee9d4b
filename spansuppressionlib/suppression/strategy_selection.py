"""Build-time selection of the suppression strategy for an instrumenter.

The categories an instrumenter belongs to are derived from the attribute
extractors registered on it: an extractor declares its category through an
``instrumentation_category`` attribute (the HTTP, RPC, DB and MESSAGING
extractor base classes do). Extractors without one contribute nothing.
"""

import logging
from typing import Any, Iterable, Optional

from spansuppressionlib.suppression.instrumentation_category import (
    GENERIC,
    InstrumentationCategory,
)
from spansuppressionlib.suppression.span_suppression_config import (
    SpanSuppressionConfig,
)
from spansuppressionlib.suppression.span_suppression_strategy import (
    SpanSuppressionStrategy,
)
from spansuppressionlib.utilities.logger.log_levels import SRC_LOG_LEVELS

logger = logging.getLogger(__name__)
logger.setLevel(SRC_LOG_LEVELS["SUPPRESSION"])

CATEGORY_ATTRIBUTE: str = "instrumentation_category"


def category_of(extractor: Any) -> Optional[InstrumentationCategory]:
    """Return the category declared by an extractor, or None."""
    category = getattr(extractor, CATEGORY_ATTRIBUTE, None)
    if isinstance(category, InstrumentationCategory):
        return category
    return None


def categories_from_extractors(
    extractors: Iterable[Any],
) -> list[InstrumentationCategory]:
    """
    Map attribute extractors to the categories they declare.

    Order is preserved and duplicates are kept; the strategy collapses them.

    Args:
        extractors: Attribute extractors registered on an instrumenter

    Returns:
        Declared categories, possibly empty
    """
    categories: list[InstrumentationCategory] = []
    for extractor in extractors:
        category = category_of(extractor)
        if category is not None:
            categories.append(category)
    return categories


def select_span_suppression_strategy(
    extractors: Iterable[Any],
    config: SpanSuppressionConfig,
    categories: Iterable[InstrumentationCategory] = (),
) -> SpanSuppressionStrategy:
    """
    Select the suppression strategy for an instrumenter.

    When category suppression is disabled the coarse strategy is returned
    regardless of the extractors; their categories are only marked on
    recorded spans so ancestor lookups by category still work. Otherwise the
    categories declared by the extractors and the explicitly requested ones
    are used; with none at all
    the instrumenter is treated as GENERIC and never suppresses outgoing spans.

    Args:
        extractors: Attribute extractors registered on the instrumenter
        config: Suppression configuration
        categories: Categories requested explicitly by the instrumentation

    Returns:
        The strategy to use for every span of the instrumenter
    """
    selected = categories_from_extractors(extractors) + list(categories)

    if not config.suppression_by_type_enabled:
        logger.debug("Span suppression by type disabled, using coarse strategy")
        return SpanSuppressionStrategy.coarse(selected)

    if not selected:
        selected = [GENERIC]

    strategy = SpanSuppressionStrategy.for_categories(selected)
    logger.debug("Selected %r", strategy)
    return strategy
