"""Lookup of the nearest ancestor span of a given category and role.

Used by code deeper in a call tree to enrich the span that an outer
instrumentation layer recorded, without creating suppression side effects.
"""

from typing import Optional

from opentelemetry.context import Context
from opentelemetry.trace import Span, SpanKind

from spansuppressionlib.suppression.instrumentation_category import (
    InstrumentationCategory,
)
from spansuppressionlib.suppression.span_role import SpanRole


def find_ancestor_span(
    category: InstrumentationCategory,
    role: SpanRole | SpanKind,
    context: Optional[Context] = None,
) -> Optional[Span]:
    """
    Return the span recorded for ``category`` and ``role`` by the nearest ancestor.

    Always None for GENERIC outgoing calls and for INTERNAL spans, which are
    never recorded.

    Args:
        category: Category to look for
        role: Role or span kind to look for
        context: Context to search, None for the current context

    Returns:
        The ancestor span, or None
    """
    return category.span_key(role).from_context_or_none(context)


def has_ancestor_span(
    category: InstrumentationCategory,
    role: SpanRole | SpanKind,
    context: Optional[Context] = None,
) -> bool:
    return find_ancestor_span(category, role, context) is not None
