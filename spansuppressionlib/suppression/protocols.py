"""Protocol definitions for span suppression components.

This module defines the strategy protocol for span suppression,
allowing instrumenters to plug in alternative suppression rules.
"""

from typing import Optional, Protocol, runtime_checkable

from opentelemetry.context import Context
from opentelemetry.trace import Span, SpanKind

from spansuppressionlib.suppression.span_role import SpanRole


@runtime_checkable
class SpanSuppressor(Protocol):
    """
    Protocol for span suppression strategies.

    Implementations decide whether a span about to start duplicates one
    already recorded by an ancestor, and record started spans so that
    descendants can make the same decision.
    """

    def should_suppress(
        self, role: SpanRole | SpanKind, parent_context: Optional[Context] = None
    ) -> bool:
        """
        Determine if a span should be suppressed.

        Args:
            role: Role or span kind of the span about to start
            parent_context: Context of the caller, None for the current context

        Returns:
            True if the span should not be created
        """
        ...

    def store_in_context(
        self, role: SpanRole | SpanKind, context: Optional[Context], span: Span
    ) -> Context:
        """
        Record a started span so that nested calls can see it.

        Args:
            role: Role or span kind of the started span
            context: Context the span was started in
            span: The started span

        Returns:
            The context to propagate to callees
        """
        ...
