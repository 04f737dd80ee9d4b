"""Context slots that hold suppression markers.

A SpanKey binds a (category, role family) pair to a position in an
``opentelemetry.context.Context``. Contexts are immutable: storing a span
returns a new context and leaves the parent untouched, so concurrent
branches of a call tree never observe each other's markers.

This module provides:
- SpanKey: base class for context slots
- RecordingSpanKey: stores spans under a stable context key
- NullSpanKey: never stores, never matches
- SERVER, CONSUMER, OUTGOING, NULL: the shared, category-independent slots
"""

from abc import ABC, abstractmethod
from typing import Optional, cast

from opentelemetry.context import Context, create_key, get_current, get_value, set_value
from opentelemetry.trace import Span
from typing_extensions import override

KEY_NAME_PREFIX: str = "opentelemetry-traces-span-key-"


class SpanKey(ABC):
    """A slot in the context where the span of a given category/role is kept."""

    def __init__(self, name: str) -> None:
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    @property
    @abstractmethod
    def context_key(self) -> str:
        """The ``opentelemetry.context`` key backing this slot."""
        ...

    @abstractmethod
    def store_in_context(self, context: Optional[Context], span: Span) -> Context:
        """
        Return a child of ``context`` that carries ``span`` in this slot.

        Args:
            context: Parent context, or None for the current context
            span: The span to store

        Returns:
            The derived context
        """
        ...

    @abstractmethod
    def from_context_or_none(self, context: Optional[Context] = None) -> Optional[Span]:
        """
        Return the span stored in this slot by the nearest ancestor.

        Args:
            context: Context to read, or None for the current context

        Returns:
            The stored span, or None if the slot is empty
        """
        ...

    def has_matching_span(self, context: Optional[Context] = None) -> bool:
        return self.from_context_or_none(context) is not None

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._name!r})"


class RecordingSpanKey(SpanKey):
    """Stores the span under a context key minted once per instance."""

    def __init__(self, name: str) -> None:
        super().__init__(name)
        self._context_key = create_key(KEY_NAME_PREFIX + name)

    @property
    @override
    def context_key(self) -> str:
        return self._context_key

    @override
    def store_in_context(self, context: Optional[Context], span: Span) -> Context:
        return set_value(self._context_key, span, context)

    @override
    def from_context_or_none(self, context: Optional[Context] = None) -> Optional[Span]:
        return cast(Optional[Span], get_value(self._context_key, context))


class NullSpanKey(SpanKey):
    """
    Slot that never holds a span.

    Used for GENERIC outgoing calls and for INTERNAL spans, which must never
    be suppressed and must never suppress anything nested inside them.
    """

    @property
    @override
    def context_key(self) -> str:
        # A fresh key per access; sharing one would let two callers match.
        return create_key(KEY_NAME_PREFIX + self._name)

    @override
    def store_in_context(self, context: Optional[Context], span: Span) -> Context:
        return context if context is not None else get_current()

    @override
    def from_context_or_none(self, context: Optional[Context] = None) -> Optional[Span]:
        return None


SERVER: SpanKey = RecordingSpanKey("server")
CONSUMER: SpanKey = RecordingSpanKey("consumer")
# Category-blind slot shared by every outgoing span in coarse mode
OUTGOING: SpanKey = RecordingSpanKey("outgoing")
NULL: SpanKey = NullSpanKey("noop")
