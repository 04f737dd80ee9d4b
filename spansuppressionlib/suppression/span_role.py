"""Call roles used to pick the suppression slot for a span.

A role is the position of the instrumented call in the call tree. It maps
one-to-one onto ``opentelemetry.trace.SpanKind``.
"""

from enum import Enum

from opentelemetry.trace import SpanKind


class SpanRole(Enum):
    CLIENT = "client"
    PRODUCER = "producer"
    SERVER = "server"
    CONSUMER = "consumer"
    INTERNAL = "internal"

    @property
    def is_outgoing(self) -> bool:
        """CLIENT and PRODUCER share the outgoing slot family."""
        return self in (SpanRole.CLIENT, SpanRole.PRODUCER)

    @classmethod
    def of(cls, role: "SpanRole | SpanKind") -> "SpanRole":
        """
        Normalize a role or an OpenTelemetry span kind to a SpanRole.

        Args:
            role: SpanRole or SpanKind

        Returns:
            The matching SpanRole
        """
        if isinstance(role, SpanRole):
            return role
        return _ROLES_BY_SPAN_KIND[role]


_ROLES_BY_SPAN_KIND: dict[SpanKind, SpanRole] = {
    SpanKind.CLIENT: SpanRole.CLIENT,
    SpanKind.PRODUCER: SpanRole.PRODUCER,
    SpanKind.SERVER: SpanRole.SERVER,
    SpanKind.CONSUMER: SpanRole.CONSUMER,
    SpanKind.INTERNAL: SpanRole.INTERNAL,
}
