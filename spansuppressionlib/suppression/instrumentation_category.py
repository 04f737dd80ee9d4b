"""Instrumentation categories and their process-wide registry.

A category classifies an instrumented call (HTTP, DB, RPC, MESSAGING or a
custom name). Outgoing spans of the same category suppress each other, so
every category owns exactly one outgoing SpanKey for the whole process.
Independently built instrumenters therefore agree on "same span" simply by
naming the same category.

Two sentinels sit outside the registry:
- GENERIC: uncategorized/user spans, never suppressed and never suppressing
- NONE: category-blind legacy behaviour, shares the single OUTGOING slot
"""

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Optional

from opentelemetry.trace import SpanKind

from spansuppressionlib.suppression import span_key
from spansuppressionlib.suppression.span_key import (
    NullSpanKey,
    RecordingSpanKey,
    SpanKey,
)
from spansuppressionlib.suppression.span_role import SpanRole
from spansuppressionlib.utilities.logger.log_levels import SRC_LOG_LEVELS

logger = logging.getLogger(__name__)
logger.setLevel(SRC_LOG_LEVELS["SUPPRESSION"])


class CategoryKind(Enum):
    HTTP = "http"
    DB = "db"
    RPC = "rpc"
    MESSAGING = "messaging"
    CUSTOM = "custom"
    GENERIC = "generic"
    NONE = "none"

    @property
    def is_builtin(self) -> bool:
        return self in _BUILTIN_KINDS


_BUILTIN_KINDS: frozenset[CategoryKind] = frozenset(
    (CategoryKind.HTTP, CategoryKind.DB, CategoryKind.RPC, CategoryKind.MESSAGING)
)


@dataclass(frozen=True)
class InstrumentationCategory:
    """
    Immutable category value.

    Equality is by name and kind only; the outgoing span key travels with
    the instance but does not take part in comparisons. Obtain instances
    from CategoryRegistry or the module constants, never construct directly.
    """

    name: str
    kind: CategoryKind
    outgoing_span_key: SpanKey = field(compare=False, repr=False)

    @property
    def is_generic(self) -> bool:
        return self.kind is CategoryKind.GENERIC

    @property
    def is_none(self) -> bool:
        return self.kind is CategoryKind.NONE

    def span_key(self, role: SpanRole | SpanKind) -> SpanKey:
        """
        Resolve the context slot for this category and a call role.

        SERVER and CONSUMER slots are shared by every category; INTERNAL
        calls are never slotted.

        Args:
            role: Role or span kind of the call

        Returns:
            The SpanKey to read from and write to
        """
        role = SpanRole.of(role)
        if role is SpanRole.SERVER:
            return span_key.SERVER
        if role is SpanRole.CONSUMER:
            return span_key.CONSUMER
        if role is SpanRole.INTERNAL:
            return span_key.NULL
        return self.outgoing_span_key


GENERIC: InstrumentationCategory = InstrumentationCategory(
    name=CategoryKind.GENERIC.value,
    kind=CategoryKind.GENERIC,
    outgoing_span_key=NullSpanKey("client-generic"),
)
NONE: InstrumentationCategory = InstrumentationCategory(
    name=CategoryKind.NONE.value,
    kind=CategoryKind.NONE,
    outgoing_span_key=span_key.OUTGOING,
)


class CategoryRegistry:
    """
    Process-wide get-or-create store of named categories.

    Built-in categories are registered on first use by initialize(), which
    is idempotent and safe to race. Entries are never removed.

    Thread-safe: lookups take a lock-free fast path, creation uses
    double-checked locking so a name never gets two identities.
    """

    _categories: ClassVar[dict[str, InstrumentationCategory]] = {}
    _initialized: ClassVar[bool] = False
    _lock: ClassVar[threading.Lock] = threading.Lock()

    @classmethod
    def initialize(cls) -> None:
        """Register the built-in categories. Safe to call multiple times."""
        if cls._initialized:
            return

        with cls._lock:
            if cls._initialized:
                return

            for kind in CategoryKind:
                if kind.is_builtin:
                    cls._categories[kind.value] = cls._new_category(kind.value, kind)

            cls._initialized = True
            logger.debug(
                "CategoryRegistry initialized with built-in categories: %s",
                sorted(cls._categories),
            )

    @classmethod
    def get_or_create(cls, name: str) -> InstrumentationCategory:
        """
        Return the category registered under ``name``, creating it if needed.

        Repeated calls with the same name return the identical object. Never
        returns GENERIC or NONE: those are sentinels, not named entries.

        Args:
            name: Category name, e.g. "http" or "graphql"

        Returns:
            The canonical InstrumentationCategory for this name
        """
        cls.initialize()

        # Fast path: already registered (dict reads are atomic)
        category = cls._categories.get(name)
        if category is not None:
            return category

        with cls._lock:
            # Double-check: another thread may have registered it while we waited
            category = cls._categories.get(name)
            if category is not None:
                return category

            category = cls._new_category(name, CategoryKind.CUSTOM)
            cls._categories[name] = category
            logger.debug(
                "Registered custom instrumentation category '%s' (thread=%s)",
                name,
                threading.get_ident(),
            )
            return category

    @classmethod
    def get(cls, name: str) -> Optional[InstrumentationCategory]:
        """Look up a category without registering it."""
        cls.initialize()
        return cls._categories.get(name)

    @classmethod
    def registered_names(cls) -> list[str]:
        cls.initialize()
        with cls._lock:
            return sorted(cls._categories)

    @staticmethod
    def _new_category(name: str, kind: CategoryKind) -> InstrumentationCategory:
        return InstrumentationCategory(
            name=name,
            kind=kind,
            outgoing_span_key=RecordingSpanKey("client-" + name),
        )


HTTP: InstrumentationCategory = CategoryRegistry.get_or_create(CategoryKind.HTTP.value)
DB: InstrumentationCategory = CategoryRegistry.get_or_create(CategoryKind.DB.value)
RPC: InstrumentationCategory = CategoryRegistry.get_or_create(CategoryKind.RPC.value)
MESSAGING: InstrumentationCategory = CategoryRegistry.get_or_create(
    CategoryKind.MESSAGING.value
)
