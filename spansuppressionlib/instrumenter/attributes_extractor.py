"""Attribute extractors registered on an instrumenter.

Extraction logic itself belongs to each instrumentation. What matters for
suppression is the category an extractor declares: it tells the builder
which kind of call the instrumenter wraps.
"""

from abc import ABC, abstractmethod
from typing import ClassVar, Optional

from opentelemetry.util.types import AttributeValue

from spansuppressionlib.suppression.instrumentation_category import (
    DB,
    HTTP,
    MESSAGING,
    RPC,
    InstrumentationCategory,
)


class AttributesExtractor[REQUEST, RESPONSE](ABC):
    """
    Extracts span attributes from a request and its response.

    Subclasses that describe a known kind of call set
    ``instrumentation_category``; plain extractors leave it None and take no
    part in category selection.
    """

    instrumentation_category: ClassVar[Optional[InstrumentationCategory]] = None

    @abstractmethod
    def on_start(self, attributes: dict[str, AttributeValue], request: REQUEST) -> None:
        """
        Add attributes known before the call starts.

        Args:
            attributes: Mutable attribute map of the span about to start
            request: The instrumented request
        """
        ...

    def on_end(
        self,
        attributes: dict[str, AttributeValue],
        request: REQUEST,
        response: Optional[RESPONSE],
        error: Optional[BaseException],
    ) -> None:
        """Add attributes known once the call completes. Optional."""
        return None


class HttpAttributesExtractor[REQUEST, RESPONSE](AttributesExtractor[REQUEST, RESPONSE]):
    instrumentation_category = HTTP


class RpcAttributesExtractor[REQUEST, RESPONSE](AttributesExtractor[REQUEST, RESPONSE]):
    instrumentation_category = RPC


class DbAttributesExtractor[REQUEST, RESPONSE](AttributesExtractor[REQUEST, RESPONSE]):
    instrumentation_category = DB


class MessagingAttributesExtractor[REQUEST, RESPONSE](
    AttributesExtractor[REQUEST, RESPONSE]
):
    instrumentation_category = MESSAGING
