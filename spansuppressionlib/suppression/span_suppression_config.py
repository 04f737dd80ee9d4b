"""Configuration model for span suppression.

This module provides immutable configuration for span suppression behavior,
loaded from environment variables. Malformed values never raise: they fall
back to the defaults (coarse, category-blind suppression).
"""

import logging
import os
from dataclasses import dataclass
from typing import ClassVar

from spansuppressionlib.utilities.logger.log_levels import SRC_LOG_LEVELS

logger = logging.getLogger(__name__)
logger.setLevel(SRC_LOG_LEVELS["CONFIG"])

# Environment variable names
ENV_VAR_SUPPRESSION_BY_TYPE: str = (
    "OTEL_INSTRUMENTATION_EXPERIMENTAL_SPAN_SUPPRESSION_BY_TYPE"
)
ENV_VAR_DEBUG: str = "OTEL_SPAN_SUPPRESSION_DEBUG"

# Boolean parsing
_TRUTHY_VALUES: frozenset[str] = frozenset(("true", "1", "yes", "on"))
_FALSY_VALUES: frozenset[str] = frozenset(("false", "0", "no", "off"))


def _parse_bool(name: str, value: str | None, default: bool) -> bool:
    """
    Parse boolean value from string.

    Args:
        name: Environment variable name (for logging)
        value: String value to parse, None if unset
        default: Value used when unset or unrecognized

    Returns:
        The parsed value, or default
    """
    if value is None or not value.strip():
        return default

    normalized = value.strip().lower()
    if normalized in _TRUTHY_VALUES:
        return True
    if normalized in _FALSY_VALUES:
        return False

    logger.warning(
        "Invalid %s value: %r. Using default: %s", name, value, default
    )
    return default


@dataclass(frozen=True)
class SpanSuppressionConfig:
    """
    Immutable configuration for span suppression behavior.

    Loaded from environment variables with sensible defaults.
    """

    suppression_by_type_enabled: bool
    debug_logging: bool

    # Default values
    DEFAULT_SUPPRESSION_BY_TYPE_ENABLED: ClassVar[bool] = False
    DEFAULT_DEBUG_LOGGING: ClassVar[bool] = False

    @classmethod
    def default(cls) -> "SpanSuppressionConfig":
        return cls(
            suppression_by_type_enabled=cls.DEFAULT_SUPPRESSION_BY_TYPE_ENABLED,
            debug_logging=cls.DEFAULT_DEBUG_LOGGING,
        )

    @classmethod
    def from_environment(cls) -> "SpanSuppressionConfig":
        """
        Load configuration from environment variables.

        Returns:
            Immutable configuration instance

        Environment Variables:
            OTEL_INSTRUMENTATION_EXPERIMENTAL_SPAN_SUPPRESSION_BY_TYPE: Enable
                category-aware suppression of CLIENT/PRODUCER spans
            OTEL_SPAN_SUPPRESSION_DEBUG: Log every suppressed span
        """
        suppression_by_type_enabled = _parse_bool(
            ENV_VAR_SUPPRESSION_BY_TYPE,
            os.environ.get(ENV_VAR_SUPPRESSION_BY_TYPE),
            cls.DEFAULT_SUPPRESSION_BY_TYPE_ENABLED,
        )
        debug_logging = _parse_bool(
            ENV_VAR_DEBUG,
            os.environ.get(ENV_VAR_DEBUG),
            cls.DEFAULT_DEBUG_LOGGING,
        )

        return cls(
            suppression_by_type_enabled=suppression_by_type_enabled,
            debug_logging=debug_logging,
        )
