import logging
import os

_VALID_LEVELS: frozenset[str] = frozenset(logging.getLevelNamesMapping().keys())

GLOBAL_LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "").upper()
if GLOBAL_LOG_LEVEL not in _VALID_LEVELS:
    GLOBAL_LOG_LEVEL = "INFO"

log_sources: list[str] = [
    "SUPPRESSION",
    "INSTRUMENTER",
    "CONFIG",
]

# Per-source overrides, e.g. SUPPRESSION_LOG_LEVEL=DEBUG
SRC_LOG_LEVELS: dict[str, str] = {}

for source in log_sources:
    log_env_var = source + "_LOG_LEVEL"
    SRC_LOG_LEVELS[source] = os.environ.get(log_env_var, "").upper()
    if SRC_LOG_LEVELS[source] not in _VALID_LEVELS:
        SRC_LOG_LEVELS[source] = GLOBAL_LOG_LEVEL
