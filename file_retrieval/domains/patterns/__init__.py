"""
Pattern resolution for configuration path and filename templates.
"""
from .token_resolver import (
    SUPPORTED_TOKENS,
    contains_tokens,
    discovery_date,
    matches,
    resolve,
    resolve_timezone,
    validate_template,
)

__all__ = [
    "SUPPORTED_TOKENS",
    "contains_tokens",
    "discovery_date",
    "matches",
    "resolve",
    "resolve_timezone",
    "validate_template",
]
