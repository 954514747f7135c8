"""Date token resolution for path and filename patterns."""

import fnmatch
import logging
import re
from datetime import date, datetime, timezone
from typing import Dict, List
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from file_retrieval.core.exceptions import ConfigurationValidationError

# Token name (lowercase) -> strftime directive
SUPPORTED_TOKENS: Dict[str, str] = {
    "yyyy": "%Y",
    "yy": "%y",
    "mm": "%m",
    "dd": "%d",
}

_TOKEN_RE = re.compile(r"\{([^{}]*)\}")

logger = logging.getLogger("file_retrieval.patterns")


def resolve_timezone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigurationValidationError(f"Unknown timezone '{name}'", field="timezone") from e


def to_local(reference_instant: datetime, timezone_name: str) -> datetime:
    """Convert an instant to the configuration's local time. Naive instants are taken as UTC."""
    if reference_instant.tzinfo is None:
        reference_instant = reference_instant.replace(tzinfo=timezone.utc)
    return reference_instant.astimezone(resolve_timezone(timezone_name))


def find_tokens(template: str) -> List[str]:
    return _TOKEN_RE.findall(template)


def contains_tokens(value: str) -> bool:
    return "{" in value or "}" in value


def validate_template(template: str, field: str) -> None:
    """
    Reject templates with unknown tokens or stray braces.

    Raises:
        ConfigurationValidationError: naming the offending field.
    """
    for token in find_tokens(template):
        if token.lower() not in SUPPORTED_TOKENS:
            raise ConfigurationValidationError(
                f"Unsupported token '{{{token}}}' in {field}. "
                f"Supported tokens: {', '.join('{' + t + '}' for t in SUPPORTED_TOKENS)}",
                field=field,
            )
    remainder = _TOKEN_RE.sub("", template)
    if "{" in remainder or "}" in remainder:
        raise ConfigurationValidationError(f"Unbalanced braces in {field}", field=field)


def resolve(template: str, reference_instant: datetime, timezone_name: str) -> str:
    """
    Replace every date token in template with the value for reference_instant,
    interpreted in timezone_name. Pure: same arguments give the same string.
    """
    local = to_local(reference_instant, timezone_name)

    def _substitute(match: "re.Match[str]") -> str:
        token = match.group(1).lower()
        directive = SUPPORTED_TOKENS.get(token)
        if directive is None:
            raise ConfigurationValidationError(f"Unsupported token '{{{match.group(1)}}}'")
        return local.strftime(directive)

    return _TOKEN_RE.sub(_substitute, template)


def discovery_date(reference_instant: datetime, timezone_name: str) -> date:
    """Calendar date of the reference instant in the configuration's timezone."""
    return to_local(reference_instant, timezone_name).date()


def matches(pattern: str, filename: str) -> bool:
    """Case-insensitive match of a resolved filename pattern with * and ? wildcards."""
    return fnmatch.fnmatchcase(filename.lower(), pattern.lower())
