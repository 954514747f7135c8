"""
Cron evaluation per configuration timezone, built on croniter.
"""

from collections import deque
from datetime import datetime, timezone
from typing import Deque, List

from croniter import croniter

from file_retrieval.core.exceptions import ConfigurationValidationError
from file_retrieval.domains.patterns.token_resolver import resolve_timezone


def _ensure_aware_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class ScheduleEvaluator:
    """
    Five-field cron (minute hour day month weekday) or six fields with seconds first.

    Expressions are evaluated in the configuration's own timezone; every returned
    instant is UTC.
    """

    # How many of the most recent fire times one window returns
    MAX_FIRE_TIMES = 1000

    def _iterator(self, cron_expression: str, timezone_name: str, start_utc: datetime) -> croniter:
        fields = cron_expression.split()
        if len(fields) not in (5, 6):
            raise ConfigurationValidationError(
                f"Cron expression must have 5 or 6 fields, got {len(fields)}", field="cron_expression"
            )
        tz = resolve_timezone(timezone_name)
        local_start = _ensure_aware_utc(start_utc).astimezone(tz)
        try:
            return croniter(" ".join(fields), local_start, second_at_beginning=len(fields) == 6)
        except (ValueError, KeyError) as e:
            raise ConfigurationValidationError(
                f"Invalid cron expression '{cron_expression}': {e}", field="cron_expression"
            ) from e

    def next_fire_time(self, cron_expression: str, timezone_name: str, after: datetime) -> datetime:
        iterator = self._iterator(cron_expression, timezone_name, after)
        try:
            return _ensure_aware_utc(iterator.get_next(datetime))
        except (ValueError, KeyError) as e:
            raise ConfigurationValidationError(
                f"Cron expression '{cron_expression}' never fires", field="cron_expression"
            ) from e

    def validate(self, cron_expression: str, timezone_name: str, now: datetime) -> datetime:
        """Check that the expression and timezone together give a next fire instant; return it."""
        return self.next_fire_time(cron_expression, timezone_name, now)

    def fire_times_between(
        self, cron_expression: str, timezone_name: str, start_exclusive: datetime, end_inclusive: datetime
    ) -> List[datetime]:
        """
        Fire instants in (start_exclusive, end_inclusive], oldest first.

        Only the most recent MAX_FIRE_TIMES are kept, so the last element is always
        the latest fire time in the window.
        """
        end_utc = _ensure_aware_utc(end_inclusive)
        iterator = self._iterator(cron_expression, timezone_name, start_exclusive)
        fire_times: Deque[datetime] = deque(maxlen=self.MAX_FIRE_TIMES)
        while True:
            candidate = _ensure_aware_utc(iterator.get_next(datetime))
            if candidate > end_utc:
                break
            fire_times.append(candidate)
        return list(fire_times)
