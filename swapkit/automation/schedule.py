"""
Fire-time schedules for automation entries.

Each schedule answers one question: given a moment, when is the next fire?
"""

from datetime import datetime, timedelta

from croniter import croniter

from swapkit.core.errors import InvalidCron, InvalidRequest


class CronSchedule:
    """Five-field cron expression, evaluated in the clock's timezone."""

    def __init__(self, expression: str):
        if not isinstance(expression, str) or not croniter.is_valid(expression.strip()):
            raise InvalidCron(str(expression))
        self.expression = expression.strip()

    def next_after(self, moment: datetime) -> datetime:
        return croniter(self.expression, moment).get_next(datetime)

    def __repr__(self) -> str:
        return f"<CronSchedule {self.expression!r}>"


class IntervalSchedule:
    """Fixed interval in seconds."""

    def __init__(self, seconds: float):
        if seconds <= 0:
            raise InvalidRequest(f"Interval must be positive, got {seconds}")
        self.seconds = seconds

    def next_after(self, moment: datetime) -> datetime:
        return moment + timedelta(seconds=self.seconds)

    def __repr__(self) -> str:
        return f"<IntervalSchedule {self.seconds}s>"
