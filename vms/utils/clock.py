from datetime import date, datetime, time
import pytz


class Clock:
    """Wall clock of the club. Timestamps are stored naive, in club local time."""

    def __init__(self, timezone: str = "UTC"):
        self.tz = pytz.timezone(timezone)

    def now(self) -> datetime:
        return datetime.now(self.tz).replace(tzinfo=None, microsecond=0)

    def today(self) -> date:
        return self.now().date()

    @staticmethod
    def end_of_day(day: date) -> datetime:
        return datetime.combine(day, time(23, 59, 59))
