from __future__ import annotations

from datetime import date, datetime, timezone


class TimeProvider:
    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def today(self) -> date:
        return self.now().date()

    def naive_utc_now(self) -> datetime:
        return self.now().replace(tzinfo=None)


class FrozenTimeProvider(TimeProvider):
    def __init__(self, moment: datetime):
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        self._moment = moment

    def now(self) -> datetime:
        return self._moment


default_time_provider = TimeProvider()
