"""Wall-clock time source."""

from datetime import datetime, timezone


class Clock:
    """Supplies timezone-aware UTC timestamps."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)
