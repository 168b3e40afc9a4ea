"""
Time-window resolution for attribution reports.

Week and month boundaries are computed in the firm's local time zone.
Windows are inclusive at both ends; ``ALL`` resolves to ``None`` and
disables filtering entirely instead of using an open interval.
"""

from collections.abc import Sequence
from datetime import UTC, date, datetime, time, timedelta, tzinfo

from studio_crm.features.attribution.domain.models import TimeRange, TimeWindow
from studio_crm.features.crm.domain.models import InboundConnection
from studio_crm.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
END_OF_DAY = time(23, 59, 59, 999000)


def to_ms(moment: datetime) -> int:
    """Exact epoch milliseconds (no float rounding)."""
    return (moment - EPOCH) // timedelta(milliseconds=1)


def from_ms(timestamp_ms: int, tz: tzinfo) -> datetime:
    return (EPOCH + timedelta(milliseconds=timestamp_ms)).astimezone(tz)


def start_of_day(day: date, tz: tzinfo) -> datetime:
    return datetime.combine(day, time.min, tzinfo=tz)


def end_of_day(day: date, tz: tzinfo) -> datetime:
    return datetime.combine(day, END_OF_DAY, tzinfo=tz)


def resolve_window(
    range_: TimeRange,
    tz: tzinfo,
    custom_start: date | None = None,
    custom_end: date | None = None,
    now: datetime | None = None,
) -> TimeWindow | None:
    """
    Resolve a named range to an inclusive millisecond window.

    Raises:
        ValueError: CUSTOM without both dates, or start after end
    """
    current = (now or datetime.now(tz)).astimezone(tz)
    today = current.date()
    this_monday = today - timedelta(days=today.weekday())

    if range_ is TimeRange.ALL:
        return None

    if range_ is TimeRange.THIS_WEEK:
        return TimeWindow(to_ms(start_of_day(this_monday, tz)), to_ms(current))

    if range_ is TimeRange.LAST_WEEK:
        last_monday = this_monday - timedelta(days=7)
        last_sunday = this_monday - timedelta(days=1)
        return TimeWindow(to_ms(start_of_day(last_monday, tz)), to_ms(end_of_day(last_sunday, tz)))

    if range_ is TimeRange.THIS_MONTH:
        return TimeWindow(to_ms(start_of_day(today.replace(day=1), tz)), to_ms(current))

    if range_ is TimeRange.CUSTOM:
        if custom_start is None or custom_end is None:
            raise ValueError("CUSTOM range requires both start and end dates")
        if custom_start > custom_end:
            raise ValueError("CUSTOM range start is after its end")
        return TimeWindow(
            to_ms(start_of_day(custom_start, tz)), to_ms(end_of_day(custom_end, tz))
        )

    raise ValueError(f"unsupported range: {range_}")


def filter_by_window(
    connections: Sequence[InboundConnection], window: TimeWindow | None
) -> list[InboundConnection]:
    """Connections whose timestamp falls inside the window, in input order."""
    if window is None:
        return list(connections)

    selected = []
    for connection in connections:
        if connection.timestamp is None:
            logger.warning(
                "Skipping connection with malformed timestamp", connection_id=connection.id
            )
            continue
        if window.contains(connection.timestamp):
            selected.append(connection)
    return selected
