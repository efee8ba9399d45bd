"""Time zone resolution, time slots and formatting for program items."""
import logging
import threading
from datetime import datetime, timezone, tzinfo
from typing import Callable, Dict, List, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dateutil import tz

from localtime.preferences import TimeZonePreferences
from processor.config import ConventionConfig
from processor.models import ProgramItem

logger = logging.getLogger(__name__)

FormatKey = Tuple[int, bool, bool]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class LocalTime:
    """
    Session context for convention time calculations.

    Holds the resolved viewer time zone, the time slot index and the
    per-slot formatted string caches. All cached state is guarded by a
    re-entrant lock so an instance can be shared between threads.
    """

    PREVIOUS_DAY = 'previous day'
    NEXT_DAY = 'next day'

    def __init__(
        self,
        config: ConventionConfig,
        preferences: Optional[TimeZonePreferences] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize the time service.

        Args:
            config: Convention configuration (zone and abbreviation)
            preferences: Viewer time zone preferences
            clock: Callable returning the current aware datetime
        """
        self.convention_zone = config.zone
        self.timezone_code = config.timezone_code
        self.preferences = preferences or TimeZonePreferences()
        self.clock = clock or utc_now
        self._lock = threading.RLock()
        self._local_zone: Optional[tzinfo] = None
        self.time_slot_cache: Dict[str, int] = {}
        self.convention_time_cache: Dict[FormatKey, str] = {}
        self.local_time_cache: Dict[FormatKey, str] = {}

    def now(self) -> datetime:
        return self.clock().astimezone(timezone.utc)

    @property
    def local_zone(self) -> tzinfo:
        with self._lock:
            if self._local_zone is None:
                return self.resolve_local_zone()
            return self._local_zone

    def resolve_local_zone(self) -> tzinfo:
        """
        Determine the zone treated as local and cache it.

        A zone selected in the preferences wins when the viewer has opted
        in; otherwise the runtime zone is used. Recomputing clears the
        local-time formatting cache.

        Returns:
            The resolved tzinfo
        """
        with self._lock:
            zone = None
            if self.preferences.use_time_zone():
                name = self.preferences.selected_time_zone()
                if name:
                    try:
                        zone = ZoneInfo(name)
                    except (ZoneInfoNotFoundError, ValueError):
                        logger.warning(
                            f"Invalid selected time zone {name}, using runtime zone"
                        )
            if zone is None:
                zone = tz.tzlocal()

            self._local_zone = zone
            self.local_time_cache.clear()
            logger.debug(f"Resolved local time zone: {zone}")
            return zone

    def clear_caches(self) -> None:
        """Forget all time slots and formatted strings."""
        with self._lock:
            self.time_slot_cache.clear()
            self.convention_time_cache.clear()
            self.local_time_cache.clear()

    def get_time_slot(self, date_and_time: str) -> int:
        """
        Return the stable index for a canonical datetime string.

        New strings get the next sequential index, starting at 0.
        """
        with self._lock:
            slot = self.time_slot_cache.get(date_and_time)
            if slot is None:
                slot = len(self.time_slot_cache)
                self.time_slot_cache[date_and_time] = slot
            return slot

    def format_time(
        self,
        date_and_time: datetime,
        use_12_hour: bool = False,
        show_time_zone: bool = False,
    ) -> str:
        """
        Format a datetime as a wall-clock time.

        Args:
            date_and_time: Aware datetime, formatted in its own zone
            use_12_hour: Use "2:30 pm" instead of "14:30"
            show_time_zone: Append the convention zone abbreviation

        Returns:
            Formatted time string
        """
        text = _format_clock(date_and_time, use_12_hour)
        if show_time_zone and self.timezone_code:
            text = f"{text} {self.timezone_code}"
        return text

    def format_in_convention_zone(
        self,
        slot: int,
        date_and_time: datetime,
        use_12_hour: bool = False,
        show_time_zone: bool = False,
    ) -> str:
        """Format a datetime in the convention zone, memoized per slot."""
        key = (slot, use_12_hour, show_time_zone)
        with self._lock:
            if key not in self.convention_time_cache:
                self.convention_time_cache[key] = self.format_time(
                    date_and_time.astimezone(self.convention_zone),
                    use_12_hour,
                    show_time_zone,
                )
            return self.convention_time_cache[key]

    def format_in_local_zone(
        self,
        slot: int,
        date_and_time: datetime,
        use_12_hour: bool = False,
        show_time_zone: bool = False,
    ) -> str:
        """
        Format a datetime in the viewer's local zone, memoized per slot.

        If the local calendar date of the instant differs from its
        convention-zone calendar date, a "previous day" or "next day"
        qualifier is appended.

        Args:
            slot: Time slot of the datetime
            date_and_time: Aware datetime
            use_12_hour: Use 12-hour format with am/pm
            show_time_zone: Append the local zone abbreviation

        Returns:
            Formatted local time string
        """
        key = (slot, use_12_hour, show_time_zone)
        with self._lock:
            cached = self.local_time_cache.get(key)
            if cached is not None:
                return cached

            local = date_and_time.astimezone(self.local_zone)
            text = _format_clock(local, use_12_hour)
            if show_time_zone:
                abbreviation = local.tzname()
                if abbreviation:
                    text = f"{text} {abbreviation}"

            convention_date = date_and_time.astimezone(self.convention_zone).date()
            if local.date() < convention_date:
                text = f"{text} ({self.PREVIOUS_DAY})"
            elif local.date() > convention_date:
                text = f"{text} ({self.NEXT_DAY})"

            self.local_time_cache[key] = text
            return text

    def format_iso_date_in_convention_zone(self, date_and_time: datetime) -> str:
        return date_and_time.astimezone(self.convention_zone).date().isoformat()

    def format_day_name_in_convention_zone(self, date_and_time: datetime) -> str:
        return date_and_time.astimezone(self.convention_zone).strftime('%A')

    def time_zones_differ(self, program: Sequence[ProgramItem]) -> bool:
        """
        Check whether the local zone differs in practice from the convention zone.

        Offsets and abbreviations are compared at the start of the first
        and last items, so a DST change during the convention is noticed.

        Args:
            program: Program items sorted by start

        Returns:
            True if local times would differ from convention times
        """
        if not program:
            return False

        local_zone = self.local_zone
        for item in (program[0], program[-1]):
            start = item.start_date_and_time
            convention = start.astimezone(self.convention_zone)
            local = start.astimezone(local_zone)
            if (convention.utcoffset() != local.utcoffset()
                    or convention.tzname() != local.tzname()):
                return True
        return False

    def is_during_convention(self, program: Sequence[ProgramItem]) -> bool:
        """Return True if now lies between the first start and the last end."""
        if not program:
            return False
        now = self.now()
        return (program[0].start_date_and_time <= now
                <= program[-1].end_date_and_time)

    def filter_past_items(self, items: Sequence[ProgramItem]) -> List[ProgramItem]:
        """Return the items that have not yet finished."""
        now = self.now()
        return [item for item in items if item.end_date_and_time >= now]


def _format_clock(date_and_time: datetime, use_12_hour: bool) -> str:
    if use_12_hour:
        hour = date_and_time.hour % 12 or 12
        marker = 'am' if date_and_time.hour < 12 else 'pm'
        return f"{hour}:{date_and_time.minute:02d} {marker}"
    return f"{date_and_time.hour:02d}:{date_and_time.minute:02d}"
