"""Program item processing: datetimes, time slots, locations and tag synthesis."""
import dataclasses
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Any, Dict, List, Sequence, Union

from dateutil.parser import isoparse

from localtime.local_time import LocalTime
from processor.config import ConventionConfig, LinkConfig
from processor.models import Location, PersonRef, ProgramItem, Tag
from processor.tag_processor import (
    DAY_CATEGORY, collation_key, make_tag, make_tags,
)

logger = logging.getLogger(__name__)

# Zone designator after the YYYY-MM-DD date portion
OFFSET_PATTERN = re.compile(r'(Z|[+-]\d{2}(:?\d{2})?)$', re.IGNORECASE)


class DateParseError(ValueError):
    """Raised when a program item has no usable start date and time."""


@dataclass(frozen=True)
class DateTimePair:
    """Separate date ("YYYY-MM-DD") and time ("HH:MM:SS") in the convention zone."""
    date: str
    time: str


@dataclass(frozen=True)
class WallClockDateTime:
    """ISO datetime without a zone designator, read in the convention zone."""
    text: str


@dataclass(frozen=True)
class OffsetDateTime:
    """ISO datetime with a "Z" suffix or numeric UTC offset."""
    text: str


StartShape = Union[DateTimePair, WallClockDateTime, OffsetDateTime]


def classify_start(record: Dict[str, Any]) -> StartShape:
    """
    Decide which start date/time shape a raw program record carries.

    Args:
        record: Raw program item

    Returns:
        DateTimePair, WallClockDateTime or OffsetDateTime

    Raises:
        DateParseError: If the record has neither date+time nor datetime
    """
    date_str = record.get('date')
    time_str = record.get('time')
    if date_str and time_str:
        return DateTimePair(date=str(date_str).strip(), time=str(time_str).strip())

    text = record.get('datetime')
    if text:
        text = str(text).strip()
        if OFFSET_PATTERN.search(text[10:]):
            return OffsetDateTime(text=text)
        return WallClockDateTime(text=text)

    raise DateParseError(
        f"Program item '{record.get('id')}' has no date and time or datetime"
    )


def to_zoned_datetime(shape: StartShape, zone: tzinfo) -> datetime:
    """
    Convert a start shape into an aware datetime in the convention zone.

    Raises:
        DateParseError: If the text is not a valid ISO date/time
    """
    if isinstance(shape, DateTimePair):
        text = f"{shape.date}T{shape.time}"
    else:
        text = shape.text

    try:
        parsed = isoparse(text)
    except (ValueError, OverflowError) as e:
        raise DateParseError(f"Invalid date and time '{text}': {e}") from e

    if isinstance(shape, OffsetDateTime) or parsed.tzinfo is not None:
        return parsed.astimezone(zone)
    # Round trip through UTC moves times in a DST gap forward to a real
    # wall clock and picks the earlier of two ambiguous times
    return parsed.replace(tzinfo=zone).astimezone(timezone.utc).astimezone(zone)


def parse_start(record: Dict[str, Any], zone: tzinfo) -> datetime:
    """Derive the convention-zone start datetime of a raw program record."""
    shape = classify_start(record)
    try:
        return to_zoned_datetime(shape, zone)
    except DateParseError as e:
        raise DateParseError(f"Program item '{record.get('id')}': {e}") from e


def add_minutes(date_and_time: datetime, minutes: int) -> datetime:
    """Add elapsed minutes, keeping the zone and honouring DST changes."""
    instant = date_and_time.astimezone(timezone.utc) + timedelta(minutes=minutes)
    return instant.astimezone(date_and_time.tzinfo)


def _as_list(value: Any) -> List[str]:
    if value is None or value == '':
        return []
    if isinstance(value, list):
        return [str(v) for v in value if v not in (None, '')]
    return [str(value)]


def _person_refs(raw_people: Any) -> List[PersonRef]:
    refs = []
    for raw in raw_people or []:
        if isinstance(raw, dict):
            if raw.get('id') is None:
                continue
            refs.append(PersonRef(
                id=str(raw['id']),
                role=raw.get('role'),
                name=raw.get('name'),
            ))
        elif raw is not None:
            refs.append(PersonRef(id=str(raw)))
    return refs


class ProgramProcessor:
    """Processor that turns raw program records into ProgramItems."""

    def __init__(self, config: ConventionConfig, local_time: LocalTime):
        """
        Initialize the processor.

        Args:
            config: Convention configuration
            local_time: Time service owning the time slot index
        """
        self.config = config
        self.local_time = local_time
        self.zone = config.zone

    def process_program_data(self, records: List[Dict[str, Any]]) -> List[ProgramItem]:
        """
        Build ProgramItems from raw records, sorted by start.

        Items with equal starts keep their feed order.

        Args:
            records: Raw program records

        Returns:
            Sorted list of ProgramItems

        Raises:
            DateParseError: If any record has no usable start
        """
        items = [self._build_item(record) for record in records]
        # Compare instants; same-zone datetimes otherwise compare as wall clock
        items = sorted(
            items, key=lambda item: item.start_date_and_time.astimezone(timezone.utc)
        )
        logger.info(f"Processed {len(items)} program items")
        return items

    def _duration(self, record: Dict[str, Any]) -> int:
        mins = record.get('mins')
        if mins is None or mins == '':
            return self.config.default_duration_minutes
        try:
            duration = int(mins)
        except (TypeError, ValueError):
            logger.warning(
                f"Invalid mins '{mins}' for program item '{record.get('id')}', "
                f"using default {self.config.default_duration_minutes}"
            )
            return self.config.default_duration_minutes
        if duration < 0:
            logger.warning(
                f"Negative mins {duration} for program item '{record.get('id')}'"
            )
            return 0
        return duration

    def _build_item(self, record: Dict[str, Any]) -> ProgramItem:
        start = parse_start(record, self.zone)
        duration = self._duration(record)
        end = add_minutes(start, duration)

        return ProgramItem(
            id=str(record.get('id', '')),
            title=record.get('title') or '',
            desc=record.get('desc') or '',
            start_date_and_time=start,
            end_date_and_time=end,
            buffered_start_date_and_time=add_minutes(
                start, -self.config.buffer_before_minutes
            ),
            buffered_end_date_and_time=add_minutes(
                end, self.config.buffer_after_minutes
            ),
            time_slot=self.local_time.get_time_slot(start.isoformat()),
            duration_minutes=duration,
            loc=_as_list(record.get('loc')),
            tags=make_tags(record.get('tags'), self.config.tags.separate),
            people_refs=_person_refs(record.get('people')),
            format=record.get('format') or None,
            links=dict(record.get('links') or {}),
        )

    def reformat_as_tag(self, items: Sequence[ProgramItem]) -> List[ProgramItem]:
        """Return items with their format added as a "type:<format>" tag."""
        result = []
        for item in items:
            if item.format:
                item = _with_tag(item, f"type:{item.format}", self.config.tags.separate)
            result.append(item)
        return result

    def tag_links(
        self,
        items: Sequence[ProgramItem],
        links: Sequence[LinkConfig] = None,
    ) -> List[ProgramItem]:
        """Return items tagged for each configured link they carry."""
        links = self.config.links if links is None else links
        tagged_links = [link for link in links if link.tag]
        result = []
        for item in items:
            for link in tagged_links:
                if item.links.get(link.name):
                    item = _with_tag(item, link.tag, self.config.tags.separate)
            result.append(item)
        return result

    def add_day_tags(self, items: Sequence[ProgramItem]) -> List[ProgramItem]:
        """
        Return items tagged with the convention day they start on.

        Days are numbered from 1 in order of first appearance of each
        convention-zone calendar date.
        """
        day_numbers: Dict[str, int] = {}
        result = []
        for item in items:
            start = item.start_date_and_time
            iso_date = self.local_time.format_iso_date_in_convention_zone(start)
            number = day_numbers.setdefault(iso_date, len(day_numbers) + 1)
            day_tag = Tag(
                category=DAY_CATEGORY,
                value=f"{DAY_CATEGORY}:{number}",
                label=self.local_time.format_day_name_in_convention_zone(start),
            )
            if any(tag.value == day_tag.value for tag in item.tags):
                result.append(item)
            else:
                result.append(dataclasses.replace(item, tags=item.tags + [day_tag]))
        return result


def _with_tag(item: ProgramItem, raw_tag: str, separate: Sequence[str]) -> ProgramItem:
    if any(tag.value == raw_tag for tag in item.tags):
        return item
    return dataclasses.replace(item, tags=item.tags + [make_tag(raw_tag, separate)])


def process_locations(items: Sequence[ProgramItem]) -> List[Location]:
    """Return the distinct item locations sorted by value."""
    values = {loc for item in items for loc in item.loc}
    return [Location(value=value) for value in sorted(values, key=collation_key)]
