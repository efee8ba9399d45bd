"""Unit tests for the LocalTime service."""
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from localtime.local_time import LocalTime
from localtime.preferences import TimeZonePreferences
from processor.config import ConventionConfig
from processor.models import ProgramItem

BERLIN = ZoneInfo('Europe/Berlin')
UTC = ZoneInfo('UTC')


def make_item(start: datetime, minutes: int = 60) -> ProgramItem:
    end = start + timedelta(minutes=minutes)
    return ProgramItem(
        id=start.isoformat(),
        title='Item',
        start_date_and_time=start,
        end_date_and_time=end,
        buffered_start_date_and_time=start,
        buffered_end_date_and_time=end,
        time_slot=0,
        duration_minutes=minutes,
    )


def fixed_clock(instant: datetime):
    return lambda: instant


@pytest.fixture
def config():
    return ConventionConfig(timezone='Europe/Berlin', timezone_code='CET')


def local_time_in(config, zone_name, clock=None):
    preferences = TimeZonePreferences(use_selected=True, selected=zone_name)
    return LocalTime(config, preferences, clock=clock)


class TestLocalZone:
    """Test cases for local zone resolution."""

    def test_selected_zone_used_when_opted_in(self, config):
        """Test that an opted-in selected zone is used."""
        local_time = local_time_in(config, 'America/New_York')
        assert local_time.local_zone == ZoneInfo('America/New_York')

    def test_selected_zone_ignored_without_opt_in(self, config):
        """Test that the runtime zone is used when not opted in."""
        preferences = TimeZonePreferences(use_selected=False, selected='Asia/Tokyo')
        local_time = LocalTime(config, preferences)
        assert local_time.local_zone != ZoneInfo('Asia/Tokyo')

    def test_invalid_selected_zone_falls_back(self, config):
        """Test fallback to the runtime zone for an unknown zone name."""
        local_time = local_time_in(config, 'Not/AZone')
        assert local_time.local_zone is not None
        assert not isinstance(local_time.local_zone, ZoneInfo)

    def test_zone_cached_until_recomputed(self, config):
        """Test that preferences are only read again on resolve."""
        preferences = TimeZonePreferences(use_selected=True, selected='UTC')
        local_time = LocalTime(config, preferences)
        assert local_time.local_zone == UTC

        preferences.selected = 'Asia/Tokyo'
        assert local_time.local_zone == UTC

        local_time.resolve_local_zone()
        assert local_time.local_zone == ZoneInfo('Asia/Tokyo')


class TestTimeSlots:
    """Test cases for time slot assignment."""

    def test_new_slots_are_sequential(self, config):
        """Test that new strings get consecutive indices from 0."""
        local_time = LocalTime(config)
        assert local_time.get_time_slot('2026-05-21T10:00:00+02:00') == 0
        assert local_time.get_time_slot('2026-05-21T11:00:00+02:00') == 1
        assert local_time.time_slot_cache['2026-05-21T10:00:00+02:00'] == 0

    def test_same_string_same_slot(self, config):
        """Test that repeated lookups return the same index."""
        local_time = LocalTime(config)
        first = local_time.get_time_slot('2026-05-21T10:00:00+02:00')
        local_time.get_time_slot('2026-05-22T10:00:00+02:00')
        assert local_time.get_time_slot('2026-05-21T10:00:00+02:00') == first

    def test_clear_caches(self, config):
        """Test that clearing restarts slot numbering."""
        local_time = LocalTime(config)
        local_time.get_time_slot('a')
        local_time.get_time_slot('b')
        local_time.clear_caches()
        assert local_time.get_time_slot('b') == 0


class TestFormatting:
    """Test cases for time formatting."""

    def test_format_24_hour(self, config):
        """Test default 24-hour format."""
        dt = datetime(2026, 5, 21, 14, 30, tzinfo=BERLIN)
        assert LocalTime(config).format_time(dt) == '14:30'

    def test_format_12_hour(self, config):
        """Test 12-hour format with am/pm."""
        local_time = LocalTime(config)
        assert local_time.format_time(datetime(2026, 5, 21, 14, 30, tzinfo=BERLIN), True) == '2:30 pm'
        assert local_time.format_time(datetime(2026, 5, 21, 0, 5, tzinfo=BERLIN), True) == '12:05 am'
        assert local_time.format_time(datetime(2026, 5, 21, 12, 0, tzinfo=BERLIN), True) == '12:00 pm'

    def test_format_with_time_zone_code(self, config):
        """Test that the convention abbreviation is appended."""
        dt = datetime(2026, 5, 21, 14, 30, tzinfo=BERLIN)
        assert LocalTime(config).format_time(dt, False, True) == '14:30 CET'

    def test_format_in_convention_zone_memoized(self, config):
        """Test that convention formatting is cached per slot and options."""
        local_time = LocalTime(config)
        dt = datetime(2026, 5, 21, 12, 0, tzinfo=UTC)
        assert local_time.format_in_convention_zone(3, dt) == '14:00'
        other = datetime(2026, 5, 21, 18, 0, tzinfo=UTC)
        assert local_time.format_in_convention_zone(3, other) == '14:00'
        assert local_time.format_in_convention_zone(3, dt, True) == '2:00 pm'

    def test_local_same_day_has_no_marker(self, config):
        """Test that no qualifier is added when dates coincide."""
        local_time = local_time_in(config, 'UTC')
        dt = datetime(2026, 5, 21, 14, 30, tzinfo=BERLIN)
        assert local_time.format_in_local_zone(0, dt) == '12:30'

    def test_local_previous_day(self, config):
        """Test the previous day qualifier for zones behind the convention."""
        local_time = local_time_in(config, 'America/New_York')
        dt = datetime(2026, 5, 21, 1, 30, tzinfo=BERLIN)
        assert local_time.format_in_local_zone(0, dt) == '19:30 (previous day)'

    def test_local_next_day(self, config):
        """Test the next day qualifier for zones ahead of the convention."""
        local_time = local_time_in(config, 'Asia/Tokyo')
        dt = datetime(2026, 5, 21, 22, 0, tzinfo=BERLIN)
        assert local_time.format_in_local_zone(0, dt, True) == '5:00 am (next day)'

    def test_local_shows_local_abbreviation(self, config):
        """Test that zone mode uses the local zone abbreviation."""
        local_time = local_time_in(config, 'UTC')
        dt = datetime(2026, 5, 21, 14, 30, tzinfo=BERLIN)
        assert local_time.format_in_local_zone(0, dt, False, True) == '12:30 UTC'

    def test_local_cache_cleared_on_resolve(self, config):
        """Test that changing the local zone invalidates local formatting."""
        preferences = TimeZonePreferences(use_selected=True, selected='UTC')
        local_time = LocalTime(config, preferences)
        dt = datetime(2026, 5, 21, 14, 30, tzinfo=BERLIN)
        assert local_time.format_in_local_zone(0, dt) == '12:30'

        preferences.selected = 'Europe/Berlin'
        local_time.resolve_local_zone()
        assert local_time.format_in_local_zone(0, dt) == '14:30'

    def test_day_name_and_iso_date(self, config):
        """Test convention-zone date helpers."""
        local_time = LocalTime(config)
        dt = datetime(2026, 1, 14, 23, 30, tzinfo=UTC)
        assert local_time.format_iso_date_in_convention_zone(dt) == '2026-01-15'
        assert local_time.format_day_name_in_convention_zone(dt) == 'Thursday'


class TestTimeZonesDiffer:
    """Test cases for time_zones_differ."""

    def test_empty_program(self, config):
        """Test that an empty program never differs."""
        assert LocalTime(config).time_zones_differ([]) is False

    def test_same_zone(self, config):
        """Test that the convention zone itself does not differ."""
        local_time = local_time_in(config, 'Europe/Berlin')
        program = [make_item(datetime(2026, 5, 21, 10, 0, tzinfo=BERLIN))]
        assert local_time.time_zones_differ(program) is False

    def test_equivalent_zone(self, config):
        """Test that a zone with the same offset and abbreviation does not differ."""
        local_time = local_time_in(config, 'Europe/Paris')
        program = [make_item(datetime(2026, 5, 21, 10, 0, tzinfo=BERLIN))]
        assert local_time.time_zones_differ(program) is False

    def test_different_zone(self, config):
        """Test that UTC differs from Berlin."""
        local_time = local_time_in(config, 'UTC')
        program = [make_item(datetime(2026, 5, 21, 10, 0, tzinfo=BERLIN))]
        assert local_time.time_zones_differ(program) is True


class TestConventionClock:
    """Test cases for now-dependent predicates."""

    def program(self):
        return [
            make_item(datetime(2026, 5, 21, 10, 0, tzinfo=UTC)),
            make_item(datetime(2026, 5, 21, 13, 0, tzinfo=UTC)),
        ]

    def test_is_during_convention_empty(self, config):
        """Test that an empty program is never running."""
        assert LocalTime(config).is_during_convention([]) is False

    def test_is_during_convention_inside(self, config):
        """Test now between first start and last end."""
        now = datetime(2026, 5, 21, 12, 0, tzinfo=timezone.utc)
        local_time = LocalTime(config, clock=fixed_clock(now))
        assert local_time.is_during_convention(self.program()) is True

    def test_is_during_convention_before(self, config):
        """Test now before the first start."""
        now = datetime(2026, 5, 21, 9, 0, tzinfo=timezone.utc)
        local_time = LocalTime(config, clock=fixed_clock(now))
        assert local_time.is_during_convention(self.program()) is False

    def test_is_during_convention_after(self, config):
        """Test now after the last end."""
        now = datetime(2026, 5, 21, 14, 1, tzinfo=timezone.utc)
        local_time = LocalTime(config, clock=fixed_clock(now))
        assert local_time.is_during_convention(self.program()) is False

    def test_is_during_convention_compares_instants(self, config):
        """Test that the zone of now does not matter."""
        now = datetime(2026, 5, 21, 14, 0, tzinfo=BERLIN)  # 12:00 UTC
        local_time = LocalTime(config, clock=fixed_clock(now))
        assert local_time.is_during_convention(self.program()) is True

    def test_filter_past_items(self, config):
        """Test that finished items are removed."""
        now = datetime(2026, 5, 21, 12, 0, tzinfo=timezone.utc)
        local_time = LocalTime(config, clock=fixed_clock(now))
        program = [
            make_item(datetime(2026, 5, 21, 11, 0, tzinfo=UTC), 30),
            make_item(datetime(2026, 5, 21, 11, 0, tzinfo=UTC), 60),
            make_item(datetime(2026, 5, 21, 13, 0, tzinfo=UTC), 30),
        ]

        filtered = local_time.filter_past_items(program)

        assert [item.start_date_and_time.hour for item in filtered] == [11, 13]

    def test_filter_past_items_in_fall_back_hour(self, config):
        """Test that an item ending in the repeated hour is compared by instant."""
        start = datetime(2026, 10, 25, 0, 45, tzinfo=timezone.utc).astimezone(BERLIN)
        end = datetime(2026, 10, 25, 1, 15, tzinfo=timezone.utc).astimezone(BERLIN)
        item = make_item(start, 30)
        item.end_date_and_time = end
        now = datetime(2026, 10, 25, 2, 50, tzinfo=BERLIN)  # 00:50 UTC

        local_time = LocalTime(config, clock=fixed_clock(now))

        assert end.isoformat() == '2026-10-25T02:15:00+01:00'
        assert local_time.filter_past_items([item]) == [item]
        assert local_time.is_during_convention([item]) is True
        assert filtered[0].end_date_and_time == now
