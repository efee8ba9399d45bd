"""Viewer time zone preferences."""
import os
from dataclasses import dataclass
from typing import Optional


@dataclass
class TimeZonePreferences:
    """
    Stored viewer choice of local time zone.

    When ``use_selected`` is false the runtime-detected zone is used.
    """
    use_selected: bool = False
    selected: Optional[str] = None

    def use_time_zone(self) -> bool:
        return self.use_selected

    def selected_time_zone(self) -> Optional[str]:
        return self.selected

    @classmethod
    def from_environment(cls) -> 'TimeZonePreferences':
        """Read preferences from USE_TIME_ZONE and SELECTED_TIME_ZONE."""
        use_selected = os.environ.get('USE_TIME_ZONE', '').lower() in ('1', 'true', 'yes')
        return cls(
            use_selected=use_selected,
            selected=os.environ.get('SELECTED_TIME_ZONE') or None,
        )
