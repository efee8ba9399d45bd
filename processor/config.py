"""Convention configuration loaded from a JSON file and the environment."""
import json
import logging
import os
from dataclasses import dataclass, field
from functools import cached_property
from pathlib import Path
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = 'UTC'


@dataclass
class LinkConfig:
    """A named item link, optionally converted into a tag."""
    name: str
    text: str = ''
    tag: str = ''


@dataclass
class TagConfig:
    """Tag category settings for program items or people."""
    separate: List[str] = field(default_factory=list)
    format_as_tag: bool = False
    generate_day_tag: bool = False


@dataclass
class ConventionConfig:
    """Settings consumed by the normalization pipeline."""
    timezone: str = DEFAULT_TIMEZONE
    timezone_code: str = ''
    program_data_url: str = ''
    people_data_url: str = ''
    buffer_before_minutes: int = 0
    buffer_after_minutes: int = 0
    default_duration_minutes: int = 60
    tags: TagConfig = field(default_factory=TagConfig)
    people_tags: TagConfig = field(default_factory=TagConfig)
    links: List[LinkConfig] = field(default_factory=list)
    timeout_seconds: int = 30

    @cached_property
    def zone(self) -> ZoneInfo:
        """Convention time zone, resolved once; UTC if the name is invalid."""
        try:
            return ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning(
                f"Invalid TIMEZONE {self.timezone}, falling back to {DEFAULT_TIMEZONE}"
            )
            return ZoneInfo(DEFAULT_TIMEZONE)


def _tag_config(data: Dict[str, Any]) -> TagConfig:
    return TagConfig(
        separate=[entry['PREFIX'] for entry in data.get('SEPARATE', [])
                  if entry.get('PREFIX')],
        format_as_tag=bool(data.get('FORMAT_AS_TAG', False)),
        generate_day_tag=bool(data.get('DAY_TAG', {}).get('GENERATE', False)),
    )


def config_from_dict(data: Dict[str, Any]) -> ConventionConfig:
    """
    Build a ConventionConfig from a config.json style mapping.

    Args:
        data: Parsed configuration with upper-case keys

    Returns:
        ConventionConfig with defaults for missing keys
    """
    buffers = data.get('ITEM_BUFFER', {})
    return ConventionConfig(
        timezone=data.get('TIMEZONE', DEFAULT_TIMEZONE),
        timezone_code=data.get('TIMEZONECODE', ''),
        program_data_url=data.get('PROGRAM_DATA_URL', ''),
        people_data_url=data.get('PEOPLE_DATA_URL', ''),
        buffer_before_minutes=int(buffers.get('BEFORE', 0)),
        buffer_after_minutes=int(buffers.get('AFTER', 0)),
        default_duration_minutes=int(data.get('DEFAULT_DURATION_MINS', 60)),
        tags=_tag_config(data.get('TAGS', {})),
        people_tags=_tag_config(data.get('PEOPLE', {}).get('TAGS', {})),
        links=[
            LinkConfig(
                name=link['NAME'],
                text=link.get('TEXT', ''),
                tag=link.get('TAG', ''),
            )
            for link in data.get('LINKS', [])
        ],
    )


def load_config(path: Optional[str] = None) -> ConventionConfig:
    """
    Load configuration from a JSON file, then apply environment overrides.

    Args:
        path: Config file path (default: CONFIG_PATH env var or config.json)

    Returns:
        ConventionConfig
    """
    path = path or os.environ.get('CONFIG_PATH', 'config.json')
    config_file = Path(path)
    data = {}
    if config_file.exists():
        data = json.loads(config_file.read_text(encoding='utf-8'))
        logger.info(f"Loaded configuration from {config_file}")
    else:
        logger.warning(f"Config file {config_file} not found, using defaults")

    config = config_from_dict(data)

    # Environment variables take precedence over the file
    config.timezone = os.environ.get('TIMEZONE', config.timezone)
    config.timezone_code = os.environ.get('TIMEZONECODE', config.timezone_code)
    config.program_data_url = os.environ.get(
        'PROGRAM_DATA_URL', config.program_data_url
    )
    config.people_data_url = os.environ.get(
        'PEOPLE_DATA_URL', config.people_data_url
    )
    config.timeout_seconds = int(
        os.environ.get('TIMEOUT_SECONDS', config.timeout_seconds)
    )
    return config
