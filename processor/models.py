"""Data models for normalized convention data."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional


@dataclass
class Tag:
    """Tag attached to a program item or person."""
    category: str
    value: str
    label: str


@dataclass
class TagOption:
    """Selectable value in a tag category."""
    value: str
    label: str


@dataclass
class Location:
    """Distinct location used by at least one program item."""
    value: str
    label: str = ''

    def __post_init__(self):
        if not self.label:
            self.label = self.value


@dataclass
class Person:
    """Normalized participant."""
    id: str
    name: str
    sortname: str
    uri: str
    img: Optional[str] = None
    tags: List[Tag] = field(default_factory=list)
    links: Dict[str, str] = field(default_factory=dict)
    bio: str = ''


@dataclass
class PersonRef:
    """Reference from a program item to a participant."""
    id: str
    role: Optional[str] = None
    name: Optional[str] = None


@dataclass
class ProgramItem:
    """Normalized program item with convention-zone datetimes."""
    id: str
    title: str
    start_date_and_time: datetime
    end_date_and_time: datetime
    buffered_start_date_and_time: datetime
    buffered_end_date_and_time: datetime
    time_slot: int
    duration_minutes: int
    desc: str = ''
    loc: List[str] = field(default_factory=list)
    tags: List[Tag] = field(default_factory=list)
    people_refs: List[PersonRef] = field(default_factory=list)
    people: List[Person] = field(default_factory=list)
    moderator_id: Optional[str] = None
    format: Optional[str] = None
    links: Dict[str, str] = field(default_factory=dict)


@dataclass
class TagTaxonomy:
    """Tag options grouped by category, plus a value index."""
    categories: Dict[str, List[TagOption]] = field(default_factory=dict)
    all: Dict[str, TagOption] = field(default_factory=dict)

    def __getitem__(self, category: str) -> List[TagOption]:
        return self.categories[category]

    def __contains__(self, category: str) -> bool:
        return category in self.categories


@dataclass
class ConventionData:
    """Complete normalized dataset produced by one refresh."""
    program: List[ProgramItem]
    people: List[Person]
    locations: List[Location]
    tags: TagTaxonomy
    people_tags: TagTaxonomy
