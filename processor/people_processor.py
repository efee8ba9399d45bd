"""Participant normalization and cross-linking with program items."""
import dataclasses
import logging
import re
from typing import Any, Dict, List, Optional, Sequence, Tuple
from urllib.parse import quote

from processor.config import ConventionConfig
from processor.models import Person, ProgramItem
from processor.tag_processor import collation_key, make_tags

logger = logging.getLogger(__name__)

MODERATOR_ROLE = 'moderator'
MODERATOR_SUFFIX = re.compile(r'\(\s*moderator\s*\)\s*$', re.IGNORECASE)

# Checked in order; the first non-empty value is the thumbnail
IMAGE_LINK_KEYS = ('img', 'photo')
IMAGE_URL_KEYS = ('image_256_url',)


def person_name(raw_name: Any) -> Tuple[str, Optional[str]]:
    """
    Derive the display name and, when it can be split, the sort name.

    A [first, last] list becomes ("First Last", "Last First"). Other lists
    are joined with spaces and strings are used as given; neither yields a
    sort name.

    Returns:
        Tuple of (name, sortname or None)
    """
    if isinstance(raw_name, list):
        parts = [str(part).strip() for part in raw_name if part]
        if len(parts) == 2:
            first, last = parts
            return f"{first} {last}", f"{last} {first}"
        return ' '.join(parts), None
    return str(raw_name or '').strip(), None


def person_uri(name: str) -> str:
    """URL-safe slug of a name: spaces become underscores, the rest is escaped."""
    return quote(name.replace(' ', '_'), safe="_-.!~*'()")


def person_image(record: Dict[str, Any]) -> Optional[str]:
    links = record.get('links') or {}
    for key in IMAGE_LINK_KEYS:
        if links.get(key):
            return links[key]
    for key in IMAGE_URL_KEYS:
        if record.get(key):
            return record[key]
    return None


class PeopleProcessor:
    """Processor for participant records."""

    def __init__(self, config: ConventionConfig):
        self.config = config

    def process_people_data(self, records: List[Dict[str, Any]]) -> List[Person]:
        """
        Normalize raw people records and sort them by sort name.

        Args:
            records: Raw people records

        Returns:
            List of Person objects
        """
        people = [self._build_person(record) for record in records]
        people = sorted(people, key=lambda person: collation_key(person.sortname))
        logger.info(f"Processed {len(people)} people")
        return people

    def _build_person(self, record: Dict[str, Any]) -> Person:
        name, derived_sortname = person_name(record.get('name'))
        sortname = record.get('sortname') or derived_sortname or name
        return Person(
            id=str(record.get('id', '')),
            name=name,
            sortname=sortname,
            uri=person_uri(name),
            img=person_image(record),
            tags=make_tags(record.get('tags'), self.config.people_tags.separate),
            links=dict(record.get('links') or {}),
            bio=record.get('bio') or '',
        )

    def add_program_participant_details(
        self,
        program: Sequence[ProgramItem],
        people: Sequence[Person],
    ) -> List[ProgramItem]:
        """
        Resolve each item's participant references to Person records.

        References to unknown ids are dropped. A reference with a
        moderator role, or whose inline name ends in "(moderator)", marks
        that person as the item's moderator.

        Args:
            program: Program items with people_refs
            people: Normalized people

        Returns:
            New program items with people and moderator_id set
        """
        people_by_id = {person.id: person for person in people}
        result = []
        for item in program:
            resolved = []
            moderator_id = None
            for ref in item.people_refs:
                person = people_by_id.get(ref.id)
                if person is None:
                    logger.debug(
                        f"Dropping unknown person '{ref.id}' from item '{item.id}'"
                    )
                    continue
                resolved.append(person)
                if moderator_id is None and self._is_moderator(ref.role, ref.name):
                    moderator_id = person.id

            resolved.sort(key=lambda person: collation_key(person.sortname))
            result.append(dataclasses.replace(
                item, people=resolved, moderator_id=moderator_id
            ))
        return result

    @staticmethod
    def _is_moderator(role: Optional[str], name: Optional[str]) -> bool:
        if role and str(role).strip().lower() == MODERATOR_ROLE:
            return True
        return bool(name and MODERATOR_SUFFIX.search(str(name)))
