"""Tag parsing, label formatting and taxonomy building."""
import logging
import re
import unicodedata
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from processor.models import Tag, TagOption, TagTaxonomy

logger = logging.getLogger(__name__)

GENERAL_CATEGORY = 'tags'
DAY_CATEGORY = 'days'

TAG_PATTERN = re.compile(r'^(.+):(.+)$')
# Value shape of a generated day tag; feed tags in "days" are ordinary tags
DAY_TAG_PATTERN = re.compile(r'^days:(\d+)$')


def collation_key(text: str) -> Tuple[str, str]:
    """Sort key that ignores case and accents, falling back to the raw text."""
    decomposed = unicodedata.normalize('NFKD', text)
    folded = ''.join(c for c in decomposed if not unicodedata.combining(c))
    return folded.casefold(), text


def format_tag(tag: str) -> str:
    """
    Format a "prefix:value" tag for display.

    The prefix gets an initial capital and the rest lower-cased, and a
    space is inserted after the colon. The last colon separates the two
    parts. Tags without a non-empty prefix and value are returned
    unchanged.

    Examples:
        "category:TagName" -> "Category: TagName"
        "first:second:third" -> "First:second: third"
    """
    match = TAG_PATTERN.match(tag)
    if not match:
        return tag
    prefix, value = match.groups()
    return f"{prefix[0].upper()}{prefix[1:].lower()}: {value}"


def split_tag(tag: str) -> Tuple[str, str]:
    """
    Split a tag at its first colon.

    Returns:
        Tuple of (category, value); category is empty if there is no colon
    """
    if ':' in tag:
        category, value = tag.split(':', 1)
        return category, value
    return '', tag


def make_tag(raw: Any, separate: Sequence[str]) -> Optional[Tag]:
    """
    Convert a raw tag string or object into a Tag.

    Tags in a separately listed category are labelled with the part after
    the colon; all others with the formatted full tag.

    Args:
        raw: "category:value" string or {value, label, category} object
        separate: Categories that have their own tag lists

    Returns:
        Tag, or None if the raw tag is empty
    """
    if isinstance(raw, dict):
        value = str(raw.get('value') or '')
        if not value:
            return None
        category = raw.get('category') or split_tag(value)[0]
        label = raw.get('label') or _label_for(value, category, separate)
        return Tag(category=category, value=value, label=label)

    value = str(raw or '')
    if not value:
        return None
    category, _ = split_tag(value)
    return Tag(category=category, value=value, label=_label_for(value, category, separate))


def make_tags(raw_tags: Any, separate: Sequence[str]) -> List[Tag]:
    """Convert a raw tag list (or single tag) into Tags."""
    if raw_tags is None:
        return []
    if not isinstance(raw_tags, list):
        raw_tags = [raw_tags]
    tags = []
    for raw in raw_tags:
        tag = make_tag(raw, separate)
        if tag is not None:
            tags.append(tag)
    return tags


def _label_for(value: str, category: str, separate: Sequence[str]) -> str:
    if category and category in separate:
        return split_tag(value)[1]
    return format_tag(value)


def is_day_tag(tag: Tag) -> bool:
    """Whether a tag has the "days:<n>" shape of a generated day tag."""
    return tag.category == DAY_CATEGORY and bool(DAY_TAG_PATTERN.match(tag.value))


def bucket_for(tag: Tag, separate: Sequence[str], generate_day_tag: bool = False) -> str:
    """Return the taxonomy category a tag is listed under."""
    if generate_day_tag and is_day_tag(tag):
        return DAY_CATEGORY
    if tag.category and tag.category in separate:
        return tag.category
    return GENERAL_CATEGORY


def process_tags(
    tag_lists: Iterable[List[Tag]],
    separate: Sequence[str],
    generate_day_tag: bool = False,
) -> TagTaxonomy:
    """
    Group tags into a taxonomy.

    Every separate category is present even if unused. Options are
    deduplicated by value and sorted by label, except day tags which keep
    their chronological numbering.

    Args:
        tag_lists: Tags of each item or person
        separate: Categories that have their own tag lists
        generate_day_tag: Whether a "days" category is listed

    Returns:
        TagTaxonomy
    """
    categories: Dict[str, Dict[str, TagOption]] = {
        prefix: {} for prefix in separate
    }
    categories.setdefault(GENERAL_CATEGORY, {})
    if generate_day_tag:
        categories.setdefault(DAY_CATEGORY, {})

    taxonomy = TagTaxonomy()
    for tags in tag_lists:
        for tag in tags:
            bucket = bucket_for(tag, separate, generate_day_tag)
            if tag.value in categories[bucket]:
                continue
            option = TagOption(value=tag.value, label=tag.label)
            categories[bucket][tag.value] = option
            taxonomy.all.setdefault(tag.value, option)

    for bucket, options in categories.items():
        if bucket == DAY_CATEGORY:
            ordered = sorted(options.values(), key=_day_order)
        else:
            ordered = sorted(options.values(), key=lambda o: collation_key(o.label))
        taxonomy.categories[bucket] = ordered

    logger.debug(
        f"Built tag taxonomy with {len(taxonomy.all)} values in "
        f"{len(taxonomy.categories)} categories"
    )
    return taxonomy


def _day_order(option: TagOption) -> Tuple[int, Any]:
    # Generated days by number, then any configured "days" tags by label
    match = DAY_TAG_PATTERN.match(option.value)
    if match:
        return 0, int(match.group(1))
    return 1, collation_key(option.label)
