"""Pipeline that turns raw convention feeds into a normalized dataset."""
import logging
from typing import Any, Dict, List, Optional

from feeds.feed_client import FeedClient
from localtime.local_time import LocalTime
from processor.config import ConventionConfig
from processor.models import ConventionData
from processor.people_processor import PeopleProcessor
from processor.program_processor import ProgramProcessor, process_locations
from processor.tag_processor import process_tags

logger = logging.getLogger(__name__)


class ScheduleNormalizer:
    """
    Runs a full refresh of program and people data.

    Every refresh recomputes the whole dataset. Any error aborts the
    refresh and propagates, so callers keep their previous dataset.
    """

    def __init__(
        self,
        config: ConventionConfig,
        local_time: LocalTime,
        feed_client: Optional[FeedClient] = None,
    ):
        """
        Initialize the normalizer.

        Args:
            config: Convention configuration
            local_time: Time service shared with the presentation layer
            feed_client: Client used to download feeds
        """
        self.config = config
        self.local_time = local_time
        self.feed_client = feed_client or FeedClient(timeout=config.timeout_seconds)
        self.program_processor = ProgramProcessor(config, local_time)
        self.people_processor = PeopleProcessor(config)

    def refresh(self) -> ConventionData:
        """
        Fetch both feeds and normalize them.

        Returns:
            ConventionData

        Raises:
            FetchError: If a feed cannot be downloaded
            ParseError: If a feed contains invalid JSON
            DateParseError: If a program item has no usable start
        """
        logger.info("Fetching program feed")
        program_records = self.feed_client.fetch_records(self.config.program_data_url)
        logger.info("Fetching people feed")
        people_records = self.feed_client.fetch_records(self.config.people_data_url)
        return self.normalize(program_records, people_records)

    def normalize(
        self,
        program_records: List[Dict[str, Any]],
        people_records: List[Dict[str, Any]],
    ) -> ConventionData:
        """
        Normalize already extracted program and people records.

        Args:
            program_records: Raw program records
            people_records: Raw people records

        Returns:
            ConventionData
        """
        program = self.program_processor.process_program_data(program_records)
        people = self.people_processor.process_people_data(people_records)
        program = self.people_processor.add_program_participant_details(program, people)
        locations = process_locations(program)

        tag_config = self.config.tags
        if tag_config.format_as_tag:
            program = self.program_processor.reformat_as_tag(program)
        program = self.program_processor.tag_links(program)
        if tag_config.generate_day_tag:
            program = self.program_processor.add_day_tags(program)

        tags = process_tags(
            (item.tags for item in program),
            tag_config.separate,
            tag_config.generate_day_tag,
        )
        people_tags = process_tags(
            (person.tags for person in people),
            self.config.people_tags.separate,
        )

        logger.info(
            f"Normalized {len(program)} program items, {len(people)} people, "
            f"{len(locations)} locations and {len(tags.all)} tags"
        )
        return ConventionData(
            program=program,
            people=people,
            locations=locations,
            tags=tags,
            people_tags=people_tags,
        )
