"""AWS Lambda handler for refreshing normalized convention program data."""
import json
import logging
import os
import time
from typing import Dict, Any

from feeds.feed_client import FeedClient, FetchError
from feeds.json_extractor import ParseError
from localtime.local_time import LocalTime
from localtime.preferences import TimeZonePreferences
from processor.config import load_config
from processor.program_processor import DateParseError
from processor.schedule_normalizer import ScheduleNormalizer


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


def _error_response(message: str, error: Exception, start_time: float) -> Dict[str, Any]:
    duration = time.time() - start_time
    return {
        'statusCode': 500,
        'body': json.dumps({
            'message': message,
            'error': str(error),
            'error_type': type(error).__name__,
            'note': 'Previous program data remains in use',
            'duration_seconds': round(duration, 2)
        })
    }


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Refresh the convention program and people data.

    Args:
        event: EventBridge event payload; may override PROGRAM_DATA_URL
            and PEOPLE_DATA_URL with 'program_data_url' / 'people_data_url'
        context: Lambda context object

    Returns:
        Response dict with statusCode and summary statistics
    """
    log_level = os.environ.get('LOG_LEVEL', 'INFO')
    setup_logging(log_level)
    logger = logging.getLogger(__name__)

    start_time = time.time()

    try:
        config = load_config()
        event = event or {}
        config.program_data_url = event.get('program_data_url', config.program_data_url)
        config.people_data_url = event.get('people_data_url', config.people_data_url)

        logger.info(
            "Refresh started",
            extra={
                'program_data_url': config.program_data_url,
                'people_data_url': config.people_data_url,
                'timezone': config.timezone
            }
        )

        local_time = LocalTime(config, TimeZonePreferences.from_environment())
        normalizer = ScheduleNormalizer(
            config,
            local_time,
            FeedClient(timeout=config.timeout_seconds)
        )

        try:
            data = normalizer.refresh()
        except FetchError as e:
            logger.error(
                f"Failed to fetch convention feeds after retries: {str(e)}",
                extra={'error_type': type(e).__name__},
                exc_info=True
            )
            return _error_response('Failed to fetch convention feeds', e, start_time)
        except (ParseError, DateParseError) as e:
            logger.error(
                f"Failed to normalize convention data: {str(e)}",
                extra={'error_type': type(e).__name__},
                exc_info=True
            )
            return _error_response('Failed to normalize convention data', e, start_time)

        duration = time.time() - start_time
        statistics = {
            'program_items': len(data.program),
            'people': len(data.people),
            'locations': len(data.locations),
            'tag_categories': sorted(data.tags.categories),
            'time_zones_differ': local_time.time_zones_differ(data.program),
            'during_convention': local_time.is_during_convention(data.program),
            'duration_seconds': round(duration, 2)
        }

        logger.info("Refresh completed successfully", extra=statistics)

        return {
            'statusCode': 200,
            'body': json.dumps({
                'message': 'Refresh completed successfully',
                'statistics': statistics
            })
        }

    except Exception as e:
        duration = time.time() - start_time

        logger.error(
            f"Refresh failed: {str(e)}",
            extra={
                'duration_seconds': round(duration, 2),
                'error_type': type(e).__name__
            },
            exc_info=True
        )

        return {
            'statusCode': 500,
            'body': json.dumps({
                'message': 'Refresh failed',
                'error': str(e),
                'error_type': type(e).__name__,
                'duration_seconds': round(duration, 2)
            })
        }
