"""HTTP client for fetching convention program and people feeds."""
import logging
import time
from typing import Any, Dict, List

import requests

from feeds.json_extractor import extract_json

logger = logging.getLogger(__name__)


class FetchError(Exception):
    """Raised when a feed cannot be retrieved."""


class FeedClient:
    """Client for downloading convention feeds."""

    MAX_RETRIES = 3
    BASE_DELAY = 1  # seconds

    def __init__(self, timeout: int = 30, session: requests.Session = None):
        """
        Initialize the feed client.

        Args:
            timeout: HTTP request timeout in seconds (default: 30)
            session: Optional requests session to reuse connections
        """
        self.timeout = timeout
        self.session = session or requests.Session()

    def fetch_json(self, url: str) -> List[Any]:
        """
        Fetch a feed and extract its JSON documents.

        Args:
            url: Feed URL

        Returns:
            List of parsed documents in feed order

        Raises:
            FetchError: If all retry attempts fail
            ParseError: If a document in the feed is not valid JSON
        """
        text = self.fetch_text(url)
        documents = extract_json(text)
        logger.info(f"Extracted {len(documents)} documents from {url}")
        return documents

    def fetch_records(self, url: str) -> List[Dict[str, Any]]:
        """
        Fetch a feed and flatten its documents into a list of records.

        Array documents are concatenated; object documents count as a
        single record.

        Args:
            url: Feed URL

        Returns:
            List of raw record dicts
        """
        records = []
        for document in self.fetch_json(url):
            if isinstance(document, list):
                records.extend(document)
            else:
                records.append(document)
        return records

    def fetch_text(self, url: str) -> str:
        """
        Fetch raw text with retry logic.

        Args:
            url: URL to fetch

        Returns:
            Response body as text

        Raises:
            FetchError: If all retry attempts fail
        """
        for attempt in range(self.MAX_RETRIES):
            try:
                logger.info(
                    f"Fetching {url} (attempt {attempt + 1}/{self.MAX_RETRIES})"
                )
                response = self.session.get(url, timeout=self.timeout)
                response.raise_for_status()
                return response.text

            except requests.RequestException as e:
                if attempt < self.MAX_RETRIES - 1:
                    # Calculate exponential backoff delay
                    delay = self.BASE_DELAY * (2 ** attempt)
                    logger.warning(
                        f"Request failed (attempt {attempt + 1}/{self.MAX_RETRIES}): {e}. "
                        f"Retrying in {delay} seconds..."
                    )
                    time.sleep(delay)
                else:
                    logger.error(
                        f"All {self.MAX_RETRIES} retry attempts failed. Last error: {e}"
                    )
                    raise FetchError(f"Failed to fetch {url}: {e}") from e
