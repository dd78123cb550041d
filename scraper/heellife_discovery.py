"""Fetcher for the HeelLife Discovery API through forwarding proxies."""
import logging
from datetime import datetime, timezone
from typing import Callable, Optional, Sequence
from urllib.parse import quote, urlencode

import requests

from processor.errors import SourceUnreachable

logger = logging.getLogger(__name__)

ForwardingPath = Callable[[str], str]


def corsproxy_path(url: str) -> str:
    """Route a request through corsproxy.io."""
    return f"https://corsproxy.io/?{quote(url, safe='')}"


def allorigins_path(url: str) -> str:
    """Route a request through the allorigins raw endpoint."""
    return f"https://api.allorigins.win/raw?url={quote(url, safe='')}"


DEFAULT_FORWARDING_PATHS: tuple[ForwardingPath, ...] = (
    corsproxy_path,
    allorigins_path,
)


def to_iso_utc(moment: datetime) -> str:
    """ISO 8601 UTC timestamp with milliseconds, e.g. 2025-04-28T12:00:00.000Z."""
    utc = moment.astimezone(timezone.utc)
    return utc.strftime('%Y-%m-%dT%H:%M:%S.') + f"{utc.microsecond // 1000:03d}Z"


def looks_like_json(body: str) -> bool:
    """
    Cheap structural check on a response body.

    Proxies happily return HTML error or rate-limit pages with a 200 status,
    so only bodies opening a JSON object or array are accepted.
    """
    stripped = body.strip()
    return stripped.startswith('{') or stripped.startswith('[')


class HeelLifeDiscoveryFetcher:
    """Fetches raw event search results from the HeelLife Discovery API."""

    BASE_URL = "https://heellife.unc.edu/api/discovery/event/search"
    RESULT_LIMIT = 50
    QUERY_TEXT = "Free Food"

    def __init__(
        self,
        forwarding_paths: Sequence[ForwardingPath] = DEFAULT_FORWARDING_PATHS,
        timeout: int = 30,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the fetcher.

        Args:
            forwarding_paths: Ordered URL rewrites tried one after another
            timeout: HTTP request timeout in seconds (default: 30)
            session: Optional requests session to issue requests with
        """
        if len(forwarding_paths) < 2:
            raise ValueError("At least two forwarding paths are required")
        self.forwarding_paths = tuple(forwarding_paths)
        self.timeout = timeout
        self.session = session or requests.Session()

    def build_target_url(self, now: datetime) -> str:
        """
        Build the Discovery API search URL for events starting after now.

        Args:
            now: Current moment; naive values are taken as local time

        Returns:
            Fully qualified search URL
        """
        params = {
            'startsAfter': to_iso_utc(now),
            'orderByField': 'startsOn',
            'orderByDirection': 'ascending',
            'status': 'Approved',
            'take': str(self.RESULT_LIMIT),
            'query': self.QUERY_TEXT
        }
        return f"{self.BASE_URL}?{urlencode(params)}"

    def fetch(self, now: datetime) -> str:
        """
        Fetch raw event data, falling back across forwarding paths.

        Args:
            now: Current moment, used as the start of the query window

        Returns:
            Raw response body of the first path that returned JSON

        Raises:
            SourceUnreachable: If no path returned valid data
        """
        target_url = self.build_target_url(now)
        last_error = None

        for attempt, build_path in enumerate(self.forwarding_paths, start=1):
            proxy_url = build_path(target_url)
            logger.info(
                f"Fetching event data (path {attempt}/{len(self.forwarding_paths)}): "
                f"{proxy_url}"
            )

            try:
                response = self.session.get(proxy_url, timeout=self.timeout)
            except requests.RequestException as e:
                logger.warning(f"Forwarding path {attempt} failed: {e}")
                last_error = e
                continue

            if not response.ok:
                logger.warning(
                    f"Forwarding path {attempt} returned HTTP {response.status_code}"
                )
                continue

            body = response.text
            if not looks_like_json(body):
                logger.warning(
                    f"Forwarding path {attempt} returned a non-JSON body, skipping"
                )
                continue

            logger.info(
                f"Fetched {len(body)} characters of event data via path {attempt}"
            )
            return body

        logger.error(
            f"All {len(self.forwarding_paths)} forwarding paths failed"
        )
        raise SourceUnreachable(
            "Failed to retrieve event data: no path returned valid data"
        ) from last_error
