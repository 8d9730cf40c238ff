"""
Offset/limit pagination for Spotify listings.

Both listings an export needs (the user's playlists, and the items of one
playlist) use the same contract: request a page at an offset, and a page
shorter than the requested limit marks the end of the data. This module
walks that contract once, with the error behaviour selected per call site:

    ErrorPolicy.ABORT       Re-raise the fetch error. Used for playlist
                            enumeration, where no playlists means no report.
    ErrorPolicy.SKIP        Log the error and end the sequence early. Used
                            for a single playlist's tracks, so one broken
                            playlist does not abort the export.

Usage:
    for item in paginate_all(fetch_page, limit=100, policy=ErrorPolicy.SKIP,
                             description="playlist 'Road Trip'"):
        ...
"""

from enum import Enum
from typing import Any, Callable, Iterator, Sequence

from playlist_exporter.core.exceptions import PaginationError
from playlist_exporter.core.logger import get_logger

logger = get_logger(__name__)


FetchPage = Callable[[int, int], Sequence[Any]]


class ErrorPolicy(Enum):
    """What paginate_all() does when a page fetch fails."""
    ABORT = "abort"
    SKIP = "skip"


def paginate_all(
    fetch_page: FetchPage,
    limit: int,
    policy: ErrorPolicy = ErrorPolicy.ABORT,
    description: str = "listing"
) -> Iterator[Any]:
    """
    Lazily yield every item of an offset/limit listing.

    Args:
        fetch_page: Callable taking (offset, limit) and returning the items
                    of that page. Must raise PaginationError on failure.
        limit: Page size to request. Must be positive.
        policy: Error handling policy, see ErrorPolicy.
        description: Name of the listing used in log messages.

    Yields:
        Items in the order the pages return them.

    Raises:
        PaginationError: Under ErrorPolicy.ABORT, if any page fetch fails.
        ValueError: If limit is not positive.

    Behavior:
        1. Start at offset 0
        2. Fetch a page and yield all of its items
        3. Stop if the page held fewer than limit items (short page)
        4. Otherwise advance offset by limit and repeat

        A listing whose size is an exact multiple of limit therefore ends
        with one extra request returning an empty page.

    Note:
        The returned generator is single-use. Call paginate_all() again
        to restart from offset 0.
    """
    if limit < 1:
        raise ValueError(f"Page size must be positive, got {limit}")

    offset = 0
    fetched = 0

    while True:
        logger.debug(f"Fetching {description} (offset: {offset}, limit: {limit})")
        try:
            page = fetch_page(offset, limit)
        except PaginationError as e:
            if policy is ErrorPolicy.ABORT:
                raise
            logger.error(
                f"Failed to fetch {description} at offset {offset}: {e.message}. "
                f"Skipping remaining items ({fetched} already processed)"
            )
            return

        fetched += len(page)
        yield from page

        if len(page) < limit:
            break
        offset += limit

    logger.debug(f"Finished {description}: {fetched} items")
