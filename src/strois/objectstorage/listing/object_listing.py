"""Lazy ListObjectsV2 iteration.

:class:`ObjectListing` walks a prefix page by page without materializing
the whole result set. It is an explicit state machine::

    NEEDS_NEXT_PAGE ──fetch──> HAS_BUFFERED_ENTRIES ──buffer empty──┐
          ^                                                          │
          └──────────── continuation token recorded ────────────────┤
                                                                     v
                                        no token / fetch error ─> EXHAUSTED

A page fetch that fails raises its typed error from ``next()`` exactly
once; the listing is then exhausted and never contacts the store again.
Entries come out in the order the store returns them.
"""

from collections import deque
from enum import Enum
from typing import TYPE_CHECKING, Iterator, Optional

from strois.core import get_logger

from ..signing import S3Action
from ..xml_codec import ListPage, ObjectEntry, parse_list_objects

if TYPE_CHECKING:
    from ..bucket import Bucket

logger = get_logger(__name__)


class ListingState(str, Enum):
    NEEDS_NEXT_PAGE = "needs_next_page"
    HAS_BUFFERED_ENTRIES = "has_buffered_entries"
    EXHAUSTED = "exhausted"


class ObjectListing:
    """Iterator over the objects of a bucket under a key prefix."""

    def __init__(
        self,
        bucket: "Bucket",
        prefix: str = "",
        max_keys: Optional[int] = None,
        start_after: Optional[str] = None,
    ):
        """Initialize the listing. Nothing is fetched until the first ``next``.

        Args:
            bucket: Bucket to list
            prefix: Only keys starting with this prefix are listed
            max_keys: Page size requested from the store
            start_after: Only keys sorting after this one are listed
        """
        self.bucket = bucket
        self.prefix = prefix
        self.max_keys = max_keys
        self.start_after = start_after
        self.state = ListingState.NEEDS_NEXT_PAGE
        self.pages_fetched = 0
        self._buffer: deque[ObjectEntry] = deque()
        self._continuation_token: Optional[str] = None

    def __iter__(self) -> Iterator[ObjectEntry]:
        return self

    def __next__(self) -> ObjectEntry:
        while True:
            if self.state is ListingState.EXHAUSTED:
                raise StopIteration

            if self.state is ListingState.HAS_BUFFERED_ENTRIES:
                entry = self._buffer.popleft()
                if not self._buffer:
                    self.state = (
                        ListingState.NEEDS_NEXT_PAGE
                        if self._continuation_token
                        else ListingState.EXHAUSTED
                    )
                return entry

            self._fetch_next_page()

    def _fetch_next_page(self) -> None:
        try:
            page = self._request_page()
        except Exception:
            self.state = ListingState.EXHAUSTED
            raise

        self.pages_fetched += 1
        self._continuation_token = page.next_continuation_token
        self._buffer.extend(page.entries)

        if self._buffer:
            self.state = ListingState.HAS_BUFFERED_ENTRIES
        elif self._continuation_token:
            # Stores may legally send an empty page with more to come
            self.state = ListingState.NEEDS_NEXT_PAGE
        else:
            self.state = ListingState.EXHAUSTED

        logger.debug(
            "Listing page fetched",
            bucket=self.bucket.name,
            prefix=self.prefix,
            page=self.pages_fetched,
            entries=len(page.entries),
            has_more=self._continuation_token is not None,
        )

    def _request_page(self) -> ListPage:
        query = {"list-type": "2", "prefix": self.prefix}
        if self.max_keys is not None:
            query["max-keys"] = str(self.max_keys)
        if self._continuation_token is not None:
            query["continuation-token"] = self._continuation_token
        elif self.start_after is not None:
            query["start-after"] = self.start_after

        action = S3Action(
            name="ListObjectsV2",
            method="GET",
            bucket=self.bucket.name,
            query=query,
        )
        with self.bucket.client.execute(action) as response:
            body = response.read()
        return parse_list_objects(body)
