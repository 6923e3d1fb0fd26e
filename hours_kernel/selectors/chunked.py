"""
Module: hours_kernel.selectors.chunked
Responsibility: BulkRetriever -- fetches a large result set from a store
    that caps the number of rows per call, in bounded offset windows.
Architecture position: Kernel > Selectors.  Store-agnostic: it drives any
    ``fetch_page(offset, limit)`` callable, so the same loop serves the
    SQLAlchemy selectors and an in-memory fake.

Invariants enforced:
    - Completeness: pages are requested until a short page (fewer rows than
      the page size) is returned.  A full last page is followed by one more
      request that returns zero rows.
    - No gaps, no duplicates: offsets advance by exactly the page size, and
      the underlying query must have a total order (selectors order by id).
    - All-or-nothing: if any chunk fails, IncompleteRetrievalError is raised
      and the rows fetched so far are discarded.

Failure modes:
    - IncompleteRetrievalError when a chunk raises, or when the store returns
      more rows than the requested limit (the page contract is broken and
      the offsets can no longer be trusted).
"""

from collections.abc import Callable, Sequence
from typing import Generic, TypeVar

from hours_kernel.exceptions import IncompleteRetrievalError
from hours_kernel.logging_config import get_logger

logger = get_logger("selectors.chunked")

T = TypeVar("T")

# Observed row ceiling per call of the source store.
DEFAULT_PAGE_SIZE = 1000


class BulkRetriever(Generic[T]):
    """
    Chunked retrieval loop.

    Usage:
        retriever = BulkRetriever("flight_records", page_size=1000)
        rows = retriever.fetch_all(lambda offset, limit: query(offset, limit))
    """

    def __init__(self, source: str, page_size: int = DEFAULT_PAGE_SIZE):
        if page_size < 1:
            raise ValueError(f"page_size must be positive, got {page_size}")
        self.source = source
        self.page_size = page_size

    def fetch_all(self, fetch_page: Callable[[int, int], Sequence[T]]) -> list[T]:
        """
        Fetch every row by paging through ``fetch_page``.

        Args:
            fetch_page: Callable taking (offset, limit) and returning at most
                ``limit`` rows starting at ``offset``.

        Returns:
            All rows, in the order the store returned them.

        Raises:
            IncompleteRetrievalError: If any chunk fails or overflows.
        """
        rows: list[T] = []
        offset = 0
        chunks = 0

        while True:
            try:
                page = list(fetch_page(offset, self.page_size))
            except Exception as exc:
                logger.error(
                    "bulk_retrieval_chunk_failed",
                    extra={
                        "source": self.source,
                        "offset": offset,
                        "page_size": self.page_size,
                        "rows_fetched": len(rows),
                    },
                )
                raise IncompleteRetrievalError(
                    self.source, offset, self.page_size, len(rows),
                ) from exc

            if len(page) > self.page_size:
                logger.error(
                    "bulk_retrieval_page_overflow",
                    extra={
                        "source": self.source,
                        "offset": offset,
                        "page_size": self.page_size,
                        "page_rows": len(page),
                    },
                )
                raise IncompleteRetrievalError(
                    self.source, offset, self.page_size, len(rows),
                )

            chunks += 1
            rows.extend(page)
            logger.debug(
                "bulk_retrieval_chunk_fetched",
                extra={"source": self.source, "offset": offset, "rows": len(page)},
            )

            if len(page) < self.page_size:
                break
            offset += self.page_size

        logger.info(
            "bulk_retrieval_completed",
            extra={
                "source": self.source,
                "chunks": chunks,
                "rows": len(rows),
                "page_size": self.page_size,
            },
        )
        return rows
