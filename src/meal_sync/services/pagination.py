"""Page bookkeeping for flat meal lists."""

from dataclasses import dataclass

from meal_sync.domain.state import CollectionState, PaginationCursor

PAGE_SIZE = 20


@dataclass
class PaginationController:
    """Tracks page index and end-of-data for a collection."""

    page_size: int = PAGE_SIZE

    def reset(self, cursor: PaginationCursor) -> None:
        cursor.page = 0
        cursor.has_more = True

    def offset(self, page: int) -> int:
        return page * self.page_size

    def next_page(self, cursor: PaginationCursor) -> int:
        return cursor.page + 1

    def record_page(self, cursor: PaginationCursor, page: int, batch_size: int) -> None:
        """Advance the cursor after a remote page arrived."""
        cursor.page = page
        cursor.has_more = batch_size >= self.page_size

    def record_cached(self, cursor: PaginationCursor, count: int) -> None:
        """Position the cursor at the last page a cached batch covers."""
        cursor.page = max(0, (count - 1) // self.page_size)
        cursor.has_more = count > 0 and count % self.page_size == 0

    def can_load_more(self, state: CollectionState) -> bool:
        """Return True when a load-more request should be honored."""
        return (
            not state.key.is_dated
            and not state.is_loading
            and state.cursor.has_more
            and state.evaluated
        )

    def needs_backfill(
        self, state: CollectionState, visible_count: int, threshold: int
    ) -> bool:
        """Return True when too few records are visible and more can be loaded.

        A failed collection waits for an explicit load-more or refresh.
        """
        return (
            visible_count < threshold
            and bool(state.records)
            and state.error is None
            and self.can_load_more(state)
        )
