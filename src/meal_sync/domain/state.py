"""Per-collection fetch state."""

from dataclasses import dataclass, field
from enum import StrEnum

from meal_sync.domain.errors import ErrorInfo, SyncError
from meal_sync.domain.filters import FilterSpec
from meal_sync.domain.records import MealRecord


class FetchStatus(StrEnum):
    """Loading lifecycle of a collection."""

    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    LOADING_MORE = "loading_more"
    ERROR = "error"


class FetchMode(StrEnum):
    """Kinds of fetch requests."""

    INITIAL = "initial"
    REFRESH = "refresh"
    LOAD_MORE = "load_more"


@dataclass(frozen=True)
class CollectionKey:
    """Identity of a record collection: owner plus optional ISO date."""

    owner_id: str
    date: str | None = None

    @property
    def is_dated(self) -> bool:
        return self.date is not None


@dataclass
class PaginationCursor:
    """Page position of a flat list."""

    page: int = 0
    has_more: bool = True


@dataclass
class CollectionState:
    """Mutable state for one collection key.

    ``generation`` counts issued requests; ``in_flight`` holds the generation
    of the request currently allowed to publish, or ``None``.
    """

    key: CollectionKey
    filters: FilterSpec = field(default_factory=FilterSpec)
    records: list[MealRecord] = field(default_factory=list)
    visible: list[MealRecord] = field(default_factory=list)
    status: FetchStatus = FetchStatus.IDLE
    error: SyncError | None = None
    cursor: PaginationCursor = field(default_factory=PaginationCursor)
    generation: int = 0
    in_flight: int | None = None
    in_flight_mode: FetchMode | None = None
    evaluated: bool = False

    @property
    def is_loading(self) -> bool:
        return self.in_flight is not None

    @property
    def loading_more(self) -> bool:
        return self.in_flight_mode is FetchMode.LOAD_MORE

    def begin(self, mode: FetchMode) -> int:
        """Start a request and return its generation."""
        self.generation += 1
        self.in_flight = self.generation
        self.in_flight_mode = mode
        if mode is FetchMode.LOAD_MORE:
            self.status = FetchStatus.LOADING_MORE
        else:
            self.status = FetchStatus.LOADING
        return self.generation

    def is_current(self, generation: int) -> bool:
        return generation == self.generation

    def finish(self, generation: int) -> None:
        if self.in_flight == generation:
            self.in_flight = None
            self.in_flight_mode = None

    def find(self, record_id: int | str) -> MealRecord | None:
        for record in self.records:
            if record.id == record_id:
                return record
        return None

    def replace_record(self, updated: MealRecord) -> None:
        self.records = [
            updated if record.id == updated.id else record for record in self.records
        ]


@dataclass(frozen=True)
class CollectionView:
    """Snapshot returned to callers after each operation."""

    key: CollectionKey
    records: list[MealRecord]
    visible: list[MealRecord]
    status: FetchStatus
    has_more: bool
    page: int
    filters: FilterSpec
    error: ErrorInfo | None = None

    @classmethod
    def of(cls, state: CollectionState) -> "CollectionView":
        return cls(
            key=state.key,
            records=list(state.records),
            visible=list(state.visible),
            status=state.status,
            has_more=state.cursor.has_more,
            page=state.cursor.page,
            filters=state.filters,
            error=ErrorInfo.from_error(state.error) if state.error else None,
        )
