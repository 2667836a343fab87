"""Page requests and paginated results."""

from dataclasses import dataclass
from typing import Generic, TypeVar

from videohub.domain.enums import SortDirection
from videohub.errors import InvalidOperation

T = TypeVar("T")


@dataclass(frozen=True)
class PageRequest:
    """A 1-indexed page of a sorted result set."""

    page: int = 1
    limit: int = 10
    sort_by: str = "created_at"
    direction: SortDirection = SortDirection.DESC

    def __post_init__(self) -> None:
        if self.page < 1:
            raise InvalidOperation(f"page must be >= 1, got {self.page}")
        if self.limit < 1:
            raise InvalidOperation(f"limit must be >= 1, got {self.limit}")
        object.__setattr__(self, "direction", SortDirection(self.direction))

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit

    @property
    def sort(self) -> list[tuple[str, SortDirection]]:
        return [(self.sort_by, self.direction)]

    def capped(self, max_limit: int) -> "PageRequest":
        """Return this request with the limit clamped to ``max_limit``."""
        if self.limit <= max_limit:
            return self
        return PageRequest(
            page=self.page,
            limit=max_limit,
            sort_by=self.sort_by,
            direction=self.direction,
        )


@dataclass
class Page(Generic[T]):
    """One page of results plus the totals needed to navigate."""

    items: list[T]
    total: int
    page: int
    limit: int

    @property
    def has_next(self) -> bool:
        return self.page * self.limit < self.total

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    @property
    def total_pages(self) -> int:
        if self.total == 0:
            return 0
        return (self.total + self.limit - 1) // self.limit
