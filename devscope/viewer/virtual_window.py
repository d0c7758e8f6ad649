"""
Windowed rendering of long ordered sequences
"""
import math
from dataclasses import dataclass
from typing import Generic, Iterator, List, Sequence, TypeVar

T = TypeVar("T")

DEFAULT_BUFFER = 5


@dataclass(frozen=True)
class VisibleRange:
    """Half-open index range [start, end)"""

    start: int
    end: int

    def __len__(self) -> int:
        return self.end - self.start

    def __iter__(self) -> Iterator[int]:
        return iter(range(self.start, self.end))

    def __contains__(self, index: int) -> bool:
        return self.start <= index < self.end


def compute_visible_range(
    total_item_count: int,
    item_extent: float,
    scroll_offset: float,
    viewport_extent: float,
    buffer_count: int = DEFAULT_BUFFER,
) -> VisibleRange:
    """
    Indices to materialize for the current viewport.

    Cost does not depend on total_item_count. The range holds every item that
    intersects [scroll_offset, scroll_offset + viewport_extent) plus
    buffer_count items past the bottom edge.
    """
    if item_extent <= 0:
        raise ValueError("item_extent must be positive")

    total = max(0, total_item_count)
    start = max(0, math.floor(scroll_offset / item_extent))
    start = min(start, total)
    end = min(total, math.ceil((scroll_offset + viewport_extent) / item_extent) + buffer_count)
    return VisibleRange(start, max(start, end))


@dataclass(frozen=True)
class PlacedItem(Generic[T]):
    """An item with its absolute offset from the top of the scroll extent"""

    index: int
    offset: float
    item: T


class VirtualWindow:
    """
    Scroll state over a sequence of fixed-extent items.

    Recompute on scroll, on a new sequence (e.g. after filtering) and on a
    viewport resize; each recomputation touches only the visible items.
    """

    def __init__(
        self,
        item_extent: float = 1,
        viewport_extent: float = 0,
        buffer_count: int = DEFAULT_BUFFER,
    ):
        if item_extent <= 0:
            raise ValueError("item_extent must be positive")
        self.item_extent = item_extent
        self.viewport_extent = max(0, viewport_extent)
        self.buffer_count = buffer_count
        self.total_item_count = 0
        self.scroll_offset = 0.0

    @property
    def total_extent(self) -> float:
        return self.total_item_count * self.item_extent

    @property
    def max_scroll_offset(self) -> float:
        return max(0.0, self.total_extent - self.viewport_extent)

    def visible_range(self) -> VisibleRange:
        return compute_visible_range(
            self.total_item_count,
            self.item_extent,
            self.scroll_offset,
            self.viewport_extent,
            self.buffer_count,
        )

    def _clamp(self):
        self.scroll_offset = min(max(0.0, self.scroll_offset), self.max_scroll_offset)

    def set_total(self, total_item_count: int):
        """The underlying sequence changed"""
        self.total_item_count = max(0, total_item_count)
        self._clamp()

    def resize(self, viewport_extent: float):
        """The container changed size"""
        self.viewport_extent = max(0, viewport_extent)
        self._clamp()

    def scroll_to(self, offset: float):
        self.scroll_offset = offset
        self._clamp()

    def scroll_by(self, delta: float):
        self.scroll_to(self.scroll_offset + delta)

    def scroll_to_index(self, index: int):
        """Scroll the minimum distance that brings ``index`` fully into view"""
        top = index * self.item_extent
        bottom = top + self.item_extent
        if top < self.scroll_offset:
            self.scroll_to(top)
        elif bottom > self.scroll_offset + self.viewport_extent:
            self.scroll_to(bottom - self.viewport_extent)

    def materialize(self, items: Sequence[T]) -> List[PlacedItem[T]]:
        """The visible slice, each item placed at ``index * item_extent``"""
        if len(items) != self.total_item_count:
            self.set_total(len(items))
        return [
            PlacedItem(index=i, offset=i * self.item_extent, item=items[i])
            for i in self.visible_range()
        ]
