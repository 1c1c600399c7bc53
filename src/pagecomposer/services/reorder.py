"""
PageComposer - Page Reordering

Pure operations on the order of a PageCatalog: single-step moves, drag
reordering by extraction and reinsertion, and reversal. No I/O, and the
source registry is never touched.
"""

import logging
from enum import Enum

from pagecomposer.services.page_catalog import PageCatalog

logger = logging.getLogger(__name__)


class Direction(Enum):
    """Direction of a single-step move."""

    LEFT = -1
    RIGHT = 1

    @classmethod
    def parse(cls, value: "Direction | str") -> "Direction":
        """Accept a Direction or one of "left", "right", "up", "down"."""
        if isinstance(value, cls):
            return value
        aliases = {"left": cls.LEFT, "up": cls.LEFT, "right": cls.RIGHT, "down": cls.RIGHT}
        try:
            return aliases[str(value).lower()]
        except KeyError:
            raise ValueError(f"Unknown direction: {value!r}") from None


def move_one_step(catalog: PageCatalog, page_id: str, direction: "Direction | str") -> bool:
    """Swap a page with its neighbour in the given direction.

    Moving past either end is a no-op.

    Returns:
        True if the page moved

    Raises:
        UnknownPage: If the id is not in the catalog.
    """
    step = Direction.parse(direction).value
    pages = catalog.pages
    index = catalog.index_of(page_id)
    new_index = index + step

    if new_index < 0 or new_index >= len(pages):
        return False

    pages[index], pages[new_index] = pages[new_index], pages[index]
    logger.debug("Moved page %s from %d to %d", page_id, index, new_index)
    return True


def _clamp(index: int, length: int) -> int:
    return max(0, min(index, length - 1))


def drag_to(catalog: PageCatalog, from_index: int, to_index: int) -> int:
    """Move the page at *from_index* so that it ends up at *to_index*.

    Pages between the two positions shift by one and keep their relative
    order. Indices are clamped to the catalog bounds so the call always
    succeeds.

    Returns:
        The final index of the moved page (-1 for an empty catalog)
    """
    pages = catalog.pages
    if not pages:
        return -1

    from_index = _clamp(from_index, len(pages))
    to_index = _clamp(to_index, len(pages))
    if from_index == to_index:
        return to_index

    page = pages.pop(from_index)
    pages.insert(to_index, page)
    logger.debug("Dragged page %s from %d to %d", page.page_id, from_index, to_index)
    return to_index


def reverse(catalog: PageCatalog) -> None:
    """Reverse the order of the catalog."""
    catalog.pages.reverse()


class DragGesture:
    """Tracks one pointer drag across candidate drop slots.

    Each ``over()`` call moves the dragged page straight into the hovered
    slot, so the catalog order always equals the displayed order. Hovering
    the same slot twice does nothing.
    """

    def __init__(self, catalog: PageCatalog) -> None:
        self._catalog = catalog
        self.current_index: int | None = None

    @property
    def active(self) -> bool:
        return self.current_index is not None

    def start(self, index: int) -> None:
        """Begin dragging the page at *index*."""
        if not 0 <= index < len(self._catalog):
            raise IndexError(f"No page at index {index}")
        self.current_index = index

    def over(self, index: int) -> int | None:
        """Pointer entered the slot at *index*.

        Returns:
            The dragged page's index after the move, or None if no drag
            is in progress
        """
        if self.current_index is None:
            return None
        if index != self.current_index:
            self.current_index = drag_to(self._catalog, self.current_index, index)
        return self.current_index

    def end(self) -> None:
        """Finish the gesture. The order reached so far is kept."""
        self.current_index = None
