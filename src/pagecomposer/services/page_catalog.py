"""
PageComposer - Page Catalog

Data model for the virtual output document: an ordered list of page
references, each pointing at one page of one source document plus a
user-applied rotation.
"""

import logging
import secrets
import string
from collections.abc import Iterator
from dataclasses import dataclass, replace

from pagecomposer.config import PAGE_ID_SUFFIX_LENGTH, ROTATION_STEP
from pagecomposer.services.source_registry import SourceRegistry
from pagecomposer.utils.exceptions import InvalidRotation, ReferenceOutOfRange, UnknownPage

logger = logging.getLogger(__name__)

_ID_ALPHABET = string.ascii_lowercase + string.digits


def _make_page_id(source_id: str, page_index: int) -> str:
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(PAGE_ID_SUFFIX_LENGTH))
    return f"{source_id}-p{page_index + 1}-{suffix}"


@dataclass
class PageReference:
    """One page of the virtual document.

    Attributes:
        page_id: Unique id, stable across reorders
        source_id: Id of the source document (lookup key, not ownership)
        source_page_index: 0-based page index within the source
        rotation: User rotation in degrees (0, 90, 180, 270)
        label: Source file name, for display only
    """

    page_id: str
    source_id: str
    source_page_index: int
    rotation: int = 0
    label: str = ""

    def __post_init__(self) -> None:
        """Validate rotation angle."""
        if self.rotation % ROTATION_STEP:
            raise InvalidRotation(self.rotation)
        self.rotation = self.rotation % 360

    def rotate(self, degrees: int) -> None:
        """Add *degrees* to the rotation, wrapping at 360."""
        if degrees % ROTATION_STEP:
            raise InvalidRotation(degrees)
        self.rotation = (self.rotation + degrees) % 360

    def to_dict(self) -> dict:
        """Convert to dictionary for display.

        Returns:
            Dictionary representation of the page reference
        """
        return {
            "page_id": self.page_id,
            "source_id": self.source_id,
            "source_page_index": self.source_page_index,
            "source_label": self.label,
            "rotation": self.rotation,
        }


class PageCatalog:
    """Ordered sequence of PageReference with unique page ids.

    The catalog only refers to sources by id. Resolving ids is the
    registry's job.
    """

    def __init__(self) -> None:
        self._pages: list[PageReference] = []

    def __len__(self) -> int:
        return len(self._pages)

    def __iter__(self) -> Iterator[PageReference]:
        return iter(self._pages)

    def __getitem__(self, index: int) -> PageReference:
        return self._pages[index]

    @property
    def pages(self) -> list[PageReference]:
        """The live reference list. Reorder operations splice it in place."""
        return self._pages

    def page_ids(self) -> list[str]:
        return [p.page_id for p in self._pages]

    def index_of(self, page_id: str) -> int:
        """Return the current position of a page.

        Raises:
            UnknownPage: If the id is not in the catalog.
        """
        for i, page in enumerate(self._pages):
            if page.page_id == page_id:
                return i
        raise UnknownPage(page_id)

    def get(self, page_id: str) -> PageReference:
        """Return the reference with the given id.

        Raises:
            UnknownPage: If the id is not in the catalog.
        """
        return self._pages[self.index_of(page_id)]

    def append_source(self, registry: SourceRegistry, source_id: str) -> list[PageReference]:
        """Append one reference per page of a source, in page order.

        Existing entries are left untouched. The source is resolved first,
        so an unreadable source raises before anything is appended.

        Returns:
            The newly appended references

        Raises:
            SourceUnreadable: If the source does not parse.
            UnknownSource: If the source is not registered.
        """
        source = registry.resolve(source_id)
        return self.append_pages(registry, source_id, range(source.page_count))

    def append_pages(
        self,
        registry: SourceRegistry,
        source_id: str,
        page_indices: "range | list[int]",
        rotation: int = 0,
    ) -> list[PageReference]:
        """Append references to selected pages of a source.

        Raises:
            ReferenceOutOfRange: If any index is outside the source. Nothing
                is appended in that case.
        """
        source = registry.resolve(source_id)
        page_count = source.page_count
        for idx in page_indices:
            if idx < 0 or idx >= page_count:
                raise ReferenceOutOfRange(source_id, idx, page_count)

        new_pages = [
            PageReference(
                page_id=_make_page_id(source_id, idx),
                source_id=source_id,
                source_page_index=idx,
                rotation=rotation,
                label=source.name,
            )
            for idx in page_indices
        ]
        self._pages.extend(new_pages)
        logger.info("Appended %d page(s) from %s", len(new_pages), source.name)
        return new_pages

    def remove_reference(self, page_id: str) -> bool:
        """Remove one reference. Unknown ids are ignored.

        Returns:
            True if a reference was removed
        """
        try:
            idx = self.index_of(page_id)
        except UnknownPage:
            return False
        del self._pages[idx]
        logger.info("Removed page %s", page_id)
        return True

    def remove_source_references(self, source_id: str) -> int:
        """Remove every reference pointing at a source.

        Returns:
            Number of references removed
        """
        before = len(self._pages)
        self._pages[:] = [p for p in self._pages if p.source_id != source_id]
        return before - len(self._pages)

    def rotate(self, page_id: str, degrees: int) -> int:
        """Rotate one page by *degrees* (a multiple of 90).

        Returns:
            The new rotation of the page

        Raises:
            UnknownPage: If the id is not in the catalog.
            InvalidRotation: If degrees is not a multiple of 90.
        """
        page = self.get(page_id)
        page.rotate(degrees)
        logger.info("Rotated page %s by %d° (now %d°)", page_id, degrees, page.rotation)
        return page.rotation

    def rotate_all(self, degrees: int) -> None:
        """Rotate every page by *degrees*."""
        if degrees % ROTATION_STEP:
            raise InvalidRotation(degrees)
        for page in self._pages:
            page.rotate(degrees)

    def clear(self) -> None:
        self._pages.clear()

    def snapshot(self) -> tuple[PageReference, ...]:
        """Return an immutable copy of the current order and rotations.

        Later mutations of the catalog do not affect the snapshot.
        """
        return tuple(replace(p) for p in self._pages)
