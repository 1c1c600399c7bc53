"""
PageComposer - Catalog Diagnostics

Advisory checks over the pages of a catalog. Advisories are informational
and never block assembly.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from pagecomposer.services.page_catalog import PageReference
from pagecomposer.services.source_registry import SourceRegistry
from pagecomposer.utils.exceptions import PageComposerError
from pagecomposer.utils.i18n import N_, _

logger = logging.getLogger(__name__)

MIXED_ORIENTATION = "MIXED_ORIENTATION"
MIXED_PAGE_SIZES = "MIXED_PAGE_SIZES"

_MESSAGES = {
    MIXED_ORIENTATION: N_("Mixed orientations detected (Portrait & Landscape)."),
    MIXED_PAGE_SIZES: N_("Multiple page dimensions found in stack."),
}


@dataclass(frozen=True)
class Advisory:
    """One diagnostic finding."""

    code: str
    message: str


def displayed_geometry(width: float, height: float, rotation: int) -> tuple[float, float]:
    """Swap width and height for pages turned by 90 or 270 degrees."""
    if rotation % 180:
        return height, width
    return width, height


def orientation_of(width: float, height: float) -> str:
    return "landscape" if width > height else "portrait"


def analyze(pages: Iterable[PageReference], registry: SourceRegistry) -> list[Advisory]:
    """Report geometry inconsistencies across the referenced pages.

    Args:
        pages: A catalog or a catalog snapshot
        registry: Registry resolving the referenced sources

    Returns:
        At most one advisory per checked dimension
    """
    orientations: set[str] = set()
    sizes: set[tuple[int, int]] = set()

    for page in pages:
        try:
            width, height = registry.page_geometry(page.source_id, page.source_page_index)
            source_rotation = registry.page_rotation(page.source_id, page.source_page_index)
        except PageComposerError as e:
            logger.warning("Skipping page %s in diagnostics: %s", page.page_id, e)
            continue

        width, height = displayed_geometry(width, height, source_rotation + page.rotation)
        orientations.add(orientation_of(width, height))
        sizes.add((round(width), round(height)))

    advisories = []
    if len(orientations) > 1:
        advisories.append(Advisory(MIXED_ORIENTATION, _(_MESSAGES[MIXED_ORIENTATION])))
    if len(sizes) > 1:
        advisories.append(Advisory(MIXED_PAGE_SIZES, _(_MESSAGES[MIXED_PAGE_SIZES])))
    return advisories
