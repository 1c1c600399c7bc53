"""
PageComposer - Page Preview Cache

Renders page previews on demand and keeps the most recently used ones in
an LRU cache.
"""

import logging
import threading
from collections import OrderedDict

from pagecomposer.config import DEFAULT_PREVIEW_CACHE_SIZE, DEFAULT_PREVIEW_SCALE
from pagecomposer.services import pdf_backend
from pagecomposer.services.source_registry import SourceRegistry

logger = logging.getLogger(__name__)

PreviewKey = tuple[str, int, float]


class ThumbnailCache:
    """LRU cache of rendered page previews.

    Previews are rendered without the user rotation; the display layer
    turns the image itself, so rotating a page never invalidates its entry.
    """

    def __init__(
        self,
        registry: SourceRegistry,
        cache_size: int = DEFAULT_PREVIEW_CACHE_SIZE,
        default_scale: float = DEFAULT_PREVIEW_SCALE,
    ) -> None:
        self._registry = registry
        self._cache: OrderedDict[PreviewKey, bytes] = OrderedDict()
        self._cache_size = max(1, cache_size)
        self.default_scale = default_scale
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._cache)

    def key_for(self, source_id: str, page_index: int, scale: float | None = None) -> PreviewKey:
        if scale is None:
            scale = self.default_scale
        return (source_id, page_index, float(scale))

    def _evict_cache(self) -> None:
        """Evict oldest items from cache."""
        while len(self._cache) > self._cache_size:
            self._cache.popitem(last=False)

    def get(self, source_id: str, page_index: int, scale: float | None = None) -> bytes:
        """Return JPEG bytes for a page, rendering it on a cache miss.

        Raises:
            PreviewUnavailable: If the page cannot be rendered.
            SourceUnreadable: If the source does not parse.
        """
        key = self.key_for(source_id, page_index, scale)
        with self._lock:
            if key in self._cache:
                self._cache.move_to_end(key)
                return self._cache[key]

        source = self._registry.resolve(source_id)
        with source.lock:
            image = pdf_backend.rasterize_page(
                source.handle, page_index, key[2], source_id=source_id
            )

        with self._lock:
            self._cache[key] = image
            self._evict_cache()
        logger.debug("Rendered preview for page %d of %s", page_index + 1, source_id)
        return image

    def invalidate_source(self, source_id: str) -> None:
        """Drop every cached preview of a source."""
        with self._lock:
            for key in [k for k in self._cache if k[0] == source_id]:
                del self._cache[key]

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()
