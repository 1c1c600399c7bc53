"""
PageComposer - Source Registry

Holds every uploaded source document keyed by a stable id. Sources are
registered as raw bytes and parsed lazily, once, on first use; the parsed
handle is then cached until the source is discarded or the registry closed.
"""

import logging
import threading
import uuid
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

import pikepdf

from pagecomposer.config import DEFAULT_MAX_WORKERS, DEFAULT_SOURCE_NAME
from pagecomposer.services import pdf_backend
from pagecomposer.utils.exceptions import (
    ReferenceOutOfRange,
    SourceUnreadable,
    UnknownSource,
)

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class SourceDocument:
    """One uploaded file.

    Attributes:
        source_id: Opaque token, unique per upload
        name: Display name (file name)
        data: Raw file contents, owned by the registry
        handle: Parsed document, None until first resolved
        lock: Serializes parsing and every later access to the handle
    """

    source_id: str
    name: str
    data: bytes
    handle: pikepdf.Pdf | None = None
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    @property
    def is_parsed(self) -> bool:
        return self.handle is not None

    @property
    def page_count(self) -> int:
        """Number of pages.

        Raises:
            UnknownSource: If the source is not parsed yet or was released.
        """
        if self.handle is None:
            raise UnknownSource(self.source_id)
        return len(self.handle.pages)

    def release(self) -> None:
        """Close the parsed handle and drop the raw bytes."""
        with self.lock:
            if self.handle is not None:
                self.handle.close()
                self.handle = None
            self.data = b""


class SourceRegistry:
    """Registry of source documents with memoized, single-flight parsing."""

    def __init__(self, max_workers: int = DEFAULT_MAX_WORKERS) -> None:
        """Initialize an empty registry.

        Args:
            max_workers: Threads used by resolve_many to parse in parallel
        """
        self._sources: dict[str, SourceDocument] = {}
        self._lock = threading.Lock()
        self._counter = 0
        self.max_workers = max(1, max_workers)

    def __contains__(self, source_id: object) -> bool:
        return source_id in self._sources

    def __len__(self) -> int:
        return len(self._sources)

    def source_ids(self) -> list[str]:
        """Return the ids of all registered sources in registration order."""
        with self._lock:
            return list(self._sources)

    def add_source(self, data: bytes, name: str = "") -> str:
        """Register raw bytes under a newly minted id.

        Parsing is deferred until the source is first resolved, so this
        never fails.

        Args:
            data: Raw file contents
            name: Display name, defaults to a numbered document name

        Returns:
            The new source id
        """
        source_id = uuid.uuid4().hex
        with self._lock:
            self._counter += 1
            if not name:
                name = DEFAULT_SOURCE_NAME.format(n=self._counter)
            self._sources[source_id] = SourceDocument(source_id=source_id, name=name, data=data)

        logger.info("Registered source %s (%s, %d bytes)", source_id, name, len(data))
        return source_id

    def get(self, source_id: str) -> SourceDocument:
        """Return the source entry without parsing it.

        Raises:
            UnknownSource: If the id is not registered.
        """
        with self._lock:
            source = self._sources.get(source_id)
        if source is None:
            raise UnknownSource(source_id)
        return source

    def resolve(self, source_id: str) -> SourceDocument:
        """Return the parsed source, parsing it on first use.

        Concurrent callers resolving the same id wait on the source lock,
        so a source is parsed at most once.

        Raises:
            UnknownSource: If the id is not registered.
            SourceUnreadable: If the bytes do not parse.
        """
        source = self.get(source_id)
        if source.handle is not None:
            logger.debug("Source %s served from cache", source_id)
            return source

        with source.lock:
            if source.handle is None:
                source.handle = pdf_backend.parse_document(
                    source.data, source_id=source_id, name=source.name
                )
                logger.info(
                    "Parsed source %s (%s): %d page(s)",
                    source_id,
                    source.name,
                    len(source.handle.pages),
                )
        return source

    def resolve_many(self, source_ids: Iterable[str]) -> list[SourceDocument | SourceUnreadable]:
        """Resolve several sources concurrently.

        Returns:
            One entry per requested id, in the requested order: the parsed
            source, or the SourceUnreadable error raised while parsing it.
        """
        source_ids = list(source_ids)
        if not source_ids:
            return []

        def _resolve_one(source_id: str) -> SourceDocument | SourceUnreadable:
            try:
                return self.resolve(source_id)
            except SourceUnreadable as e:
                logger.warning("Source %s could not be parsed: %s", source_id, e)
                return e

        workers = min(self.max_workers, len(source_ids))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            return list(pool.map(_resolve_one, source_ids))

    def page_count(self, source_id: str) -> int:
        """Return the number of pages of a source, resolving it if needed."""
        return self.resolve(source_id).page_count

    def _check_index(self, source: SourceDocument, page_index: int) -> None:
        page_count = source.page_count
        if page_index < 0 or page_index >= page_count:
            raise ReferenceOutOfRange(source.source_id, page_index, page_count)

    def page_geometry(self, source_id: str, page_index: int) -> tuple[float, float]:
        """Return the (width, height) of a source page in points."""
        source = self.resolve(source_id)
        with source.lock:
            self._check_index(source, page_index)
            return pdf_backend.page_geometry(source.handle, page_index)

    def page_rotation(self, source_id: str, page_index: int) -> int:
        """Return the rotation a source page already carries."""
        source = self.resolve(source_id)
        with source.lock:
            self._check_index(source, page_index)
            return pdf_backend.get_page_rotation(source.handle.pages[page_index])

    def discard(self, source_id: str) -> bool:
        """Remove a source and release its bytes and parsed handle.

        Returns:
            True if the source was registered
        """
        with self._lock:
            source = self._sources.pop(source_id, None)
        if source is None:
            return False
        source.release()
        logger.info("Discarded source %s (%s)", source_id, source.name)
        return True

    def close(self) -> None:
        """Release every source. The registry is empty afterwards."""
        with self._lock:
            sources = list(self._sources.values())
            self._sources.clear()
        for source in sources:
            source.release()
        if sources:
            logger.info("Released %d source(s)", len(sources))
