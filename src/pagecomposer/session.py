"""
PageComposer - Composer Session

The surface a user interface drives: one registry of uploaded sources,
one page catalog, and the operations that edit and assemble it.

All catalog mutations are expected to come from a single controlling
thread. Assembly may run in the background; while it is in flight every
structural mutation is rejected with SessionBusy, and the assembly works
on a snapshot taken when it was requested.
"""

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any

from pagecomposer.services import assembly, diagnostics, reorder
from pagecomposer.services.assembly import RangeAssemblyResult
from pagecomposer.services.diagnostics import Advisory
from pagecomposer.services.page_catalog import PageCatalog
from pagecomposer.services.reorder import Direction, DragGesture
from pagecomposer.services.source_registry import SourceRegistry
from pagecomposer.services.thumbnails import ThumbnailCache
from pagecomposer.utils.config_manager import ConfigManager, get_config_manager
from pagecomposer.utils.exceptions import SessionBusy, SourceUnreadable
from pagecomposer.utils.logger import logger


@dataclass
class AddSourceResult:
    """Outcome of adding one source in a batch."""

    name: str
    source_id: str | None = None
    page_count: int = 0
    error: SourceUnreadable | None = None

    @property
    def success(self) -> bool:
        return self.error is None


class ComposerSession:
    """Editing session for one composed document."""

    def __init__(self, config: ConfigManager | None = None) -> None:
        """Initialize an empty session.

        Args:
            config: Configuration source, defaults to the global manager
        """
        self.config = config or get_config_manager()
        self.registry = SourceRegistry(max_workers=int(self.config.get("assembly.max_workers", 4)))
        self.catalog = PageCatalog()
        self.thumbnails = ThumbnailCache(
            self.registry,
            cache_size=int(self.config.get("preview.cache_size", 200)),
            default_scale=float(self.config.get("preview.scale", 0.5)),
        )
        self.producer: str | None = self.config.get("assembly.producer")
        self._drag = DragGesture(self.catalog)
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="assembly")
        self._state_lock = threading.Lock()
        self._assemblies_in_flight = 0

    def __enter__(self) -> "ComposerSession":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Assembly bookkeeping
    # ------------------------------------------------------------------

    @property
    def busy(self) -> bool:
        """True while an assembly is in flight."""
        with self._state_lock:
            return self._assemblies_in_flight > 0

    def _ensure_idle(self, operation: str) -> None:
        if self.busy:
            raise SessionBusy(operation)

    def _begin_assembly(self) -> None:
        with self._state_lock:
            self._assemblies_in_flight += 1

    def _end_assembly(self) -> None:
        with self._state_lock:
            self._assemblies_in_flight -= 1

    # ------------------------------------------------------------------
    # Sources
    # ------------------------------------------------------------------

    def add_source(self, data: bytes, name: str = "") -> str:
        """Register a file and append all of its pages to the catalog.

        Returns:
            The new source id

        Raises:
            SourceUnreadable: If the file does not parse. The catalog is
                unchanged and the source is not kept.
        """
        self._ensure_idle("add a source")
        source_id = self.registry.add_source(data, name)
        try:
            self.catalog.append_source(self.registry, source_id)
        except SourceUnreadable:
            self.registry.discard(source_id)
            raise
        return source_id

    def add_sources(self, files: list[tuple[bytes, str]]) -> list[AddSourceResult]:
        """Add several files at once.

        Sources are parsed concurrently; their pages are appended in the
        order the files were given. A file that fails to parse is reported
        in its result and does not affect the others.
        """
        self._ensure_idle("add sources")
        source_ids = [self.registry.add_source(data, name) for data, name in files]
        resolved = self.registry.resolve_many(source_ids)

        results = []
        for source_id, outcome in zip(source_ids, resolved):
            name = self.registry.get(source_id).name
            if isinstance(outcome, SourceUnreadable):
                self.registry.discard(source_id)
                results.append(AddSourceResult(name=name, error=outcome))
                continue
            pages = self.catalog.append_source(self.registry, source_id)
            results.append(AddSourceResult(name=name, source_id=source_id, page_count=len(pages)))
        return results

    def remove_source(self, source_id: str) -> int:
        """Remove every page of a source and release the source.

        Returns:
            Number of pages removed from the catalog
        """
        self._ensure_idle("remove a source")
        removed = self.catalog.remove_source_references(source_id)
        self.thumbnails.invalidate_source(source_id)
        self.registry.discard(source_id)
        return removed

    # ------------------------------------------------------------------
    # Pages
    # ------------------------------------------------------------------

    def list_pages(self) -> list[dict]:
        """Return the catalog in order, one dictionary per page.

        The ``preview`` entry is an opaque key; pass the page id to
        get_preview() to obtain the image.
        """
        pages = []
        for page in self.catalog:
            entry = page.to_dict()
            entry["preview"] = self.thumbnails.key_for(page.source_id, page.source_page_index)
            pages.append(entry)
        return pages

    def get_preview(self, page_id: str, scale: float | None = None) -> bytes:
        """Return a JPEG preview of a page, without user rotation."""
        page = self.catalog.get(page_id)
        return self.thumbnails.get(page.source_id, page.source_page_index, scale)

    def move_page(self, page_id: str, direction: "Direction | str") -> bool:
        self._ensure_idle("move a page")
        return reorder.move_one_step(self.catalog, page_id, direction)

    def drag_page(self, from_index: int, to_index: int) -> int:
        self._ensure_idle("reorder pages")
        return reorder.drag_to(self.catalog, from_index, to_index)

    def begin_drag(self, index: int) -> None:
        self._ensure_idle("reorder pages")
        self._drag.start(index)

    def drag_over(self, index: int) -> int | None:
        self._ensure_idle("reorder pages")
        return self._drag.over(index)

    def end_drag(self) -> None:
        self._drag.end()

    def reverse_pages(self) -> None:
        self._ensure_idle("reorder pages")
        reorder.reverse(self.catalog)

    def rotate_page(self, page_id: str, degrees: int) -> int:
        self._ensure_idle("rotate a page")
        return self.catalog.rotate(page_id, degrees)

    def rotate_all_pages(self, degrees: int) -> None:
        """Rotate every page of the catalog by *degrees*."""
        self._ensure_idle("rotate pages")
        self.catalog.rotate_all(degrees)

    def remove_page(self, page_id: str) -> bool:
        self._ensure_idle("remove a page")
        return self.catalog.remove_reference(page_id)

    # ------------------------------------------------------------------
    # Diagnostics and assembly
    # ------------------------------------------------------------------

    def get_advisories(self) -> list[str]:
        return [a.message for a in self.advisories()]

    def advisories(self) -> list[Advisory]:
        return diagnostics.analyze(self.catalog.snapshot(), self.registry)

    def assemble(self) -> bytes:
        """Assemble the catalog into one PDF.

        Raises:
            EmptyPlan: If the catalog is empty.
            AssemblyFailed: If any page cannot be copied.
        """
        snapshot = self.catalog.snapshot()
        self._begin_assembly()
        try:
            return assembly.assemble(snapshot, self.registry, self.producer)
        finally:
            self._end_assembly()

    def assemble_async(self) -> "Future[bytes]":
        """Assemble in the background.

        The catalog is snapshotted immediately. Until the returned future
        settles, catalog mutations raise SessionBusy.
        """
        snapshot = self.catalog.snapshot()

        def _run() -> bytes:
            try:
                return assembly.assemble(snapshot, self.registry, self.producer)
            finally:
                self._end_assembly()

        self._begin_assembly()
        try:
            return self._executor.submit(_run)
        except RuntimeError:
            self._end_assembly()
            raise

    def assemble_ranges(
        self, source_id: str, ranges: list[list[int]]
    ) -> RangeAssemblyResult:
        """Split one source into one document per range of 0-based indices."""
        self._begin_assembly()
        try:
            return assembly.assemble_ranges(self.registry, source_id, ranges, self.producer)
        finally:
            self._end_assembly()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Wait for pending assemblies and release every source."""
        self._executor.shutdown(wait=True)
        self.thumbnails.clear()
        self.catalog.clear()
        self.registry.close()
        logger.info("Session closed")
