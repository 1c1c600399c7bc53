"""
PageComposer - Document Assembly

Builds output documents from page references: every distinct source is
resolved once, the referenced pages are copied in order into a fresh
document, user rotation is composed onto the page's own rotation, and the
result is serialized.

Two plan shapes share the same copy-and-serialize core:
  - a full catalog, producing one document
  - a list of page ranges over one source, producing one document per range
"""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

import pikepdf

from pagecomposer.services import pdf_backend
from pagecomposer.services.page_catalog import PageCatalog, PageReference
from pagecomposer.services.source_registry import SourceRegistry
from pagecomposer.utils.exceptions import (
    AssemblyFailed,
    EmptyPlan,
    PageComposerError,
    SourceUnreadable,
    ValidationError,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Plans
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PlanEntry:
    """One page to copy into an output document."""

    source_id: str
    page_index: int
    rotation: int = 0


@dataclass(frozen=True)
class AssemblyPlan:
    """Immutable description of the documents to produce.

    Attributes:
        outputs: One tuple of entries per output document, in output order
    """

    outputs: tuple[tuple[PlanEntry, ...], ...]

    @classmethod
    def from_catalog(cls, pages: Iterable[PageReference]) -> "AssemblyPlan":
        """Plan a single document from a catalog or catalog snapshot."""
        entries = tuple(
            PlanEntry(p.source_id, p.source_page_index, p.rotation) for p in pages
        )
        return cls(outputs=(entries,))

    @classmethod
    def from_ranges(cls, source_id: str, ranges: Sequence[Sequence[int]]) -> "AssemblyPlan":
        """Plan one document per range of 0-based page indices of one source.

        Raises:
            ValidationError: If two ranges share a page.
        """
        seen: set[int] = set()
        outputs = []
        for page_range in ranges:
            indices = [int(i) for i in page_range]
            overlap = seen.intersection(indices)
            if overlap:
                raise ValidationError(
                    "ranges",
                    value=str(list(ranges)),
                    reason=f"page {min(overlap) + 1} appears in more than one range",
                )
            seen.update(indices)
            outputs.append(tuple(PlanEntry(source_id, i) for i in indices))
        return cls(outputs=tuple(outputs))

    @property
    def source_ids(self) -> list[str]:
        """Distinct sources referenced by the plan, in order of first use."""
        ids: dict[str, None] = {}
        for entries in self.outputs:
            for entry in entries:
                ids.setdefault(entry.source_id, None)
        return list(ids)


@dataclass
class RangeAssemblyResult:
    """Result of a range extraction.

    Attributes:
        outputs: One entry per requested range, None where the range failed
        errors: Error raised for each failed range, keyed by range index
    """

    outputs: list[bytes | None] = field(default_factory=list)
    errors: dict[int, PageComposerError] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return not self.errors

    @property
    def completed(self) -> list[bytes]:
        """Outputs that were produced, in range order."""
        return [o for o in self.outputs if o is not None]

    def raise_for_errors(self) -> list[bytes]:
        """Return all outputs, or raise the first range error.

        The raised error carries the outputs that did succeed in
        ``completed_outputs``.
        """
        if not self.errors:
            return self.completed
        first = self.errors[min(self.errors)]
        first.completed_outputs = self.completed
        raise first


# ---------------------------------------------------------------------------
# Range helpers
# ---------------------------------------------------------------------------


def parse_ranges(text: str) -> list[list[int]]:
    """Parse "1-5, 6-10, 12" into lists of 0-based page indices.

    Input is 1-indexed and inclusive. Empty parts are skipped.

    Raises:
        ValueError: On malformed parts, pages below 1, or reversed ranges.
    """
    ranges: list[list[int]] = []
    for part in text.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            if "-" in part:
                start_s, end_s = part.split("-", 1)
                start, end = int(start_s.strip()), int(end_s.strip())
            else:
                start = end = int(part)
        except ValueError:
            raise ValueError(
                f"Invalid range specification '{part}'. Use numbers and ranges like '1-5'."
            ) from None
        if start < 1 or end < start:
            raise ValueError(f"Invalid range specification '{part}'.")
        ranges.append(list(range(start - 1, end)))
    return ranges


def individual_ranges(page_count: int) -> list[list[int]]:
    """One single-page range per page."""
    return [[i] for i in range(page_count)]


def selection_range(indices: Iterable[int]) -> list[list[int]]:
    """A single range holding the selected pages in ascending order."""
    selected = sorted(set(indices))
    return [selected] if selected else []


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------


def _resolve_sources(registry: SourceRegistry, source_ids: list[str]) -> None:
    """Parse every source a plan needs before copying starts.

    Raises:
        AssemblyFailed: If any source cannot be resolved.
    """
    try:
        results = registry.resolve_many(source_ids)
    except PageComposerError as e:
        raise AssemblyFailed(str(e), cause=e) from e

    for result in results:
        if isinstance(result, SourceUnreadable):
            raise AssemblyFailed(str(result), cause=result) from result


def _assemble_entries(
    entries: Sequence[PlanEntry],
    registry: SourceRegistry,
    producer: str | None = None,
    output_index: int | None = None,
) -> bytes:
    """Copy the planned pages into a new document and serialize it.

    Raises:
        EmptyPlan: If there are no entries.
        AssemblyFailed: If any page copy or the serialization fails.
    """
    if not entries:
        raise EmptyPlan(output_index)

    target = pdf_backend.new_document()
    try:
        for entry in entries:
            source = registry.resolve(entry.source_id)
            with source.lock:
                if source.handle is None:
                    raise AssemblyFailed(
                        f"source {entry.source_id} was released", output_index=output_index
                    )
                page = pdf_backend.copy_page(
                    target, source.handle, entry.page_index, source_id=entry.source_id
                )
            if entry.rotation:
                current = pdf_backend.get_page_rotation(page)
                pdf_backend.set_page_rotation(page, current + entry.rotation)

        data = pdf_backend.serialize_document(target, producer)
    except AssemblyFailed:
        raise
    except (PageComposerError, pikepdf.PdfError, OSError) as e:
        logger.error("Assembly failed: %s", e)
        raise AssemblyFailed(str(e), cause=e, output_index=output_index) from e
    finally:
        target.close()

    logger.info("Assembled %d page(s) (%d bytes)", len(entries), len(data))
    return data


def assemble(
    pages: "PageCatalog | Iterable[PageReference] | AssemblyPlan",
    registry: SourceRegistry,
    producer: str | None = None,
) -> bytes:
    """Assemble one document from a catalog, a snapshot, or a single-output plan.

    The page list is copied into a plan before any work starts, so later
    catalog changes cannot affect this assembly.

    Raises:
        EmptyPlan: If there are no pages.
        AssemblyFailed: If any page cannot be copied or the output cannot
            be written. No bytes are returned in that case.
    """
    if isinstance(pages, AssemblyPlan):
        plan = pages
        if len(plan.outputs) != 1:
            raise ValueError("assemble() needs a plan with exactly one output")
    else:
        plan = AssemblyPlan.from_catalog(pages)

    entries = plan.outputs[0]
    if not entries:
        raise EmptyPlan()

    _resolve_sources(registry, plan.source_ids)
    return _assemble_entries(entries, registry, producer)


def assemble_ranges(
    registry: SourceRegistry,
    source_id: str,
    ranges: Sequence[Sequence[int]],
    producer: str | None = None,
) -> RangeAssemblyResult:
    """Extract page ranges of one source into one document per range.

    Each range is assembled independently: a failing range is recorded in
    the result and the remaining ranges still run.

    Raises:
        EmptyPlan: If no ranges were requested.
        AssemblyFailed: If the source itself cannot be resolved.
        ValidationError: If the ranges overlap.
    """
    plan = AssemblyPlan.from_ranges(source_id, ranges)
    if not plan.outputs:
        raise EmptyPlan()

    _resolve_sources(registry, [source_id])

    result = RangeAssemblyResult()
    for i, entries in enumerate(plan.outputs):
        try:
            result.outputs.append(_assemble_entries(entries, registry, producer, output_index=i))
        except (AssemblyFailed, EmptyPlan) as e:
            logger.warning("Range %d of source %s failed: %s", i + 1, source_id, e)
            result.outputs.append(None)
            result.errors[i] = e

    logger.info(
        "Extracted %d of %d range(s) from source %s",
        len(result.completed),
        len(plan.outputs),
        source_id,
    )
    return result


def merge_sources(
    registry: SourceRegistry,
    source_ids: Iterable[str],
    producer: str | None = None,
) -> bytes:
    """Concatenate whole sources, in the given order, into one document."""
    catalog = PageCatalog()
    for source_id in source_ids:
        try:
            catalog.append_source(registry, source_id)
        except PageComposerError as e:
            raise AssemblyFailed(str(e), cause=e) from e
    return assemble(catalog, registry, producer)
