"""Tests for page_catalog module (PageReference and PageCatalog)."""

import pytest
from conftest import make_pdf_bytes

from pagecomposer.services.page_catalog import PageCatalog, PageReference
from pagecomposer.services.source_registry import SourceRegistry
from pagecomposer.utils.exceptions import (
    InvalidRotation,
    ReferenceOutOfRange,
    SourceUnreadable,
    UnknownPage,
)


@pytest.fixture
def registry():
    reg = SourceRegistry()
    yield reg
    reg.close()


def _catalog_with(registry, *specs):
    catalog = PageCatalog()
    ids = []
    for label, count in specs:
        source_id = registry.add_source(make_pdf_bytes(label, count), f"{label}.pdf")
        catalog.append_source(registry, source_id)
        ids.append(source_id)
    return catalog, ids


def _keys(catalog):
    return [(p.label, p.source_page_index) for p in catalog]


class TestPageReference:
    def test_default_values(self):
        ref = PageReference(page_id="p", source_id="s", source_page_index=0)
        assert ref.rotation == 0
        assert ref.label == ""

    def test_rotation_wraps(self):
        ref = PageReference(page_id="p", source_id="s", source_page_index=0, rotation=450)
        assert ref.rotation == 90

    def test_invalid_rotation_rejected(self):
        with pytest.raises(InvalidRotation):
            PageReference(page_id="p", source_id="s", source_page_index=0, rotation=45)

    def test_rotate_four_times_restores(self):
        ref = PageReference(page_id="p", source_id="s", source_page_index=0, rotation=180)
        for _ in range(4):
            ref.rotate(90)
        assert ref.rotation == 180

    def test_rotate_negative(self):
        ref = PageReference(page_id="p", source_id="s", source_page_index=0)
        ref.rotate(-90)
        assert ref.rotation == 270

    def test_to_dict(self):
        ref = PageReference("p1", "s1", 2, rotation=90, label="a.pdf")
        assert ref.to_dict() == {
            "page_id": "p1",
            "source_id": "s1",
            "source_page_index": 2,
            "source_label": "a.pdf",
            "rotation": 90,
        }


class TestAppendSource:
    def test_one_reference_per_page_in_order(self, registry):
        catalog, (a,) = _catalog_with(registry, ("A", 3))
        assert len(catalog) == 3
        assert [p.source_page_index for p in catalog] == [0, 1, 2]
        assert all(p.source_id == a and p.rotation == 0 for p in catalog)
        assert all(p.label == "A.pdf" for p in catalog)

    def test_two_sources(self, registry):
        catalog, _ = _catalog_with(registry, ("A", 3), ("B", 2))
        assert _keys(catalog) == [
            ("A.pdf", 0),
            ("A.pdf", 1),
            ("A.pdf", 2),
            ("B.pdf", 0),
            ("B.pdf", 1),
        ]

    def test_append_is_additive(self, registry):
        catalog, _ = _catalog_with(registry, ("A", 3))
        catalog.rotate(catalog[1].page_id, 90)
        before = catalog.snapshot()

        source_id = registry.add_source(make_pdf_bytes("B", 2), "B.pdf")
        catalog.append_source(registry, source_id)

        assert tuple(catalog.snapshot()[: len(before)]) == before

    def test_page_ids_unique(self, registry):
        catalog, _ = _catalog_with(registry, ("A", 3), ("A", 3))
        ids = catalog.page_ids()
        assert len(set(ids)) == len(ids) == 6

    def test_unreadable_source_adds_nothing(self, registry):
        catalog, _ = _catalog_with(registry, ("A", 2))
        bad = registry.add_source(b"garbage")
        with pytest.raises(SourceUnreadable):
            catalog.append_source(registry, bad)
        assert len(catalog) == 2

    def test_append_pages_rejects_out_of_range(self, registry):
        catalog = PageCatalog()
        source_id = registry.add_source(make_pdf_bytes("A", 2))
        with pytest.raises(ReferenceOutOfRange):
            catalog.append_pages(registry, source_id, [0, 5])
        assert len(catalog) == 0

    def test_append_pages_with_rotation(self, registry):
        catalog = PageCatalog()
        source_id = registry.add_source(make_pdf_bytes("A", 3))
        catalog.append_pages(registry, source_id, [2, 0], rotation=270)
        assert [p.source_page_index for p in catalog] == [2, 0]
        assert all(p.rotation == 270 for p in catalog)


class TestRemoveAndRotate:
    def test_remove_reference(self, registry):
        catalog, _ = _catalog_with(registry, ("A", 3))
        target = catalog[1].page_id
        assert catalog.remove_reference(target) is True
        assert len(catalog) == 2
        assert target not in catalog.page_ids()
        assert [p.source_page_index for p in catalog] == [0, 2]

    def test_remove_unknown_is_noop(self, registry):
        catalog, _ = _catalog_with(registry, ("A", 3))
        target = catalog[0].page_id
        catalog.remove_reference(target)
        before = catalog.page_ids()
        assert catalog.remove_reference(target) is False
        assert catalog.page_ids() == before

    def test_remove_source_references(self, registry):
        catalog, (a, b) = _catalog_with(registry, ("A", 3), ("B", 2))
        assert catalog.remove_source_references(a) == 3
        assert all(p.source_id == b for p in catalog)

    def test_rotate(self, registry):
        catalog, _ = _catalog_with(registry, ("A", 2))
        page_id = catalog[0].page_id
        assert catalog.rotate(page_id, 90) == 90
        assert catalog.rotate(page_id, 90) == 180
        assert catalog[1].rotation == 0

    def test_rotate_invalid_leaves_page(self, registry):
        catalog, _ = _catalog_with(registry, ("A", 1))
        page_id = catalog[0].page_id
        with pytest.raises(InvalidRotation):
            catalog.rotate(page_id, 45)
        assert catalog[0].rotation == 0

    def test_rotate_unknown_page(self, registry):
        catalog, _ = _catalog_with(registry, ("A", 1))
        with pytest.raises(UnknownPage):
            catalog.rotate("missing", 90)

    def test_rotate_all(self, registry):
        catalog, _ = _catalog_with(registry, ("A", 3))
        catalog.rotate_all(180)
        assert [p.rotation for p in catalog] == [180, 180, 180]


class TestSnapshot:
    def test_snapshot_is_independent(self, registry):
        catalog, _ = _catalog_with(registry, ("A", 3))
        snapshot = catalog.snapshot()

        catalog.rotate(catalog[0].page_id, 90)
        catalog.remove_reference(catalog[2].page_id)

        assert len(snapshot) == 3
        assert snapshot[0].rotation == 0

    def test_index_of_and_get(self, registry):
        catalog, _ = _catalog_with(registry, ("A", 3))
        page_id = catalog[2].page_id
        assert catalog.index_of(page_id) == 2
        assert catalog.get(page_id).source_page_index == 2
        with pytest.raises(UnknownPage):
            catalog.index_of("missing")
