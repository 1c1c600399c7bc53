"""Tests for the composer session."""

import threading
from unittest.mock import patch

import pytest
from conftest import (
    LANDSCAPE,
    LETTER,
    make_pdf_bytes,
    make_png_bytes,
    page_labels,
    page_rotations,
)

from pagecomposer.services import assembly
from pagecomposer.session import ComposerSession
from pagecomposer.utils.exceptions import (
    EmptyPlan,
    InvalidRotation,
    SessionBusy,
    SourceUnreadable,
    UnknownPage,
)


@pytest.fixture
def session(config):
    with ComposerSession(config) as s:
        yield s


def _labels(session):
    return page_labels(session.assemble())


class TestSources:
    def test_add_source_appends_pages(self, session, pdf_a):
        source_id = session.add_source(pdf_a, "A.pdf")
        pages = session.list_pages()
        assert len(pages) == 3
        assert [p["source_page_index"] for p in pages] == [0, 1, 2]
        assert all(p["source_id"] == source_id for p in pages)
        assert pages[0]["source_label"] == "A.pdf"
        assert pages[0]["rotation"] == 0

    def test_failed_add_leaves_session_unchanged(self, session, pdf_a):
        session.add_source(pdf_a)
        with pytest.raises(SourceUnreadable):
            session.add_source(b"garbage", "bad.pdf")
        assert len(session.list_pages()) == 3
        assert len(session.registry) == 1

    def test_add_image_source(self, session):
        session.add_source(make_png_bytes(), "scan.png")
        assert len(session.list_pages()) == 1

    def test_add_sources_keeps_order_and_reports_failures(self, session, pdf_a, pdf_b):
        results = session.add_sources(
            [(pdf_b, "B.pdf"), (b"garbage", "bad.pdf"), (pdf_a, "A.pdf")]
        )
        assert [r.success for r in results] == [True, False, True]
        assert [r.page_count for r in results] == [2, 0, 3]
        assert results[1].name == "bad.pdf"
        assert _labels(session) == ["B0", "B1", "A0", "A1", "A2"]
        assert len(session.registry) == 2

    def test_remove_source(self, session, pdf_a, pdf_b):
        a = session.add_source(pdf_a)
        session.add_source(pdf_b)
        assert session.remove_source(a) == 3
        assert a not in session.registry
        assert _labels(session) == ["B0", "B1"]


class TestEditing:
    def test_move_page(self, session, pdf_a):
        session.add_source(pdf_a)
        first = session.list_pages()[0]["page_id"]
        assert session.move_page(first, "right") is True
        assert _labels(session) == ["A1", "A0", "A2"]

    def test_drag_page(self, session, pdf_a, pdf_b):
        session.add_source(pdf_a)
        session.add_source(pdf_b)
        assert session.drag_page(0, 4) == 4
        assert _labels(session) == ["A1", "A2", "B0", "B1", "A0"]

    def test_drag_gesture(self, session, pdf_a):
        session.add_source(pdf_a)
        session.begin_drag(2)
        session.drag_over(0)
        session.drag_over(0)
        session.end_drag()
        assert _labels(session) == ["A2", "A0", "A1"]

    def test_reverse_pages(self, session, pdf_a):
        session.add_source(pdf_a)
        session.reverse_pages()
        assert _labels(session) == ["A2", "A1", "A0"]

    def test_rotate_page(self, session, pdf_a):
        session.add_source(pdf_a)
        page_id = session.list_pages()[1]["page_id"]
        session.rotate_page(page_id, 90)
        assert session.rotate_page(page_id, 90) == 180
        assert [p["rotation"] for p in session.list_pages()] == [0, 180, 0]

    def test_rotate_all_pages(self, session):
        session.add_source(make_pdf_bytes("A", 2, rotations=[90, 0]))
        session.rotate_all_pages(90)
        assert [p["rotation"] for p in session.list_pages()] == [90, 90]
        assert page_rotations(session.assemble()) == [180, 90]

    def test_rotate_all_pages_rejects_invalid_angle(self, session, pdf_a):
        session.add_source(pdf_a)
        with pytest.raises(InvalidRotation):
            session.rotate_all_pages(45)
        assert [p["rotation"] for p in session.list_pages()] == [0, 0, 0]

    def test_remove_page_is_idempotent(self, session, pdf_a):
        session.add_source(pdf_a)
        page_id = session.list_pages()[0]["page_id"]
        assert session.remove_page(page_id) is True
        assert session.remove_page(page_id) is False
        assert _labels(session) == ["A1", "A2"]

    def test_unknown_page(self, session):
        with pytest.raises(UnknownPage):
            session.rotate_page("missing", 90)


class TestAdvisories:
    def test_uniform(self, session):
        session.add_source(make_pdf_bytes("A", 2, sizes=[LETTER, LETTER]))
        assert session.get_advisories() == []

    def test_mixed(self, session):
        session.add_source(make_pdf_bytes("A", 2, sizes=[LETTER, LANDSCAPE]))
        assert len(session.get_advisories()) == 2


class TestAssembly:
    def test_assemble_empty(self, session):
        with pytest.raises(EmptyPlan):
            session.assemble()

    def test_assemble_stamps_configured_producer(self, config, pdf_a):
        import io

        import pikepdf

        config.set("assembly.producer", "Configured Producer", save_immediately=False)
        with ComposerSession(config) as session:
            session.add_source(pdf_a)
            data = session.assemble()
        with pikepdf.open(io.BytesIO(data)) as pdf:
            assert str(pdf.docinfo["/Producer"]) == "Configured Producer"

    def test_mutations_rejected_while_assembling(self, session, pdf_a):
        session.add_source(pdf_a)
        started = threading.Event()
        release = threading.Event()
        real_assemble = assembly.assemble

        def slow_assemble(*args, **kwargs):
            started.set()
            release.wait(5)
            return real_assemble(*args, **kwargs)

        with patch.object(assembly, "assemble", side_effect=slow_assemble):
            future = session.assemble_async()
            assert started.wait(5)
            assert session.busy

            page_id = session.list_pages()[0]["page_id"]
            with pytest.raises(SessionBusy):
                session.rotate_page(page_id, 90)
            with pytest.raises(SessionBusy):
                session.drag_page(0, 2)
            with pytest.raises(SessionBusy):
                session.rotate_all_pages(90)

            release.set()
            data = future.result(timeout=10)

        assert page_labels(data) == ["A0", "A1", "A2"]
        assert not session.busy
        assert session.rotate_page(page_id, 90) == 90

    def test_async_uses_snapshot(self, session, pdf_a):
        session.add_source(pdf_a)
        future = session.assemble_async()
        data = future.result(timeout=10)
        assert page_labels(data) == ["A0", "A1", "A2"]

    def test_async_failure_clears_busy(self, session):
        future = session.assemble_async()
        with pytest.raises(EmptyPlan):
            future.result(timeout=10)
        assert not session.busy

    def test_assemble_ranges(self, session):
        source_id = session.add_source(make_pdf_bytes("A", 5))
        result = session.assemble_ranges(source_id, [[0, 1], [2, 3, 4]])
        assert [page_labels(o) for o in result.outputs] == [["A0", "A1"], ["A2", "A3", "A4"]]


class TestPreviews:
    def test_list_pages_preview_key(self, session, pdf_a):
        source_id = session.add_source(pdf_a)
        assert session.list_pages()[2]["preview"] == (source_id, 2, 0.5)

    def test_get_preview_uses_cache(self, session, pdf_a):
        session.add_source(pdf_a)
        page_id = session.list_pages()[0]["page_id"]
        with patch(
            "pagecomposer.services.pdf_backend.rasterize_page", return_value=b"jpeg"
        ) as render:
            assert session.get_preview(page_id) == b"jpeg"
            assert session.get_preview(page_id) == b"jpeg"
        assert render.call_count == 1


def test_close_releases_everything(config, pdf_a):
    session = ComposerSession(config)
    session.add_source(pdf_a)
    session.close()
    assert len(session.registry) == 0
    assert session.list_pages() == []
