"""Pytest configuration for pagecomposer tests.

Builds small PDFs in memory. Every page draws a label such as ``(A0)``
so tests can tell which source page ended up where.
"""

import io
import re

import pikepdf
import pytest
from PIL import Image

from pagecomposer.services import pdf_backend
from pagecomposer.utils.config_manager import ConfigManager

LETTER = (612, 792)
LANDSCAPE = (792, 612)
A4 = (595, 842)

_LABEL_RE = re.compile(rb"\((\w+)\) Tj")


def make_pdf_bytes(
    label: str,
    num_pages: int = 3,
    sizes: list[tuple[int, int]] | None = None,
    rotations: list | None = None,
    tree_rotation: int | None = None,
) -> bytes:
    """Create a PDF whose page i draws the text ``<label><i>``."""
    pdf = pikepdf.Pdf.new()
    for i in range(num_pages):
        width, height = sizes[i] if sizes else LETTER
        entries = {
            "Type": pikepdf.Name.Page,
            "MediaBox": [0, 0, width, height],
            "Contents": pdf.make_stream(f"BT /F1 12 Tf 100 500 Td ({label}{i}) Tj ET".encode()),
        }
        rotation = rotations[i] if rotations else 0
        if not isinstance(rotation, int) or rotation:
            entries["Rotate"] = rotation
        pdf.pages.append(pikepdf.Page(pikepdf.Dictionary(**entries)))
    if tree_rotation is not None:
        pdf.Root.Pages.Rotate = tree_rotation
    buf = io.BytesIO()
    pdf.save(buf)
    return buf.getvalue()


def make_png_bytes(width: int = 200, height: int = 100) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color=(200, 30, 30)).save(buf, format="PNG")
    return buf.getvalue()


def page_labels(data: bytes) -> list[str]:
    """Return the label drawn on each page of a PDF."""
    labels = []
    with pikepdf.open(io.BytesIO(data)) as pdf:
        for page in pdf.pages:
            match = _LABEL_RE.search(page.obj.Contents.read_bytes())
            labels.append(match.group(1).decode() if match else "")
    return labels


def page_rotations(data: bytes) -> list[int]:
    """Return the effective rotation of each page of a PDF."""
    with pikepdf.open(io.BytesIO(data)) as pdf:
        return [pdf_backend.get_page_rotation(page) for page in pdf.pages]


@pytest.fixture
def pdf_a():
    return make_pdf_bytes("A", 3)


@pytest.fixture
def pdf_b():
    return make_pdf_bytes("B", 2)


@pytest.fixture
def config(tmp_path):
    """A configuration manager backed by a temporary file."""
    return ConfigManager(config_path=str(tmp_path / "settings.json"))
