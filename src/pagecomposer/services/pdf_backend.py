"""
PageComposer - PDF Backend

Thin layer over pikepdf and Pillow that turns bytes into parsed documents,
copies pages between documents, reads and writes page rotation, and
serializes the result. Page previews are rendered with pdftoppm
(poppler-utils).

Nothing in this module knows about catalogs or sessions.
"""

import io
import logging
import os
import subprocess
import tempfile

import pikepdf
from PIL import Image, ImageOps, UnidentifiedImageError

from pagecomposer.config import PREVIEW_BASE_DPI, PREVIEW_TIMEOUT_SECONDS, VALID_ROTATIONS
from pagecomposer.utils.exceptions import (
    PreviewUnavailable,
    ReferenceOutOfRange,
    SourceUnreadable,
)

logger = logging.getLogger(__name__)

# The PDF header may be preceded by garbage, readers search the first 1 KiB
_PDF_HEADER_WINDOW = 1024


def is_pdf_bytes(data: bytes) -> bool:
    """Return True if the buffer carries a PDF header."""
    return b"%PDF-" in data[:_PDF_HEADER_WINDOW]


def _image_to_pdf_bytes(data: bytes) -> bytes:
    """Wrap an image file as a single-page PDF.

    Raises:
        UnidentifiedImageError: If Pillow cannot identify the image.
    """
    img = Image.open(io.BytesIO(data))
    img = ImageOps.exif_transpose(img)
    if img.mode in ("RGBA", "LA", "P"):
        img = img.convert("RGB")

    pdf_bytes = io.BytesIO()
    img.save(pdf_bytes, format="PDF")
    return pdf_bytes.getvalue()


def parse_document(data: bytes, source_id: str = "", name: str = "") -> pikepdf.Pdf:
    """Parse a PDF (or an image, as a one-page PDF) from memory.

    Args:
        data: Raw file contents.
        source_id: Identifier used in error reports.
        name: Display name used in error reports.

    Returns:
        An open pikepdf.Pdf. The caller owns it and must close it.

    Raises:
        SourceUnreadable: If the bytes are neither a readable PDF nor an image.
    """
    if not data:
        raise SourceUnreadable(source_id, name, "file is empty")

    if not is_pdf_bytes(data):
        try:
            data = _image_to_pdf_bytes(data)
            logger.debug("Converted image source %s to PDF", name or source_id)
        except (UnidentifiedImageError, OSError, ValueError) as e:
            raise SourceUnreadable(source_id, name, "not a PDF document or image") from e

    try:
        pdf = pikepdf.open(io.BytesIO(data))
    except pikepdf.PasswordError as e:
        raise SourceUnreadable(source_id, name, "document is password-protected") from e
    except pikepdf.PdfError as e:
        raise SourceUnreadable(source_id, name, f"damaged or invalid PDF: {e}") from e

    try:
        page_count = len(pdf.pages)
    except pikepdf.PdfError as e:
        pdf.close()
        raise SourceUnreadable(source_id, name, f"damaged page tree: {e}") from e

    if page_count == 0:
        pdf.close()
        raise SourceUnreadable(source_id, name, "document has no pages")

    return pdf


def new_document() -> pikepdf.Pdf:
    """Create an empty output document."""
    return pikepdf.Pdf.new()


def normalize_rotation(degrees: int) -> int:
    """Normalize an angle to one of 0, 90, 180, 270."""
    degrees = degrees % 360
    if degrees not in VALID_ROTATIONS:
        # Round to nearest valid rotation
        degrees = round(degrees / 90) * 90 % 360
    return degrees


def get_page_rotation(page: pikepdf.Page) -> int:
    """Resolve the effective /Rotate of a page, including inherited values.

    A non-numeric /Rotate is treated as 0, as PDF readers do.
    """
    node = page.obj
    while node is not None:
        if "/Rotate" in node:
            try:
                return normalize_rotation(int(node["/Rotate"]))
            except (TypeError, ValueError, pikepdf.PdfError):
                logger.warning("Ignoring non-numeric /Rotate %r", node["/Rotate"])
                return 0
        node = node.get("/Parent")
    return 0


def set_page_rotation(page: pikepdf.Page, degrees: int) -> None:
    """Write an absolute /Rotate on a page. Zero removes the key."""
    degrees = normalize_rotation(degrees)
    if degrees:
        page.obj.Rotate = degrees
    elif "/Rotate" in page.obj:
        del page.obj["/Rotate"]


def page_geometry(pdf: pikepdf.Pdf, page_index: int) -> tuple[float, float]:
    """Return the (width, height) of a page's MediaBox in points."""
    page = pdf.pages[page_index]
    x0, y0, x1, y1 = (float(v) for v in page.mediabox)
    return abs(x1 - x0), abs(y1 - y0)


def copy_page(
    target: pikepdf.Pdf,
    source: pikepdf.Pdf,
    page_index: int,
    source_id: str = "",
) -> pikepdf.Page:
    """Copy one page of *source* to the end of *target*.

    The inherited rotation of the source page is pinned on the copy so that
    the copied page looks exactly like the original, whatever page tree it
    lands in.

    Returns:
        The newly appended page in *target*.

    Raises:
        ReferenceOutOfRange: If *page_index* is not a page of *source*.
    """
    page_count = len(source.pages)
    if page_index < 0 or page_index >= page_count:
        raise ReferenceOutOfRange(source_id, page_index, page_count)

    src_page = source.pages[page_index]
    source_rotation = get_page_rotation(src_page)

    target.pages.append(src_page)
    new_page = target.pages[-1]
    set_page_rotation(new_page, source_rotation)
    return new_page


def serialize_document(pdf: pikepdf.Pdf, producer: str | None = None) -> bytes:
    """Serialize a document to bytes.

    Args:
        pdf: Document to write.
        producer: Optional /Producer stamped into the document info.
    """
    if producer:
        pdf.docinfo["/Producer"] = producer

    buf = io.BytesIO()
    pdf.save(buf)
    return buf.getvalue()


def extract_single_page(pdf: pikepdf.Pdf, page_index: int) -> bytes:
    """Serialize one page of a document as a standalone PDF."""
    single = pikepdf.Pdf.new()
    try:
        copy_page(single, pdf, page_index)
        return serialize_document(single)
    finally:
        single.close()


def rasterize_page(
    pdf: pikepdf.Pdf,
    page_index: int,
    scale: float,
    source_id: str = "",
) -> bytes:
    """Render one page to JPEG bytes using pdftoppm.

    Args:
        pdf: Parsed source document.
        page_index: 0-based page index.
        scale: Output scale, 1.0 renders one pixel per point.
        source_id: Identifier used in error reports.

    Raises:
        PreviewUnavailable: If the page cannot be rendered.
    """
    if scale <= 0:
        raise PreviewUnavailable(source_id, page_index, "scale must be positive")

    try:
        page_bytes = extract_single_page(pdf, page_index)
    except (ReferenceOutOfRange, pikepdf.PdfError) as e:
        raise PreviewUnavailable(source_id, page_index, str(e)) from e

    dpi = max(1, round(PREVIEW_BASE_DPI * scale))

    with tempfile.TemporaryDirectory() as tmpdir:
        input_path = os.path.join(tmpdir, "page.pdf")
        prefix = os.path.join(tmpdir, "preview")
        with open(input_path, "wb") as f:
            f.write(page_bytes)

        try:
            result = subprocess.run(
                ["pdftoppm", "-jpeg", "-r", str(dpi), "-singlefile", input_path, prefix],
                capture_output=True,
                timeout=PREVIEW_TIMEOUT_SECONDS,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise PreviewUnavailable(source_id, page_index, str(e)) from e

        if result.returncode != 0:
            stderr = result.stderr.decode(errors="replace").strip()
            raise PreviewUnavailable(
                source_id, page_index, f"pdftoppm exited with {result.returncode}: {stderr}"
            )

        output_path = f"{prefix}.jpg"
        try:
            with open(output_path, "rb") as f:
                return f.read()
        except OSError as e:
            raise PreviewUnavailable(source_id, page_index, "pdftoppm produced no image") from e
