"""PDF decoding: native text extraction plus page rendering for OCR."""

from __future__ import annotations

import io
from pathlib import Path
from typing import List

import fitz  # PyMuPDF
from PIL import Image
from pdf2image import convert_from_path

from config import Settings
from .errors import DecodeError
from .logging_utils import get_logger
from .pipeline import RawPage

logger = get_logger(__name__)


class PageExtractionError(DecodeError):
    """Raised when a PDF cannot be opened, read or rendered."""


class PageExtractor:
    """Decode PDFs into :class:`RawPage` records for the page coordinator."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def decode(self, pdf_path: Path) -> List[RawPage]:
        """
        Extract native text and a rendered image for every page of a PDF.

        Args:
            pdf_path: Location of the PDF to decode.

        Returns:
            RawPage entries ordered by page number (1-based).

        Raises:
            PageExtractionError: if the file is missing or neither PyMuPDF nor
                pdf2image can read it.
        """
        pdf_path = Path(pdf_path).resolve()
        if not pdf_path.is_file():
            raise PageExtractionError(f"PDF not found: {pdf_path}")

        try:
            pages = self._decode_with_pymupdf(pdf_path)
            logger.info("Decoded %s pages from %s using PyMuPDF", len(pages), pdf_path.name)
            return pages
        except Exception as primary_error:  # pylint: disable=broad-except
            logger.warning("PyMuPDF decoding failed (%s). Falling back to pdf2image.", primary_error)
            try:
                pages = self._decode_with_pdf2image(pdf_path)
                logger.info("Rendered %s pages from %s using pdf2image fallback", len(pages), pdf_path.name)
                return pages
            except Exception as fallback_error:  # pylint: disable=broad-except
                raise PageExtractionError(
                    f"Unable to decode PDF with PyMuPDF or pdf2image: {fallback_error}"
                ) from fallback_error

    def is_searchable(self, text: str) -> bool:
        return len(text.strip()) > self.settings.searchable_text_threshold

    def _needs_image(self, searchable: bool) -> bool:
        return not searchable or self.settings.ocr_policy == "always"

    def _decode_with_pymupdf(self, pdf_path: Path) -> List[RawPage]:
        pages: List[RawPage] = []
        zoom = self.settings.pdf_render_dpi / 72.0
        matrix = fitz.Matrix(zoom, zoom)
        with fitz.open(pdf_path) as document:
            for page_index in range(len(document)):
                page = document.load_page(page_index)
                text = page.get_text("text") or ""
                searchable = self.is_searchable(text)
                image_bytes = None
                if self._needs_image(searchable):
                    pixmap = page.get_pixmap(matrix=matrix)
                    mode = "RGBA" if pixmap.alpha else "RGB"
                    image = Image.frombytes(mode, [pixmap.width, pixmap.height], pixmap.samples)
                    if pixmap.alpha:
                        image = image.convert("RGB")
                    image_bytes = _to_png(image)
                pages.append(
                    RawPage(
                        page_number=page_index + 1,
                        is_searchable=searchable,
                        raw_text=text,
                        image_bytes=image_bytes,
                    )
                )
        return pages

    def _decode_with_pdf2image(self, pdf_path: Path) -> List[RawPage]:
        # pdf2image only renders; pages without native text are treated as scanned.
        images = convert_from_path(pdf_path, dpi=self.settings.pdf_render_dpi)
        return [
            RawPage(page_number=index, is_searchable=False, raw_text="", image_bytes=_to_png(image))
            for index, image in enumerate(images, start=1)
        ]


DocumentDecoder = PageExtractor


def _to_png(image: Image.Image) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()
