"""OCR processing utilities for the extraction pipeline."""

from __future__ import annotations

import importlib
import io
from collections import OrderedDict
from typing import Callable, Iterable, List, Optional, Tuple

from PIL import Image
import pytesseract
from pytesseract import Output

from config import Settings
from .errors import OCRProcessingError
from .logging_utils import get_logger
from .pipeline import OCRResult, OCRWord

logger = get_logger(__name__)

OCRCallable = Callable[[Image.Image], Tuple[str, List[OCRWord]]]


class OCRProcessor:
    """Run OCR on rendered page images using configurable backends."""

    def __init__(
        self,
        settings: Settings,
        backend: Optional[str] = None,
        custom_callable: Optional[OCRCallable] = None,
    ):
        self.settings = settings
        self.backend = backend or settings.ocr_backend
        self.custom_callable = custom_callable or self._load_custom_callable()

    def recognize(self, image_bytes: Optional[bytes]) -> OCRResult:
        """
        Recognize text in a PNG/JPEG page image.

        Failures never propagate: a broken image, a missing Tesseract binary or
        a misbehaving custom backend all yield empty text with confidence 0.
        """
        if not image_bytes:
            return OCRResult.empty()

        try:
            text, words = self._recognize_image(image_bytes)
        except Exception as exc:  # pylint: disable=broad-except
            logger.warning("OCR failed; continuing with empty text: %s", exc)
            return OCRResult.empty()

        text = text.strip()
        if not text:
            return OCRResult(text="", confidence=0.0, words=words)

        confidence = self._calculate_average_confidence(words)
        if confidence is None:
            confidence = self.settings.ocr_default_confidence
        return OCRResult(text=text, confidence=confidence, words=words)

    def _recognize_image(self, image_bytes: bytes) -> Tuple[str, List[OCRWord]]:
        image = Image.open(io.BytesIO(image_bytes))
        try:
            if self.custom_callable:
                text, words_iter = self.custom_callable(image)
            elif self.backend == "tesseract":
                text, words_iter = self._run_tesseract(image)
            else:
                raise OCRProcessingError(f"Unsupported OCR backend '{self.backend}'.")
        finally:
            image.close()
        return text or "", list(words_iter)

    def _run_tesseract(self, image: Image.Image) -> Tuple[str, List[OCRWord]]:
        try:
            data = pytesseract.image_to_data(
                image,
                config=self.settings.tesseract_config,
                output_type=Output.DICT,
            )
        except pytesseract.TesseractNotFoundError as exc:
            raise OCRProcessingError(
                "Tesseract binary not found. Install tesseract-ocr or configure a custom OCR backend."
            ) from exc

        words: List[OCRWord] = []
        for word, confidence, block, paragraph, line in zip(
            data["text"],
            data["conf"],
            data["block_num"],
            data["par_num"],
            data["line_num"],
        ):
            if not str(word).strip():
                continue
            try:
                conf_value = float(confidence)
            except (TypeError, ValueError):
                conf_value = -1.0
            if conf_value < 0:
                continue
            words.append(
                OCRWord(
                    text=str(word).strip(),
                    confidence=min(conf_value, 100.0),
                    block=int(block),
                    paragraph=int(paragraph),
                    line=int(line),
                )
            )
        return self._join_lines(words), words

    @staticmethod
    def _join_lines(words: Iterable[OCRWord]) -> str:
        lines: "OrderedDict[Tuple[int, int, int], List[str]]" = OrderedDict()
        for word in words:
            lines.setdefault((word.block, word.paragraph, word.line), []).append(word.text)
        return "\n".join(" ".join(parts) for parts in lines.values())

    @staticmethod
    def _calculate_average_confidence(words: Iterable[OCRWord]) -> Optional[float]:
        confidences = [word.confidence for word in words if word.confidence is not None]
        if not confidences:
            return None
        return sum(confidences) / len(confidences)

    def _load_custom_callable(self) -> Optional[OCRCallable]:
        if self.backend == "tesseract":
            return None
        handler_path = self.settings.ocr_custom_handler if self.backend == "custom" else self.backend
        if not handler_path:
            raise OCRProcessingError(
                "Custom OCR backend selected but TAGEX_OCR_CUSTOM_HANDLER is not set."
            )
        try:
            module_name, func_name = handler_path.rsplit(":", 1)
        except ValueError:
            raise OCRProcessingError(
                "Custom OCR backend must be specified as 'module:function'."
            ) from None

        module = importlib.import_module(module_name)
        callable_obj = getattr(module, func_name, None)
        if callable_obj is None:
            raise OCRProcessingError(f"Function '{func_name}' not found in module '{module_name}'.")
        return callable_obj
