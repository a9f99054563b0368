# ============================================================================
# src/prescription_pipeline/extractors/text_recognizer.py
# ============================================================================
"""
Text Recognition

Turns a photographed prescription into raw text. The OCR engine is an
external collaborator; TesseractRecognizer is the bundled implementation
(Pillow + pytesseract, run in a thread pool to avoid blocking).
"""

from abc import ABC, abstractmethod
import asyncio
import io
import logging
from pathlib import Path
from typing import Union

import pytesseract
from PIL import Image, ImageOps, UnidentifiedImageError

from ..utils.exceptions import RecognitionError
from ..utils.logging import log_performance

logger = logging.getLogger(__name__)

ImageSource = Union[bytes, str, Path, Image.Image]


class TextRecognizer(ABC):

    @abstractmethod
    async def recognize(self, image: ImageSource) -> str:
        """
        Recognize text in an image.

        Raises:
            RecognitionError: image unreadable or no text found
        """
        pass


class TesseractRecognizer(TextRecognizer):
    """
    Config options:
        lang: Tesseract language code (default: eng)
        psm: Page segmentation mode (default: 6, uniform block of text)
    """

    def __init__(self, lang: str = "eng", psm: int = 6):
        self.lang = lang
        self.psm = psm

    def _load(self, image: ImageSource) -> Image.Image:
        if isinstance(image, Image.Image):
            return image
        try:
            if isinstance(image, bytes):
                return Image.open(io.BytesIO(image))
            return Image.open(image)
        except (UnidentifiedImageError, OSError) as e:
            raise RecognitionError(f"Unreadable image: {e}") from e

    def _recognize_sync(self, image: ImageSource) -> str:
        img = self._load(image)

        # Phone photos carry EXIF orientation; grayscale helps Tesseract
        img = ImageOps.exif_transpose(img).convert("L")

        try:
            text = pytesseract.image_to_string(img, lang=self.lang, config=f"--psm {self.psm}")
        except pytesseract.TesseractError as e:
            raise RecognitionError(f"OCR failed: {e}") from e

        if not text or not text.strip():
            raise RecognitionError("No text recognized in image")

        logger.info(f"Recognized {len(text.strip())} characters")
        return text.strip()

    @log_performance(logger, "text recognition")
    async def recognize(self, image: ImageSource) -> str:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._recognize_sync, image)
