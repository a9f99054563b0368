# ============================================================================
# tests/unit/test_text_recognizer.py
# ============================================================================
"""
Tests for OCR text recognition and the scan intake flow
"""

import io

import pytest
import pytesseract
from PIL import Image

from prescription_pipeline.core.context.enums import ProcessingStatus
from prescription_pipeline.extractors.intake import PrescriptionIntake
from prescription_pipeline.extractors.structured_extractor import StructuredExtractor
from prescription_pipeline.extractors.text_recognizer import TesseractRecognizer, TextRecognizer
from prescription_pipeline.utils.exceptions import ExtractionError, RecognitionError

from conftest import extraction_json


def png_bytes() -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (32, 16), "white").save(buffer, format="PNG")
    return buffer.getvalue()


class FixedRecognizer(TextRecognizer):
    def __init__(self, text):
        self.text = text

    async def recognize(self, image):
        return self.text


class TestTesseractRecognizer:

    @pytest.mark.asyncio
    async def test_recognizes_text(self, monkeypatch):
        seen = {}

        def fake_ocr(image, lang, config):
            seen.update(mode=image.mode, lang=lang, config=config)
            return "  Amoxicillin 500mg BID\n"

        monkeypatch.setattr(pytesseract, "image_to_string", fake_ocr)

        text = await TesseractRecognizer().recognize(png_bytes())

        assert text == "Amoxicillin 500mg BID"
        assert seen == {"mode": "L", "lang": "eng", "config": "--psm 6"}

    @pytest.mark.asyncio
    async def test_blank_output(self, monkeypatch):
        monkeypatch.setattr(pytesseract, "image_to_string", lambda image, lang, config: " \n")

        with pytest.raises(RecognitionError, match="No text"):
            await TesseractRecognizer().recognize(Image.new("RGB", (8, 8)))

    @pytest.mark.asyncio
    async def test_unreadable_image(self):
        with pytest.raises(RecognitionError, match="Unreadable"):
            await TesseractRecognizer().recognize(b"not an image")


class TestPrescriptionIntake:

    @pytest.mark.asyncio
    async def test_scan_saves_extracted_prescription(self, llm, repository):
        llm.responses.append(extraction_json({"name": "Amoxicillin", "dosage": "500mg"}, date="2025-03-01"))
        intake = PrescriptionIntake(StructuredExtractor(llm), repository, FixedRecognizer("Amoxicillin 500mg"))

        prescription = await intake.scan(b"image")

        assert [med.name for med in prescription.medications] == ["Amoxicillin"]
        assert prescription.date.isoformat() == "2025-03-01"
        assert await repository.get_status(prescription.id) == ProcessingStatus.EXTRACTED
        assert "Amoxicillin 500mg" in llm.prompts[0]

    @pytest.mark.asyncio
    async def test_extraction_error_saves_nothing(self, llm, repository, store):
        llm.responses.append("I could not read this prescription.")
        intake = PrescriptionIntake(StructuredExtractor(llm), repository, FixedRecognizer("smudge"))

        with pytest.raises(ExtractionError):
            await intake.scan(b"image")
        assert store.paths() == []

    @pytest.mark.asyncio
    async def test_scan_needs_recognizer(self, llm, repository):
        with pytest.raises(ValueError):
            await PrescriptionIntake(StructuredExtractor(llm), repository).scan(b"image")
