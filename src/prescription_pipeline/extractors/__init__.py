# src/prescription_pipeline/extractors/__init__.py
"""
Extractors - text recognition and structured medication extraction
"""

from .structured_extractor import StructuredExtractor, ExtractionResult
from .text_recognizer import TextRecognizer, TesseractRecognizer
from .intake import PrescriptionIntake

__all__ = [
    "StructuredExtractor",
    "ExtractionResult",
    "TextRecognizer",
    "TesseractRecognizer",
    "PrescriptionIntake",
]
