# ============================================================================
# src/prescription_pipeline/extractors/intake.py
# ============================================================================
"""
Prescription Intake

Scan flow ahead of the pipeline: OCR -> structured extraction -> save the
new prescription with status `extracted`.
"""

import logging
from typing import Optional

from ..core.context.enums import ProcessingStatus
from ..core.context.medication import Prescription
from ..core.repository import PrescriptionRepository
from .structured_extractor import StructuredExtractor
from .text_recognizer import ImageSource, TextRecognizer

logger = logging.getLogger(__name__)


class PrescriptionIntake:

    def __init__(
        self,
        extractor: StructuredExtractor,
        repository: PrescriptionRepository,
        recognizer: Optional[TextRecognizer] = None,
    ):
        self.extractor = extractor
        self.repository = repository
        self.recognizer = recognizer

    async def ingest_text(self, text: str) -> Prescription:
        """Extract medications from text and persist them as a new prescription."""
        result = await self.extractor.extract(text)
        prescription = result.to_prescription()
        await self.repository.save_prescription(prescription, ProcessingStatus.EXTRACTED)
        logger.info(
            f"Ingested prescription {prescription.id} "
            f"with {len(prescription.medications)} medication(s)"
        )
        return prescription

    async def scan(self, image: ImageSource) -> Prescription:
        if self.recognizer is None:
            raise ValueError("No text recognizer configured for image intake")
        text = await self.recognizer.recognize(image)
        return await self.ingest_text(text)
