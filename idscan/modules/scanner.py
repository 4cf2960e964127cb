"""
ID card scan pipeline: preprocessing, recognition and field extraction.
"""

import logging
from typing import Optional, Tuple

import numpy as np

from idscan.config import Config
from idscan.modules.field_extractor import ExtractionResult, FieldExtractor
from idscan.modules.ocr_engine import OCREngine, RecognitionResult
from idscan.modules.preprocessing import ImagePreprocessor

logger = logging.getLogger(__name__)


class IDCardScanner:
    """Runs an ID card image through the full extraction pipeline."""

    def __init__(
        self,
        ocr_engine: Optional[OCREngine] = None,
        extractor: Optional[FieldExtractor] = None,
        preprocessor: Optional[ImagePreprocessor] = None,
        preprocess: bool = None
    ):
        self.ocr_engine = ocr_engine or OCREngine()
        self.extractor = extractor or FieldExtractor()
        self.preprocessor = preprocessor or ImagePreprocessor()
        self.preprocess = Config.PREPROCESS_IMAGES if preprocess is None else preprocess

    def scan(self, image: np.ndarray) -> ExtractionResult:
        """
        Extract structured fields from a card image.

        Recognition failures never propagate: they are logged and produce
        the empty result with zero confidence.

        Args:
            image: Card image (BGR or grayscale)

        Returns:
            ExtractionResult
        """
        result, _ = self.scan_with_text(image)
        return result

    def scan_with_text(self, image: np.ndarray) -> Tuple[ExtractionResult, Optional[RecognitionResult]]:
        """
        Like ``scan`` but also return the recognition output.

        Returns:
            Tuple of (result, recognition); recognition is None on failure
        """
        try:
            prepared = self.preprocessor.preprocess(image) if self.preprocess else image
            recognition = self.ocr_engine.recognize(prepared)
        except Exception as e:
            logger.error(f"OCR Error: {e}")
            logger.debug("Recognition traceback:", exc_info=True)
            return ExtractionResult.failed(), None

        return self.extractor.extract(recognition), recognition
