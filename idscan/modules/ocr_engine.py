"""
OCR Engine Module for ID card scanning.
Runs Tesseract over a card image and returns the recognized text together
with block-level confidence metadata.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np
import pytesseract

from idscan.config import Config
from idscan.error_handlers import RecognitionError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecognizedBlock:
    """One detected text region with its recognition confidence (0.0-1.0)."""
    text: str
    language_confidence: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Dict) -> "RecognizedBlock":
        """
        Build a block from the wire shape used by on-device recognizers.

        Raises:
            ValueError: If the confidence is not a finite number
        """
        confidence = data.get('languageConfidence')
        if confidence is not None:
            confidence = float(confidence)
            if not math.isfinite(confidence):
                raise ValueError(f"languageConfidence must be finite, got {confidence}")
        return cls(
            text=str(data.get('text') or ''),
            language_confidence=confidence
        )


@dataclass(frozen=True)
class RecognitionResult:
    """Complete recognition output for an image."""
    text: str
    blocks: List[RecognizedBlock] = field(default_factory=list)


class OCREngine:
    """Tesseract based text recognizer for ID card images."""

    def __init__(self, lang: str = None, config: str = None):
        """
        Initialize OCR Engine.

        Args:
            lang: Language for OCR (default: from config)
            config: Tesseract configuration string (default: from config)
        """
        self.lang = lang or Config.OCR_LANGUAGE
        self.config = config or Config.OCR_CONFIG

        # Set Tesseract path if configured
        if Config.TESSERACT_PATH:
            pytesseract.pytesseract.tesseract_cmd = Config.TESSERACT_PATH

    def recognize(self, image: np.ndarray) -> RecognitionResult:
        """
        Recognize text on an image.

        Args:
            image: Input image (grayscale or color)

        Returns:
            RecognitionResult with newline separated text and blocks

        Raises:
            RecognitionError: If the image is unusable or Tesseract fails
        """
        if image is None or getattr(image, 'size', 0) == 0:
            raise RecognitionError("empty image")

        try:
            data = pytesseract.image_to_data(
                image, lang=self.lang, config=self.config,
                output_type=pytesseract.Output.DICT
            )
        except Exception as e:
            logger.error(f"Tesseract failed: {e}")
            raise RecognitionError(e) from e

        result = self.build_result(data)
        logger.info(f"Recognized {len(result.blocks)} blocks")
        return result

    def build_result(self, data: Dict[str, List]) -> RecognitionResult:
        """
        Group Tesseract word data into lines and blocks.

        Args:
            data: Output of pytesseract.image_to_data as a dict

        Returns:
            RecognitionResult
        """
        # block_num -> line key -> words
        blocks: Dict[int, Dict[Tuple[int, int], List[str]]] = {}
        block_confidences: Dict[int, List[float]] = {}

        for i in range(len(data.get('text', []))):
            text = str(data['text'][i]).strip()
            if not text:
                continue

            block_num = int(data['block_num'][i])
            line_key = (int(data['par_num'][i]), int(data['line_num'][i]))
            blocks.setdefault(block_num, {}).setdefault(line_key, []).append(text)

            conf = float(data['conf'][i])
            if conf >= 0:
                block_confidences.setdefault(block_num, []).append(conf)

        recognized = []
        all_lines = []
        for block_num, lines in blocks.items():
            line_texts = [' '.join(words) for words in lines.values()]
            all_lines.extend(line_texts)

            confs = block_confidences.get(block_num)
            confidence = sum(confs) / len(confs) / 100.0 if confs else None

            recognized.append(RecognizedBlock(
                text='\n'.join(line_texts),
                language_confidence=confidence
            ))

        return RecognitionResult(text='\n'.join(all_lines), blocks=recognized)
