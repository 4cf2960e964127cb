"""
Modules package for ID card scanning.
Contains: preprocessing, ocr_engine, field_extractor, validator, scanner
"""

from .preprocessing import ImagePreprocessor
from .ocr_engine import OCREngine, RecognitionResult, RecognizedBlock
from .field_extractor import ExtractionResult, Field, FieldConfidence, FieldExtractor
from .validator import FieldValidator
from .scanner import IDCardScanner

__all__ = [
    'ImagePreprocessor',
    'OCREngine',
    'RecognitionResult',
    'RecognizedBlock',
    'ExtractionResult',
    'Field',
    'FieldConfidence',
    'FieldExtractor',
    'FieldValidator',
    'IDCardScanner'
]
