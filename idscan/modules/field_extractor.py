"""
Field Extractor Module for ID card scanning.
Turns raw recognized card text into name, ID number and date of birth,
with a confidence score per field.
"""

import logging
import math
import re
from dataclasses import dataclass, field, replace
from enum import Enum
from functools import reduce
from typing import Any, Dict, List, Optional, Sequence

from idscan.config import Config
from idscan.error_handlers import ResultFormatError
from idscan.modules.ocr_engine import RecognitionResult, RecognizedBlock

logger = logging.getLogger(__name__)

NEUTRAL_CONFIDENCE = 50
FAILED_CONFIDENCE = 0


class Field(Enum):
    """The structured attributes read from an ID card."""
    NAME = 'name'
    ID_NUMBER = 'idNumber'
    DATE_OF_BIRTH = 'dateOfBirth'

    @property
    def attr(self) -> str:
        return _FIELD_ATTRS[self]


_FIELD_ATTRS = {
    Field.NAME: 'name',
    Field.ID_NUMBER: 'id_number',
    Field.DATE_OF_BIRTH: 'date_of_birth',
}


@dataclass(frozen=True)
class FieldConfidence:
    """Confidence per field, integers 0-100."""
    name: int = NEUTRAL_CONFIDENCE
    id_number: int = NEUTRAL_CONFIDENCE
    date_of_birth: int = NEUTRAL_CONFIDENCE

    def get(self, key: Field) -> int:
        return getattr(self, key.attr)

    def to_dict(self) -> Dict[str, int]:
        return {key.value: self.get(key) for key in Field}


@dataclass(frozen=True)
class ExtractionResult:
    """Structured data read from one ID card."""
    name: str = ''
    id_number: str = ''
    date_of_birth: str = ''
    confidence: FieldConfidence = field(default_factory=FieldConfidence)

    @classmethod
    def failed(cls) -> "ExtractionResult":
        """Result used when recognition did not run."""
        return cls(confidence=FieldConfidence(
            name=FAILED_CONFIDENCE,
            id_number=FAILED_CONFIDENCE,
            date_of_birth=FAILED_CONFIDENCE
        ))

    def get(self, key: Field) -> str:
        return getattr(self, key.attr)

    def with_value(self, key: Field, value: str) -> "ExtractionResult":
        """Return a copy with one field replaced."""
        return replace(self, **{key.attr: value})

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {key.value: self.get(key) for key in Field}
        data['confidence'] = self.confidence.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "ExtractionResult":
        """
        Build a result from its wire shape.

        Missing fields become empty strings and missing confidences the
        neutral default.

        Raises:
            ResultFormatError: If the data is not a result mapping
        """
        if not isinstance(data, dict):
            raise ResultFormatError("expected a JSON object")

        values = {}
        for key in Field:
            value = data.get(key.value)
            if value is None:
                value = ''
            if not isinstance(value, str):
                raise ResultFormatError(f"'{key.value}' must be a string")
            values[key.attr] = value

        raw_confidence = data.get('confidence') or {}
        if not isinstance(raw_confidence, dict):
            raise ResultFormatError("'confidence' must be an object")

        scores = {}
        for key in Field:
            score = raw_confidence.get(key.value, NEUTRAL_CONFIDENCE)
            if isinstance(score, bool) or not isinstance(score, (int, float)):
                raise ResultFormatError(f"confidence for '{key.value}' must be a number")
            if not 0 <= score <= 100:
                raise ResultFormatError(f"confidence for '{key.value}' must be within 0-100")
            scores[key.attr] = int(score)

        return cls(confidence=FieldConfidence(**scores), **values)


class FieldExtractor:
    """
    Heuristic parser for ID card text.

    Lines are scanned in order. A label line either carries its value inline
    or the value sits on the next line. Each field keeps the first value found.
    """

    NAME_LABEL_VALUE = re.compile(r'name[:\s]+(.+)', re.IGNORECASE)
    CAPITALIZED_NAME = re.compile(r'[A-Z][a-z]+\s+[A-Z][a-z]+')
    ID_LABEL_WORD = re.compile(r'\b(?:id|number)\b', re.IGNORECASE)
    ID_VALUE = re.compile(r'[A-Z0-9-]{5,}', re.IGNORECASE)
    ID_VALUE_UPPER = re.compile(r'[A-Z0-9-]{5,}')
    STANDALONE_ID = re.compile(r'[A-Z0-9-]{6,15}')
    DATE = re.compile(r'\d{1,2}[/-]\d{1,2}[/-]\d{2,4}')
    DATE_SEPARATOR = re.compile(r'[/-]')

    def __init__(self, default_block_confidence: float = None, year_pivot: int = None):
        """
        Initialize the extractor.

        Args:
            default_block_confidence: Confidence (0-1) for blocks without one
            year_pivot: Two-digit years above this are read as 19YY
        """
        if default_block_confidence is None:
            default_block_confidence = Config.DEFAULT_BLOCK_CONFIDENCE
        self.default_block_confidence = default_block_confidence
        self.year_pivot = Config.TWO_DIGIT_YEAR_PIVOT if year_pivot is None else year_pivot

    def extract(self, recognition: RecognitionResult) -> ExtractionResult:
        """
        Build a complete result from recognized text and blocks.

        Args:
            recognition: Output of the text recognizer

        Returns:
            ExtractionResult with empty strings for fields not found
        """
        found = self.extract_fields(recognition.text)
        confidence = self.score_confidence(recognition.blocks)

        logger.info(
            f"Extracted fields: {sorted(key.value for key in found)} "
            f"confidence={confidence.to_dict()}"
        )

        return ExtractionResult(
            name=found.get(Field.NAME, ''),
            id_number=found.get(Field.ID_NUMBER, ''),
            date_of_birth=found.get(Field.DATE_OF_BIRTH, ''),
            confidence=confidence
        )

    def extract_fields(self, raw_text: str) -> Dict[Field, str]:
        """
        Locate fields in raw OCR text.

        Args:
            raw_text: Newline separated recognized text

        Returns:
            Mapping with only the fields that were found
        """
        lines = [line.strip() for line in (raw_text or '').split('\n')]
        lines = [line for line in lines if line]

        return reduce(
            lambda found, index: self._scan_line(found, lines, index),
            range(len(lines)),
            {}
        )

    def _scan_line(self, found: Dict[Field, str], lines: List[str], index: int) -> Dict[Field, str]:
        line = lines[index]
        next_line = lines[index + 1] if index + 1 < len(lines) else None

        matchers = (
            (Field.NAME, self._match_name),
            (Field.ID_NUMBER, self._match_id_number),
            (Field.DATE_OF_BIRTH, self._match_date_of_birth),
        )

        updated = dict(found)
        for key, matcher in matchers:
            if key in updated:
                continue
            value = matcher(line, next_line)
            if value:
                updated[key] = value
        return updated

    def _match_name(self, line: str, next_line: Optional[str]) -> Optional[str]:
        if 'name' in line.lower():
            match = self.NAME_LABEL_VALUE.search(line)
            if match:
                return match.group(1).strip()
            return next_line

        if self.looks_like_name(line):
            return line
        return None

    def _match_id_number(self, line: str, next_line: Optional[str]) -> Optional[str]:
        lower = line.lower()
        if 'id' in lower or 'number' in lower:
            match = self.ID_VALUE.search(self._id_value_part(line))
            if match:
                return match.group(0)
            # value printed before the label, e.g. "AB12345 ID"
            match = self.ID_VALUE.search(self.ID_LABEL_WORD.sub(' ', line))
            if match:
                return match.group(0)
            if next_line:
                match = self.ID_VALUE_UPPER.search(next_line)
                if match:
                    return match.group(0)
            return None

        if self.looks_like_id(line):
            return line
        return None

    def _match_date_of_birth(self, line: str, next_line: Optional[str]) -> Optional[str]:
        lower = line.lower()
        match = self.DATE.search(line)
        if not match and ('birth' in lower or 'dob' in lower) and next_line:
            match = self.DATE.search(next_line)

        if match:
            return self.normalize_date(match.group(0))
        return None

    def _id_value_part(self, line: str) -> str:
        """Text after the last standalone ID label word, or the whole line."""
        labels = list(self.ID_LABEL_WORD.finditer(line))
        if not labels:
            return line
        return line[labels[-1].end():]

    def looks_like_name(self, text: str) -> bool:
        """Two capitalized words, 6 to 49 characters overall."""
        return bool(self.CAPITALIZED_NAME.match(text)) and 5 < len(text) < 50

    def looks_like_id(self, text: str) -> bool:
        """A bare run of 6-15 uppercase letters, digits or hyphens."""
        return bool(self.STANDALONE_ID.fullmatch(text))

    def normalize_date(self, raw: str) -> str:
        """
        Normalize a recognized date to MM/DD/YYYY.

        Two-digit years are expanded around a fixed pivot. A first part above
        12 cannot be a month, so it is read as day-month-year and swapped.
        Input that does not split into three numeric parts is returned as is.

        Args:
            raw: Date as found on the card, e.g. "13/05/1990" or "5-3-90"

        Returns:
            Normalized date, or the input unchanged
        """
        parts = self.DATE_SEPARATOR.split(raw)
        if len(parts) != 3 or not all(part.isdecimal() for part in parts):
            return raw

        first, second, year = parts
        if len(year) == 2:
            year = f"19{year}" if int(year) > self.year_pivot else f"20{year}"

        if int(first) > 12:
            first, second = second, first

        return f"{first.zfill(2)}/{second.zfill(2)}/{year}"

    def score_confidence(self, blocks: Sequence[RecognizedBlock]) -> FieldConfidence:
        """
        Average block confidences per field category.

        A block counts towards every category whose heuristic it matches.
        Categories without any matching block get the neutral score.

        Args:
            blocks: Recognized blocks with optional confidence (0-1)

        Returns:
            FieldConfidence with integer scores 0-100
        """
        totals = {key: 0.0 for key in Field}
        counts = {key: 0 for key in Field}

        for block in blocks:
            text = block.text or ''
            lower = text.lower()
            base = block.language_confidence
            if base is None:
                base = self.default_block_confidence
            score = min(max(base, 0.0), 1.0) * 100

            categories = []
            if 'name' in lower or self.looks_like_name(text):
                categories.append(Field.NAME)
            if 'id' in lower or 'number' in lower or self.looks_like_id(text):
                categories.append(Field.ID_NUMBER)
            if 'birth' in lower or 'dob' in lower or self.DATE.search(text):
                categories.append(Field.DATE_OF_BIRTH)

            for key in categories:
                totals[key] += score
                counts[key] += 1

        scores = {
            key.attr: _round_half_up(totals[key] / counts[key]) if counts[key] else NEUTRAL_CONFIDENCE
            for key in Field
        }
        return FieldConfidence(**scores)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))
