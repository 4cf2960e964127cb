"""
Validator Module for ID card scanning.
Checks extracted or user-edited results before they are accepted.
"""

import re
from datetime import date
from typing import Dict, Optional

from idscan.config import Config
from idscan.modules.field_extractor import ExtractionResult, Field


class FieldValidator:
    """Validates the fields of an extraction result."""

    STRICT_DATE = re.compile(r'\d{2}/\d{2}/\d{4}')

    MESSAGES = {
        Field.NAME: 'Name is required and must be at least 2 characters',
        Field.ID_NUMBER: 'ID Number is required and must be at least 5 characters',
        Field.DATE_OF_BIRTH: 'Valid date of birth is required (MM/DD/YYYY)',
    }

    MIN_LENGTHS = {
        Field.NAME: 2,
        Field.ID_NUMBER: 5,
    }

    def __init__(self, high_confidence_threshold: int = None, medium_confidence_threshold: int = None):
        """
        Initialize validator.

        Args:
            high_confidence_threshold: Score (0-100) from which confidence is high
            medium_confidence_threshold: Score (0-100) from which confidence is medium
        """
        if high_confidence_threshold is None:
            high_confidence_threshold = Config.HIGH_CONFIDENCE_THRESHOLD
        if medium_confidence_threshold is None:
            medium_confidence_threshold = Config.MEDIUM_CONFIDENCE_THRESHOLD
        self.high_threshold = high_confidence_threshold
        self.medium_threshold = medium_confidence_threshold

    def validate(self, result: ExtractionResult) -> Dict[Field, str]:
        """
        Validate every field of a result.

        Args:
            result: Extracted or edited result

        Returns:
            Mapping of invalid fields to messages; empty when valid
        """
        errors = {}
        for key in Field:
            message = self.validate_field(key, result.get(key))
            if message:
                errors[key] = message
        return errors

    def validate_field(self, key: Field, value: Optional[str]) -> Optional[str]:
        """
        Validate a single field value.

        Args:
            key: Field being checked
            value: Current value

        Returns:
            Error message, or None when the value is acceptable
        """
        if key is Field.DATE_OF_BIRTH:
            valid = bool(value) and self.is_valid_date(value)
        else:
            valid = bool(value) and len(value) >= self.MIN_LENGTHS[key]

        return None if valid else self.MESSAGES[key]

    def is_valid_date(self, value: str) -> bool:
        """Strict MM/DD/YYYY that names a real calendar day."""
        if not self.STRICT_DATE.fullmatch(value):
            return False

        month, day, year = (int(part) for part in value.split('/'))
        try:
            parsed = date(year, month, day)
        except ValueError:
            return False

        return (parsed.year, parsed.month, parsed.day) == (year, month, day)

    def confidence_label(self, score: int) -> str:
        """
        Describe a confidence score for display.

        Args:
            score: Confidence 0-100

        Returns:
            'High', 'Medium' or 'Low'
        """
        if score >= self.high_threshold:
            return 'High'
        if score >= self.medium_threshold:
            return 'Medium'
        return 'Low'

    def confidence_labels(self, result: ExtractionResult) -> Dict[Field, str]:
        return {key: self.confidence_label(result.confidence.get(key)) for key in Field}
