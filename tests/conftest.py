"""
Pytest configuration and fixtures for the ID card scan backend.
"""
import pytest

from idscan.modules.field_extractor import ExtractionResult, FieldConfidence, FieldExtractor
from idscan.modules.validator import FieldValidator


@pytest.fixture
def app():
    """Create Flask test application."""
    from idscan.app import app as flask_app
    flask_app.config['TESTING'] = True
    return flask_app


@pytest.fixture
def client(app):
    """Create Flask test client."""
    return app.test_client()


@pytest.fixture
def extractor():
    return FieldExtractor(default_block_confidence=0.85, year_pivot=50)


@pytest.fixture
def validator():
    return FieldValidator(high_confidence_threshold=90, medium_confidence_threshold=70)


@pytest.fixture
def sample_card_text():
    """Labelled ID card text as returned by the recognizer."""
    return "Name: John Smith\nID Number: AB12345\nDate of Birth: 05/20/1990"


@pytest.fixture
def valid_result():
    return ExtractionResult(
        name="John Smith",
        id_number="AB12345",
        date_of_birth="05/20/1990",
        confidence=FieldConfidence(name=92, id_number=81, date_of_birth=64)
    )
