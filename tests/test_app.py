"""
Tests for the ID card scan Flask API.
"""
import io
import json

import cv2
import numpy as np
import pytest
from pymongo.errors import ServerSelectionTimeoutError

from idscan import app as app_module
from idscan.config import Config
from idscan.modules.field_extractor import ExtractionResult
from idscan.modules.ocr_engine import RecognitionResult
from idscan.modules.preprocessing import ImagePreprocessor


class FakeDB:
    def __init__(self):
        self.saved = []

    def save_scan(self, result, filename=None):
        self.saved.append((result, filename))
        return "65f0c0ffee0000000000abcd"

    def get_scan(self, doc_id):
        if doc_id != "65f0c0ffee0000000000abcd":
            return None
        result, filename = self.saved[0]
        return {'_id': doc_id, 'filename': filename, 'fields': result.to_dict()}

    def get_recent_scans(self, limit=100):
        return [{'_id': str(i)} for i in range(len(self.saved))][:limit]


class FailingDB:
    def save_scan(self, result, filename=None):
        raise ServerSelectionTimeoutError("no servers available")

    def get_scan(self, doc_id):
        raise ServerSelectionTimeoutError("no servers available")

    def get_recent_scans(self, limit=100):
        raise ServerSelectionTimeoutError("no servers available")


class FakeScanner:
    def __init__(self, result, recognition):
        self.preprocessor = ImagePreprocessor()
        self.result = result
        self.recognition = recognition

    def scan_with_text(self, image):
        return self.result, self.recognition


@pytest.fixture
def fake_db(monkeypatch):
    db = FakeDB()
    monkeypatch.setattr(app_module, 'get_db', lambda: db)
    return db


@pytest.fixture
def png_bytes():
    image = np.full((60, 120, 3), 255, dtype=np.uint8)
    ok, buffer = cv2.imencode('.png', image)
    assert ok
    return buffer.tobytes()


class TestHealthEndpoint:
    """Test health check endpoint."""

    def test_health_returns_ok(self, client):
        response = client.get('/api/health')
        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['status'] == 'healthy'
        assert 'version' in data


class TestExtractTextEndpoint:
    """Test extraction from device recognized text."""

    def test_extracts_fields(self, client, sample_card_text):
        response = client.post('/api/extract/text', json={
            'text': sample_card_text,
            'blocks': [
                {'text': 'Name: John Smith', 'languageConfidence': 0.95},
                {'text': 'ID Number: AB12345', 'languageConfidence': 0.75},
                {'text': 'Date of Birth: 05/20/1990'},
            ]
        })

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['fields'] == {
            'name': 'John Smith',
            'idNumber': 'AB12345',
            'dateOfBirth': '05/20/1990',
        }
        assert data['confidence'] == {'name': 95, 'idNumber': 75, 'dateOfBirth': 85}
        assert data['confidence_labels'] == {'name': 'High', 'idNumber': 'Medium', 'dateOfBirth': 'Medium'}
        assert data['validation_errors'] == {}
        assert data['status'] == 'completed'

    def test_reports_validation_errors(self, client):
        response = client.post('/api/extract/text', json={'text': 'Jane Doe'})

        data = json.loads(response.data)
        assert data['fields']['name'] == 'Jane Doe'
        assert set(data['validation_errors']) == {'idNumber', 'dateOfBirth'}
        assert data['confidence'] == {'name': 50, 'idNumber': 50, 'dateOfBirth': 50}

    @pytest.mark.parametrize("body", [
        {},
        {'text': 5},
        {'text': 'Name: Al', 'blocks': 'Name'},
        {'text': 'Name: Al', 'blocks': ['Name']},
        {'text': 'Name: Al', 'blocks': [{'text': 'Name', 'languageConfidence': 'high'}]},
    ])
    def test_rejects_bad_body(self, client, body):
        response = client.post('/api/extract/text', json=body)
        assert response.status_code == 400

    def test_rejects_non_json(self, client):
        response = client.post('/api/extract/text', data='not json', content_type='text/plain')
        assert response.status_code == 400

    @pytest.mark.parametrize("confidence", ['NaN', 'Infinity', '-Infinity'])
    def test_rejects_non_finite_confidence(self, client, confidence):
        body = ('{"text": "Name: Ann Lee", "blocks": '
                '[{"text": "Name: Ann Lee", "languageConfidence": %s}]}' % confidence)
        response = client.post('/api/extract/text', data=body, content_type='application/json')
        assert response.status_code == 400


class TestExtractImageEndpoint:
    """Test extraction from an uploaded card image."""

    def test_requires_image(self, client):
        response = client.post('/api/extract', json={})
        assert response.status_code == 400

    def test_undecodable_upload(self, client):
        response = client.post(
            '/api/extract',
            data={'file': (io.BytesIO(b'garbage'), 'card.png')},
            content_type='multipart/form-data'
        )

        assert response.status_code == 400
        assert json.loads(response.data)['error_code'] == 'IMAGE_DECODE_FAILED'

    def test_recognition_failure_returns_zero_confidence(self, client, monkeypatch, png_bytes):
        monkeypatch.setattr(app_module, 'scanner', FakeScanner(ExtractionResult.failed(), None))

        response = client.post(
            '/api/extract',
            data={'file': (io.BytesIO(png_bytes), 'card.png')},
            content_type='multipart/form-data'
        )

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['status'] == 'failed'
        assert data['fields'] == {'name': '', 'idNumber': '', 'dateOfBirth': ''}
        assert data['confidence'] == {'name': 0, 'idNumber': 0, 'dateOfBirth': 0}

    def test_successful_scan(self, client, monkeypatch, png_bytes, valid_result):
        recognition = RecognitionResult(text="Name: John Smith")
        monkeypatch.setattr(app_module, 'scanner', FakeScanner(valid_result, recognition))

        response = client.post(
            '/api/extract',
            data={'file': (io.BytesIO(png_bytes), 'card.png')},
            content_type='multipart/form-data'
        )

        data = json.loads(response.data)
        assert data['status'] == 'completed'
        assert data['filename'] == 'card.png'
        assert data['ocr_text'] == "Name: John Smith"
        assert data['fields']['idNumber'] == 'AB12345'

    def test_unknown_upload_name(self, client, monkeypatch, tmp_path):
        monkeypatch.setitem(client.application.config, 'UPLOAD_FOLDER', str(tmp_path))
        response = client.post('/api/extract', json={'filename': 'missing.png'})
        assert response.status_code == 404


class TestUploadEndpoint:
    """Test card upload."""

    def test_upload_and_extract_by_name(self, client, monkeypatch, tmp_path, png_bytes, valid_result):
        monkeypatch.setitem(client.application.config, 'UPLOAD_FOLDER', str(tmp_path))
        monkeypatch.setattr(app_module, 'scanner', FakeScanner(valid_result, RecognitionResult(text="")))

        upload = client.post(
            '/api/upload',
            data={'file': (io.BytesIO(png_bytes), 'card.png')},
            content_type='multipart/form-data'
        )
        assert upload.status_code == 200
        filename = json.loads(upload.data)['filename']
        assert filename.endswith('_card.png')

        response = client.post('/api/extract', json={'filename': filename})
        assert response.status_code == 200
        assert json.loads(response.data)['fields']['name'] == 'John Smith'

    def test_rejects_extension(self, client):
        response = client.post(
            '/api/upload',
            data={'file': (io.BytesIO(b'%PDF'), 'card.pdf')},
            content_type='multipart/form-data'
        )
        assert response.status_code == 400


class TestValidateEndpoint:
    """Test validation of edited results."""

    def test_valid(self, client, valid_result):
        response = client.post('/api/validate', json=valid_result.to_dict())

        assert response.status_code == 200
        assert json.loads(response.data) == {'valid': True, 'errors': {}}

    def test_invalid_date(self, client):
        response = client.post('/api/validate', json={
            'name': 'Al', 'idNumber': 'A1234', 'dateOfBirth': '02/30/2000'
        })

        data = json.loads(response.data)
        assert data['valid'] is False
        assert list(data['errors']) == ['dateOfBirth']

    def test_bad_body(self, client):
        response = client.post('/api/validate', json={'name': 42})
        assert response.status_code == 400
        assert json.loads(response.data)['error_code'] == 'INVALID_RESULT'


class TestResultsEndpoints:
    """Test storing and reading accepted scans."""

    def test_save_valid_result(self, client, fake_db, valid_result):
        payload = dict(valid_result.to_dict(), filename='card.png')
        response = client.post('/api/results', json=payload)

        assert response.status_code == 201
        assert json.loads(response.data)['_id'] == "65f0c0ffee0000000000abcd"
        assert fake_db.saved == [(valid_result, 'card.png')]

    def test_invalid_result_is_not_saved(self, client, fake_db):
        response = client.post('/api/results', json={'name': 'J'})

        assert response.status_code == 422
        assert set(json.loads(response.data)['errors']) == {'name', 'idNumber', 'dateOfBirth'}
        assert fake_db.saved == []

    def test_database_unreachable(self, client, monkeypatch, valid_result):
        monkeypatch.setattr(app_module, 'db_client', None)
        monkeypatch.setattr(Config, 'MONGODB_URI', 'mongodb://127.0.0.1:1')
        monkeypatch.setattr(Config, 'MONGODB_TIMEOUT_MS', 100)

        assert client.post('/api/results', json=valid_result.to_dict()).status_code == 503
        assert client.get('/api/history').status_code == 503
        assert app_module.db_client is None

    def test_database_fails_mid_request(self, client, monkeypatch, valid_result):
        monkeypatch.setattr(app_module, 'get_db', lambda: FailingDB())

        response = client.post('/api/results', json=valid_result.to_dict())
        assert response.status_code == 503
        assert json.loads(response.data)['error'] == 'Database not available'
        assert client.get('/api/results/65f0c0ffee0000000000abcd').status_code == 503
        assert client.get('/api/history').status_code == 503

    def test_get_result(self, client, fake_db, valid_result):
        client.post('/api/results', json=valid_result.to_dict())

        response = client.get('/api/results/65f0c0ffee0000000000abcd')
        assert response.status_code == 200
        assert client.get('/api/results/unknown').status_code == 404

    def test_history(self, client, fake_db, valid_result):
        client.post('/api/results', json=valid_result.to_dict())

        data = json.loads(client.get('/api/history?limit=5').data)
        assert data['total'] == 1
