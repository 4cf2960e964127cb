"""
ID Card Scan API - Flask Backend
Handles card image upload, OCR, field extraction and validation for the
lead app's capture screen.
"""

import logging
import os
import time
from datetime import datetime

from flask import Flask, jsonify, request
from flask_cors import CORS
from pymongo.errors import PyMongoError
from werkzeug.utils import secure_filename

from idscan import __version__
from idscan.config import Config
from idscan.database.mongo_client import MongoDBClient
from idscan.error_handlers import ResultFormatError, ScanError, handle_error
from idscan.modules.field_extractor import ExtractionResult, Field, FieldExtractor
from idscan.modules.ocr_engine import RecognitionResult, RecognizedBlock
from idscan.modules.scanner import IDCardScanner
from idscan.modules.validator import FieldValidator

logging.basicConfig(
    level=getattr(logging, Config.LOG_LEVEL, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)

# Initialize Flask app
app = Flask(__name__)
CORS(app)

# Configuration
app.config['MAX_CONTENT_LENGTH'] = Config.MAX_CONTENT_LENGTH
app.config['UPLOAD_FOLDER'] = Config.UPLOAD_FOLDER

# Initialize components
extractor = FieldExtractor()
scanner = IDCardScanner(extractor=extractor)
validator = FieldValidator()

# MongoDB client (initialized lazily)
db_client = None


def get_db():
    """Get MongoDB client instance."""
    global db_client
    if db_client is None:
        try:
            db_client = MongoDBClient()
        except PyMongoError as e:
            logger.warning(f"MongoDB connection failed: {e}")
            return None
    return db_client


def allowed_file(filename):
    """Check if file has allowed extension."""
    return '.' in filename and \
           filename.rsplit('.', 1)[1].lower() in Config.ALLOWED_EXTENSIONS


def error_response(error, status):
    return jsonify(handle_error(error)), status


def db_unavailable(error):
    logger.error(f"MongoDB operation failed: {error}")
    return jsonify({'error': 'Database not available'}), 503


def build_scan_response(result, recognition, filename, start_time):
    """Serialize an extraction result with its labels and validation state."""
    errors = validator.validate(result)
    return {
        'filename': filename,
        'fields': {key.value: result.get(key) for key in Field},
        'confidence': result.confidence.to_dict(),
        'confidence_labels': {
            key.value: label for key, label in validator.confidence_labels(result).items()
        },
        'validation_errors': {key.value: message for key, message in errors.items()},
        'ocr_text': recognition.text if recognition else '',
        'processing_time_ms': int((time.time() - start_time) * 1000),
        'status': 'completed' if recognition else 'failed'
    }


@app.route('/api/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    return jsonify({
        'status': 'healthy',
        'timestamp': datetime.utcnow().isoformat(),
        'version': __version__
    })


@app.route('/api/upload', methods=['POST'])
def upload_card():
    """
    Upload a card image for later extraction.
    Returns the stored filename.
    """
    if 'file' not in request.files:
        return jsonify({'error': 'No file provided'}), 400

    file = request.files['file']

    if file.filename == '':
        return jsonify({'error': 'No file selected'}), 400

    if not allowed_file(file.filename):
        return jsonify({'error': 'Invalid file type. Allowed: png, jpg, jpeg'}), 400

    os.makedirs(app.config['UPLOAD_FOLDER'], exist_ok=True)

    filename = secure_filename(file.filename)
    timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
    saved_filename = f"{timestamp}_{filename}"
    file.save(os.path.join(app.config['UPLOAD_FOLDER'], saved_filename))

    logger.info(f"Stored upload {saved_filename}")
    return jsonify({
        'message': 'File uploaded successfully',
        'filename': saved_filename
    })


@app.route('/api/extract', methods=['POST'])
def extract_card_data():
    """
    Extract fields from a card image.
    Accepts either a file upload or the filename of a previous upload.
    """
    start_time = time.time()

    try:
        if 'file' in request.files:
            file = request.files['file']
            if file.filename == '':
                return jsonify({'error': 'No file selected'}), 400

            filename = secure_filename(file.filename)
            image = scanner.preprocessor.load_image_from_bytes(file.read(), source=filename)
        else:
            payload = request.get_json(silent=True) or {}
            if not payload.get('filename'):
                return jsonify({'error': 'No file or filename provided'}), 400

            filename = secure_filename(payload['filename'])
            filepath = os.path.join(app.config['UPLOAD_FOLDER'], filename)
            if not os.path.exists(filepath):
                return jsonify({'error': 'File not found'}), 404
            image = scanner.preprocessor.load_image(filepath)
    except ScanError as e:
        return error_response(e, 400)

    result, recognition = scanner.scan_with_text(image)
    return jsonify(build_scan_response(result, recognition, filename, start_time))


@app.route('/api/extract/text', methods=['POST'])
def extract_from_text():
    """
    Extract fields from text recognized on the device.
    Expects {"text": "...", "blocks": [{"text": "...", "languageConfidence": 0.9}]}.
    """
    start_time = time.time()
    payload = request.get_json(silent=True)

    if not isinstance(payload, dict) or not isinstance(payload.get('text'), str):
        return jsonify({'error': "JSON body with a 'text' string is required"}), 400

    raw_blocks = payload.get('blocks') or []
    if not isinstance(raw_blocks, list) or not all(isinstance(b, dict) for b in raw_blocks):
        return jsonify({'error': "'blocks' must be a list of objects"}), 400

    try:
        blocks = [RecognizedBlock.from_dict(block) for block in raw_blocks]
    except (TypeError, ValueError) as e:
        return error_response(ResultFormatError(f"bad block confidence: {e}"), 400)

    recognition = RecognitionResult(text=payload['text'], blocks=blocks)
    result = extractor.extract(recognition)
    return jsonify(build_scan_response(result, recognition, payload.get('filename'), start_time))


@app.route('/api/validate', methods=['POST'])
def validate_result():
    """Validate an edited result before saving."""
    try:
        result = ExtractionResult.from_dict(request.get_json(silent=True))
    except ScanError as e:
        return error_response(e, 400)

    errors = validator.validate(result)
    return jsonify({
        'valid': not errors,
        'errors': {key.value: message for key, message in errors.items()}
    })


@app.route('/api/results', methods=['POST'])
def save_result():
    """Validate and store an accepted result."""
    payload = request.get_json(silent=True)
    try:
        result = ExtractionResult.from_dict(payload)
    except ScanError as e:
        return error_response(e, 400)

    errors = validator.validate(result)
    if errors:
        return jsonify({
            'error': 'Please fix the errors before saving',
            'errors': {key.value: message for key, message in errors.items()}
        }), 422

    db = get_db()
    if db is None:
        return jsonify({'error': 'Database not available'}), 503

    try:
        doc_id = db.save_scan(result, filename=payload.get('filename'))
    except PyMongoError as e:
        return db_unavailable(e)

    logger.info(f"Saved scan {doc_id}")
    return jsonify({'message': 'Saved successfully', '_id': doc_id}), 201


@app.route('/api/results/<doc_id>', methods=['GET'])
def get_result(doc_id):
    """Get a stored scan by ID."""
    db = get_db()
    if db is None:
        return jsonify({'error': 'Database not available'}), 503

    try:
        document = db.get_scan(doc_id)
    except PyMongoError as e:
        return db_unavailable(e)

    if document is None:
        return jsonify({'error': 'Result not found'}), 404

    return jsonify(document)


@app.route('/api/history', methods=['GET'])
def get_history():
    """Get recently stored scans."""
    db = get_db()
    if db is None:
        return jsonify({'error': 'Database not available'}), 503

    limit = request.args.get('limit', 100, type=int)
    try:
        documents = db.get_recent_scans(limit=limit)
    except PyMongoError as e:
        return db_unavailable(e)

    return jsonify({
        'total': len(documents),
        'results': documents
    })


def main():
    logger.info("Starting ID Card Scan API...")
    logger.info(f"Upload folder: {Config.UPLOAD_FOLDER}")
    logger.info(f"MongoDB URI: {Config.MONGODB_URI}")
    app.run(host='0.0.0.0', port=int(os.getenv("PORT", "5000")))


if __name__ == '__main__':
    main()
