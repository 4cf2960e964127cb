import os
from dotenv import load_dotenv

load_dotenv()

class Config:
    """Application configuration settings."""

    # MongoDB Configuration
    MONGODB_URI = os.getenv("MONGODB_URI", "mongodb://localhost:27017")
    MONGODB_DB_NAME = os.getenv("MONGODB_DB_NAME", "id_card_scans")
    MONGODB_TIMEOUT_MS = int(os.getenv("MONGODB_TIMEOUT_MS", "5000"))

    # Tesseract Configuration
    TESSERACT_PATH = os.getenv("TESSERACT_PATH", "")

    # Upload Configuration
    UPLOAD_FOLDER = os.getenv("UPLOAD_FOLDER", "uploads")
    MAX_CONTENT_LENGTH = 16 * 1024 * 1024  # 16MB max file size
    ALLOWED_EXTENSIONS = {'png', 'jpg', 'jpeg'}

    # OCR Configuration
    OCR_LANGUAGE = os.getenv("OCR_LANGUAGE", "eng")
    OCR_CONFIG = os.getenv("OCR_CONFIG", "--psm 6")  # Assume uniform block of text
    PREPROCESS_IMAGES = os.getenv("PREPROCESS_IMAGES", "true").lower() == "true"
    BINARIZE_IMAGES = os.getenv("BINARIZE_IMAGES", "false").lower() == "true"
    MIN_IMAGE_WIDTH = int(os.getenv("MIN_IMAGE_WIDTH", "1000"))

    # Extraction Configuration
    # Used for blocks the recognizer returned without a confidence value
    DEFAULT_BLOCK_CONFIDENCE = float(os.getenv("DEFAULT_BLOCK_CONFIDENCE", "0.85"))
    # Two-digit years above the pivot are 19YY, the rest 20YY
    TWO_DIGIT_YEAR_PIVOT = int(os.getenv("TWO_DIGIT_YEAR_PIVOT", "50"))

    # Confidence Thresholds (0-100)
    HIGH_CONFIDENCE_THRESHOLD = 90
    MEDIUM_CONFIDENCE_THRESHOLD = 70

    # Logging
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
