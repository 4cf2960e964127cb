"""
Error Handling System
Provides consistent error responses for the scan pipeline and API.
"""
import logging

logger = logging.getLogger(__name__)


class ScanError(Exception):
    """Base exception for scan errors"""
    def __init__(self, message, error_code, details=None):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self):
        """Convert error to JSON-serializable dict"""
        return {
            "success": False,
            "error": self.message,
            "error_code": self.error_code,
            "details": self.details
        }


class ImageDecodeError(ScanError):
    """Uploaded data could not be decoded into an image"""
    def __init__(self, source, reason=None):
        super().__init__(
            message=f"Could not read image from {source}",
            error_code="IMAGE_DECODE_FAILED",
            details={
                "source": source,
                "reason": reason,
                "suggestion": "Upload a PNG or JPEG photo of the ID card"
            }
        )


class RecognitionError(ScanError):
    """Text recognition engine failed"""
    def __init__(self, reason):
        super().__init__(
            message=f"Text recognition failed: {reason}",
            error_code="RECOGNITION_FAILED",
            details={
                "reason": str(reason),
                "suggestion": "Retake the photo with better lighting and focus"
            }
        )


class ResultFormatError(ScanError):
    """Request body does not describe an extraction result"""
    def __init__(self, reason):
        super().__init__(
            message=f"Invalid extraction result: {reason}",
            error_code="INVALID_RESULT",
            details={"reason": str(reason)}
        )


def handle_error(error, log_message=None):
    """
    Handle error consistently across the application

    Args:
        error: Exception that occurred
        log_message: Optional custom log message

    Returns:
        dict: Error response for JSON serialization
    """
    if log_message:
        logger.error(log_message)

    if isinstance(error, ScanError):
        logger.error(f"{error.error_code}: {error.message}")
        if error.details:
            logger.debug(f"Error details: {error.details}")
        return error.to_dict()

    logger.error(f"Unexpected error: {error}")
    logger.exception("Full traceback:")
    return {
        "success": False,
        "error": "An unexpected error occurred",
        "error_code": "UNEXPECTED_ERROR",
        "details": {
            "error_type": type(error).__name__,
            "error_message": str(error)
        }
    }
