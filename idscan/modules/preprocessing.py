"""
Image Preprocessing Module for ID card scanning.
Prepares phone captures of ID cards for text recognition.
"""

import logging

import cv2
import numpy as np

from idscan.config import Config
from idscan.error_handlers import ImageDecodeError

logger = logging.getLogger(__name__)


class ImagePreprocessor:
    """Preprocesses card photos for optimal OCR performance."""

    def __init__(self, min_width: int = None, binarize: bool = None):
        self.min_width = Config.MIN_IMAGE_WIDTH if min_width is None else min_width
        self.use_binarization = Config.BINARIZE_IMAGES if binarize is None else binarize

    def preprocess(self, image: np.ndarray) -> np.ndarray:
        """
        Full preprocessing pipeline.

        Args:
            image: Input image as numpy array (BGR format from cv2)

        Returns:
            Preprocessed grayscale image ready for OCR
        """
        if len(image.shape) == 3:
            gray = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
        else:
            gray = image.copy()

        gray = self.upscale(gray)
        gray = self.deskew(gray)
        gray = self.denoise(gray)
        gray = self.enhance_contrast(gray)
        if self.use_binarization:
            gray = self.binarize(gray)

        return gray

    def upscale(self, image: np.ndarray) -> np.ndarray:
        """
        Upscale narrow captures so card text is tall enough for Tesseract.

        Args:
            image: Grayscale image

        Returns:
            Image at least ``min_width`` pixels wide
        """
        width = image.shape[1]
        if width >= self.min_width or width == 0:
            return image

        scale = self.min_width / float(width)
        logger.debug(f"Upscaling image by {scale:.2f}")
        return cv2.resize(
            image,
            (self.min_width, int(image.shape[0] * scale)),
            interpolation=cv2.INTER_CUBIC
        )

    def deskew(self, image: np.ndarray) -> np.ndarray:
        """
        Correct small rotations of the card using the Hough transform.

        Args:
            image: Grayscale image

        Returns:
            Deskewed image
        """
        edges = cv2.Canny(image, 50, 150, apertureSize=3)
        lines = cv2.HoughLinesP(
            edges, 1, np.pi / 180,
            threshold=100,
            minLineLength=100,
            maxLineGap=10
        )

        if lines is None:
            return image

        angles = []
        for line in lines:
            x1, y1, x2, y2 = line[0]
            angle = np.degrees(np.arctan2(y2 - y1, x2 - x1))
            if abs(angle) < 45:  # near-horizontal only
                angles.append(angle)

        if not angles:
            return image

        median_angle = np.median(angles)
        if abs(median_angle) <= 0.5:
            return image

        (h, w) = image.shape[:2]
        rotation_matrix = cv2.getRotationMatrix2D((w // 2, h // 2), median_angle, 1.0)
        return cv2.warpAffine(
            image, rotation_matrix, (w, h),
            flags=cv2.INTER_CUBIC,
            borderMode=cv2.BORDER_REPLICATE
        )

    def denoise(self, image: np.ndarray) -> np.ndarray:
        # Bilateral filter keeps glyph edges
        return cv2.bilateralFilter(image, 9, 75, 75)

    def enhance_contrast(self, image: np.ndarray) -> np.ndarray:
        """Even out glare and shadows with CLAHE."""
        clahe = cv2.createCLAHE(clipLimit=2.0, tileGridSize=(8, 8))
        return clahe.apply(image)

    def binarize(self, image: np.ndarray) -> np.ndarray:
        """Convert to a binary image using adaptive thresholding."""
        return cv2.adaptiveThreshold(
            image, 255,
            cv2.ADAPTIVE_THRESH_GAUSSIAN_C,
            cv2.THRESH_BINARY,
            11, 2
        )

    def load_image(self, file_path: str) -> np.ndarray:
        """
        Load image from file path.

        Args:
            file_path: Path to image file

        Returns:
            Image as numpy array

        Raises:
            ImageDecodeError: If the file is not a readable image
        """
        image = cv2.imread(file_path)
        if image is None:
            raise ImageDecodeError(file_path)
        return image

    def load_image_from_bytes(self, image_bytes: bytes, source: str = "upload") -> np.ndarray:
        """
        Load image from bytes.

        Args:
            image_bytes: Image data as bytes
            source: Name used in error messages

        Returns:
            Image as numpy array

        Raises:
            ImageDecodeError: If the bytes do not decode to an image
        """
        if not image_bytes:
            raise ImageDecodeError(source, "empty file")

        nparr = np.frombuffer(image_bytes, np.uint8)
        image = cv2.imdecode(nparr, cv2.IMREAD_COLOR)
        if image is None:
            raise ImageDecodeError(source)
        return image
