"""
Tesseract OCR engine implementation.
"""

import logging
import time
from typing import Any, Dict, Optional

import pytesseract
from PIL import Image

from .base_ocr import BaseOCR, OCRServiceError, OCREngineType, ProgressReporter

logger = logging.getLogger(__name__)

# Characters that appear on restaurant bills; anything else is OCR noise
CHAR_WHITELIST = (
    'ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789'
    '₹$.,-()x/=*:%#@&'
)


class TesseractOCR(BaseOCR):
    """
    OCR engine using Tesseract.
    """

    def __init__(self,
                 tesseract_cmd: Optional[str] = None,
                 language: str = 'eng',
                 config: Optional[str] = None,
                 timeout: Optional[float] = None):
        """
        Initialize Tesseract OCR.

        Args:
            tesseract_cmd: Path to Tesseract executable (optional)
            language: Tesseract language code
            config: Custom Tesseract configuration (optional)
            timeout: Seconds before the Tesseract process is killed, None for no limit

        Raises:
            OCRServiceError: If Tesseract is not installed
        """
        self.engine_type = OCREngineType.TESSERACT

        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd

        self.language = language
        # Automatic page segmentation, LSTM engine
        self.config = config or f'--oem 3 --psm 3 -c tessedit_char_whitelist={CHAR_WHITELIST}'
        self.timeout = timeout
        self.last_processing_time = 0.0

        # Verify Tesseract installation
        try:
            version = pytesseract.get_tesseract_version()
            logger.info(f"Initialized Tesseract OCR {version}")
        except Exception as e:
            logger.error(f"Failed to initialize Tesseract OCR: {str(e)}")
            raise OCRServiceError(
                "Tesseract not properly installed or configured",
                self.engine_type,
                {'error_type': 'initialization', 'original_error': str(e)}
            )

    def _recognize(self, image: Image.Image, progress: ProgressReporter) -> str:
        """Run Tesseract on the image, reporting 0 before and 100 after."""
        progress.report(0)
        start_time = time.time()

        if image.mode not in ('RGB', 'L'):
            image = image.convert('RGB')

        try:
            text = pytesseract.image_to_string(
                image,
                lang=self.language,
                config=self.config,
                timeout=self.timeout or 0
            )
        except RuntimeError as e:
            # pytesseract signals a killed process with RuntimeError
            raise OCRServiceError(
                f"Tesseract timed out after {self.timeout} seconds",
                self.engine_type,
                {'error_type': 'timeout', 'original_error': str(e)}
            )
        except pytesseract.TesseractError as e:
            raise OCRServiceError(
                f"Tesseract failed: {e.message}",
                self.engine_type,
                {'error_type': 'processing', 'status': e.status}
            )

        self.last_processing_time = time.time() - start_time
        logger.debug(f"Tesseract recognized {len(text)} characters in {self.last_processing_time:.2f}s")
        progress.report(100)
        return text

    def get_debug_info(self) -> Dict[str, Any]:
        """Get debug information about the last OCR run."""
        return {
            'engine': self.engine_type.value,
            'language': self.language,
            'processing_time': self.last_processing_time,
            'timeout': self.timeout,
            'config': self.config
        }
