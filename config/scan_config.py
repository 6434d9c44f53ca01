"""Bill scanning configuration read from the environment."""

import os
import logging
from typing import Optional, Dict, Any
from urllib.parse import urlparse

from utils.image_preprocessor import PreprocessOptions

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONTENT_LENGTH = 16 * 1024 * 1024  # 16MB


class ScanConfigError(Exception):
    """Raised when the scanning configuration is invalid."""
    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(message)
        self.details = details or {}


class ScanConfig:
    """Configuration for OCR, segmentation and the scan API."""

    def __init__(self, env: Optional[Dict[str, str]] = None):
        """
        Initialize configuration.

        Args:
            env: Optional mapping used instead of os.environ (mainly for tests)
        """
        source = env if env is not None else os.environ
        get = source.get

        self.tesseract_cmd = get('TESSERACT_CMD') or None
        self.ocr_language = get('OCR_LANGUAGE') or 'eng'
        self._ocr_timeout = get('OCR_TIMEOUT') or None
        self.segmentation_endpoint = get('SEGMENTATION_ENDPOINT') or None
        self._segmentation_timeout = get('SEGMENTATION_TIMEOUT') or '30'
        self.log_dir = get('LOG_DIR') or 'logs'
        self.debug = (get('FLASK_DEBUG') or '0').lower() in ('1', 'true')
        self._port = get('FLASK_PORT') or '5000'
        self._max_content_length = get('MAX_CONTENT_LENGTH') or str(DEFAULT_MAX_CONTENT_LENGTH)

        self.enhance_contrast = self._flag(source, 'SCAN_ENHANCE_CONTRAST', True)
        self.sharpen = self._flag(source, 'SCAN_SHARPEN', True)
        self.threshold = self._flag(source, 'SCAN_THRESHOLD', False)
        self.remove_background = self._flag(source, 'SCAN_REMOVE_BACKGROUND', False)

    @staticmethod
    def _flag(env, name: str, default: bool) -> bool:
        value = env.get(name)
        if value is None or value.strip() == '':
            return default
        return value.strip().lower() in ('1', 'true', 'yes', 'on')

    @staticmethod
    def _number(name: str, raw: Optional[str], cast=float):
        if raw is None:
            return None
        try:
            value = cast(raw)
        except ValueError:
            raise ScanConfigError(
                f"{name} must be numeric, got {raw!r}",
                {'error_type': 'invalid_number', 'setting': name}
            )
        if value <= 0:
            raise ScanConfigError(
                f"{name} must be positive, got {raw!r}",
                {'error_type': 'invalid_number', 'setting': name}
            )
        return value

    @property
    def ocr_timeout(self) -> Optional[float]:
        return self._number('OCR_TIMEOUT', self._ocr_timeout)

    @property
    def segmentation_timeout(self) -> float:
        return self._number('SEGMENTATION_TIMEOUT', self._segmentation_timeout)

    @property
    def port(self) -> int:
        return self._number('FLASK_PORT', self._port, int)

    @property
    def max_content_length(self) -> int:
        return self._number('MAX_CONTENT_LENGTH', self._max_content_length, int)

    @property
    def has_segmentation(self) -> bool:
        """Check if a segmentation service is configured."""
        return bool(self.segmentation_endpoint)

    def validate(self) -> None:
        """
        Validate the configuration.

        Raises:
            ScanConfigError: If a setting is malformed
        """
        # The numeric properties raise ScanConfigError when malformed
        for setting in ('ocr_timeout', 'segmentation_timeout', 'port', 'max_content_length'):
            getattr(self, setting)

        if self.segmentation_endpoint:
            parsed = urlparse(self.segmentation_endpoint)
            if parsed.scheme not in ('http', 'https') or not parsed.netloc:
                raise ScanConfigError(
                    f"Invalid segmentation endpoint: {self.segmentation_endpoint}",
                    {'error_type': 'invalid_endpoint'}
                )

        logger.debug("Scan configuration validated")

    def default_options(self) -> PreprocessOptions:
        """Preprocessing options used when a request does not specify them."""
        return PreprocessOptions(
            enhance_contrast=self.enhance_contrast,
            sharpen=self.sharpen,
            threshold=self.threshold,
            remove_background=self.remove_background
        )

    def get_status(self) -> Dict[str, Any]:
        """Get current configuration status."""
        return {
            'ocr_language': self.ocr_language,
            'tesseract_cmd': self.tesseract_cmd,
            'ocr_timeout': self._ocr_timeout,
            'has_segmentation': self.has_segmentation,
            'segmentation_endpoint': self.segmentation_endpoint,
            'default_options': self.default_options().to_dict()
        }
