"""Base OCR engine interface."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional, Union
from enum import Enum

from PIL import Image

from models.image import ProcessedImage, PreprocessingError
from utils.image_preprocessor import load_image

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]
OCRInput = Union[ProcessedImage, Image.Image, str]


class OCREngineType(Enum):
    """Supported OCR engine types."""
    TESSERACT = "tesseract"


class OCRServiceError(Exception):
    """Raised when the OCR engine fails, times out or is cancelled."""
    def __init__(self, message: str, engine: Optional[OCREngineType] = None,
                 details: Dict[str, Any] = None):
        super().__init__(message)
        self.engine = engine
        self.details = details or {}


class ProgressReporter:
    """
    Forwards progress percentages to a callback.

    Values are clamped to 0-100 and anything lower than the last value
    delivered is dropped, so the callback only ever sees a non-decreasing
    sequence.
    """

    def __init__(self, callback: Optional[ProgressCallback] = None):
        self.callback = callback
        self.last_value: Optional[int] = None

    def report(self, value: Union[int, float]) -> None:
        if self.callback is None:
            return
        percent = max(0, min(100, int(round(value))))
        if self.last_value is not None and percent < self.last_value:
            return
        self.last_value = percent
        self.callback(percent)


class BaseOCR(ABC):
    """Abstract base class for OCR engines."""

    engine_type: OCREngineType

    @abstractmethod
    def _recognize(self, image: Image.Image, progress: ProgressReporter) -> str:
        """
        Run the engine on a decoded image.

        Args:
            image: PIL image to recognize
            progress: Reporter for percentage updates

        Returns:
            Recognized text, newline-separated lines
        """
        pass

    def recognize(self, image: OCRInput, on_progress: Optional[ProgressCallback] = None) -> str:
        """
        Extract text from a preprocessed image.

        Args:
            image: ProcessedImage, PIL image or base64 data URI
            on_progress: Optional callback receiving percentages 0-100

        Returns:
            Block of recognized text

        Raises:
            OCRServiceError: If text extraction fails for any reason
        """
        pil_image = self._to_pil(image)
        progress = ProgressReporter(on_progress)
        try:
            return self._recognize(pil_image, progress)
        except OCRServiceError:
            raise
        except Exception as e:
            logger.error(f"OCR failed: {str(e)}")
            raise OCRServiceError(
                f"Error extracting text: {str(e)}",
                getattr(self, 'engine_type', None),
                {'error_type': 'processing', 'original_error': str(e)}
            )

    def _to_pil(self, image: OCRInput) -> Image.Image:
        if isinstance(image, ProcessedImage):
            return image.image
        if isinstance(image, Image.Image):
            return image
        if isinstance(image, str):
            try:
                return Image.fromarray(load_image(image))
            except PreprocessingError as e:
                raise OCRServiceError(
                    f"Could not decode image for OCR: {str(e)}",
                    getattr(self, 'engine_type', None),
                    {'error_type': 'input_validation'}
                )
        raise OCRServiceError(
            f"Unsupported image type: {type(image).__name__}",
            getattr(self, 'engine_type', None),
            {'error_type': 'input_validation'}
        )
