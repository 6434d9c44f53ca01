"""Background removal through an external image-segmentation service."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Sequence, Union

import numpy as np
import requests

logger = logging.getLogger(__name__)


class SegmentationError(Exception):
    """Raised when the segmentation service fails or returns an unusable mask."""
    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(message)
        self.details = details or {}


class BaseSegmenter(ABC):
    """Abstract base class for foreground segmentation collaborators."""

    @abstractmethod
    def _predict_mask(self, data_url: str, width: int, height: int) -> Sequence[float]:
        """
        Run segmentation on an encoded image.

        Args:
            data_url: Image as a base64 data URI
            width: Image width in pixels
            height: Image height in pixels

        Returns:
            Row-major foreground probabilities, one per pixel
        """
        pass

    def predict_mask(self, data_url: str, width: int, height: int) -> np.ndarray:
        """
        Get a validated (height, width) foreground probability mask.

        Raises:
            SegmentationError: If the service fails or the mask is malformed
        """
        try:
            raw_mask = self._predict_mask(data_url, width, height)
        except SegmentationError:
            raise
        except Exception as e:
            raise SegmentationError(
                f"Segmentation failed: {str(e)}",
                {'error_type': 'service_error', 'original_error': str(e)}
            )

        try:
            mask = np.asarray(raw_mask, dtype=np.float64).reshape(-1)
        except (TypeError, ValueError) as e:
            raise SegmentationError(
                f"Segmentation mask is not numeric: {str(e)}",
                {'error_type': 'invalid_mask'}
            )

        if mask.size != width * height:
            raise SegmentationError(
                f"Segmentation mask has {mask.size} values, expected {width * height}",
                {'error_type': 'mask_size_mismatch'}
            )
        if not np.all(np.isfinite(mask)):
            raise SegmentationError(
                "Segmentation mask contains non-finite values",
                {'error_type': 'invalid_mask'}
            )

        return np.clip(mask, 0.0, 1.0).reshape(height, width)


class HTTPSegmenter(BaseSegmenter):
    """
    Segmentation client for a JSON HTTP service.

    The service receives ``{"image": data_url, "width": w, "height": h}`` and
    answers with ``{"mask": [...]}``.
    """

    def __init__(self, endpoint: str, timeout: Optional[float] = 30.0,
                 session: Optional[requests.Session] = None):
        """
        Initialize the client.

        Args:
            endpoint: URL of the segmentation service
            timeout: Request timeout in seconds, None to wait indefinitely
            session: Optional requests session to reuse connections
        """
        self.endpoint = endpoint
        self.timeout = timeout
        self.session = session or requests.Session()

    def _predict_mask(self, data_url: str, width: int, height: int) -> Sequence[float]:
        try:
            response = self.session.post(
                self.endpoint,
                json={'image': data_url, 'width': width, 'height': height},
                timeout=self.timeout
            )
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as e:
            raise SegmentationError(
                f"Segmentation request failed: {str(e)}",
                {'error_type': 'request_failed', 'endpoint': self.endpoint}
            )
        except ValueError:
            raise SegmentationError(
                "Segmentation service returned invalid JSON",
                {'error_type': 'invalid_response', 'endpoint': self.endpoint}
            )

        if not isinstance(payload, dict) or 'mask' not in payload:
            raise SegmentationError(
                "Segmentation response has no mask",
                {'error_type': 'invalid_response', 'endpoint': self.endpoint}
            )
        return payload['mask']


def apply_foreground_mask(pixels: np.ndarray, mask: Union[np.ndarray, Sequence[float]]) -> np.ndarray:
    """
    Write ``round((1 - p) * 255)`` into the alpha channel of each pixel.

    Args:
        pixels: (height, width, 4) uint8 RGBA array, modified in place
        mask: Foreground probabilities, (height, width) or flat row-major

    Returns:
        The same array, for chaining
    """
    height, width = pixels.shape[:2]
    probabilities = np.asarray(mask, dtype=np.float64).reshape(height, width)
    alpha = np.floor((1.0 - probabilities) * 255.0 + 0.5)
    pixels[:, :, 3] = np.clip(alpha, 0, 255).astype(np.uint8)
    return pixels
