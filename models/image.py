"""In-memory bitmap models passed through the preprocessing pipeline."""

import base64
import io
from dataclasses import dataclass, field
from typing import List

import numpy as np
from PIL import Image


class PreprocessingError(Exception):
    """Base exception for errors that abort image preprocessing."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.details = details or {}


class ImageDecodeError(PreprocessingError):
    """Raised when input image data cannot be decoded into a bitmap."""


class CanvasAllocationError(PreprocessingError):
    """Raised when a pixel buffer cannot be allocated."""


CanvasError = CanvasAllocationError


@dataclass
class RawImage:
    """
    Uncompressed RGBA bitmap.

    ``data`` holds ``width * height * 4`` bytes in row-major RGBA order.
    """
    width: int
    height: int
    data: bytes

    def __post_init__(self):
        """Check the buffer matches the declared dimensions."""
        if self.width <= 0 or self.height <= 0:
            raise ImageDecodeError(
                f"Invalid image dimensions {self.width}x{self.height}",
                {'error_type': 'invalid_dimensions'}
            )
        expected = self.width * self.height * 4
        if len(self.data) != expected:
            raise ImageDecodeError(
                f"RGBA buffer has {len(self.data)} bytes, expected {expected}",
                {'error_type': 'buffer_size_mismatch'}
            )

    @classmethod
    def from_array(cls, pixels: np.ndarray) -> 'RawImage':
        """Create a RawImage from an (height, width, 4) uint8 array."""
        if pixels.ndim != 3 or pixels.shape[2] != 4:
            raise ImageDecodeError(
                f"Expected an RGBA array, got shape {pixels.shape}",
                {'error_type': 'invalid_shape'}
            )
        height, width = pixels.shape[:2]
        return cls(width=width, height=height, data=pixels.astype(np.uint8).tobytes())

    def to_array(self) -> np.ndarray:
        """Return a writable (height, width, 4) uint8 copy of the pixels."""
        return np.frombuffer(self.data, dtype=np.uint8).reshape(self.height, self.width, 4).copy()

    def to_pil(self) -> Image.Image:
        """Return the bitmap as a PIL RGBA image."""
        return Image.frombytes('RGBA', (self.width, self.height), self.data)


@dataclass
class ProcessedImage:
    """Preprocessed bitmap plus its encoded form for the OCR engine."""
    image: Image.Image
    data_url: str
    applied_steps: List[str] = field(default_factory=list)

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    @property
    def pixels(self) -> np.ndarray:
        """RGBA pixels as a (height, width, 4) uint8 array."""
        return np.array(self.image.convert('RGBA'), dtype=np.uint8)

    def to_raw(self) -> RawImage:
        return RawImage.from_array(self.pixels)

    def save(self, path: str) -> None:
        """Write the processed bitmap to ``path`` as PNG."""
        self.image.save(path, format='PNG')


def encode_data_url(image: Image.Image, image_format: str = 'PNG') -> str:
    """
    Encode a PIL image as a base64 data URI.

    Args:
        image: PIL image to encode
        image_format: PIL format name (PNG or JPEG)

    Returns:
        String of the form ``data:image/png;base64,...``
    """
    buffer = io.BytesIO()
    if image_format.upper() == 'JPEG' and image.mode != 'RGB':
        image = image.convert('RGB')
    image.save(buffer, format=image_format)
    encoded = base64.b64encode(buffer.getvalue()).decode('ascii')
    return f"data:image/{image_format.lower()};base64,{encoded}"


def decode_data_url(data_url: str) -> bytes:
    """
    Decode a base64 data URI (or bare base64 string) into raw bytes.

    Raises:
        ImageDecodeError: If the payload is not valid base64
    """
    payload = data_url
    if data_url.startswith('data:'):
        header, _, payload = data_url.partition(',')
        if ';base64' not in header:
            raise ImageDecodeError(
                "Only base64 data URIs are supported",
                {'error_type': 'unsupported_data_url'}
            )
    try:
        return base64.b64decode(payload, validate=True)
    except (ValueError, TypeError) as e:
        raise ImageDecodeError(
            f"Invalid base64 image payload: {str(e)}",
            {'error_type': 'invalid_base64'}
        )
