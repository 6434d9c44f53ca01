"""Image preprocessing module for OCR optimization."""

import io
import os
import logging
import math
from dataclasses import dataclass, asdict
from typing import Optional, Tuple, Dict, Union, BinaryIO

import cv2
import numpy as np
from PIL import Image, UnidentifiedImageError

from models.image import (
    RawImage, ProcessedImage, PreprocessingError, ImageDecodeError,
    CanvasAllocationError, CanvasError, encode_data_url, decode_data_url
)
from utils.background_remover import BaseSegmenter, SegmentationError, apply_foreground_mask

logger = logging.getLogger(__name__)

MAX_IMAGE_DIMENSION = 1024
CONTRAST_FACTOR = 1.8
SHARPEN_KERNEL = np.array([
    [0, -1, 0],
    [-1, 5, -1],
    [0, -1, 0]
], dtype=np.float32)
THRESHOLD_HALF_WINDOW = 15
THRESHOLD_OFFSET = 10

ImageInput = Union[RawImage, Image.Image, bytes, str, BinaryIO]

__all__ = [
    'PreprocessOptions', 'ImagePreprocessor', 'preprocess_image', 'load_image',
    'PreprocessingError', 'ImageDecodeError', 'CanvasAllocationError', 'CanvasError',
    'SegmentationError', 'MAX_IMAGE_DIMENSION'
]


@dataclass(frozen=True)
class PreprocessOptions:
    """
    Toggles for the optional preprocessing stages.

    Background removal is off by default: it is the slowest and least
    reliable stage. Thresholding is usually used instead of sharpening for
    heavily degraded scans.
    """
    enhance_contrast: bool = True
    sharpen: bool = True
    threshold: bool = False
    remove_background: bool = False

    def to_dict(self) -> Dict[str, bool]:
        return asdict(self)


def load_image(image_data: ImageInput) -> np.ndarray:
    """
    Decode supported inputs into a (height, width, 4) uint8 RGBA array.

    Args:
        image_data: RawImage, PIL image, encoded bytes, file-like object,
            base64 data URI or path to an image file

    Returns:
        RGBA pixel array owned by the caller

    Raises:
        ImageDecodeError: If the data is not a readable image
        CanvasAllocationError: If the decoded bitmap cannot be allocated
    """
    if isinstance(image_data, RawImage):
        return _allocate(image_data.to_array)

    try:
        if isinstance(image_data, Image.Image):
            image = image_data
        elif isinstance(image_data, (bytes, bytearray)):
            image = Image.open(io.BytesIO(image_data))
        elif isinstance(image_data, str):
            if image_data.startswith('data:'):
                image = Image.open(io.BytesIO(decode_data_url(image_data)))
            elif os.path.isfile(image_data):
                image = Image.open(image_data)
            else:
                raise ImageDecodeError(
                    f"Image path not found: {image_data}",
                    {'error_type': 'file_not_found'}
                )
        elif hasattr(image_data, 'read'):
            image = Image.open(image_data)
        else:
            raise ImageDecodeError(
                f"Unsupported image input type: {type(image_data).__name__}",
                {'error_type': 'input_validation'}
            )

        return _allocate(lambda: np.array(image.convert('RGBA'), dtype=np.uint8))

    except PreprocessingError:
        raise
    except Image.DecompressionBombError as e:
        raise CanvasAllocationError(
            f"Image too large to allocate: {str(e)}",
            {'error_type': 'decompression_bomb'}
        )
    except (UnidentifiedImageError, OSError, ValueError, SyntaxError) as e:
        raise ImageDecodeError(
            f"Could not decode image: {str(e)}",
            {'error_type': 'decode_failed'}
        )


def _allocate(factory):
    """Run a buffer-allocating callable, mapping memory exhaustion to CanvasAllocationError."""
    try:
        return factory()
    except MemoryError:
        raise CanvasAllocationError(
            "Not enough memory to allocate pixel buffer",
            {'error_type': 'out_of_memory'}
        )


def target_size(width: int, height: int, max_dimension: int = MAX_IMAGE_DIMENSION) -> Tuple[int, int]:
    """
    Compute output dimensions for the resize stage.

    The longer side becomes ``max_dimension`` when either side exceeds it;
    the shorter side is scaled proportionally and rounded half up.
    """
    if width <= max_dimension and height <= max_dimension:
        return width, height

    if width > height:
        new_height = int(math.floor(height * max_dimension / width + 0.5))
        return max_dimension, max(1, new_height)

    new_width = int(math.floor(width * max_dimension / height + 0.5))
    return max(1, new_width), max_dimension


class ImagePreprocessor:
    """Class for preprocessing bill photos before OCR."""

    def __init__(self, segmenter: Optional[BaseSegmenter] = None,
                 max_dimension: int = MAX_IMAGE_DIMENSION):
        """
        Initialize the image preprocessor.

        Args:
            segmenter: Segmentation collaborator used for background removal
            max_dimension: Longest allowed side after resizing
        """
        self.segmenter = segmenter
        self.max_dimension = max_dimension

    def preprocess(self, image_data: ImageInput,
                   options: Optional[PreprocessOptions] = None) -> ProcessedImage:
        """
        Preprocess an image for better OCR results.

        Args:
            image_data: Image in any form accepted by load_image
            options: Stages to apply, defaults to PreprocessOptions()

        Returns:
            ProcessedImage with the final bitmap and its PNG data URI

        Raises:
            ImageDecodeError: If the input cannot be decoded
            CanvasAllocationError: If a pixel buffer cannot be allocated
        """
        options = options or PreprocessOptions()
        steps = []

        try:
            pixels = load_image(image_data)
            logger.debug(f"Loaded image {pixels.shape[1]}x{pixels.shape[0]}")

            pixels, resized = self.resize(pixels)
            if resized:
                steps.append('resize')

            if options.remove_background:
                pixels, removed = self.remove_background(pixels)
                if removed:
                    steps.append('remove_background')

            if options.enhance_contrast:
                pixels = self.enhance_contrast(pixels)
                steps.append('enhance_contrast')

            if options.sharpen:
                pixels = self.sharpen(pixels)
                steps.append('sharpen')

            if options.threshold:
                pixels = self.adaptive_threshold(pixels)
                steps.append('threshold')

            image = Image.fromarray(pixels)
            data_url = encode_data_url(image)

        except MemoryError:
            raise CanvasAllocationError(
                "Not enough memory to allocate pixel buffer",
                {'error_type': 'out_of_memory', 'applied_steps': steps}
            )

        logger.debug(f"Preprocessing complete: {', '.join(steps) or 'no stages applied'}")
        return ProcessedImage(image=image, data_url=data_url, applied_steps=steps)

    def resize(self, pixels: np.ndarray) -> Tuple[np.ndarray, bool]:
        """
        Scale the image down so neither side exceeds the maximum dimension.

        Returns:
            Tuple of (pixels, whether the image was resized)
        """
        height, width = pixels.shape[:2]
        new_width, new_height = target_size(width, height, self.max_dimension)
        if (new_width, new_height) == (width, height):
            return pixels, False

        logger.debug(f"Resizing {width}x{height} -> {new_width}x{new_height}")
        resized = Image.fromarray(pixels).resize(
            (new_width, new_height), Image.Resampling.BILINEAR
        )
        return np.array(resized, dtype=np.uint8), True

    def remove_background(self, pixels: np.ndarray) -> Tuple[np.ndarray, bool]:
        """
        Make the background transparent using the segmentation collaborator.

        Failures are logged and the unmodified pixels are returned.

        Returns:
            Tuple of (pixels, whether the mask was applied)
        """
        if self.segmenter is None:
            logger.warning("Background removal requested but no segmenter is configured, skipping")
            return pixels, False

        height, width = pixels.shape[:2]
        try:
            data_url = encode_data_url(Image.fromarray(pixels))
            mask = self.segmenter.predict_mask(data_url, width, height)
        except SegmentationError as e:
            logger.warning(f"Background removal failed, continuing without it: {str(e)}")
            return pixels, False

        return apply_foreground_mask(pixels.copy(), mask), True

    def enhance_contrast(self, pixels: np.ndarray, factor: float = CONTRAST_FACTOR) -> np.ndarray:
        """
        Stretch contrast around mid-gray on the RGB channels.

        Each channel becomes ``clamp(v * factor + 128 * (1 - factor), 0, 255)``
        rounded half to even. Alpha is untouched.
        """
        result = pixels.copy()
        rgb = pixels[:, :, :3].astype(np.float64)
        adjusted = rgb * factor + 128.0 * (1.0 - factor)
        result[:, :, :3] = np.clip(np.rint(adjusted), 0, 255).astype(np.uint8)
        return result

    def sharpen(self, pixels: np.ndarray) -> np.ndarray:
        """
        Apply a 3x3 sharpening kernel to the RGB channels of interior pixels.

        The one-pixel border and the alpha channel are left unchanged.
        """
        height, width = pixels.shape[:2]
        if height < 3 or width < 3:
            return pixels.copy()

        result = pixels.copy()
        rgb = np.ascontiguousarray(pixels[:, :, :3], dtype=np.float32)
        filtered = cv2.filter2D(rgb, cv2.CV_32F, SHARPEN_KERNEL, borderType=cv2.BORDER_REPLICATE)
        interior = np.clip(np.rint(filtered[1:-1, 1:-1]), 0, 255)
        result[1:-1, 1:-1, :3] = interior.astype(np.uint8)
        return result

    def adaptive_threshold(self, pixels: np.ndarray,
                           half_window: int = THRESHOLD_HALF_WINDOW,
                           offset: int = THRESHOLD_OFFSET) -> np.ndarray:
        """
        Binarize against the local mean brightness.

        A pixel becomes white when its grayscale value exceeds the mean of the
        square window of ``half_window`` pixels around it (clipped at the
        image edges) minus ``offset``, black otherwise.
        """
        height, width = pixels.shape[:2]
        rgb = pixels[:, :, :3].astype(np.float64)
        gray = 0.299 * rgb[:, :, 0] + 0.587 * rgb[:, :, 1] + 0.114 * rgb[:, :, 2]

        # Summed-area table with a leading row and column of zeros
        integral = cv2.integral(gray, sdepth=cv2.CV_64F)

        rows = np.arange(height)
        cols = np.arange(width)
        top = np.clip(rows - half_window, 0, height)[:, None]
        bottom = np.clip(rows + half_window + 1, 0, height)[:, None]
        left = np.clip(cols - half_window, 0, width)[None, :]
        right = np.clip(cols + half_window + 1, 0, width)[None, :]

        window_sum = (integral[bottom, right] - integral[top, right]
                      - integral[bottom, left] + integral[top, left])
        window_count = (bottom - top) * (right - left)
        local_mean = window_sum / window_count

        binary = np.where(gray > local_mean - offset, 255, 0).astype(np.uint8)

        result = pixels.copy()
        result[:, :, 0] = binary
        result[:, :, 1] = binary
        result[:, :, 2] = binary
        return result


def preprocess_image(image_data: ImageInput, options: Optional[PreprocessOptions] = None,
                     segmenter: Optional[BaseSegmenter] = None) -> ProcessedImage:
    """
    Preprocess an image for better OCR results.

    Args:
        image_data: Image in any form accepted by load_image
        options: Stages to apply
        segmenter: Collaborator used when background removal is requested

    Returns:
        ProcessedImage ready for OCR
    """
    return ImagePreprocessor(segmenter=segmenter).preprocess(image_data, options)
