"""Test configuration and fixtures."""
import io

import numpy as np
import pytest
from unittest.mock import Mock
from PIL import Image

from ocr.base_ocr import BaseOCR, OCREngineType
from utils.background_remover import BaseSegmenter

SAMPLE_BILL_TEXT = """Spice Garden Restaurant
MG Road, Bengaluru
Bill No: INV-2234
Date: 12/03/2024 Time: 19:45
Paneer Butter Masala ₹280.00
Butter Naan 2x ₹40
Masala Dosa Rs. 120
Chikcen Biryani ....... 250/-
Sub Total ₹690.00
CGST 2.5% ₹17.25
SGST 2.5% ₹17.25
Grand Total ₹724.50
Thank you, visit again!
"""


class FakeOCR(BaseOCR):
    """OCR engine returning canned text."""

    engine_type = OCREngineType.TESSERACT

    def __init__(self, text=SAMPLE_BILL_TEXT, error=None):
        self.text = text
        self.error = error
        self.images = []

    def _recognize(self, image, progress):
        self.images.append(image)
        progress.report(0)
        if self.error is not None:
            raise self.error
        progress.report(50)
        progress.report(100)
        return self.text


class FakeSegmenter(BaseSegmenter):
    """Segmenter returning a fixed probability for every pixel."""

    def __init__(self, probability=1.0):
        self.probability = probability
        self.calls = []

    def _predict_mask(self, data_url, width, height):
        self.calls.append((data_url, width, height))
        return [self.probability] * (width * height)


def make_image(width, height, color=(100, 100, 100, 255)):
    """Create a solid RGBA PIL image."""
    return Image.new('RGBA', (width, height), color)


def encode_png(image):
    buffer = io.BytesIO()
    image.save(buffer, format='PNG')
    return buffer.getvalue()


@pytest.fixture
def sample_bill_text():
    return SAMPLE_BILL_TEXT


@pytest.fixture
def png_bytes():
    """PNG encoded 40x20 gray image."""
    return encode_png(make_image(40, 20))


@pytest.fixture
def gray_pixels():
    """Uniform mid-gray 8x8 RGBA pixel array."""
    pixels = np.full((8, 8, 4), 100, dtype=np.uint8)
    pixels[:, :, 3] = 255
    return pixels


@pytest.fixture
def fake_ocr():
    return FakeOCR()


@pytest.fixture
def fake_segmenter():
    return FakeSegmenter()


@pytest.fixture
def progress_callback():
    return Mock()
