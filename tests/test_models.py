import unittest
from decimal import Decimal

import numpy as np
from pydantic import ValidationError

from models.bill import ExtractedItem, BillMetadata, ParseResult
from models.image import (
    RawImage,
    ProcessedImage,
    ImageDecodeError,
    PreprocessingError,
    encode_data_url,
    decode_data_url
)
from tests.conftest import make_image


class TestExtractedItem(unittest.TestCase):
    """Test the ExtractedItem model."""

    def test_defaults(self):
        item = ExtractedItem(name="Idli", price=Decimal('60'))
        self.assertEqual(item.quantity, 1)
        self.assertEqual(item.confidence_score, 85)
        self.assertIsNone(item.suggestion)
        self.assertTrue(item.id.startswith('item_'))

    def test_price_quantized(self):
        item = ExtractedItem(name="Idli", price=Decimal('60'))
        self.assertEqual(str(item.price), '60.00')

    def test_ids_unique(self):
        first = ExtractedItem(name="Idli", price=Decimal('60'))
        second = ExtractedItem(name="Idli", price=Decimal('60'))
        self.assertNotEqual(first.id, second.id)

    def test_price_bounds(self):
        with self.assertRaises(ValidationError):
            ExtractedItem(name="Idli", price=Decimal('0'))
        with self.assertRaises(ValidationError):
            ExtractedItem(name="Idli", price=Decimal('10000'))

    def test_quantity_must_be_positive(self):
        with self.assertRaises(ValidationError):
            ExtractedItem(name="Idli", price=Decimal('60'), quantity=0)

    def test_frozen(self):
        item = ExtractedItem(name="Idli", price=Decimal('60'))
        with self.assertRaises(ValidationError):
            item.name = "Vada"

    def test_to_dict(self):
        item = ExtractedItem(
            id='item_1', name="Butter Naan", price=Decimal('40'), quantity=2,
            confidence_score=100, raw_source_line="Butter Naan 2x ₹40"
        )
        self.assertEqual(item.to_dict(), {
            'id': 'item_1',
            'name': "Butter Naan",
            'price': 40.0,
            'quantity': 2,
            'confidence_score': 100,
            'raw_source_line': "Butter Naan 2x ₹40",
            'suggestion': None
        })


class TestBillMetadata(unittest.TestCase):
    """Test the BillMetadata model."""

    def test_all_fields_optional(self):
        metadata = BillMetadata()
        self.assertEqual(metadata.to_dict(), {})

    def test_to_dict_omits_missing_fields(self):
        metadata = BillMetadata(merchant_name="Spice Garden", total=Decimal('724.5'))
        self.assertEqual(metadata.to_dict(), {'merchant_name': "Spice Garden", 'total': 724.5})

    def test_amounts_quantized(self):
        metadata = BillMetadata(tax=Decimal('34.5'))
        self.assertEqual(str(metadata.tax), '34.50')


class TestParseResult(unittest.TestCase):
    """Test the ParseResult model."""

    def test_empty(self):
        result = ParseResult()
        self.assertTrue(result.is_empty)
        self.assertEqual(result.to_dict(), {'items': [], 'metadata': {}, 'item_count': 0})

    def test_item_count(self):
        result = ParseResult(items=[ExtractedItem(name="Vada", price=Decimal('50'))])
        self.assertFalse(result.is_empty)
        self.assertEqual(result.to_dict()['item_count'], 1)


class TestRawImage(unittest.TestCase):
    """Test the RawImage model."""

    def test_buffer_size_checked(self):
        with self.assertRaises(ImageDecodeError) as context:
            RawImage(width=2, height=2, data=bytes(15))
        self.assertEqual(context.exception.details['error_type'], 'buffer_size_mismatch')

    def test_dimensions_checked(self):
        with self.assertRaises(ImageDecodeError):
            RawImage(width=0, height=2, data=b'')

    def test_array_round_trip(self):
        pixels = np.arange(2 * 3 * 4, dtype=np.uint8).reshape(2, 3, 4)
        raw = RawImage.from_array(pixels)
        self.assertEqual((raw.width, raw.height), (3, 2))
        np.testing.assert_array_equal(raw.to_array(), pixels)

    def test_to_array_is_writable_copy(self):
        raw = RawImage(width=1, height=1, data=bytes([1, 2, 3, 4]))
        pixels = raw.to_array()
        pixels[0, 0, 0] = 9
        self.assertEqual(raw.data[0], 1)

    def test_from_array_rejects_rgb(self):
        with self.assertRaises(ImageDecodeError):
            RawImage.from_array(np.zeros((2, 2, 3), dtype=np.uint8))

    def test_errors_share_base_class(self):
        self.assertTrue(issubclass(ImageDecodeError, PreprocessingError))


class TestDataUrl(unittest.TestCase):
    """Test data URI helpers."""

    def test_encode_png(self):
        data_url = encode_data_url(make_image(4, 4))
        self.assertTrue(data_url.startswith('data:image/png;base64,'))

    def test_decode_rejects_invalid_base64(self):
        with self.assertRaises(ImageDecodeError):
            decode_data_url('data:image/png;base64,@@not-base64@@')

    def test_decode_requires_base64_header(self):
        with self.assertRaises(ImageDecodeError):
            decode_data_url('data:image/png,rawdata')

    def test_processed_image_properties(self):
        image = make_image(6, 3)
        processed = ProcessedImage(image=image, data_url=encode_data_url(image))
        self.assertEqual((processed.width, processed.height), (6, 3))
        self.assertEqual(processed.pixels.shape, (3, 6, 4))
        self.assertEqual(processed.to_raw().width, 6)
        self.assertEqual(processed.applied_steps, [])


if __name__ == '__main__':
    unittest.main()
