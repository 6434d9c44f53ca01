"""Tests for the bill scan service."""
import pytest
from decimal import Decimal
from unittest.mock import patch

from config.scan_config import ScanConfig, ScanConfigError
from models.image import ImageDecodeError
from ocr import OCRServiceError
from services.bill_scan_service import BillScanService
from utils.background_remover import HTTPSegmenter
from utils.image_preprocessor import PreprocessOptions
from tests.conftest import FakeOCR, FakeSegmenter


@pytest.fixture
def scan_service(fake_ocr):
    return BillScanService(fake_ocr)


def test_scan_returns_parsed_items(scan_service, png_bytes, progress_callback):
    result = scan_service.scan(png_bytes, on_progress=progress_callback)

    assert [item.name for item in result.items] == [
        "Paneer Butter Masala", "Butter Naan", "Masala Dosa", "Chicken Biryani"
    ]
    assert result.metadata.total == Decimal('724.50')
    assert progress_callback.call_args_list[-1].args[0] == 100


def test_scan_passes_processed_image_to_ocr(scan_service, fake_ocr, png_bytes):
    scan_service.scan(png_bytes)
    assert fake_ocr.images[0].size == (40, 20)
    assert fake_ocr.images[0].getpixel((5, 5)) == (78, 78, 78, 255)


def test_scan_uses_default_options(fake_ocr, png_bytes):
    options = PreprocessOptions(enhance_contrast=False, sharpen=False)
    service = BillScanService(fake_ocr, default_options=options)

    processed = service.preprocess(png_bytes)

    assert processed.applied_steps == []


def test_scan_with_background_removal(png_bytes):
    segmenter = FakeSegmenter(probability=0.0)
    service = BillScanService(FakeOCR(), segmenter=segmenter)

    processed = service.preprocess(png_bytes, PreprocessOptions(remove_background=True))

    assert processed.applied_steps == ['remove_background', 'enhance_contrast', 'sharpen']
    assert len(segmenter.calls) == 1


def test_scan_empty_result(png_bytes):
    service = BillScanService(FakeOCR(text="Thank you\nVisit again"))
    result = service.scan(png_bytes)
    assert result.is_empty


def test_scan_decode_error(scan_service, fake_ocr):
    with pytest.raises(ImageDecodeError):
        scan_service.scan(b'not an image')
    assert fake_ocr.images == []


def test_scan_ocr_error(png_bytes):
    service = BillScanService(FakeOCR(error=RuntimeError('engine crashed')))
    with pytest.raises(OCRServiceError):
        service.scan(png_bytes)


def test_parse_text(scan_service, sample_bill_text):
    result = scan_service.parse_text(sample_bill_text)
    assert len(result.items) == 4


def test_from_config_without_segmentation():
    config = ScanConfig(env={'OCR_LANGUAGE': 'eng', 'OCR_TIMEOUT': '15'})
    with patch('services.bill_scan_service.create_ocr_engine', return_value=FakeOCR()) as mock_create:
        service = BillScanService.from_config(config)

    mock_create.assert_called_once_with(tesseract_cmd=None, language='eng', timeout=15.0)
    assert service.preprocessor.segmenter is None


def test_from_config_with_segmentation():
    config = ScanConfig(env={
        'SEGMENTATION_ENDPOINT': 'http://localhost:8080/segment',
        'SCAN_REMOVE_BACKGROUND': 'true'
    })
    with patch('services.bill_scan_service.create_ocr_engine', return_value=FakeOCR()):
        service = BillScanService.from_config(config)

    assert isinstance(service.preprocessor.segmenter, HTTPSegmenter)
    assert service.preprocessor.segmenter.timeout == 30.0
    assert service.default_options.remove_background is True


def test_from_config_invalid():
    config = ScanConfig(env={'OCR_TIMEOUT': 'soon'})
    with pytest.raises(ScanConfigError):
        BillScanService.from_config(config)
