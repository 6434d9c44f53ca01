"""Tests for the OCR engine interface and the Tesseract implementation."""
import pytest
import pytesseract
from unittest.mock import Mock, patch
from PIL import Image

from models.image import ProcessedImage, encode_data_url
from ocr import (
    OCRServiceError,
    OCREngineType,
    ProgressReporter,
    TesseractOCR,
    create_ocr_engine,
    get_engine_status
)
from tests.conftest import FakeOCR, make_image


@pytest.fixture
def mock_tesseract():
    """Patch pytesseract so no Tesseract binary is needed."""
    with patch('ocr.tesseract_ocr.pytesseract.get_tesseract_version', return_value='5.3.0'), \
            patch('ocr.tesseract_ocr.pytesseract.image_to_string') as mock_image_to_string:
        mock_image_to_string.return_value = "Masala Dosa ₹120\nTotal ₹120"
        yield mock_image_to_string


@pytest.fixture
def processed_image():
    image = make_image(10, 10)
    return ProcessedImage(image=image, data_url=encode_data_url(image), applied_steps=[])


def test_progress_reporter_is_monotonic():
    callback = Mock()
    reporter = ProgressReporter(callback)

    for value in (0, 40, 30, 40, 120, -5):
        reporter.report(value)

    assert [call.args[0] for call in callback.call_args_list] == [0, 40, 40, 100]
    assert reporter.last_value == 100


def test_progress_reporter_without_callback():
    reporter = ProgressReporter()
    reporter.report(50)
    assert reporter.last_value is None


def test_recognize_reports_progress(processed_image, progress_callback):
    engine = FakeOCR(text="Idli ₹40")

    text = engine.recognize(processed_image, on_progress=progress_callback)

    assert text == "Idli ₹40"
    values = [call.args[0] for call in progress_callback.call_args_list]
    assert values == sorted(values)
    assert values[-1] == 100


def test_recognize_accepts_data_url(processed_image):
    engine = FakeOCR()
    engine.recognize(processed_image.data_url)
    assert engine.images[0].size == (10, 10)


def test_recognize_rejects_bad_input():
    engine = FakeOCR()
    with pytest.raises(OCRServiceError) as exc_info:
        engine.recognize('data:image/png;base64,!!!')
    assert exc_info.value.details['error_type'] == 'input_validation'

    with pytest.raises(OCRServiceError):
        engine.recognize(42)


def test_recognize_wraps_engine_errors(processed_image):
    engine = FakeOCR(error=KeyError('boom'))
    with pytest.raises(OCRServiceError) as exc_info:
        engine.recognize(processed_image)
    assert exc_info.value.engine == OCREngineType.TESSERACT
    assert exc_info.value.details['error_type'] == 'processing'


def test_tesseract_recognize(mock_tesseract, processed_image, progress_callback):
    engine = TesseractOCR(language='eng', timeout=20)

    text = engine.recognize(processed_image, on_progress=progress_callback)

    assert text == "Masala Dosa ₹120\nTotal ₹120"
    args, kwargs = mock_tesseract.call_args
    assert args[0].mode == 'RGB'
    assert kwargs['lang'] == 'eng'
    assert kwargs['timeout'] == 20
    assert '--psm 3' in kwargs['config']
    assert [call.args[0] for call in progress_callback.call_args_list] == [0, 100]
    assert engine.get_debug_info()['engine'] == 'tesseract'


def test_tesseract_custom_command(mock_tesseract):
    with patch('ocr.tesseract_ocr.pytesseract.pytesseract') as mock_module:
        TesseractOCR(tesseract_cmd='/opt/tesseract/bin/tesseract')
        assert mock_module.tesseract_cmd == '/opt/tesseract/bin/tesseract'


def test_tesseract_not_installed():
    with patch('ocr.tesseract_ocr.pytesseract.get_tesseract_version',
               side_effect=pytesseract.TesseractNotFoundError()):
        with pytest.raises(OCRServiceError) as exc_info:
            TesseractOCR()
    assert exc_info.value.details['error_type'] == 'initialization'


def test_tesseract_timeout(mock_tesseract, processed_image):
    mock_tesseract.side_effect = RuntimeError('Tesseract process timeout')
    engine = TesseractOCR(timeout=1)

    with pytest.raises(OCRServiceError) as exc_info:
        engine.recognize(processed_image)
    assert exc_info.value.details['error_type'] == 'timeout'


def test_tesseract_failure(mock_tesseract, processed_image):
    mock_tesseract.side_effect = pytesseract.TesseractError(1, 'Error opening data file')
    engine = TesseractOCR()

    with pytest.raises(OCRServiceError) as exc_info:
        engine.recognize(processed_image)
    assert exc_info.value.details['status'] == 1


def test_create_ocr_engine(mock_tesseract):
    engine = create_ocr_engine(language='hin', timeout=5)
    assert isinstance(engine, TesseractOCR)
    assert engine.language == 'hin'

    status = get_engine_status(engine)
    assert status['engine_type'] == 'tesseract'
    assert status['timeout'] == 5


def test_grayscale_image_passed_unchanged(mock_tesseract):
    engine = TesseractOCR()
    engine.recognize(Image.new('L', (5, 5), 128))
    assert mock_tesseract.call_args.args[0].mode == 'L'
