"""Tests for the bill scanning API."""
import base64
import io

import pytest

from app import create_app
from config.scan_config import ScanConfig
from services.bill_scan_service import BillScanService
from tests.conftest import FakeOCR, SAMPLE_BILL_TEXT


@pytest.fixture
def config():
    return ScanConfig(env={'MAX_CONTENT_LENGTH': '1000000'})


@pytest.fixture
def app(config, fake_ocr):
    app = create_app(config, scan_service=BillScanService(fake_ocr), log_to_file=False)
    app.config['TESTING'] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


def test_scan_upload(client, png_bytes):
    response = client.post(
        '/api/scan',
        data={'file': (io.BytesIO(png_bytes), 'bill.png'), 'threshold': 'true'},
        content_type='multipart/form-data'
    )

    assert response.status_code == 200
    payload = response.get_json()
    assert payload['success'] is True
    assert payload['item_count'] == 4
    assert payload['items'][1]['name'] == "Butter Naan"
    assert payload['items'][1]['quantity'] == 2
    assert payload['items'][1]['price'] == 40.0
    assert payload['metadata']['total'] == 724.5
    assert payload['metadata']['bill_number'] == "INV-2234"


def test_scan_json_data_url(client, png_bytes):
    data_url = 'data:image/png;base64,' + base64.b64encode(png_bytes).decode('ascii')
    response = client.post('/api/scan', json={'image': data_url, 'sharpen': False})

    assert response.status_code == 200
    assert response.get_json()['item_count'] == 4


def test_scan_missing_image(client):
    response = client.post('/api/scan', json={})
    assert response.status_code == 400
    assert response.get_json()['success'] is False


def test_scan_undecodable_image(client):
    response = client.post('/api/scan', json={'image': 'data:image/png;base64,bm90IGFuIGltYWdl'})
    assert response.status_code == 400
    assert response.get_json()['error_type'] == 'ImageDecodeError'


def test_scan_json_bare_base64(client, png_bytes):
    response = client.post('/api/scan', json={'image': base64.b64encode(png_bytes).decode('ascii')})
    assert response.status_code == 200
    assert response.get_json()['item_count'] == 4


def test_scan_rejects_server_file_path(client, fake_ocr, png_bytes, tmp_path):
    image_path = tmp_path / 'bill.png'
    image_path.write_bytes(png_bytes)

    response = client.post('/api/scan', json={'image': str(image_path)})

    assert response.status_code == 400
    assert response.get_json()['error_type'] == 'ImageDecodeError'
    assert fake_ocr.images == []


def test_scan_rejects_non_string_image(client):
    response = client.post('/api/scan', json={'image': [1, 2, 3]})
    assert response.status_code == 400


def test_scan_ocr_failure(config, png_bytes):
    service = BillScanService(FakeOCR(error=RuntimeError('engine crashed')))
    client = create_app(config, scan_service=service, log_to_file=False).test_client()

    response = client.post(
        '/api/scan',
        data={'file': (io.BytesIO(png_bytes), 'bill.png')},
        content_type='multipart/form-data'
    )

    assert response.status_code == 502
    assert response.get_json()['error_type'] == 'OCRServiceError'


def test_scan_upload_too_large(png_bytes):
    config = ScanConfig(env={'MAX_CONTENT_LENGTH': '100'})
    client = create_app(config, scan_service=BillScanService(FakeOCR()), log_to_file=False).test_client()

    response = client.post(
        '/api/scan',
        data={'file': (io.BytesIO(png_bytes * 10), 'bill.png')},
        content_type='multipart/form-data'
    )

    assert response.status_code == 413


def test_parse_text(client):
    response = client.post('/api/parse-text', json={'text': SAMPLE_BILL_TEXT})

    assert response.status_code == 200
    payload = response.get_json()
    assert payload['item_count'] == 4
    assert payload['metadata']['tax'] == 34.5


def test_parse_text_missing(client):
    response = client.post('/api/parse-text', json={'content': 'Idli ₹40'})
    assert response.status_code == 400


def test_vocabulary_match(client):
    response = client.get('/api/vocabulary/match?q=Panner%20Tikka')

    payload = response.get_json()
    assert payload['match'] == {
        'matched_name': "Paneer Tikka",
        'edit_distance': 1,
        'confidence': 80
    }


def test_vocabulary_no_match(client):
    response = client.get('/api/vocabulary/match', query_string={'q': 'Quantum Flux Capacitor'})
    assert response.status_code == 200
    assert response.get_json()['match'] is None


def test_vocabulary_bad_request(client):
    assert client.get('/api/vocabulary/match').status_code == 400
    assert client.get('/api/vocabulary/match?q=Idli&max_distance=far').status_code == 400


def test_health(client):
    response = client.get('/api/health')
    payload = response.get_json()
    assert payload['success'] is True
    assert payload['scan_service_ready'] is True
    assert payload['config']['ocr_language'] == 'eng'
