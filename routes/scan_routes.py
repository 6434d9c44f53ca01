from flask import Blueprint, request, jsonify, current_app
import logging
from typing import Any, Dict, Optional

from config.scan_config import ScanConfig
from models.image import ImageDecodeError, CanvasAllocationError, decode_data_url
from ocr import OCRServiceError
from services.bill_scan_service import BillScanService
from utils.food_vocabulary import find_closest_match
from utils.image_preprocessor import PreprocessOptions

logger = logging.getLogger(__name__)
scan_bp = Blueprint('scan', __name__)

OPTION_FIELDS = ('enhance_contrast', 'sharpen', 'threshold', 'remove_background')
TRUE_VALUES = ('1', 'true', 'yes', 'on')


def get_scan_service() -> BillScanService:
    """Get the scan service from the Flask app config, creating it on first use."""
    scan_service = current_app.config.get('scan_service')
    if scan_service is None:
        logger.info("Creating bill scan service")
        scan_service = BillScanService.from_config(current_app.config['SCAN_CONFIG'])
        current_app.config['scan_service'] = scan_service
    return scan_service


def error_response(error: Exception, status: int):
    """Build the JSON error body used by all scan routes."""
    return jsonify({
        'success': False,
        'error': str(error),
        'error_type': error.__class__.__name__
    }), status


def parse_options(values: Dict[str, Any], defaults: PreprocessOptions) -> PreprocessOptions:
    """Read preprocessing flags from form or JSON values, falling back to defaults."""
    flags = defaults.to_dict()
    for field in OPTION_FIELDS:
        value = values.get(field)
        if value is None or value == '':
            continue
        if isinstance(value, bool):
            flags[field] = value
        else:
            flags[field] = str(value).strip().lower() in TRUE_VALUES
    return PreprocessOptions(**flags)


def _read_image() -> Optional[bytes]:
    """Return the uploaded file bytes, or the decoded base64 JSON ``image`` field."""
    if 'file' in request.files:
        upload = request.files['file']
        if upload.filename:
            return upload.read()
    payload = request.get_json(silent=True) or {}
    image = payload.get('image')
    if not image:
        return None
    # Only encoded images are accepted; server file paths are never opened
    if not isinstance(image, str):
        raise ImageDecodeError(
            "Image must be a base64 string or data URI",
            {'error_type': 'input_validation'}
        )
    return decode_data_url(image.strip())


@scan_bp.route('/api/scan', methods=['POST'])
def scan_bill():
    """Preprocess an uploaded bill photo, run OCR and return the parsed items."""
    try:
        image_data = _read_image()
    except ImageDecodeError as e:
        logger.warning(f"Rejected image payload: {str(e)}")
        return error_response(e, 400)
    if not image_data:
        return jsonify({'success': False, 'error': 'No image provided'}), 400

    values = request.form.to_dict() if request.files else (request.get_json(silent=True) or {})
    service = get_scan_service()
    options = parse_options(values, service.default_options)

    try:
        result = service.scan(image_data, options)
    except ImageDecodeError as e:
        logger.warning(f"Rejected undecodable image: {str(e)}")
        return error_response(e, 400)
    except CanvasAllocationError as e:
        logger.error(f"Image too large to process: {str(e)}")
        return error_response(e, 500)
    except OCRServiceError as e:
        logger.error(f"OCR failed: {str(e)}")
        return error_response(e, 502)

    return jsonify({'success': True, **result.to_dict()})


@scan_bp.route('/api/parse-text', methods=['POST'])
def parse_text():
    """Parse OCR text supplied directly by the client."""
    payload = request.get_json(silent=True) or {}
    text = payload.get('text')
    if not isinstance(text, str):
        return jsonify({'success': False, 'error': 'No text provided'}), 400

    result = current_app.config['bill_handler'].parse(text)
    return jsonify({'success': True, **result.to_dict()})


@scan_bp.route('/api/vocabulary/match', methods=['GET'])
def match_vocabulary():
    """Find the closest known menu item for a name."""
    query = request.args.get('q', '').strip()
    if not query:
        return jsonify({'success': False, 'error': 'Missing query parameter q'}), 400

    try:
        max_distance = int(request.args.get('max_distance', 3))
    except ValueError:
        return jsonify({'success': False, 'error': 'max_distance must be an integer'}), 400

    match = find_closest_match(query, max_distance=max_distance)
    if match is None:
        return jsonify({'success': True, 'query': query, 'match': None})

    return jsonify({
        'success': True,
        'query': query,
        'match': {
            'matched_name': match.matched_name,
            'edit_distance': match.edit_distance,
            'confidence': match.confidence
        }
    })


@scan_bp.route('/api/health', methods=['GET'])
def health():
    """Report configuration status."""
    config: ScanConfig = current_app.config['SCAN_CONFIG']
    return jsonify({
        'success': True,
        'scan_service_ready': current_app.config.get('scan_service') is not None,
        'config': config.get_status()
    })
