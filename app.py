"""Flask application exposing the bill scanner."""

import logging
from decimal import Decimal
from typing import Optional

from flask import Flask, jsonify
from flask.json.provider import DefaultJSONProvider
from dotenv import load_dotenv
from werkzeug.exceptions import HTTPException

from config.scan_config import ScanConfig
from handlers.restaurant_bill_handler import RestaurantBillHandler
from routes.scan_routes import scan_bp
from services.bill_scan_service import BillScanService
from utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


class CustomJSONProvider(DefaultJSONProvider):
    """JSON provider that serializes Decimal amounts as numbers."""

    @staticmethod
    def default(obj):
        if isinstance(obj, Decimal):
            return float(obj)
        return DefaultJSONProvider.default(obj)


def create_app(config: Optional[ScanConfig] = None,
               scan_service: Optional[BillScanService] = None,
               log_to_file: bool = True) -> Flask:
    """
    Create the Flask application.

    Args:
        config: Scan configuration, read from the environment when omitted
        scan_service: Prebuilt service; created on first scan when omitted
        log_to_file: Whether to write rotating log files

    Returns:
        Configured Flask app
    """
    if config is None:
        load_dotenv()
        config = ScanConfig()
    config.validate()

    setup_logging(log_dir=config.log_dir, debug_mode=config.debug, log_to_file=log_to_file)

    app = Flask(__name__)
    app.json = CustomJSONProvider(app)
    app.config.update(
        MAX_CONTENT_LENGTH=config.max_content_length,
        DEBUG=config.debug,
        SCAN_CONFIG=config
    )
    app.config['scan_service'] = scan_service
    app.config['bill_handler'] = scan_service.handler if scan_service else RestaurantBillHandler()

    @app.errorhandler(413)
    def handle_too_large(error):
        return jsonify({
            'success': False,
            'error': f"Upload exceeds {config.max_content_length} bytes",
            'error_type': 'RequestEntityTooLarge'
        }), 413

    @app.errorhandler(Exception)
    def handle_error(error):
        """Global error handler with enhanced logging."""
        if isinstance(error, HTTPException):
            return error
        logger.error(f"Unhandled error: {str(error)}", exc_info=True)
        return jsonify({
            'success': False,
            'error': str(error),
            'error_type': error.__class__.__name__
        }), 500

    app.register_blueprint(scan_bp)

    logger.info(f"Max content length: {config.max_content_length} bytes")
    logger.info(f"Debug mode: {config.debug}")
    return app
